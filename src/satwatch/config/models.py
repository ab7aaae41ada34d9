"""Configuration models using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, Field, SecretStr

from satwatch.config.paths import get_state_path

# The interval the original deployment ran with (30 hours).
DEFAULT_WATCH_INTERVAL_SECONDS = 30 * 60 * 60


class ConfigError(Exception):
    """Configuration error."""

    pass


class TelegramConfig(BaseModel):
    """Configuration for the Telegram bot."""

    bot_token: SecretStr | None = None
    # Empty list = anyone may use the bot
    allowed_users: list[str] = []


class N2YOConfig(BaseModel):
    """Configuration for the N2YO pass prediction API."""

    api_key: SecretStr | None = None
    base_url: str = "https://api.n2yo.com/rest/v1/satellite"
    user_agent: str = "satwatch"
    timeout: float = 30.0


class WatchConfig(BaseModel):
    """Configuration for the watch poller."""

    interval_seconds: float = Field(default=DEFAULT_WATCH_INTERVAL_SECONDS, gt=0)
    # Run a cycle immediately at startup instead of waiting one interval
    run_on_start: bool = True
    forecast_days: int = Field(default=1, ge=1, le=10)


class SatwatchConfig(BaseModel):
    """Root configuration model."""

    state_path: Path = Field(default_factory=get_state_path)
    default_locale: str = "en-GB"
    telegram: TelegramConfig | None = None
    n2yo: N2YOConfig | None = None
    watch: WatchConfig = Field(default_factory=WatchConfig)

    def require_telegram(self) -> TelegramConfig:
        """Return the Telegram section, failing if no bot token is configured.

        Raises:
            ConfigError: If the token is missing from both config and env.
        """
        if self.telegram is None or self.telegram.bot_token is None:
            raise ConfigError(
                "Missing setting telegram.bot_token "
                "(or TELEGRAM_BOT_TOKEN environment variable)"
            )
        return self.telegram

    def require_n2yo(self) -> N2YOConfig:
        """Return the N2YO section, failing if no API key is configured.

        Raises:
            ConfigError: If the key is missing from both config and env.
        """
        if self.n2yo is None or self.n2yo.api_key is None:
            raise ConfigError(
                "Missing setting n2yo.api_key (or N2YO_KEY environment variable)"
            )
        return self.n2yo

"""Server command for running the bot and the watch scheduler."""

import asyncio
import logging
from pathlib import Path

import typer

from satwatch.cli.console import error
from satwatch.cli.runtime import ConfigOption
from satwatch.config import ConfigError
from satwatch.errors import PersistenceError

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    """Register the serve command."""

    @app.command()
    def serve(config: ConfigOption = None) -> None:
        """Run the Telegram bot and the watch scheduler."""
        try:
            asyncio.run(_run_server(config))
        except KeyboardInterrupt:
            # Use print here since logging may not be configured yet
            print("\nServer stopped")
        except (ConfigError, PersistenceError) as e:
            error(str(e))
            raise typer.Exit(1) from None


async def _run_server(config_path: Path | None = None) -> None:
    """Run the server asynchronously."""
    import signal as signal_module

    from satwatch.logging import configure_logging, register_secrets

    # Configure logging with Rich for colorful server output and file logging
    configure_logging(use_rich=True, log_to_file=True)

    from satwatch.cli.runtime import bootstrap_runtime
    from satwatch.config import load_config
    from satwatch.providers.telegram import (
        TelegramNotificationSink,
        TelegramProvider,
        WatchCommands,
    )
    from satwatch.watches import WatchScheduler

    logger.info("Loading configuration")
    config = load_config(config_path)
    telegram_config = config.require_telegram()
    n2yo_config = config.require_n2yo()
    register_secrets(
        telegram_config.bot_token.get_secret_value(),  # type: ignore[union-attr]
        n2yo_config.api_key.get_secret_value(),  # type: ignore[union-attr]
    )

    logger.info("Opening state", extra={"state.path": str(config.state_path)})
    runtime = await bootstrap_runtime(config)

    telegram_provider = TelegramProvider(
        bot_token=telegram_config.bot_token.get_secret_value(),  # type: ignore[union-attr]
        allowed_users=telegram_config.allowed_users,
    )
    cycle = runtime.create_cycle(TelegramNotificationSink(telegram_provider.bot))
    scheduler = WatchScheduler(
        cycle,
        config.watch.interval_seconds,
        run_on_start=config.watch.run_on_start,
    )
    telegram_provider.set_commands(WatchCommands(runtime.service, scheduler))

    telegram_task: asyncio.Task | None = None
    loop = asyncio.get_running_loop()

    def handle_signal() -> None:
        if telegram_task and not telegram_task.done():
            telegram_task.cancel()

    for sig in (signal_module.SIGTERM, signal_module.SIGINT):
        loop.add_signal_handler(sig, handle_signal)

    try:
        await scheduler.start()
        logger.info("Starting Telegram polling")
        telegram_task = asyncio.create_task(telegram_provider.start())
        try:
            await telegram_task
        except asyncio.CancelledError:
            logger.info("Telegram polling cancelled")
    finally:
        await _cleanup_server(scheduler, telegram_provider, runtime)


async def _cleanup_server(scheduler, telegram_provider, runtime) -> None:
    """Clean up server resources."""
    for resource, method in [
        (scheduler, "stop"),
        (telegram_provider, "stop"),
        (runtime, "close"),
    ]:
        if resource:
            try:
                await getattr(resource, method)()
            except Exception as e:
                logger.warning(f"Error during {method}: {e}")

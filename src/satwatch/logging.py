"""Logging setup for satwatch.

Call configure_logging() once at startup, then register_secrets() with the
bot token and N2YO key so they are masked wherever they show up, including
third-party log lines such as httpx request URLs.

Levels:
- DEBUG: dedup decisions, N2YO request paths, coalesced cycle requests
- INFO: cycle start/finish, notifications sent, state changes
- WARNING: per-subscription fetch/delivery failures, missing locations
- ERROR: failed cycles (usually a failed commit), unexpected handler errors

Events use snake_case names with dotted ``extra`` keys
(``watch.subscription_id``, ``error.message``). The console shows the extras
after the message; the JSONL files keep them as an object.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import TextIO

DEFAULT_LOG_RETENTION_DAYS = 7

DEFAULT_REDACT_PATTERNS: list[str] = [
    # Telegram bot tokens (numeric_id:alphanumeric_token)
    r"\b(\d{8,}:[A-Za-z0-9_-]{30,})\b",
    # N2YO appends the key to the path: .../tle/25338&apiKey=XXXX
    r"apiKey=([A-Za-z0-9-]{6,})",
    # Env-style assignments: N2YO_KEY=secret, TELEGRAM_BOT_TOKEN: secret
    r"\b[A-Z0-9_]+(?:KEY|TOKEN|SECRET|PASSWORD)\s*[=:]\s*([^\s\"']{8,})",
]

# Daily files are named by their UTC date
_LOG_FILE_NAME = re.compile(r"^(\d{4}-\d{2}-\d{2})\.jsonl$")

# Third-party loggers and the most verbose level they may emit at
_LIBRARY_LEVELS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "aiogram.event": logging.WARNING,
    "aiogram.dispatcher": logging.INFO,
    "filelock": logging.WARNING,
}


def _mask(token: str) -> str:
    if len(token) < 12:
        return "***"
    return f"{token[:4]}...{token[-4:]}"


@dataclass
class SecretRedactor:
    """Masks secrets in log text.

    Pattern matches keep the first and last four characters so a reader can
    tell which credential was involved. Registered secrets are masked
    wherever they appear, whatever surrounds them.
    """

    patterns: list[re.Pattern[str]] = field(default_factory=list)
    secrets: set[str] = field(default_factory=set)
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.patterns:
            self.patterns = [
                re.compile(p, re.IGNORECASE) for p in DEFAULT_REDACT_PATTERNS
            ]

    def add_secret(self, value: str) -> None:
        if value:
            self.secrets.add(value)

    def redact(self, text: str) -> str:
        if not self.enabled or not text:
            return text
        # Longest first so a secret containing another is masked whole
        for secret in sorted(self.secrets, key=len, reverse=True):
            text = text.replace(secret, _mask(secret))
        for pattern in self.patterns:
            text = pattern.sub(self._mask_match, text)
        return text

    @staticmethod
    def _mask_match(match: re.Match[str]) -> str:
        full = match.group(0)
        token = match.group(1) if match.lastindex else full
        if "..." in token or token == "***":
            return full
        if token == full:
            return _mask(token)
        return full.replace(token, _mask(token))


_redactor = SecretRedactor()


def register_secrets(*values: str | None) -> None:
    """Mask these exact values in every log line from now on."""
    for value in values:
        if value:
            _redactor.add_secret(value)


def _log_file_date(path: Path) -> date | None:
    match = _LOG_FILE_NAME.match(path.name)
    if match is None:
        return None
    try:
        return date.fromisoformat(match.group(1))
    except ValueError:
        return None


def prune_old_logs(
    logs_dir: Path,
    retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    today: date | None = None,
) -> int:
    """Delete daily log files older than ``retention_days``.

    Only ``YYYY-MM-DD.jsonl`` files are considered; their age comes from the
    date in the name.

    Returns:
        Number of files deleted.
    """
    if not logs_dir.is_dir():
        return 0

    cutoff = (today or datetime.now(UTC).date()) - timedelta(days=retention_days)
    deleted = 0
    for entry in logs_dir.iterdir():
        file_date = _log_file_date(entry)
        if file_date is None or file_date >= cutoff:
            continue
        try:
            entry.unlink()
            deleted += 1
        except OSError:
            pass  # Another process may have removed it
    return deleted


def _component(logger_name: str) -> str:
    parts = logger_name.split(".")
    if len(parts) >= 2 and parts[0] == "satwatch":
        return parts[1]
    return parts[0]


def _extra_fields(record: logging.LogRecord) -> dict[str, object]:
    # Structured keys are dotted, so they never collide with LogRecord's own
    # attributes.
    return {key: value for key, value in record.__dict__.items() if "." in key}


def _jsonl_entry(record: logging.LogRecord, formatter: logging.Formatter) -> dict:
    entry: dict[str, object] = {
        "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
        "level": record.levelname,
        "component": _component(record.name),
        "logger": record.name,
        "message": _redactor.redact(record.getMessage()),
    }
    if record.exc_info:
        entry["exception"] = _redactor.redact(
            formatter.formatException(record.exc_info)
        )
    if extra := _extra_fields(record):
        # Redact the serialized form so secrets nested in values are caught.
        entry["extra"] = json.loads(_redactor.redact(json.dumps(extra, default=str)))
    return entry


class JSONLHandler(logging.Handler):
    """Writes one JSON object per record to ``<logs_dir>/YYYY-MM-DD.jsonl``.

    A new file is opened when the UTC date changes; files past the retention
    period are pruned at that point.
    """

    def __init__(
        self,
        logs_dir: Path,
        retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    ):
        super().__init__()
        self._logs_dir = logs_dir
        self._logs_dir.mkdir(parents=True, exist_ok=True)
        self._retention_days = retention_days
        self._current_date: date | None = None
        self._file: TextIO | None = None

    def _log_file(self) -> TextIO:
        today = datetime.now(UTC).date()
        if self._file is None or self._current_date != today:
            if self._file is not None:
                self._file.close()
            self._current_date = today
            self._file = (self._logs_dir / f"{today.isoformat()}.jsonl").open(
                "a", encoding="utf-8"
            )
            prune_old_logs(self._logs_dir, self._retention_days, today)
        return self._file

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = _jsonl_entry(record, self.formatter or logging.Formatter())
            log_file = self._log_file()
            log_file.write(json.dumps(entry, default=str) + "\n")
            log_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
        super().close()


class ComponentFormatter(logging.Formatter):
    """Adds ``%(component)s`` and appends structured extras to the message.

    - satwatch.watches.cycle -> watches
    - aiogram.dispatcher -> aiogram
    """

    def __init__(
        self, fmt: str | None = None, datefmt: str | None = None, *, markup: bool = True
    ):
        super().__init__(fmt, datefmt)
        self._markup = markup

    def format(self, record: logging.LogRecord) -> str:
        record.component = _component(record.name)
        message = super().format(record)
        if extra := _extra_fields(record):
            details = " ".join(f"{key}={value}" for key, value in extra.items())
            if self._markup:
                details = f"[dim]{details}[/dim]"
            message = f"{message} {details}"
        return _redactor.redact(message)


def _level_from_env() -> str:
    level = os.environ.get("SATWATCH_LOG_LEVEL", "INFO").upper()
    return level if level in ("DEBUG", "INFO", "WARNING", "ERROR") else "INFO"


def configure_logging(
    level: str | None = None,
    use_rich: bool = False,
    log_to_file: bool = False,
) -> None:
    """Configure logging for satwatch.

    Args:
        level: DEBUG, INFO, WARNING or ERROR. Defaults to SATWATCH_LOG_LEVEL,
            then INFO.
        use_rich: Rich console output, used by ``satwatch serve``.
        log_to_file: Also write JSONL files under ``$SATWATCH_HOME/logs``.
    """
    from satwatch.config.paths import get_logs_path

    log_level = getattr(logging, level or _level_from_env())

    handlers: list[logging.Handler] = []
    if use_rich:
        from rich.logging import RichHandler

        console_handler: logging.Handler = RichHandler(
            show_path=False,
            markup=True,
        )
        console_handler.setFormatter(ComponentFormatter("%(component)s | %(message)s"))
    else:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            ComponentFormatter(
                "%(asctime)s | %(levelname)-8s | %(component)s | %(message)s",
                datefmt="%H:%M:%S",
                markup=False,
            )
        )
    handlers.append(console_handler)

    if log_to_file:
        file_handler = JSONLHandler(get_logs_path())
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    for name, ceiling in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(max(ceiling, log_level))

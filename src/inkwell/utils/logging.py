"""Log file and level setup for hosts embedding an editing session.

Every line written through :func:`setup_logging` carries the session id, so
a log file can be lined up with the telemetry file of the same session.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

__all__ = [
    "LOG_FORMAT",
    "LoggingConfig",
    "SessionContextFilter",
    "get_log_path",
    "setup_logging",
    "setup_logging_from_settings",
]

LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | session=%(session_id)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_DEFAULT_LOG_DIR = Path.home() / ".inkwell" / "logs"
_LOG_FILE_NAME = "inkwell.log"
_THIRD_PARTY_LOGGERS: tuple[str, ...] = ("asyncio", "PySide6")
# One record per notification, mutation part or pointer move.
_HOT_PATH_LOGGERS: tuple[str, ...] = (
    "inkwell.editor.events",
    "inkwell.editor.state_control",
    "inkwell.editor.mutations",
    "inkwell.editor.drag_selection",
)
_LOG_PATH: Path | None = None


class SessionContextFilter(logging.Filter):
    """Stamp records with the id of the session that owns the log file."""

    def __init__(self, session_id: str = "-") -> None:
        super().__init__()
        self.session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session_id"):
            record.session_id = self.session_id
        return True


@dataclass(slots=True, frozen=True)
class LoggingConfig:
    """Where and how verbosely a session logs."""

    level: int = logging.INFO
    log_dir: Path | str | None = None
    console: bool = True
    max_bytes: int = 1_000_000
    backup_count: int = 3
    session_id: str = "-"

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> LoggingConfig:
        """DEBUG when ``settings.debug_logging`` is set, INFO otherwise."""

        level = logging.DEBUG if getattr(settings, "debug_logging", False) else logging.INFO
        return cls(level=level, **overrides)

    @property
    def log_path(self) -> Path:
        env_override = os.environ.get("INKWELL_LOG_DIR")
        return Path(self.log_dir or env_override or _DEFAULT_LOG_DIR).expanduser() / _LOG_FILE_NAME


def setup_logging(config: LoggingConfig | None = None, *, force: bool = False) -> Path:
    """Install the rotating session log (and console output) on the root logger.

    A second call is a no-op returning the active log path unless ``force``
    is set.
    """

    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    config = config or LoggingConfig()
    log_path = config.log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=config.max_bytes, backupCount=config.backup_count, encoding="utf-8"
        )
    ]
    if config.console:
        handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=_DATE_FORMAT)
    context = SessionContextFilter(config.session_id)
    for handler in handlers:
        handler.setLevel(config.level)
        handler.setFormatter(formatter)
        handler.addFilter(context)

    logging.basicConfig(level=config.level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _apply_logger_levels(config.level)

    _LOG_PATH = log_path
    LOGGER.debug("Session logging to %s (level=%s)", log_path, logging.getLevelName(config.level))
    return log_path


def setup_logging_from_settings(settings: Any, *, force: bool = False, **overrides: Any) -> Path:
    return setup_logging(LoggingConfig.from_settings(settings, **overrides), force=force)


def get_log_path() -> Path | None:
    """Return the active log file, if logging was set up."""

    return _LOG_PATH


def _apply_logger_levels(root_level: int) -> None:
    for name in _THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root_level))
    hot_level = logging.DEBUG if root_level <= logging.DEBUG else max(logging.INFO, root_level)
    for name in _HOT_PATH_LOGGERS:
        logging.getLogger(name).setLevel(hot_level)

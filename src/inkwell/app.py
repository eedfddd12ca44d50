"""Bootstrap helpers for hosts that embed an editing session."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Mapping, Optional

from .editor.document_model import Document
from .editor.session import EditingSession
from .services.settings import EditorSettings, SettingsStore
from .utils import logging as logging_utils
from .utils.telemetry import TelemetryClient

_LOGGER = logging.getLogger(__name__)


def configure_logging(
    settings: EditorSettings,
    *,
    session_id: str = "-",
    log_dir: Path | str | None = None,
    console: bool = True,
    force: bool = False,
) -> Path:
    """Set up session logging at the verbosity ``settings.debug_logging`` asks for."""

    log_path = logging_utils.setup_logging_from_settings(
        settings,
        force=force,
        session_id=session_id,
        log_dir=log_dir,
        console=console,
    )
    _LOGGER.debug("Logging configured (debug=%s)", settings.debug_logging)
    return log_path


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> EditorSettings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return EditorSettings()


def open_session(
    text: str = "",
    *,
    settings_path: Optional[Path] = None,
    overrides: Mapping[str, Any] | None = None,
    log_dir: Path | str | None = None,
    console: bool = True,
    force_logging: bool = False,
    **session_kwargs: Any,
) -> EditingSession:
    """Load settings, set up logging and telemetry under one session id, and open a session on ``text``."""

    settings = load_settings(settings_path, overrides=overrides)
    session_id = uuid.uuid4().hex
    configure_logging(settings, session_id=session_id, log_dir=log_dir, console=console, force=force_logging)
    telemetry = session_kwargs.pop("telemetry", None) or TelemetryClient.from_settings(settings, session_id=session_id)
    session = EditingSession(Document.from_text(text), settings=settings, telemetry=telemetry, **session_kwargs)
    _LOGGER.info("Opened editing session (%d paragraph(s))", len(session.document))
    return session


__all__ = ["configure_logging", "load_settings", "open_session"]

"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

__all__ = [
    "EditorSettings",
    "SettingsStore",
    "default_settings_path",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".inkwell"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "INKWELL_STRICT_INVARIANTS": "strict_invariants",
    "INKWELL_DEBUG_LOGGING": "debug_logging",
    "INKWELL_TELEMETRY": "telemetry_opt_in",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "INKWELL_CLICK_WINDOW_MS": "click_window_ms",
    "INKWELL_DRAG_THRESHOLD_PX": "drag_threshold_px",
    "INKWELL_MAX_UNDO_ENTRIES": "max_undo_entries",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class EditorSettings:
    """User-configurable editing settings persisted between sessions."""

    click_window_ms: int = 400
    drag_threshold_px: int = 5
    max_undo_entries: int = 500
    strict_invariants: bool = True
    telemetry_opt_in: bool = False
    debug_logging: bool = False


def default_settings_path() -> Path:
    return _DEFAULT_SETTINGS_PATH


class SettingsStore:
    """Persistence adapter for :class:`EditorSettings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> EditorSettings:
        """Load settings from disk, applying explicit and environment overrides when present."""

        payload = self._read_payload()
        settings = EditorSettings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = EditorSettings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = EditorSettings()
            LOGGER.debug("Settings loaded from %s: %s", self._path, sorted(data))

        if payload and payload.get("version") != _SETTINGS_VERSION:
            try:
                self.save(settings)
            except OSError as exc:  # pragma: no cover - depends on filesystem
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")

        return self._apply_env_overrides(settings)

    def save(self, settings: EditorSettings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = self._serialize(settings)
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _serialize(self, settings: EditorSettings) -> Dict[str, Any]:
        data = asdict(settings)
        data["version"] = _SETTINGS_VERSION
        return data

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not hold a JSON object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: EditorSettings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> EditorSettings:
        allowed = {field.name for field in fields(EditorSettings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: EditorSettings) -> EditorSettings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid integer",
                    env_name,
                    value,
                )
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(EditorSettings)}
    result: Dict[str, Any] = {}
    for key, value in payload.items():
        if key not in allowed:
            continue
        result[key] = value
    return result

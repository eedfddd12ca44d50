"""Service layer helpers (settings persistence)."""

from .settings import EditorSettings, SettingsStore

__all__ = [
    "EditorSettings",
    "SettingsStore",
]

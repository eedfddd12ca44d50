"""Editing session control: document model, gestures, history and commands."""

from importlib import import_module
from typing import Any

from . import commands, document_model, drag_selection, session, state_control, undo
from .session import EditingSession

__all__ = [
    "EditingSession",
    "commands",
    "document_model",
    "drag_selection",
    "session",
    "state_control",
    "undo",
]


def __getattr__(name: str) -> Any:
    if name == "qt_adapter":
        module = import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

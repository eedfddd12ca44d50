"""Opt-in usage telemetry for editing sessions.

A session records a small, fixed set of events: each undo and redo with the
stack depths after the step, every invariant violation tolerated in lenient
mode, and a closing summary counting the others. Records are buffered and
appended to a JSONL file, one object per line.
"""

from __future__ import annotations

import json
import os
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

__all__ = ["SessionEvent", "TelemetryClient", "TelemetryRecord", "telemetry_enabled"]

_DEFAULT_TELEMETRY_DIR = Path.home() / ".inkwell" / "telemetry"
_TELEMETRY_FILE_NAME = "telemetry.jsonl"
_TRUE_VALUES = {"1", "true", "yes", "on"}


class SessionEvent(str, Enum):
    UNDO = "undo"
    REDO = "redo"
    INVARIANT_VIOLATION = "invariant_violation"
    SESSION_CLOSED = "session_closed"


_HISTORY_EVENTS = (SessionEvent.UNDO, SessionEvent.REDO)
_COUNTED_EVENTS = (SessionEvent.UNDO, SessionEvent.REDO, SessionEvent.INVARIANT_VIOLATION)


@dataclass(slots=True, frozen=True)
class TelemetryRecord:
    event: SessionEvent
    data: Mapping[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self, session_id: str) -> str:
        payload = {
            "session_id": session_id,
            "event": self.event.value,
            "at": self.at.isoformat(),
            "data": dict(self.data),
        }
        return json.dumps(payload, ensure_ascii=False, sort_keys=True)


@dataclass(slots=True)
class TelemetryClient:
    """Buffers session events and appends them to ``telemetry.jsonl`` when enabled.

    A disabled client accepts every call and records nothing.
    """

    enabled: bool = False
    storage_dir: Path | str | None = None
    max_buffer: int = 32
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    _buffer: list[TelemetryRecord] = field(default_factory=list, init=False, repr=False)
    _counts: Counter = field(default_factory=Counter, init=False, repr=False)

    @classmethod
    def from_settings(cls, settings: Any | None = None, **kwargs: Any) -> TelemetryClient:
        return cls(enabled=telemetry_enabled(settings), **kwargs)

    @property
    def log_path(self) -> Path:
        env_override = os.environ.get("INKWELL_TELEMETRY_DIR")
        return Path(self.storage_dir or env_override or _DEFAULT_TELEMETRY_DIR).expanduser() / _TELEMETRY_FILE_NAME

    @property
    def counts(self) -> dict[str, int]:
        """Recorded events per name since the client was created."""

        return {event.value: self._counts[event] for event in _COUNTED_EVENTS if self._counts[event]}

    # ------------------------------------------------------------------
    # Session events
    # ------------------------------------------------------------------
    def record_history_step(self, event: SessionEvent, *, undo_depth: int, redo_depth: int) -> None:
        """Record an undo or redo with the depth of both stacks after the step."""

        if event not in _HISTORY_EVENTS:
            raise ValueError(f"{event!r} is not a history step")
        self._record(event, {"undo_depth": int(undo_depth), "redo_depth": int(redo_depth)})

    def record_invariant_violation(self, code: str, message: str) -> None:
        self._record(SessionEvent.INVARIANT_VIOLATION, {"code": code, "message": message})

    def record_session_closed(self) -> None:
        """Record the per-event totals of the session that is closing."""

        self._record(SessionEvent.SESSION_CLOSED, {event.value: self._counts[event] for event in _COUNTED_EVENTS})

    # ------------------------------------------------------------------
    # Buffer
    # ------------------------------------------------------------------
    def pending_events(self) -> int:
        return len(self._buffer)

    def flush(self) -> Path | None:
        """Append buffered records to the log file and clear the buffer."""

        if not self.enabled or not self._buffer:
            return None
        log_path = self.log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with log_path.open("a", encoding="utf-8") as handle:
            for record in self._buffer:
                handle.write(record.to_json(self.session_id))
                handle.write("\n")
        self._buffer.clear()
        return log_path

    def _record(self, event: SessionEvent, data: Mapping[str, Any]) -> None:
        if not self.enabled:
            return
        self._counts[event] += 1
        self._buffer.append(TelemetryRecord(event, data))
        if len(self._buffer) >= self.max_buffer:
            self.flush()


def telemetry_enabled(settings: Any | None = None) -> bool:
    """``INKWELL_TELEMETRY`` wins over ``settings.telemetry_opt_in``."""

    env_value = os.environ.get("INKWELL_TELEMETRY")
    if env_value is not None:
        return env_value.strip().lower() in _TRUE_VALUES
    if settings is None:
        return False
    return bool(getattr(settings, "telemetry_opt_in", False))

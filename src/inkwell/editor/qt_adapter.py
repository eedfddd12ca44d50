"""PySide6 bindings for the gesture controller.

:class:`QtTimerScheduler` runs click-window timers on the Qt event loop and
:class:`QtPointerAdapter` converts ``QMouseEvent``-like objects into the
pointer events consumed by :class:`~inkwell.editor.session.EditingSession`.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from PySide6.QtCore import QEvent, QObject, Qt, QTimer

from .drag_selection import ModifierState, PointerDown, PointerMove, PointerUp
from .layout import ScreenPosition

LOGGER = logging.getLogger(__name__)


class _QtTimerHandle:
    __slots__ = ("_timer",)

    def __init__(self, timer: QTimer) -> None:
        self._timer: QTimer | None = timer

    @property
    def active(self) -> bool:
        return self._timer is not None and self._timer.isActive()

    def cancel(self) -> None:
        timer = self._timer
        if timer is None:
            return
        self._timer = None
        timer.stop()
        timer.deleteLater()


class QtTimerScheduler:
    """Scheduler backed by single-shot ``QTimer`` objects."""

    def __init__(self, parent: QObject | None = None) -> None:
        self._parent = parent
        self._pending: set[_QtTimerHandle] = set()

    def pending(self) -> int:
        return sum(1 for handle in self._pending if handle.active)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> _QtTimerHandle:
        self._pending = {handle for handle in self._pending if handle.active}
        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        handle = _QtTimerHandle(timer)

        def fire() -> None:
            self._pending.discard(handle)
            if handle._timer is None:
                return
            handle.cancel()
            callback()

        timer.timeout.connect(fire)
        timer.start(max(0, int(delay_ms)))
        self._pending.add(handle)
        return handle


class QtPointerAdapter:
    """Turns Qt mouse and key events into gesture events.

    Shift held on press means "extend". Every fresh Alt press gets its own
    separate-cursor id, so clicks made during one Alt press share an id.
    """

    def __init__(self) -> None:
        self._alt_held = False
        self._alt_press_count = 0

    def modifiers_from_qt(self, modifiers: Any) -> ModifierState:
        shift = bool(modifiers & Qt.KeyboardModifier.ShiftModifier)
        alt = bool(modifiers & Qt.KeyboardModifier.AltModifier)
        if alt and not self._alt_held:
            self._alt_press_count += 1
            LOGGER.debug("Alt press #%d", self._alt_press_count)
        self._alt_held = alt
        return ModifierState(shift=shift, alt_press_id=self._alt_press_count if alt else None)

    def key_event(self, event: Any) -> None:
        """Track Alt releases that happen between pointer events."""

        if event.key() == Qt.Key.Key_Alt and event.type() == QEvent.Type.KeyRelease:
            self._alt_held = False

    def pointer_down(self, event: Any, *, pointer_id: int = 0) -> PointerDown:
        return PointerDown(
            position=_screen_position(event),
            timestamp_ms=float(event.timestamp()),
            modifiers=self.modifiers_from_qt(event.modifiers()),
            pointer_id=pointer_id,
        )

    def pointer_move(self, event: Any, *, pointer_id: int = 0) -> PointerMove:
        return PointerMove(_screen_position(event), float(event.timestamp()), pointer_id)

    def pointer_up(self, event: Any, *, pointer_id: int = 0) -> PointerUp:
        return PointerUp(_screen_position(event), float(event.timestamp()), pointer_id)


def _screen_position(event: Any) -> ScreenPosition:
    point = event.position()
    return ScreenPosition(float(point.x()), float(point.y()))


__all__ = ["QtPointerAdapter", "QtTimerScheduler"]

"""Editing session facade.

:class:`EditingSession` owns one document, its state control, the undo
history, the drag-selection controller and the command register, and is the
surface a host view talks to. Everything below it can also be assembled by
hand; the session only wires the defaults together from
:class:`~inkwell.services.settings.EditorSettings`.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable

from ..core.invariants import configure_invariants
from ..core.ranges import Selection
from ..core.selection import make_selection_range_from_points
from ..services.settings import EditorSettings
from ..utils.telemetry import SessionEvent, TelemetryClient
from .commands import CommandRegister, StandardCommand, register_standard_commands
from .document_model import Document
from .drag_selection import DragSelectionController, ModifierState, PointerDown, PointerMove, PointerUp
from .events import HistoryChanged, Subscription
from .layout import HitTester, MonospaceLayout
from .scheduling import ManualScheduler, Scheduler
from .state_control import StateControl
from .undo import ForceChangePredicate, UndoControl

LOGGER = logging.getLogger(__name__)

SelectionListener = Callable[[Selection], None]
HistoryListener = Callable[[HistoryChanged], None]


class EditingSession:
    """High-level object orchestrating selection, gestures and history for one document."""

    def __init__(
        self,
        document: Document | None = None,
        *,
        selection: Selection | None = None,
        settings: EditorSettings | None = None,
        hit_tester: HitTester | None = None,
        scheduler: Scheduler | None = None,
        telemetry: TelemetryClient | None = None,
        capture_pointer: Callable[[int], None] | None = None,
        release_pointer: Callable[[int], None] | None = None,
    ) -> None:
        self._settings = settings or EditorSettings()
        self._telemetry = telemetry or TelemetryClient.from_settings(self._settings)
        configure_invariants(strict=self._settings.strict_invariants, telemetry=self._telemetry)

        self._document = document if document is not None else Document()
        if selection is None:
            start = self._document.start_point()
            selection = Selection((make_selection_range_from_points(self._document, start, start),))
        self._state_control = StateControl(self._document, selection)
        self._history = UndoControl(self._state_control, max_entries=self._settings.max_undo_entries)
        self._hit_tester: HitTester = hit_tester or MonospaceLayout(self._document)
        self._scheduler: Scheduler = scheduler or ManualScheduler()
        self._drag = DragSelectionController(
            self._state_control,
            self._hit_tester,
            self._scheduler,
            click_window_ms=self._settings.click_window_ms,
            drag_threshold_px=self._settings.drag_threshold_px,
            capture_pointer=capture_pointer,
            release_pointer=release_pointer,
        )
        self._commands = CommandRegister()
        register_standard_commands(self._commands, self._state_control)
        self._history.register_commands(self._commands.register)
        self._closed = False
        LOGGER.debug(
            "Editing session ready (%d paragraph(s), strict=%s)",
            len(self._document),
            self._settings.strict_invariants,
        )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    @property
    def document(self) -> Document:
        return self._document

    @property
    def selection(self) -> Selection:
        return self._state_control.selection

    @property
    def settings(self) -> EditorSettings:
        return self._settings

    @property
    def state_control(self) -> StateControl:
        return self._state_control

    @property
    def history(self) -> UndoControl:
        return self._history

    @property
    def drag_controller(self) -> DragSelectionController:
        return self._drag

    @property
    def commands(self) -> CommandRegister:
        return self._commands

    @property
    def telemetry(self) -> TelemetryClient:
        return self._telemetry

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    # ------------------------------------------------------------------
    # Pointer input
    # ------------------------------------------------------------------
    def on_pointer_down(self, event: PointerDown, modifiers: ModifierState | None = None) -> None:
        if modifiers is not None:
            event = replace(event, modifiers=modifiers)
        self._drag.pointer_down(event)

    def on_pointer_move(self, event: PointerMove) -> None:
        self._drag.pointer_move(event)

    def on_pointer_up(self, event: PointerUp) -> None:
        self._drag.pointer_up(event)

    def cancel_gesture(self) -> None:
        """Abort the active gesture and put the selection back where it started."""

        self._drag.cancel(restore_selection=True)

    def on_composition_start(self) -> None:
        """End any active gesture without restoring the selection."""

        self._drag.cancel(restore_selection=False)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def undo(self) -> None:
        self._history.undo()
        self._record_history_step(SessionEvent.UNDO)

    def redo(self) -> None:
        self._history.redo()
        self._record_history_step(SessionEvent.REDO)

    def _record_history_step(self, event: SessionEvent) -> None:
        self._telemetry.record_history_step(
            event,
            undo_depth=len(self._history.undo_entries),
            redo_depth=len(self._history.redo_entries),
        )

    def force_next_change(self, predicate: ForceChangePredicate) -> None:
        self._history.force_next_change(predicate)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def execute_command(self, command: str | StandardCommand, **data: Any) -> Any:
        return self._commands.execute(command, **data)

    def insert_text(self, text: str) -> None:
        self.execute_command(StandardCommand.INSERT_TEXT, text=text)

    def set_selection(self, selection: Selection) -> None:
        self._state_control.queue_update(lambda delta: delta.set_selection(selection))

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_selection_listener(self, listener: SelectionListener) -> Subscription:
        """Call ``listener`` with every new selection until the subscription is disposed."""

        return self._state_control.on_selection_change(lambda event: listener(event.selection))

    def add_history_listener(self, listener: HistoryListener) -> Subscription:
        return self._state_control.event_bus.subscribe(HistoryChanged, listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._drag.dispose()
        self._history.dispose()
        self._telemetry.record_session_closed()
        self._telemetry.flush()
        LOGGER.debug("Editing session closed")

    def __enter__(self) -> EditingSession:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


__all__ = ["EditingSession", "HistoryListener", "SelectionListener"]

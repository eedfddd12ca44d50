"""Grouped undo/redo history built from update notifications.

The history never inspects mutations itself. It watches the stream of
mutation parts and selection changes coming out of a
:class:`~inkwell.editor.state_control.StateControl`, classifies every
mutation by the hints of the update it belongs to, and closes the current
group whenever the kind of change switches, the user moved the selection in
between, or a caller forced a boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping

from ..core.invariants import ensure
from ..core.ranges import Selection
from .events import HistoryChanged, MutationEndEvent, MutationPartEvent, SelectionChangeEvent, Subscription
from .mutations import Mutation, MutationResult, make_batch_mutation
from .state_control import StateControl, UpdateDelta

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 500


class HistoryHint(str, Enum):
    """Hint keys an update can carry to classify its changes for the history."""

    INSERT_TEXT = "insert_text"
    REMOVE_TEXT_BACKWARDS = "remove_text_backwards"
    REMOVE_TEXT_FORWARDS = "remove_text_forwards"
    COMPOSITION_UPDATE = "composition_update"
    IGNORE_RECURSIVE_UPDATE = "ignore_recursive_update"
    UNIQUE_GROUPED_UPDATE = "unique_grouped_update"
    SELECTION_BEFORE = "selection_before"
    SELECTION_AFTER = "selection_after"


class ChangeType(str, Enum):
    SELECTION_AFTER_CHANGE = "selection_after_change"
    INSERT_TEXT = "insert_text"
    REMOVE_TEXT_BACKWARDS = "remove_text_backwards"
    REMOVE_TEXT_FORWARDS = "remove_text_forwards"
    COMPOSITION_UPDATE = "composition_update"
    OTHER = "other"


_HINTED_CHANGE_TYPES: tuple[tuple[HistoryHint, ChangeType], ...] = (
    (HistoryHint.INSERT_TEXT, ChangeType.INSERT_TEXT),
    (HistoryHint.REMOVE_TEXT_BACKWARDS, ChangeType.REMOVE_TEXT_BACKWARDS),
    (HistoryHint.REMOVE_TEXT_FORWARDS, ChangeType.REMOVE_TEXT_FORWARDS),
    (HistoryHint.COMPOSITION_UPDATE, ChangeType.COMPOSITION_UPDATE),
)
_HISTORY_KEYS = frozenset(hint.value for hint in HistoryHint)

ForceChangePredicate = Callable[[str], bool]


def has_history_hints(hints: Mapping[str, Any] | None) -> bool:
    """Return ``True`` when ``hints`` carries any history key."""

    return bool(hints) and any(key in _HISTORY_KEYS for key in hints)


def classify_change(hints: Mapping[str, Any] | None) -> str:
    """Return the change type of a mutation made under ``hints``."""

    hints = hints or {}
    for hint, change_type in _HINTED_CHANGE_TYPES:
        if hints.get(hint.value):
            return change_type.value
    unique = hints.get(HistoryHint.UNIQUE_GROUPED_UPDATE.value)
    if isinstance(unique, str):
        return unique
    return ChangeType.OTHER.value


@dataclass(slots=True, frozen=True)
class MutationRecord:
    mutation: Mutation
    result: MutationResult


@dataclass(slots=True, frozen=True)
class UndoEntry:
    """One undoable step: every mutation of a group plus selection snapshots."""

    records: tuple[MutationRecord, ...]
    selection_before: Selection
    selection_after: Selection

    def reverse_mutation(self) -> Mutation:
        return make_batch_mutation([record.result.reverse_mutation for record in reversed(self.records)])

    def forward_mutation(self) -> Mutation:
        return make_batch_mutation([record.mutation for record in self.records])


class UndoControl:
    """Undo/redo stacks fed by a :class:`StateControl`'s notifications."""

    def __init__(self, state_control: StateControl, *, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._state_control = state_control
        self._max_entries = max(1, int(max_entries))
        self._undo_stack: list[UndoEntry] = []
        self._redo_stack: list[UndoEntry] = []
        self._buffer: list[MutationRecord] = []
        self._last_change_type: str | None = None
        self._selection_before: Selection | None = None
        self._selection_after: Selection | None = None
        self._force_change: ForceChangePredicate | None = None
        self._pending_end_actions: list[Callable[[], None]] = []
        self._subscriptions: list[Subscription] = [
            state_control.on_selection_change(self._on_selection_change),
            state_control.on_mutation_part(self._on_mutation_part),
            state_control.on_mutation_end(self._on_mutation_end),
        ]

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack or self._buffer)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack) and not self._buffer

    @property
    def undo_entries(self) -> tuple[UndoEntry, ...]:
        return tuple(self._undo_stack)

    @property
    def redo_entries(self) -> tuple[UndoEntry, ...]:
        return tuple(self._redo_stack)

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._buffer)

    @property
    def last_change_type(self) -> str | None:
        return self._last_change_type

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def _on_selection_change(self, event: SelectionChangeEvent) -> None:
        if not self._buffer or has_history_hints(event.hints):
            return
        self._last_change_type = ChangeType.SELECTION_AFTER_CHANGE.value

    def _on_mutation_part(self, event: MutationPartEvent) -> None:
        hints = event.hints
        if hints.get(HistoryHint.IGNORE_RECURSIVE_UPDATE.value) or not event.result.did_change:
            return
        if self._redo_stack:
            self._redo_stack.clear()
            self._publish_history()
        change_type = classify_change(hints)
        forced = self._force_change is not None and self._force_change(change_type)
        boundary = bool(self._buffer) and (
            forced
            or self._last_change_type == ChangeType.OTHER.value
            or (self._last_change_type is not None and change_type != self._last_change_type)
        )
        if event.is_first_part:
            if boundary:
                LOGGER.debug("History boundary before %s (previous %s)", change_type, self._last_change_type)
                self._flush()
            self._force_change = None
            live_selection = self._state_control.selection
            self._pending_end_actions.append(lambda: self._capture_selection_before(hints, live_selection))
        if event.is_last_part:
            self._last_change_type = change_type
            self._pending_end_actions.append(lambda: self._capture_selection_after(hints))
        self._buffer.append(MutationRecord(event.mutation, event.result))

    def _on_mutation_end(self, event: MutationEndEvent) -> None:
        del event
        actions, self._pending_end_actions = self._pending_end_actions, []
        for action in actions:
            action()

    def _capture_selection_before(self, hints: Mapping[str, Any], live_selection: Selection) -> None:
        if self._selection_before is not None:
            return
        override = hints.get(HistoryHint.SELECTION_BEFORE.value)
        self._selection_before = override if isinstance(override, Selection) else live_selection

    def _capture_selection_after(self, hints: Mapping[str, Any]) -> None:
        override = hints.get(HistoryHint.SELECTION_AFTER.value)
        self._selection_after = override if isinstance(override, Selection) else self._state_control.selection

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------
    def force_next_change(self, predicate: ForceChangePredicate) -> None:
        """Close the current group before the next mutation ``predicate`` accepts."""

        self._force_change = predicate

    def _flush(self) -> None:
        if not ensure(bool(self._buffer), "Cannot flush an empty history buffer", code="empty-history-flush"):
            return
        self._force_change = None
        entry = UndoEntry(
            records=tuple(self._buffer),
            selection_before=self._selection_before or Selection.empty(),
            selection_after=self._selection_after or Selection.empty(),
        )
        self._buffer = []
        self._last_change_type = None
        self._selection_before = None
        self._selection_after = None
        self._undo_stack.append(entry)
        overflow = len(self._undo_stack) - self._max_entries
        if overflow > 0:
            del self._undo_stack[:overflow]
            LOGGER.debug("Dropped %d oldest history entries", overflow)
        LOGGER.debug("Recorded history entry with %d mutation(s)", len(entry.records))
        self._publish_history()

    # ------------------------------------------------------------------
    # Undo / redo
    # ------------------------------------------------------------------
    def undo(self) -> None:
        if not ensure(not self._state_control.is_in_update, "Cannot undo while in a state update", code="undo-in-update"):
            return
        self._state_control.queue_update(self._undo_update, {HistoryHint.IGNORE_RECURSIVE_UPDATE: True})

    def redo(self) -> None:
        if not ensure(not self._state_control.is_in_update, "Cannot redo while in a state update", code="redo-in-update"):
            return
        self._state_control.queue_update(self._redo_update, {HistoryHint.IGNORE_RECURSIVE_UPDATE: True})

    def _undo_update(self, delta: UpdateDelta) -> None:
        if self._buffer:
            self._flush()
        elif not self._undo_stack:
            return
        entry = self._undo_stack.pop()
        self._redo_stack.append(entry)
        LOGGER.debug("Undoing entry with %d mutation(s)", len(entry.records))
        delta.apply_mutation(entry.reverse_mutation())
        if not entry.selection_before.is_empty:
            delta.set_selection(entry.selection_before)
        self._publish_history()

    def _redo_update(self, delta: UpdateDelta) -> None:
        if self._buffer:
            ensure(
                not self._redo_stack,
                "Pending history changes with a non-empty redo stack",
                code="redo-with-pending-changes",
            )
            return
        if not self._redo_stack:
            return
        entry = self._redo_stack.pop()
        self._undo_stack.append(entry)
        LOGGER.debug("Redoing entry with %d mutation(s)", len(entry.records))
        delta.apply_mutation(entry.forward_mutation())
        if not entry.selection_after.is_empty:
            delta.set_selection(entry.selection_after)
        self._publish_history()

    def clear(self) -> None:
        self._undo_stack.clear()
        self._redo_stack.clear()
        self._buffer = []
        self._last_change_type = None
        self._selection_before = None
        self._selection_after = None
        self._force_change = None
        self._pending_end_actions = []
        self._publish_history()

    def dispose(self) -> None:
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions = []

    def register_commands(self, register: Callable[[Any, Callable[..., None]], None]) -> None:
        """Bind the standard undo and redo commands through ``register``."""

        from .commands import StandardCommand

        register(StandardCommand.UNDO, lambda **_: self.undo())
        register(StandardCommand.REDO, lambda **_: self.redo())

    def _publish_history(self) -> None:
        self._state_control.event_bus.publish(
            HistoryChanged(
                can_undo=self.can_undo,
                can_redo=self.can_redo,
                undo_depth=len(self._undo_stack),
                redo_depth=len(self._redo_stack),
            )
        )


__all__ = [
    "ChangeType",
    "DEFAULT_MAX_ENTRIES",
    "ForceChangePredicate",
    "HistoryHint",
    "MutationRecord",
    "UndoControl",
    "UndoEntry",
    "classify_change",
    "has_history_hints",
]

"""Keyboard command register and the standard editing commands.

Commands are looked up by name and executed with keyword data. The
standard set moves, extends and removes by grapheme, word, paragraph and
document, inserts text, selects everything and forwards undo/redo to the
history.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Mapping

from ..core.ranges import CompareResult, ParagraphPoint, Selection, SelectionRange
from ..core.selection import (
    anchor_selection_range,
    collapse_backwards,
    collapse_forwards,
    collapse_to_point,
    extend_selection,
    focus_selection_range,
    move_selection,
    noop_point_transform,
    select_all,
    selection_range_span,
)
from .mutations import InsertTextMutation, SplitParagraphMutation, make_remove_range_mutation
from .point_transforms import MovementGranularity, PointMovement, make_default_point_transform_fn
from .state_control import StateControl, UpdateDelta
from .undo import HistoryHint

LOGGER = logging.getLogger(__name__)

CommandHandler = Callable[..., Any]


class StandardCommand(str, Enum):
    """Names of the built-in editing commands."""

    MOVE_GRAPHEME_BACKWARDS = "standard.moveSelectionGraphemeBackwards"
    MOVE_GRAPHEME_FORWARDS = "standard.moveSelectionGraphemeForwards"
    MOVE_WORD_BACKWARDS = "standard.moveSelectionWordBackwards"
    MOVE_WORD_FORWARDS = "standard.moveSelectionWordForwards"
    MOVE_PARAGRAPH_BACKWARDS = "standard.moveSelectionParagraphBackwards"
    MOVE_PARAGRAPH_FORWARDS = "standard.moveSelectionParagraphForwards"
    MOVE_PARAGRAPH_START = "standard.moveSelectionParagraphStart"
    MOVE_PARAGRAPH_END = "standard.moveSelectionParagraphEnd"
    MOVE_DOCUMENT_START = "standard.moveSelectionStartOfDocument"
    MOVE_DOCUMENT_END = "standard.moveSelectionEndOfDocument"
    EXTEND_GRAPHEME_BACKWARDS = "standard.extendSelectionGraphemeBackwards"
    EXTEND_GRAPHEME_FORWARDS = "standard.extendSelectionGraphemeForwards"
    EXTEND_WORD_BACKWARDS = "standard.extendSelectionWordBackwards"
    EXTEND_WORD_FORWARDS = "standard.extendSelectionWordForwards"
    EXTEND_PARAGRAPH_BACKWARDS = "standard.extendSelectionParagraphBackwards"
    EXTEND_PARAGRAPH_FORWARDS = "standard.extendSelectionParagraphForwards"
    EXTEND_PARAGRAPH_START = "standard.extendSelectionParagraphStart"
    EXTEND_PARAGRAPH_END = "standard.extendSelectionParagraphEnd"
    EXTEND_DOCUMENT_START = "standard.extendSelectionStartOfDocument"
    EXTEND_DOCUMENT_END = "standard.extendSelectionEndOfDocument"
    REMOVE_GRAPHEME_BACKWARDS = "standard.removeSelectionGraphemeBackwards"
    REMOVE_GRAPHEME_FORWARDS = "standard.removeSelectionGraphemeForwards"
    REMOVE_WORD_BACKWARDS = "standard.removeSelectionWordBackwards"
    REMOVE_WORD_FORWARDS = "standard.removeSelectionWordForwards"
    REMOVE_PARAGRAPH_BACKWARDS = "standard.removeSelectionParagraphBackwards"
    REMOVE_PARAGRAPH_FORWARDS = "standard.removeSelectionParagraphForwards"
    SELECT_ALL = "standard.selectAll"
    INSERT_TEXT = "standard.insertText"
    SPLIT_PARAGRAPH = "standard.splitParagraph"
    UNDO = "standard.undo"
    REDO = "standard.redo"
    COLLAPSE_TO_ANCHOR_RANGE = "standard.collapseSelectionToSelectionRangeAnchor"
    COLLAPSE_TO_FOCUS_RANGE = "standard.collapseSelectionToSelectionRangeFocus"


class CommandError(RuntimeError):
    """Base error for command registration and dispatch."""


class DuplicateCommandError(CommandError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Command already registered: {name}")
        self.name = name


class UnknownCommandError(CommandError, KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown command: {name}")
        self.name = name


@dataclass(slots=True)
class CommandRegistration:
    name: str
    handler: CommandHandler
    enabled: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)


def _command_name(command: str | StandardCommand) -> str:
    return command.value if isinstance(command, StandardCommand) else str(command)


class CommandRegister:
    """Name → handler table for keyboard and menu commands."""

    def __init__(self) -> None:
        self._commands: dict[str, CommandRegistration] = {}

    def register(
        self,
        command: str | StandardCommand,
        handler: CommandHandler,
        *,
        enabled: bool = True,
        allow_override: bool = False,
        metadata: Mapping[str, Any] | None = None,
    ) -> CommandRegistration:
        """Register ``handler`` under ``command``.

        Raises:
            DuplicateCommandError: If the name is taken and ``allow_override`` is False.
        """

        name = _command_name(command)
        if name in self._commands and not allow_override:
            raise DuplicateCommandError(name)
        registration = CommandRegistration(name, handler, enabled, dict(metadata) if metadata else {})
        self._commands[name] = registration
        LOGGER.debug("Registered command: %s", name)
        return registration

    def unregister(self, command: str | StandardCommand) -> bool:
        name = _command_name(command)
        if name in self._commands:
            del self._commands[name]
            LOGGER.debug("Unregistered command: %s", name)
            return True
        return False

    def get(self, command: str | StandardCommand) -> CommandHandler | None:
        registration = self._commands.get(_command_name(command))
        if registration is None or not registration.enabled:
            return None
        return registration.handler

    def has(self, command: str | StandardCommand) -> bool:
        return _command_name(command) in self._commands

    def names(self) -> list[str]:
        return sorted(self._commands)

    def execute(self, command: str | StandardCommand, **data: Any) -> Any:
        handler = self.get(command)
        if handler is None:
            raise UnknownCommandError(_command_name(command))
        LOGGER.debug("Executing command %s", _command_name(command))
        return handler(**data)

    def __contains__(self, command: object) -> bool:
        return isinstance(command, str) and _command_name(command) in self._commands

    def __len__(self) -> int:
        return len(self._commands)


# ----------------------------------------------------------------------------
# Selection commands
# ----------------------------------------------------------------------------


def _never_collapse(document: Any, selection_range: SelectionRange) -> bool:
    del document, selection_range
    return False


def move_selection_by(
    state_control: StateControl,
    granularity: MovementGranularity,
    movement: PointMovement,
) -> None:
    """Collapse every selection range and move its caret one step."""

    transform = make_default_point_transform_fn(granularity, movement)
    collapse = collapse_backwards if movement.is_backwards else collapse_forwards

    def collapse_fn(document: Any, selection_range: SelectionRange) -> SelectionRange | None:
        if granularity is MovementGranularity.GRAPHEME and not selection_range.is_collapsed:
            return collapse(document, selection_range)
        return None

    def update(delta: UpdateDelta) -> None:
        delta.set_selection(move_selection(delta.document, delta.selection, collapse_fn, transform))

    state_control.queue_update(update)


def extend_selection_by(
    state_control: StateControl,
    granularity: MovementGranularity,
    movement: PointMovement,
) -> None:
    """Move the focus of every selection range one step, keeping its anchor."""

    transform = make_default_point_transform_fn(granularity, movement)

    def update(delta: UpdateDelta) -> None:
        extended = extend_selection(delta.document, delta.selection, _never_collapse, noop_point_transform, transform)
        delta.set_selection(extended)

    state_control.queue_update(update)


def select_all_command(state_control: StateControl) -> None:
    state_control.queue_update(lambda delta: delta.set_selection(select_all(delta.document)))


def collapse_to_selection_range(state_control: StateControl, *, use_focus: bool) -> None:
    """Reduce the selection to its anchor (or focus) selection range, collapsed at its focus."""

    def update(delta: UpdateDelta) -> None:
        selection = delta.selection
        picked = focus_selection_range(selection) if use_focus else anchor_selection_range(selection)
        if picked is None:
            return
        delta.set_selection(Selection((collapse_to_point(picked, picked.focus_point),)))

    state_control.queue_update(update)


# ----------------------------------------------------------------------------
# Editing commands
# ----------------------------------------------------------------------------


def _ids_in_reverse_document_order(document: Any, selection: Selection) -> list[str]:
    def compare(first: SelectionRange, second: SelectionRange) -> int:
        result = document.compare_points(selection_range_span(document, first)[0], selection_range_span(document, second)[0])
        if result is CompareResult.BEFORE:
            return -1
        if result is CompareResult.AFTER:
            return 1
        return 0

    ordered = sorted(selection, key=cmp_to_key(compare), reverse=True)
    return [item.id for item in ordered]


def _current(delta: UpdateDelta, selection_range_id: str) -> SelectionRange | None:
    return delta.selection.get(selection_range_id)


def insert_text(state_control: StateControl, text: str) -> None:
    """Replace every selection range with ``text``; line breaks split paragraphs."""

    if not text:
        return
    lines = text.split("\n")

    def update(delta: UpdateDelta) -> None:
        for selection_range_id in _ids_in_reverse_document_order(delta.document, delta.selection):
            selection_range = _current(delta, selection_range_id)
            if selection_range is None:
                continue
            start, end = selection_range_span(delta.document, selection_range)
            if start != end:
                delta.apply_mutation(make_remove_range_mutation(delta.document, start, end))
            point: ParagraphPoint = start
            for index, line in enumerate(lines):
                if index:
                    split = SplitParagraphMutation(point)
                    delta.apply_mutation(split)
                    point = ParagraphPoint(split.new_paragraph_id, 0)
                if line:
                    delta.apply_mutation(InsertTextMutation(point, line))
                    point = point.with_offset(point.offset + len(line))

    state_control.queue_update(update, {HistoryHint.INSERT_TEXT: True})


def split_paragraph(state_control: StateControl) -> None:
    insert_text(state_control, "\n")


def remove_selection_contents(
    state_control: StateControl,
    granularity: MovementGranularity,
    movement: PointMovement,
) -> None:
    """Remove every non-empty selection range, or one step next to each caret."""

    transform = make_default_point_transform_fn(granularity, movement)
    hints: dict[str, Any] = {}
    if granularity in (MovementGranularity.GRAPHEME, MovementGranularity.WORD):
        hint = HistoryHint.REMOVE_TEXT_BACKWARDS if movement.is_backwards else HistoryHint.REMOVE_TEXT_FORWARDS
        hints[hint] = True

    def update(delta: UpdateDelta) -> None:
        for selection_range_id in _ids_in_reverse_document_order(delta.document, delta.selection):
            selection_range = _current(delta, selection_range_id)
            if selection_range is None:
                continue
            document = delta.document
            if selection_range.is_collapsed:
                point = selection_range.focus_point
                target = transform(document, selection_range.intention, selection_range.focus_range, point, selection_range)
                start, end = point, target
            else:
                start, end = selection_range_span(document, selection_range)
            if start == end:
                continue
            delta.apply_mutation(make_remove_range_mutation(document, start, end))

    state_control.queue_update(update, hints)


# ----------------------------------------------------------------------------
# Standard set
# ----------------------------------------------------------------------------

_GRANULARITY_COMMANDS: tuple[tuple[str, MovementGranularity, PointMovement], ...] = (
    ("GRAPHEME_BACKWARDS", MovementGranularity.GRAPHEME, PointMovement.PREVIOUS),
    ("GRAPHEME_FORWARDS", MovementGranularity.GRAPHEME, PointMovement.NEXT),
    ("WORD_BACKWARDS", MovementGranularity.WORD, PointMovement.PREVIOUS),
    ("WORD_FORWARDS", MovementGranularity.WORD, PointMovement.NEXT),
    ("PARAGRAPH_BACKWARDS", MovementGranularity.PARAGRAPH, PointMovement.PREVIOUS),
    ("PARAGRAPH_FORWARDS", MovementGranularity.PARAGRAPH, PointMovement.NEXT),
    ("PARAGRAPH_START", MovementGranularity.PARAGRAPH, PointMovement.PREVIOUS_BOUND_BY_EDGE),
    ("PARAGRAPH_END", MovementGranularity.PARAGRAPH, PointMovement.NEXT_BOUND_BY_EDGE),
    ("DOCUMENT_START", MovementGranularity.DOCUMENT, PointMovement.PREVIOUS),
    ("DOCUMENT_END", MovementGranularity.DOCUMENT, PointMovement.NEXT),
)

_REMOVE_COMMANDS: tuple[tuple[StandardCommand, MovementGranularity, PointMovement], ...] = (
    (StandardCommand.REMOVE_GRAPHEME_BACKWARDS, MovementGranularity.GRAPHEME, PointMovement.PREVIOUS),
    (StandardCommand.REMOVE_GRAPHEME_FORWARDS, MovementGranularity.GRAPHEME, PointMovement.NEXT),
    (StandardCommand.REMOVE_WORD_BACKWARDS, MovementGranularity.WORD, PointMovement.PREVIOUS),
    (StandardCommand.REMOVE_WORD_FORWARDS, MovementGranularity.WORD, PointMovement.NEXT),
    (StandardCommand.REMOVE_PARAGRAPH_BACKWARDS, MovementGranularity.PARAGRAPH, PointMovement.PREVIOUS_BOUND_BY_EDGE),
    (StandardCommand.REMOVE_PARAGRAPH_FORWARDS, MovementGranularity.PARAGRAPH, PointMovement.NEXT_BOUND_BY_EDGE),
)


def register_standard_commands(register: CommandRegister, state_control: StateControl) -> None:
    """Register every standard command except undo and redo."""

    for suffix, granularity, movement in _GRANULARITY_COMMANDS:
        register.register(
            StandardCommand[f"MOVE_{suffix}"],
            lambda granularity=granularity, movement=movement, **_: move_selection_by(state_control, granularity, movement),
        )
        register.register(
            StandardCommand[f"EXTEND_{suffix}"],
            lambda granularity=granularity, movement=movement, **_: extend_selection_by(state_control, granularity, movement),
        )
    for command, granularity, movement in _REMOVE_COMMANDS:
        register.register(
            command,
            lambda granularity=granularity, movement=movement, **_: remove_selection_contents(state_control, granularity, movement),
        )
    register.register(StandardCommand.SELECT_ALL, lambda **_: select_all_command(state_control))
    register.register(StandardCommand.INSERT_TEXT, lambda text="", **_: insert_text(state_control, text))
    register.register(StandardCommand.SPLIT_PARAGRAPH, lambda **_: split_paragraph(state_control))
    register.register(
        StandardCommand.COLLAPSE_TO_ANCHOR_RANGE,
        lambda **_: collapse_to_selection_range(state_control, use_focus=False),
    )
    register.register(
        StandardCommand.COLLAPSE_TO_FOCUS_RANGE,
        lambda **_: collapse_to_selection_range(state_control, use_focus=True),
    )


__all__ = [
    "CommandError",
    "CommandHandler",
    "CommandRegister",
    "CommandRegistration",
    "DuplicateCommandError",
    "StandardCommand",
    "UnknownCommandError",
    "collapse_to_selection_range",
    "extend_selection_by",
    "insert_text",
    "move_selection_by",
    "register_standard_commands",
    "remove_selection_contents",
    "select_all_command",
    "split_paragraph",
]

"""Tests for the command register and the standard editing commands."""

from __future__ import annotations

import pytest

from inkwell.editor.commands import (
    CommandRegister,
    DuplicateCommandError,
    StandardCommand,
    UnknownCommandError,
)
from inkwell.editor.events import MutationPartEvent
from tests.helpers import make_session, selection_of, spans, sr, texts


def _spans(session):
    return spans(session.document, session.selection)


def _select(session, *ranges) -> None:
    session.set_selection(selection_of(*(sr(session.document, *span) for span in ranges)))


class TestCommandRegister:
    def test_register_and_execute(self) -> None:
        register = CommandRegister()
        register.register("custom.echo", lambda value=None, **_: value)

        assert register.execute("custom.echo", value=3) == 3
        assert "custom.echo" in register
        assert len(register) == 1

    def test_duplicate_registration_is_rejected(self) -> None:
        register = CommandRegister()
        register.register(StandardCommand.SELECT_ALL, lambda **_: None)

        with pytest.raises(DuplicateCommandError):
            register.register("standard.selectAll", lambda **_: None)

        register.register(StandardCommand.SELECT_ALL, lambda **_: "override", allow_override=True)
        assert register.execute(StandardCommand.SELECT_ALL) == "override"

    def test_enum_and_string_names_are_interchangeable(self) -> None:
        register = CommandRegister()
        register.register("standard.undo", lambda **_: "undo")

        assert StandardCommand.UNDO in register
        assert register.has(StandardCommand.UNDO)
        assert register.names() == ["standard.undo"]

    def test_unknown_and_disabled_commands(self) -> None:
        register = CommandRegister()
        register.register("custom.off", lambda **_: None, enabled=False)

        with pytest.raises(UnknownCommandError):
            register.execute("custom.off")
        with pytest.raises(KeyError):
            register.execute("custom.missing")
        assert register.get("custom.off") is None

    def test_unregister(self) -> None:
        register = CommandRegister()
        register.register("custom.gone", lambda **_: None, metadata={"menu": "Edit"})

        assert register.unregister("custom.gone")
        assert not register.unregister("custom.gone")
        assert "custom.gone" not in register

    def test_session_registers_every_standard_command(self) -> None:
        session = make_session("")
        assert set(session.commands.names()) == {command.value for command in StandardCommand}


class TestSelectionCommands:
    def test_move_grapheme_forwards_and_backwards(self) -> None:
        session = make_session("hello", caret=(0, 1))

        session.execute_command(StandardCommand.MOVE_GRAPHEME_FORWARDS)
        assert _spans(session) == [((0, 2), (0, 2))]

        session.execute_command(StandardCommand.MOVE_GRAPHEME_BACKWARDS)
        session.execute_command(StandardCommand.MOVE_GRAPHEME_BACKWARDS)
        assert _spans(session) == [((0, 0), (0, 0))]

    def test_move_grapheme_collapses_ranges_first(self) -> None:
        session = make_session("hello")
        _select(session, ((0, 4), (0, 1)))

        session.execute_command(StandardCommand.MOVE_GRAPHEME_FORWARDS)
        assert _spans(session) == [((0, 4), (0, 4))]

        _select(session, ((0, 4), (0, 1)))
        session.execute_command(StandardCommand.MOVE_GRAPHEME_BACKWARDS)
        assert _spans(session) == [((0, 1), (0, 1))]

    def test_move_word_and_document(self) -> None:
        session = make_session("hello world\nnext", caret=(0, 0))

        session.execute_command(StandardCommand.MOVE_WORD_FORWARDS)
        assert _spans(session) == [((0, 5), (0, 5))]

        session.execute_command(StandardCommand.MOVE_DOCUMENT_END)
        assert _spans(session) == [((1, 4), (1, 4))]

        session.execute_command(StandardCommand.MOVE_PARAGRAPH_START)
        assert _spans(session) == [((1, 0), (1, 0))]

    def test_extend_keeps_anchor(self) -> None:
        session = make_session("hello world", caret=(0, 2))

        session.execute_command(StandardCommand.EXTEND_GRAPHEME_FORWARDS)
        session.execute_command(StandardCommand.EXTEND_WORD_FORWARDS)

        assert _spans(session) == [((0, 2), (0, 5))]

        session.execute_command(StandardCommand.EXTEND_PARAGRAPH_START)
        assert _spans(session) == [((0, 2), (0, 0))]

    def test_extending_carets_into_each_other_merges_them(self) -> None:
        session = make_session("hello")
        _select(session, ((0, 1),), ((0, 3),))

        session.execute_command(StandardCommand.EXTEND_DOCUMENT_END)

        assert len(session.selection) == 1

    def test_select_all(self) -> None:
        session = make_session("ab\ncde")
        session.execute_command(StandardCommand.SELECT_ALL)
        assert _spans(session) == [((0, 0), (1, 3))]

    def test_collapse_to_anchor_and_focus_range(self) -> None:
        session = make_session("hello world")
        both = selection_of(
            sr(session.document, (0, 0), (0, 2), creation_order=1),
            sr(session.document, (0, 6), (0, 8), creation_order=2),
        )

        session.set_selection(both)
        session.execute_command(StandardCommand.COLLAPSE_TO_ANCHOR_RANGE)
        assert _spans(session) == [((0, 2), (0, 2))]

        session.set_selection(both)
        session.execute_command(StandardCommand.COLLAPSE_TO_FOCUS_RANGE)
        assert _spans(session) == [((0, 8), (0, 8))]


class TestEditingCommands:
    def test_insert_at_every_caret(self) -> None:
        session = make_session("abcd")
        _select(session, ((0, 1),), ((0, 3),))

        session.insert_text("X")

        assert texts(session.document) == ["aXbcXd"]
        assert _spans(session) == [((0, 2), (0, 2)), ((0, 5), (0, 5))]

    def test_insert_replaces_selected_text(self) -> None:
        session = make_session("hello world")
        _select(session, ((0, 0), (0, 5)))

        session.insert_text("bye")

        assert texts(session.document) == ["bye world"]
        assert _spans(session) == [((0, 3), (0, 3))]

    def test_insert_with_line_break_splits_paragraph(self) -> None:
        session = make_session("hello", caret=(0, 5))

        session.insert_text("a\nb")

        assert texts(session.document) == ["helloa", "b"]
        assert _spans(session) == [((1, 1), (1, 1))]

    def test_split_paragraph_command(self) -> None:
        session = make_session("hello", caret=(0, 2))
        session.execute_command(StandardCommand.SPLIT_PARAGRAPH)
        assert texts(session.document) == ["he", "llo"]

    def test_empty_insert_does_nothing(self) -> None:
        session = make_session("abc")
        session.insert_text("")
        assert not session.can_undo

    def test_backspace_at_paragraph_start_joins(self) -> None:
        session = make_session("ab\ncd", caret=(1, 0))

        session.execute_command(StandardCommand.REMOVE_GRAPHEME_BACKWARDS)

        assert texts(session.document) == ["abcd"]
        assert _spans(session) == [((0, 2), (0, 2))]

    @pytest.mark.parametrize("emoji", ["\U0001F1EB\U0001F1F7", "\U0001F44D\U0001F3FD"])
    def test_backspace_removes_a_whole_emoji_cluster(self, emoji: str) -> None:
        session = make_session("a" + emoji, caret=(0, 3))

        session.execute_command(StandardCommand.REMOVE_GRAPHEME_BACKWARDS)

        assert texts(session.document) == ["a"]
        assert _spans(session) == [((0, 1), (0, 1))]

    def test_forward_delete_removes_a_whole_flag(self) -> None:
        session = make_session("\U0001F1EB\U0001F1F7b", caret=(0, 0))
        session.execute_command(StandardCommand.REMOVE_GRAPHEME_FORWARDS)
        assert texts(session.document) == ["b"]

    def test_remove_word_backwards(self) -> None:
        session = make_session("hello world", caret=(0, 11))
        session.execute_command(StandardCommand.REMOVE_WORD_BACKWARDS)
        assert texts(session.document) == ["hello "]

    def test_remove_to_paragraph_start(self) -> None:
        session = make_session("hello world", caret=(0, 5))
        session.execute_command(StandardCommand.REMOVE_PARAGRAPH_BACKWARDS)
        assert texts(session.document) == [" world"]

    def test_forward_delete_removes_selection_only(self) -> None:
        session = make_session("hello world")
        _select(session, ((0, 0), (0, 6)))

        session.execute_command(StandardCommand.REMOVE_GRAPHEME_FORWARDS)

        assert texts(session.document) == ["world"]

    def test_delete_at_document_end_is_a_no_op(self) -> None:
        session = make_session("abc", caret=(0, 3))
        session.execute_command(StandardCommand.REMOVE_GRAPHEME_FORWARDS)
        assert texts(session.document) == ["abc"]
        assert not session.can_undo

    @pytest.mark.parametrize(
        ("command", "expected"),
        [
            (StandardCommand.REMOVE_GRAPHEME_BACKWARDS, {"remove_text_backwards": True}),
            (StandardCommand.REMOVE_WORD_FORWARDS, {"remove_text_forwards": True}),
            (StandardCommand.REMOVE_PARAGRAPH_FORWARDS, {}),
        ],
    )
    def test_removal_hints(self, command: StandardCommand, expected: dict) -> None:
        session = make_session("one two", caret=(0, 3))
        hints: list[dict] = []
        session.state_control.on_mutation_part(lambda event: hints.append(dict(event.hints)))

        session.execute_command(command)

        assert hints and all(item == expected for item in hints)

    def test_insert_is_hinted(self) -> None:
        session = make_session("")
        parts: list[MutationPartEvent] = []
        session.state_control.on_mutation_part(parts.append)

        session.insert_text("x")

        assert dict(parts[0].hints) == {"insert_text": True}

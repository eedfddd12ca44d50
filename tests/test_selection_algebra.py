"""Tests for :mod:`inkwell.core.selection` and the range value types."""

from __future__ import annotations

import pytest

from inkwell.core.invariants import InvariantViolation
from inkwell.core.ranges import Range, RangeDirection, Selection, SelectionRange, SelectionRangeData
from inkwell.core.selection import (
    add_selection_range,
    anchor_selection_range,
    collapse_backwards,
    collapse_forwards,
    collapse_to_point,
    covers_same_content,
    extend_selection,
    focus_selection_range,
    get_range_direction,
    is_selection_range_anchor_after_focus,
    move_selection,
    noop_point_transform,
    remove_selection_range,
    resolve_overlaps,
    select_all,
    transform_selection_ranges,
)
from inkwell.editor.point_transforms import MovementGranularity, PointMovement, make_default_point_transform_fn
from tests.helpers import make_document, pt, selection_of, spans, sr


@pytest.fixture
def document():
    return make_document("hello world\nsecond line")


def _never(document, selection_range) -> bool:
    return False


class TestValueTypes:
    def test_selection_range_requires_ranges(self) -> None:
        with pytest.raises(InvariantViolation) as excinfo:
            SelectionRange(ranges=(), anchor_range_id="a", focus_range_id="a")
        assert excinfo.value.code == "empty-selection-range"

    def test_selection_range_anchor_must_exist(self) -> None:
        range_ = Range("root", pt(0, 0), pt(0, 1), id="r1")
        with pytest.raises(InvariantViolation):
            SelectionRange(ranges=(range_,), anchor_range_id="missing", focus_range_id="r1")

    def test_invariant_violation_is_assertion_error(self) -> None:
        assert issubclass(InvariantViolation, AssertionError)

    def test_selection_rejects_duplicate_ids(self, document) -> None:
        first = sr(document, (0, 0), id="same")
        second = sr(document, (0, 4), id="same")
        with pytest.raises(InvariantViolation):
            Selection((first, second))

    def test_data_merge_keeps_own_fields(self) -> None:
        own = SelectionRangeData(line_wrap_to_next_line=True)
        other = SelectionRangeData(line_wrap_to_next_line=False, separate_selection_id=3)

        merged = own.merged_with(other)

        assert merged.line_wrap_to_next_line is True
        assert merged.separate_selection_id == 3

    def test_data_without_layout_flags(self) -> None:
        data = SelectionRangeData(line_wrap_to_next_line=True, vertical_column_offset=12.0, separate_selection_id=1)
        stripped = data.without_layout_flags()
        assert stripped == SelectionRangeData(separate_selection_id=1)
        assert SelectionRangeData().is_empty


class TestQueries:
    def test_make_selection_range_from_points(self, document) -> None:
        selection_range = sr(document, (0, 1), (1, 2))

        assert len(selection_range.ranges) == 1
        assert selection_range.anchor_range_id == selection_range.focus_range_id
        assert selection_range.anchor_point == pt(0, 1)
        assert selection_range.focus_point == pt(1, 2)
        assert selection_range.content_id == document.content_id

    def test_creation_order_increases(self, document) -> None:
        first = sr(document, (0, 0))
        second = sr(document, (0, 0))
        assert second.creation_order > first.creation_order

    def test_direction(self, document) -> None:
        forwards = sr(document, (0, 1), (0, 4))
        backwards = sr(document, (1, 0), (0, 4))
        caret = sr(document, (0, 2))

        assert get_range_direction(document, forwards.anchor_range) is RangeDirection.FORWARDS
        assert get_range_direction(document, backwards.anchor_range) is RangeDirection.BACKWARDS
        assert get_range_direction(document, caret.anchor_range) is RangeDirection.NEUTRAL
        assert is_selection_range_anchor_after_focus(document, backwards)
        assert not is_selection_range_anchor_after_focus(document, caret)

    def test_anchor_and_focus_selection_ranges(self, document) -> None:
        first = sr(document, (0, 0), id="first")
        newest = sr(document, (1, 0), id="newest")
        middle = sr(document, (0, 6), id="middle", creation_order=first.creation_order)
        selection = selection_of(first, newest, middle)

        assert anchor_selection_range(selection).id == "first"
        assert focus_selection_range(selection).id == "newest"
        assert focus_selection_range(Selection.empty()) is None

    def test_covers_same_content_ignores_direction(self, document) -> None:
        forwards = sr(document, (0, 0), (0, 5))
        backwards = sr(document, (0, 5), (0, 0))
        assert covers_same_content(document, forwards, backwards)
        assert not covers_same_content(document, forwards, sr(document, (0, 0), (0, 4)))


class TestCollapse:
    def test_collapse_forwards_picks_later_point(self, document) -> None:
        backwards = sr(document, (0, 8), (0, 2), id="x")

        collapsed = collapse_forwards(document, backwards)

        assert collapsed.is_collapsed
        assert collapsed.anchor_point == pt(0, 8)
        assert collapsed.id == "x"
        assert collapsed.creation_order == backwards.creation_order

    def test_collapse_backwards_picks_earlier_point(self, document) -> None:
        forwards = sr(document, (0, 2), (1, 3))
        assert collapse_backwards(document, forwards).anchor_point == pt(0, 2)

    def test_collapse_forwards_is_idempotent(self, document) -> None:
        selection_range = sr(document, (0, 1), (0, 6))
        once = collapse_forwards(document, selection_range)
        assert collapse_forwards(document, once) == once
        assert collapse_forwards(document, once) is once

    def test_collapse_to_point_keeps_data(self, document) -> None:
        data = SelectionRangeData(separate_selection_id=7)
        selection_range = sr(document, (0, 1), (0, 6), data=data)
        collapsed = collapse_to_point(selection_range, pt(0, 3))
        assert collapsed.data == data
        assert collapsed.anchor_point == collapsed.focus_point == pt(0, 3)


class TestResolveOverlaps:
    def test_disjoint_selection_is_unchanged(self, document) -> None:
        selection = selection_of(sr(document, (0, 6), (0, 8)), sr(document, (0, 0), (0, 2)))

        result = resolve_overlaps(document, selection.selection_ranges)

        assert result.selection == selection
        assert result.absorbed == {}

    def test_idempotent_on_normalized_selection(self, document) -> None:
        raw = [
            sr(document, (0, 0), (0, 5), id="a"),
            sr(document, (0, 3), (0, 8), id="b"),
            sr(document, (1, 0), (1, 2), id="c"),
        ]
        once = resolve_overlaps(document, raw).selection
        twice = resolve_overlaps(document, once.selection_ranges).selection
        assert twice == once

    def test_overlapping_ranges_merge_into_first(self, document) -> None:
        raw = [sr(document, (0, 0), (0, 5), id="a"), sr(document, (0, 3), (0, 8), id="b")]

        result = resolve_overlaps(document, raw)

        assert result.selection.ids() == ("a",)
        assert spans(document, result.selection) == [((0, 0), (0, 8))]
        assert result.absorbed == {"b": "a"}

    def test_priority_survivor_keeps_its_direction(self, document) -> None:
        raw = [sr(document, (0, 0), (0, 5), id="a"), sr(document, (0, 8), (0, 3), id="b")]

        result = resolve_overlaps(document, raw, "b")

        assert result.selection.ids() == ("b",)
        assert spans(document, result.selection) == [((0, 8), (0, 0))]
        assert result.absorbed == {"a": "b"}

    def test_touching_ranges_do_not_merge(self, document) -> None:
        raw = [sr(document, (0, 0), (0, 3)), sr(document, (0, 3), (0, 5))]
        assert len(resolve_overlaps(document, raw).selection) == 2

    def test_identical_carets_merge(self, document) -> None:
        raw = [sr(document, (0, 3), id="a"), sr(document, (0, 3), id="b")]
        assert resolve_overlaps(document, raw).selection.ids() == ("a",)

    def test_caret_inside_selection_is_absorbed_with_its_data(self, document) -> None:
        outer = sr(document, (0, 0), (0, 5), id="outer")
        caret = sr(document, (0, 2), id="caret", data=SelectionRangeData(separate_selection_id=1))

        result = resolve_overlaps(document, [outer, caret])

        (merged,) = result.selection
        assert merged.id == "outer"
        assert merged.ranges == outer.ranges
        assert merged.data.separate_selection_id == 1

    def test_output_follows_input_order(self, document) -> None:
        raw = [
            sr(document, (1, 0), (1, 2), id="c"),
            sr(document, (0, 0), (0, 5), id="a"),
            sr(document, (0, 3), (0, 8), id="b"),
        ]
        assert resolve_overlaps(document, raw).selection.ids() == ("c", "a")

    def test_duplicate_ids_keep_last_value(self, document) -> None:
        raw = [sr(document, (0, 0), id="a"), sr(document, (1, 0), id="b"), sr(document, (0, 4), id="a")]

        result = resolve_overlaps(document, raw).selection

        assert result.ids() == ("a", "b")
        assert result.get("a").anchor_point == pt(0, 4)

    def test_survivor_keeps_creation_order(self, document) -> None:
        first = sr(document, (0, 0), (0, 5), id="a")
        raw = [first, sr(document, (0, 3), (0, 8), id="b")]
        (merged,) = resolve_overlaps(document, raw).selection
        assert merged.creation_order == first.creation_order


class TestExtendAndMove:
    def test_extend_moves_focus_only(self, document) -> None:
        selection = selection_of(sr(document, (0, 2)))
        next_grapheme = make_default_point_transform_fn(MovementGranularity.GRAPHEME, PointMovement.NEXT)

        extended = extend_selection(document, selection, _never, noop_point_transform, next_grapheme)

        assert spans(document, extended) == [((0, 2), (0, 3))]
        assert extended.ids() == selection.ids()

    def test_extend_clears_layout_flags(self, document) -> None:
        data = SelectionRangeData(line_wrap_to_next_line=True, separate_selection_id=2)
        selection = selection_of(sr(document, (0, 2), data=data))
        next_grapheme = make_default_point_transform_fn(MovementGranularity.GRAPHEME, PointMovement.NEXT)

        (extended,) = extend_selection(document, selection, _never, noop_point_transform, next_grapheme)

        assert extended.data == SelectionRangeData(separate_selection_id=2)

    def test_extend_collapses_first_when_asked(self, document) -> None:
        selection = selection_of(sr(document, (0, 2), (0, 7)))

        collapsed = extend_selection(
            document,
            selection,
            lambda _document, _range: True,
            noop_point_transform,
            noop_point_transform,
        )

        assert spans(document, collapsed) == [((0, 2), (0, 2))]

    def test_extend_merges_ranges_that_grow_into_each_other(self, document) -> None:
        selection = selection_of(sr(document, (0, 0), id="a"), sr(document, (0, 2), id="b"))
        next_word = make_default_point_transform_fn(MovementGranularity.WORD, PointMovement.NEXT)

        extended = extend_selection(document, selection, _never, noop_point_transform, next_word)

        assert extended.ids() == ("a",)
        assert spans(document, extended) == [((0, 0), (0, 5))]

    def test_extend_keeps_point_when_transform_has_no_destination(self, document) -> None:
        selection = selection_of(sr(document, (0, 2)))

        def lost(*_args):
            raise LookupError("nowhere to go")

        assert extend_selection(document, selection, _never, noop_point_transform, lost) == selection

    def test_move_collapses_and_moves_caret(self, document) -> None:
        selection = selection_of(sr(document, (0, 2)), sr(document, (1, 0)))
        previous = make_default_point_transform_fn(MovementGranularity.GRAPHEME, PointMovement.PREVIOUS)

        moved = move_selection(document, selection, lambda _d, _r: None, previous)

        assert spans(document, moved) == [((0, 1), (0, 1)), ((0, 11), (0, 11))]

    def test_move_uses_collapse_fn_result(self, document) -> None:
        selection = selection_of(sr(document, (0, 2), (0, 7)))
        next_grapheme = make_default_point_transform_fn(MovementGranularity.GRAPHEME, PointMovement.NEXT)

        moved = move_selection(document, selection, collapse_forwards, next_grapheme)

        assert spans(document, moved) == [((0, 7), (0, 7))]


class TestWholeSelection:
    def test_select_all(self, document) -> None:
        assert spans(document, select_all(document)) == [((0, 0), (1, 11))]

    def test_add_selection_range_prefers_new_range(self, document) -> None:
        selection = selection_of(sr(document, (0, 0), (0, 5), id="old"))
        added = add_selection_range(document, selection, sr(document, (0, 3), (0, 8), id="new"))
        assert added.ids() == ("new",)
        assert spans(document, added) == [((0, 0), (0, 8))]

    def test_remove_selection_range(self, document) -> None:
        selection = selection_of(sr(document, (0, 0), id="a"), sr(document, (1, 0), id="b"))
        assert remove_selection_range(selection, "a").ids() == ("b",)
        assert remove_selection_range(selection, "zzz") is selection

    def test_transform_selection_ranges_drops_none(self, document) -> None:
        selection = selection_of(sr(document, (0, 0), id="a"), sr(document, (1, 0), id="b"))
        kept = transform_selection_ranges(document, selection, lambda item: item if item.id == "b" else None)
        assert kept.ids() == ("b",)

"""Tests for the default point transforms."""

from __future__ import annotations

import pytest

from inkwell.core.ranges import ParagraphPoint, SelectionRangeIntention
from inkwell.editor.point_transforms import (
    MovementGranularity,
    PointMovement,
    grapheme_boundaries,
    make_default_point_transform_fn,
    move_point,
    word_boundaries,
    word_segments,
)
from tests.helpers import make_document, pt, sr

G = MovementGranularity
M = PointMovement


def test_grapheme_boundaries_keep_combining_marks_attached() -> None:
    assert grapheme_boundaries("e\u0301a") == [0, 2, 3]
    assert grapheme_boundaries("") == [0]


def test_grapheme_boundaries_keep_emoji_clusters_whole() -> None:
    assert grapheme_boundaries("a\U0001F1EB\U0001F1F7") == [0, 1, 3]
    assert grapheme_boundaries("a\U0001F44D\U0001F3FD") == [0, 1, 3]
    assert grapheme_boundaries("\r\nx") == [0, 2, 3]


@pytest.mark.parametrize("text", ["a\U0001F1EB\U0001F1F7", "a\U0001F44D\U0001F3FD"])
def test_grapheme_moves_step_over_whole_emoji(text: str) -> None:
    document = make_document(text)
    assert move_point(document, pt(0, 3), G.GRAPHEME, M.PREVIOUS) == pt(0, 1)
    assert move_point(document, pt(0, 1), G.GRAPHEME, M.NEXT) == pt(0, 3)


def test_word_segments_split_words_spaces_and_punctuation() -> None:
    assert word_segments("hello, world") == [(0, 5, True), (5, 6, False), (6, 7, False), (7, 12, True)]
    assert word_boundaries("hello, world") == [0, 5, 6, 7, 12]


@pytest.mark.parametrize(
    ("granularity", "movement", "start", "expected"),
    [
        (G.GRAPHEME, M.NEXT, (0, 0), (0, 2)),
        (G.GRAPHEME, M.PREVIOUS, (0, 3), (0, 2)),
        (G.GRAPHEME, M.PREVIOUS, (1, 0), (0, 3)),
        (G.GRAPHEME, M.PREVIOUS_BOUND_BY_EDGE, (1, 0), (1, 0)),
        (G.GRAPHEME, M.NEXT, (0, 3), (1, 0)),
        (G.GRAPHEME, M.NEXT_BOUND_BY_EDGE, (0, 3), (0, 3)),
    ],
)
def test_grapheme_moves(granularity, movement, start, expected) -> None:
    document = make_document("e\u0301a\nxyz")
    assert move_point(document, pt(*start), granularity, movement) == pt(*expected)


@pytest.mark.parametrize(
    ("movement", "start", "expected"),
    [
        (M.NEXT, (0, 0), (0, 5)),
        (M.NEXT, (0, 5), (0, 12)),
        (M.NEXT, (0, 12), (1, 0)),
        (M.NEXT_BOUND_BY_EDGE, (0, 12), (0, 12)),
        (M.PREVIOUS, (0, 12), (0, 7)),
        (M.PREVIOUS, (0, 7), (0, 0)),
        (M.PREVIOUS, (1, 0), (0, 12)),
        (M.PREVIOUS_BOUND_BY_EDGE, (1, 0), (1, 0)),
    ],
)
def test_word_moves(movement, start, expected) -> None:
    document = make_document("hello, world\nnext")
    assert move_point(document, pt(*start), G.WORD, movement) == pt(*expected)


@pytest.mark.parametrize(
    ("movement", "start", "expected"),
    [
        (M.PREVIOUS_BOUND_BY_EDGE, (0, 5), (0, 5)),
        (M.PREVIOUS_BOUND_BY_EDGE, (0, 3), (0, 0)),
        (M.NEXT_BOUND_BY_EDGE, (0, 3), (0, 5)),
        (M.PREVIOUS, (0, 5), (0, 0)),
        (M.NEXT, (0, 5), (0, 6)),
        (M.NEXT, (0, 12), (0, 12)),
        (M.PREVIOUS, (0, 0), (0, 0)),
    ],
)
def test_word_boundary_moves_stay_in_paragraph(movement, start, expected) -> None:
    document = make_document("hello, world\nnext")
    assert move_point(document, pt(*start), G.WORD_BOUNDARY, movement) == pt(*expected)


@pytest.mark.parametrize(
    ("movement", "start", "expected"),
    [
        (M.PREVIOUS_BOUND_BY_EDGE, (1, 2), (1, 0)),
        (M.NEXT_BOUND_BY_EDGE, (1, 2), (1, 4)),
        (M.PREVIOUS, (1, 2), (1, 0)),
        (M.PREVIOUS, (1, 0), (0, 0)),
        (M.NEXT, (0, 1), (0, 3)),
        (M.NEXT, (0, 3), (1, 4)),
        (M.NEXT, (1, 4), (1, 4)),
    ],
)
def test_paragraph_moves(movement, start, expected) -> None:
    document = make_document("abc\nwxyz")
    assert move_point(document, pt(*start), G.PARAGRAPH, movement) == pt(*expected)


def test_document_moves() -> None:
    document = make_document("abc\nwxyz")
    assert move_point(document, pt(0, 2), G.DOCUMENT, M.PREVIOUS) == pt(0, 0)
    assert move_point(document, pt(0, 2), G.DOCUMENT, M.NEXT) == pt(1, 4)


def test_points_outside_the_document_do_not_move() -> None:
    document = make_document("abc")
    stray = ParagraphPoint("missing", 1)
    assert move_point(document, stray, G.GRAPHEME, M.NEXT) is stray


def test_transform_fn_matches_selection_algebra_signature() -> None:
    document = make_document("hello world")
    selection_range = sr(document, (0, 0))
    transform = make_default_point_transform_fn(G.WORD, M.NEXT)

    moved = transform(
        document,
        SelectionRangeIntention.TEXT,
        selection_range.focus_range,
        selection_range.focus_point,
        selection_range,
    )

    assert moved == pt(0, 5)
    assert transform.__name__ == "move_word_next"


def test_movement_direction_flags() -> None:
    assert M.PREVIOUS_BOUND_BY_EDGE.is_backwards
    assert M.PREVIOUS_BOUND_BY_EDGE.is_bound_by_edge
    assert not M.NEXT.is_backwards
    assert not M.NEXT.is_bound_by_edge

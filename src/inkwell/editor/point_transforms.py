"""Default point transforms over the reference paragraph document.

A point transform takes ``(document, intention, range, point,
selection_range)`` and returns the destination point. When there is nowhere
to go (start of the document, edge of a paragraph for bounded movements) it
returns ``point`` unchanged.
"""

from __future__ import annotations

import logging
import re
from enum import Enum, auto
from typing import Any

import grapheme

from ..core.ranges import ParagraphPoint, Range, SelectionRange, SelectionRangeIntention
from ..core.selection import PointTransformFn
from .document_model import Document

LOGGER = logging.getLogger(__name__)

_WORD_SEGMENT_RE = re.compile(r"\w+|\s+|[^\w\s]")


class MovementGranularity(Enum):
    GRAPHEME = auto()
    WORD = auto()
    WORD_BOUNDARY = auto()
    PARAGRAPH = auto()
    DOCUMENT = auto()


class PointMovement(Enum):
    PREVIOUS = auto()
    NEXT = auto()
    PREVIOUS_BOUND_BY_EDGE = auto()
    NEXT_BOUND_BY_EDGE = auto()

    @property
    def is_backwards(self) -> bool:
        return self in (PointMovement.PREVIOUS, PointMovement.PREVIOUS_BOUND_BY_EDGE)

    @property
    def is_bound_by_edge(self) -> bool:
        return self in (PointMovement.PREVIOUS_BOUND_BY_EDGE, PointMovement.NEXT_BOUND_BY_EDGE)


# ----------------------------------------------------------------------------
# Segmentation
# ----------------------------------------------------------------------------


def grapheme_boundaries(text: str) -> list[int]:
    """Offsets between user-perceived characters, always starting at 0 and ending at ``len(text)``."""

    boundaries = [0]
    for cluster in grapheme.graphemes(text):
        boundaries.append(boundaries[-1] + len(cluster))
    return boundaries


def word_segments(text: str) -> list[tuple[int, int, bool]]:
    """Split ``text`` into ``(start, end, is_word)`` runs."""

    segments = []
    for match in _WORD_SEGMENT_RE.finditer(text):
        segment = match.group()
        segments.append((match.start(), match.end(), _is_word_char(segment[0])))
    return segments


def word_boundaries(text: str) -> list[int]:
    boundaries = [0]
    boundaries.extend(end for _, end, _ in word_segments(text))
    return boundaries


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def _previous_boundary(boundaries: list[int], offset: int) -> int | None:
    for boundary in reversed(boundaries):
        if boundary < offset:
            return boundary
    return None


def _next_boundary(boundaries: list[int], offset: int) -> int | None:
    for boundary in boundaries:
        if boundary > offset:
            return boundary
    return None


# ----------------------------------------------------------------------------
# Movement per granularity
# ----------------------------------------------------------------------------


def _move_grapheme(document: Document, point: ParagraphPoint, movement: PointMovement) -> ParagraphPoint:
    text = document.paragraph(point.paragraph_id).text
    boundaries = grapheme_boundaries(text)
    if movement.is_backwards:
        target = _previous_boundary(boundaries, point.offset)
        if target is not None:
            return point.with_offset(target)
        if movement.is_bound_by_edge:
            return point
        previous = document.previous_paragraph(point.paragraph_id)
        return point if previous is None else ParagraphPoint(previous.id, len(previous.text))
    target = _next_boundary(boundaries, point.offset)
    if target is not None:
        return point.with_offset(target)
    if movement.is_bound_by_edge:
        return point
    following = document.next_paragraph(point.paragraph_id)
    return point if following is None else ParagraphPoint(following.id, 0)


def _move_word(document: Document, point: ParagraphPoint, movement: PointMovement) -> ParagraphPoint:
    text = document.paragraph(point.paragraph_id).text
    segments = word_segments(text)
    if movement.is_backwards:
        for start, end, is_word in reversed(segments):
            if is_word and start < point.offset:
                return point.with_offset(start)
        if point.offset > 0:
            return point.with_offset(0)
        if movement.is_bound_by_edge:
            return point
        previous = document.previous_paragraph(point.paragraph_id)
        return point if previous is None else ParagraphPoint(previous.id, len(previous.text))
    for start, end, is_word in segments:
        if is_word and end > point.offset:
            return point.with_offset(end)
    if point.offset < len(text):
        return point.with_offset(len(text))
    if movement.is_bound_by_edge:
        return point
    following = document.next_paragraph(point.paragraph_id)
    return point if following is None else ParagraphPoint(following.id, 0)


def _move_word_boundary(document: Document, point: ParagraphPoint, movement: PointMovement) -> ParagraphPoint:
    boundaries = word_boundaries(document.paragraph(point.paragraph_id).text)
    if movement.is_bound_by_edge and point.offset in boundaries:
        return point
    if movement.is_backwards:
        target = _previous_boundary(boundaries, point.offset)
    else:
        target = _next_boundary(boundaries, point.offset)
    return point if target is None else point.with_offset(target)


def _move_paragraph(document: Document, point: ParagraphPoint, movement: PointMovement) -> ParagraphPoint:
    paragraph = document.paragraph(point.paragraph_id)
    length = len(paragraph.text)
    if movement is PointMovement.PREVIOUS_BOUND_BY_EDGE:
        return point.with_offset(0)
    if movement is PointMovement.NEXT_BOUND_BY_EDGE:
        return point.with_offset(length)
    if movement is PointMovement.PREVIOUS:
        if point.offset > 0:
            return point.with_offset(0)
        previous = document.previous_paragraph(paragraph.id)
        return point if previous is None else ParagraphPoint(previous.id, 0)
    if point.offset < length:
        return point.with_offset(length)
    following = document.next_paragraph(paragraph.id)
    return point if following is None else ParagraphPoint(following.id, len(following.text))


def _move_document(document: Document, point: ParagraphPoint, movement: PointMovement) -> ParagraphPoint:
    del point
    return document.start_point() if movement.is_backwards else document.end_point()


_MOVERS = {
    MovementGranularity.GRAPHEME: _move_grapheme,
    MovementGranularity.WORD: _move_word,
    MovementGranularity.WORD_BOUNDARY: _move_word_boundary,
    MovementGranularity.PARAGRAPH: _move_paragraph,
    MovementGranularity.DOCUMENT: _move_document,
}


def move_point(document: Document, point: ParagraphPoint, granularity: MovementGranularity, movement: PointMovement) -> ParagraphPoint:
    """Move ``point`` once; return it unchanged when it cannot move."""

    if not document.contains_point(point):
        LOGGER.debug("Cannot move point outside the document: %r", point)
        return point
    return _MOVERS[granularity](document, point, movement)


def make_default_point_transform_fn(granularity: MovementGranularity, movement: PointMovement) -> PointTransformFn:
    """Build a point transform moving one ``granularity`` step in ``movement`` direction."""

    def transform(
        document: Document,
        intention: SelectionRangeIntention,
        range_: Range,
        point: Any,
        selection_range: SelectionRange,
    ) -> Any:
        del intention, range_, selection_range
        return move_point(document, point, granularity, movement)

    transform.__name__ = f"move_{granularity.name.lower()}_{movement.name.lower()}"
    return transform


__all__ = [
    "MovementGranularity",
    "PointMovement",
    "grapheme_boundaries",
    "make_default_point_transform_fn",
    "move_point",
    "word_boundaries",
    "word_segments",
]

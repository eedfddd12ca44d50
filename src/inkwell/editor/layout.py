"""Screen ↔ document position mapping."""

from __future__ import annotations

import math
from bisect import bisect_right
from dataclasses import dataclass
from typing import Any, Protocol

from ..core.ranges import ParagraphPoint
from .document_model import Document
from .point_transforms import grapheme_boundaries


@dataclass(slots=True, frozen=True)
class ScreenPosition:
    """Pointer location in view coordinates."""

    x: float
    y: float

    def squared_distance_to(self, other: ScreenPosition) -> float:
        delta_x = self.x - other.x
        delta_y = self.y - other.y
        return delta_x * delta_x + delta_y * delta_y


@dataclass(slots=True, frozen=True)
class HitPosition:
    """Result of resolving a screen position to a document point.

    Attributes:
        point: The resolved point.
        is_past_previous_character_half_point: ``True`` when the pointer was
            over the right half of the character before ``point``.
        is_wrapped_line_start: ``True`` when ``point`` was resolved at the
            start of a soft-wrapped line rather than the end of the line above.
    """

    point: Any
    is_past_previous_character_half_point: bool = False
    is_wrapped_line_start: bool = False


@dataclass(slots=True, frozen=True)
class CaretRect:
    position: ScreenPosition
    height: float


class HitTester(Protocol):
    """Layout service consumed by the drag controller."""

    def resolve(self, position: ScreenPosition) -> HitPosition | None:
        ...

    def point_to_screen(self, point: Any) -> CaretRect:
        ...

    def is_wrapped_line_start(self, point: Any) -> bool:
        ...


class MonospaceLayout:
    """Grid layout: one fixed-width cell per grapheme cluster.

    Paragraphs longer than ``wrap_columns`` clusters soft-wrap onto extra
    rows. Positions above the first row, below the last row or left of the
    text area do not resolve. Every resolved point sits on a cluster
    boundary.
    """

    def __init__(
        self,
        document: Document,
        *,
        char_width: float = 8.0,
        line_height: float = 16.0,
        wrap_columns: int | None = None,
    ) -> None:
        if char_width <= 0 or line_height <= 0:
            raise ValueError("char_width and line_height must be positive")
        if wrap_columns is not None and wrap_columns < 1:
            raise ValueError("wrap_columns must be at least 1")
        self._document = document
        self.char_width = float(char_width)
        self.line_height = float(line_height)
        self.wrap_columns = wrap_columns

    @property
    def document(self) -> Document:
        return self._document

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------
    def _row_starts(self, cells: int) -> list[int]:
        if self.wrap_columns is None or cells <= self.wrap_columns:
            return [0]
        return list(range(0, cells, self.wrap_columns))

    def _paragraph_rows(self, text: str) -> list[list[int]]:
        """Cell edge offsets of each visual row of one paragraph."""

        edges = grapheme_boundaries(text)
        cells = len(edges) - 1
        starts = self._row_starts(cells)
        rows = []
        for index, start in enumerate(starts):
            end = starts[index + 1] if index + 1 < len(starts) else cells
            rows.append(edges[start : end + 1])
        return rows

    def _rows(self) -> list[tuple[str, list[int]]]:
        """Return ``(paragraph_id, cell_edges)`` for every visual row."""

        return [
            (paragraph.id, edges)
            for paragraph in self._document
            for edges in self._paragraph_rows(paragraph.text)
        ]

    # ------------------------------------------------------------------
    # HitTester
    # ------------------------------------------------------------------
    def resolve(self, position: ScreenPosition) -> HitPosition | None:
        if position.x < 0 or position.y < 0:
            return None
        rows = self._rows()
        row_index = int(position.y // self.line_height)
        if row_index >= len(rows):
            return None
        paragraph_id, edges = rows[row_index]
        width = len(edges) - 1
        column = position.x / self.char_width
        if column >= width:
            cell = width
            past_half = width > 0
        else:
            whole = math.floor(column)
            past_half = column - whole > 0.5
            cell = whole + 1 if past_half else whole
        return HitPosition(
            point=ParagraphPoint(paragraph_id, edges[cell]),
            is_past_previous_character_half_point=past_half,
            is_wrapped_line_start=edges[0] > 0 and cell == 0,
        )

    def point_to_screen(self, point: ParagraphPoint) -> CaretRect:
        rows = self._rows()
        for index, (paragraph_id, edges) in enumerate(rows):
            if paragraph_id != point.paragraph_id:
                continue
            is_last_row = index + 1 >= len(rows) or rows[index + 1][0] != paragraph_id
            if edges[0] <= point.offset < edges[-1] or (is_last_row and point.offset >= edges[0]):
                column = bisect_right(edges, point.offset) - 1
                return CaretRect(
                    ScreenPosition(column * self.char_width, index * self.line_height),
                    self.line_height,
                )
        raise KeyError(point.paragraph_id)

    def is_wrapped_line_start(self, point: ParagraphPoint) -> bool:
        rows = self._paragraph_rows(self._document.paragraph(point.paragraph_id).text)
        return any(edges[0] == point.offset for edges in rows[1:])


__all__ = ["CaretRect", "HitPosition", "HitTester", "MonospaceLayout", "ScreenPosition"]

"""Shared test helpers.

Builders for documents with predictable paragraph ids (``p0``, ``p1``, …),
selections addressed by ``(paragraph_index, offset)`` pairs, and editing
sessions laid out on the default monospace grid (8px × 16px cells).
"""

from __future__ import annotations

from typing import Any

from inkwell.core.ranges import ParagraphPoint, Selection, SelectionRange, SelectionRangeData
from inkwell.core.selection import make_selection_range_from_points
from inkwell.editor.document_model import Document, Paragraph
from inkwell.editor.drag_selection import ModifierState, PointerDown, PointerMove, PointerUp
from inkwell.editor.layout import MonospaceLayout, ScreenPosition
from inkwell.editor.scheduling import ManualScheduler
from inkwell.editor.session import EditingSession
from inkwell.services.settings import EditorSettings

CHAR_WIDTH = 8.0
LINE_HEIGHT = 16.0


def make_document(text: str = "") -> Document:
    """One paragraph per line, with ids ``p0``, ``p1``, …"""

    return Document(Paragraph(f"p{index}", line) for index, line in enumerate(text.split("\n")))


def pt(index: int, offset: int) -> ParagraphPoint:
    return ParagraphPoint(f"p{index}", offset)


def sr(
    document: Document,
    anchor: tuple[int, int],
    focus: tuple[int, int] | None = None,
    *,
    id: str | None = None,
    data: SelectionRangeData | None = None,
    creation_order: int | None = None,
) -> SelectionRange:
    return make_selection_range_from_points(
        document,
        pt(*anchor),
        pt(*(focus or anchor)),
        data=data,
        selection_range_id=id,
        creation_order=creation_order,
    )


def selection_of(*selection_ranges: SelectionRange) -> Selection:
    return Selection(tuple(selection_ranges))


def texts(document: Document) -> list[str]:
    return [paragraph.text for paragraph in document]


def spans(document: Document, selection: Selection) -> list[tuple[tuple[int, int], tuple[int, int]]]:
    """``[(anchor, focus), …]`` as ``(paragraph_index, offset)`` pairs."""

    def key(point: ParagraphPoint) -> tuple[int, int]:
        return document.paragraph_index(point.paragraph_id), point.offset

    return [(key(item.anchor_point), key(item.focus_point)) for item in selection]


def caret_at(document: Document, index: int, offset: int) -> Selection:
    return selection_of(sr(document, (index, offset)))


def make_session(
    text: str = "",
    *,
    caret: tuple[int, int] | None = (0, 0),
    scheduler: ManualScheduler | None = None,
    settings: EditorSettings | None = None,
    wrap_columns: int | None = None,
    **kwargs: Any,
) -> EditingSession:
    document = make_document(text)
    layout = MonospaceLayout(document, char_width=CHAR_WIDTH, line_height=LINE_HEIGHT, wrap_columns=wrap_columns)
    selection = caret_at(document, *caret) if caret is not None else Selection.empty()
    return EditingSession(
        document,
        selection=selection,
        settings=settings,
        hit_tester=layout,
        scheduler=scheduler or ManualScheduler(),
        **kwargs,
    )


def screen(column: int, row: int = 0, *, right_half: bool = False) -> ScreenPosition:
    """Centre-left (or centre-right) of the character cell at ``column``/``row``."""

    fraction = 0.75 if right_half else 0.25
    return ScreenPosition((column + fraction) * CHAR_WIDTH, (row + 0.5) * LINE_HEIGHT)


def down(
    column: int,
    row: int = 0,
    t: float = 0.0,
    *,
    shift: bool = False,
    alt_press_id: int | None = None,
    right_half: bool = False,
) -> PointerDown:
    return PointerDown(
        screen(column, row, right_half=right_half),
        t,
        ModifierState(shift=shift, alt_press_id=alt_press_id),
    )


def move(column: int, row: int = 0, t: float = 0.0, *, right_half: bool = False) -> PointerMove:
    return PointerMove(screen(column, row, right_half=right_half), t)


def up(column: int, row: int = 0, t: float = 0.0, *, right_half: bool = False) -> PointerUp:
    return PointerUp(screen(column, row, right_half=right_half), t)


def click(session: EditingSession, column: int, row: int = 0, t: float = 0.0, **modifiers: Any) -> None:
    session.on_pointer_down(down(column, row, t, **modifiers))
    session.on_pointer_up(up(column, row, t))

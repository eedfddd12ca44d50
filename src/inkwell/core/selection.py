"""Pure operations over :class:`~inkwell.core.ranges.Selection` values.

Every function takes the document view first whenever points have to be
ordered; nothing here mutates its inputs. The central piece is
:func:`resolve_overlaps`, which turns an arbitrary list of selection ranges
into a normalized, non-overlapping selection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from functools import cmp_to_key
from typing import Any, Callable, Iterable, Mapping, Protocol, Sequence

from .ranges import (
    CompareResult,
    PointOrdering,
    Range,
    RangeDirection,
    Selection,
    SelectionRange,
    SelectionRangeData,
    SelectionRangeIntention,
    generate_id,
    next_creation_order,
)

LOGGER = logging.getLogger(__name__)


class PointTransformFn(Protocol):
    """Moves ``point`` by some granularity; returns the point itself when stuck."""

    def __call__(
        self,
        document: Any,
        intention: SelectionRangeIntention,
        range_: Range,
        point: Any,
        selection_range: SelectionRange,
    ) -> Any:
        ...


ShouldCollapseFn = Callable[[Any, SelectionRange], bool]
CollapseFn = Callable[[Any, SelectionRange], "SelectionRange | None"]


def noop_point_transform(
    document: Any,
    intention: SelectionRangeIntention,
    range_: Range,
    point: Any,
    selection_range: SelectionRange,
) -> Any:
    del document, intention, range_, selection_range
    return point


@dataclass(slots=True, frozen=True)
class MergeResult:
    """Normalized selection plus the ids that lost their identity while merging."""

    selection: Selection
    absorbed: Mapping[str, str] = field(default_factory=dict)


# ----------------------------------------------------------------------------
# Construction & queries
# ----------------------------------------------------------------------------


def make_ranges_connecting_points(
    document: PointOrdering,
    start_point: Any,
    end_point: Any,
    range_id: str | None = None,
) -> tuple[Range, ...]:
    """Return the ranges spanning ``start_point`` → ``end_point``.

    Points of the reference document all live in one content container, so
    this is always a single range.
    """

    return (Range(document.content_id, start_point, end_point, range_id or generate_id()),)


def make_selection_range_from_points(
    document: PointOrdering,
    anchor_point: Any,
    focus_point: Any,
    *,
    intention: SelectionRangeIntention = SelectionRangeIntention.TEXT,
    data: SelectionRangeData | None = None,
    selection_range_id: str | None = None,
    range_id: str | None = None,
    creation_order: int | None = None,
) -> SelectionRange:
    ranges = make_ranges_connecting_points(document, anchor_point, focus_point, range_id)
    return SelectionRange(
        ranges=ranges,
        anchor_range_id=ranges[0].id,
        focus_range_id=ranges[-1].id,
        intention=intention,
        data=data or SelectionRangeData(),
        id=selection_range_id or generate_id(),
        creation_order=creation_order if creation_order is not None else next_creation_order(),
    )


def get_range_direction(document: PointOrdering, range_: Range) -> RangeDirection:
    return range_.direction(document)


def is_selection_range_anchor_after_focus(document: PointOrdering, selection_range: SelectionRange) -> bool:
    """``EQUAL`` counts as "anchor not after focus"."""

    result = document.compare_points(selection_range.anchor_point, selection_range.focus_point)
    return result is CompareResult.AFTER


def selection_range_span(document: PointOrdering, selection_range: SelectionRange) -> tuple[Any, Any]:
    """Return the first and last point covered by ``selection_range``."""

    key = cmp_to_key(_comparator(document))
    points = [point for item in selection_range.ranges for point in (item.start_point, item.end_point)]
    return min(points, key=key), max(points, key=key)


def covers_same_content(document: PointOrdering, first: SelectionRange, second: SelectionRange) -> bool:
    first_start, first_end = selection_range_span(document, first)
    second_start, second_end = selection_range_span(document, second)
    return (
        document.compare_points(first_start, second_start) is CompareResult.EQUAL
        and document.compare_points(first_end, second_end) is CompareResult.EQUAL
    )


def most_recently_created(
    selection_ranges: Iterable[SelectionRange],
    predicate: Callable[[SelectionRange], bool] | None = None,
) -> SelectionRange | None:
    """Linear scan for the highest creation counter among matching ranges."""

    found: SelectionRange | None = None
    for selection_range in selection_ranges:
        if predicate is not None and not predicate(selection_range):
            continue
        if found is None or selection_range.creation_order > found.creation_order:
            found = selection_range
    return found


def focus_selection_range(selection: Selection) -> SelectionRange | None:
    """The selection range the user touched last."""

    return most_recently_created(selection.selection_ranges)


def anchor_selection_range(selection: Selection) -> SelectionRange | None:
    """The primary selection range, i.e. the first one of the selection."""

    return selection.selection_ranges[0] if selection.selection_ranges else None


# ----------------------------------------------------------------------------
# Collapsing
# ----------------------------------------------------------------------------


def collapse_to_point(selection_range: SelectionRange, point: Any) -> SelectionRange:
    """Collapse to ``point`` keeping id, intention, data and creation order."""

    if selection_range.is_collapsed and selection_range.anchor_point == point:
        return selection_range
    collapsed = selection_range.anchor_range.collapsed_at(point)
    return replace(
        selection_range,
        ranges=(collapsed,),
        anchor_range_id=collapsed.id,
        focus_range_id=collapsed.id,
    )


def collapse_backwards(document: PointOrdering, selection_range: SelectionRange) -> SelectionRange:
    """Collapse to whichever end comes first in the document."""

    if selection_range.is_collapsed:
        return selection_range
    if is_selection_range_anchor_after_focus(document, selection_range):
        point = selection_range.focus_point
    else:
        point = selection_range.anchor_point
    return collapse_to_point(selection_range, point)


def collapse_forwards(document: PointOrdering, selection_range: SelectionRange) -> SelectionRange:
    """Collapse to whichever end comes last in the document."""

    if selection_range.is_collapsed:
        return selection_range
    if is_selection_range_anchor_after_focus(document, selection_range):
        point = selection_range.anchor_point
    else:
        point = selection_range.focus_point
    return collapse_to_point(selection_range, point)


# ----------------------------------------------------------------------------
# Overlap resolution
# ----------------------------------------------------------------------------


def resolve_overlaps(
    document: PointOrdering,
    selection_ranges: Sequence[SelectionRange],
    priority_id: str | None = None,
) -> MergeResult:
    """Merge overlapping selection ranges into a normalized selection.

    The survivor of a merge is ``priority_id`` when the group contains it,
    otherwise the member starting first in the document (input order breaks
    ties). Survivors keep their position in the input order, so feeding an
    already-normalized selection back in returns it unchanged.
    """

    items = _dedupe_by_id(selection_ranges)
    if len(items) <= 1:
        return MergeResult(Selection(tuple(items)))

    compare = _comparator(document)
    key = cmp_to_key(compare)
    spans = {item.id: selection_range_span(document, item) for item in items}
    ordered = sorted(items, key=lambda item: (key(spans[item.id][0]), key(spans[item.id][1])))

    groups: list[list[SelectionRange]] = []
    group: list[SelectionRange] = [ordered[0]]
    group_start, group_end = spans[ordered[0].id]
    for item in ordered[1:]:
        start, end = spans[item.id]
        if _spans_overlap(compare, group_start, group_end, start, end):
            group.append(item)
            if compare(end, group_end) > 0:
                group_end = end
            continue
        groups.append(group)
        group = [item]
        group_start, group_end = start, end
    groups.append(group)

    replacements: dict[str, SelectionRange] = {}
    absorbed: dict[str, str] = {}
    for members in groups:
        if len(members) == 1:
            continue
        survivor = _pick_survivor(members, priority_id)
        merged = _merge_group(document, members, survivor, spans, compare)
        replacements[survivor.id] = merged
        for member in members:
            if member.id != survivor.id:
                absorbed[member.id] = survivor.id
        LOGGER.debug("Merged selection ranges %s into %s", [m.id for m in members], survivor.id)

    result = tuple(replacements.get(item.id, item) for item in items if item.id not in absorbed)
    return MergeResult(Selection(result), absorbed)


def _dedupe_by_id(selection_ranges: Sequence[SelectionRange]) -> list[SelectionRange]:
    """Keep the position of the first occurrence and the value of the last."""

    latest: dict[str, SelectionRange] = {}
    for item in selection_ranges:
        latest[item.id] = item
    seen: set[str] = set()
    result: list[SelectionRange] = []
    for item in selection_ranges:
        if item.id in seen:
            continue
        seen.add(item.id)
        result.append(latest[item.id])
    return result


def _comparator(document: PointOrdering) -> Callable[[Any, Any], int]:
    def compare(point1: Any, point2: Any) -> int:
        result = document.compare_points(point1, point2)
        if result is CompareResult.BEFORE:
            return -1
        if result is CompareResult.AFTER:
            return 1
        return 0

    return compare


def _spans_overlap(compare: Callable[[Any, Any], int], start1: Any, end1: Any, start2: Any, end2: Any) -> bool:
    # start1 <= start2 is guaranteed by the sort order.
    if compare(start2, end1) < 0:
        return True
    return compare(start1, start2) == 0 and compare(end1, end2) == 0


def _pick_survivor(members: list[SelectionRange], priority_id: str | None) -> SelectionRange:
    if priority_id is not None:
        for member in members:
            if member.id == priority_id:
                return member
    return members[0]


def _merge_group(
    document: PointOrdering,
    members: list[SelectionRange],
    survivor: SelectionRange,
    spans: Mapping[str, tuple[Any, Any]],
    compare: Callable[[Any, Any], int],
) -> SelectionRange:
    start = spans[members[0].id][0]
    end = spans[members[0].id][1]
    for member in members[1:]:
        member_end = spans[member.id][1]
        if compare(member_end, end) > 0:
            end = member_end
    data = survivor.data
    for member in members:
        if member.id != survivor.id:
            data = data.merged_with(member.data)
    survivor_start, survivor_end = spans[survivor.id]
    if compare(survivor_start, start) == 0 and compare(survivor_end, end) == 0:
        return survivor if data is survivor.data else replace(survivor, data=data)
    if is_selection_range_anchor_after_focus(document, survivor):
        anchor_point, focus_point = end, start
    else:
        anchor_point, focus_point = start, end
    return make_selection_range_from_points(
        document,
        anchor_point,
        focus_point,
        intention=survivor.intention,
        data=data,
        selection_range_id=survivor.id,
        range_id=survivor.anchor_range_id,
        creation_order=survivor.creation_order,
    )


# ----------------------------------------------------------------------------
# Extension & movement
# ----------------------------------------------------------------------------


def extend_selection(
    document: PointOrdering,
    selection: Selection,
    should_collapse_first: ShouldCollapseFn,
    anchor_move_fn: PointTransformFn,
    focus_move_fn: PointTransformFn,
) -> Selection:
    """Move the anchor and focus of every selection range independently.

    A selection range for which ``should_collapse_first`` answers ``True`` is
    collapsed onto its anchor instead of being moved.
    """

    if selection.is_empty:
        return selection
    extended: list[SelectionRange] = []
    for selection_range in selection:
        if should_collapse_first(document, selection_range):
            extended.append(collapse_to_point(selection_range, selection_range.anchor_point))
            continue
        anchor_point = _transform_point(
            anchor_move_fn, document, selection_range, selection_range.anchor_range, selection_range.anchor_point
        )
        focus_point = _transform_point(
            focus_move_fn, document, selection_range, selection_range.focus_range, selection_range.focus_point
        )
        if anchor_point == selection_range.anchor_point and focus_point == selection_range.focus_point:
            extended.append(selection_range)
            continue
        extended.append(_rebuild(document, selection_range, anchor_point, focus_point))
    return resolve_overlaps(document, extended).selection


def move_selection(
    document: PointOrdering,
    selection: Selection,
    collapse_fn: CollapseFn,
    point_transform_fn: PointTransformFn,
) -> Selection:
    """Collapse every selection range, moving carets through their focus point.

    ``collapse_fn`` may return a collapsed selection range to use as is (e.g.
    pressing Left on a non-empty selection), or ``None`` to move the focus.
    """

    if selection.is_empty:
        return selection
    moved: list[SelectionRange] = []
    for selection_range in selection:
        collapsed = collapse_fn(document, selection_range)
        if collapsed is not None:
            moved.append(collapsed)
            continue
        focus_point = _transform_point(
            point_transform_fn, document, selection_range, selection_range.focus_range, selection_range.focus_point
        )
        target = collapse_to_point(selection_range, focus_point)
        if target is not selection_range:
            target = replace(target, data=target.data.without_layout_flags())
        moved.append(target)
    return resolve_overlaps(document, moved).selection


def _transform_point(
    transform: PointTransformFn,
    document: Any,
    selection_range: SelectionRange,
    range_: Range,
    point: Any,
) -> Any:
    try:
        moved = transform(document, selection_range.intention, range_, point, selection_range)
    except LookupError:
        LOGGER.debug("Point transform found no destination for %r", point)
        return point
    return point if moved is None else moved


def _rebuild(document: PointOrdering, selection_range: SelectionRange, anchor_point: Any, focus_point: Any) -> SelectionRange:
    return make_selection_range_from_points(
        document,
        anchor_point,
        focus_point,
        intention=selection_range.intention,
        data=selection_range.data.without_layout_flags(),
        selection_range_id=selection_range.id,
        range_id=selection_range.anchor_range_id,
        creation_order=selection_range.creation_order,
    )


# ----------------------------------------------------------------------------
# Whole-selection helpers
# ----------------------------------------------------------------------------


def select_all(document: Any, *, intention: SelectionRangeIntention = SelectionRangeIntention.TEXT) -> Selection:
    """Return a selection spanning the whole document."""

    selection_range = make_selection_range_from_points(
        document,
        document.start_point(),
        document.end_point(),
        intention=intention,
    )
    return Selection((selection_range,))


def add_selection_range(document: PointOrdering, selection: Selection, selection_range: SelectionRange) -> Selection:
    """Add a cursor, merging it into anything it overlaps."""

    candidates = [*selection.selection_ranges, selection_range]
    return resolve_overlaps(document, candidates, selection_range.id).selection


def remove_selection_range(selection: Selection, selection_range_id: str) -> Selection:
    remaining = tuple(item for item in selection if item.id != selection_range_id)
    if len(remaining) == len(selection):
        return selection
    return Selection(remaining)


def transform_selection_ranges(
    document: PointOrdering,
    selection: Selection,
    transform: Callable[[SelectionRange], "SelectionRange | None"],
) -> Selection:
    """Map every selection range through ``transform``; ``None`` drops it."""

    transformed = [result for item in selection if (result := transform(item)) is not None]
    return resolve_overlaps(document, transformed).selection


__all__ = [
    "CollapseFn",
    "MergeResult",
    "PointTransformFn",
    "ShouldCollapseFn",
    "add_selection_range",
    "anchor_selection_range",
    "collapse_backwards",
    "collapse_forwards",
    "collapse_to_point",
    "covers_same_content",
    "extend_selection",
    "focus_selection_range",
    "get_range_direction",
    "is_selection_range_anchor_after_focus",
    "make_ranges_connecting_points",
    "make_selection_range_from_points",
    "most_recently_created",
    "move_selection",
    "noop_point_transform",
    "remove_selection_range",
    "resolve_overlaps",
    "select_all",
    "selection_range_span",
    "transform_selection_ranges",
]

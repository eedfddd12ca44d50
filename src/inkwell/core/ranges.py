"""Structured values for document points, ranges and selections."""

from __future__ import annotations

import itertools
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from enum import Enum, auto
from typing import Any, Iterator, Protocol

from .invariants import InvariantViolation


class CompareResult(Enum):
    """Three-way comparison outcome between two points."""

    BEFORE = auto()
    EQUAL = auto()
    AFTER = auto()


class RangeDirection(Enum):
    FORWARDS = auto()
    BACKWARDS = auto()
    NEUTRAL = auto()


class SelectionRangeIntention(Enum):
    """What the user means to select with a selection range."""

    TEXT = auto()
    BLOCK = auto()


class PointOrdering(Protocol):
    """Document view able to order points inside its content container."""

    @property
    def content_id(self) -> str:
        ...

    def compare_points(self, point1: Any, point2: Any) -> CompareResult:
        ...


def generate_id() -> str:
    """Return a fresh identifier for ranges and selection ranges."""

    return uuid.uuid4().hex


_CREATION_ORDER = itertools.count(1)


def next_creation_order() -> int:
    """Return the next value of the monotonic creation counter."""

    return next(_CREATION_ORDER)


@dataclass(slots=True, frozen=True)
class ParagraphPoint:
    """Offset inside a paragraph, the point type of the reference document."""

    paragraph_id: str
    offset: int

    def __post_init__(self) -> None:
        try:
            number = int(self.offset)
        except (TypeError, ValueError) as exc:
            raise ValueError("ParagraphPoint offset must be an integer") from exc
        object.__setattr__(self, "offset", max(0, number))

    def with_offset(self, offset: int) -> ParagraphPoint:
        return ParagraphPoint(self.paragraph_id, offset)

    def to_dict(self) -> dict[str, Any]:
        return {"paragraph_id": self.paragraph_id, "offset": self.offset}

    @classmethod
    def from_value(cls, value: Any) -> ParagraphPoint:
        """Coerce ``value`` into a :class:`ParagraphPoint`."""

        if isinstance(value, ParagraphPoint):
            return value
        if isinstance(value, Mapping):
            paragraph_id = value.get("paragraph_id")
            offset = value.get("offset")
            if paragraph_id is None or offset is None:
                raise ValueError("ParagraphPoint mappings require paragraph_id and offset keys")
            return cls(str(paragraph_id), offset)
        if isinstance(value, (tuple, list)):
            if len(value) != 2:
                raise ValueError("ParagraphPoint sequences must have exactly two entries")
            return cls(str(value[0]), value[1])
        raise TypeError("Unsupported ParagraphPoint input")


@dataclass(slots=True, frozen=True)
class Range:
    """Two points inside one content container.

    Storage is directionless: ``start_point`` is the anchor side and
    ``end_point`` the focus side, and direction is derived by comparing them.
    """

    content_id: str
    start_point: Any
    end_point: Any
    id: str = field(default_factory=generate_id)

    @property
    def anchor_point(self) -> Any:
        return self.start_point

    @property
    def focus_point(self) -> Any:
        return self.end_point

    @property
    def is_collapsed(self) -> bool:
        return self.start_point == self.end_point

    def direction(self, ordering: PointOrdering) -> RangeDirection:
        result = ordering.compare_points(self.start_point, self.end_point)
        if result is CompareResult.BEFORE:
            return RangeDirection.FORWARDS
        if result is CompareResult.AFTER:
            return RangeDirection.BACKWARDS
        return RangeDirection.NEUTRAL

    def collapsed_at(self, point: Any, *, range_id: str | None = None) -> Range:
        return Range(self.content_id, point, point, range_id or generate_id())


@dataclass(slots=True, frozen=True)
class SelectionRangeData:
    """Transient UI flags riding along with a selection range.

    The set of flags is closed: soft-wrap cursor stickiness, the column
    remembered across vertical moves, and the Alt-gesture group a cursor
    was created in.
    """

    line_wrap_to_next_line: bool | None = None
    vertical_column_offset: float | None = None
    separate_selection_id: int | None = None

    def merged_with(self, other: SelectionRangeData) -> SelectionRangeData:
        """Return a copy whose unset fields are taken from ``other``."""

        updates = {}
        for item in fields(self):
            if getattr(self, item.name) is None:
                value = getattr(other, item.name)
                if value is not None:
                    updates[item.name] = value
        return replace(self, **updates) if updates else self

    def without_layout_flags(self) -> SelectionRangeData:
        if self.line_wrap_to_next_line is None and self.vertical_column_offset is None:
            return self
        return replace(self, line_wrap_to_next_line=None, vertical_column_offset=None)

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, item.name) is None for item in fields(self))


@dataclass(slots=True, frozen=True)
class SelectionRange:
    """One cursor or selection unit made of one or more ranges."""

    ranges: tuple[Range, ...]
    anchor_range_id: str
    focus_range_id: str
    intention: SelectionRangeIntention = SelectionRangeIntention.TEXT
    data: SelectionRangeData = field(default_factory=SelectionRangeData)
    id: str = field(default_factory=generate_id)
    creation_order: int = field(default_factory=next_creation_order)

    def __post_init__(self) -> None:
        ranges = tuple(self.ranges)
        if not ranges:
            raise InvariantViolation("SelectionRange requires at least one range", code="empty-selection-range")
        ids = {item.id for item in ranges}
        if self.anchor_range_id not in ids or self.focus_range_id not in ids:
            raise InvariantViolation(
                "SelectionRange anchor/focus must name one of its ranges",
                code="missing-anchor-or-focus",
            )
        object.__setattr__(self, "ranges", ranges)

    def _range(self, range_id: str) -> Range:
        for item in self.ranges:
            if item.id == range_id:
                return item
        raise KeyError(range_id)  # pragma: no cover - guarded in __post_init__

    @property
    def anchor_range(self) -> Range:
        return self._range(self.anchor_range_id)

    @property
    def focus_range(self) -> Range:
        return self._range(self.focus_range_id)

    @property
    def anchor_point(self) -> Any:
        return self.anchor_range.start_point

    @property
    def focus_point(self) -> Any:
        return self.focus_range.end_point

    @property
    def content_id(self) -> str:
        return self.anchor_range.content_id

    @property
    def is_collapsed(self) -> bool:
        """Return ``True`` for a single zero-width range (a caret)."""

        return len(self.ranges) == 1 and self.ranges[0].is_collapsed


@dataclass(slots=True, frozen=True)
class Selection:
    """Ordered collection of selection ranges, unique by id."""

    selection_ranges: tuple[SelectionRange, ...] = ()

    def __post_init__(self) -> None:
        selection_ranges = tuple(self.selection_ranges)
        ids = [item.id for item in selection_ranges]
        if len(set(ids)) != len(ids):
            raise InvariantViolation("Selection ranges must have unique ids", code="duplicate-selection-range")
        object.__setattr__(self, "selection_ranges", selection_ranges)

    def __len__(self) -> int:
        return len(self.selection_ranges)

    def __iter__(self) -> Iterator[SelectionRange]:
        return iter(self.selection_ranges)

    @property
    def is_empty(self) -> bool:
        return not self.selection_ranges

    def ids(self) -> tuple[str, ...]:
        return tuple(item.id for item in self.selection_ranges)

    def get(self, selection_range_id: str) -> SelectionRange | None:
        for item in self.selection_ranges:
            if item.id == selection_range_id:
                return item
        return None

    @classmethod
    def empty(cls) -> Selection:
        return cls(())


__all__ = [
    "CompareResult",
    "ParagraphPoint",
    "PointOrdering",
    "Range",
    "RangeDirection",
    "Selection",
    "SelectionRange",
    "SelectionRangeData",
    "SelectionRangeIntention",
    "generate_id",
    "next_creation_order",
]

"""Core selection types and the pure selection algebra."""

from .invariants import InvariantViolation, configure_invariants, ensure
from .ranges import (
    CompareResult,
    ParagraphPoint,
    Range,
    RangeDirection,
    Selection,
    SelectionRange,
    SelectionRangeData,
    SelectionRangeIntention,
)
from .selection import MergeResult, resolve_overlaps

__all__ = [
    "CompareResult",
    "InvariantViolation",
    "MergeResult",
    "ParagraphPoint",
    "Range",
    "RangeDirection",
    "Selection",
    "SelectionRange",
    "SelectionRangeData",
    "SelectionRangeIntention",
    "configure_invariants",
    "ensure",
    "resolve_overlaps",
]

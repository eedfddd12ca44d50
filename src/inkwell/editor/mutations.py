"""Reversible mutations over the reference paragraph document.

Applying a mutation returns a :class:`MutationResult` carrying whether the
document changed, the mutation that undoes it, and a function mapping
points from before the mutation to after it. A point that no longer has a
home (its paragraph was removed) maps to ``None``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Sequence, Union

from ..core.ranges import CompareResult, ParagraphPoint, generate_id
from .document_model import Document, Paragraph

LOGGER = logging.getLogger(__name__)

PointTransform = Callable[[Any], Any]


class MutationApplyError(RuntimeError):
    """Raised when a mutation references content that does not exist."""

    def __init__(
        self,
        message: str,
        *,
        reason: str = "missing_content",
        paragraph_id: str | None = None,
        offset: int | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.paragraph_id = paragraph_id
        self.offset = offset

    def details(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "paragraph_id": self.paragraph_id,
            "offset": self.offset,
        }


def _identity(point: Any) -> Any:
    return point


@dataclass(slots=True, frozen=True)
class MutationResult:
    """Outcome of applying a mutation."""

    did_change: bool
    reverse_mutation: "Mutation"
    transform_point: PointTransform = _identity


# ----------------------------------------------------------------------------
# Text mutations
# ----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class InsertTextMutation:
    """Insert ``text`` (no line breaks) at ``point``."""

    point: ParagraphPoint
    text: str

    def __post_init__(self) -> None:
        if "\n" in self.text:
            raise ValueError("InsertTextMutation text cannot contain line breaks; split the paragraph instead")

    def apply(self, document: Document) -> MutationResult:
        paragraph = _require_paragraph(document, self.point.paragraph_id)
        offset = self.point.offset
        _require_offset(paragraph, offset)
        length = len(self.text)
        reverse = RemoveTextMutation(paragraph.id, offset, offset + length)
        if not length:
            return MutationResult(False, reverse)
        document.set_paragraph_text(paragraph.id, paragraph.text[:offset] + self.text + paragraph.text[offset:])

        def transform(point: Any) -> Any:
            if point.paragraph_id == paragraph.id and point.offset >= offset:
                return point.with_offset(point.offset + length)
            return point

        return MutationResult(True, reverse, transform)


@dataclass(slots=True, frozen=True)
class RemoveTextMutation:
    """Remove ``[start, end)`` inside one paragraph."""

    paragraph_id: str
    start: int
    end: int

    def __post_init__(self) -> None:
        start, end = int(self.start), int(self.end)
        if end < start:
            start, end = end, start
        object.__setattr__(self, "start", max(0, start))
        object.__setattr__(self, "end", max(0, end))

    def apply(self, document: Document) -> MutationResult:
        paragraph = _require_paragraph(document, self.paragraph_id)
        _require_offset(paragraph, self.end)
        start, end = self.start, self.end
        removed = paragraph.text[start:end]
        reverse = InsertTextMutation(ParagraphPoint(paragraph.id, start), removed)
        if start == end:
            return MutationResult(False, reverse)
        document.set_paragraph_text(paragraph.id, paragraph.text[:start] + paragraph.text[end:])
        width = end - start

        def transform(point: Any) -> Any:
            if point.paragraph_id != paragraph.id or point.offset <= start:
                return point
            if point.offset <= end:
                return point.with_offset(start)
            return point.with_offset(point.offset - width)

        return MutationResult(True, reverse, transform)


# ----------------------------------------------------------------------------
# Paragraph mutations
# ----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class SplitParagraphMutation:
    """Split a paragraph at ``point``; the tail moves to a new paragraph."""

    point: ParagraphPoint
    new_paragraph_id: str = field(default_factory=generate_id)

    def apply(self, document: Document) -> MutationResult:
        paragraph = _require_paragraph(document, self.point.paragraph_id)
        offset = self.point.offset
        _require_offset(paragraph, offset)
        head, tail = paragraph.text[:offset], paragraph.text[offset:]
        index = document.paragraph_index(paragraph.id)
        document.set_paragraph_text(paragraph.id, head)
        document.insert_paragraph(index + 1, Paragraph(self.new_paragraph_id, tail))
        new_id = self.new_paragraph_id

        def transform(point: Any) -> Any:
            if point.paragraph_id == paragraph.id and point.offset >= offset:
                return ParagraphPoint(new_id, point.offset - offset)
            return point

        return MutationResult(True, JoinParagraphsMutation(paragraph.id), transform)


@dataclass(slots=True, frozen=True)
class JoinParagraphsMutation:
    """Append the paragraph following ``paragraph_id`` to it and drop the follower."""

    paragraph_id: str

    def apply(self, document: Document) -> MutationResult:
        paragraph = _require_paragraph(document, self.paragraph_id)
        follower = document.next_paragraph(paragraph.id)
        if follower is None:
            raise MutationApplyError(
                f"Paragraph {paragraph.id} has no following paragraph to join",
                reason="no_following_paragraph",
                paragraph_id=paragraph.id,
            )
        length = len(paragraph.text)
        follower_id = follower.id
        document.remove_paragraph(follower_id)
        document.set_paragraph_text(paragraph.id, paragraph.text + follower.text)
        reverse = SplitParagraphMutation(ParagraphPoint(paragraph.id, length), follower_id)

        def transform(point: Any) -> Any:
            if point.paragraph_id == follower_id:
                return ParagraphPoint(paragraph.id, length + point.offset)
            return point

        return MutationResult(True, reverse, transform)


@dataclass(slots=True, frozen=True)
class InsertParagraphMutation:
    """Insert a new paragraph at ``index``."""

    index: int
    paragraph_id: str = field(default_factory=generate_id)
    text: str = ""

    def apply(self, document: Document) -> MutationResult:
        if not 0 <= self.index <= len(document):
            raise MutationApplyError(
                f"Paragraph index {self.index} is out of bounds",
                reason="index_out_of_bounds",
                offset=self.index,
            )
        if document.has_paragraph(self.paragraph_id):
            raise MutationApplyError(
                f"Paragraph {self.paragraph_id} already exists",
                reason="duplicate_paragraph",
                paragraph_id=self.paragraph_id,
            )
        document.insert_paragraph(self.index, Paragraph(self.paragraph_id, self.text))
        return MutationResult(True, RemoveParagraphMutation(self.paragraph_id))


@dataclass(slots=True, frozen=True)
class RemoveParagraphMutation:
    """Remove a whole paragraph; points inside it become stale."""

    paragraph_id: str

    def apply(self, document: Document) -> MutationResult:
        paragraph = _require_paragraph(document, self.paragraph_id)
        if len(document) == 1:
            raise MutationApplyError(
                "Cannot remove the only paragraph of a document",
                reason="last_paragraph",
                paragraph_id=paragraph.id,
            )
        index = document.paragraph_index(paragraph.id)
        document.remove_paragraph(paragraph.id)
        removed_id = paragraph.id

        def transform(point: Any) -> Any:
            if point.paragraph_id == removed_id:
                return None
            return point

        return MutationResult(True, InsertParagraphMutation(index, removed_id, paragraph.text), transform)


# ----------------------------------------------------------------------------
# Batches
# ----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class BatchMutation:
    """Ordered sequence of mutations applied one after another."""

    mutations: tuple["Mutation", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "mutations", tuple(self.mutations))

    def parts(self) -> Iterator["Mutation"]:
        """Yield the leaf mutations, flattening nested batches."""

        for mutation in self.mutations:
            if isinstance(mutation, BatchMutation):
                yield from mutation.parts()
            else:
                yield mutation

    def apply(self, document: Document) -> MutationResult:
        results = [part.apply(document) for part in self.parts()]
        reverse = BatchMutation(tuple(result.reverse_mutation for result in reversed(results)))
        return MutationResult(
            any(result.did_change for result in results),
            reverse,
            compose_transforms(result.transform_point for result in results),
        )


Mutation = Union[
    InsertTextMutation,
    RemoveTextMutation,
    SplitParagraphMutation,
    JoinParagraphsMutation,
    InsertParagraphMutation,
    RemoveParagraphMutation,
    BatchMutation,
]


def make_batch_mutation(mutations: Sequence[Mutation]) -> BatchMutation:
    return BatchMutation(tuple(mutations))


def flatten_mutation(mutation: Mutation) -> tuple[Mutation, ...]:
    if isinstance(mutation, BatchMutation):
        return tuple(mutation.parts())
    return (mutation,)


def apply_mutation(document: Document, mutation: Mutation) -> MutationResult:
    """Apply ``mutation`` to ``document``."""

    result = mutation.apply(document)
    LOGGER.debug("Applied %s (changed=%s)", type(mutation).__name__, result.did_change)
    return result


def compose_transforms(transforms: Sequence[PointTransform] | Iterator[PointTransform]) -> PointTransform:
    """Chain point transforms; a ``None`` result short-circuits the chain."""

    chain = tuple(transforms)

    def transform(point: Any) -> Any:
        for step in chain:
            if point is None:
                return None
            point = step(point)
        return point

    return transform


def make_remove_range_mutation(document: Document, start: ParagraphPoint, end: ParagraphPoint) -> BatchMutation:
    """Build the mutation removing everything between two points.

    Crossing paragraphs is expressed as text removals followed by joins so
    that every point inside the removed span survives and lands on ``start``.
    """

    if document.compare_points(start, end) is CompareResult.AFTER:
        start, end = end, start
    first_index = document.paragraph_index(start.paragraph_id)
    last_index = document.paragraph_index(end.paragraph_id)
    parts: list[Mutation] = []
    if first_index == last_index:
        if start.offset != end.offset:
            parts.append(RemoveTextMutation(start.paragraph_id, start.offset, end.offset))
        return BatchMutation(tuple(parts))

    first = document.paragraph_at(first_index)
    if start.offset < len(first.text):
        parts.append(RemoveTextMutation(first.id, start.offset, len(first.text)))
    for index in range(first_index + 1, last_index):
        middle = document.paragraph_at(index)
        if middle.text:
            parts.append(RemoveTextMutation(middle.id, 0, len(middle.text)))
    if end.offset:
        parts.append(RemoveTextMutation(end.paragraph_id, 0, end.offset))
    parts.extend(JoinParagraphsMutation(first.id) for _ in range(first_index, last_index))
    return BatchMutation(tuple(parts))


def _require_paragraph(document: Document, paragraph_id: str) -> Paragraph:
    try:
        return document.paragraph(paragraph_id)
    except KeyError as exc:
        raise MutationApplyError(
            f"Paragraph {paragraph_id} does not exist",
            reason="missing_paragraph",
            paragraph_id=paragraph_id,
        ) from exc


def _require_offset(paragraph: Paragraph, offset: int) -> None:
    if offset > len(paragraph.text):
        raise MutationApplyError(
            f"Offset {offset} is outside paragraph {paragraph.id}",
            reason="offset_out_of_bounds",
            paragraph_id=paragraph.id,
            offset=offset,
        )


__all__ = [
    "BatchMutation",
    "InsertParagraphMutation",
    "InsertTextMutation",
    "JoinParagraphsMutation",
    "Mutation",
    "MutationApplyError",
    "MutationResult",
    "PointTransform",
    "RemoveParagraphMutation",
    "RemoveTextMutation",
    "SplitParagraphMutation",
    "apply_mutation",
    "compose_transforms",
    "flatten_mutation",
    "make_batch_mutation",
    "make_remove_range_mutation",
]

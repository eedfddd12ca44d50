"""Reference paragraph document used by the editing core."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

from ..core.ranges import CompareResult, ParagraphPoint, generate_id


def _hash_text(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class Paragraph:
    """A single plain-text paragraph."""

    id: str = field(default_factory=generate_id)
    text: str = ""


@dataclass(slots=True)
class DocumentVersion:
    """Lightweight metadata describing a document snapshot."""

    content_id: str
    version_id: int
    content_hash: str


class Document:
    """Ordered list of paragraphs inside a single content container.

    Points are :class:`~inkwell.core.ranges.ParagraphPoint` values and are
    ordered by paragraph index first, offset second. The document always
    holds at least one paragraph.
    """

    def __init__(self, paragraphs: Iterable[Paragraph] | None = None, *, content_id: str = "root") -> None:
        items = list(paragraphs or ())
        if not items:
            items = [Paragraph()]
        self._paragraphs: list[Paragraph] = items
        self._index: dict[str, int] = {}
        self._content_id = content_id
        self.version_id = 1
        self._reindex()

    @classmethod
    def from_text(cls, text: str, *, content_id: str = "root") -> Document:
        """Build a document with one paragraph per line of ``text``."""

        return cls((Paragraph(text=line) for line in text.split("\n")), content_id=content_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def content_id(self) -> str:
        return self._content_id

    @property
    def paragraphs(self) -> tuple[Paragraph, ...]:
        return tuple(self._paragraphs)

    def __len__(self) -> int:
        return len(self._paragraphs)

    def __iter__(self) -> Iterator[Paragraph]:
        return iter(tuple(self._paragraphs))

    @property
    def text(self) -> str:
        return "\n".join(paragraph.text for paragraph in self._paragraphs)

    @property
    def content_hash(self) -> str:
        return _hash_text(self.text)

    def version_info(self) -> DocumentVersion:
        return DocumentVersion(self._content_id, self.version_id, self.content_hash)

    def has_paragraph(self, paragraph_id: str) -> bool:
        return paragraph_id in self._index

    def paragraph(self, paragraph_id: str) -> Paragraph:
        """Return the paragraph named ``paragraph_id`` or raise ``KeyError``."""

        return self._paragraphs[self._index[paragraph_id]]

    def paragraph_index(self, paragraph_id: str) -> int:
        return self._index[paragraph_id]

    def paragraph_at(self, index: int) -> Paragraph:
        return self._paragraphs[index]

    def next_paragraph(self, paragraph_id: str) -> Paragraph | None:
        index = self._index[paragraph_id] + 1
        return self._paragraphs[index] if index < len(self._paragraphs) else None

    def previous_paragraph(self, paragraph_id: str) -> Paragraph | None:
        index = self._index[paragraph_id] - 1
        return self._paragraphs[index] if index >= 0 else None

    def start_point(self) -> ParagraphPoint:
        return ParagraphPoint(self._paragraphs[0].id, 0)

    def end_point(self) -> ParagraphPoint:
        last = self._paragraphs[-1]
        return ParagraphPoint(last.id, len(last.text))

    def paragraph_start_point(self, paragraph_id: str) -> ParagraphPoint:
        return ParagraphPoint(self.paragraph(paragraph_id).id, 0)

    def paragraph_end_point(self, paragraph_id: str) -> ParagraphPoint:
        paragraph = self.paragraph(paragraph_id)
        return ParagraphPoint(paragraph.id, len(paragraph.text))

    def point(self, paragraph_index: int, offset: int) -> ParagraphPoint:
        """Convenience constructor addressing the paragraph by index."""

        return self.clamp_point(ParagraphPoint(self._paragraphs[paragraph_index].id, offset))

    def clamp_point(self, point: ParagraphPoint) -> ParagraphPoint:
        paragraph = self.paragraph(point.paragraph_id)
        if point.offset <= len(paragraph.text):
            return point
        return point.with_offset(len(paragraph.text))

    def contains_point(self, point: Any) -> bool:
        if not isinstance(point, ParagraphPoint) or point.paragraph_id not in self._index:
            return False
        return point.offset <= len(self.paragraph(point.paragraph_id).text)

    def compare_points(self, point1: ParagraphPoint, point2: ParagraphPoint) -> CompareResult:
        """Three-way comparison of two points of this document."""

        key1 = (self._index[point1.paragraph_id], point1.offset)
        key2 = (self._index[point2.paragraph_id], point2.offset)
        if key1 < key2:
            return CompareResult.BEFORE
        if key1 > key2:
            return CompareResult.AFTER
        return CompareResult.EQUAL

    def text_between(self, start: ParagraphPoint, end: ParagraphPoint) -> str:
        if self.compare_points(start, end) is CompareResult.AFTER:
            start, end = end, start
        first = self._index[start.paragraph_id]
        last = self._index[end.paragraph_id]
        if first == last:
            return self._paragraphs[first].text[start.offset : end.offset]
        parts = [self._paragraphs[first].text[start.offset :]]
        parts.extend(paragraph.text for paragraph in self._paragraphs[first + 1 : last])
        parts.append(self._paragraphs[last].text[: end.offset])
        return "\n".join(parts)

    # ------------------------------------------------------------------
    # Low-level edits, driven by :mod:`inkwell.editor.mutations`
    # ------------------------------------------------------------------
    def set_paragraph_text(self, paragraph_id: str, text: str) -> None:
        self.paragraph(paragraph_id).text = text
        self._touch()

    def insert_paragraph(self, index: int, paragraph: Paragraph) -> None:
        if paragraph.id in self._index:
            raise ValueError(f"Duplicate paragraph id: {paragraph.id}")
        self._paragraphs.insert(index, paragraph)
        self._reindex()
        self._touch()

    def remove_paragraph(self, paragraph_id: str) -> Paragraph:
        index = self._index[paragraph_id]
        paragraph = self._paragraphs.pop(index)
        self._reindex()
        self._touch()
        return paragraph

    def _reindex(self) -> None:
        self._index = {paragraph.id: position for position, paragraph in enumerate(self._paragraphs)}

    def _touch(self) -> None:
        self.version_id += 1

    def __repr__(self) -> str:
        return f"Document(content_id={self._content_id!r}, paragraphs={len(self._paragraphs)}, version={self.version_id})"


__all__ = ["Document", "DocumentVersion", "Paragraph"]

"""Single-writer update scope around a document and its selection.

All changes go through :meth:`StateControl.queue_update`. Inside the update
callback, :class:`UpdateDelta` applies mutations and replaces the selection;
every step is announced synchronously on the control's event bus in the
order it happened. Updates queued while another one is open run once it
closes, first in first out.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping

from ..core.ranges import Range, Selection, SelectionRange
from ..core.selection import resolve_overlaps
from .document_model import Document
from .events import EventBus, MutationEndEvent, MutationPartEvent, SelectionChangeEvent, Subscription
from .mutations import Mutation, MutationResult, PointTransform, compose_transforms, flatten_mutation

LOGGER = logging.getLogger(__name__)

UpdateFn = Callable[["UpdateDelta"], None]

_EMPTY_HINTS: Mapping[str, Any] = MappingProxyType({})
_DEFAULT_MAX_REVISIONS = 10_000


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Opaque marker of the document revision at the time it was taken."""

    revision: int
    version_id: int


class UpdateDelta:
    """Write access handed to an update callback."""

    __slots__ = ("_control", "_hints", "_open")

    def __init__(self, control: StateControl, hints: Mapping[str, Any]) -> None:
        self._control = control
        self._hints = hints
        self._open = True

    @property
    def hints(self) -> Mapping[str, Any]:
        return self._hints

    @property
    def document(self) -> Document:
        return self._control.document

    @property
    def selection(self) -> Selection:
        return self._control.selection

    def apply_mutation(self, mutation: Mutation) -> tuple[MutationResult, ...]:
        self._ensure_open()
        return self._control._apply_mutation(mutation, self._hints)

    def set_selection(self, selection: Selection) -> None:
        self._ensure_open()
        self._control._set_selection(selection, self._hints)

    def _close(self) -> None:
        self._open = False

    def _ensure_open(self) -> None:
        if not self._open:
            raise RuntimeError("Update delta used after its update closed")


class StateControl:
    """Owns the canonical document and selection."""

    def __init__(
        self,
        document: Document,
        selection: Selection | None = None,
        *,
        event_bus: EventBus[Any] | None = None,
        max_revisions: int = _DEFAULT_MAX_REVISIONS,
    ) -> None:
        self._document = document
        self._selection = selection or Selection.empty()
        self._event_bus: EventBus[Any] = event_bus or EventBus()
        self._queue: deque[tuple[UpdateFn, Mapping[str, Any]]] = deque()
        self._delta: UpdateDelta | None = None
        self._draining = False
        self._revisions: deque[PointTransform] = deque(maxlen=max(1, max_revisions))
        self._revision = 0

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    @property
    def document(self) -> Document:
        return self._document

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def event_bus(self) -> EventBus[Any]:
        return self._event_bus

    @property
    def is_in_update(self) -> bool:
        return self._delta is not None

    @property
    def delta(self) -> UpdateDelta:
        """The write handle of the open update."""

        if self._delta is None:
            raise RuntimeError("No update is open")
        return self._delta

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def on_mutation_part(self, handler: Callable[[MutationPartEvent], None]) -> Subscription:
        return self._event_bus.subscribe(MutationPartEvent, handler)

    def on_mutation_end(self, handler: Callable[[MutationEndEvent], None]) -> Subscription:
        return self._event_bus.subscribe(MutationEndEvent, handler)

    def on_selection_change(self, handler: Callable[[SelectionChangeEvent], None]) -> Subscription:
        return self._event_bus.subscribe(SelectionChangeEvent, handler)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------
    def queue_update(self, fn: UpdateFn, hints: Mapping[str, Any] | None = None) -> None:
        """Run ``fn`` now when idle, otherwise once the open update closes."""

        frozen_hints = MappingProxyType({_hint_key(key): value for key, value in hints.items()}) if hints else _EMPTY_HINTS
        self._queue.append((fn, frozen_hints))
        if self._draining:
            LOGGER.debug("Queued update behind the open one (%d pending)", len(self._queue))
            return
        self._drain()

    def _drain(self) -> None:
        self._draining = True
        try:
            while self._queue:
                fn, hints = self._queue.popleft()
                delta = UpdateDelta(self, hints)
                self._delta = delta
                try:
                    fn(delta)
                finally:
                    delta._close()
                    self._delta = None
        finally:
            self._draining = False
            if self._queue:
                LOGGER.debug("Dropping %d queued update(s) after a failed update", len(self._queue))
                self._queue.clear()

    def _apply_mutation(self, mutation: Mutation, hints: Mapping[str, Any]) -> tuple[MutationResult, ...]:
        parts = flatten_mutation(mutation)
        results: list[MutationResult] = []
        last_index = len(parts) - 1
        for index, part in enumerate(parts):
            result = part.apply(self._document)
            results.append(result)
            self._record_revision(result.transform_point)
            self._event_bus.publish(
                MutationPartEvent(
                    mutation=part,
                    result=result,
                    hints=hints,
                    is_first_part=index == 0,
                    is_last_part=index == last_index,
                )
            )
        if results:
            transform = compose_transforms(result.transform_point for result in results)
            transformed = transform_selection(self._document, self._selection, transform)
            if transformed != self._selection:
                self._set_selection(transformed, hints)
        self._event_bus.publish(MutationEndEvent(mutation=mutation, results=tuple(results), hints=hints))
        return tuple(results)

    def _set_selection(self, selection: Selection, hints: Mapping[str, Any]) -> None:
        previous = self._selection
        if selection == previous:
            return
        self._selection = selection
        self._event_bus.publish(SelectionChangeEvent(previous=previous, selection=selection, hints=hints))

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def snapshot(self) -> Snapshot:
        return Snapshot(self._revision, self._document.version_id)

    def transform_point_forwards(self, point: Any, from_snapshot: Snapshot) -> Any:
        """Map ``point`` taken at ``from_snapshot`` onto the current document."""

        transform = self._transform_since(from_snapshot)
        if transform is None:
            return None
        return transform(point)

    def transform_selection_forwards(self, selection: Selection, from_snapshot: Snapshot) -> Selection:
        transform = self._transform_since(from_snapshot)
        if transform is None:
            LOGGER.debug("Snapshot %s is older than the revision log; dropping selection", from_snapshot)
            return Selection.empty()
        return transform_selection(self._document, selection, transform)

    def _record_revision(self, transform: PointTransform) -> None:
        self._revisions.append(transform)
        self._revision += 1

    def _transform_since(self, snapshot: Snapshot) -> PointTransform | None:
        missing = self._revision - snapshot.revision
        if missing < 0 or missing > len(self._revisions):
            return None
        if missing == 0:
            return compose_transforms(())
        return compose_transforms(list(self._revisions)[-missing:])


def _hint_key(key: Any) -> Any:
    # Hints are looked up by their string value.
    return key.value if isinstance(key, Enum) else key


def transform_selection(document: Document, selection: Selection, transform: PointTransform) -> Selection:
    """Map every point of ``selection`` through ``transform``.

    Selection ranges with a point that has gone stale are dropped.
    """

    kept: list[SelectionRange] = []
    changed = False
    for selection_range in selection:
        ranges: list[Range] = []
        for range_ in selection_range.ranges:
            start = transform(range_.start_point)
            end = transform(range_.end_point)
            if start is None or end is None:
                break
            if start == range_.start_point and end == range_.end_point:
                ranges.append(range_)
            else:
                ranges.append(Range(range_.content_id, start, end, range_.id))
                changed = True
        else:
            if changed:
                kept.append(_with_ranges(selection_range, ranges))
            else:
                kept.append(selection_range)
            continue
        LOGGER.debug("Dropping stale selection range %s", selection_range.id)
        changed = True
    if not changed:
        return selection
    return resolve_overlaps(document, kept).selection


def _with_ranges(selection_range: SelectionRange, ranges: list[Range]) -> SelectionRange:
    if tuple(ranges) == selection_range.ranges:
        return selection_range
    return SelectionRange(
        ranges=tuple(ranges),
        anchor_range_id=selection_range.anchor_range_id,
        focus_range_id=selection_range.focus_range_id,
        intention=selection_range.intention,
        data=selection_range.data,
        id=selection_range.id,
        creation_order=selection_range.creation_order,
    )


__all__ = [
    "Snapshot",
    "StateControl",
    "UpdateDelta",
    "UpdateFn",
    "transform_selection",
]

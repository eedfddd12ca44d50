"""Synchronous event bus carrying editing notifications.

Handlers run in subscription order on the thread that publishes. Every
subscription returns a :class:`Subscription` handle; disposing it detaches
exactly that registration, even when the same handler was added twice.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Generic,
    Mapping,
    TypeVar,
)
from weakref import WeakMethod

from ..core.invariants import InvariantViolation

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

    from ..core.ranges import Selection
    from .mutations import Mutation, MutationResult

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for everything published on an :class:`EventBus`."""

    pass


# =============================================================================
# Update notifications
# =============================================================================


@dataclass(slots=True)
class MutationPartEvent(Event):
    """Emitted after one part of a mutation batch was applied.

    The selection has not been transformed yet when this fires; it is
    transformed once the whole batch is in.

    Attributes:
        mutation: The part that was applied.
        result: Outcome of applying ``mutation``, including its reverse.
        hints: Hints of the update the mutation belongs to.
        is_first_part: ``True`` for the first part of its batch.
        is_last_part: ``True`` for the last part of its batch.
    """

    mutation: "Mutation"
    result: "MutationResult"
    hints: Mapping[str, Any] = field(default_factory=dict)
    is_first_part: bool = True
    is_last_part: bool = True


@dataclass(slots=True)
class MutationEndEvent(Event):
    """Emitted once a batch is applied and the selection transformed through it."""

    mutation: "Mutation"
    results: tuple["MutationResult", ...]
    hints: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SelectionChangeEvent(Event):
    """Emitted whenever the canonical selection is replaced."""

    previous: "Selection"
    selection: "Selection"
    hints: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class HistoryChanged(Event):
    """Emitted when either undo stack grows or shrinks."""

    can_undo: bool
    can_redo: bool
    undo_depth: int
    redo_depth: int


_QUIET_EVENT_TYPES: set[type] = {MutationPartEvent, MutationEndEvent, SelectionChangeEvent}


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`."""

    __slots__ = ("_bus", "_event_type", "_handler_ref")

    def __init__(self, bus: "EventBus[Any]", event_type: type[Event], handler_ref: "_HandlerRef") -> None:
        self._bus: EventBus[Any] | None = bus
        self._event_type = event_type
        self._handler_ref = handler_ref

    @property
    def active(self) -> bool:
        return self._bus is not None

    def dispose(self) -> None:
        """Detach the handler. Safe to call more than once."""

        bus = self._bus
        if bus is None:
            return
        self._bus = None
        bus._detach(self._event_type, self._handler_ref)


class EventBus(Generic[E]):
    """A typed publish-subscribe bus.

    Bound methods are held through :class:`weakref.WeakMethod` so a
    subscriber that goes away does not linger; plain functions and lambdas
    are held strongly until their subscription is disposed.

    Handler exceptions are logged and the remaining handlers still run,
    except :class:`~inkwell.core.invariants.InvariantViolation`, which
    propagates to the publisher.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> Subscription:
        """Register ``handler`` for events of exactly ``event_type``."""

        handler_ref = _HandlerRef.create(handler)
        self._handlers[event_type].append(handler_ref)
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )
        return Subscription(self, event_type, handler_ref)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler`` for ``event_type``."""

        handlers = self._handlers.get(event_type)
        if handlers is None:
            return
        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Deliver ``event`` synchronously to every live handler."""

        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES
        if not handlers:
            return
        if not is_quiet:
            logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))

        dead: list[_HandlerRef] = []
        # Handlers may subscribe or dispose while we iterate.
        for handler_ref in tuple(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue
            try:
                handler(event)
            except InvariantViolation:
                raise
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
        for handler_ref in dead:
            self._detach(event_type, handler_ref)

    def clear(self) -> None:
        self._handlers.clear()
        logger.debug("Cleared all event handlers")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())

    def _detach(self, event_type: type[Event], handler_ref: _HandlerRef) -> None:
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        for i, candidate in enumerate(handlers):
            if candidate is handler_ref:
                handlers.pop(i)
                return


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                # Some callables can't be weakly referenced
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        cls_name = type(handler.__self__).__name__
        return f"{cls_name}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "HistoryChanged",
    "MutationEndEvent",
    "MutationPartEvent",
    "SelectionChangeEvent",
    "Subscription",
]

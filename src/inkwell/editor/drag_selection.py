"""Pointer-gesture state machine turning clicks and drags into selections.

The gesture logic is a pure :func:`step` function: it takes the current
state value, one input event and the environment, and returns the next state
plus a tuple of effect descriptions. :class:`DragSelectionController` feeds
events into :func:`step` and carries out the effects against a state control,
a scheduler and the host's pointer capture hooks.

Repeated pointer-downs within the click window cycle the granularity
grapheme → word → paragraph → word → paragraph …; Shift extends an existing
selection range instead of replacing, and an Alt press adds a separate cursor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, Callable, Union

from ..core.ranges import (
    CompareResult,
    Selection,
    SelectionRange,
    SelectionRangeData,
    SelectionRangeIntention,
    generate_id,
    next_creation_order,
)
from ..core.selection import (
    PointTransformFn,
    anchor_selection_range,
    covers_same_content,
    focus_selection_range,
    make_selection_range_from_points,
    most_recently_created,
    resolve_overlaps,
)
from .layout import HitPosition, HitTester, ScreenPosition
from .point_transforms import MovementGranularity, PointMovement, make_default_point_transform_fn
from .scheduling import Scheduler, TimerHandle
from .state_control import Snapshot, StateControl

LOGGER = logging.getLogger(__name__)

DEFAULT_CLICK_WINDOW_MS = 400
DEFAULT_DRAG_THRESHOLD_PX = 5


class SelectionGranularity(Enum):
    GRAPHEME = auto()
    WORD = auto()
    PARAGRAPH = auto()


def granularity_for_click_count(count: int) -> SelectionGranularity:
    """1 → grapheme, even → word, odd (≥ 3) → paragraph."""

    if count <= 1:
        return SelectionGranularity.GRAPHEME
    if count % 2 == 0:
        return SelectionGranularity.WORD
    return SelectionGranularity.PARAGRAPH


@dataclass(slots=True, frozen=True)
class ModifierState:
    """Modifier keys held when a gesture step happened.

    ``alt_press_id`` is ``None`` when Alt is up, otherwise an id that stays
    the same for as long as that Alt press lasts.
    """

    shift: bool = False
    alt_press_id: int | None = None


# ----------------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class PointerDown:
    position: ScreenPosition
    timestamp_ms: float
    modifiers: ModifierState = field(default_factory=ModifierState)
    pointer_id: int = 0


@dataclass(slots=True, frozen=True)
class PointerMove:
    position: ScreenPosition
    timestamp_ms: float = 0.0
    pointer_id: int = 0


@dataclass(slots=True, frozen=True)
class PointerUp:
    position: ScreenPosition
    timestamp_ms: float = 0.0
    pointer_id: int = 0


@dataclass(slots=True, frozen=True)
class CancelGesture:
    """Escape, focus loss, or an external interruption such as composition start."""

    restore_selection: bool = True


@dataclass(slots=True, frozen=True)
class TimerElapsed:
    token: int


GestureEvent = Union[PointerDown, PointerMove, PointerUp, CancelGesture, TimerElapsed]


# ----------------------------------------------------------------------------
# Effects
# ----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class SetSelection:
    selection: Selection


@dataclass(slots=True, frozen=True)
class ScheduleTimer:
    token: int
    delay_ms: int


@dataclass(slots=True, frozen=True)
class CancelTimer:
    token: int


@dataclass(slots=True, frozen=True)
class CapturePointer:
    pointer_id: int


@dataclass(slots=True, frozen=True)
class ReleasePointer:
    pointer_id: int


Effect = Union[SetSelection, ScheduleTimer, CancelTimer, CapturePointer, ReleasePointer]


# ----------------------------------------------------------------------------
# State
# ----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class PointInfo:
    """A resolved hit together with the document revision it was resolved against."""

    hit: HitPosition
    snapshot: Snapshot


@dataclass(slots=True, frozen=True)
class ClickCycle:
    count: int
    last_down_ms: float
    last_down_position: ScreenPosition
    timer_token: int | None = None
    moved_past_threshold: bool = False

    @property
    def is_open(self) -> bool:
        return self.timer_token is not None and not self.moved_past_threshold


@dataclass(slots=True, frozen=True)
class DragState:
    start_position: ScreenPosition
    last_position: ScreenPosition
    start_point_info: PointInfo
    last_point_info: PointInfo
    original_selection: Selection
    before_selection: Selection
    granularity: SelectionGranularity
    is_extend: bool
    separate_selection_id: int | None
    pointer_id: int = 0
    moved_past_threshold: bool = False
    dragged_id: str = field(default_factory=generate_id)
    dragged_creation_order: int = field(default_factory=next_creation_order)


@dataclass(slots=True, frozen=True)
class IdleState:
    """No pointer held. ``last_drag`` survives while the click window is open."""

    cycle: ClickCycle | None = None
    last_drag: DragState | None = None
    next_token: int = 1


@dataclass(slots=True, frozen=True)
class PendingState:
    """Pointer held, not yet moved past the drag threshold."""

    drag: DragState
    cycle: ClickCycle
    next_token: int = 1


@dataclass(slots=True, frozen=True)
class DraggingState:
    """Pointer held and moved past the drag threshold."""

    drag: DragState
    cycle: ClickCycle
    next_token: int = 1


GestureState = Union[IdleState, PendingState, DraggingState]


@dataclass(slots=True, frozen=True)
class StepResult:
    state: GestureState
    effects: tuple[Effect, ...] = ()


@dataclass(slots=True)
class DragEnvironment:
    """Everything :func:`step` reads besides the state value."""

    state_control: StateControl
    hit_tester: HitTester
    click_window_ms: int = DEFAULT_CLICK_WINDOW_MS
    drag_threshold_px: float = DEFAULT_DRAG_THRESHOLD_PX
    make_point_transform: Callable[[MovementGranularity, PointMovement], PointTransformFn] = make_default_point_transform_fn

    @property
    def document(self) -> Any:
        return self.state_control.document

    def resolve(self, position: ScreenPosition) -> PointInfo | None:
        hit = self.hit_tester.resolve(position)
        if hit is None:
            return None
        return PointInfo(hit, self.state_control.snapshot())

    def past_threshold(self, origin: ScreenPosition, position: ScreenPosition) -> bool:
        threshold = self.drag_threshold_px
        return origin.squared_distance_to(position) > threshold * threshold

    def move(self, point: Any, granularity: MovementGranularity, movement: PointMovement) -> Any:
        transform = self.make_point_transform(granularity, movement)
        caret = make_selection_range_from_points(self.document, point, point)
        return transform(self.document, SelectionRangeIntention.TEXT, caret.anchor_range, point, caret)


# ----------------------------------------------------------------------------
# Step function
# ----------------------------------------------------------------------------


def step(state: GestureState, event: GestureEvent, env: DragEnvironment) -> StepResult:
    """Advance the gesture by one event."""

    if isinstance(event, PointerDown):
        return _on_pointer_down(state, event, env)
    if isinstance(event, PointerMove):
        return _on_pointer_move(state, event, env)
    if isinstance(event, PointerUp):
        return _on_pointer_up(state, event, env)
    if isinstance(event, CancelGesture):
        return _on_cancel(state, event, env)
    if isinstance(event, TimerElapsed):
        return _on_timer_elapsed(state, event)
    raise TypeError(f"Unsupported gesture event: {event!r}")


def _next_click_count(cycle: ClickCycle | None, event: PointerDown, env: DragEnvironment) -> int:
    if cycle is None or not cycle.is_open:
        return 1
    if event.timestamp_ms - cycle.last_down_ms > env.click_window_ms:
        return 1
    if env.past_threshold(cycle.last_down_position, event.position):
        return 1
    return cycle.count + 1


def _on_pointer_down(state: GestureState, event: PointerDown, env: DragEnvironment) -> StepResult:
    point_info = env.resolve(event.position)
    is_active = not isinstance(state, IdleState)
    count = _next_click_count(state.cycle, event, env)
    granularity = granularity_for_click_count(count)
    is_extend = event.modifiers.shift
    token = state.next_token
    effects: list[Effect] = []
    if state.cycle is not None and state.cycle.timer_token is not None:
        effects.append(CancelTimer(state.cycle.timer_token))
    effects.append(ScheduleTimer(token, env.click_window_ms))
    cycle = ClickCycle(count, event.timestamp_ms, event.position, token)
    LOGGER.debug("Pointer down #%d → %s (extend=%s)", count, granularity.name.lower(), is_extend)

    if is_active:
        drag = replace(state.drag, granularity=granularity, last_position=event.position, is_extend=is_extend)
        if point_info is not None:
            drag = replace(drag, last_point_info=point_info)
            drag, selection_effects = _emit_selection(drag, env)
            effects.extend(selection_effects)
        return StepResult(type(state)(drag, cycle, token + 1), tuple(effects))

    if point_info is None:
        LOGGER.debug("Ignoring pointer down at unresolvable position %s", event.position)
        return StepResult(state)

    effects.insert(0, CapturePointer(event.pointer_id))
    if count > 1 and state.last_drag is not None:
        # Multi-click: keep the first click's anchor and the selection it started from.
        drag = replace(
            state.last_drag,
            start_position=event.position,
            last_position=event.position,
            last_point_info=point_info,
            granularity=granularity,
            is_extend=is_extend,
            pointer_id=event.pointer_id,
            moved_past_threshold=False,
        )
    else:
        selection = env.state_control.selection
        drag = DragState(
            start_position=event.position,
            last_position=event.position,
            start_point_info=point_info,
            last_point_info=point_info,
            original_selection=selection,
            before_selection=selection,
            granularity=granularity,
            is_extend=is_extend,
            separate_selection_id=event.modifiers.alt_press_id,
            pointer_id=event.pointer_id,
        )
    drag, selection_effects = _emit_selection(drag, env)
    effects.extend(selection_effects)
    return StepResult(PendingState(drag, cycle, token + 1), tuple(effects))


def _on_pointer_move(state: GestureState, event: PointerMove, env: DragEnvironment) -> StepResult:
    if isinstance(state, IdleState):
        return StepResult(state)
    effects: list[Effect] = []
    drag = replace(state.drag, last_position=event.position)
    cycle = state.cycle
    next_state_type: type[PendingState] | type[DraggingState] = type(state)
    if env.past_threshold(drag.start_position, event.position):
        if not drag.moved_past_threshold:
            LOGGER.debug("Pointer moved past the drag threshold")
        drag = replace(drag, moved_past_threshold=True)
        if cycle.timer_token is not None:
            effects.append(CancelTimer(cycle.timer_token))
        cycle = replace(cycle, timer_token=None, moved_past_threshold=True)
        next_state_type = DraggingState
    point_info = env.resolve(event.position)
    if point_info is not None:
        drag = replace(drag, last_point_info=point_info)
        drag, selection_effects = _emit_selection(drag, env)
        effects.extend(selection_effects)
    return StepResult(next_state_type(drag, cycle, state.next_token), tuple(effects))


def _on_pointer_up(state: GestureState, event: PointerUp, env: DragEnvironment) -> StepResult:
    if isinstance(state, IdleState):
        return StepResult(state)
    drag = replace(state.drag, last_position=event.position)
    point_info = env.resolve(event.position)
    if point_info is not None:
        drag = replace(drag, last_point_info=point_info)
    drag, effects = _emit_selection(drag, env, end_point_info=point_info)
    effects = (*effects, ReleasePointer(drag.pointer_id))
    return StepResult(IdleState(state.cycle, drag, state.next_token), effects)


def _on_cancel(state: GestureState, event: CancelGesture, env: DragEnvironment) -> StepResult:
    effects: list[Effect] = []
    if state.cycle is not None and state.cycle.timer_token is not None:
        effects.append(CancelTimer(state.cycle.timer_token))
    if isinstance(state, IdleState):
        return StepResult(IdleState(next_token=state.next_token), tuple(effects))
    drag = state.drag
    if event.restore_selection:
        restored = env.state_control.transform_selection_forwards(
            drag.original_selection, drag.start_point_info.snapshot
        )
        effects.insert(0, SetSelection(restored))
    effects.append(ReleasePointer(drag.pointer_id))
    LOGGER.debug("Gesture cancelled (restore=%s)", event.restore_selection)
    return StepResult(IdleState(next_token=state.next_token), tuple(effects))


def _on_timer_elapsed(state: GestureState, event: TimerElapsed) -> StepResult:
    cycle = state.cycle
    if cycle is None or cycle.timer_token != event.token:
        return StepResult(state)
    if isinstance(state, IdleState):
        return StepResult(IdleState(next_token=state.next_token))
    return StepResult(type(state)(state.drag, replace(cycle, timer_token=None), state.next_token))


def _emit_selection(
    drag: DragState,
    env: DragEnvironment,
    *,
    end_point_info: PointInfo | None = None,
) -> tuple[DragState, tuple[Effect, ...]]:
    outcome = calculate_selection(drag, env, end_point_info=end_point_info)
    if outcome is None:
        return drag, ()
    selection, absorbed = outcome
    if absorbed:
        remaining = tuple(item for item in drag.before_selection if item.id not in absorbed)
        drag = replace(drag, before_selection=Selection(remaining))
    return drag, (SetSelection(selection),)


# ----------------------------------------------------------------------------
# Selection calculation
# ----------------------------------------------------------------------------


def calculate_selection(
    drag: DragState,
    env: DragEnvironment,
    *,
    end_point_info: PointInfo | None = None,
) -> tuple[Selection, frozenset[str]] | None:
    """Compute the selection a gesture currently describes.

    Returns the selection plus the ids of selection ranges swallowed by the
    dragged one, or ``None`` when the gesture's points no longer exist.
    """

    state_control = env.state_control
    document = env.document
    start_snapshot = drag.start_point_info.snapshot
    before = state_control.transform_selection_forwards(drag.before_selection, start_snapshot)

    start_point = _current_point(state_control, drag.start_point_info)
    if start_point is None:
        return None
    if end_point_info is not None:
        end_point = _current_point(state_control, end_point_info)
    elif drag.last_point_info is drag.start_point_info:
        end_point = start_point
    else:
        end_point = _current_point(state_control, drag.last_point_info)
    if end_point is None:
        return None
    click_point = start_point
    original_is_wrapped = (end_point_info or drag.last_point_info).hit.is_wrapped_line_start

    target = _extension_target(before, drag.separate_selection_id) if drag.is_extend else None
    if target is not None:
        start_point = target.anchor_point

    if drag.granularity is SelectionGranularity.GRAPHEME:
        is_wrapped = original_is_wrapped
    elif start_point == end_point and _is_empty_paragraph(env, start_point):
        is_wrapped = False
    elif drag.granularity is SelectionGranularity.WORD:
        start_point, end_point, is_wrapped = _expand_to_words(
            env, drag, start_point, end_point, original_is_wrapped
        )
    else:
        start_point, end_point = _expand_to_paragraphs(env, start_point, end_point)
        is_wrapped = False

    data = SelectionRangeData(
        line_wrap_to_next_line=True if is_wrapped else None,
        separate_selection_id=drag.separate_selection_id,
    )
    dragged = make_selection_range_from_points(
        document,
        start_point,
        end_point,
        data=data,
        selection_range_id=target.id if target is not None else drag.dragged_id,
        creation_order=drag.dragged_creation_order,
    )

    if target is not None:
        rest = [item for item in before if item.id != target.id]
        merged = resolve_overlaps(document, [*rest, dragged], target.id)
        return merged.selection, frozenset(merged.absorbed)

    if (
        not drag.moved_past_threshold
        and drag.granularity is SelectionGranularity.GRAPHEME
        and click_point == end_point
        and len(before) > 1
    ):
        kept = tuple(item for item in before if not covers_same_content(document, item, dragged))
        if len(kept) != len(before):
            LOGGER.debug("Click landed on an existing cursor; removing it")
            return Selection(kept), frozenset()

    if drag.separate_selection_id is None:
        return Selection((dragged,)), frozenset()
    merged = resolve_overlaps(document, [*before, dragged], dragged.id)
    return merged.selection, frozenset(merged.absorbed)


def _current_point(state_control: StateControl, point_info: PointInfo) -> Any:
    return state_control.transform_point_forwards(point_info.hit.point, point_info.snapshot)


def _extension_target(before: Selection, separate_selection_id: int | None) -> SelectionRange | None:
    """Range a shift-press extends, or ``None`` when there is nothing to extend."""

    if separate_selection_id is None:
        return anchor_selection_range(before)
    target = most_recently_created(
        before,
        lambda item: item.data.separate_selection_id == separate_selection_id,
    )
    return target if target is not None else focus_selection_range(before)


def _is_empty_paragraph(env: DragEnvironment, point: Any) -> bool:
    return (
        env.move(point, MovementGranularity.PARAGRAPH, PointMovement.PREVIOUS_BOUND_BY_EDGE) == point
        and env.move(point, MovementGranularity.PARAGRAPH, PointMovement.NEXT_BOUND_BY_EDGE) == point
    )


def _is_after(env: DragEnvironment, point1: Any, point2: Any) -> bool:
    return env.document.compare_points(point1, point2) is CompareResult.AFTER


def _expand_to_words(
    env: DragEnvironment,
    drag: DragState,
    start_point: Any,
    end_point: Any,
    original_is_wrapped: bool,
) -> tuple[Any, Any, bool]:
    is_backward = _is_after(env, start_point, end_point)
    first, second = (end_point, start_point) if is_backward else (start_point, end_point)
    original_first, original_second = first, second

    first = env.move(first, MovementGranularity.WORD_BOUNDARY, PointMovement.PREVIOUS_BOUND_BY_EDGE)
    if first == second and first == original_first:
        # Collapsed on a boundary: grow towards the half of the character that was hit.
        try_forwards = True
        if drag.start_point_info.hit.is_past_previous_character_half_point:
            first = env.move(first, MovementGranularity.WORD_BOUNDARY, PointMovement.PREVIOUS)
            try_forwards = first == second
        if try_forwards:
            second = env.move(second, MovementGranularity.WORD_BOUNDARY, PointMovement.NEXT)
    else:
        second = env.move(second, MovementGranularity.WORD_BOUNDARY, PointMovement.NEXT_BOUND_BY_EDGE)

    if is_backward and first == env.move(second, MovementGranularity.WORD_BOUNDARY, PointMovement.PREVIOUS):
        is_backward = False
    if is_backward:
        is_wrapped = original_is_wrapped and original_first == first
    else:
        is_wrapped = original_is_wrapped and original_second == second
    if is_backward:
        return second, first, is_wrapped
    return first, second, is_wrapped


def _expand_to_paragraphs(env: DragEnvironment, start_point: Any, end_point: Any) -> tuple[Any, Any]:
    is_backward = _is_after(env, start_point, end_point)
    first, second = (end_point, start_point) if is_backward else (start_point, end_point)
    first = env.move(first, MovementGranularity.PARAGRAPH, PointMovement.PREVIOUS_BOUND_BY_EDGE)
    second = env.move(second, MovementGranularity.PARAGRAPH, PointMovement.NEXT_BOUND_BY_EDGE)
    same_paragraph = first == env.move(second, MovementGranularity.PARAGRAPH, PointMovement.PREVIOUS_BOUND_BY_EDGE)
    if is_backward and same_paragraph:
        is_backward = False
    if is_backward:
        return second, first
    return first, second


# ----------------------------------------------------------------------------
# Controller
# ----------------------------------------------------------------------------


class DragSelectionController:
    """Runs the gesture state machine and applies its effects."""

    def __init__(
        self,
        state_control: StateControl,
        hit_tester: HitTester,
        scheduler: Scheduler,
        *,
        click_window_ms: int = DEFAULT_CLICK_WINDOW_MS,
        drag_threshold_px: float = DEFAULT_DRAG_THRESHOLD_PX,
        capture_pointer: Callable[[int], None] | None = None,
        release_pointer: Callable[[int], None] | None = None,
    ) -> None:
        self._state_control = state_control
        self._scheduler = scheduler
        self._environment = DragEnvironment(
            state_control=state_control,
            hit_tester=hit_tester,
            click_window_ms=click_window_ms,
            drag_threshold_px=drag_threshold_px,
        )
        self._capture_pointer = capture_pointer
        self._release_pointer = release_pointer
        self._state: GestureState = IdleState()
        self._timers: dict[int, TimerHandle] = {}

    @property
    def state(self) -> GestureState:
        return self._state

    @property
    def environment(self) -> DragEnvironment:
        return self._environment

    @property
    def is_gesture_active(self) -> bool:
        return not isinstance(self._state, IdleState)

    @property
    def is_dragging(self) -> bool:
        return isinstance(self._state, DraggingState)

    def pointer_down(self, event: PointerDown) -> None:
        self.dispatch(event)

    def pointer_move(self, event: PointerMove) -> None:
        self.dispatch(event)

    def pointer_up(self, event: PointerUp) -> None:
        self.dispatch(event)

    def cancel(self, *, restore_selection: bool = True) -> None:
        self.dispatch(CancelGesture(restore_selection=restore_selection))

    def dispatch(self, event: GestureEvent) -> None:
        result = step(self._state, event, self._environment)
        self._state = result.state
        for effect in result.effects:
            self._apply(effect)

    def dispose(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        if self.is_gesture_active:
            self._release(self._state.drag.pointer_id)  # type: ignore[union-attr]
        self._state = IdleState()

    def _apply(self, effect: Effect) -> None:
        if isinstance(effect, SetSelection):
            selection = effect.selection
            self._state_control.queue_update(lambda delta: delta.set_selection(selection))
        elif isinstance(effect, ScheduleTimer):
            token = effect.token
            self._timers[token] = self._scheduler.call_later(
                effect.delay_ms, lambda: self._on_timer(token)
            )
        elif isinstance(effect, CancelTimer):
            handle = self._timers.pop(effect.token, None)
            if handle is not None:
                handle.cancel()
        elif isinstance(effect, CapturePointer):
            if self._capture_pointer is not None:
                self._capture_pointer(effect.pointer_id)
        elif isinstance(effect, ReleasePointer):
            self._release(effect.pointer_id)
        else:  # pragma: no cover - exhaustive over Effect
            raise TypeError(f"Unsupported gesture effect: {effect!r}")

    def _on_timer(self, token: int) -> None:
        self._timers.pop(token, None)
        self.dispatch(TimerElapsed(token))

    def _release(self, pointer_id: int) -> None:
        if self._release_pointer is not None:
            self._release_pointer(pointer_id)


__all__ = [
    "CancelGesture",
    "CancelTimer",
    "CapturePointer",
    "ClickCycle",
    "DEFAULT_CLICK_WINDOW_MS",
    "DEFAULT_DRAG_THRESHOLD_PX",
    "DragEnvironment",
    "DragSelectionController",
    "DragState",
    "DraggingState",
    "Effect",
    "GestureEvent",
    "GestureState",
    "IdleState",
    "ModifierState",
    "PendingState",
    "PointInfo",
    "PointerDown",
    "PointerMove",
    "PointerUp",
    "ReleasePointer",
    "ScheduleTimer",
    "SelectionGranularity",
    "SetSelection",
    "StepResult",
    "TimerElapsed",
    "calculate_selection",
    "granularity_for_click_count",
    "step",
]

"""Interactive drag/resize sessions for projects, phases and holidays.

State machine: idle -> dragging -> committing -> idle, with dragging -> idle
on cancellation. Only one session exists at a time.

While dragging, every pointer move turns a pixel delta into whole days and
tentative dates. Visual recompute (estimates and row layout) is throttled to
one per frame. Provisional dates may be written through silently at a coarser
interval; those writes are fire-and-forget and their failures only logged.

On release the final dates are validated (holiday overlap, phase rules) and
committed with a confirmed write. A failed validation or commit rolls the
entity back to its original dates.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import timedelta
from enum import Enum
from typing import Union

from planline.exceptions import DragStateError, StorageError
from planline.holidays import validate_holiday_placement
from planline.logger import get_logger
from planline.models import DateRange, Holiday, Persisted, Phase, Project

from .config import EngineConfig, TimelineMode
from .core import (
    DayEstimate,
    EntityType,
    PlanSnapshot,
    RowLayout,
    ValidationResult,
)
from .estimates import compute_day_estimates
from .layout import layout_rows
from .overrides import WeekOverrideStore
from .protocols import PlanningRepository
from .throttle import Throttle
from .validator import validate_phase

logger = get_logger()

DraggableEntity = Union[Project, Phase, Holiday]


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"


class DragAction(str, Enum):
    MOVE = "move"
    RESIZE_START = "resize-start"
    RESIZE_END = "resize-end"


class DragOutcome(str, Enum):
    COMMITTED = "committed"
    UNCHANGED = "unchanged"  # Released without net movement
    REJECTED = "rejected"  # Final validation failed
    FAILED = "failed"  # Final commit raised StorageError
    CANCELLED = "cancelled"


@dataclass
class DragFrame:
    """Visual feedback for one recompute during a drag."""

    tentative: DateRange
    day_delta: int
    estimates: dict[str, list[DayEstimate]]  # project_id -> estimates over its window
    layout: RowLayout | None = None


FrameListener = Callable[[DragFrame], None]


def _default_listeners() -> list[FrameListener]:
    return []


def _default_str_list() -> list[str]:
    return []


@dataclass
class DragSession:
    """The single active drag."""

    entity: DraggableEntity  # As it was when the drag began
    action: DragAction
    snapshot: PlanSnapshot
    mode: TimelineMode = TimelineMode.DAYS
    day_delta: int = 0
    tentative: DateRange | None = None
    proposed: bool = False  # A silent write-through has been issued
    last_frame: DragFrame | None = None
    listeners: list[FrameListener] = field(default_factory=_default_listeners)

    @property
    def original(self) -> DateRange:
        return DateRange(self.entity.start_date, self.entity.end_date)

    @property
    def entity_type(self) -> EntityType:
        return entity_type_of(self.entity)


@dataclass
class DragResult:
    """How a drag session ended. final holds the dates to display afterwards."""

    outcome: DragOutcome
    entity_type: EntityType
    entity_id: str
    original: DateRange
    final: DateRange
    confirmed: bool = False  # User-facing confirmation of a committed write
    reasons: list[str] = field(default_factory=_default_str_list)
    suggestion: DateRange | None = None  # Non-conflicting dates for a rejected holiday

    @property
    def succeeded(self) -> bool:
        return self.outcome in (DragOutcome.COMMITTED, DragOutcome.UNCHANGED)


def entity_type_of(entity: DraggableEntity) -> EntityType:
    if isinstance(entity, Project):
        return EntityType.PROJECT
    if isinstance(entity, Phase):
        return EntityType.PHASE
    if isinstance(entity, Holiday):
        return EntityType.HOLIDAY
    raise DragStateError(f"Cannot drag {type(entity).__name__}")


def apply_delta(original: DateRange, action: DragAction, day_delta: int) -> DateRange:
    """Tentative dates for an action; resizing never inverts the range."""
    delta = timedelta(days=day_delta)
    if action == DragAction.MOVE:
        return original.shift(day_delta)
    if action == DragAction.RESIZE_START:
        return DateRange(min(original.start + delta, original.end), original.end)
    return DateRange(original.start, max(original.end + delta, original.start))


def with_dates(entity: DraggableEntity, dates: DateRange) -> DraggableEntity:
    return replace(entity, start_date=dates.start, end_date=dates.end)


class DragCoordinator:
    """Coordinates one drag session at a time against a repository."""

    def __init__(
        self,
        repository: PlanningRepository,
        config: EngineConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        overrides: WeekOverrideStore | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            repository: Storage for silent and committed writes
            config: Engine configuration (drag widths and intervals)
            clock: Monotonic clock in seconds, used for throttling
            overrides: Optional week overrides consulted by visual recompute
        """
        self.repository = repository
        self.config = config or EngineConfig()
        self.clock = clock
        self.overrides = overrides
        self.state = DragState.IDLE
        self.session: DragSession | None = None
        self.last_result: DragResult | None = None
        self._frame_throttle = Throttle(self.config.drag.frame_interval_ms, clock)
        self._persist_throttle = Throttle(self.config.drag.persist_interval_ms, clock)
        self._pending_writes: set[asyncio.Task[None]] = set()

    # Session lifecycle

    def begin_drag(
        self,
        entity: DraggableEntity,
        action: DragAction | str,
        snapshot: PlanSnapshot,
        mode: TimelineMode = TimelineMode.DAYS,
        listener: FrameListener | None = None,
    ) -> DragSession:
        """Start dragging an entity. Fails if another drag is in progress."""
        if self.state != DragState.IDLE:
            raise DragStateError(f"Cannot begin a drag while {self.state.value}")
        entity_type_of(entity)
        session = DragSession(
            entity=entity, action=DragAction(action), snapshot=snapshot, mode=mode
        )
        session.tentative = session.original
        if listener is not None:
            session.listeners.append(listener)

        drag_config = self.config.drag
        persist_ms = (
            drag_config.weeks_persist_interval_ms
            if mode == TimelineMode.WEEKS
            else drag_config.persist_interval_ms
        )
        self._frame_throttle = Throttle(drag_config.frame_interval_ms, self.clock)
        self._persist_throttle = Throttle(persist_ms, self.clock)
        self.session = session
        self.state = DragState.DRAGGING
        logger.checks(
            f"Drag start: {session.entity_type.value} '{entity.id}' "
            f"{session.action.value} from {session.original}"
        )
        return session

    def add_listener(self, listener: FrameListener) -> None:
        self._require_state(DragState.DRAGGING)
        assert self.session is not None
        self.session.listeners.append(listener)

    def day_delta(self, pixel_delta: float, mode: TimelineMode = TimelineMode.DAYS) -> int:
        """Convert a horizontal pixel offset into whole days."""
        drag_config = self.config.drag
        day_width = (
            drag_config.week_width_px / 7
            if mode == TimelineMode.WEEKS
            else drag_config.day_width_px
        )
        return round(pixel_delta / day_width)

    def update_drag(self, pixel_delta: float) -> DragFrame | None:
        """Handle a pointer move with the total pixel offset since the drag began.

        Returns:
            The recomputed frame, or None when throttled
        """
        self._require_state(DragState.DRAGGING)
        session = self.session
        assert session is not None

        day_delta = self.day_delta(pixel_delta, session.mode)
        if day_delta == session.day_delta:
            # Same dates; deliver whatever an earlier throttled move held back
            if self._persist_throttle.has_pending and self._persist_throttle.ready():
                self._persist_throttle.flush()
            if self._frame_throttle.has_pending and self._frame_throttle.ready():
                return self.flush_frame()
            return None
        session.day_delta = day_delta
        session.tentative = apply_delta(session.original, session.action, day_delta)

        if self.config.drag.write_through:
            self._persist_throttle.call(self._propose_tentative, session)

        if self._frame_throttle.call(self._render, session):
            return session.last_frame
        logger.checks(f"  Frame throttled at delta {day_delta}")
        return None

    def flush_frame(self) -> DragFrame | None:
        """Render the frame held back by throttling, if any.

        Meant to be called once per animation frame so the last pointer
        position is always drawn, even when no further move arrives.
        """
        if self.state != DragState.DRAGGING or self.session is None:
            return None
        if self._frame_throttle.flush():
            return self.session.last_frame
        return None

    async def end_drag(self, pixel_delta: float | None = None) -> DragResult | None:
        """Release the pointer: validate and commit the final dates.

        A call with no active drag (e.g. a repeated release) does nothing
        and returns None.
        """
        if self.state != DragState.DRAGGING or self.session is None:
            return None
        session = self.session
        if pixel_delta is not None:
            session.day_delta = self.day_delta(pixel_delta, session.mode)
            session.tentative = apply_delta(session.original, session.action, session.day_delta)
        self.state = DragState.COMMITTING

        try:
            await self._drain_pending_writes()
            result = await self._commit(session)
        finally:
            self._clear()
        self.last_result = result
        return result

    def cancel_drag(self) -> DragResult | None:
        """Abort the drag. Always clears the session and its listeners."""
        session = self.session
        self._clear()
        if session is None:
            return None
        if session.proposed:
            self._propose(session.entity)  # Undo silent write-through
        logger.checks(f"Drag cancelled: {session.entity_type.value} '{session.entity.id}'")
        result = DragResult(
            outcome=DragOutcome.CANCELLED,
            entity_type=session.entity_type,
            entity_id=session.entity.id,
            original=session.original,
            final=session.original,
        )
        self.last_result = result
        return result

    # Internals

    def _require_state(self, state: DragState) -> None:
        if self.state != state:
            raise DragStateError(f"Expected drag state {state.value}, got {self.state.value}")

    def _clear(self) -> None:
        if self.session is not None:
            self.session.listeners.clear()
        self.session = None
        self.state = DragState.IDLE
        self._frame_throttle.reset()
        self._persist_throttle.reset()

    def _render(self, session: DragSession) -> DragFrame:
        assert session.tentative is not None
        moved = with_dates(session.entity, session.tentative)
        snapshot = session.snapshot.with_entity(moved)
        horizon = self.config.recurrence.continuous_horizon_days

        if isinstance(moved, Project):
            affected = [moved]
        elif isinstance(moved, Phase):
            project = snapshot.project(moved.project_id)
            affected = [project] if project else []
        else:
            span = DateRange(
                min(session.original.start, session.tentative.start),
                max(session.original.end, session.tentative.end),
            )
            affected = [p for p in snapshot.projects if p.window(horizon).overlaps(span)]

        estimates = {
            project.id: compute_day_estimates(
                project,
                snapshot.phases_for(project.id),
                snapshot.weekly_hours,
                snapshot.holidays,
                snapshot.events_for(project.id),
                project.window(horizon),
                config=self.config,
                overrides=self.overrides,
            )
            for project in affected
        }
        layout = None
        if isinstance(moved, Project):
            group = [p for p in snapshot.projects if p.group_id == moved.group_id]
            layout = layout_rows(group, self.config.layout, moved.group_id)

        frame = DragFrame(session.tentative, session.day_delta, estimates, layout)
        session.last_frame = frame
        for listener in list(session.listeners):
            listener(frame)
        return frame

    async def _silent_write(self, entity: DraggableEntity) -> None:
        try:
            await self.repository.propose_write(entity)
        except StorageError as e:
            logger.warning(f"Silent write of '{entity.id}' failed: {e}")

    def _propose_tentative(self, session: DragSession) -> None:
        assert session.tentative is not None
        session.proposed = True
        self._propose(with_dates(session.entity, session.tentative))

    def _propose(self, entity: DraggableEntity) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.checks(f"  No event loop; skipping silent write of '{entity.id}'")
            return
        task = loop.create_task(self._silent_write(entity))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _drain_pending_writes(self) -> None:
        # The final write must land after every provisional one
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes))

    def _validate(
        self, session: DragSession, moved: DraggableEntity
    ) -> tuple[ValidationResult, DateRange | None]:
        snapshot = session.snapshot
        if isinstance(moved, Holiday):
            placement = validate_holiday_placement(
                Persisted(moved),
                snapshot.holidays,
                exclude_id=moved.id,
                keep_duration=session.action == DragAction.MOVE,
            )
            return ValidationResult(placement.is_valid, placement.reasons), placement.suggestion
        if isinstance(moved, Phase):
            project = snapshot.project(moved.project_id)
            if project is None:
                return ValidationResult(False, [f"Project '{moved.project_id}' not found"]), None
            return validate_phase(moved, project, snapshot.phases_for(project.id)), None
        if not moved.continuous and moved.end_date < moved.start_date:
            return ValidationResult(False, ["Project end must not be before its start"]), None
        return ValidationResult(True), None

    async def _commit(self, session: DragSession) -> DragResult:
        assert session.tentative is not None
        result = DragResult(
            outcome=DragOutcome.UNCHANGED,
            entity_type=session.entity_type,
            entity_id=session.entity.id,
            original=session.original,
            final=session.original,
        )

        if session.tentative == session.original:
            if session.proposed:
                await self._silent_write(session.entity)
            logger.checks(f"Drag of '{session.entity.id}' released without movement")
            return result

        moved = with_dates(session.entity, session.tentative)
        validation, suggestion = self._validate(session, moved)
        if not validation.is_valid:
            if session.proposed:
                await self._silent_write(session.entity)
            logger.changes(
                f"Rejected drag of {result.entity_type.value} '{moved.id}' to "
                f"{session.tentative}: {'; '.join(validation.reasons)}"
            )
            result.outcome = DragOutcome.REJECTED
            result.reasons = validation.reasons
            result.suggestion = suggestion
            return result

        try:
            await self.repository.commit_write(moved)
        except StorageError as e:
            logger.error(f"Commit of {result.entity_type.value} '{moved.id}' failed: {e}")
            if session.proposed:
                await self._silent_write(session.entity)
            result.outcome = DragOutcome.FAILED
            result.reasons = [str(e)]
            return result

        logger.changes(
            f"Moved {result.entity_type.value} '{moved.id}': "
            f"{session.original} -> {session.tentative}"
        )
        result.outcome = DragOutcome.COMMITTED
        result.final = session.tentative
        result.confirmed = True
        return result

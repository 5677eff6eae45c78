"""High-level planning service."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import date

from planline.exceptions import HolidayOverlapError, StorageError, ValidationError
from planline.holidays import find_overlapping_holidays, validate_holiday_placement
from planline.logger import get_logger
from planline.models import DateRange, Draft, Holiday, Persisted, Phase, Project, unwrap

from .budget import simulate, validate_allocation
from .config import EngineConfig
from .core import (
    BudgetValidation,
    ChangeNotification,
    ChangeOperation,
    DayEstimate,
    EntityType,
    Occurrence,
    PlanSnapshot,
    RowLayout,
)
from .drag import DragCoordinator
from .estimates import compute_day_estimates
from .layout import layout_groups
from .overrides import WeekOverrideStore
from .protocols import PlanningRepository
from .recurrence import expand_for_project
from .validator import check_recurring_exclusivity, validate_phase, validate_phase_window

logger = get_logger()


class PlanningService:
    """Reads planning state from a repository and runs the engine over it.

    The repository is always authoritative: every operation reads the latest
    state, and change notifications refresh the cached snapshot by re-reading
    the affected entity, so duplicate or reordered notifications are harmless.
    """

    def __init__(
        self,
        repository: PlanningRepository,
        config: EngineConfig | None = None,
        overrides: WeekOverrideStore | None = None,
        today: date | None = None,
    ):
        """Initialize planning service.

        Args:
            repository: Storage backend
            config: Optional engine configuration
            overrides: Optional week override store; one is created if omitted
            today: Reference date for auto-estimates (none means whole window)
        """
        self.repository = repository
        self.config = config or EngineConfig()
        self.overrides = overrides or WeekOverrideStore()
        self.today = today
        self.snapshot_cache: PlanSnapshot | None = None
        self.pending: list[ChangeNotification] = []
        self._unsubscribe: Callable[[], None] | None = None

    # Reading state

    async def snapshot(self) -> PlanSnapshot:
        """Read every entity from the repository and cache the result."""
        projects = await self.repository.list_projects()
        phases: list[Phase] = []
        for project in projects:
            phases.extend(await self.repository.find_phases_by_project(project.id))
        self.snapshot_cache = PlanSnapshot(
            projects=projects,
            phases=phases,
            holidays=await self.repository.list_holidays(),
            events=await self.repository.list_events(),
            weekly_hours=await self.repository.get_weekly_hours(),
        )
        self.pending.clear()
        return self.snapshot_cache

    async def _require_project(self, project_id: str) -> Project:
        project = await self.repository.get_project(project_id)
        if project is None:
            raise StorageError(f"project '{project_id}' not found")
        return project

    # Engine outputs

    async def day_estimates(
        self, project_id: str, date_range: DateRange | None = None
    ) -> list[DayEstimate]:
        """Day estimates for a project, over its whole window by default."""
        project = await self._require_project(project_id)
        window = project.window(self.config.recurrence.continuous_horizon_days)
        return compute_day_estimates(
            project,
            await self.repository.find_phases_by_project(project_id),
            await self.repository.get_weekly_hours(),
            await self.repository.list_holidays(),
            await self.repository.list_events(project_id),
            date_range or window,
            today=self.today,
            config=self.config,
            overrides=self.overrides,
        )

    async def budget(
        self, project_id: str, exclude_phase_id: str | None = None
    ) -> BudgetValidation:
        project = await self._require_project(project_id)
        phases = await self.repository.find_phases_by_project(project_id)
        return validate_allocation(phases, project.estimated_hours, exclude_phase_id)

    async def simulate_budget(
        self, project_id: str, phase_id: str, hours: float
    ) -> BudgetValidation:
        """What-if budget check for changing one phase's hours."""
        project = await self._require_project(project_id)
        phases = await self.repository.find_phases_by_project(project_id)
        return simulate(phases, project.estimated_hours, phase_id, hours)

    async def layout(self, group_id: str | None = None) -> dict[str, RowLayout]:
        projects = await self.repository.list_projects(group_id)
        return layout_groups(projects, self.config.layout)

    async def occurrences(self, phase_id: str) -> list[Occurrence]:
        phase = await self.repository.get_phase(phase_id)
        if phase is None:
            raise StorageError(f"phase '{phase_id}' not found")
        if not phase.is_recurring:
            return [Occurrence(0, phase.start_date, phase.end_date)]
        project = await self._require_project(phase.project_id)
        return expand_for_project(phase, project, self.config.recurrence)

    # Validated saves

    async def _save_phase(self, phase: Phase, is_new: bool) -> Persisted[Phase]:
        project = await self._require_project(phase.project_id)
        existing = await self.repository.find_phases_by_project(phase.project_id)
        result = validate_phase(phase, project, existing)
        if not result.is_valid:
            raise ValidationError(f"Phase '{phase.name or phase.id}' is invalid", result.reasons)
        for warning in result.warnings:
            logger.warning(warning)
        if is_new:
            saved = await self.repository.create_phase(phase)
            logger.changes(f"Created phase '{saved.id}' in project '{project.id}'")
        else:
            saved = await self.repository.update_phase(phase)
            logger.changes(f"Updated phase '{saved.id}'")
        return Persisted(saved)

    async def create_phase(self, draft: Draft[Phase]) -> Persisted[Phase]:
        """Validate and create a phase held locally as a draft.

        Raises:
            ValidationError: If any phase rule fails
        """
        return await self._save_phase(draft.entity, is_new=True)

    async def update_phase(self, phase: Persisted[Phase] | Phase) -> Persisted[Phase]:
        return await self._save_phase(unwrap(phase), is_new=False)

    async def save_holiday(
        self, holiday: Draft[Holiday] | Persisted[Holiday], accept_adjustment: bool = False
    ) -> Persisted[Holiday]:
        """Validate and save a holiday.

        Args:
            holiday: Draft to create or persisted holiday to update
            accept_adjustment: Apply the suggested non-conflicting dates on overlap

        Raises:
            HolidayOverlapError: On overlap without an accepted adjustment
            ValidationError: On any other rule failure
        """
        candidate = unwrap(holiday)
        existing = await self.repository.list_holidays()
        placement = validate_holiday_placement(holiday, existing, exclude_id=candidate.id)
        if placement.conflicts:
            if not accept_adjustment or placement.suggestion is None:
                raise HolidayOverlapError(
                    placement.message, placement.reasons, suggestion=placement.suggestion
                )
            candidate = replace(
                candidate,
                start_date=placement.suggestion.start,
                end_date=placement.suggestion.end,
            )
            logger.changes(f"Adjusted holiday '{candidate.title}' to {placement.suggestion}")
            placement = validate_holiday_placement(candidate, existing, exclude_id=candidate.id)
        if not placement.is_valid:
            raise ValidationError(f"Holiday '{candidate.title}' is invalid", placement.reasons)

        if holiday.is_persisted:
            saved = await self.repository.update_holiday(candidate)
        else:
            saved = await self.repository.create_holiday(candidate)
        logger.changes(f"Saved holiday '{saved.title}' {saved.range}")
        return Persisted(saved)

    # Plan-wide checks

    async def check_plan(self) -> list[str]:
        """Collect every rule violation in the current plan."""
        snapshot = await self.snapshot()
        violations: list[str] = []

        for holiday in snapshot.holidays:
            later = [
                h
                for h in snapshot.holidays
                if (h.start_date, h.id) > (holiday.start_date, holiday.id)
            ]
            for other in find_overlapping_holidays(holiday, later):
                violations.append(f"Holiday '{holiday.title}' overlaps '{other.title}'")

        for project in snapshot.projects:
            phases = snapshot.phases_for(project.id)
            for phase in phases:
                for reason in validate_phase_window(phase, project).reasons:
                    violations.append(f"{project.id}/{phase.id}: {reason}")
                for reason in check_recurring_exclusivity(phase, phases).reasons:
                    violations.append(f"{project.id}/{phase.id}: {reason}")
            budget = validate_allocation(phases, project.estimated_hours)
            violations.extend(f"{project.id}: {reason}" for reason in budget.reasons)

        logger.checks(f"Plan check found {len(violations)} violation(s)")
        return violations

    # Interaction

    def drag_coordinator(self) -> DragCoordinator:
        return DragCoordinator(self.repository, self.config, overrides=self.overrides)

    # Change notifications

    def listen(self) -> None:
        """Queue repository change notifications for apply_pending()."""
        if self._unsubscribe is None:
            self._unsubscribe = self.repository.subscribe(self.pending.append)

    async def handle_notification(self, notification: ChangeNotification) -> None:
        """Refresh the cached snapshot for one change by re-reading the entity."""
        if self.snapshot_cache is None:
            await self.snapshot()
            return
        cache = self.snapshot_cache
        entity_id = notification.entity_id
        entity_type = notification.entity_type
        logger.checks(
            f"  Change: {entity_type.value} '{entity_id}' {notification.operation.value}"
        )

        if entity_type == EntityType.PROJECT:
            project = await self.repository.get_project(entity_id)
            cache.projects = [p for p in cache.projects if p.id != entity_id]
            cache.phases = [p for p in cache.phases if p.project_id != entity_id]
            if project is not None:
                cache.projects.append(project)
                cache.phases.extend(await self.repository.find_phases_by_project(entity_id))
            cache.projects.sort(key=lambda p: (p.start_date, p.id))
        elif entity_type == EntityType.PHASE:
            phase = await self.repository.get_phase(entity_id)
            cache.phases = [p for p in cache.phases if p.id != entity_id]
            if phase is not None:
                cache.phases.append(phase)
        elif entity_type == EntityType.HOLIDAY:
            holiday = await self.repository.get_holiday(entity_id)
            cache.holidays = [h for h in cache.holidays if h.id != entity_id]
            if holiday is not None:
                cache.holidays.append(holiday)
                cache.holidays.sort(key=lambda h: (h.start_date, h.id))
        elif entity_type == EntityType.EVENT:
            cache.events = await self.repository.list_events()
        elif entity_type == EntityType.SETTINGS:
            cache.weekly_hours = await self.repository.get_weekly_hours()

        if notification.operation == ChangeOperation.DELETE and entity_type == EntityType.PHASE:
            self.overrides.clear(entity_id)

    async def apply_pending(self) -> int:
        """Apply queued notifications. Returns how many were handled."""
        handled = 0
        while self.pending:
            await self.handle_notification(self.pending.pop(0))
            handled += 1
        return handled

    def close(self) -> None:
        """Stop listening and tear down the override store."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.overrides.close()

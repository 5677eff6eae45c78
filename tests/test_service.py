"""Tests for the planning service and the in-memory repository."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import date
from io import StringIO

import pytest

from planline.engine.core import ChangeNotification, ChangeOperation, EntityType, WriteMode
from planline.engine.drag import DragCoordinator
from planline.engine.repository import InMemoryRepository
from planline.engine.service import PlanningService
from planline.exceptions import HolidayOverlapError, StorageError, ValidationError
from planline.logger import setup_logger
from planline.models import (
    DateRange,
    Draft,
    Holiday,
    Persisted,
    Phase,
    Project,
    RecurringConfig,
    Weekday,
    WeeklyRecurrence,
)

NEW_YEAR = Holiday("ny", date(2025, 1, 1), date(2025, 1, 3), "New Year")


async def make_service(project: Project, phases: list[Phase]) -> PlanningService:
    repository = InMemoryRepository()
    await repository.create_project(project)
    for phase in phases:
        await repository.create_phase(phase)
    await repository.create_holiday(NEW_YEAR)
    return PlanningService(repository)


class TestRepository:
    """Test the in-memory repository."""

    def test_copies_in_and_out(self, project: Project) -> None:
        async def scenario() -> Project | None:
            repository = InMemoryRepository()
            await repository.create_project(project)
            fetched = await repository.get_project("alpha")
            assert fetched is not None
            fetched.name = "Changed"
            return await repository.get_project("alpha")

        stored = asyncio.run(scenario())
        assert stored is not None
        assert stored.name == "Alpha"

    def test_assigns_ids(self) -> None:
        holiday = Holiday("", date(2025, 2, 1), date(2025, 2, 1), "Day off")
        saved = asyncio.run(InMemoryRepository().create_holiday(holiday))
        assert saved.id.startswith("holiday-")

    def test_duplicate_and_missing_ids(self, project: Project, phase: Phase) -> None:
        async def scenario() -> None:
            repository = InMemoryRepository()
            await repository.create_project(project)
            with pytest.raises(StorageError):
                await repository.create_project(project)
            with pytest.raises(StorageError):
                await repository.update_phase(phase)
            with pytest.raises(StorageError):
                await repository.create_phase(replace(phase, project_id="missing"))

        asyncio.run(scenario())

    def test_delete_project_cascades(self, project: Project, phase: Phase) -> None:
        async def scenario() -> tuple:
            repository = InMemoryRepository()
            await repository.create_project(project)
            await repository.create_phase(phase)
            await repository.delete_project("alpha")
            return await repository.get_phase("design"), repository.write_log

        stored, write_log = asyncio.run(scenario())
        assert stored is None
        assert [(r.entity_type, r.operation) for r in write_log[-2:]] == [
            (EntityType.PROJECT, ChangeOperation.DELETE),
            (EntityType.PHASE, ChangeOperation.DELETE),
        ]

    def test_notifications_and_unsubscribe(self, project: Project) -> None:
        received: list[ChangeNotification] = []

        async def scenario() -> None:
            repository = InMemoryRepository()
            unsubscribe = repository.subscribe(received.append)
            await repository.create_project(project)
            await repository.propose_write(project)
            unsubscribe()
            await repository.delete_project("alpha")

        asyncio.run(scenario())
        assert received == [
            ChangeNotification(EntityType.PROJECT, "alpha", ChangeOperation.CREATE),
            ChangeNotification(EntityType.PROJECT, "alpha", ChangeOperation.UPDATE),
        ]

    def test_propose_and_commit_writes(self, project: Project) -> None:
        async def scenario() -> tuple:
            repository = InMemoryRepository()
            await repository.create_project(project)
            moved = replace(project, end_date=date(2025, 1, 24))
            await repository.propose_write(moved)
            await repository.commit_write(moved)
            stored = await repository.get_project("alpha")
            return stored, repository.write_log

        stored, write_log = asyncio.run(scenario())
        assert stored.end_date == date(2025, 1, 24)
        assert [r.mode for r in write_log[-2:]] == [WriteMode.PROPOSE, WriteMode.COMMIT]

    def test_propose_unknown_entity_fails(self, project: Project) -> None:
        with pytest.raises(StorageError):
            asyncio.run(InMemoryRepository().propose_write(project))


class TestQueries:
    """Test engine outputs through the service."""

    def test_day_estimates(self, project: Project, phase: Phase) -> None:
        async def scenario() -> list:
            service = await make_service(project, [phase])
            return await service.day_estimates("alpha")

        estimates = asyncio.run(scenario())
        assert sum(e.hours for e in estimates) == pytest.approx(40)

    def test_day_estimates_with_today(self, project: Project) -> None:
        async def scenario() -> list:
            service = await make_service(project, [])
            service.today = date(2025, 1, 16)
            return await service.day_estimates(
                "alpha", DateRange(date(2025, 1, 16), date(2025, 1, 17))
            )

        estimates = asyncio.run(scenario())
        assert [e.hours for e in estimates] == [20.0, 20.0]

    def test_unknown_project(self) -> None:
        service = PlanningService(InMemoryRepository())
        with pytest.raises(StorageError):
            asyncio.run(service.budget("missing"))

    def test_budget_and_simulation(self, project: Project, phase: Phase) -> None:
        async def scenario() -> tuple:
            service = await make_service(project, [phase])
            budget = await service.budget("alpha")
            return budget, await service.simulate_budget("alpha", "design", 50)

        budget, what_if = asyncio.run(scenario())
        assert budget.is_valid
        assert budget.remaining == 24
        assert not what_if.is_valid
        assert what_if.overage_hours == 10

    def test_occurrences(self, project: Project, phase: Phase) -> None:
        template = replace(
            phase, id="standup", recurring=RecurringConfig(WeeklyRecurrence(Weekday.MONDAY))
        )

        async def scenario() -> tuple:
            service = await make_service(project, [phase])
            await service.repository.create_phase(template)
            return await service.occurrences("design"), await service.occurrences("standup")

        single, recurring = asyncio.run(scenario())
        assert [o.range for o in single] == [DateRange(date(2025, 1, 6), date(2025, 1, 10))]
        assert [o.start_date for o in recurring] == [date(2025, 1, 6), date(2025, 1, 13)]

    def test_layout(self, project: Project) -> None:
        async def scenario() -> dict:
            service = await make_service(project, [])
            await service.repository.create_project(
                replace(
                    project, id="beta", start_date=date(2025, 1, 10), end_date=date(2025, 1, 20)
                )
            )
            return await service.layout()

        layouts = asyncio.run(scenario())
        assert layouts["default"].rows == {"alpha": 0, "beta": 1}

    def test_drag_coordinator_shares_config(self, project: Project) -> None:
        service = PlanningService(InMemoryRepository())
        coordinator = service.drag_coordinator()
        assert isinstance(coordinator, DragCoordinator)
        assert coordinator.config is service.config
        assert coordinator.overrides is service.overrides


class TestSaves:
    """Test validated saves."""

    def test_create_phase(self, project: Project, phase: Phase) -> None:
        async def scenario() -> Persisted[Phase]:
            service = await make_service(project, [])
            return await service.create_phase(Draft(phase))

        saved = asyncio.run(scenario())
        assert saved.is_persisted
        assert saved.entity.id == "design"

    def test_create_phase_over_budget(self, project: Project, phase: Phase) -> None:
        async def scenario() -> None:
            service = await make_service(project, [phase])
            await service.create_phase(Draft(replace(phase, id="build", time_allocation_hours=30)))

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.reasons == [
            "Phase allocations (46h) exceed project budget (40h) by 6h"
        ]

    def test_update_phase_logs_warnings(self, project: Project, phase: Phase) -> None:
        stream = StringIO()
        setup_logger(1, stream)

        async def scenario() -> Persisted[Phase]:
            service = await make_service(project, [phase])
            return await service.update_phase(Persisted(replace(phase, time_allocation_hours=30)))

        saved = asyncio.run(scenario())
        assert saved.entity.time_allocation_hours == 30
        output = stream.getvalue()
        assert "takes more than half" in output
        assert "Updated phase 'design'" in output

    def test_holiday_overlap_raises_with_suggestion(self, project: Project) -> None:
        async def scenario() -> None:
            service = await make_service(project, [])
            trip = Holiday("trip", date(2025, 1, 2), date(2025, 1, 5), "Trip")
            await service.save_holiday(Draft(trip))

        with pytest.raises(HolidayOverlapError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.suggestion == DateRange(date(2025, 1, 4), date(2025, 1, 5))

    def test_holiday_adjustment_accepted(self, project: Project) -> None:
        async def scenario() -> Persisted[Holiday]:
            service = await make_service(project, [])
            trip = Holiday("trip", date(2025, 1, 2), date(2025, 1, 5), "Trip")
            return await service.save_holiday(Draft(trip), accept_adjustment=True)

        saved = asyncio.run(scenario())
        assert saved.entity.range == DateRange(date(2025, 1, 4), date(2025, 1, 5))

    def test_holiday_update_ignores_itself(self, project: Project) -> None:
        async def scenario() -> Persisted[Holiday]:
            service = await make_service(project, [])
            moved = replace(NEW_YEAR, end_date=date(2025, 1, 4))
            return await service.save_holiday(Persisted(moved))

        saved = asyncio.run(scenario())
        assert saved.entity.end_date == date(2025, 1, 4)

    def test_holiday_without_title(self, project: Project) -> None:
        async def scenario() -> None:
            service = await make_service(project, [])
            await service.save_holiday(Draft(Holiday("x", date(2025, 2, 1), date(2025, 2, 1), "")))

        with pytest.raises(ValidationError):
            asyncio.run(scenario())


class TestCheckPlan:
    """Test plan-wide rule checks."""

    def test_valid_plan(self, project: Project, phase: Phase) -> None:
        async def scenario() -> list[str]:
            service = await make_service(project, [phase])
            return await service.check_plan()

        assert asyncio.run(scenario()) == []

    def test_collects_violations(self, project: Project, phase: Phase) -> None:
        async def scenario() -> list[str]:
            service = await make_service(project, [replace(phase, time_allocation_hours=50)])
            await service.repository.create_holiday(
                Holiday("ny2", date(2025, 1, 3), date(2025, 1, 4), "Long weekend")
            )
            return await service.check_plan()

        violations = asyncio.run(scenario())
        assert "Holiday 'New Year' overlaps 'Long weekend'" in violations
        assert "alpha: Phase allocations (50h) exceed project budget (40h) by 10h" in violations
        assert len(violations) == 2


class TestNotifications:
    """Test snapshot refresh from change notifications."""

    def test_apply_pending(self, project: Project, phase: Phase) -> None:
        async def scenario() -> tuple:
            service = await make_service(project, [phase])
            await service.snapshot()
            service.listen()
            repository = service.repository
            await repository.update_phase(replace(phase, time_allocation_hours=8))
            await repository.create_holiday(
                Holiday("spring", date(2025, 4, 1), date(2025, 4, 2), "Spring")
            )
            handled = await service.apply_pending()
            return handled, service.snapshot_cache

        handled, cache = asyncio.run(scenario())
        assert handled == 2
        assert cache.phases[0].time_allocation_hours == 8
        assert [h.id for h in cache.holidays] == ["ny", "spring"]

    def test_duplicate_notifications_are_harmless(self, project: Project, phase: Phase) -> None:
        notification = ChangeNotification(EntityType.PHASE, "design", ChangeOperation.UPDATE)

        async def scenario() -> list[Phase]:
            service = await make_service(project, [phase])
            await service.snapshot()
            await service.handle_notification(notification)
            await service.handle_notification(notification)
            assert service.snapshot_cache is not None
            return service.snapshot_cache.phases

        assert len(asyncio.run(scenario())) == 1

    def test_deleted_phase_clears_overrides(self, project: Project, phase: Phase) -> None:
        async def scenario() -> PlanningService:
            service = await make_service(project, [phase])
            await service.snapshot()
            service.overrides.set("design", date(2025, 1, 6), 3)
            service.listen()
            await service.repository.delete_phase("design")
            await service.apply_pending()
            return service

        service = asyncio.run(scenario())
        assert service.overrides.for_phase("design") == {}
        assert service.snapshot_cache is not None
        assert service.snapshot_cache.phases == []

    def test_deleted_project_removes_phases(self, project: Project, phase: Phase) -> None:
        async def scenario() -> PlanningService:
            service = await make_service(project, [phase])
            await service.snapshot()
            service.listen()
            await service.repository.delete_project("alpha")
            await service.apply_pending()
            return service

        service = asyncio.run(scenario())
        assert service.snapshot_cache is not None
        assert service.snapshot_cache.projects == []
        assert service.snapshot_cache.phases == []

    def test_close(self, project: Project) -> None:
        async def scenario() -> PlanningService:
            service = await make_service(project, [])
            service.listen()
            service.close()
            await service.repository.create_holiday(
                Holiday("later", date(2025, 5, 1), date(2025, 5, 1), "Later")
            )
            return service

        service = asyncio.run(scenario())
        assert service.pending == []
        assert service.overrides.closed

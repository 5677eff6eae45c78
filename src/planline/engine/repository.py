"""In-memory implementation of the planning repository.

Used by the CLI (plans are loaded from YAML into it) and by tests. Entities
are copied on the way in and out so callers never share state with the store.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from planline.exceptions import StorageError
from planline.logger import get_logger
from planline.models import CalendarEvent, Holiday, Phase, Project, WeeklyWorkHours

from .core import ChangeNotification, ChangeOperation, EntityType, WriteMode
from .protocols import ChangeListener, W

logger = get_logger()

E = TypeVar("E", Project, Phase, Holiday, CalendarEvent)


@dataclass(frozen=True)
class WriteRecord:
    """One write applied to the store."""

    entity_type: EntityType
    entity_id: str
    operation: ChangeOperation
    mode: WriteMode


class InMemoryRepository:
    """Dictionary-backed PlanningRepository."""

    def __init__(self, weekly_hours: WeeklyWorkHours | None = None) -> None:
        self._projects: dict[str, Project] = {}
        self._phases: dict[str, Phase] = {}
        self._holidays: dict[str, Holiday] = {}
        self._events: dict[str, CalendarEvent] = {}
        self._weekly_hours = weekly_hours or WeeklyWorkHours.standard()
        self._listeners: list[ChangeListener] = []
        self.write_log: list[WriteRecord] = []

    # Change notifications

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _record(
        self,
        entity_type: EntityType,
        entity_id: str,
        operation: ChangeOperation,
        mode: WriteMode = WriteMode.COMMIT,
    ) -> None:
        self.write_log.append(WriteRecord(entity_type, entity_id, operation, mode))
        notification = ChangeNotification(entity_type, entity_id, operation)
        for listener in list(self._listeners):
            listener(notification)

    # Generic table helpers

    @staticmethod
    def _new_id(prefix: str) -> str:
        return f"{prefix}-{uuid.uuid4().hex[:8]}"

    def _insert(self, table: dict[str, E], entity: E, entity_type: EntityType) -> E:
        if not entity.id:
            entity = copy.deepcopy(entity)
            entity.id = self._new_id(entity_type.value)
        if entity.id in table:
            raise StorageError(f"{entity_type.value} '{entity.id}' already exists")
        table[entity.id] = copy.deepcopy(entity)
        self._record(entity_type, entity.id, ChangeOperation.CREATE)
        return copy.deepcopy(entity)

    def _update(
        self, table: dict[str, E], entity: E, entity_type: EntityType, mode: WriteMode
    ) -> E:
        if entity.id not in table:
            raise StorageError(f"{entity_type.value} '{entity.id}' not found")
        table[entity.id] = copy.deepcopy(entity)
        self._record(entity_type, entity.id, ChangeOperation.UPDATE, mode)
        return copy.deepcopy(entity)

    def _delete(self, table: dict[str, E], entity_id: str, entity_type: EntityType) -> None:
        if table.pop(entity_id, None) is None:
            raise StorageError(f"{entity_type.value} '{entity_id}' not found")
        self._record(entity_type, entity_id, ChangeOperation.DELETE)

    # Projects

    async def get_project(self, project_id: str) -> Project | None:
        project = self._projects.get(project_id)
        return copy.deepcopy(project) if project else None

    async def list_projects(self, group_id: str | None = None) -> list[Project]:
        return [
            copy.deepcopy(p)
            for p in sorted(self._projects.values(), key=lambda p: (p.start_date, p.id))
            if group_id is None or p.group_id == group_id
        ]

    async def create_project(self, project: Project) -> Project:
        return self._insert(self._projects, project, EntityType.PROJECT)

    async def update_project(self, project: Project) -> Project:
        return self._update(self._projects, project, EntityType.PROJECT, WriteMode.COMMIT)

    async def delete_project(self, project_id: str) -> None:
        self._delete(self._projects, project_id, EntityType.PROJECT)
        for phase_id in [p.id for p in self._phases.values() if p.project_id == project_id]:
            self._delete(self._phases, phase_id, EntityType.PHASE)

    # Phases

    async def get_phase(self, phase_id: str) -> Phase | None:
        phase = self._phases.get(phase_id)
        return copy.deepcopy(phase) if phase else None

    async def find_phases_by_project(self, project_id: str) -> list[Phase]:
        return [
            copy.deepcopy(p)
            for p in sorted(self._phases.values(), key=lambda p: (p.start_date, p.order, p.id))
            if p.project_id == project_id
        ]

    async def create_phase(self, phase: Phase) -> Phase:
        if phase.project_id not in self._projects:
            raise StorageError(f"project '{phase.project_id}' not found")
        return self._insert(self._phases, phase, EntityType.PHASE)

    async def update_phase(self, phase: Phase) -> Phase:
        return self._update(self._phases, phase, EntityType.PHASE, WriteMode.COMMIT)

    async def delete_phase(self, phase_id: str) -> None:
        self._delete(self._phases, phase_id, EntityType.PHASE)

    # Holidays

    async def get_holiday(self, holiday_id: str) -> Holiday | None:
        holiday = self._holidays.get(holiday_id)
        return copy.deepcopy(holiday) if holiday else None

    async def list_holidays(self) -> list[Holiday]:
        return [
            copy.deepcopy(h)
            for h in sorted(self._holidays.values(), key=lambda h: (h.start_date, h.id))
        ]

    async def create_holiday(self, holiday: Holiday) -> Holiday:
        return self._insert(self._holidays, holiday, EntityType.HOLIDAY)

    async def update_holiday(self, holiday: Holiday) -> Holiday:
        return self._update(self._holidays, holiday, EntityType.HOLIDAY, WriteMode.COMMIT)

    async def delete_holiday(self, holiday_id: str) -> None:
        self._delete(self._holidays, holiday_id, EntityType.HOLIDAY)

    # Events

    async def list_events(self, project_id: str | None = None) -> list[CalendarEvent]:
        return [
            copy.deepcopy(e)
            for e in sorted(self._events.values(), key=lambda e: (e.start, e.id))
            if project_id is None or e.project_id == project_id
        ]

    async def create_event(self, event: CalendarEvent) -> CalendarEvent:
        return self._insert(self._events, event, EntityType.EVENT)

    async def delete_event(self, event_id: str) -> None:
        self._delete(self._events, event_id, EntityType.EVENT)

    # Drag writes

    def _write_dates(self, entity: W, mode: WriteMode) -> W:
        if isinstance(entity, Project):
            return self._update(self._projects, entity, EntityType.PROJECT, mode)
        if isinstance(entity, Phase):
            return self._update(self._phases, entity, EntityType.PHASE, mode)
        return self._update(self._holidays, entity, EntityType.HOLIDAY, mode)

    async def propose_write(self, entity: W) -> W:
        return self._write_dates(entity, WriteMode.PROPOSE)

    async def commit_write(self, entity: W) -> W:
        return self._write_dates(entity, WriteMode.COMMIT)

    # Settings

    async def get_weekly_hours(self) -> WeeklyWorkHours:
        return copy.deepcopy(self._weekly_hours)

    async def save_weekly_hours(self, weekly_hours: WeeklyWorkHours) -> WeeklyWorkHours:
        self._weekly_hours = copy.deepcopy(weekly_hours)
        self._record(EntityType.SETTINGS, "weekly_hours", ChangeOperation.UPDATE)
        return copy.deepcopy(weekly_hours)

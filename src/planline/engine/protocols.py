"""Protocol definitions for the storage boundary of the planning engine."""

from collections.abc import Callable
from typing import Protocol, TypeVar

from planline.models import CalendarEvent, Holiday, Phase, Project, WeeklyWorkHours

from .core import ChangeNotification

ChangeListener = Callable[[ChangeNotification], None]

# Entities whose dates can be edited interactively
W = TypeVar("W", Project, Phase, Holiday)


class PlanningRepository(Protocol):
    """Async storage of planning entities.

    Every call may fail with StorageError. Date edits made while dragging go
    through two entry points: propose_write() for silent provisional writes
    and commit_write() for the final, user-confirmed one. The update_*
    methods are ordinary committed saves.
    """

    async def get_project(self, project_id: str) -> Project | None: ...

    async def list_projects(self, group_id: str | None = None) -> list[Project]: ...

    async def create_project(self, project: Project) -> Project: ...

    async def update_project(self, project: Project) -> Project: ...

    async def delete_project(self, project_id: str) -> None:
        """Delete a project and its phases."""
        ...

    async def get_phase(self, phase_id: str) -> Phase | None: ...

    async def find_phases_by_project(self, project_id: str) -> list[Phase]: ...

    async def create_phase(self, phase: Phase) -> Phase: ...

    async def update_phase(self, phase: Phase) -> Phase: ...

    async def delete_phase(self, phase_id: str) -> None: ...

    async def get_holiday(self, holiday_id: str) -> Holiday | None: ...

    async def list_holidays(self) -> list[Holiday]: ...

    async def create_holiday(self, holiday: Holiday) -> Holiday: ...

    async def update_holiday(self, holiday: Holiday) -> Holiday: ...

    async def delete_holiday(self, holiday_id: str) -> None: ...

    async def list_events(self, project_id: str | None = None) -> list[CalendarEvent]: ...

    async def create_event(self, event: CalendarEvent) -> CalendarEvent: ...

    async def delete_event(self, event_id: str) -> None: ...

    async def propose_write(self, entity: W) -> W:
        """Silently store provisional dates; no user-facing confirmation."""
        ...

    async def commit_write(self, entity: W) -> W:
        """Store final dates; the write may be confirmed to the user."""
        ...

    async def get_weekly_hours(self) -> WeeklyWorkHours: ...

    async def save_weekly_hours(self, weekly_hours: WeeklyWorkHours) -> WeeklyWorkHours: ...

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unregisters it."""
        ...

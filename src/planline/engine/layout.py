"""Timeline row layout: pack projects of a group into non-overlapping rows.

Greedy interval scheduling. Projects are taken by start date (id breaks
ties) and each goes to the lowest row whose last project ended strictly
before it starts. For interval sets this uses the minimum number of rows.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from planline.logger import get_logger
from planline.models import FAR_FUTURE, Project

from .config import LayoutConfig
from .core import RowLayout

logger = get_logger()

DEFAULT_GROUP = "default"


def layout_end(project: Project) -> date:
    """End date used for layout; continuous projects never end."""
    return FAR_FUTURE if project.continuous else project.end_date


def layout_rows(
    projects: Iterable[Project],
    config: LayoutConfig | None = None,
    group_id: str | None = None,
) -> RowLayout:
    """Assign each project the lowest row index free at its start date.

    Args:
        projects: Projects sharing one group
        config: Optional layout configuration (minimum gap between neighbours)
        group_id: Group label for the result; defaults to the projects' group

    Returns:
        RowLayout mapping project id to row index, with the row count
    """
    config = config or LayoutConfig()
    ordered = sorted(projects, key=lambda p: (p.start_date, p.id))
    if group_id is None:
        group_id = ordered[0].group_id if ordered else DEFAULT_GROUP

    row_ends: list[date] = []
    rows: dict[str, int] = {}
    for project in ordered:
        for index, row_end in enumerate(row_ends):
            if row_end != FAR_FUTURE and (project.start_date - row_end).days >= config.min_gap_days:
                row = index
                break
        else:
            row = len(row_ends)
            row_ends.append(layout_end(project))
        row_ends[row] = layout_end(project)
        rows[project.id] = row
        logger.checks(f"  {group_id}: {project.id} -> row {row}")

    return RowLayout(group_id=group_id, rows=rows, row_count=len(row_ends))


def layout_groups(
    projects: Iterable[Project], config: LayoutConfig | None = None
) -> dict[str, RowLayout]:
    """Lay out every group independently, keyed by group id in sorted order."""
    by_group: dict[str, list[Project]] = {}
    for project in projects:
        by_group.setdefault(project.group_id, []).append(project)
    return {
        group_id: layout_rows(by_group[group_id], config, group_id) for group_id in sorted(by_group)
    }

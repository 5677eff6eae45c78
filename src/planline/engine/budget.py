"""Budget validation: phase allocations against a project's hour budget.

Only non-recurring phases count towards the allocated total. A recurring
template's allocation is a per-occurrence rate; it is reported separately and
never multiplied by the number of occurrences.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from planline.logger import get_logger
from planline.models import Draft, Persisted, Phase, unwrap

from .core import BudgetValidation

logger = get_logger()

HIGH_UTILIZATION_PERCENT = 90.0
LARGE_PHASE_SHARE = 0.5
# Float sums are rounded to this many places to keep comparisons stable
_SUM_PRECISION = 6

PhaseInput = Phase | Draft[Phase] | Persisted[Phase]


def _phases(items: Iterable[PhaseInput]) -> list[Phase]:
    return [unwrap(item) for item in items]


def validate_allocation(
    phases: Iterable[PhaseInput],
    project_budget: float,
    exclude_phase_id: str | None = None,
) -> BudgetValidation:
    """Compare the non-recurring phase allocations with the project budget.

    Args:
        phases: Phases of one project (drafts and persisted phases alike)
        project_budget: Project estimated hours
        exclude_phase_id: Phase left out of the sum (e.g. the one being edited)

    Returns:
        BudgetValidation; valid iff total allocated <= budget
    """
    counted = [p for p in _phases(phases) if p.id != exclude_phase_id]
    split = [p for p in counted if not p.is_recurring]
    recurring = [p for p in counted if p.is_recurring]

    total = round(sum(p.time_allocation_hours for p in split), _SUM_PRECISION)
    overage = round(max(0.0, total - project_budget), _SUM_PRECISION)
    utilization = (total / project_budget * 100) if project_budget > 0 else 0.0
    is_valid = total <= project_budget

    reasons: list[str] = []
    warnings: list[str] = []
    if not is_valid:
        reasons.append(
            f"Phase allocations ({total:g}h) exceed project budget "
            f"({project_budget:g}h) by {overage:g}h"
        )
    elif project_budget > 0 and utilization >= HIGH_UTILIZATION_PERCENT:
        warnings.append(f"Phase allocations use {utilization:.0f}% of the project budget")

    for phase in split:
        if project_budget > 0 and phase.time_allocation_hours > project_budget * LARGE_PHASE_SHARE:
            label = phase.name or phase.id
            warnings.append(f"Phase '{label}' takes more than half of the project budget")

    result = BudgetValidation(
        is_valid=is_valid,
        total_allocated=total,
        project_budget=project_budget,
        overage_hours=overage,
        utilization_percent=utilization,
        recurring_hours_per_occurrence=sum(p.time_allocation_hours for p in recurring),
        reasons=reasons,
        warnings=warnings,
    )
    logger.checks(
        f"Budget check: {total:g}h of {project_budget:g}h allocated "
        f"({'ok' if is_valid else 'over budget'})"
    )
    return result


# Name used by rendering callers
validate_budget = validate_allocation


def simulate(
    phases: Iterable[PhaseInput],
    project_budget: float,
    changed_phase_id: str,
    new_hours: float,
) -> BudgetValidation:
    """What-if check: validate as if one phase had new_hours. Inputs are not mutated.

    An id that matches none of the phases leaves the set unchanged.
    """
    simulated: list[Phase] = []
    for phase in _phases(phases):
        if phase.id == changed_phase_id:
            simulated.append(replace(phase, time_allocation_hours=new_hours))
        else:
            simulated.append(phase)
    return validate_allocation(simulated, project_budget)


def validate_phase_against_budget(
    phase: PhaseInput,
    existing_phases: Iterable[PhaseInput],
    project_budget: float,
) -> BudgetValidation:
    """Validate creating or updating one phase against the project budget.

    The candidate replaces any existing phase with the same id. Recurring
    phases are exempt and always pass.
    """
    candidate = unwrap(phase)
    others = [p for p in _phases(existing_phases) if p.id != candidate.id]
    result = validate_allocation([*others, candidate], project_budget)
    if candidate.is_recurring and not result.is_valid:
        # The template itself adds nothing to the total; report the split phases only
        result.is_valid = True
        result.reasons = []
    return result

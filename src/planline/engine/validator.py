"""Phase rules: date order, project window, recurring/split exclusivity."""

from __future__ import annotations

from collections.abc import Iterable

from planline.logger import get_logger
from planline.models import Phase, Project, unwrap

from .budget import PhaseInput, validate_phase_against_budget
from .core import ValidationResult
from .recurrence import validate_recurring_config

logger = get_logger()


def validate_phase_dates(phase: PhaseInput) -> ValidationResult:
    """A phase may not start after it ends."""
    candidate = unwrap(phase)
    if candidate.start_date > candidate.end_date:
        return ValidationResult(
            False,
            [f"Phase start ({candidate.start_date}) is after its end ({candidate.end_date})"],
        )
    return ValidationResult(True)


def validate_phase_window(phase: PhaseInput, project: Project) -> ValidationResult:
    """Check that a phase lies within its project's window.

    Continuous projects only bound the start. Recurring templates are only
    checked against the project start; their occurrences are clipped later.
    """
    candidate = unwrap(phase)
    reasons: list[str] = []
    if candidate.start_date < project.start_date:
        reasons.append(
            f"Phase starts ({candidate.start_date}) before project '{project.name}' "
            f"starts ({project.start_date})"
        )
    bounded = not project.continuous and not candidate.is_recurring
    if bounded and candidate.end_date > project.end_date:
        reasons.append(
            f"Phase ends ({candidate.end_date}) after project '{project.name}' "
            f"ends ({project.end_date})"
        )
    return ValidationResult(is_valid=not reasons, reasons=reasons)


def check_recurring_exclusivity(
    phase: PhaseInput, existing_phases: Iterable[PhaseInput]
) -> ValidationResult:
    """Enforce at most one recurring template, never mixed with split phases.

    The candidate's own id is ignored among existing phases so updates pass.
    """
    candidate = unwrap(phase)
    others = [
        p
        for p in (unwrap(item) for item in existing_phases)
        if p.id != candidate.id and p.project_id == candidate.project_id
    ]
    has_recurring = any(p.is_recurring for p in others)
    has_split = any(not p.is_recurring for p in others)

    reasons: list[str] = []
    if candidate.is_recurring:
        if has_recurring:
            reasons.append("Project already has a recurring phase")
        if has_split:
            reasons.append("Cannot add a recurring phase to a project with split phases")
    elif has_recurring:
        reasons.append("Cannot add a split phase to a project with a recurring phase")
    return ValidationResult(is_valid=not reasons, reasons=reasons)


def validate_phase(
    phase: PhaseInput,
    project: Project,
    existing_phases: Iterable[PhaseInput],
) -> ValidationResult:
    """Run every phase rule and collect all reasons.

    Args:
        phase: Candidate phase (draft or persisted)
        project: Owning project
        existing_phases: Current phases of the project

    Returns:
        ValidationResult combining date order, window, exclusivity, recurrence
        config and budget checks
    """
    candidate: Phase = unwrap(phase)
    existing = list(existing_phases)

    result = validate_phase_dates(candidate)
    result = result.merge(validate_phase_window(candidate, project))
    result = result.merge(check_recurring_exclusivity(candidate, existing))
    if candidate.is_recurring:
        result = result.merge(
            validate_recurring_config(candidate.recurring, candidate.time_allocation_hours)
        )
    elif candidate.time_allocation_hours < 0:
        result = result.merge(ValidationResult(False, ["Phase hours must not be negative"]))

    budget = validate_phase_against_budget(candidate, existing, project.estimated_hours)
    result = result.merge(
        ValidationResult(budget.is_valid, list(budget.reasons), list(budget.warnings))
    )

    if result.is_valid:
        logger.checks(f"  Phase '{candidate.id}' passed validation")
    else:
        logger.checks(f"  Phase '{candidate.id}' rejected: {'; '.join(result.reasons)}")
    return result

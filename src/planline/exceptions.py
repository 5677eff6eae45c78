"""Custom exceptions for Planline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import DateRange


class PlanlineError(Exception):
    """Base exception for all Planline errors."""

    pass


class InvalidInputError(PlanlineError):
    """Raised when a date, range or calendar input is malformed."""

    pass


class ValidationError(PlanlineError):
    """Raised when a save is blocked by a validation rule."""

    def __init__(self, message: str, reasons: list[str] | None = None) -> None:
        super().__init__(message)
        self.reasons = reasons or [message]


class HolidayOverlapError(ValidationError):
    """Raised when a holiday overlaps existing holidays and no adjustment was accepted."""

    def __init__(
        self,
        message: str,
        reasons: list[str] | None = None,
        suggestion: DateRange | None = None,
    ) -> None:
        super().__init__(message, reasons)
        self.suggestion = suggestion


class StorageError(PlanlineError):
    """Raised when a repository operation fails."""

    pass


class DragStateError(PlanlineError):
    """Raised on an illegal drag state transition."""

    pass


class ParseError(PlanlineError):
    """Raised when YAML parsing fails."""

    pass

"""Week-scoped hour overrides for recurring phase occurrences.

A user may adjust the hours of one occurrence of a recurring template without
rewriting the template. Overrides are keyed by phase id and the Monday of the
week containing the occurrence. A store is created per session, passed to
whatever needs it, and closed explicitly.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from types import TracebackType

from planline.exceptions import InvalidInputError, StorageError
from planline.logger import get_logger

from .calendar import week_start

logger = get_logger()

OverrideKey = tuple[str, date]


class WeekOverrideStore:
    """Session-scoped store of per-week occurrence hour overrides."""

    def __init__(self) -> None:
        self._overrides: dict[OverrideKey, float] = {}
        # Writes staged by an open transaction; None outside of one
        self._staged: dict[OverrideKey, float | None] | None = None
        self._closed = False

    def __enter__(self) -> WeekOverrideStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._overrides)

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise StorageError("Week override store is closed")

    @staticmethod
    def _key(phase_id: str, day: date) -> OverrideKey:
        return (phase_id, week_start(day))

    def get(self, phase_id: str, day: date) -> float | None:
        """Override for the week containing day, if any (staged writes included)."""
        self._check_open()
        key = self._key(phase_id, day)
        if self._staged is not None and key in self._staged:
            return self._staged[key]
        return self._overrides.get(key)

    def set(self, phase_id: str, day: date, hours: float) -> None:
        """Override the hours of the occurrence in the week containing day."""
        self._check_open()
        if hours < 0:
            raise InvalidInputError(f"Override hours must be non-negative, got {hours}")
        key = self._key(phase_id, day)
        if self._staged is not None:
            self._staged[key] = hours
        else:
            self._overrides[key] = hours
        logger.checks(f"  Override for phase '{phase_id}' week of {key[1]}: {hours:g}h")

    def clear(self, phase_id: str, day: date | None = None) -> None:
        """Remove one week's override, or every override of the phase when day is None."""
        self._check_open()
        if day is not None:
            keys = [self._key(phase_id, day)]
        else:
            keys = [key for key in self._overrides if key[0] == phase_id]
            if self._staged is not None:
                keys.extend(key for key in self._staged if key[0] == phase_id)
        for key in keys:
            if self._staged is not None:
                self._staged[key] = None
            else:
                self._overrides.pop(key, None)

    def for_phase(self, phase_id: str) -> dict[date, float]:
        """All committed overrides of a phase, keyed by week start."""
        self._check_open()
        return {
            week: hours for (pid, week), hours in sorted(self._overrides.items()) if pid == phase_id
        }

    @contextmanager
    def transaction(self) -> Iterator[WeekOverrideStore]:
        """Stage writes and apply them together when the block exits cleanly.

        Reads inside the block see the staged values. If the block raises,
        nothing is applied.
        """
        self._check_open()
        if self._staged is not None:
            raise StorageError("Week override transaction already in progress")
        self._staged = {}
        try:
            yield self
        except BaseException:
            self._staged = None
            raise
        staged, self._staged = self._staged, None
        for key, hours in staged.items():
            if hours is None:
                self._overrides.pop(key, None)
            else:
                self._overrides[key] = hours

    def close(self) -> None:
        """Drop every override. The store cannot be used afterwards."""
        self._overrides.clear()
        self._staged = None
        self._closed = True

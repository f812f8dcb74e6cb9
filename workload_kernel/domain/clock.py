"""
Clock -- injectable source of "now".

Services never read the wall clock themselves.  Transition history,
payment disbursement times, finance-run timestamps and confirmation
token ages are all taken from the Clock handed to the service, which
lets tests pin time and step past token expiry.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    """Returns timezone-aware UTC datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def epoch_seconds(self) -> int:
        """Whole seconds since the epoch; the unit confirmation tokens carry."""
        return int(self.now().timestamp())


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """Frozen at ``start`` until a test moves it with ``advance()``."""

    def __init__(self, start: datetime | None = None):
        self._current = start or datetime(2024, 9, 2, 8, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: int | float = 1) -> datetime:
        self._current += timedelta(seconds=seconds)
        return self._current

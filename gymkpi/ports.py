"""Port definitions for the collaborators the KPI engine reads from and writes to."""

from datetime import date
from typing import Any, List, Optional, Protocol, Sequence

from .models import LockerRecord, MemberRecord, PaymentRecord


class MemberSource(Protocol):
    def get_all(self) -> Sequence[MemberRecord]:
        """Return every member with join and membership-end dates."""


class PaymentSource(Protocol):
    def get_all(self) -> Sequence[PaymentRecord]:
        """Return every payment regardless of status."""


class LockerSource(Protocol):
    def get_all(self) -> Sequence[LockerRecord]:
        """Return the current state of every locker."""


class AttendanceSource(Protocol):
    def get_today_count(self) -> int:
        """Return the number of check-ins recorded today."""


class ConfigStore(Protocol):
    """Opaque key-value storage for KPI card configuration."""

    def load(self, key: str) -> Optional[List[Any]]:
        """Return the stored value for ``key`` or ``None``."""

    def save(self, key: str, value: List[Any]) -> None:
        """Persist ``value`` under ``key``."""


class Clock(Protocol):
    def today(self) -> date:
        """Return the current calendar date."""


class SystemClock:
    """Clock backed by the local system date."""

    def today(self) -> date:
        return date.today()


class FixedClock:
    """Clock pinned to one date, for deterministic runs."""

    def __init__(self, value: date):
        self.value = value

    def today(self) -> date:
        return self.value

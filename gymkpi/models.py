"""Core domain models used by the KPI engine."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple


class Granularity(str, Enum):
    """Calendar unit used for navigation and bucketing."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class Direction(str, Enum):
    PREV = "prev"
    NEXT = "next"

    @property
    def offset(self) -> int:
        return -1 if self is Direction.PREV else 1


class Reducer(str, Enum):
    SUM = "sum"
    COUNT = "count"
    AVERAGE = "average"


class StatusFilter(str, Enum):
    """Payment status filter selected in the UI."""

    ALL = "all"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    def matches(self, status: Optional[str]) -> bool:
        return self is StatusFilter.ALL or status == self.value


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"DateRange start {self.start} is after end {self.end}")

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end

    def clip(self, other: "DateRange") -> "DateRange":
        """Intersection with ``other``; callers guarantee the two overlap."""
        return DateRange(max(self.start, other.start), min(self.end, other.end))

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class MemberRecord:
    """A member with the membership window the engine cares about."""

    id: int
    join_date: date
    membership_end: Optional[date] = None


@dataclass(frozen=True)
class PaymentRecord:
    amount: float
    date: date
    status: str
    member_id: Optional[int] = None


@dataclass(frozen=True)
class LockerRecord:
    status: str

    @property
    def occupied(self) -> bool:
        return self.status == "occupied"


@dataclass(frozen=True)
class RawData:
    """Everything fetched for one computation cycle."""

    members: Sequence[MemberRecord] = ()
    payments: Sequence[PaymentRecord] = ()
    lockers: Sequence[LockerRecord] = ()
    attendance_today: int = 0


@dataclass(frozen=True)
class Bucket:
    """One labeled time slice of a chart series."""

    key: str
    period_start: date
    period_end: date
    value: float = 0

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "value": self.value,
        }


@dataclass(frozen=True)
class KPIResult:
    id: str
    value: float
    growth_percent: float
    series: Tuple[Bucket, ...] = ()

    def recent(self, size: int) -> Tuple[Bucket, ...]:
        """Last ``size`` buckets of the full series, for compact charts."""
        from .timeseries import tail_window

        return tail_window(self.series, size)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "value": self.value,
            "growth_percent": self.growth_percent,
            "series": [bucket.to_dict() for bucket in self.series],
        }


@dataclass(frozen=True)
class KPICardConfig:
    """Display configuration for a single KPI card."""

    id: str
    category: str
    enabled: bool = True
    order: int = 0
    title: str = ""
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "enabled": self.enabled,
            "order": self.order,
            "title": self.title,
            "description": self.description,
        }


@dataclass(frozen=True)
class KPISnapshot:
    """Result of one computation cycle. Replaced wholesale, never patched."""

    generation: int
    date_range: DateRange
    granularity: Granularity
    status_filter: StatusFilter
    results: Mapping[str, KPIResult]
    computed_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not isinstance(self.results, MappingProxyType):
            object.__setattr__(self, "results", MappingProxyType(dict(self.results)))

"""gymkpi - calendar-correct KPI analytics for gym management."""

from .analytics import KPI_IDS, compute_all
from .models import (
    Bucket,
    DateRange,
    Direction,
    Granularity,
    KPICardConfig,
    KPIResult,
    KPISnapshot,
    LockerRecord,
    MemberRecord,
    PaymentRecord,
    RawData,
    Reducer,
    StatusFilter,
)
from .periods import anchor_range, baseline_range, growth_percent, relative_range
from .registry import DEFAULT_KPI_CARDS, KPICardRegistry
from .service import KPIDashboardService
from .timeseries import aggregate, tail_window

__all__ = [
    "KPIDashboardService",
    "KPICardRegistry",
    "DEFAULT_KPI_CARDS",
    "KPI_IDS",
    "compute_all",
    "anchor_range",
    "relative_range",
    "baseline_range",
    "growth_percent",
    "aggregate",
    "tail_window",
    "Bucket",
    "DateRange",
    "Direction",
    "Granularity",
    "KPICardConfig",
    "KPIResult",
    "KPISnapshot",
    "LockerRecord",
    "MemberRecord",
    "PaymentRecord",
    "RawData",
    "Reducer",
    "StatusFilter",
]

__version__ = "0.1.0"

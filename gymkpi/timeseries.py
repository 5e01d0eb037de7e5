"""Gap-filled time series over calendar buckets."""

from datetime import date, datetime, timedelta
from operator import attrgetter
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import Bucket, DateRange, Reducer
from .periods import GranularityLike, anchor_range, bucket_key

DateGetter = Callable[[Any], date]
ValueGetter = Callable[[Any], float]


def bucket_ranges(date_range: DateRange, granularity: GranularityLike) -> List[Tuple[str, DateRange]]:
    """Ordered ``(key, window)`` pairs covering ``date_range`` with no gaps.

    Windows are the calendar units from ``anchor_range`` clipped to the
    requested range, so the first and last bucket may be partial units.
    """
    windows: List[Tuple[str, DateRange]] = []
    cursor = date_range.start
    while cursor <= date_range.end:
        unit = anchor_range(granularity, cursor)
        windows.append((bucket_key(granularity, cursor), unit.clip(date_range)))
        if unit.end >= date_range.end:
            break
        cursor = unit.end + timedelta(days=1)
    return windows


def aggregate(
    records: Iterable[Any],
    date_range: DateRange,
    granularity: GranularityLike,
    reducer: Reducer = Reducer.SUM,
    date_of: DateGetter = attrgetter("date"),
    value_of: ValueGetter = attrgetter("amount"),
) -> Tuple[Bucket, ...]:
    """Bucket ``records`` into one value per calendar unit of ``date_range``.

    Records outside the range are ignored. Units without records are kept
    with a value of 0.
    """
    windows = bucket_ranges(date_range, granularity)
    totals: Dict[str, float] = {}
    counts: Dict[str, int] = {}

    for record in records:
        when = _as_date(date_of(record))
        if when is None or not date_range.contains(when):
            continue
        key = bucket_key(granularity, when)
        counts[key] = counts.get(key, 0) + 1
        if reducer is not Reducer.COUNT:
            totals[key] = totals.get(key, 0.0) + float(value_of(record) or 0)

    return tuple(
        Bucket(
            key=key,
            period_start=window.start,
            period_end=window.end,
            value=_reduce(reducer, totals.get(key, 0.0), counts.get(key, 0)),
        )
        for key, window in windows
    )


def sample(
    date_range: DateRange,
    granularity: GranularityLike,
    metric: Callable[[DateRange], float],
) -> Tuple[Bucket, ...]:
    """Evaluate ``metric`` once per bucket window.

    Used for point-in-time and ratio metrics that cannot be expressed as a
    per-record reduction.
    """
    return tuple(
        Bucket(key=key, period_start=window.start, period_end=window.end, value=metric(window))
        for key, window in bucket_ranges(date_range, granularity)
    )


def tail_window(buckets: Sequence[Bucket], size: int) -> Tuple[Bucket, ...]:
    """Last ``size`` buckets. Apply only to a fully aggregated series."""
    if size <= 0:
        return ()
    return tuple(buckets[-size:])


def _reduce(reducer: Reducer, total: float, count: int) -> float:
    if reducer is Reducer.COUNT:
        return count
    if reducer is Reducer.AVERAGE:
        return total / count if count > 0 else 0
    return total


def _as_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    return value

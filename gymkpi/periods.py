"""Calendar arithmetic: anchor ranges, relative navigation and baseline periods.

Everything here is pure and never raises on bad granularity input, since the
results are consumed synchronously by rendering code.
"""

import logging
import math
from datetime import date, timedelta
from typing import Optional, Union

from .models import DateRange, Direction, Granularity

logger = logging.getLogger(__name__)

GranularityLike = Union[Granularity, str]
DirectionLike = Union[Direction, str, int]


def anchor_range(granularity: GranularityLike, reference_date: date) -> DateRange:
    """Return the calendar-unit range containing ``reference_date``."""
    unit = coerce_granularity(granularity)
    try:
        anchored = _anchor(unit, reference_date)
    except (OverflowError, ValueError):
        logger.warning("Cannot anchor %s at %s; date out of range", granularity, reference_date)
        return DateRange(reference_date, reference_date)
    if anchored is None:
        logger.warning("Unrecognized granularity %r; returning identity range", granularity)
        return DateRange(reference_date, reference_date)
    return anchored


def _anchor(unit: Optional[Granularity], reference_date: date) -> Optional[DateRange]:
    if unit is Granularity.DAY:
        return DateRange(reference_date, reference_date)
    if unit is Granularity.WEEK:
        start = week_start(reference_date)
        return DateRange(start, start + timedelta(days=6))
    if unit is Granularity.MONTH:
        return _month_range(reference_date.year, reference_date.month - 1)
    if unit is Granularity.YEAR:
        return DateRange(date(reference_date.year, 1, 1), date(reference_date.year, 12, 31))
    return None


def relative_range(
    granularity: GranularityLike,
    direction: DirectionLike,
    current_start: date,
) -> DateRange:
    """Return the range adjacent to the one starting at ``current_start``.

    Week, month and year steps re-anchor after shifting so repeated navigation
    cannot drift off calendar boundaries.
    """
    unit = coerce_granularity(granularity)
    offset = _coerce_offset(direction)
    try:
        shifted = _shift(unit, offset, current_start)
    except (OverflowError, ValueError):
        logger.warning("Cannot move %s from %s; date out of range", granularity, current_start)
        return DateRange(current_start, current_start)
    if shifted is None:
        logger.warning("Unrecognized granularity %r; returning identity range", granularity)
        return DateRange(current_start, current_start)
    return shifted


def _shift(unit: Optional[Granularity], offset: int, current_start: date) -> Optional[DateRange]:
    if unit is Granularity.DAY:
        target = current_start + timedelta(days=offset)
        return DateRange(target, target)
    if unit is Granularity.WEEK:
        return anchor_range(Granularity.WEEK, current_start + timedelta(days=7 * offset))
    if unit is Granularity.MONTH:
        return _month_range(current_start.year, current_start.month - 1 + offset)
    if unit is Granularity.YEAR:
        year = current_start.year + offset
        return DateRange(date(year, 1, 1), date(year, 12, 31))
    return None


def week_start(value: date) -> date:
    """Monday of the week containing ``value``."""
    day_of_week = (value.weekday() + 1) % 7  # Sunday = 0
    return value - timedelta(days=(day_of_week + 6) % 7)


def week_number(value: date) -> int:
    """Simplified week-of-year; weeks roll over on Sunday. Not ISO-8601."""
    jan1 = date(value.year, 1, 1)
    jan1_day_of_week = (jan1.weekday() + 1) % 7
    return math.ceil(((value - jan1).days + jan1_day_of_week + 1) / 7)


def bucket_key(granularity: GranularityLike, value: date) -> str:
    """Label of the calendar unit containing ``value``.

    Week keys are derived from the Monday that starts the anchor week, so a
    record and the bucket built for its week always carry the same label.
    """
    unit = coerce_granularity(granularity)
    if unit is Granularity.WEEK:
        monday = week_start(value)
        return f"{monday.year}-W{week_number(monday):02d}"
    if unit is Granularity.MONTH:
        return f"{value.year}-{value.month:02d}"
    if unit is Granularity.YEAR:
        return str(value.year)
    return value.isoformat()


def baseline_range(date_range: DateRange) -> DateRange:
    """Period of identical length in days immediately preceding ``date_range``."""
    end = date_range.start - timedelta(days=1)
    start = end - timedelta(days=date_range.days - 1)
    return DateRange(start, end)


def growth_percent(current: float, previous: float) -> float:
    """Relative change against ``previous`` in percent.

    A zero baseline yields 0 rather than an infinite change; non-finite
    inputs are treated the same way.
    """
    if not previous or not math.isfinite(previous) or not math.isfinite(current):
        return 0.0
    result = (current - previous) / previous * 100
    return result if math.isfinite(result) else 0.0


def add_months(value: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    last_day = _month_range(value.year, value.month - 1 + months).end
    return last_day.replace(day=min(value.day, last_day.day))


def _month_range(year: int, month_index: int) -> DateRange:
    # month_index is zero-based and may run past either end of the year
    year += month_index // 12
    month_index %= 12
    start = date(year, month_index + 1, 1)
    if month_index == 11:
        return DateRange(start, date(year, 12, 31))
    # "day 0" of the following month
    return DateRange(start, date(year, month_index + 2, 1) - timedelta(days=1))


def coerce_granularity(granularity: GranularityLike) -> Optional[Granularity]:
    if isinstance(granularity, Granularity):
        return granularity
    try:
        return Granularity(str(granularity).lower())
    except ValueError:
        return None


def _coerce_offset(direction: DirectionLike) -> int:
    if isinstance(direction, Direction):
        return direction.offset
    if isinstance(direction, int):
        return -1 if direction < 0 else 1
    try:
        return Direction(str(direction).lower()).offset
    except ValueError:
        logger.warning("Unrecognized direction %r; treating as next", direction)
        return 1

"""Pure KPI computations over raw gym records.

Each KPI is a filter (records relevant to a window), a reduce (scalar for
those records) and a series built from the same two functions, so the
headline number and the chart never disagree.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from operator import attrgetter
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import (
    Bucket,
    DateRange,
    Granularity,
    KPIResult,
    MemberRecord,
    PaymentRecord,
    RawData,
    Reducer,
    StatusFilter,
)
from .periods import GranularityLike, add_months, anchor_range, baseline_range, growth_percent
from .settings import KPISettings
from .timeseries import aggregate, sample

logger = logging.getLogger(__name__)

COMPLETED_STATUS = "completed"


@dataclass
class KPIContext:
    """Inputs shared by every KPI in one computation cycle."""

    raw: RawData
    status_filter: StatusFilter
    granularity: GranularityLike
    today: date
    settings: KPISettings = field(default_factory=KPISettings)
    completed_payments_by_member: Dict[Any, List[date]] = field(init=False, repr=False)

    def __post_init__(self):
        index: Dict[Any, List[date]] = {}
        for payment in self.raw.payments:
            if payment.status == COMPLETED_STATUS:
                index.setdefault(payment.member_id, []).append(payment.date)
        self.completed_payments_by_member = index

    def payments_in(self, window: DateRange) -> List[PaymentRecord]:
        return [
            payment
            for payment in self.raw.payments
            if window.contains(payment.date) and self.status_filter.matches(payment.status)
        ]

    def as_of(self, window: DateRange) -> Optional[date]:
        """Evaluation date for point-in-time metrics, ``None`` for future windows."""
        if window.start > self.today:
            return None
        return min(window.end, self.today)


Filter = Callable[[KPIContext, DateRange], Sequence[Any]]
Reduce = Callable[[KPIContext, Sequence[Any]], float]
Series = Callable[["KPIDefinition", KPIContext, DateRange], Tuple[Bucket, ...]]


def _identity_window(ctx: KPIContext, window: DateRange) -> DateRange:
    return window


@dataclass(frozen=True)
class KPIDefinition:
    id: str
    filter: Filter
    reduce: Reduce
    series: Series
    # metrics with no history (current locker state, today's attendance) report 0 growth
    comparable: bool = True
    focus: Callable[[KPIContext, DateRange], DateRange] = _identity_window
    # headline value when the filter finds no records; never used as a growth baseline
    placeholder: Optional[Callable[[KPISettings], float]] = None

    def measure(self, ctx: KPIContext, window: DateRange) -> float:
        value, _ = self._observe(ctx, window)
        return value

    def compute(self, ctx: KPIContext, date_range: DateRange) -> KPIResult:
        value, observed = self._observe(ctx, date_range)
        growth = 0.0
        if self.comparable and observed:
            previous, previous_observed = self._observe(ctx, baseline_range(self.focus(ctx, date_range)))
            if previous_observed:
                growth = growth_percent(value, previous)
        return KPIResult(
            id=self.id,
            value=value,
            growth_percent=growth,
            series=self.series(self, ctx, date_range),
        )

    def _observe(self, ctx: KPIContext, window: DateRange) -> Tuple[float, bool]:
        records = self.filter(ctx, self.focus(ctx, window))
        if not records and self.placeholder is not None:
            return self.placeholder(ctx.settings), False
        return self.reduce(ctx, records), True


def compute_all(
    date_range: DateRange,
    granularity: GranularityLike,
    status_filter: StatusFilter,
    raw_data: RawData,
    today: Optional[date] = None,
    settings: Optional[KPISettings] = None,
    kpi_ids: Optional[Iterable[str]] = None,
) -> Dict[str, KPIResult]:
    """Compute every requested KPI for ``date_range``.

    Unknown ids in ``kpi_ids`` are skipped with a warning.
    """
    ctx = KPIContext(
        raw=raw_data,
        status_filter=StatusFilter(status_filter),
        granularity=granularity,
        today=today or date.today(),
        settings=settings or KPISettings(),
    )
    logger.debug(
        "Computing KPIs for %s..%s from %d payments, %d members, %d lockers",
        date_range.start,
        date_range.end,
        len(raw_data.payments),
        len(raw_data.members),
        len(raw_data.lockers),
    )

    results: Dict[str, KPIResult] = {}
    for kpi_id in kpi_ids if kpi_ids is not None else KPI_IDS:
        definition = KPI_DEFINITIONS.get(kpi_id)
        if definition is None:
            logger.warning("Unknown KPI id %r skipped", kpi_id)
            continue
        results[kpi_id] = definition.compute(ctx, date_range)
    return results


# Filters


def _payments_in_window(ctx: KPIContext, window: DateRange) -> List[PaymentRecord]:
    return ctx.payments_in(window)


def _members_joined_in_window(ctx: KPIContext, window: DateRange) -> List[MemberRecord]:
    return [member for member in ctx.raw.members if window.contains(member.join_date)]


def _members_joined_by(ctx: KPIContext, window: DateRange) -> List[MemberRecord]:
    as_of = ctx.as_of(window)
    if as_of is None:
        return []
    return [member for member in ctx.raw.members if member.join_date <= as_of]


def _members_active_at(ctx: KPIContext, window: DateRange) -> List[MemberRecord]:
    as_of = ctx.as_of(window)
    if as_of is None:
        return []
    return [member for member in ctx.raw.members if _is_active(member, as_of)]


def _members_with_state(ctx: KPIContext, window: DateRange) -> List[Tuple[MemberRecord, bool]]:
    as_of = ctx.as_of(window)
    if as_of is None:
        return []
    return [
        (member, _is_active(member, as_of))
        for member in ctx.raw.members
        if member.join_date <= as_of
    ]


def _members_expiring_in_window(ctx: KPIContext, window: DateRange) -> List[MemberRecord]:
    return [
        member
        for member in ctx.raw.members
        if member.membership_end is not None and window.contains(member.membership_end)
    ]


def _all_lockers(ctx: KPIContext, window: DateRange) -> Sequence[Any]:
    return ctx.raw.lockers


def _no_records(ctx: KPIContext, window: DateRange) -> Sequence[Any]:
    return ()


def _is_active(member: MemberRecord, as_of: date) -> bool:
    return (
        member.join_date <= as_of
        and member.membership_end is not None
        and member.membership_end >= as_of
    )


# Reducers


def _sum_amounts(ctx: KPIContext, payments: Sequence[PaymentRecord]) -> float:
    return sum(payment.amount for payment in payments)


def _count(ctx: KPIContext, records: Sequence[Any]) -> float:
    return len(records)


def _mean_amount(ctx: KPIContext, payments: Sequence[PaymentRecord]) -> float:
    return _sum_amounts(ctx, payments) / len(payments) if payments else 0


def _retention_rate(ctx: KPIContext, members: Sequence[Tuple[MemberRecord, bool]]) -> float:
    if not members:
        return 0.0
    active = sum(1 for _, is_active in members if is_active)
    return active / len(members) * 100


def _locker_utilization(ctx: KPIContext, lockers: Sequence[Any]) -> float:
    if not lockers:
        return 0.0
    occupied = sum(1 for locker in lockers if locker.occupied)
    return occupied / len(lockers) * 100


def _attendance_today(ctx: KPIContext, records: Sequence[Any]) -> float:
    return ctx.raw.attendance_today


def _monthly_visits(ctx: KPIContext, records: Sequence[Any]) -> float:
    active = len(_members_active_at(ctx, DateRange(ctx.today, ctx.today)))
    attendance = ctx.raw.attendance_today
    if active > 0 and attendance > 0:
        return round(attendance * 30 / active, 1)
    return ctx.settings.monthly_visits_placeholder


def _renewed_share(ctx: KPIContext, expired: Sequence[MemberRecord]) -> float:
    renewed = 0
    for member in expired:
        deadline = add_months(member.membership_end, ctx.settings.renewal_window_months)
        paid_dates = ctx.completed_payments_by_member.get(member.id, ())
        if any(member.membership_end < paid <= deadline for paid in paid_dates):
            renewed += 1
    return renewed / len(expired) * 100


def _pt_share(ctx: KPIContext, payments: Sequence[PaymentRecord]) -> float:
    threshold = _mean_amount(ctx, payments) * ctx.settings.pt_threshold_multiplier
    payers = {payment.member_id for payment in payments}
    pt_members = {payment.member_id for payment in payments if payment.amount > threshold}
    return len(pt_members) / len(payers) * 100


# Series


def _payment_series(reducer: Reducer) -> Series:
    def build(definition: KPIDefinition, ctx: KPIContext, date_range: DateRange) -> Tuple[Bucket, ...]:
        return aggregate(
            ctx.payments_in(date_range),
            date_range,
            ctx.granularity,
            reducer,
            date_of=lambda payment: payment.date,
            value_of=lambda payment: payment.amount,
        )

    return build


def _join_date_series(definition: KPIDefinition, ctx: KPIContext, date_range: DateRange) -> Tuple[Bucket, ...]:
    return aggregate(
        ctx.raw.members,
        date_range,
        ctx.granularity,
        Reducer.COUNT,
        date_of=lambda member: member.join_date,
    )


def _sampled_series(definition: KPIDefinition, ctx: KPIContext, date_range: DateRange) -> Tuple[Bucket, ...]:
    return sample(date_range, ctx.granularity, lambda window: definition.measure(ctx, window))


def _sampled_ratio_series(definition: KPIDefinition, ctx: KPIContext, date_range: DateRange) -> Tuple[Bucket, ...]:
    # empty buckets stay at 0; placeholders apply to the headline value only
    def metric(window: DateRange) -> float:
        records = definition.filter(ctx, window)
        return definition.reduce(ctx, records) if records else 0

    return sample(date_range, ctx.granularity, metric)


def _today_series(definition: KPIDefinition, ctx: KPIContext, date_range: DateRange) -> Tuple[Bucket, ...]:
    # live metrics only have an observation for today
    value = definition.measure(ctx, date_range)
    return sample(
        date_range,
        ctx.granularity,
        lambda window: value if window.contains(ctx.today) else 0,
    )


def _target_month(ctx: KPIContext, window: DateRange) -> DateRange:
    return anchor_range(Granularity.MONTH, window.end)


KPI_DEFINITIONS: Dict[str, KPIDefinition] = {
    definition.id: definition
    for definition in (
        KPIDefinition("totalRevenue", _payments_in_window, _sum_amounts, _payment_series(Reducer.SUM)),
        KPIDefinition("averagePayment", _payments_in_window, _mean_amount, _payment_series(Reducer.AVERAGE)),
        KPIDefinition("totalPayments", _payments_in_window, _count, _payment_series(Reducer.COUNT)),
        KPIDefinition("totalMembers", _members_joined_by, _count, _sampled_series),
        KPIDefinition("activeMembers", _members_active_at, _count, _sampled_series),
        KPIDefinition("newMembers", _members_joined_in_window, _count, _join_date_series),
        KPIDefinition("memberRetention", _members_with_state, _retention_rate, _sampled_series),
        KPIDefinition("attendanceToday", _no_records, _attendance_today, _today_series, comparable=False),
        KPIDefinition("lockerUtilization", _all_lockers, _locker_utilization, _today_series, comparable=False),
        KPIDefinition("monthlyVisits", _no_records, _monthly_visits, _today_series, comparable=False),
        KPIDefinition(
            "renewalRate",
            _members_expiring_in_window,
            _renewed_share,
            _sampled_ratio_series,
            focus=_target_month,
            placeholder=attrgetter("renewal_rate_placeholder"),
        ),
        KPIDefinition(
            "ptUtilization",
            _payments_in_window,
            _pt_share,
            _sampled_ratio_series,
            placeholder=attrgetter("pt_utilization_placeholder"),
        ),
    )
}

KPI_IDS: Tuple[str, ...] = tuple(KPI_DEFINITIONS)

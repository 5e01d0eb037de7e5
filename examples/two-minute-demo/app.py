"""Two-minute gymkpi demo: FastAPI backend over generated gym records.

Run: uvicorn app:app --reload
"""

from datetime import date, timedelta
from random import Random
from typing import Optional

from fastapi import FastAPI, HTTPException

from gymkpi import DateRange, Granularity, KPICardRegistry, KPIDashboardService, StatusFilter
from gymkpi.errors import DataFetchError
from gymkpi.models import LockerRecord, MemberRecord, PaymentRecord
from gymkpi.settings import KPISettings

RNG = Random(42)

app = FastAPI(title="gymkpi Two-Minute Demo", version="0.1.0")


class ListSource:
    def __init__(self, records):
        self.records = records

    def get_all(self):
        return list(self.records)


class DemoAttendance:
    def get_today_count(self) -> int:
        return 37


class MemoryConfigStore:
    def __init__(self):
        self.values = {}

    def load(self, key):
        return self.values.get(key)

    def save(self, key, value):
        self.values[key] = value


def _build_demo_data() -> dict:
    today = date.today()

    members = []
    for idx in range(120):
        join_date = today - timedelta(days=RNG.randint(0, 540))
        plan_days = RNG.choice([30, 90, 180, 365])
        members.append(
            MemberRecord(
                id=idx + 1,
                join_date=join_date,
                membership_end=join_date + timedelta(days=plan_days),
            )
        )

    payments = []
    for member in members:
        paid_on = member.join_date
        while paid_on <= today:
            amount = RNG.choice([90000, 120000, 150000, 450000 if RNG.random() < 0.15 else 100000])
            status = "completed" if RNG.random() > 0.08 else RNG.choice(["cancelled", "refunded"])
            payments.append(PaymentRecord(amount=amount, date=paid_on, status=status, member_id=member.id))
            paid_on += timedelta(days=RNG.choice([30, 90]))

    lockers = [LockerRecord(status="occupied" if RNG.random() < 0.6 else "available") for _ in range(80)]

    return {"members": members, "payments": payments, "lockers": lockers}


DEMO_DATA = _build_demo_data()

settings = KPISettings.from_env()
registry = KPICardRegistry(MemoryConfigStore(), settings=settings)
registry.load()
service = KPIDashboardService(
    members=ListSource(DEMO_DATA["members"]),
    payments=ListSource(DEMO_DATA["payments"]),
    lockers=ListSource(DEMO_DATA["lockers"]),
    attendance=DemoAttendance(),
    registry=registry,
    settings=settings,
)


def _snapshot_payload() -> dict:
    snapshot = service.snapshot
    if snapshot is None:
        return {"range": service.date_range.to_dict(), "kpis": {}, "error": _error_message()}
    return {
        "generation": snapshot.generation,
        "range": snapshot.date_range.to_dict(),
        "granularity": snapshot.granularity.value,
        "status_filter": snapshot.status_filter.value,
        "kpis": {kpi_id: result.to_dict() for kpi_id, result in snapshot.results.items()},
        "charts": {
            kpi_id: [bucket.to_dict() for bucket in result.recent(service.settings.chart_window)]
            for kpi_id, result in snapshot.results.items()
        },
        "error": _error_message(),
    }


def _error_message() -> Optional[str]:
    return str(service.last_error) if service.last_error else None


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "demo": "gymkpi-two-minute"}


@app.get("/api/kpis")
def kpis(
    start: Optional[date] = None,
    end: Optional[date] = None,
    granularity: Granularity = Granularity.MONTH,
    status: StatusFilter = StatusFilter.ALL,
) -> dict:
    service.granularity = granularity
    service.status_filter = status
    if start and end:
        if start > end:
            raise HTTPException(status_code=422, detail="start must not be after end")
        service.date_range = DateRange(start, end)
    try:
        service.refresh()
    except DataFetchError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return _snapshot_payload()


@app.post("/api/navigate")
def navigate(granularity: Granularity, direction: str) -> dict:
    if direction not in ("prev", "next"):
        raise HTTPException(status_code=422, detail="direction must be 'prev' or 'next'")
    service.navigate(granularity, direction)
    return _snapshot_payload()


@app.get("/api/cards")
def cards() -> list:
    return [card.to_dict() for card in registry.cards]


@app.post("/api/cards/{card_id}")
def set_card(card_id: str, enabled: bool) -> dict:
    persisted = service.set_card_enabled(card_id, enabled)
    return {"id": card_id, "enabled": enabled, "persisted": persisted}

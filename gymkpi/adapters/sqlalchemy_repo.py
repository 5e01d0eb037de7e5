"""SQLAlchemy adapters for the gym record sources and the card config store.

Each source opens its own connection from the engine, so the service can
fetch them concurrently.
"""

import json
from datetime import date, datetime, timedelta
from typing import Any, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Engine

from ..models import LockerRecord, MemberRecord, PaymentRecord
from ..ports import Clock, SystemClock


class SQLAlchemyMemberSource:
    """Reads ``members(id, join_date, membership_end)``."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get_all(self) -> Sequence[MemberRecord]:
        with self.engine.connect() as connection:
            rows = connection.execute(
                text("SELECT id, join_date, membership_end FROM members ORDER BY id")
            ).fetchall()

        members = []
        for row in rows:
            join_date = _parse_date(row.join_date)
            if join_date is None:
                continue
            members.append(
                MemberRecord(
                    id=row.id,
                    join_date=join_date,
                    membership_end=_parse_date(row.membership_end),
                )
            )
        return members


class SQLAlchemyPaymentSource:
    """Reads ``payments(member_id, amount, payment_date, status)``."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get_all(self) -> Sequence[PaymentRecord]:
        with self.engine.connect() as connection:
            rows = connection.execute(
                text(
                    """
                    SELECT member_id, amount, payment_date, status
                    FROM payments
                    ORDER BY payment_date
                    """
                )
            ).fetchall()

        payments = []
        for row in rows:
            paid_on = _parse_date(row.payment_date)
            if paid_on is None:
                continue
            payments.append(
                PaymentRecord(
                    amount=float(row.amount or 0),
                    date=paid_on,
                    status=row.status or "completed",
                    member_id=row.member_id,
                )
            )
        return payments


class SQLAlchemyLockerSource:
    def __init__(self, engine: Engine):
        self.engine = engine

    def get_all(self) -> Sequence[LockerRecord]:
        with self.engine.connect() as connection:
            rows = connection.execute(text("SELECT status FROM lockers")).fetchall()
        return [LockerRecord(status=row.status or "available") for row in rows]


class SQLAlchemyAttendanceSource:
    """Counts ``attendance`` rows whose ``visit_date`` falls on today."""

    def __init__(self, engine: Engine, clock: Optional[Clock] = None):
        self.engine = engine
        self.clock = clock or SystemClock()

    def get_today_count(self) -> int:
        today = self.clock.today()
        with self.engine.connect() as connection:
            count = connection.execute(
                text(
                    """
                    SELECT COUNT(*)
                    FROM attendance
                    WHERE visit_date >= :start_date AND visit_date < :end_date
                    """
                ),
                {"start_date": today.isoformat(), "end_date": (today + timedelta(days=1)).isoformat()},
            ).scalar()
        return int(count or 0)


class SQLAlchemyConfigStore:
    """Key-value store in ``app_settings``; values are JSON text."""

    def __init__(self, engine: Engine):
        self.engine = engine
        with self.engine.begin() as connection:
            connection.execute(
                text(
                    """
                    CREATE TABLE IF NOT EXISTS app_settings (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                    """
                )
            )

    def load(self, key: str) -> Optional[List[Any]]:
        with self.engine.connect() as connection:
            raw = connection.execute(
                text("SELECT value FROM app_settings WHERE key = :key"),
                {"key": key},
            ).scalar()
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return None

    def save(self, key: str, value: List[Any]) -> None:
        with self.engine.begin() as connection:
            connection.execute(
                text(
                    """
                    INSERT INTO app_settings(key, value) VALUES(:key, :value)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value
                    """
                ),
                {"key": key, "value": json.dumps(value)},
            )


def _parse_date(raw) -> Optional[date]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, (int, float)):
        # epoch seconds
        return datetime.fromtimestamp(raw).date()
    try:
        return date.fromisoformat(str(raw)[:10])
    except ValueError:
        return None

"""Application service orchestrating sources, pure KPI analytics and card config."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from .analytics import compute_all
from .errors import ConfigPersistError, DataFetchError
from .models import (
    DateRange,
    Granularity,
    KPICardConfig,
    KPISnapshot,
    RawData,
    StatusFilter,
)
from .periods import DirectionLike, GranularityLike, anchor_range, coerce_granularity, relative_range
from .ports import AttendanceSource, Clock, LockerSource, MemberSource, PaymentSource, SystemClock
from .registry import KPICardRegistry
from .settings import KPISettings

logger = logging.getLogger(__name__)


class KPIDashboardService:
    """Facade the UI drives: filters in, immutable KPI snapshots out.

    Each refresh takes a generation number. Its result is applied only if no
    newer refresh started meanwhile, so a slow response cannot overwrite a
    newer one.
    """

    def __init__(
        self,
        members: MemberSource,
        payments: PaymentSource,
        lockers: LockerSource,
        attendance: AttendanceSource,
        registry: KPICardRegistry,
        clock: Optional[Clock] = None,
        settings: Optional[KPISettings] = None,
        granularity: Granularity = Granularity.MONTH,
    ):
        self.members = members
        self.payments = payments
        self.lockers = lockers
        self.attendance = attendance
        self.registry = registry
        self.clock = clock or SystemClock()
        self.settings = settings or KPISettings()

        self.granularity = Granularity(granularity)
        self.date_range = anchor_range(self.granularity, self.clock.today())
        self.status_filter = StatusFilter.ALL

        self.snapshot: Optional[KPISnapshot] = None
        self.last_error: Optional[DataFetchError] = None
        self._generation = 0
        self._lock = threading.Lock()

    # Filter changes: each one triggers a full recomputation.

    def set_range(self, date_range: DateRange) -> Optional[KPISnapshot]:
        self.date_range = date_range
        return self.refresh()

    def set_granularity(self, granularity: GranularityLike) -> Optional[KPISnapshot]:
        unit = coerce_granularity(granularity)
        if unit is None:
            logger.warning("Unrecognized granularity %r; keeping %s", granularity, self.granularity.value)
        else:
            self.granularity = unit
        return self.refresh()

    def set_status_filter(self, status_filter: StatusFilter) -> Optional[KPISnapshot]:
        self.status_filter = StatusFilter(status_filter)
        return self.refresh()

    def navigate(self, granularity: GranularityLike, direction: DirectionLike) -> DateRange:
        """Move to the previous or next period and recompute.

        Returns the new range even if the refresh fails; the failure is kept
        in ``last_error``. An unrecognized granularity leaves the range as is.
        """
        unit = coerce_granularity(granularity)
        if unit is None:
            logger.warning("Unrecognized granularity %r; not navigating", granularity)
            return self.date_range
        self.granularity = unit
        self.date_range = relative_range(unit, direction, self.date_range.start)
        self._refresh_quietly()
        return self.date_range

    def current_range(self, granularity: GranularityLike) -> DateRange:
        """Jump to the period containing today and recompute."""
        unit = coerce_granularity(granularity)
        if unit is None:
            logger.warning("Unrecognized granularity %r; not navigating", granularity)
            return self.date_range
        self.granularity = unit
        self.date_range = anchor_range(unit, self.clock.today())
        self._refresh_quietly()
        return self.date_range

    def refresh(self) -> Optional[KPISnapshot]:
        """Fetch every source and compute a new snapshot.

        Returns the applied snapshot, or ``None`` when a newer refresh
        superseded this one. Raises ``DataFetchError`` if any source fails;
        the previous snapshot is left in place.
        """
        generation = self._next_generation()
        date_range, granularity, status_filter = self.date_range, self.granularity, self.status_filter

        try:
            raw = self.fetch_raw_data()
        except DataFetchError as exc:
            with self._lock:
                if generation == self._generation:
                    self.last_error = exc
            raise

        results = compute_all(
            date_range,
            granularity,
            status_filter,
            raw,
            today=self.clock.today(),
            settings=self.settings,
            kpi_ids=[card.id for card in self.registry.enabled_cards()],
        )
        snapshot = KPISnapshot(
            generation=generation,
            date_range=date_range,
            granularity=granularity,
            status_filter=status_filter,
            results=results,
        )
        return self._apply(snapshot)

    def fetch_raw_data(self) -> RawData:
        """Request every source concurrently and wait for all of them."""
        fetchers: Dict[str, Callable] = {
            "members": self.members.get_all,
            "payments": self.payments.get_all,
            "lockers": self.lockers.get_all,
            "attendance": self.attendance.get_today_count,
        }
        with ThreadPoolExecutor(max_workers=max(1, self.settings.fetch_workers)) as pool:
            futures = {name: pool.submit(fetch) for name, fetch in fetchers.items()}
            fetched = {}
            for name, future in futures.items():
                try:
                    fetched[name] = future.result()
                except Exception as exc:
                    logger.warning("Fetching %s failed: %s", name, exc)
                    raise DataFetchError(name, f"Failed to fetch {name}: {exc}") from exc

        return RawData(
            members=tuple(fetched["members"]),
            payments=tuple(fetched["payments"]),
            lockers=tuple(fetched["lockers"]),
            attendance_today=int(fetched["attendance"] or 0),
        )

    def set_card_enabled(self, card_id: str, enabled: bool) -> bool:
        """Toggle a card. Returns ``False`` if the change could not be persisted."""
        try:
            self.registry.set_card_enabled(card_id, enabled)
        except ConfigPersistError:
            return False
        return True

    def get_enabled_cards(self) -> List[KPICardConfig]:
        return self.registry.enabled_cards()

    def _next_generation(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def _apply(self, snapshot: KPISnapshot) -> Optional[KPISnapshot]:
        with self._lock:
            if snapshot.generation != self._generation:
                logger.warning(
                    "Discarding stale KPI snapshot %d; latest request is %d",
                    snapshot.generation,
                    self._generation,
                )
                return None
            self.snapshot = snapshot
            self.last_error = None
        logger.debug("Applied KPI snapshot %d with %d results", snapshot.generation, len(snapshot.results))
        return snapshot

    def _refresh_quietly(self) -> None:
        try:
            self.refresh()
        except DataFetchError:
            logger.warning("Refresh after navigation failed; keeping previous snapshot")

"""KPI card visibility configuration and its persistence."""

import logging
from dataclasses import replace
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .errors import ConfigPersistError
from .models import KPICardConfig
from .ports import ConfigStore
from .settings import KPISettings

logger = logging.getLogger(__name__)

DEFAULT_KPI_CARDS: Sequence[KPICardConfig] = tuple(
    KPICardConfig(id=card_id, category=category, enabled=True, order=order, title=title, description=description)
    for order, (card_id, category, title, description) in enumerate(
        [
            ("totalRevenue", "revenue", "Total revenue", "Revenue in the selected period"),
            ("totalMembers", "members", "Total members", "All registered members"),
            ("activeMembers", "members", "Active members", "Members holding a valid membership"),
            ("attendanceToday", "operations", "Attendance today", "Members who checked in today"),
            ("averagePayment", "revenue", "Average payment", "Mean payment amount in the selected period"),
            ("newMembers", "members", "New members", "Members who joined in the selected period"),
            ("lockerUtilization", "operations", "Locker utilization", "Share of lockers currently occupied"),
            ("memberRetention", "members", "Member retention", "Active members as a share of all members"),
            ("totalPayments", "revenue", "Payments", "Number of payments in the selected period"),
            ("monthlyVisits", "operations", "Monthly visits", "Estimated visits per active member per month"),
            ("renewalRate", "performance", "Renewal rate", "Share of expired memberships that were renewed"),
            ("ptUtilization", "performance", "PT utilization", "Share of paying members buying personal training"),
        ]
    )
)


def merge_with_defaults(
    persisted: Optional[Iterable[Any]],
    defaults: Sequence[KPICardConfig] = DEFAULT_KPI_CARDS,
) -> List[KPICardConfig]:
    """Overlay persisted ``enabled`` flags onto the canonical card list.

    Cards missing from storage keep their default; stored ids that no longer
    exist are dropped. Order always follows ``defaults``.
    """
    enabled_by_id = {}
    for item in persisted or ():
        card_id, enabled = _read_flag(item)
        if card_id is not None:
            enabled_by_id[card_id] = enabled
    return [
        replace(card, enabled=enabled_by_id[card.id]) if card.id in enabled_by_id else card
        for card in defaults
    ]


class KPICardRegistry:
    """Ordered KPI card list backed by a ``ConfigStore``.

    Every mutation updates memory first and then saves. A failed save raises
    ``ConfigPersistError`` but the in-memory state is kept for the session.
    """

    def __init__(
        self,
        store: ConfigStore,
        key: Optional[str] = None,
        defaults: Sequence[KPICardConfig] = DEFAULT_KPI_CARDS,
        settings: Optional[KPISettings] = None,
    ):
        self.store = store
        self.key = key or (settings or KPISettings()).config_key
        self.defaults = tuple(defaults)
        self._cards: List[KPICardConfig] = list(self.defaults)

    @property
    def cards(self) -> List[KPICardConfig]:
        return list(self._cards)

    @property
    def categories(self) -> List[str]:
        seen: List[str] = []
        for card in self._cards:
            if card.category not in seen:
                seen.append(card.category)
        return seen

    def enabled_cards(self) -> List[KPICardConfig]:
        return [card for card in self._cards if card.enabled]

    def load(self) -> List[KPICardConfig]:
        try:
            persisted = self.store.load(self.key)
        except Exception:
            logger.exception("Could not read KPI card config %r; using defaults", self.key)
            persisted = None
        if persisted is not None and not isinstance(persisted, (list, tuple)):
            logger.warning("Ignoring malformed KPI card config of type %s", type(persisted).__name__)
            persisted = None
        self._cards = merge_with_defaults(persisted, self.defaults)
        return self.cards

    def save(self, config: Optional[Sequence[KPICardConfig]] = None) -> None:
        if config is not None:
            self._cards = list(config)
        try:
            self.store.save(self.key, [card.to_dict() for card in self._cards])
        except Exception as exc:
            logger.warning("Failed to save KPI card config %r: %s", self.key, exc)
            raise ConfigPersistError(f"Could not save KPI card configuration: {exc}") from exc

    def toggle(self, card_id: str) -> None:
        self._update(lambda card: replace(card, enabled=not card.enabled) if card.id == card_id else card)

    def set_card_enabled(self, card_id: str, enabled: bool) -> None:
        self._update(lambda card: replace(card, enabled=enabled) if card.id == card_id else card)

    def toggle_all(self, enabled: bool) -> None:
        self._update(lambda card: replace(card, enabled=enabled))

    def toggle_category(self, category: str, enabled: bool) -> None:
        self._update(lambda card: replace(card, enabled=enabled) if card.category == category else card)

    def _update(self, change) -> None:
        self._cards = [change(card) for card in self._cards]
        self.save()


def _read_flag(item: Any):
    if isinstance(item, KPICardConfig):
        return item.id, item.enabled
    if isinstance(item, Mapping) and "id" in item:
        return item["id"], bool(item.get("enabled", True))
    logger.warning("Skipping unreadable KPI card entry %r", item)
    return None, False

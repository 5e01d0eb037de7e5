import logging

import pytest

from gymkpi.errors import ConfigPersistError
from gymkpi.registry import DEFAULT_KPI_CARDS, KPICardRegistry, merge_with_defaults


class FakeStore:
    def __init__(self, values=None):
        self.values = dict(values or {})
        self.saves = 0

    def load(self, key):
        return self.values.get(key)

    def save(self, key, value):
        self.saves += 1
        self.values[key] = value


class FailingStore(FakeStore):
    def save(self, key, value):
        raise OSError("disk full")


def _enabled(cards):
    return {card.id: card.enabled for card in cards}


def test_load_without_stored_config_uses_defaults():
    registry = KPICardRegistry(FakeStore())

    cards = registry.load()

    assert [card.id for card in cards] == [card.id for card in DEFAULT_KPI_CARDS]
    assert all(card.enabled for card in cards)
    assert registry.categories == ["revenue", "members", "operations", "performance"]


def test_load_overlays_only_enabled_flags():
    stored = [
        {"id": "totalRevenue", "enabled": False, "category": "bogus", "order": 99},
        {"id": "retiredMetric", "enabled": False},
    ]
    registry = KPICardRegistry(FakeStore({"kpi-cards-config": stored}))

    cards = registry.load()

    assert len(cards) == len(DEFAULT_KPI_CARDS)
    assert _enabled(cards)["totalRevenue"] is False
    assert "retiredMetric" not in _enabled(cards)
    revenue = next(card for card in cards if card.id == "totalRevenue")
    assert revenue.category == "revenue"
    assert revenue.order == 0
    assert sum(1 for card in cards if not card.enabled) == 1


def test_merge_is_idempotent():
    stored = [{"id": "ptUtilization", "enabled": False}, {"id": "newMembers", "enabled": False}]

    once = merge_with_defaults(stored)
    twice = merge_with_defaults(stored, merge_with_defaults(stored))

    assert once == twice


def test_new_default_card_appears_enabled():
    stored = [card.to_dict() for card in DEFAULT_KPI_CARDS[:5]]
    stored[0]["enabled"] = False

    cards = merge_with_defaults(stored)

    assert _enabled(cards)["totalRevenue"] is False
    assert _enabled(cards)["ptUtilization"] is True


def test_toggle_persists_to_store():
    store = FakeStore()
    registry = KPICardRegistry(store)
    registry.load()

    registry.toggle("lockerUtilization")

    saved = {item["id"]: item["enabled"] for item in store.values["kpi-cards-config"]}
    assert saved["lockerUtilization"] is False
    assert "lockerUtilization" not in [card.id for card in registry.enabled_cards()]

    registry.toggle("lockerUtilization")
    assert _enabled(registry.cards)["lockerUtilization"] is True


def test_toggle_category_and_all():
    registry = KPICardRegistry(FakeStore())
    registry.load()

    registry.toggle_category("revenue", False)
    assert len(registry.enabled_cards()) == len(DEFAULT_KPI_CARDS) - 3

    registry.toggle_all(False)
    assert registry.enabled_cards() == []

    registry.toggle_all(True)
    assert len(registry.enabled_cards()) == len(DEFAULT_KPI_CARDS)


def test_reload_restores_saved_state():
    store = FakeStore()
    first = KPICardRegistry(store)
    first.load()
    first.set_card_enabled("renewalRate", False)

    second = KPICardRegistry(store)
    assert _enabled(second.load())["renewalRate"] is False


def test_save_failure_keeps_in_memory_state():
    registry = KPICardRegistry(FailingStore())
    registry.load()

    with pytest.raises(ConfigPersistError):
        registry.set_card_enabled("totalRevenue", False)

    assert _enabled(registry.cards)["totalRevenue"] is False


def test_malformed_stored_config_falls_back_to_defaults(caplog):
    registry = KPICardRegistry(FakeStore({"kpi-cards-config": "not-a-list"}))

    with caplog.at_level(logging.WARNING, logger="gymkpi.registry"):
        cards = registry.load()

    assert all(card.enabled for card in cards)
    assert "malformed" in caplog.text

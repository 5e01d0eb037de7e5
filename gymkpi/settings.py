"""Tunable constants for the KPI heuristics, overridable from the environment."""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KPISettings:
    # a payment above this multiple of the period mean counts as personal training
    pt_threshold_multiplier: float = 1.5
    # a completed payment within this many months after expiry counts as a renewal
    renewal_window_months: int = 2
    renewal_rate_placeholder: float = 78.5
    pt_utilization_placeholder: float = 65.2
    monthly_visits_placeholder: float = 8.5
    chart_window: int = 7
    config_key: str = "kpi-cards-config"
    fetch_workers: int = 4

    @classmethod
    def from_env(cls) -> "KPISettings":
        defaults = cls()
        return cls(
            pt_threshold_multiplier=_env_float(
                "GYMKPI_PT_THRESHOLD_MULTIPLIER", defaults.pt_threshold_multiplier
            ),
            renewal_window_months=_env_int("GYMKPI_RENEWAL_WINDOW_MONTHS", defaults.renewal_window_months),
            renewal_rate_placeholder=_env_float(
                "GYMKPI_RENEWAL_RATE_PLACEHOLDER", defaults.renewal_rate_placeholder
            ),
            pt_utilization_placeholder=_env_float(
                "GYMKPI_PT_UTILIZATION_PLACEHOLDER", defaults.pt_utilization_placeholder
            ),
            monthly_visits_placeholder=_env_float(
                "GYMKPI_MONTHLY_VISITS_PLACEHOLDER", defaults.monthly_visits_placeholder
            ),
            chart_window=_env_int("GYMKPI_CHART_WINDOW", defaults.chart_window),
            config_key=os.getenv("GYMKPI_CONFIG_KEY") or defaults.config_key,
            fetch_workers=_env_int("GYMKPI_FETCH_WORKERS", defaults.fetch_workers),
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r; using %s", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r; using %s", name, raw, default)
        return default

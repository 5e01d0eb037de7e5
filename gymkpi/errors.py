"""Exceptions raised across the KPI engine boundary."""


class GymKPIError(Exception):
    """Base class for gymkpi errors."""


class DataFetchError(GymKPIError):
    """A raw-record source failed; the whole computation cycle is abandoned."""

    def __init__(self, source: str, message: str = ""):
        self.source = source
        super().__init__(message or f"Failed to fetch {source}")


class ConfigPersistError(GymKPIError):
    """KPI card configuration could not be written to the config store."""

"""Adapters for integrating gymkpi with storage and frameworks."""

from .sqlalchemy_repo import (
    SQLAlchemyAttendanceSource,
    SQLAlchemyConfigStore,
    SQLAlchemyLockerSource,
    SQLAlchemyMemberSource,
    SQLAlchemyPaymentSource,
)

__all__ = [
    "SQLAlchemyMemberSource",
    "SQLAlchemyPaymentSource",
    "SQLAlchemyLockerSource",
    "SQLAlchemyAttendanceSource",
    "SQLAlchemyConfigStore",
]

"""Test factories for Upblock API models."""

from .base import AsyncSQLAlchemyModelFactory
from .profiles import (
    DeviceFingerprintFactory,
    ProfileFactory,
    ReferralFactory,
    SearchHistoryFactory,
)

__all__ = [
    "AsyncSQLAlchemyModelFactory",
    "DeviceFingerprintFactory",
    "ProfileFactory",
    "ReferralFactory",
    "SearchHistoryFactory",
]

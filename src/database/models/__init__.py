"""Database models for the Upblock API."""

from .base import Base
from .device_fingerprints import DeviceFingerprint
from .profiles import Profile
from .referrals import Referral
from .search_history import SearchHistory

__all__ = [
    "Base",
    "DeviceFingerprint",
    "Profile",
    "Referral",
    "SearchHistory",
]

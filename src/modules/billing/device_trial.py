"""One-time free trial per device fingerprint, for visitors without an account."""

from dataclasses import dataclass

from src.modules.billing.constants import FREE_SEARCHES_PER_DEVICE


@dataclass(frozen=True)
class DeviceTrialStatus:
    can_search: bool
    searches_used: int
    searches_remaining: int


def device_trial_status(
    searches_used: int | None, limit: int = FREE_SEARCHES_PER_DEVICE
) -> DeviceTrialStatus:
    used = max(0, searches_used or 0)
    return DeviceTrialStatus(
        can_search=used < limit,
        searches_used=used,
        searches_remaining=max(0, limit - used),
    )

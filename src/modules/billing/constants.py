"""Plan identifiers and credit allowance constants."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from src.utils.settings.billing import BillingSettings

_billing_settings = BillingSettings()


class PlanType(str, Enum):
    """Subscription tiers stored in ``profiles.plan_type``."""

    FREE_TRIAL = "FREE_TRIAL"
    STARTER_PACK = "STARTER_PACK"
    PRO = "PRO"
    # Hidden tier, granted manually
    UNLIMITED_PRO = "UNLIMITED_PRO"


class ProfileField(str, Enum):
    """Profile columns the ledger reads and asks callers to update."""

    SEARCH_COUNT = "search_count"
    CREDIT_TOPUPS = "credit_topups"
    PLAN_TYPE = "plan_type"
    PRO_MONTH = "pro_month"
    PRO_USED = "pro_used"


class ReferralStatus(str, Enum):
    """Lifecycle of a row in ``referrals``."""

    PENDING = "pending"
    CREDITED = "credited"


class PurchasePackage(str, Enum):
    """Products a checkout can complete for."""

    STARTER_PACK = "STARTER_PACK"
    BULK_PACK = "BULK_PACK"
    PRO = "PRO"


FREE_LIFETIME_BASE = _billing_settings.FREE_LIFETIME_BASE
ACCOUNT_BONUS = _billing_settings.ACCOUNT_BONUS
PRO_MONTHLY_LIMIT = _billing_settings.PRO_MONTHLY_LIMIT
STARTER_PACK_CREDITS = _billing_settings.STARTER_PACK_CREDITS
BULK_PACK_CREDITS = _billing_settings.BULK_PACK_CREDITS
REFERRAL_CREDITS = _billing_settings.REFERRAL_CREDITS
MAX_REFERRALS_PER_USER = _billing_settings.MAX_REFERRALS_PER_USER
UNLIMITED_CREDITS_SENTINEL = _billing_settings.UNLIMITED_CREDITS_SENTINEL
FREE_SEARCHES_PER_DEVICE = _billing_settings.FREE_SEARCHES_PER_DEVICE
RECENT_SEARCH_WINDOW_DAYS = _billing_settings.RECENT_SEARCH_WINDOW_DAYS
CONSUMPTION_MAX_ATTEMPTS = _billing_settings.CONSUMPTION_MAX_ATTEMPTS

# Plans that draw from the lifetime free allowance before top-ups
LIFETIME_ALLOWANCE_PLANS = frozenset({PlanType.FREE_TRIAL, PlanType.STARTER_PACK})


@dataclass(frozen=True)
class CreditPolicy:
    """Allowance sizes used by the ledger calculations."""

    free_lifetime_base: int = FREE_LIFETIME_BASE
    account_bonus: int = ACCOUNT_BONUS
    pro_monthly_limit: int = PRO_MONTHLY_LIMIT
    unlimited_sentinel: int = UNLIMITED_CREDITS_SENTINEL
    starter_pack_credits: int = STARTER_PACK_CREDITS
    bulk_pack_credits: int = BULK_PACK_CREDITS
    referral_credits: int = REFERRAL_CREDITS
    max_referrals_per_user: int = MAX_REFERRALS_PER_USER

    @classmethod
    def from_settings(cls, settings: BillingSettings) -> "CreditPolicy":
        return cls(
            free_lifetime_base=settings.FREE_LIFETIME_BASE,
            account_bonus=settings.ACCOUNT_BONUS,
            pro_monthly_limit=settings.PRO_MONTHLY_LIMIT,
            unlimited_sentinel=settings.UNLIMITED_CREDITS_SENTINEL,
            starter_pack_credits=settings.STARTER_PACK_CREDITS,
            bulk_pack_credits=settings.BULK_PACK_CREDITS,
            referral_credits=settings.REFERRAL_CREDITS,
            max_referrals_per_user=settings.MAX_REFERRALS_PER_USER,
        )

    def free_allowance(self, has_account: bool) -> int:
        """Lifetime free audits for an actor; anonymous actors get the base only."""
        return self.free_lifetime_base + (self.account_bonus if has_account else 0)


DEFAULT_POLICY = CreditPolicy.from_settings(_billing_settings)

"""Profile changes granted by a completed checkout or a credited referral."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from fastapi import status

from src.api.core.exceptions.base import UpblockException
from src.api.core.messages import MessageCode
from src.modules.billing.constants import (
    DEFAULT_POLICY,
    CreditPolicy,
    PlanType,
    PurchasePackage,
)
from src.modules.billing.ledger import CreditState, month_tag


@dataclass(frozen=True)
class PurchaseGrant:
    """What a package adds to a profile.

    Top-up credits are a delta so the caller can apply them as an atomic
    increment; plan changes are absolute values.
    """

    package: PurchasePackage
    topup_credits: int = 0
    plan: PlanType | None = None
    pro_month: str | None = None
    reset_pro_used: bool = False

    def apply(self, state: CreditState) -> CreditState:
        """State after the grant has been persisted."""
        updated = replace(state, credit_topups=state.credit_topups + self.topup_credits)
        if self.plan is not None:
            updated = replace(updated, plan=self.plan)
        if self.pro_month is not None:
            updated = replace(updated, pro_month=self.pro_month)
        if self.reset_pro_used:
            updated = replace(updated, pro_used=0)
        return updated


def parse_package(value: str | PurchasePackage) -> PurchasePackage:
    if isinstance(value, PurchasePackage):
        return value
    try:
        return PurchasePackage(str(value).strip().upper())
    except ValueError:
        raise UpblockException(
            MessageCode.INVALID_PURCHASE_PACKAGE,
            status.HTTP_400_BAD_REQUEST,
            {"package": value},
        )


def plan_purchase(
    package: str | PurchasePackage,
    now: datetime,
    policy: CreditPolicy = DEFAULT_POLICY,
) -> PurchaseGrant:
    """Translate a purchased package into a :class:`PurchaseGrant`.

    Credit packs stack on the existing balance and leave the plan alone. PRO
    starts a fresh monthly pool in the current month.
    """
    package = parse_package(package)

    if package is PurchasePackage.STARTER_PACK:
        return PurchaseGrant(package=package, topup_credits=policy.starter_pack_credits)

    if package is PurchasePackage.BULK_PACK:
        return PurchaseGrant(package=package, topup_credits=policy.bulk_pack_credits)

    return PurchaseGrant(
        package=package,
        plan=PlanType.PRO,
        pro_month=month_tag(now),
        reset_pro_used=True,
    )


@dataclass(frozen=True)
class ReferralGrant:
    """Top-up credits awarded to both sides of a verified referral."""

    referred_credits: int
    referrer_credits: int

    def apply_to_referred(self, state: CreditState) -> CreditState:
        return replace(state, credit_topups=state.credit_topups + self.referred_credits)

    def apply_to_referrer(self, state: CreditState) -> CreditState:
        return replace(state, credit_topups=state.credit_topups + self.referrer_credits)


def plan_referral_award(policy: CreditPolicy = DEFAULT_POLICY) -> ReferralGrant:
    return ReferralGrant(
        referred_credits=policy.referral_credits,
        referrer_credits=policy.referral_credits,
    )

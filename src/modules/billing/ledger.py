"""Credit ledger calculations.

Pure functions over a snapshot of a user's profile row. Nothing in here reads
the clock or touches storage: callers pass ``now`` and the profile in, and
persist whatever :func:`plan_consumption` tells them to.

Consumption order is the same for every plan. Tier allowances (lifetime free
audits or the PRO monthly pool) are drawn first, purchased top-ups last.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from src.modules.billing.constants import (
    DEFAULT_POLICY,
    LIFETIME_ALLOWANCE_PLANS,
    CreditPolicy,
    PlanType,
    ProfileField,
)


@dataclass(frozen=True)
class CreditState:
    """Normalised credit snapshot derived from a profile row."""

    free_used: int = 0
    has_account: bool = False
    credit_topups: int = 0
    plan: PlanType = PlanType.FREE_TRIAL
    pro_month: str = ""
    pro_used: int = 0


@dataclass(frozen=True)
class ConsumptionInstruction:
    """The single profile change that records one unit of usage.

    ``pro_month_reset`` is only set on a PRO month rollover, in which case both
    ``pro_used`` and ``pro_month`` must be written together.
    """

    field: ProfileField
    new_value: int
    pro_month_reset: str | None = None

    def as_update(self) -> dict[str, int | str]:
        """Column -> value mapping for the profile update."""
        update: dict[str, int | str] = {self.field.value: self.new_value}
        if self.pro_month_reset is not None:
            update[ProfileField.PRO_MONTH.value] = self.pro_month_reset
        return update


@dataclass(frozen=True)
class CreditSummary:
    plan: PlanType
    remaining: int
    unlimited: bool
    can_perform_action: bool
    free_limit: int
    free_remaining: int
    credit_topups: int
    monthly_limit: int | None
    monthly_remaining: int | None
    pro_month: str | None


_STATE_ATTR_BY_FIELD = {
    ProfileField.SEARCH_COUNT: "free_used",
    ProfileField.CREDIT_TOPUPS: "credit_topups",
    ProfileField.PRO_USED: "pro_used",
}


def month_tag(now: datetime) -> str:
    """UTC calendar month of ``now`` as ``YYYY-MM``; naive values are taken as UTC."""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{now.year:04d}-{now.month:02d}"


def _read(profile: Any, name: str) -> Any:
    if isinstance(profile, Mapping):
        return profile.get(name)
    return getattr(profile, name, None)


def _count(value: Any) -> int:
    # Absent, malformed or negative counters read as zero
    if value is None or isinstance(value, bool):
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, count)


def _plan(value: Any) -> PlanType:
    if isinstance(value, PlanType):
        return value
    if isinstance(value, str):
        try:
            return PlanType(value.strip().upper())
        except ValueError:
            return PlanType.FREE_TRIAL
    return PlanType.FREE_TRIAL


def derive_state(profile: Any | None, now: datetime) -> CreditState:
    """Build a :class:`CreditState` from a profile row, mapping or ``None``.

    ``None`` means an anonymous actor. Any present record means the actor has
    an account. Missing fields fall back to their defaults and negative
    counters left behind by earlier bugs are clamped to zero here so they
    never produce negative remainders downstream.
    """
    current_month = month_tag(now)

    if profile is None:
        return CreditState(pro_month=current_month)

    stored_month = _read(profile, ProfileField.PRO_MONTH.value)
    if not isinstance(stored_month, str) or not stored_month.strip():
        stored_month = current_month

    return CreditState(
        free_used=_count(_read(profile, ProfileField.SEARCH_COUNT.value)),
        has_account=True,
        credit_topups=_count(_read(profile, ProfileField.CREDIT_TOPUPS.value)),
        plan=_plan(_read(profile, ProfileField.PLAN_TYPE.value)),
        pro_month=stored_month.strip(),
        pro_used=_count(_read(profile, ProfileField.PRO_USED.value)),
    )


def is_unlimited(state: CreditState) -> bool:
    return state.plan is PlanType.UNLIMITED_PRO


def _monthly_remaining(
    state: CreditState, now: datetime, policy: CreditPolicy
) -> int:
    if state.pro_month != month_tag(now):
        # New month: the stored counter belongs to an older period
        return policy.pro_monthly_limit
    return max(0, policy.pro_monthly_limit - state.pro_used)


def _free_remaining(state: CreditState, policy: CreditPolicy) -> int:
    return max(0, policy.free_allowance(state.has_account) - state.free_used)


def remaining_credits(
    state: CreditState, now: datetime, policy: CreditPolicy = DEFAULT_POLICY
) -> int:
    """Usable credits for ``state`` at ``now``.

    For ``UNLIMITED_PRO`` this is ``policy.unlimited_sentinel``, a display
    value only. Use :func:`is_unlimited` to gate that tier.
    """
    if state.plan is PlanType.PRO:
        return _monthly_remaining(state, now, policy) + state.credit_topups

    if state.plan is PlanType.UNLIMITED_PRO:
        return policy.unlimited_sentinel

    return _free_remaining(state, policy) + state.credit_topups


def can_perform_action(
    state: CreditState, now: datetime, policy: CreditPolicy = DEFAULT_POLICY
) -> bool:
    return remaining_credits(state, now, policy) > 0


def plan_consumption(
    state: CreditState, now: datetime, policy: CreditPolicy = DEFAULT_POLICY
) -> ConsumptionInstruction | None:
    """Decide which profile field records the next unit of usage.

    Returns ``None`` when no credit source is left; the gated action must not
    run. The caller applies the instruction as one atomic conditional write.
    """
    current_month = month_tag(now)

    if state.plan is PlanType.PRO:
        if state.pro_month != current_month:
            return ConsumptionInstruction(
                field=ProfileField.PRO_USED,
                new_value=1,
                pro_month_reset=current_month,
            )
        if state.pro_used < policy.pro_monthly_limit:
            return ConsumptionInstruction(
                field=ProfileField.PRO_USED, new_value=state.pro_used + 1
            )
        if state.credit_topups > 0:
            return ConsumptionInstruction(
                field=ProfileField.CREDIT_TOPUPS, new_value=state.credit_topups - 1
            )
        return None

    if state.plan is PlanType.UNLIMITED_PRO:
        # Never gated, still counted for analytics
        return ConsumptionInstruction(
            field=ProfileField.SEARCH_COUNT, new_value=state.free_used + 1
        )

    if state.free_used < policy.free_allowance(state.has_account):
        return ConsumptionInstruction(
            field=ProfileField.SEARCH_COUNT, new_value=state.free_used + 1
        )
    if state.credit_topups > 0:
        return ConsumptionInstruction(
            field=ProfileField.CREDIT_TOPUPS, new_value=state.credit_topups - 1
        )
    return None


def apply_instruction(
    state: CreditState, instruction: ConsumptionInstruction
) -> CreditState:
    """State the next :func:`derive_state` returns once ``instruction`` is persisted."""
    changes: dict[str, Any] = {
        _STATE_ATTR_BY_FIELD[instruction.field]: instruction.new_value
    }
    if instruction.pro_month_reset is not None:
        changes["pro_month"] = instruction.pro_month_reset
    return replace(state, **changes)


def credit_summary(
    state: CreditState, now: datetime, policy: CreditPolicy = DEFAULT_POLICY
) -> CreditSummary:
    """Breakdown of the credit pools shown to the user."""
    is_pro = state.plan is PlanType.PRO
    uses_lifetime_allowance = state.plan in LIFETIME_ALLOWANCE_PLANS

    return CreditSummary(
        plan=state.plan,
        remaining=remaining_credits(state, now, policy),
        unlimited=is_unlimited(state),
        can_perform_action=can_perform_action(state, now, policy),
        free_limit=policy.free_allowance(state.has_account),
        free_remaining=(
            _free_remaining(state, policy) if uses_lifetime_allowance else 0
        ),
        credit_topups=state.credit_topups,
        monthly_limit=policy.pro_monthly_limit if is_pro else None,
        monthly_remaining=_monthly_remaining(state, now, policy) if is_pro else None,
        pro_month=month_tag(now) if is_pro else None,
    )

"""Credit ledger service: applies ledger decisions to the profile store."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable
from uuid import UUID

from fastapi import status
from sqlalchemy import case, func, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.core.exceptions.base import InsufficientCreditsException, UpblockException
from src.api.core.messages import MessageCode
from src.core.base import BaseService, utc_now
from src.database.models import DeviceFingerprint, Profile, Referral, SearchHistory
from src.modules.billing.constants import (
    CONSUMPTION_MAX_ATTEMPTS,
    DEFAULT_POLICY,
    FREE_SEARCHES_PER_DEVICE,
    RECENT_SEARCH_WINDOW_DAYS,
    CreditPolicy,
    ProfileField,
    PurchasePackage,
    ReferralStatus,
)
from src.modules.billing.device_trial import DeviceTrialStatus, device_trial_status
from src.modules.billing.ledger import (
    ConsumptionInstruction,
    CreditState,
    CreditSummary,
    apply_instruction,
    credit_summary,
    derive_state,
    month_tag,
    plan_consumption,
)
from src.modules.billing.purchases import (
    PurchaseGrant,
    ReferralGrant,
    plan_purchase,
    plan_referral_award,
)

_SNAPSHOT_COLUMNS = (
    Profile.id,
    Profile.search_count,
    Profile.credit_topups,
    Profile.plan_type,
    Profile.pro_month,
    Profile.pro_used,
)


@dataclass(frozen=True)
class ConsumptionResult:
    instruction: ConsumptionInstruction
    state: CreditState
    attempts: int


@dataclass(frozen=True)
class SearchRecordResult:
    address: str
    is_recent_search: bool
    credit_consumed: bool
    summary: CreditSummary


def _matches(column: Any, stored: Any):
    """Compare-and-swap guard on the value read in the snapshot."""
    return column.is_(None) if stored is None else column == stored


def _topup_increment(credits: int):
    # Negative balances from old bugs count as zero
    return case((Profile.credit_topups > 0, Profile.credit_topups), else_=0) + credits


class CreditLedgerService(BaseService):
    """Reads profile snapshots, asks the ledger what to do and persists it.

    Every consumption is written as a conditional UPDATE guarded on the
    counters read in the snapshot, so two requests for the same user cannot
    spend the same credit. A lost race re-reads and re-plans.

    ``get_profile``, ``apply_purchase`` and ``award_referral_credits`` have no
    route here; the payment webhook and phone verification flows call them.
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utc_now,
        policy: CreditPolicy = DEFAULT_POLICY,
        max_attempts: int = CONSUMPTION_MAX_ATTEMPTS,
    ):
        super().__init__(db, clock)
        self.policy = policy
        self.max_attempts = max_attempts

    async def _load_snapshot(self, user_id: UUID) -> Row | None:
        # Column select bypasses the identity map so each read is fresh
        result = await self.db.execute(
            select(*_SNAPSHOT_COLUMNS).where(Profile.id == user_id)
        )
        return result.one_or_none()

    async def _require_snapshot(self, user_id: UUID) -> Row:
        snapshot = await self._load_snapshot(user_id)
        if snapshot is None:
            raise UpblockException(
                MessageCode.USER_NOT_FOUND,
                status.HTTP_404_NOT_FOUND,
                {"user_id": str(user_id)},
            )
        return snapshot

    async def _update_profile(self, user_id: UUID, values: dict[str, Any]) -> None:
        result = await self.db.execute(
            update(Profile)
            .where(Profile.id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise UpblockException(
                MessageCode.USER_NOT_FOUND,
                status.HTTP_404_NOT_FOUND,
                {"user_id": str(user_id)},
            )

    async def get_profile(self, user_id: UUID) -> Profile | None:
        return await self.db.get(Profile, user_id)

    async def get_credit_state(
        self, user_id: UUID | None, now: datetime | None = None
    ) -> CreditState:
        """Credit state for a user; ``None`` or an unknown id is anonymous."""
        now = now or self.now()
        snapshot = await self._load_snapshot(user_id) if user_id else None
        return derive_state(snapshot, now)

    async def get_credit_summary(
        self, user_id: UUID | None, now: datetime | None = None
    ) -> CreditSummary:
        now = now or self.now()
        state = await self.get_credit_state(user_id, now)
        return credit_summary(state, now, self.policy)

    async def _apply_consumption(
        self, snapshot: Row, instruction: ConsumptionInstruction, now: datetime
    ) -> bool:
        field_name = instruction.field.value
        values: dict[str, Any] = instruction.as_update()
        conditions = [
            Profile.id == snapshot.id,
            _matches(getattr(Profile, field_name), getattr(snapshot, field_name)),
            _matches(Profile.plan_type, snapshot.plan_type),
        ]

        if instruction.field is ProfileField.PRO_USED:
            conditions.append(_matches(Profile.pro_month, snapshot.pro_month))
            if snapshot.pro_month is None:
                # Stamp the month so next month's rollover is detected
                values.setdefault(ProfileField.PRO_MONTH.value, month_tag(now))

        values["updated_at"] = now
        result = await self.db.execute(
            update(Profile)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _consume(self, user_id: UUID, now: datetime) -> ConsumptionResult:
        for attempt in range(1, self.max_attempts + 1):
            snapshot = await self._require_snapshot(user_id)
            state = derive_state(snapshot, now)
            instruction = plan_consumption(state, now, self.policy)

            if instruction is None:
                self.logger.warning(
                    "No credits available",
                    user_id=str(user_id),
                    plan=state.plan.value,
                )
                raise InsufficientCreditsException(
                    plan=state.plan.value,
                    free_limit=self.policy.free_allowance(state.has_account),
                )

            if await self._apply_consumption(snapshot, instruction, now):
                self.logger.info(
                    "Credit consumed",
                    user_id=str(user_id),
                    plan=state.plan.value,
                    field=instruction.field.value,
                    new_value=instruction.new_value,
                    pro_month_reset=instruction.pro_month_reset,
                    attempt=attempt,
                )
                return ConsumptionResult(
                    instruction=instruction,
                    state=apply_instruction(state, instruction),
                    attempts=attempt,
                )

            self.logger.info(
                "Profile changed during consumption, retrying",
                user_id=str(user_id),
                attempt=attempt,
            )

        self.logger.error(
            "Credit consumption kept conflicting",
            user_id=str(user_id),
            attempts=self.max_attempts,
        )
        raise UpblockException(
            MessageCode.CREDIT_CONFLICT,
            status.HTTP_409_CONFLICT,
            {"attempts": self.max_attempts},
        )

    async def consume_credit(
        self, user_id: UUID, now: datetime | None = None
    ) -> ConsumptionResult:
        """Spend one credit for ``user_id`` or raise ``InsufficientCreditsException``."""
        result = await self._consume(user_id, now or self.now())
        await self.db.commit()
        return result

    async def _find_recent_search(
        self, user_id: UUID, address: str, now: datetime
    ) -> SearchHistory | None:
        window_start = now - timedelta(days=RECENT_SEARCH_WINDOW_DAYS)
        result = await self.db.execute(
            select(SearchHistory)
            .where(
                SearchHistory.user_id == user_id,
                SearchHistory.address == address,
                SearchHistory.created_at >= window_start,
            )
            .order_by(SearchHistory.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def record_search(
        self,
        user_id: UUID,
        address: str,
        now: datetime | None = None,
        skip_credit_consumption: bool = False,
    ) -> SearchRecordResult:
        """Record an address audit, charging one credit unless it is a recent re-search.

        Searching the same address again within the recent-search window is
        free and only refreshes the existing history entry.
        """
        now = now or self.now()
        address = address.strip()
        if not address:
            raise UpblockException(
                MessageCode.INVALID_INPUT,
                status.HTTP_422_UNPROCESSABLE_ENTITY,
                {"field": "address"},
            )
        await self._require_snapshot(user_id)

        recent_search = await self._find_recent_search(user_id, address, now)
        credit_consumed = False

        if recent_search is not None:
            self.logger.info(
                "Recent search found, skipping credit consumption",
                user_id=str(user_id),
                last_searched=recent_search.created_at.isoformat(),
            )
            recent_search.created_at = now
        else:
            if not skip_credit_consumption:
                await self._consume(user_id, now)
                credit_consumed = True
            self.db.add(SearchHistory(user_id=user_id, address=address, created_at=now))

        await self.db.commit()

        return SearchRecordResult(
            address=address,
            is_recent_search=recent_search is not None,
            credit_consumed=credit_consumed,
            summary=await self.get_credit_summary(user_id, now),
        )

    async def get_search_history(
        self, user_id: UUID, limit: int = 20, offset: int = 0
    ) -> list[SearchHistory]:
        result = await self.db.execute(
            select(SearchHistory)
            .where(SearchHistory.user_id == user_id)
            .order_by(SearchHistory.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def apply_purchase(
        self,
        user_id: UUID,
        package: str | PurchasePackage,
        now: datetime | None = None,
    ) -> PurchaseGrant:
        """Persist the credits or plan change bought with ``package``."""
        now = now or self.now()
        grant = plan_purchase(package, now, self.policy)

        values: dict[str, Any] = {"updated_at": now}
        if grant.topup_credits:
            values["credit_topups"] = _topup_increment(grant.topup_credits)
        if grant.plan is not None:
            values["plan_type"] = grant.plan.value
        if grant.pro_month is not None:
            values["pro_month"] = grant.pro_month
        if grant.reset_pro_used:
            values["pro_used"] = 0

        await self._update_profile(user_id, values)
        await self.db.commit()

        self.logger.info(
            "Purchase applied",
            user_id=str(user_id),
            package=grant.package.value,
            topup_credits=grant.topup_credits,
            plan=grant.plan.value if grant.plan else None,
        )
        return grant

    async def get_device_trial(
        self, fingerprint: str, limit: int = FREE_SEARCHES_PER_DEVICE
    ) -> DeviceTrialStatus:
        result = await self.db.execute(
            select(DeviceFingerprint.searches_used).where(
                DeviceFingerprint.fingerprint == fingerprint
            )
        )
        return device_trial_status(result.scalar_one_or_none(), limit)

    async def record_device_search(
        self,
        fingerprint: str,
        now: datetime | None = None,
        limit: int = FREE_SEARCHES_PER_DEVICE,
    ) -> DeviceTrialStatus:
        """Count one anonymous search against a device."""
        now = now or self.now()
        result = await self.db.execute(
            update(DeviceFingerprint)
            .where(DeviceFingerprint.fingerprint == fingerprint)
            .values(searches_used=DeviceFingerprint.searches_used + 1, last_seen=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.add(
                DeviceFingerprint(
                    fingerprint=fingerprint,
                    searches_used=1,
                    first_seen=now,
                    last_seen=now,
                )
            )
        await self.db.commit()

        trial = await self.get_device_trial(fingerprint, limit)
        self.logger.info(
            "Device search recorded",
            fingerprint=fingerprint,
            searches_used=trial.searches_used,
            searches_remaining=trial.searches_remaining,
        )
        return trial

    async def link_device(self, user_id: UUID, fingerprint: str) -> None:
        """Remember which device created the account, for abuse tracking."""
        await self._update_profile(
            user_id, {"signup_fingerprint": fingerprint, "updated_at": self.now()}
        )
        await self.db.commit()
        self.logger.info(
            "Signup device linked", user_id=str(user_id), fingerprint=fingerprint
        )

    async def record_referral(
        self, referrer_id: UUID, referred_id: UUID, now: datetime | None = None
    ) -> Referral:
        """Store a pending referral; credits follow once the referred user verifies."""
        if referrer_id == referred_id:
            raise UpblockException(
                MessageCode.INVALID_REFERRAL, status.HTTP_400_BAD_REQUEST
            )

        await self._require_snapshot(referred_id)
        result = await self.db.execute(
            select(Profile.referral_count).where(Profile.id == referrer_id)
        )
        referrer = result.one_or_none()
        if referrer is None:
            raise UpblockException(
                MessageCode.USER_NOT_FOUND,
                status.HTTP_404_NOT_FOUND,
                {"user_id": str(referrer_id)},
            )
        if (referrer.referral_count or 0) >= self.policy.max_referrals_per_user:
            self.logger.info(
                "Referrer has reached the referral limit", referrer_id=str(referrer_id)
            )
            raise UpblockException(
                MessageCode.REFERRAL_LIMIT_REACHED,
                status.HTTP_400_BAD_REQUEST,
                {"max_referrals": self.policy.max_referrals_per_user},
            )

        existing = await self.db.execute(
            select(Referral.id).where(Referral.referred_id == referred_id)
        )
        if existing.scalar_one_or_none() is not None:
            raise UpblockException(MessageCode.ALREADY_REFERRED, status.HTTP_409_CONFLICT)

        referral = Referral(
            referrer_id=referrer_id,
            referred_id=referred_id,
            status=ReferralStatus.PENDING.value,
            created_at=now or self.now(),
        )
        self.db.add(referral)
        await self.db.commit()
        await self.db.refresh(referral)

        self.logger.info(
            "Referral recorded",
            referrer_id=str(referrer_id),
            referred_id=str(referred_id),
        )
        return referral

    async def award_referral_credits(
        self, referred_id: UUID, now: datetime | None = None
    ) -> ReferralGrant | None:
        """Credit both sides of ``referred_id``'s pending referral.

        Returns ``None`` when there is nothing to award, including when
        another request already credited the referral.
        """
        now = now or self.now()
        result = await self.db.execute(
            select(Referral.id, Referral.referrer_id).where(
                Referral.referred_id == referred_id,
                Referral.status == ReferralStatus.PENDING.value,
            )
        )
        referral = result.one_or_none()
        if referral is None:
            self.logger.info("No pending referral", referred_id=str(referred_id))
            return None

        # Claim the referral first so it is credited once
        claimed = await self.db.execute(
            update(Referral)
            .where(
                Referral.id == referral.id,
                Referral.status == ReferralStatus.PENDING.value,
            )
            .values(status=ReferralStatus.CREDITED.value, credited_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            await self.db.rollback()
            return None

        grant = plan_referral_award(self.policy)
        await self._update_profile(
            referred_id,
            {
                "credit_topups": _topup_increment(grant.referred_credits),
                "updated_at": now,
            },
        )
        await self._update_profile(
            referral.referrer_id,
            {
                "credit_topups": _topup_increment(grant.referrer_credits),
                "referral_credits_earned": func.coalesce(
                    Profile.referral_credits_earned, 0
                )
                + grant.referrer_credits,
                "referral_count": func.coalesce(Profile.referral_count, 0) + 1,
                "updated_at": now,
            },
        )
        await self.db.commit()

        self.logger.info(
            "Referral credits awarded",
            referrer_id=str(referral.referrer_id),
            referred_id=str(referred_id),
            credits=grant.referrer_credits,
        )
        return grant

"""Profile model holding the credit counters."""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.modules.billing.constants import PlanType

from .base import Base


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, comment="Supabase Auth User ID"
    )
    email: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    full_name: Mapped[str | None] = mapped_column(String, nullable=True)

    # Credit counters, read by the ledger as a snapshot
    search_count: Mapped[int | None] = mapped_column(Integer, default=0)
    credit_topups: Mapped[int | None] = mapped_column(Integer, default=0)
    plan_type: Mapped[str | None] = mapped_column(
        String, default=PlanType.FREE_TRIAL.value
    )
    pro_used: Mapped[int | None] = mapped_column(Integer, default=0)
    pro_month: Mapped[str | None] = mapped_column(String, nullable=True)

    signup_fingerprint: Mapped[str | None] = mapped_column(String, nullable=True)

    referral_credits_earned: Mapped[int | None] = mapped_column(Integer, default=0)
    referral_count: Mapped[int | None] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    searches = relationship(
        "SearchHistory", back_populates="profile", cascade="all, delete-orphan"
    )

"""Billing settings configuration.

Credit allowances are read from the environment so production values can be
changed without a release.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BillingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Lifetime free audits for anonymous users (they use the device trial)
    FREE_LIFETIME_BASE: int = Field(default=0, ge=0)
    # Free audits granted once an account is created
    ACCOUNT_BONUS: int = Field(default=2, ge=0)
    PRO_MONTHLY_LIMIT: int = Field(default=10, ge=0)

    STARTER_PACK_CREDITS: int = Field(default=3, ge=0)
    BULK_PACK_CREDITS: int = Field(default=20, ge=0)

    # Granted to both sides once a referred user verifies their account
    REFERRAL_CREDITS: int = Field(default=3, ge=0)
    MAX_REFERRALS_PER_USER: int = Field(default=10, ge=0)

    # Reported as remaining credits for UNLIMITED_PRO, never used for gating
    UNLIMITED_CREDITS_SENTINEL: int = Field(default=999, gt=0)

    FREE_SEARCHES_PER_DEVICE: int = Field(default=1, ge=0)
    RECENT_SEARCH_WINDOW_DAYS: int = Field(default=7, ge=0)

    # Conditional-write retries before a consumption is reported as conflicting
    CONSUMPTION_MAX_ATTEMPTS: int = Field(default=3, ge=1)

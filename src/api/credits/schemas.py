"""Credits API schemas (combined models/requests)."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, StringConstraints

from src.api.core.constants import MAX_ADDRESS_LENGTH
from src.api.core.messages import APIResponse
from src.modules.billing.constants import PlanType, ReferralStatus


class CreditSummaryModel(BaseModel):
    plan: PlanType
    remaining: int
    unlimited: bool
    can_perform_action: bool
    free_limit: int
    free_remaining: int
    credit_topups: int
    monthly_limit: int | None = None
    monthly_remaining: int | None = None
    pro_month: str | None = None

    model_config = {"from_attributes": True}


class RecordSearchRequest(BaseModel):
    address: Annotated[
        str,
        StringConstraints(
            strip_whitespace=True, min_length=1, max_length=MAX_ADDRESS_LENGTH
        ),
    ]
    skip_credit_consumption: bool = False


class SearchRecordModel(BaseModel):
    address: str
    is_recent_search: bool
    credit_consumed: bool
    summary: CreditSummaryModel

    model_config = {"from_attributes": True}


class SearchHistoryItemModel(BaseModel):
    id: UUID
    address: str
    created_at: datetime

    model_config = {"from_attributes": True}


class DeviceTrialModel(BaseModel):
    can_search: bool
    searches_used: int
    searches_remaining: int

    model_config = {"from_attributes": True}


class ReferralRequest(BaseModel):
    referrer_id: UUID


class ReferralModel(BaseModel):
    id: UUID
    referrer_id: UUID
    referred_id: UUID
    status: ReferralStatus
    created_at: datetime

    model_config = {"from_attributes": True}


CreditSummaryResponse = APIResponse[CreditSummaryModel]
SearchRecordResponse = APIResponse[SearchRecordModel]
SearchHistoryResponse = APIResponse[list[SearchHistoryItemModel]]
DeviceTrialResponse = APIResponse[DeviceTrialModel]
ReferralResponse = APIResponse[ReferralModel]

"""Credits domain router."""

from typing import Annotated

from fastapi import APIRouter, Path, Query

from src.api.core.constants import MAX_FINGERPRINT_LENGTH
from src.api.core.dependencies import CreditLedgerServiceDep, CurrentUserAuthDep
from src.api.core.messages import APIResponse, MessageCode
from .schemas import (
    CreditSummaryModel,
    CreditSummaryResponse,
    DeviceTrialModel,
    DeviceTrialResponse,
    ReferralModel,
    ReferralRequest,
    ReferralResponse,
    RecordSearchRequest,
    SearchHistoryItemModel,
    SearchHistoryResponse,
    SearchRecordModel,
    SearchRecordResponse,
)

router = APIRouter(
    prefix="/credits",
    tags=["credits"],
)

FingerprintPath = Annotated[
    str, Path(min_length=1, max_length=MAX_FINGERPRINT_LENGTH)
]


@router.get("/summary", response_model=CreditSummaryResponse)
async def get_credits_summary(
    credit_service: CreditLedgerServiceDep,
    current_user: CurrentUserAuthDep,
) -> CreditSummaryResponse:
    """Remaining credits and the breakdown of each credit pool."""
    summary = await credit_service.get_credit_summary(current_user.user_id)
    return APIResponse.success(
        message_code=MessageCode.SUCCESS,
        data=CreditSummaryModel.model_validate(summary),
    )


@router.post("/consume", response_model=SearchRecordResponse)
async def record_search(
    request_data: RecordSearchRequest,
    credit_service: CreditLedgerServiceDep,
    current_user: CurrentUserAuthDep,
) -> SearchRecordResponse:
    """Charge one credit for an address audit and save it to the search history.

    Responds 402 when no credit is left.
    """
    result = await credit_service.record_search(
        user_id=current_user.user_id,
        address=request_data.address,
        skip_credit_consumption=request_data.skip_credit_consumption,
    )
    message_code = (
        MessageCode.RECENT_SEARCH_NOT_CHARGED
        if result.is_recent_search
        else MessageCode.CREDIT_CONSUMED
        if result.credit_consumed
        else MessageCode.SUCCESS
    )
    return APIResponse.success(
        message_code=message_code,
        data=SearchRecordModel.model_validate(result),
    )


@router.get("/history", response_model=SearchHistoryResponse)
async def get_search_history(
    credit_service: CreditLedgerServiceDep,
    current_user: CurrentUserAuthDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> SearchHistoryResponse:
    searches = await credit_service.get_search_history(
        current_user.user_id, limit, offset
    )
    return APIResponse.success(
        message_code=MessageCode.SUCCESS,
        data=[SearchHistoryItemModel.model_validate(item) for item in searches],
    )


@router.get("/device/{fingerprint}", response_model=DeviceTrialResponse)
async def get_device_trial(
    fingerprint: FingerprintPath,
    credit_service: CreditLedgerServiceDep,
) -> DeviceTrialResponse:
    """Free trial status for an anonymous visitor's device."""
    trial = await credit_service.get_device_trial(fingerprint)
    return APIResponse.success(
        message_code=MessageCode.SUCCESS,
        data=DeviceTrialModel.model_validate(trial),
    )


@router.post("/device/{fingerprint}/record", response_model=DeviceTrialResponse)
async def record_device_search(
    fingerprint: FingerprintPath,
    credit_service: CreditLedgerServiceDep,
) -> DeviceTrialResponse:
    trial = await credit_service.record_device_search(fingerprint)
    return APIResponse.success(
        message_code=MessageCode.UPDATED,
        data=DeviceTrialModel.model_validate(trial),
    )


@router.post("/device/{fingerprint}/link", response_model=APIResponse[None])
async def link_device(
    fingerprint: FingerprintPath,
    credit_service: CreditLedgerServiceDep,
    current_user: CurrentUserAuthDep,
) -> APIResponse[None]:
    """Attach the signup device to the current account."""
    await credit_service.link_device(current_user.user_id, fingerprint)
    return APIResponse.success(message_code=MessageCode.DEVICE_LINKED)


@router.post("/referrals", response_model=ReferralResponse)
async def record_referral(
    request_data: ReferralRequest,
    credit_service: CreditLedgerServiceDep,
    current_user: CurrentUserAuthDep,
) -> ReferralResponse:
    """Register the current user as referred by ``referrer_id``.

    Both users are credited later, when the referred account is verified.
    """
    referral = await credit_service.record_referral(
        referrer_id=request_data.referrer_id,
        referred_id=current_user.user_id,
    )
    return APIResponse.success(
        message_code=MessageCode.REFERRAL_RECORDED,
        data=ReferralModel.model_validate(referral),
    )

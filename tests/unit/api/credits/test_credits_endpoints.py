"""Tests for credits endpoints."""

import pytest
from fastapi import status
from httpx import AsyncClient
from sqlalchemy import select

from src.api.core.messages import MessageCode
from src.database.models import DeviceFingerprint, Profile, SearchHistory
from tests.utils.assertions import (
    assert_error_response,
    assert_success_response,
    assert_validation_error,
)


@pytest.mark.asyncio
async def test_summary_for_new_account(authorized_client: AsyncClient):
    data = assert_success_response(
        await authorized_client.get("/v1/credits/summary"),
        data_assertions={
            "plan": "FREE_TRIAL",
            "remaining": 2,
            "unlimited": False,
            "can_perform_action": True,
            "free_limit": 2,
        },
    )

    assert data["monthly_limit"] is None


@pytest.mark.asyncio
async def test_summary_for_unlimited_account(
    app, public_client: AsyncClient, db_session, profile_factory, jwt_token_factory
):
    profile = await profile_factory.create_async(db_session, plan_type="UNLIMITED_PRO")
    token = jwt_token_factory(str(profile.id), profile.email)

    response = await public_client.get(
        "/v1/credits/summary", headers={"Authorization": f"Bearer {token}"}
    )

    assert_success_response(
        response, data_assertions={"unlimited": True, "remaining": 999}
    )


@pytest.mark.asyncio
async def test_summary_requires_token(public_client: AsyncClient):
    response = await public_client.get("/v1/credits/summary")

    assert_error_response(
        response, MessageCode.AUTH_REQUIRED, status.HTTP_401_UNAUTHORIZED
    )


@pytest.mark.asyncio
async def test_summary_rejects_foreign_signature(
    public_client: AsyncClient, test_profile, jwt_token_factory
):
    token = jwt_token_factory(str(test_profile.id), secret="not-the-project-secret")

    response = await public_client.get(
        "/v1/credits/summary", headers={"Authorization": f"Bearer {token}"}
    )

    assert_error_response(response, MessageCode.INVALID_TOKEN, status.HTTP_403_FORBIDDEN)


@pytest.mark.asyncio
async def test_summary_rejects_anonymous_session(
    public_client: AsyncClient, test_profile, jwt_token_factory
):
    token = jwt_token_factory(str(test_profile.id), role="anon")

    response = await public_client.get(
        "/v1/credits/summary", headers={"Authorization": f"Bearer {token}"}
    )

    assert_error_response(
        response, MessageCode.INSUFFICIENT_PERMISSIONS, status.HTTP_403_FORBIDDEN
    )


@pytest.mark.asyncio
async def test_consume_until_payment_required(
    authorized_client: AsyncClient, session_factory, test_profile
):
    first = await authorized_client.post(
        "/v1/credits/consume", json={"address": "1 Smith St, Newtown NSW"}
    )
    assert_success_response(
        first,
        MessageCode.CREDIT_CONSUMED,
        data_assertions={"credit_consumed": True, "summary.remaining": 1},
    )

    second = await authorized_client.post(
        "/v1/credits/consume", json={"address": "2 Smith St, Newtown NSW"}
    )
    assert_success_response(
        second, MessageCode.CREDIT_CONSUMED, data_assertions={"summary.remaining": 0}
    )

    third = await authorized_client.post(
        "/v1/credits/consume", json={"address": "3 Smith St, Newtown NSW"}
    )
    body = assert_error_response(
        third, MessageCode.INSUFFICIENT_CREDITS, status.HTTP_402_PAYMENT_REQUIRED
    )
    assert body["details"] == {
        "plan": "FREE_TRIAL",
        "free_limit": 2,
        "topup_required": 1,
    }

    async with session_factory() as session:
        profile = await session.get(Profile, test_profile.id)
        history = (
            await session.execute(
                select(SearchHistory).where(SearchHistory.user_id == test_profile.id)
            )
        ).scalars().all()
    assert profile.search_count == 2
    assert len(history) == 2


@pytest.mark.asyncio
async def test_repeat_address_is_not_charged(authorized_client: AsyncClient):
    payload = {"address": "7 Ocean Pde, Coogee NSW"}
    await authorized_client.post("/v1/credits/consume", json=payload)

    response = await authorized_client.post("/v1/credits/consume", json=payload)

    assert_success_response(
        response,
        MessageCode.RECENT_SEARCH_NOT_CHARGED,
        data_assertions={
            "is_recent_search": True,
            "credit_consumed": False,
            "summary.remaining": 1,
        },
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("address", ["", "   ", "\t\n"])
async def test_consume_rejects_blank_address(
    authorized_client: AsyncClient, session_factory, test_profile, address
):
    response = await authorized_client.post(
        "/v1/credits/consume", json={"address": address}
    )

    assert_validation_error(response)
    async with session_factory() as session:
        profile = await session.get(Profile, test_profile.id)
        history = (
            await session.execute(
                select(SearchHistory).where(SearchHistory.user_id == test_profile.id)
            )
        ).scalars().all()
    assert profile.search_count == 0
    assert history == []


@pytest.mark.asyncio
async def test_consume_stores_trimmed_address(authorized_client: AsyncClient):
    response = await authorized_client.post(
        "/v1/credits/consume", json={"address": "  4 King St, Sydney NSW  "}
    )

    assert_success_response(
        response,
        MessageCode.CREDIT_CONSUMED,
        data_assertions={"address": "4 King St, Sydney NSW"},
    )


@pytest.mark.asyncio
async def test_history_lists_saved_searches(authorized_client: AsyncClient):
    for address in ("1 First Ave", "2 Second Ave"):
        await authorized_client.post(
            "/v1/credits/consume",
            json={"address": address, "skip_credit_consumption": True},
        )

    data = assert_success_response(
        await authorized_client.get("/v1/credits/history", params={"limit": 10})
    )

    assert {item["address"] for item in data} == {"1 First Ave", "2 Second Ave"}


@pytest.mark.asyncio
async def test_device_trial_lifecycle(public_client: AsyncClient, session_factory):
    before = await public_client.get("/v1/credits/device/fp-abc123")
    assert_success_response(
        before, data_assertions={"can_search": True, "searches_remaining": 1}
    )

    recorded = await public_client.post("/v1/credits/device/fp-abc123/record")
    assert_success_response(
        recorded,
        MessageCode.UPDATED,
        data_assertions={"can_search": False, "searches_used": 1},
    )

    async with session_factory() as session:
        device = await session.get(DeviceFingerprint, "fp-abc123")
    assert device.searches_used == 1


@pytest.mark.asyncio
async def test_link_device_to_account(
    authorized_client: AsyncClient, session_factory, test_profile
):
    response = await authorized_client.post("/v1/credits/device/fp-signup/link")

    assert_success_response(response, MessageCode.DEVICE_LINKED)
    async with session_factory() as session:
        profile = await session.get(Profile, test_profile.id)
    assert profile.signup_fingerprint == "fp-signup"


@pytest.mark.asyncio
async def test_link_device_for_missing_profile(
    public_client: AsyncClient, jwt_token_factory
):
    token = jwt_token_factory("7f7cc0b4-9d6c-4f7e-8d7c-1f2f6f7e1a10")

    response = await public_client.post(
        "/v1/credits/device/fp-signup/link",
        headers={"Authorization": f"Bearer {token}"},
    )

    assert_error_response(response, MessageCode.USER_NOT_FOUND, status.HTTP_404_NOT_FOUND)


@pytest.mark.asyncio
async def test_request_id_is_echoed(authorized_client: AsyncClient):
    response = await authorized_client.get(
        "/v1/credits/summary", headers={"X-Request-ID": "req-from-web"}
    )

    assert response.headers["X-Request-ID"] == "req-from-web"


@pytest.mark.asyncio
async def test_record_referral_for_current_user(
    authorized_client: AsyncClient, db_session, profile_factory, test_profile
):
    referrer = await profile_factory.create_async(db_session)

    response = await authorized_client.post(
        "/v1/credits/referrals", json={"referrer_id": str(referrer.id)}
    )

    assert_success_response(
        response,
        MessageCode.REFERRAL_RECORDED,
        data_assertions={
            "referrer_id": str(referrer.id),
            "referred_id": str(test_profile.id),
            "status": "pending",
        },
    )


@pytest.mark.asyncio
async def test_self_referral_is_rejected(
    authorized_client: AsyncClient, test_profile
):
    response = await authorized_client.post(
        "/v1/credits/referrals", json={"referrer_id": str(test_profile.id)}
    )

    assert_error_response(
        response, MessageCode.INVALID_REFERRAL, status.HTTP_400_BAD_REQUEST
    )

"""Tests for EntitlementChecker (RevenueCat lookups over httpx)."""

import httpx
import pytest

from livestylist.core.config import EntitlementConfig
from livestylist.services.entitlements import EntitlementChecker
from livestylist.session.models import SubscriptionTier

DEVICE = "6f1c2a9e-3b7d-4e2f-9a1b-0c5d8e7f6a21"


def checker_for(handler, api_key: str = "rc-key") -> EntitlementChecker:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EntitlementChecker(EntitlementConfig(api_key=api_key), client=client)


def subscriber(entitlements: dict) -> dict:
    return {"subscriber": {"entitlements": entitlements}}


@pytest.mark.asyncio
async def test_no_api_key_is_free():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=subscriber({"premium": {}}))

    checker = checker_for(handler, api_key="")

    assert await checker.check_tier(DEVICE) == SubscriptionTier.FREE
    assert calls == []


@pytest.mark.asyncio
async def test_premium_without_expiry():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json=subscriber({"premium": {"expires_date": None}}))

    checker = checker_for(handler)

    assert await checker.check_tier(DEVICE) == SubscriptionTier.PREMIUM
    assert seen["url"].endswith(f"/subscribers/{DEVICE}")
    assert seen["auth"] == "Bearer rc-key"


@pytest.mark.asyncio
async def test_premium_future_expiry():
    checker = checker_for(
        lambda r: httpx.Response(
            200, json=subscriber({"premium": {"expires_date": "2999-01-01T00:00:00Z"}})
        )
    )

    assert await checker.check_tier(DEVICE) == SubscriptionTier.PREMIUM


@pytest.mark.asyncio
async def test_expired_entitlement_is_free():
    checker = checker_for(
        lambda r: httpx.Response(
            200, json=subscriber({"premium": {"expires_date": "2020-01-01T00:00:00Z"}})
        )
    )

    assert await checker.check_tier(DEVICE) == SubscriptionTier.FREE


@pytest.mark.asyncio
async def test_no_entitlement_is_free():
    checker = checker_for(lambda r: httpx.Response(200, json=subscriber({})))

    assert await checker.check_tier(DEVICE) == SubscriptionTier.FREE


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [404, 500])
async def test_http_errors_fail_open(status):
    checker = checker_for(lambda r: httpx.Response(status))

    assert await checker.check_tier(DEVICE) == SubscriptionTier.FREE


@pytest.mark.asyncio
async def test_network_error_fails_open():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    checker = checker_for(handler)

    assert await checker.check_tier(DEVICE) == SubscriptionTier.FREE


@pytest.mark.asyncio
async def test_malformed_body_is_free():
    checker = checker_for(lambda r: httpx.Response(200, json={"unexpected": True}))

    assert await checker.check_tier(DEVICE) == SubscriptionTier.FREE

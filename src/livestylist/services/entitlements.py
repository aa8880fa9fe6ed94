"""
Entitlement Checker — subscription tier lookup against RevenueCat.

Fails open to the free tier: a missing subscriber, an HTTP error or a
network failure all mean "free". Only an unexpired premium entitlement
means "premium".
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from urllib.parse import quote

import httpx

from livestylist.core.config import EntitlementConfig
from livestylist.session.models import SubscriptionTier

logger = logging.getLogger(__name__)


class EntitlementChecker:
    def __init__(
        self,
        entitlement_config: EntitlementConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.entitlement_config = entitlement_config
        self._client = client
        self._owns_client = client is None

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.entitlement_config.timeout)

    async def stop(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def check_tier(self, device_id: str) -> SubscriptionTier:
        cfg = self.entitlement_config
        if not cfg.api_key:
            return SubscriptionTier.FREE
        if self._client is None:
            await self.start()
        assert self._client is not None

        url = f"{cfg.base_url.rstrip('/')}/subscribers/{quote(device_id, safe='')}"
        try:
            resp = await self._client.get(
                url,
                headers={
                    "Authorization": f"Bearer {cfg.api_key}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as e:
            logger.error(
                "Entitlement check failed, defaulting to free: %s",
                e,
                extra={"device_id": device_id},
            )
            return SubscriptionTier.FREE

        if resp.status_code == 404:
            logger.info("Subscriber not found, defaulting to free", extra={"device_id": device_id})
            return SubscriptionTier.FREE
        if resp.status_code != 200:
            logger.warning(
                "Entitlement API error (status=%d), defaulting to free",
                resp.status_code,
                extra={"device_id": device_id},
            )
            return SubscriptionTier.FREE

        try:
            entitlements = resp.json()["subscriber"]["entitlements"]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Malformed entitlement response: %s", e)
            return SubscriptionTier.FREE

        premium = entitlements.get(cfg.entitlement_id) if isinstance(entitlements, dict) else None
        if not premium:
            return SubscriptionTier.FREE

        expires = premium.get("expires_date")
        if expires:
            try:
                expires_at = _parse_timestamp(expires)
            except ValueError:
                logger.warning("Unparseable entitlement expiry %r", expires)
                return SubscriptionTier.FREE
            if expires_at < datetime.now(timezone.utc):
                return SubscriptionTier.FREE

        logger.info("Device has premium entitlement", extra={"device_id": device_id})
        return SubscriptionTier.PREMIUM


def _parse_timestamp(value: str) -> datetime:
    # RevenueCat sends ISO-8601 with a trailing "Z"
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

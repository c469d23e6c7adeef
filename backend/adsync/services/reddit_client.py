"""
Reddit Ads API v3 client and payload mapping for campaign sync.
"""

import logging
from typing import Any, Optional

import httpx

from adsync.schemas.hierarchy import AdGroupNode, AdNode, CampaignNode
from adsync.services.validation.validators import (
    MAX_BODY_LENGTH,
    MAX_DISPLAY_URL_LENGTH,
    MAX_HEADLINE_LENGTH,
    MAX_NAME_LENGTH,
    normalize_bid_strategy,
    normalize_call_to_action,
    normalize_objective,
    VALID_OBJECTIVES,
)

logger = logging.getLogger(__name__)


class RedditApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _to_micro_units(amount: float) -> int:
    return int(round(amount * 1_000_000))


# ── Payload mapping ──────────────────────────────────────────────────────

def campaign_payload(campaign: CampaignNode, funding_instrument_id: Optional[str] = None) -> dict[str, Any]:
    data = campaign.campaign_data or {}
    objective = normalize_objective(str(data.get("objective") or "IMPRESSIONS"))
    if objective not in VALID_OBJECTIVES:
        logger.warning(f"Unknown objective {data.get('objective')!r} on campaign {campaign.id}, using IMPRESSIONS")
        objective = "IMPRESSIONS"

    reddit_settings = (data.get("advancedSettings") or {}).get("reddit") or {}
    categories = (reddit_settings.get("campaign") or {}).get("specialAdCategories") or data.get("specialAdCategories")

    payload: dict[str, Any] = {
        "name": campaign.name[:MAX_NAME_LENGTH],
        "objective": objective,
        "configured_status": "ACTIVE",
        "special_ad_categories": categories or ["NONE"],
    }
    if funding_instrument_id:
        payload["funding_instrument_id"] = funding_instrument_id
    return payload


def ad_group_payload(ad_group: AdGroupNode, platform_campaign_id: str) -> dict[str, Any]:
    settings = ad_group.settings or {}
    bidding = settings.get("bidding") or {}
    payload: dict[str, Any] = {
        "name": ad_group.name[:MAX_NAME_LENGTH],
        "campaign_id": platform_campaign_id,
        "bid_strategy": normalize_bid_strategy(bidding["strategy"]) if bidding.get("strategy") else "MAXIMIZE_VOLUME",
        "bid_type": (bidding.get("bidType") or "CPC").upper(),
        "configured_status": "ACTIVE",
    }
    budget = settings.get("budget") or {}
    if isinstance(budget.get("amount"), (int, float)):
        payload["goal_type"] = "LIFETIME_SPEND" if budget.get("type") == "lifetime" else "DAILY_SPEND"
        payload["goal_value"] = _to_micro_units(budget["amount"])
    schedule = ((settings.get("advancedSettings") or {}).get("reddit") or {}).get("adGroup") or {}
    if schedule.get("startTime"):
        payload["start_time"] = schedule["startTime"]
    if schedule.get("endTime"):
        payload["end_time"] = schedule["endTime"]
    return payload


def ad_payload(ad: AdNode, platform_ad_group_id: str, truncate: bool = False) -> dict[str, Any]:
    """Map an ad to the v3 payload. With truncate, text is cut to the platform limits."""
    headline = ad.headline or "Untitled Ad"
    body = ad.description
    display_url = ad.display_url
    if truncate:
        headline = headline[:MAX_HEADLINE_LENGTH]
        body = body[:MAX_BODY_LENGTH] if body else body
        display_url = display_url[:MAX_DISPLAY_URL_LENGTH] if display_url else display_url
    payload: dict[str, Any] = {
        "name": headline[:MAX_NAME_LENGTH],
        "ad_group_id": platform_ad_group_id,
        "headline": headline,
        "click_url": ad.final_url,
        "configured_status": "ACTIVE",
    }
    if body:
        payload["body"] = body
    if ad.call_to_action:
        payload["call_to_action"] = normalize_call_to_action(ad.call_to_action)
    if display_url:
        payload["display_url"] = display_url
    return payload


# ── HTTP client ──────────────────────────────────────────────────────────

class RedditAdsClient:
    """Thin async wrapper over the Reddit Ads v3 REST API for one ad account."""

    def __init__(
        self,
        access_token: str,
        account_id: str,
        base_url: str = "https://ads-api.reddit.com/api/v3",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.account_id = account_id
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
        )

    async def __aenter__(self) -> "RedditAdsClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        try:
            response = await self._client.request(method, path, json={"data": payload} if payload is not None else None)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text[:500]
            raise RedditApiError(
                f"Reddit API {method} {path} failed ({e.response.status_code}): {detail}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise RedditApiError(f"Reddit API {method} {path} failed: {e}") from e
        body = response.json() if response.content else {}
        return body.get("data", body) if isinstance(body, dict) else {}

    async def create_campaign(self, payload: dict) -> str:
        data = await self._request("POST", f"/ad_accounts/{self.account_id}/campaigns", payload)
        return str(data["id"])

    async def update_campaign(self, campaign_id: str, payload: dict) -> None:
        await self._request("PATCH", f"/campaigns/{campaign_id}", payload)

    async def create_ad_group(self, payload: dict) -> str:
        data = await self._request("POST", f"/ad_accounts/{self.account_id}/ad_groups", payload)
        return str(data["id"])

    async def create_ad(self, payload: dict) -> str:
        data = await self._request("POST", f"/ad_accounts/{self.account_id}/ads", payload)
        return str(data["id"])

    async def update_ad_group(self, ad_group_id: str, payload: dict) -> None:
        await self._request("PATCH", f"/ad_groups/{ad_group_id}", payload)

    async def update_ad(self, ad_id: str, payload: dict) -> None:
        await self._request("PATCH", f"/ads/{ad_id}", payload)

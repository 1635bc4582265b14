"""LeadLaunch — Meta API Endpoints.

Named wrappers for each Graph API resource the service touches: account
assets, creative uploads, object creation/activation and insights.
Structured parameters are JSON-encoded, as the Graph API expects for
query-string posts.
"""

import json
from typing import Any, Dict, List, Optional

from app.connectors.meta.client import MetaClient, MetaAPIError
from app.core.logging import get_logger

logger = get_logger("meta.endpoints")

AD_ACCOUNT_FIELDS = "id,name,account_status,currency"
PIXEL_FIELDS = "id,name"
PAGE_FIELDS = "id,name,category"
INSIGHT_FIELDS = (
    "spend,impressions,clicks,inline_link_clicks,ctr,cpc,cpm,date_start,date_stop"
)
ASSET_LIMIT = 200
INSIGHT_LIMIT = 100


class MetaEndpoints:
    """Graph API calls for one connected tenant."""

    def __init__(self, client: MetaClient):
        self.client = client

    # ── Account Assets ──

    async def get_me(self) -> Dict[str, Any]:
        return await self.client.get("/me", {"fields": "id,name"})

    async def list_ad_accounts(self) -> List[Dict[str, Any]]:
        result = await self.client.get(
            "/me/adaccounts", {"fields": AD_ACCOUNT_FIELDS, "limit": ASSET_LIMIT}
        )
        return result.get("data") or []

    async def list_pixels(self, ad_account_id: str) -> List[Dict[str, Any]]:
        result = await self.client.get(
            f"/{ad_account_id}/owned_pixels",
            {"fields": PIXEL_FIELDS, "limit": ASSET_LIMIT},
        )
        return result.get("data") or []

    async def list_pages(self) -> List[Dict[str, Any]]:
        result = await self.client.get(
            "/me/accounts", {"fields": PAGE_FIELDS, "limit": ASSET_LIMIT}
        )
        return result.get("data") or []

    # ── Creative Uploads ──

    async def upload_image(
        self, ad_account_id: str, filename: str, content: bytes, content_type: str
    ) -> str:
        """Upload image bytes and return the image hash."""
        result = await self.client.post_multipart(
            f"/{ad_account_id}/adimages",
            files={"bytes": (filename, content, content_type)},
        )
        images = result.get("images") or {}
        image_hash = None
        if images:
            first_key = next(iter(images))
            image_hash = (images[first_key] or {}).get("hash")
        if not image_hash:
            logger.warning(f"adimages returned no hash: {result}")
            raise MetaAPIError("Image upload failed")
        return image_hash

    async def upload_video(
        self, ad_account_id: str, filename: str, content: bytes, content_type: str
    ) -> str:
        """Upload a video source and return the video id."""
        result = await self.client.post_multipart(
            f"/{ad_account_id}/advideos",
            files={"source": (filename, content, content_type)},
        )
        video_id = result.get("id")
        if not video_id:
            logger.warning(f"advideos returned no id: {result}")
            raise MetaAPIError("Video upload failed")
        return video_id

    # ── Object Creation ──

    async def create_campaign(self, ad_account_id: str, name: str) -> str:
        result = await self.client.post_params(
            f"/{ad_account_id}/campaigns",
            {
                "name": name,
                "objective": "OUTCOME_LEADS",
                "status": "PAUSED",
                "special_ad_categories": json.dumps(["NONE"]),
            },
        )
        return _require_id(result, "campaign")

    async def create_adset(
        self,
        ad_account_id: str,
        name: str,
        campaign_id: str,
        pixel_id: str,
        daily_budget_minor: int,
        countries: List[str],
    ) -> str:
        result = await self.client.post_params(
            f"/{ad_account_id}/adsets",
            {
                "name": f"{name} - AdSet",
                "campaign_id": campaign_id,
                "billing_event": "IMPRESSIONS",
                "optimization_goal": "LEAD_GENERATION",
                "destination_type": "WEBSITE",
                "promoted_object": json.dumps({"pixel_id": pixel_id}),
                "daily_budget": str(daily_budget_minor),
                "targeting": json.dumps(
                    {
                        "geo_locations": {"countries": countries},
                        "age_min": 18,
                        "age_max": 55,
                    }
                ),
                "status": "PAUSED",
            },
        )
        return _require_id(result, "adset")

    async def create_creative(
        self, ad_account_id: str, name: str, object_story_spec: Dict[str, Any]
    ) -> str:
        result = await self.client.post_params(
            f"/{ad_account_id}/adcreatives",
            {
                "name": f"{name} - Creative",
                "object_story_spec": json.dumps(object_story_spec),
            },
        )
        return _require_id(result, "creative")

    async def create_ad(
        self, ad_account_id: str, name: str, adset_id: str, creative_id: str
    ) -> str:
        result = await self.client.post_params(
            f"/{ad_account_id}/ads",
            {
                "name": f"{name} - Ad",
                "adset_id": adset_id,
                "creative": json.dumps({"creative_id": creative_id}),
                "status": "PAUSED",
            },
        )
        return _require_id(result, "ad")

    async def set_status(self, object_id: str, status: str) -> Dict[str, Any]:
        return await self.client.post_params(f"/{object_id}", {"status": status})

    # ── Insights ──

    async def fetch_insights(
        self, object_id: str, since: str, until: str
    ) -> Optional[Dict[str, Any]]:
        """Return the first insight row for the window, or None."""
        result = await self.client.get(
            f"/{object_id}/insights",
            {
                "fields": INSIGHT_FIELDS,
                "time_range": json.dumps({"since": since, "until": until}),
                "limit": INSIGHT_LIMIT,
            },
        )
        data = result.get("data") or []
        return data[0] if data else None


def _require_id(result: Dict[str, Any], kind: str) -> str:
    object_id = result.get("id")
    if not object_id:
        raise MetaAPIError(f"Meta did not return a {kind} id: {result}")
    return object_id

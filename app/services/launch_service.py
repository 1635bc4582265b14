"""LeadLaunch — Website-Leads Campaign Launch.

Runs the fixed launch sequence against the Graph API:
  draft row → upload creative → campaign → adset → creative → ad → activate

Each completed step is committed to the local Campaign row (``last_step``
and ``progress_json``) so an interrupted launch leaves an audit trail of the
remote objects it already created. Nothing is rolled back remotely.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from sqlmodel import Session

from app.config import settings
from app.connectors.meta.endpoints import MetaEndpoints
from app.connectors.meta.client import MetaAPIError
from app.core.errors import UpstreamError, ValidationError
from app.core.logging import get_logger
from app.models.campaign_models import Campaign, CampaignStatus, LaunchStep

logger = get_logger("launch")

CREATIVE_TYPES = ("image", "video")
REQUIRED_FIELDS = (
    "name",
    "ad_account_id",
    "pixel_id",
    "page_id",
    "lp_url",
    "daily_budget_inr",
    "creative_type",
    "primary_text",
    "headline",
)
UTM_PARAMS = {
    "utm_source": "meta",
    "utm_medium": "paid",
    "utm_campaign": "{{campaign.id}}",
    "utm_adset": "{{adset.id}}",
    "utm_ad": "{{ad.id}}",
}
CALL_TO_ACTION = "LEARN_MORE"


@dataclass
class CreativeFile:
    filename: str
    content_type: str
    content: bytes


@dataclass
class LaunchRequest:
    """A validated launch form."""

    name: str
    ad_account_id: str
    pixel_id: str
    page_id: str
    lp_url: str
    countries: List[str]
    daily_budget_inr: int
    creative_type: str
    primary_text: str
    headline: str
    event_name: Optional[str] = None

    @property
    def daily_budget_minor(self) -> int:
        return to_minor_units(self.daily_budget_inr)


@dataclass
class LaunchResult:
    campaign_id: str
    meta_campaign_id: str
    meta_ad_id: str


# ── Pure Helpers ──


def with_utms(lp_url: str) -> str:
    """Append the tracking parameters to a landing page URL.

    Existing query parameters and the fragment are kept; any existing
    value for one of the five UTM keys is replaced. Meta macros keep
    their literal braces.
    """
    parts = urlsplit(lp_url)
    query = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in UTM_PARAMS
    ]
    query.extend(UTM_PARAMS.items())
    return urlunsplit(parts._replace(query=urlencode(query, safe="{}")))


def to_minor_units(amount_major: int) -> int:
    return int(amount_major) * 100


def parse_countries(raw: Any) -> List[str]:
    """Parse the country_codes form value (a JSON array string)."""
    try:
        countries = json.loads(raw) if isinstance(raw, str) else raw
    except (TypeError, ValueError):
        raise ValidationError('country_codes must be JSON array like ["IN"]')
    if not isinstance(countries, list) or not countries:
        raise ValidationError("country_codes empty")
    if not all(isinstance(c, str) and c.strip() for c in countries):
        raise ValidationError('country_codes must be JSON array like ["IN"]')
    return [c.strip().upper() for c in countries]


def validate_launch_form(form: Dict[str, Any], creative: Optional[CreativeFile]) -> LaunchRequest:
    """Check a raw multipart submission; raises ValidationError."""
    if creative is None or not creative.content:
        raise ValidationError("Missing creative file")
    if len(creative.content) > settings.max_upload_bytes:
        raise ValidationError(
            f"Creative file exceeds {settings.max_upload_bytes} bytes"
        )

    values = {k: (str(form.get(k) or "")).strip() for k in REQUIRED_FIELDS}
    missing = [k for k, v in values.items() if not v]
    if missing:
        raise ValidationError("Missing required fields", details=missing)

    countries = parse_countries(form.get("country_codes"))

    try:
        budget = int(values["daily_budget_inr"])
    except ValueError:
        raise ValidationError("daily_budget_inr must be a whole number")
    if budget <= 0:
        raise ValidationError("daily_budget_inr must be positive")

    creative_type = values["creative_type"].lower()
    if creative_type not in CREATIVE_TYPES:
        raise ValidationError("creative_type must be image or video")

    lp = urlsplit(values["lp_url"])
    if lp.scheme not in ("http", "https") or not lp.netloc:
        raise ValidationError("lp_url must be an absolute http(s) URL")

    event_name = (str(form.get("event_name") or "")).strip() or None
    return LaunchRequest(
        name=values["name"],
        ad_account_id=values["ad_account_id"],
        pixel_id=values["pixel_id"],
        page_id=values["page_id"],
        lp_url=values["lp_url"],
        countries=countries,
        daily_budget_inr=budget,
        creative_type=creative_type,
        primary_text=values["primary_text"],
        headline=values["headline"],
        event_name=event_name,
    )


def build_object_story_spec(
    req: LaunchRequest,
    link: str,
    image_hash: Optional[str] = None,
    video_id: Optional[str] = None,
) -> Dict[str, Any]:
    call_to_action = {"type": CALL_TO_ACTION, "value": {"link": link}}
    if req.creative_type == "image":
        return {
            "page_id": req.page_id,
            "link_data": {
                "link": link,
                "message": req.primary_text,
                "name": req.headline,
                "call_to_action": call_to_action,
                "image_hash": image_hash,
            },
        }
    return {
        "page_id": req.page_id,
        "video_data": {
            "video_id": video_id,
            "message": req.primary_text,
            "title": req.headline,
            "call_to_action": call_to_action,
        },
    }


# ── Persistence ──


def create_draft(session: Session, client_id: str, req: LaunchRequest) -> Campaign:
    campaign = Campaign(
        client_id=client_id,
        name=req.name,
        ad_account_id=req.ad_account_id,
        pixel_id=req.pixel_id,
        page_id=req.page_id,
        lp_url=req.lp_url,
        event_name=req.event_name,
        country_codes=json.dumps(req.countries),
        daily_budget_inr=req.daily_budget_inr,
        creative_type=req.creative_type,
        primary_text=req.primary_text,
        headline=req.headline,
        status=CampaignStatus.DRAFT.value,
        last_step=LaunchStep.DRAFT.value,
    )
    session.add(campaign)
    session.commit()
    session.refresh(campaign)
    return campaign


def _record_step(
    session: Session, campaign: Campaign, step: LaunchStep, progress: Dict[str, Any]
) -> None:
    campaign.last_step = step.value
    campaign.progress_json = json.dumps(progress)
    campaign.updated_at = datetime.now(timezone.utc)
    session.add(campaign)
    session.commit()
    logger.info(
        f"Launch step {step.value}",
        extra={"campaign_id": campaign.id, "client_id": campaign.client_id, "step": step.value},
    )


def _error_text(exc: Exception) -> str:
    if isinstance(exc, MetaAPIError):
        return exc.details()
    return str(exc) or exc.__class__.__name__


# ── Orchestration ──


async def launch_campaign(
    session: Session,
    client_id: str,
    req: LaunchRequest,
    creative: CreativeFile,
    endpoints: MetaEndpoints,
) -> LaunchResult:
    """Create and activate the campaign on Meta, tracking it locally.

    Raises UpstreamError (after marking the row ``error``) if any remote
    step fails. Remote objects created before the failure are left PAUSED
    on Meta and listed in ``progress_json``.
    """
    campaign = create_draft(session, client_id, req)
    acct = req.ad_account_id
    progress: Dict[str, Any] = {}

    try:
        # 1) Upload creative
        if req.creative_type == "image":
            progress["image_hash"] = await endpoints.upload_image(
                acct, creative.filename, creative.content, creative.content_type
            )
        else:
            progress["video_id"] = await endpoints.upload_video(
                acct, creative.filename, creative.content, creative.content_type
            )
        _record_step(session, campaign, LaunchStep.CREATIVE_UPLOADED, progress)

        # 2) Campaign
        progress["campaign_id"] = await endpoints.create_campaign(acct, req.name)
        _record_step(session, campaign, LaunchStep.CAMPAIGN_CREATED, progress)

        # 3) Ad set (website leads)
        progress["adset_id"] = await endpoints.create_adset(
            acct,
            req.name,
            progress["campaign_id"],
            req.pixel_id,
            req.daily_budget_minor,
            req.countries,
        )
        _record_step(session, campaign, LaunchStep.ADSET_CREATED, progress)

        # 4) Creative
        link = with_utms(req.lp_url)
        story_spec = build_object_story_spec(
            req,
            link,
            image_hash=progress.get("image_hash"),
            video_id=progress.get("video_id"),
        )
        progress["creative_id"] = await endpoints.create_creative(acct, req.name, story_spec)
        _record_step(session, campaign, LaunchStep.CREATIVE_CREATED, progress)

        # 5) Ad
        progress["ad_id"] = await endpoints.create_ad(
            acct, req.name, progress["adset_id"], progress["creative_id"]
        )
        _record_step(session, campaign, LaunchStep.AD_CREATED, progress)

        # 6) Activate
        for key in ("campaign_id", "adset_id", "ad_id"):
            await endpoints.set_status(progress[key], "ACTIVE")

    except Exception as e:
        msg = _error_text(e)
        logger.error(
            f"Launch failed: {msg}",
            extra={"campaign_id": campaign.id, "client_id": client_id, "step": campaign.last_step},
        )
        session.rollback()
        campaign.status = CampaignStatus.ERROR.value
        campaign.error_message = msg
        campaign.updated_at = datetime.now(timezone.utc)
        session.add(campaign)
        session.commit()
        raise UpstreamError("Launch failed", details=msg) from e

    campaign.status = CampaignStatus.LAUNCHED.value
    campaign.meta_campaign_id = progress["campaign_id"]
    campaign.meta_adset_id = progress["adset_id"]
    campaign.meta_ad_id = progress["ad_id"]
    _record_step(session, campaign, LaunchStep.ACTIVATED, progress)
    logger.info(
        "Campaign launched",
        extra={"campaign_id": campaign.id, "client_id": client_id},
    )

    return LaunchResult(
        campaign_id=campaign.id,
        meta_campaign_id=progress["campaign_id"],
        meta_ad_id=progress["ad_id"],
    )

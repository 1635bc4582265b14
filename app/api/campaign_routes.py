"""LeadLaunch — Campaign Launch Routes."""

from typing import Optional

import httpx
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlmodel import Session, select

from app.api.dependencies import require_auth
from app.config import settings
from app.connectors.meta.client import MetaClient, get_graph_transport
from app.connectors.meta.endpoints import MetaEndpoints
from app.core.errors import ValidationError
from app.core.logging import get_logger
from app.database import get_session
from app.models.campaign_models import Campaign
from app.services.auth_service import AuthContext
from app.services.launch_service import (
    CreativeFile,
    launch_campaign,
    validate_launch_form,
)
from app.services.oauth_service import latest_token

logger = get_logger("api.campaigns")

router = APIRouter(prefix="/campaigns", tags=["Campaigns"])


@router.post("/launch")
async def launch(
    name: Optional[str] = Form(None),
    ad_account_id: Optional[str] = Form(None),
    pixel_id: Optional[str] = Form(None),
    page_id: Optional[str] = Form(None),
    lp_url: Optional[str] = Form(None),
    event_name: Optional[str] = Form(None),
    country_codes: Optional[str] = Form(None),
    daily_budget_inr: Optional[str] = Form(None),
    creative_type: Optional[str] = Form(None),
    primary_text: Optional[str] = Form(None),
    headline: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    ctx: AuthContext = Depends(require_auth),
    session: Session = Depends(get_session),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_graph_transport),
):
    """Launch a website-leads campaign from one multipart submission.

    Creates campaign, ad set, creative and ad on Meta, then activates them.
    On a remote failure the local row is marked ``error`` and a 500 with
    the Meta response body in ``details`` is returned.
    """
    token = latest_token(session, ctx.client_id)
    if not token:
        raise ValidationError("Meta not connected")

    creative = None
    if file is not None:
        # One byte past the cap is enough to reject without buffering the rest
        creative = CreativeFile(
            filename=file.filename or "creative",
            content_type=file.content_type or "application/octet-stream",
            content=await file.read(settings.max_upload_bytes + 1),
        )

    form = {
        "name": name,
        "ad_account_id": ad_account_id,
        "pixel_id": pixel_id,
        "page_id": page_id,
        "lp_url": lp_url,
        "event_name": event_name,
        "country_codes": country_codes,
        "daily_budget_inr": daily_budget_inr,
        "creative_type": creative_type,
        "primary_text": primary_text,
        "headline": headline,
    }
    req = validate_launch_form(form, creative)
    logger.info(
        f"Launching {req.creative_type} campaign '{req.name}' on {req.ad_account_id}",
        extra={"client_id": ctx.client_id},
    )

    client = MetaClient(access_token=token, transport=transport)
    try:
        result = await launch_campaign(
            session, ctx.client_id, req, creative, MetaEndpoints(client)
        )
    finally:
        await client.close()

    return {
        "ok": True,
        "campaign": {
            "id": result.campaign_id,
            "meta_campaign_id": result.meta_campaign_id,
            "meta_ad_id": result.meta_ad_id,
        },
    }


@router.get("")
async def list_campaigns(
    ctx: AuthContext = Depends(require_auth),
    session: Session = Depends(get_session),
):
    """The caller's campaigns, newest first, including failed launches."""
    campaigns = session.exec(
        select(Campaign)
        .where(Campaign.client_id == ctx.client_id)
        .order_by(Campaign.created_at.desc())  # type: ignore
        .limit(200)
    ).all()

    return {
        "campaigns": [
            {
                "id": c.id,
                "name": c.name,
                "status": c.status,
                "last_step": c.last_step,
                "creative_type": c.creative_type,
                "daily_budget_inr": c.daily_budget_inr,
                "meta_campaign_id": c.meta_campaign_id,
                "meta_adset_id": c.meta_adset_id,
                "meta_ad_id": c.meta_ad_id,
                "error_message": c.error_message,
                "created_at": c.created_at.isoformat(),
            }
            for c in campaigns
        ]
    }

"""LeadLaunch — Reporting & Insights Routes."""

from typing import Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from app.api.dependencies import require_auth
from app.connectors.meta.client import get_graph_transport
from app.core.logging import get_logger
from app.database import get_session
from app.models.campaign_models import Campaign, InsightRecord
from app.services.auth_service import AuthContext
from app.services.insights_sync import sync_client

logger = get_logger("api.reports")

router = APIRouter(tags=["Reports"])

REPORT_LIMIT = 200
METRIC_COLUMNS = (
    "spend",
    "impressions",
    "clicks",
    "inline_link_clicks",
    "ctr",
    "cpc",
    "cpm",
)


def _latest_insights(
    session: Session, client_id: str, level: str, meta_ids: List[str]
) -> Dict[str, InsightRecord]:
    """Most recent window per remote id, for this tenant only."""
    if not meta_ids:
        return {}
    records = session.exec(
        select(InsightRecord)
        .where(
            InsightRecord.client_id == client_id,
            InsightRecord.level == level,
            InsightRecord.meta_id.in_(meta_ids),  # type: ignore
        )
        .order_by(
            InsightRecord.date_stop.desc(),  # type: ignore
            InsightRecord.updated_at.desc(),  # type: ignore
        )
    ).all()

    latest: Dict[str, InsightRecord] = {}
    for r in records:
        latest.setdefault(r.meta_id, r)
    return latest


def build_report(session: Session, client_id: str, level: str) -> List[dict]:
    """One row per campaign of the tenant, joined to its latest insight."""
    id_column = "meta_campaign_id" if level == "campaign" else "meta_ad_id"
    campaigns = session.exec(
        select(Campaign)
        .where(Campaign.client_id == client_id)
        .order_by(Campaign.created_at.desc())  # type: ignore
        .limit(REPORT_LIMIT)
    ).all()

    meta_ids = [getattr(c, id_column) for c in campaigns if getattr(c, id_column)]
    insights = _latest_insights(session, client_id, level, meta_ids)

    rows = []
    for c in campaigns:
        meta_id: Optional[str] = getattr(c, id_column)
        insight = insights.get(meta_id) if meta_id else None
        row = {"id": c.id, "name": c.name, "status": c.status, id_column: meta_id}
        for column in METRIC_COLUMNS:
            row[column] = getattr(insight, column) if insight else None
        rows.append(row)
    return rows


@router.get("/reports/campaigns")
async def campaign_report(
    ctx: AuthContext = Depends(require_auth),
    session: Session = Depends(get_session),
):
    return {"rows": build_report(session, ctx.client_id, "campaign")}


@router.get("/reports/ads")
async def ad_report(
    ctx: AuthContext = Depends(require_auth),
    session: Session = Depends(get_session),
):
    return {"rows": build_report(session, ctx.client_id, "ad")}


@router.post("/insights/sync")
async def trigger_sync(
    ctx: AuthContext = Depends(require_auth),
    session: Session = Depends(get_session),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_graph_transport),
):
    """Refresh the caller's insights now instead of waiting for the schedule."""
    logger.info("Manual insights sync requested", extra={"client_id": ctx.client_id})
    report = await sync_client(session, ctx.client_id, transport=transport)
    return {
        "status": "success",
        "records_upserted": report.records_upserted,
        "skipped": report.clients_skipped > 0,
        "failures": report.failures,
    }

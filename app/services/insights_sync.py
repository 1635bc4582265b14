"""LeadLaunch — Insights Sync.

For every active tenant, pulls trailing-window insights for each launched
campaign (campaign level and ad level) and upserts them. Each tenant, and
each remote object within a tenant, runs inside its own failure boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import httpx
from sqlmodel import Session, select

from app.config import settings
from app.connectors.meta.client import MetaClient
from app.connectors.meta.endpoints import MetaEndpoints
from app.connectors.meta.transformer import upsert_insight
from app.core.logging import get_logger
from app.models.campaign_models import Campaign, CampaignStatus
from app.models.tenant_models import Client
from app.services.oauth_service import latest_token

logger = get_logger("insights.sync")


@dataclass
class SyncReport:
    clients_synced: int = 0
    clients_skipped: int = 0
    records_upserted: int = 0
    failures: List[str] = field(default_factory=list)

    def merge(self, other: "SyncReport") -> None:
        self.clients_synced += other.clients_synced
        self.clients_skipped += other.clients_skipped
        self.records_upserted += other.records_upserted
        self.failures.extend(other.failures)


def insights_window(today: Optional[datetime] = None) -> Tuple[str, str]:
    """(since, until) for the trailing window ending today (UTC)."""
    day = (today or datetime.now(timezone.utc)).date()
    since = day - timedelta(days=settings.insights_lookback_days)
    return since.strftime("%Y-%m-%d"), day.strftime("%Y-%m-%d")


async def sync_client(
    session: Session,
    client_id: str,
    transport: httpx.AsyncBaseTransport | None = None,
    today: Optional[datetime] = None,
) -> SyncReport:
    """Pull and upsert insights for one tenant's launched campaigns."""
    report = SyncReport()
    token = latest_token(session, client_id)
    if not token:
        report.clients_skipped += 1
        return report

    campaigns = session.exec(
        select(Campaign).where(
            Campaign.client_id == client_id,
            Campaign.status == CampaignStatus.LAUNCHED.value,
            Campaign.meta_campaign_id.is_not(None),  # type: ignore
        )
    ).all()

    since, until = insights_window(today)
    targets: List[Tuple[str, str]] = []
    for c in campaigns:
        targets.append(("campaign", c.meta_campaign_id))
        if c.meta_ad_id:
            targets.append(("ad", c.meta_ad_id))

    client = MetaClient(access_token=token, transport=transport)
    endpoints = MetaEndpoints(client)
    try:
        for level, meta_id in targets:
            try:
                row = await endpoints.fetch_insights(meta_id, since, until)
                if row:
                    upsert_insight(session, client_id, level, meta_id, row)
                    session.commit()
                    report.records_upserted += 1
            except Exception as e:
                session.rollback()
                logger.error(
                    f"Insights pull failed for {level} {meta_id}: {e}",
                    extra={"client_id": client_id, "level": level, "meta_id": meta_id},
                )
                report.failures.append(f"{client_id}:{level}:{meta_id}")
    finally:
        await client.close()

    report.clients_synced += 1
    logger.info(
        f"Synced {report.records_upserted} insight records ({since} → {until})",
        extra={"client_id": client_id},
    )
    return report


async def sync_all_clients(
    session: Session,
    transport: httpx.AsyncBaseTransport | None = None,
    today: Optional[datetime] = None,
) -> SyncReport:
    """Run one sync cycle across every active tenant."""
    report = SyncReport()
    client_ids = session.exec(
        select(Client.id).where(Client.is_active == True)  # noqa: E712
    ).all()

    for client_id in client_ids:
        try:
            report.merge(await sync_client(session, client_id, transport, today))
        except Exception as e:
            session.rollback()
            logger.error(
                f"Insights sync failed for client: {e}",
                extra={"client_id": client_id},
            )
            report.failures.append(client_id)

    logger.info(
        f"Insights cycle complete: {report.clients_synced} clients, "
        f"{report.records_upserted} records, {len(report.failures)} failures"
    )
    return report

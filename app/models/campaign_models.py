"""LeadLaunch — Campaign & Insight Models."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field, UniqueConstraint


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    LAUNCHED = "launched"
    ERROR = "error"


class LaunchStep(str, Enum):
    """Last launch step that completed, in pipeline order."""

    DRAFT = "draft"
    CREATIVE_UPLOADED = "creative_uploaded"
    CAMPAIGN_CREATED = "campaign_created"
    ADSET_CREATED = "adset_created"
    CREATIVE_CREATED = "creative_created"
    AD_CREATED = "ad_created"
    ACTIVATED = "activated"


class Campaign(SQLModel, table=True):
    """A locally tracked website-leads launch.

    ``meta_campaign_id`` / ``meta_adset_id`` / ``meta_ad_id`` are only set
    once the launch fully succeeds. Remote objects created before a failure
    are recorded in ``progress_json`` instead.
    """

    __tablename__ = "campaigns"

    id: str = Field(default_factory=_uuid, primary_key=True)
    client_id: str = Field(foreign_key="clients.id", index=True, ondelete="CASCADE")
    name: str
    ad_account_id: str
    pixel_id: Optional[str] = None
    page_id: Optional[str] = None
    lp_url: str
    event_name: Optional[str] = None
    country_codes: str = Field(description="JSON array, e.g. [\"IN\"]")
    daily_budget_inr: int
    creative_type: str = Field(description="image | video")
    primary_text: str
    headline: str
    status: str = Field(default=CampaignStatus.DRAFT.value, index=True)
    last_step: str = Field(default=LaunchStep.DRAFT.value)
    progress_json: Optional[str] = None
    meta_campaign_id: Optional[str] = None
    meta_adset_id: Optional[str] = None
    meta_ad_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class InsightRecord(SQLModel, table=True):
    """Performance snapshot for one remote object over one date window.

    Unique on (client_id, level, meta_id, date_start, date_stop); a later
    pull for the same key overwrites metrics and raw payload.
    """

    __tablename__ = "meta_insights_daily"
    __table_args__ = (
        UniqueConstraint(
            "client_id",
            "level",
            "meta_id",
            "date_start",
            "date_stop",
            name="uq_meta_insight_window",
        ),
    )

    id: str = Field(default_factory=_uuid, primary_key=True)
    client_id: str = Field(foreign_key="clients.id", index=True, ondelete="CASCADE")
    level: str = Field(index=True, description="campaign | ad")
    meta_id: str = Field(index=True)
    date_start: str = Field(description="YYYY-MM-DD")
    date_stop: str = Field(description="YYYY-MM-DD")
    spend: Optional[float] = None
    impressions: Optional[int] = None
    clicks: Optional[int] = None
    inline_link_clicks: Optional[int] = None
    ctr: Optional[float] = None
    cpc: Optional[float] = None
    cpm: Optional[float] = None
    raw_json: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

"""LeadLaunch — Meta Insight Row → InsightRecord.

Converts one raw Graph insights row into the meta_insights_daily table
using an idempotent upsert.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlmodel import Session, select

from app.models.campaign_models import InsightRecord
from app.core.logging import get_logger

logger = get_logger("meta.transformer")

FLOAT_METRICS = ["spend", "ctr", "cpc", "cpm"]
INT_METRICS = ["impressions", "clicks", "inline_link_clicks"]


def _safe_float(value: Any) -> Optional[float]:
    """Convert to float; None when absent or unparseable."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    number = _safe_float(value)
    return int(number) if number is not None else None


def extract_metrics(row: Dict[str, Any]) -> Dict[str, Any]:
    """Pull the tracked metric columns out of an insights row."""
    metrics: Dict[str, Any] = {}
    for name in FLOAT_METRICS:
        metrics[name] = _safe_float(row.get(name))
    for name in INT_METRICS:
        metrics[name] = _safe_int(row.get(name))
    return metrics


def upsert_insight(
    session: Session,
    client_id: str,
    level: str,
    meta_id: str,
    row: Dict[str, Any],
) -> InsightRecord:
    """Insert or overwrite the record for (client, level, meta_id, window).

    An existing record is fully replaced: every metric and the raw payload
    come from ``row``, nothing is merged. Caller commits.
    """
    date_start = row.get("date_start", "")
    date_stop = row.get("date_stop", "")
    metrics = extract_metrics(row)

    # Check for existing record (idempotency)
    existing = session.exec(
        select(InsightRecord).where(
            InsightRecord.client_id == client_id,
            InsightRecord.level == level,
            InsightRecord.meta_id == meta_id,
            InsightRecord.date_start == date_start,
            InsightRecord.date_stop == date_stop,
        )
    ).first()

    if existing:
        record = existing
        for name, value in metrics.items():
            setattr(record, name, value)
        record.raw_json = json.dumps(row)
        record.updated_at = datetime.now(timezone.utc)
    else:
        record = InsightRecord(
            client_id=client_id,
            level=level,
            meta_id=meta_id,
            date_start=date_start,
            date_stop=date_stop,
            raw_json=json.dumps(row),
            **metrics,
        )

    session.add(record)
    session.flush()
    logger.info(
        f"Upserted {level} insight {meta_id} {date_start}→{date_stop}",
        extra={"client_id": client_id, "level": level, "meta_id": meta_id},
    )
    return record

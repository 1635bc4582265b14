"""LeadLaunch — Meta Connection & Asset Routes."""

from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlmodel import Session

from app.api.dependencies import require_auth
from app.config import settings
from app.connectors.meta.client import MetaAPIError, MetaClient, get_graph_transport
from app.connectors.meta.endpoints import MetaEndpoints
from app.core.errors import UpstreamError, ValidationError
from app.core.logging import get_logger
from app.database import get_session
from app.services.auth_service import AuthContext
from app.services.oauth_service import handle_callback, latest_token, start_connect

logger = get_logger("api.meta")

router = APIRouter(prefix="/meta", tags=["Meta"])


def require_meta_token(
    ctx: AuthContext = Depends(require_auth),
    session: Session = Depends(get_session),
) -> str:
    """The caller's current Meta access token; 400 if not connected."""
    token = latest_token(session, ctx.client_id)
    if not token:
        raise ValidationError("Meta not connected")
    return token


# ── OAuth ──


@router.get("/oauth/start")
async def oauth_start(
    ctx: AuthContext = Depends(require_auth),
    session: Session = Depends(get_session),
):
    """Return the Meta login dialog URL for the caller's tenant."""
    return {"url": start_connect(session, ctx.client_id)}


@router.get("/oauth/callback", include_in_schema=False)
async def oauth_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    session: Session = Depends(get_session),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_graph_transport),
):
    """Meta redirects here; we bounce the browser back to the UI."""
    ok = await handle_callback(session, code, state, transport=transport)
    outcome = "ok" if ok else "fail"
    return RedirectResponse(f"{settings.public_base_url}/?meta={outcome}", status_code=302)


# ── Assets ──


@router.get("/ad-accounts")
async def get_ad_accounts(
    token: str = Depends(require_meta_token),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_graph_transport),
):
    """The connected Meta user and the ad accounts it can manage."""
    client = MetaClient(access_token=token, transport=transport)
    try:
        endpoints = MetaEndpoints(client)
        me = await endpoints.get_me()
        accounts = await endpoints.list_ad_accounts()
        return {"me": me, "ad_accounts": accounts}
    except MetaAPIError as e:
        logger.error(f"Failed to fetch ad accounts: {e}", extra={"status_code": e.status_code})
        raise UpstreamError("Failed to fetch ad accounts", details=e.details())
    finally:
        await client.close()


@router.get("/pixels")
async def get_pixels(
    ad_account_id: Optional[str] = Query(None),
    token: str = Depends(require_meta_token),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_graph_transport),
):
    if not ad_account_id:
        raise ValidationError("Missing ad_account_id")

    client = MetaClient(access_token=token, transport=transport)
    try:
        pixels = await MetaEndpoints(client).list_pixels(ad_account_id)
        return {"pixels": pixels}
    except MetaAPIError as e:
        logger.error(f"Failed to fetch pixels: {e}", extra={"status_code": e.status_code})
        raise UpstreamError("Failed to fetch pixels", details=e.details())
    finally:
        await client.close()


@router.get("/pages")
async def get_pages(
    token: str = Depends(require_meta_token),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_graph_transport),
):
    client = MetaClient(access_token=token, transport=transport)
    try:
        pages = await MetaEndpoints(client).list_pages()
        return {"pages": pages}
    except MetaAPIError as e:
        logger.error(f"Failed to fetch pages: {e}", extra={"status_code": e.status_code})
        raise UpstreamError("Failed to fetch pages", details=e.details())
    finally:
        await client.close()

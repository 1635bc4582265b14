"""LeadLaunch — Meta OAuth Connector.

Binds each authorization redirect to the tenant that started it with a
single-use state token, exchanges the returned code for an access token,
and keeps one explicit "current connection" pointer per tenant.
"""

import json
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from sqlmodel import Session, select

from app.config import settings
from app.connectors.meta.client import MetaAPIError, MetaClient
from app.core.logging import get_logger
from app.models.tenant_models import ActiveMetaConnection, MetaConnection, OAuthState

logger = get_logger("oauth")

OAUTH_SCOPES = ["ads_management", "ads_read", "pages_show_list"]


def build_authorization_url(state: str) -> str:
    params = {
        "client_id": settings.meta_app_id,
        "redirect_uri": settings.meta_redirect_uri,
        "state": state,
        "scope": ",".join(OAUTH_SCOPES),
    }
    return (
        f"{settings.meta_dialog_url}/{settings.meta_api_version}/dialog/oauth"
        f"?{urlencode(params)}"
    )


def start_connect(session: Session, client_id: str) -> str:
    """Persist a fresh state for the tenant and return the dialog URL."""
    state = secrets.token_urlsafe(32)
    session.add(OAuthState(state=state, client_id=client_id))
    session.commit()
    logger.info("OAuth connect started", extra={"client_id": client_id})
    return build_authorization_url(state)


def consume_state(session: Session, state: str) -> Optional[str]:
    """Delete the state and return its tenant, or None if unknown.

    Committed before any remote call so a replayed callback finds nothing.
    """
    row = session.get(OAuthState, state)
    if row is None:
        return None
    client_id = row.client_id
    session.delete(row)
    session.commit()
    return client_id


def token_expiry(token_data: dict) -> Optional[datetime]:
    """Absolute expiry from ``expires_in`` seconds; raises ValueError if malformed."""
    expires_in = token_data.get("expires_in")
    if not expires_in:
        return None
    try:
        return datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
    except (TypeError, OverflowError) as e:
        raise ValueError(f"invalid expires_in: {expires_in!r}") from e


def check_token_payload(token_data: Any) -> None:
    """Raise MetaAPIError unless the exchange payload can be stored."""
    if not isinstance(token_data, dict):
        raise MetaAPIError("Token exchange returned a non-object body", body=token_data)
    access_token = token_data.get("access_token")
    if not access_token or not isinstance(access_token, str):
        raise MetaAPIError("Token exchange returned no access_token", body=token_data)
    try:
        token_expiry(token_data)
    except ValueError as e:
        raise MetaAPIError(
            "Token exchange returned a malformed expires_in", body=token_data
        ) from e


def save_connection(session: Session, client_id: str, token_data: dict) -> MetaConnection:
    """Append a connection row and point the tenant at it, in one commit."""
    expires_at = token_expiry(token_data)

    connection = MetaConnection(
        client_id=client_id,
        access_token=token_data["access_token"],
        token_type=token_data.get("token_type"),
        expires_at=expires_at,
        raw_json=json.dumps(token_data),
    )
    session.add(connection)

    pointer = session.get(ActiveMetaConnection, client_id)
    if pointer is None:
        pointer = ActiveMetaConnection(client_id=client_id, connection_id=connection.id)
    else:
        pointer.connection_id = connection.id
        pointer.updated_at = datetime.now(timezone.utc)
    session.add(pointer)
    session.commit()
    return connection


async def handle_callback(
    session: Session,
    code: Optional[str],
    state: Optional[str],
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Complete the OAuth flow. Returns True when a connection was stored."""
    if not code or not state:
        logger.warning("OAuth callback missing code/state")
        return False

    client_id = consume_state(session, state)
    if client_id is None:
        logger.warning("OAuth callback with unknown state")
        return False

    client = MetaClient(transport=transport)
    try:
        token_data = await client.exchange_code(code)
        check_token_payload(token_data)
    except MetaAPIError as e:
        logger.error(
            f"OAuth code exchange failed: {e.details()}", extra={"client_id": client_id}
        )
        return False
    finally:
        await client.close()

    save_connection(session, client_id, token_data)
    logger.info("Meta connected", extra={"client_id": client_id})
    return True


def latest_token(session: Session, client_id: str) -> Optional[str]:
    """Access token of the tenant's current connection, or None."""
    row = session.exec(
        select(MetaConnection)
        .join(
            ActiveMetaConnection,
            ActiveMetaConnection.connection_id == MetaConnection.id,
        )
        .where(
            ActiveMetaConnection.client_id == client_id,
            MetaConnection.client_id == client_id,
        )
    ).first()
    return row.access_token if row else None

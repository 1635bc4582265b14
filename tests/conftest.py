"""
Shared test fixtures for the LeadLaunch test suite.

Tests run against an in-memory SQLite database (one connection shared via
``StaticPool``) and a scripted fake of the Meta Graph API mounted through
``httpx.MockTransport``. The app's ``get_session`` and
``get_graph_transport`` dependencies are overridden to use both.
"""

from __future__ import annotations

import os

# Settings are read at import time, so configure them before any app import.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("META_APP_ID", "test-app-id")
os.environ.setdefault("META_APP_SECRET", "test-app-secret")
os.environ.setdefault("META_REDIRECT_URI", "http://localhost:8080/meta/oauth/callback")
os.environ.setdefault("APP_BASE_URL", "http://localhost:8080")

import json  # noqa: E402
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from app.connectors.meta.client import get_graph_transport  # noqa: E402
from app.database import enable_sqlite_pragmas, get_session  # noqa: E402
from app.models.campaign_models import Campaign, CampaignStatus, LaunchStep  # noqa: E402
from app.models.tenant_models import Client  # noqa: E402
from app.services.auth_service import decode_session_token  # noqa: E402
from app.services.oauth_service import save_connection  # noqa: E402


# ---------------------------------------------------------------------------
# Fake Graph API
# ---------------------------------------------------------------------------


class FakeGraph:
    """Scripted Graph API.

    Responses are queued per (method, path) where path excludes the API
    version, e.g. ``("POST", "/act_1/adimages")``. The last queued response
    for a route keeps being served. Unscripted routes answer 404 with a
    Graph-style error body. Every request is recorded.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Tuple[int, Any]]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, json: Any = None, status_code: int = 200) -> None:
        self.routes.setdefault((method, path), []).append((status_code, json))

    def add_error(self, method: str, path: str, message: str, status_code: int = 400) -> None:
        self.add(
            method,
            path,
            {"error": {"message": message, "type": "OAuthException", "code": 100}},
            status_code,
        )

    @staticmethod
    def route_path(request: httpx.Request) -> str:
        # "/v24.0/act_1/adimages" -> "/act_1/adimages"
        parts = request.url.path.split("/", 2)
        return "/" + parts[2] if len(parts) > 2 else request.url.path

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, self.route_path(request))
        queue = self.routes.get(key)
        if not queue:
            return httpx.Response(
                404, json={"error": {"message": f"unscripted {key}", "code": 0}}
            )
        status_code, body = queue[0] if len(queue) == 1 else queue.pop(0)
        return httpx.Response(status_code, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r
            for r in self.requests
            if (method is None or r.method == method)
            and (path is None or self.route_path(r) == path)
        ]

    def paths(self) -> List[str]:
        return [self.route_path(r) for r in self.requests]

    @staticmethod
    def param_json(request: httpx.Request, name: str) -> Any:
        return json.loads(request.url.params[name])


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture()
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_pragmas(test_engine, wal=False)
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture()
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def fake_graph() -> FakeGraph:
    return FakeGraph()


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def client(db_session: Session, fake_graph: FakeGraph) -> AsyncGenerator[AsyncClient, None]:
    """
    FastAPI test client over ``ASGITransport``. Requests share the test's
    session and talk to ``fake_graph`` instead of Meta.
    """
    from app.main import app

    def _override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[get_graph_transport] = lambda: fake_graph.transport

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


async def register(client: AsyncClient, email: str, password: str = "password123", **extra) -> dict:
    """Register through the API and return token, headers and claims."""
    response = await client.post(
        "/auth/register", json={"email": email, "password": password, **extra}
    )
    assert response.status_code == 200, response.text
    token = response.json()["token"]
    ctx = decode_session_token(token)
    return {
        "token": token,
        "headers": {"Authorization": f"Bearer {token}"},
        "client_id": ctx.client_id,
        "user_id": ctx.user_id,
    }


@pytest_asyncio.fixture()
async def tenant(client: AsyncClient) -> dict:
    return await register(client, "owner@example.com", clientName="Acme Leads")


@pytest.fixture()
def connected_tenant(tenant: dict, db_session: Session) -> dict:
    """A tenant with a current Meta connection (token ``tok-owner``)."""
    save_connection(db_session, tenant["client_id"], {"access_token": "tok-owner"})
    return tenant


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_client(session: Session, name: str = "Tenant", is_active: bool = True) -> Client:
    row = Client(name=name, is_active=is_active)
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


def make_launched_campaign(
    session: Session,
    client_id: str,
    meta_campaign_id: Optional[str] = "c-1",
    meta_ad_id: Optional[str] = "ad-1",
    status: str = CampaignStatus.LAUNCHED.value,
    name: str = "Diwali Leads",
) -> Campaign:
    campaign = Campaign(
        client_id=client_id,
        name=name,
        ad_account_id="act_1",
        pixel_id="px-1",
        page_id="pg-1",
        lp_url="https://example.com/lp",
        country_codes='["IN"]',
        daily_budget_inr=500,
        creative_type="image",
        primary_text="Book a free demo",
        headline="Free demo",
        status=status,
        last_step=LaunchStep.ACTIVATED.value
        if status == CampaignStatus.LAUNCHED.value
        else LaunchStep.DRAFT.value,
        meta_campaign_id=meta_campaign_id if status == CampaignStatus.LAUNCHED.value else None,
        meta_adset_id="as-1" if status == CampaignStatus.LAUNCHED.value else None,
        meta_ad_id=meta_ad_id if status == CampaignStatus.LAUNCHED.value else None,
    )
    session.add(campaign)
    session.commit()
    session.refresh(campaign)
    return campaign

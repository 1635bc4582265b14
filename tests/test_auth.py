"""
Tests for the authentication endpoints: /auth/*
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from httpx import AsyncClient
from jose import jwt
from sqlmodel import select

from app.config import settings
from app.models.tenant_models import Client, User, UserClient
from app.services.auth_service import decode_session_token, verify_password
from conftest import register


# ---------------------------------------------------------------------------
# POST /auth/register
# ---------------------------------------------------------------------------


async def test_register_creates_user_tenant_and_link(client: AsyncClient, db_session):
    """A new user gets a tenant, a link row and a session token."""
    response = await client.post(
        "/auth/register",
        json={"email": "Owner@Example.com", "password": "supersecret", "clientName": "Acme"},
    )

    assert response.status_code == 200
    ctx = decode_session_token(response.json()["token"])
    assert ctx is not None
    assert ctx.email == "owner@example.com"
    assert ctx.role == "client"

    user = db_session.get(User, ctx.user_id)
    assert user.email == "owner@example.com"
    assert user.password_hash and user.password_hash != "supersecret"
    assert verify_password("supersecret", user.password_hash)
    assert db_session.get(Client, ctx.client_id).name == "Acme"
    assert db_session.get(UserClient, (ctx.user_id, ctx.client_id)) is not None


async def test_register_defaults_client_name_to_email_local_part(client: AsyncClient, db_session):
    info = await register(client, "jane@example.com")
    assert db_session.get(Client, info["client_id"]).name == "jane"


async def test_register_duplicate_email_is_case_insensitive(client: AsyncClient, db_session):
    """The second registration conflicts and creates nothing."""
    await register(client, "dup@example.com")

    response = await client.post(
        "/auth/register", json={"email": "DUP@Example.com", "password": "password456"}
    )

    assert response.status_code == 409
    assert "already" in response.json()["error"].lower()
    assert len(db_session.exec(select(User)).all()) == 1
    assert len(db_session.exec(select(Client)).all()) == 1


async def test_register_rejects_short_password(client: AsyncClient, db_session):
    response = await client.post(
        "/auth/register", json={"email": "short@example.com", "password": "1234567"}
    )

    assert response.status_code == 400
    assert "min 8" in response.json()["error"]
    assert db_session.exec(select(User)).first() is None


async def test_register_requires_email(client: AsyncClient):
    response = await client.post("/auth/register", json={"password": "password123"})
    assert response.status_code == 400


async def test_register_malformed_body_is_400(client: AsyncClient):
    response = await client.post(
        "/auth/register", content="not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------


async def test_login_token_carries_registered_client(client: AsyncClient):
    info = await register(client, "login@example.com", password="correct-horse")

    response = await client.post(
        "/auth/login", json={"email": "LOGIN@example.com", "password": "correct-horse"}
    )

    assert response.status_code == 200
    ctx = decode_session_token(response.json()["token"])
    assert ctx.client_id == info["client_id"]
    assert ctx.user_id == info["user_id"]
    assert ctx.email == "login@example.com"


async def test_login_wrong_password_and_unknown_email_look_identical(client: AsyncClient):
    await register(client, "real@example.com", password="correct-horse")

    wrong_password = await client.post(
        "/auth/login", json={"email": "real@example.com", "password": "wrong-horse"}
    )
    unknown_email = await client.post(
        "/auth/login", json={"email": "ghost@example.com", "password": "correct-horse"}
    )

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"error": "Invalid credentials"}


async def test_login_missing_fields_is_400(client: AsyncClient):
    response = await client.post("/auth/login", json={"email": "x@example.com"})
    assert response.status_code == 400


# ---------------------------------------------------------------------------
# Bearer authentication
# ---------------------------------------------------------------------------


async def test_protected_route_requires_token(client: AsyncClient):
    response = await client.get("/reports/campaigns")
    assert response.status_code == 401
    assert response.json() == {"error": "Missing token"}


async def test_protected_route_rejects_garbage_token(client: AsyncClient):
    response = await client.get(
        "/reports/campaigns", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid token"}


async def test_protected_route_rejects_expired_token(client: AsyncClient, tenant):
    ctx = decode_session_token(tenant["token"])
    expired = jwt.encode(
        {**ctx.model_dump(), "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )

    response = await client.get(
        "/reports/campaigns", headers={"Authorization": f"Bearer {expired}"}
    )
    assert response.status_code == 401


async def test_protected_route_rejects_token_signed_with_other_secret(client: AsyncClient, tenant):
    ctx = decode_session_token(tenant["token"])
    forged = jwt.encode(ctx.model_dump(), "someone-else", algorithm="HS256")

    response = await client.get(
        "/reports/campaigns", headers={"Authorization": f"Bearer {forged}"}
    )
    assert response.status_code == 401

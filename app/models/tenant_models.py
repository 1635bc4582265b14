"""LeadLaunch — Tenant, Login & Meta Credential Models.

A Client is the tenant root: everything except User / UserClient is
scoped by ``client_id`` and cascades away with it.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import SQLModel, Field


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """A login identity. Email is stored lowercased."""

    __tablename__ = "users"

    id: str = Field(default_factory=_uuid, primary_key=True)
    email: str = Field(unique=True, index=True)
    password_hash: str
    role: str = Field(default="client")
    created_at: datetime = Field(default_factory=_now)


class Client(SQLModel, table=True):
    """The billing / ownership unit (tenant)."""

    __tablename__ = "clients"

    id: str = Field(default_factory=_uuid, primary_key=True)
    name: str
    plan: str = Field(default="single")
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=_now)


class UserClient(SQLModel, table=True):
    __tablename__ = "user_clients"

    user_id: str = Field(foreign_key="users.id", primary_key=True, ondelete="CASCADE")
    client_id: str = Field(
        foreign_key="clients.id", primary_key=True, ondelete="CASCADE"
    )


class OAuthState(SQLModel, table=True):
    """One-time anti-forgery token binding an OAuth redirect to a tenant."""

    __tablename__ = "oauth_states"

    state: str = Field(primary_key=True)
    client_id: str = Field(foreign_key="clients.id", index=True, ondelete="CASCADE")
    created_at: datetime = Field(default_factory=_now)


class MetaConnection(SQLModel, table=True):
    """A Meta access token obtained from one OAuth callback.

    Append-only: a reconnect adds a row and moves the tenant's
    ActiveMetaConnection pointer, it never rewrites an old one.
    """

    __tablename__ = "meta_connections"

    id: str = Field(default_factory=_uuid, primary_key=True)
    client_id: str = Field(foreign_key="clients.id", index=True, ondelete="CASCADE")
    access_token: str
    token_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    raw_json: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)


class ActiveMetaConnection(SQLModel, table=True):
    """Current-credential pointer, one row per tenant."""

    __tablename__ = "active_meta_connections"

    client_id: str = Field(
        foreign_key="clients.id", primary_key=True, ondelete="CASCADE"
    )
    connection_id: str = Field(foreign_key="meta_connections.id", ondelete="CASCADE")
    updated_at: datetime = Field(default_factory=_now)

"""LeadLaunch — Auth API Routes."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from app.database import get_session
from app.services.auth_service import login_user, register_user

router = APIRouter(prefix="/auth", tags=["Auth"])


# ── Request / Response Models ──


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    password: Optional[str] = None
    client_name: Optional[str] = Field(default=None, alias="clientName")


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class TokenResponse(BaseModel):
    token: str


# ── Endpoints ──


@router.post("/register", response_model=TokenResponse)
async def register(
    request: RegisterRequest,
    session: Session = Depends(get_session),
):
    """Create a user and its tenant, and return a session token."""
    token = register_user(
        session, request.email, request.password, request.client_name
    )
    return TokenResponse(token=token)


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, session: Session = Depends(get_session)):
    token = login_user(session, request.email, request.password)
    return TokenResponse(token=token)

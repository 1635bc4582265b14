"""
Auth Service — Password hashing, session token creation/verification,
registration and login.
"""

from datetime import datetime, timezone, timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.config import settings
from app.core.errors import AuthError, ConflictError, ValidationError
from app.core.logging import get_logger
from app.models.tenant_models import Client, User, UserClient

logger = get_logger("auth")

pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds
)

MIN_PASSWORD_LENGTH = 8
INVALID_CREDENTIALS = "Invalid credentials"


class AuthContext(BaseModel):
    """Identity attached to an authenticated request."""

    user_id: str
    client_id: str
    role: str
    email: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_session_token(ctx: AuthContext) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": ctx.user_id,
        **ctx.model_dump(),
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expire_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_session_token(token: str) -> Optional[AuthContext]:
    """Return the token's identity, or None if it is invalid or expired."""
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        return None
    try:
        return AuthContext(**payload)
    except ValueError:
        return None


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def register_user(
    session: Session,
    email: Optional[str],
    password: Optional[str],
    client_name: Optional[str] = None,
) -> str:
    """Create User + Client + link in one commit and return a session token."""
    email = _normalize_email(email)
    if not email or not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"email + password(min {MIN_PASSWORD_LENGTH}) required"
        )

    exists = session.exec(select(User).where(User.email == email)).first()
    if exists:
        raise ConflictError("Email already registered")

    user = User(email=email, password_hash=hash_password(password), role="client")
    client = Client(name=client_name or email.split("@")[0] or "Client")
    session.add(user)
    session.add(client)
    session.add(UserClient(user_id=user.id, client_id=client.id))
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConflictError("Email already registered") from e

    logger.info(f"Registered user {user.id}", extra={"client_id": client.id})
    return create_session_token(
        AuthContext(
            user_id=user.id, client_id=client.id, role=user.role, email=user.email
        )
    )


def login_user(session: Session, email: Optional[str], password: Optional[str]) -> str:
    """Verify credentials and return a session token.

    Unknown email and wrong password fail with the same message.
    """
    email = _normalize_email(email)
    if not email or not password:
        raise ValidationError("Missing email/password")

    row = session.exec(
        select(User, UserClient)
        .join(UserClient, UserClient.user_id == User.id)
        .where(User.email == email)
    ).first()

    if not row:
        pwd_context.dummy_verify()
        raise AuthError(INVALID_CREDENTIALS)

    user, link = row
    if not verify_password(password, user.password_hash):
        raise AuthError(INVALID_CREDENTIALS)

    return create_session_token(
        AuthContext(
            user_id=user.id, client_id=link.client_id, role=user.role, email=user.email
        )
    )

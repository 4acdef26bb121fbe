from dataclasses import dataclass
from datetime import timedelta

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from . import config
from .db import get_db
from .errors import AuthError
from .models import AuthSession, Profile, utcnow

pwd_context = CryptContext(schemes=["bcrypt"])

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """The authenticated caller, resolved once per request and passed down explicitly."""

    user_id: str
    profile_id: str
    session_id: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


async def open_session(db: AsyncSession, user_id: str) -> tuple[str, AuthSession]:
    session = AuthSession(
        user_id=user_id,
        expires_at=utcnow() + timedelta(minutes=config.ACCESS_TOKEN_TTL_MINUTES),
    )
    db.add(session)
    await db.flush()

    token = jwt.encode(
        {"sub": user_id, "sid": session.id, "exp": session.expires_at},
        config.JWT_SECRET,
        algorithm=config.JWT_ALGORITHM,
    )
    return token, session


async def close_session(db: AsyncSession, session_id: str) -> None:
    res = await db.execute(select(AuthSession).where(AuthSession.id == session_id))
    session = res.scalar_one_or_none()
    if session and session.revoked_at is None:
        session.revoked_at = utcnow()
        await db.commit()


def token_subject(authorization: str | None) -> str | None:
    """Signed subject of a bearer header, or None. Session liveness is not checked here."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    try:
        payload = jwt.decode(token.strip(), config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")


def _bearer_token(creds: HTTPAuthorizationCredentials | None) -> str | None:
    if creds and creds.scheme.lower() == "bearer":
        return creds.credentials
    return None


async def _resolve(request: Request, token: str, db: AsyncSession) -> CurrentUser:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise AuthError("Invalid or expired token")

    user_id = payload.get("sub")
    session_id = payload.get("sid")
    if not user_id or not session_id:
        raise AuthError("Invalid or expired token")

    res = await db.execute(
        select(AuthSession).where(AuthSession.id == session_id, AuthSession.user_id == user_id)
    )
    session = res.scalar_one_or_none()
    if not session or session.revoked_at is not None or session.expires_at <= utcnow():
        raise AuthError("Session has ended, please sign in again")

    # the business identity is the profile row, never the raw auth id
    res = await db.execute(select(Profile.id).where(Profile.user_id == user_id))
    profile_id = res.scalar_one_or_none()
    if not profile_id:
        raise AuthError("No profile exists for this account")

    request.state.user_sub = user_id
    return CurrentUser(user_id=user_id, profile_id=profile_id, session_id=session_id)


async def get_current_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    token = _bearer_token(creds)
    if not token:
        raise AuthError("Missing Bearer token")
    return await _resolve(request, token, db)


async def get_optional_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser | None:
    token = _bearer_token(creds)
    if not token:
        return None
    return await _resolve(request, token, db)

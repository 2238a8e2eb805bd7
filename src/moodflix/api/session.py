from __future__ import annotations

import time
from dataclasses import dataclass

import jwt
from fastapi import HTTPException, Request

from moodflix.core.config import session_secret
from moodflix.core.models import User
from moodflix.core.store import DocumentStore
from moodflix.core.users import get_user

SESSION_MAX_AGE_S = 60 * 60 * 24 * 30  # 30 days
_ALGORITHM = "HS256"


@dataclass(frozen=True)
class SessionClaims:
    user_id: str
    email: str
    first_name: str
    last_name: str
    expires_at: int


def issue_token(user: User, *, now: float | None = None) -> str:
    issued = int(now if now is not None else time.time())
    claims = {
        "sub": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "iat": issued,
        "exp": issued + SESSION_MAX_AGE_S,
    }
    return jwt.encode(claims, session_secret(), algorithm=_ALGORITHM)


def decode_token(token: str) -> SessionClaims | None:
    try:
        claims = jwt.decode(token, session_secret(), algorithms=[_ALGORITHM])
    except jwt.PyJWTError:
        return None

    user_id = claims.get("sub")
    if not user_id:
        return None
    return SessionClaims(
        user_id=str(user_id),
        email=str(claims.get("email") or ""),
        first_name=str(claims.get("first_name") or ""),
        last_name=str(claims.get("last_name") or ""),
        expires_at=int(claims.get("exp") or 0),
    )


def _bearer_token(authorization: str | None) -> str:
    raw = (authorization or "").strip()
    if raw.lower().startswith("bearer "):
        return raw.split(" ", 1)[1].strip()
    return ""


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def optional_user(request: Request) -> User | None:
    """Resolve the signed-in user from the bearer token, or None for anonymous callers."""

    token = _bearer_token(request.headers.get("authorization"))
    if not token:
        return None
    claims = decode_token(token)
    if claims is None:
        return None
    return get_user(get_store(request), claims.user_id)


def require_user(request: Request) -> User:
    user = optional_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import HTTPException, status
from fastapi.security import HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings

# auto_error=False: a missing header must surface as our 401, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Invalid token") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _normalize_token(token: Optional[str]) -> str:
    """
    Tolerate copy-paste noise: whitespace, surrounding quotes and a
    duplicated 'Bearer ' prefix.
    """
    if token is None:
        return ""

    t = token.strip()
    if len(t) >= 2 and t[0] == t[-1] and t[0] in {'"', "'"}:
        t = t[1:-1].strip()
    if t.lower().startswith("bearer "):
        t = t[7:].strip()
    return t


def create_access_token(subject: str, expires_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    expire_dt = now + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode: dict[str, Any] = {
        "sub": str(subject),
        "exp": int(expire_dt.timestamp()),
        "iat": int(now.timestamp()),
    }
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: Optional[str]) -> str:
    """Returns the token subject (user id as a string); raises 401 otherwise."""
    token = _normalize_token(token)
    if not token:
        raise _unauthorized("Not authenticated")

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require_sub": True, "require_exp": True},
        )
    except JWTError:
        # expired signature, bad format, bad signature, wrong algorithm, ...
        raise _unauthorized()

    sub = payload.get("sub")
    if not sub:
        raise _unauthorized()
    return str(sub)

# backend/app/api/v1/auth.py
from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.roles import role_label
from app.core.security import bearer_scheme, create_access_token, decode_access_token
from app.crud.membership import get_active_membership
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import MagicCodeRequest, MagicCodeVerify, MeResponse, ProfileUpdateRequest, TokenResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

MAGIC_CODE_EXPIRY_MINUTES = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


async def purge_expired_magic_codes(db: AsyncSession) -> None:
    stmt = (
        update(User)
        .where(User.magic_code_expires_at.is_not(None))
        .where(User.magic_code_expires_at < _utcnow())
        .values(magic_code=None, magic_code_expires_at=None)
    )
    await db.execute(stmt)


@router.post("/request-code")
async def request_code(payload: MagicCodeRequest, db: AsyncSession = Depends(get_db)):
    """
    Body: {"email": "user@example.com"}
    Generates a one-time code stored on the user record. New emails get a
    user row but no membership: they hold no permissions until an admin
    places them in an organization.
    """
    email = payload.email.strip().lower()

    await purge_expired_magic_codes(db)

    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None:
        user = User(email=email, is_active=True)
        db.add(user)
        await db.flush()
        logger.info("Registered new user %s", user.id)

    code = str(secrets.randbelow(900000) + 100000)  # 6 digits
    user.magic_code = code
    user.magic_code_expires_at = _utcnow() + timedelta(minutes=MAGIC_CODE_EXPIRY_MINUTES)

    await db.commit()

    resp = {"status": "ok", "expires_in_minutes": MAGIC_CODE_EXPIRY_MINUTES}
    # never echo the code outside development
    if not settings.is_production:
        resp["code"] = code
    return resp


@router.post("/verify-code", response_model=TokenResponse)
async def verify_code(payload: MagicCodeVerify, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    email = payload.email.strip().lower()
    code = payload.code.strip()

    if not code:
        raise HTTPException(status_code=400, detail="code is required")

    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()

    if not user or not user.magic_code or not user.magic_code_expires_at:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid code")

    if not secrets.compare_digest(user.magic_code, code):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid code")

    if _as_aware(user.magic_code_expires_at) < _utcnow():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Code expired")

    # one-time use
    user.magic_code = None
    user.magic_code_expires_at = None
    await db.commit()

    return TokenResponse(access_token=create_access_token(subject=str(user.id)))


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency for protected endpoints: bearer token -> active User.
    """
    user_id = decode_access_token(credentials.credentials if credentials else None)

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    user = await db.get(User, user_uuid)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User inactive")

    return user


async def _to_me_response(db: AsyncSession, user: User) -> MeResponse:
    membership = await get_active_membership(db, user.id)
    return MeResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        avatar_url=user.avatar_url,
        manager_id=user.manager_id,
        status=user.status,
        org_id=membership.org_id if membership else None,
        team_id=membership.team_id if membership else None,
        role=membership.role if membership else None,
        role_label=role_label(membership.role) if membership else None,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


@router.get("/me", response_model=MeResponse)
async def me(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MeResponse:
    return await _to_me_response(db, user)


@router.patch("/me", response_model=MeResponse)
async def update_me(
    payload: ProfileUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MeResponse:
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

    if "full_name" in data:
        user.full_name = data["full_name"]
    if "avatar_url" in data:
        user.avatar_url = str(data["avatar_url"]) if data["avatar_url"] is not None else None

    await db.commit()
    await db.refresh(user)
    return await _to_me_response(db, user)

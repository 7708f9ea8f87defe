# app/crud/membership.py
from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.membership import Membership


async def get_active_membership(db: AsyncSession, user_id: uuid.UUID) -> Membership | None:
    """
    The membership that drives authorization for a user.
    Active rows only; the primary membership wins, then the oldest.
    """
    stmt = (
        select(Membership)
        .where(Membership.user_id == user_id)
        .where(Membership.is_active.is_(True))
        .order_by(Membership.is_primary.desc(), Membership.created_at.asc())
        .limit(1)
    )
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


async def get_membership_in_org(
    db: AsyncSession,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Membership | None:
    stmt = (
        select(Membership)
        .where(Membership.org_id == org_id)
        .where(Membership.user_id == user_id)
        .limit(1)
    )
    if for_update:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    return res.scalar_one_or_none()

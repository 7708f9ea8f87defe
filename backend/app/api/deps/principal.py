from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.auth import get_current_user
from app.auth.principal import Principal
from app.core.errors import IdentityUnresolved
from app.crud.membership import get_active_membership
from app.db.session import get_db
from app.models.user import User

logger = logging.getLogger(__name__)


async def get_principal(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Principal:
    """
    Resolve the calling principal (id, org, team, role) for this request.

    A user without an active membership has no role and therefore no
    permissions: guarded routes deny rather than fall through.
    """
    membership = await get_active_membership(db, user.id)
    if membership is None:
        logger.info("No active membership for user %s", user.id)
        raise IdentityUnresolved()

    return Principal(
        id=user.id,
        email=user.email,
        org_id=membership.org_id,
        role=membership.role,
        team_id=membership.team_id,
        manager_id=user.manager_id,
        membership_id=membership.id,
    )

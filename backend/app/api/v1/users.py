# app/api/v1/users.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.permissions import require_permission
from app.auth.engine import AuthorizationEngine, get_engine
from app.auth.permissions import PERM, Scope
from app.auth.principal import AccessGrant
from app.core.errors import PermissionDenied
from app.core.roles import role_label
from app.crud.scoping import member_scope
from app.db.session import get_db
from app.models.membership import Membership
from app.models.user import User
from app.schemas.membership import MemberOut, MemberRoleOut, RoleChangeOut, RoleChangeRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _visible_member_stmt(grant: AccessGrant):
    return (
        select(Membership, User)
        .join(User, User.id == Membership.user_id)
        .where(*member_scope(grant))
    )


# ---------------------------------------------------------
# Directory
# ---------------------------------------------------------
@router.get("", response_model=List[MemberOut])
async def list_users(
    team_id: Optional[uuid.UUID] = None,
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.USER_VIEW, Scope.TEAM)),
):
    """
    Members of the caller's organization.
      all  -> whole organization (optionally one team)
      team -> the caller's team plus direct reports
    """
    stmt = _visible_member_stmt(grant)
    if team_id is not None:
        stmt = stmt.where(Membership.team_id == team_id)
    if not include_inactive:
        stmt = stmt.where(Membership.is_active.is_(True))
    stmt = stmt.order_by(User.email.asc())

    rows = (await db.execute(stmt)).all()
    return [
        MemberOut(
            org_id=m.org_id,
            user_id=m.user_id,
            team_id=m.team_id,
            manager_id=u.manager_id,
            email=u.email,
            full_name=u.full_name,
            role=m.role,
            role_label=role_label(m.role),
            is_active=m.is_active,
            created_at=m.created_at,
        )
        for m, u in rows
    ]


# ---------------------------------------------------------
# Role
# ---------------------------------------------------------
@router.get("/{user_id}/role", response_model=MemberRoleOut)
async def get_user_role(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.USER_VIEW)),
    engine: AuthorizationEngine = Depends(get_engine),
):
    row = (
        await db.execute(_visible_member_stmt(grant).where(Membership.user_id == user_id))
    ).first()
    # outside the caller's visibility looks the same as missing
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    membership = row[0]
    parsed = engine.hierarchy.parse(membership.role)
    return MemberRoleOut(
        org_id=membership.org_id,
        user_id=membership.user_id,
        role=membership.role,
        role_label=role_label(membership.role),
        rank=engine.hierarchy.ranks[parsed] if parsed is not None else None,
        assigned_by=membership.assigned_by,
        assigned_at=membership.assigned_at,
    )


@router.put("/{user_id}/role", response_model=RoleChangeOut)
async def change_user_role(
    user_id: uuid.UUID,
    payload: RoleChangeRequest,
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.USER_ROLE_MANAGE)),
    engine: AuthorizationEngine = Depends(get_engine),
):
    """
    Promote/demote a member. Always re-validated here, whatever the client
    offered in its role picker:
      1. the target must be visible to the actor (user.view scope)
      2. role-change protocol (protected roles, no self-escalation)
      3. the actor must outrank the target's current role
    """
    actor = grant.principal

    view_grant = AccessGrant(
        principal=actor,
        permission=PERM.USER_VIEW,
        scope=engine.can_view_scope(actor.role, PERM.USER_VIEW),
    )
    row = (
        await db.execute(
            _visible_member_stmt(view_grant)
            .where(Membership.user_id == user_id)
            .where(Membership.is_active.is_(True))
            .with_for_update(of=Membership)
        )
    ).first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    membership = row[0]

    new_role = engine.validate_role_change(actor.role, payload.new_role)

    if not engine.can_manage_user(actor.role, membership.role):
        logger.info(
            "Role change rejected: %s cannot manage %s (user=%s)",
            actor.role,
            membership.role,
            user_id,
        )
        raise PermissionDenied("You cannot change the role of a user at or above your own role.")

    old_role = membership.role
    membership.role = new_role.value
    membership.assigned_by = actor.id
    membership.assigned_at = _utcnow()
    await db.commit()

    logger.info(
        "Role changed: user=%s org=%s %s -> %s by %s",
        user_id,
        membership.org_id,
        old_role,
        new_role.value,
        actor.id,
    )

    return RoleChangeOut(
        user_id=user_id,
        org_id=membership.org_id,
        old_role=old_role,
        role=new_role.value,
        message=f"User role updated to {new_role.value}",
    )

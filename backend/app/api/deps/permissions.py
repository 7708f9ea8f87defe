from __future__ import annotations

import logging
import uuid
from typing import Callable

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.principal import get_principal
from app.auth.engine import AuthorizationEngine, get_engine
from app.auth.permissions import Scope, parse_scope
from app.auth.principal import AccessGrant, Principal
from app.core.errors import PermissionDenied
from app.crud.membership import get_membership_in_org

logger = logging.getLogger(__name__)


def require_permission(permission: str, scope: Scope | str | None = None) -> Callable:
    """
    Guard a route on one permission.

      scope=None  -> the role must hold the permission
      scope=...   -> the role must hold it at `scope` or wider (self < team < all)

    Resolves to an AccessGrant carrying the widest scope the role holds, so
    the handler can narrow its query. Runs before any handler code, so a
    denied request never reaches the database.

    The permission is checked against the engine injected at request time;
    a key that engine's catalog does not declare is simply never held.
    """
    requested = None
    if scope is not None:
        requested = parse_scope(scope)
        if requested is None:
            raise ValueError(f"Unknown scope: {scope!r}")

    async def _checker(
        principal: Principal = Depends(get_principal),
        engine: AuthorizationEngine = Depends(get_engine),
    ) -> AccessGrant:
        if requested is None:
            allowed = engine.has_permission(principal.role, permission)
        else:
            allowed = engine.can_access(principal.role, permission, requested)

        if not allowed:
            logger.info(
                "Permission denied: role=%s permission=%s scope=%s user=%s",
                principal.role,
                permission,
                requested.value if requested else "-",
                principal.id,
            )
            raise PermissionDenied()

        return AccessGrant(
            principal=principal,
            permission=permission,
            scope=engine.can_view_scope(principal.role, permission),
        )

    return _checker


async def ensure_authority_over(
    db: AsyncSession,
    engine: AuthorizationEngine,
    principal: Principal,
    user_id: uuid.UUID,
    action: str,
) -> None:
    """Raise PermissionDenied unless the principal outranks the user's active membership."""
    membership = await get_membership_in_org(db, principal.org_id, user_id)
    target_role = membership.role if membership is not None and membership.is_active else None
    if not engine.can_manage_user(principal.role, target_role):
        logger.info(
            "%s denied: actor=%s role=%s target=%s target_role=%s",
            action,
            principal.id,
            principal.role,
            user_id,
            target_role,
        )
        raise PermissionDenied(f"You cannot {action} for a member at or above your level.")

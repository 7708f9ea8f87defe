from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps.principal import get_principal
from app.auth.engine import AuthorizationEngine, get_engine
from app.auth.principal import Principal
from app.core.roles import role_label
from app.schemas.membership import PermissionSnapshot, RoleOption

router = APIRouter(prefix="/me", tags=["me"])


@router.get("/permissions", response_model=PermissionSnapshot)
async def my_permissions(
    principal: Principal = Depends(get_principal),
    engine: AuthorizationEngine = Depends(get_engine),
) -> PermissionSnapshot:
    """
    Role, permissions, per-family scopes and assignable roles for the caller.

    Clients use this to hide controls; every route still re-checks on the
    server.
    """
    hierarchy = engine.hierarchy
    catalog = engine.catalog
    role = hierarchy.parse(principal.role)

    scopes: dict[str, str] = {}
    for family in sorted(catalog.families()):
        if catalog.is_binary_family(family):
            continue
        granted = catalog.granted_scope(role, family)
        if granted is not None:
            scopes[family] = granted.value

    return PermissionSnapshot(
        user_id=principal.id,
        org_id=principal.org_id,
        team_id=principal.team_id,
        role=principal.role,
        role_label=role_label(principal.role),
        rank=hierarchy.ranks[role] if role is not None else None,
        is_top_tier=hierarchy.is_top_tier(role),
        permissions=sorted(catalog.permissions_for(role)),
        scopes=scopes,
        managed_roles=[
            RoleOption(key=r.value, label=role_label(r), rank=hierarchy.ranks[r])
            for r in engine.managed_roles_ordered(role)
        ],
    )

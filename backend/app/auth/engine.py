from __future__ import annotations

import logging
from typing import FrozenSet

from app.auth.permissions import DEFAULT_CATALOG, PermissionCatalog, Scope, parse_scope
from app.core.errors import (
    InsufficientAuthorityError,
    PermissionDenied,
    SelfEscalationError,
    UnknownRoleError,
)
from app.core.roles import Role

logger = logging.getLogger(__name__)


class AuthorizationEngine:
    """
    Authorization decisions over an immutable catalog.

    All query methods are pure and total: unknown roles, permissions or
    scopes answer "no access" instead of raising. Only
    `validate_role_change` raises, so callers can tell the failure kinds
    apart and map them to a 403.
    """

    def __init__(self, catalog: PermissionCatalog = DEFAULT_CATALOG) -> None:
        self.catalog = catalog
        self.hierarchy = catalog.hierarchy

    # ------------------------------------------------------------------
    # permission queries
    # ------------------------------------------------------------------
    def has_permission(self, role: Role | str | None, permission: str | None) -> bool:
        p = (permission or "").strip()
        if p in self.catalog.permissions_for(role):
            return True
        # family names ("task.view") are held when any scope of the family is
        return self.catalog.resolve(p) is None and self.catalog.holds_family(role, p)

    def has_any_permission(self, role: Role | str | None, *permissions: str) -> bool:
        return any(self.has_permission(role, p) for p in permissions)

    def has_all_permissions(self, role: Role | str | None, *permissions: str) -> bool:
        return bool(permissions) and all(self.has_permission(role, p) for p in permissions)

    def can_access(
        self,
        role: Role | str | None,
        permission: str | None,
        scope: Scope | str = Scope.SELF,
    ) -> bool:
        requested = parse_scope(scope)
        if requested is None or not self.has_permission(role, permission):
            return False
        granted = self.catalog.granted_scope(role, permission)
        if granted is None:
            return False
        return granted.covers(requested)

    def can_view_scope(self, role: Role | str | None, permission: str | None) -> Scope:
        return self.catalog.scope_for(role, permission)

    # ------------------------------------------------------------------
    # hierarchy queries
    # ------------------------------------------------------------------
    def can_manage_user(self, actor_role: Role | str | None, target_role: Role | str | None) -> bool:
        h = self.hierarchy
        actor = h.parse(actor_role)
        target = h.parse(target_role)
        if actor is None or target is None:
            return False
        # equal rank is always denied, top tier included
        if h.rank_of(actor) == h.rank_of(target):
            return False
        if h.is_higher_rank(actor, target):
            return True
        return h.is_top_tier(actor) and not h.is_top_tier(target)

    def get_managed_roles(self, role: Role | str | None) -> FrozenSet[Role]:
        return frozenset(r for r in self.hierarchy.roles() if self.can_manage_user(role, r))

    def managed_roles_ordered(self, role: Role | str | None) -> list[Role]:
        """Managed roles, most authority first (for role pickers)."""
        managed = self.get_managed_roles(role)
        return [r for r in self.hierarchy.roles() if r in managed]

    # ------------------------------------------------------------------
    # role-change protocol
    # ------------------------------------------------------------------
    def validate_role_change(self, actor_role: Role | str | None, new_role: Role | str | None) -> Role:
        """
        Check that `actor_role` may assign `new_role`.

        Returns the resolved new Role. Raises:
          PermissionDenied            actor role is unknown
          UnknownRoleError            new role is unknown
          InsufficientAuthorityError  non-top-tier actor assigning a protected role
          SelfEscalationError         non-top-tier actor assigning a role ranked at or above its own
        """
        h = self.hierarchy

        actor = h.parse(actor_role)
        if actor is None:
            raise PermissionDenied("Your role does not allow changing roles.")
        actor_rank = h.rank_of(actor)

        target = h.parse(new_role)
        if target is None:
            raise UnknownRoleError(new_role)
        target_rank = h.rank_of(target)

        if not h.is_top_tier(actor):
            if h.is_protected(target):
                logger.info(
                    "Role change rejected: %s cannot assign protected role %s",
                    actor.value,
                    target.value,
                )
                raise InsufficientAuthorityError()
            if target_rank <= actor_rank:
                logger.info(
                    "Role change rejected: %s cannot assign %s (rank %d <= %d)",
                    actor.value,
                    target.value,
                    target_rank,
                    actor_rank,
                )
                raise SelfEscalationError()

        return target


DEFAULT_ENGINE = AuthorizationEngine()


def get_engine() -> AuthorizationEngine:
    """FastAPI dependency; override in tests to inject an alternate catalog."""
    return DEFAULT_ENGINE

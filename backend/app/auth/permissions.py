from __future__ import annotations

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping, Optional

from app.core.roles import Role, RoleHierarchy, DEFAULT_HIERARCHY


class Scope(str, enum.Enum):
    SELF = "self"
    TEAM = "team"
    ALL = "all"

    @property
    def rank(self) -> int:
        return _SCOPE_ORDER[self]

    def covers(self, other: "Scope | str") -> bool:
        return self.rank >= _SCOPE_ORDER[Scope(other)]


_SCOPE_ORDER: Mapping[Scope, int] = {Scope.SELF: 0, Scope.TEAM: 1, Scope.ALL: 2}


def parse_scope(value: Scope | str | None) -> Optional[Scope]:
    if isinstance(value, Scope):
        return value
    try:
        return Scope((value or "").strip().lower())
    except ValueError:
        return None


@dataclass(frozen=True)
class PermissionDef:
    """
    One persisted permission key.

    `family` groups the scoped variants of an action ("task.view" for
    task.view_self / task.view_team / task.view_all). Binary permissions are
    their own family and carry no scope.
    """

    key: str
    family: str
    scope: Optional[Scope] = None

    @property
    def is_binary(self) -> bool:
        return self.scope is None


@dataclass(frozen=True)
class Permission:
    # dashboard / admin
    DASHBOARD_VIEW: str = "dashboard.view"
    DASHBOARD_ADMIN_VIEW: str = "dashboard.admin_view"
    ADMIN_MANAGE: str = "admin.manage"

    # org.*
    ORG_VIEW: str = "org.view"
    ORG_MANAGE: str = "org.manage"

    # user.*
    USER_VIEW: str = "user.view"
    USER_UPDATE: str = "user.update"
    USER_CREATE: str = "user.create"
    USER_SUSPEND: str = "user.suspend"
    USER_ROLE_MANAGE: str = "user.role_manage"

    # attendance.*
    ATTENDANCE_VIEW: str = "attendance.view"
    ATTENDANCE_UPDATE: str = "attendance.update"
    ATTENDANCE_CREATE: str = "attendance.create"
    ATTENDANCE_VERIFY: str = "attendance.verify"

    # task.*
    TASK_VIEW: str = "task.view"
    TASK_CREATE: str = "task.create"
    TASK_ASSIGN: str = "task.assign"
    TASK_UPDATE: str = "task.update"
    TASK_DELETE: str = "task.delete"

    # evaluation.*
    EVALUATION_VIEW: str = "evaluation.view"
    EVALUATION_CREATE: str = "evaluation.create"
    EVALUATION_APPROVE: str = "evaluation.approve"

    # billing / salary
    BILLING_VIEW: str = "billing.view"
    BILLING_MANAGE: str = "billing.manage"
    SALARY_VIEW: str = "salary.view"
    SALARY_MANAGE: str = "salary.manage"

    # calendar / rooms
    CALENDAR_VIEW: str = "calendar.view"
    CALENDAR_CREATE: str = "calendar.create"
    CALENDAR_MANAGE: str = "calendar.manage"
    ROOM_VIEW: str = "room.view"
    ROOM_BOOK: str = "room.book"
    ROOM_MANAGE: str = "room.manage"

    # leave.*
    LEAVE_VIEW: str = "leave.view"
    LEAVE_CREATE: str = "leave.create"
    LEAVE_APPROVE: str = "leave.approve"

    # ai / reports
    AI_VIEW: str = "ai.view"
    AI_USE: str = "ai.use"
    REPORT_VIEW: str = "report.view"


PERM = Permission()


def _scoped(family: str, *scopes: Scope) -> tuple[PermissionDef, ...]:
    return tuple(PermissionDef(key=f"{family}_{s.value}", family=family, scope=s) for s in scopes)


def _binary(*keys: str) -> tuple[PermissionDef, ...]:
    return tuple(PermissionDef(key=k, family=k) for k in keys)


_S, _T, _A = Scope.SELF, Scope.TEAM, Scope.ALL

PERMISSION_DEFINITIONS: tuple[PermissionDef, ...] = (
    *_binary(PERM.DASHBOARD_VIEW, PERM.DASHBOARD_ADMIN_VIEW, PERM.ADMIN_MANAGE),
    *_binary(PERM.ORG_VIEW, PERM.ORG_MANAGE),
    *_scoped(PERM.USER_VIEW, _S, _T, _A),
    *_scoped(PERM.USER_UPDATE, _S, _T, _A),
    *_binary(PERM.USER_CREATE, PERM.USER_SUSPEND, PERM.USER_ROLE_MANAGE),
    *_scoped(PERM.ATTENDANCE_VIEW, _S, _T, _A),
    *_scoped(PERM.ATTENDANCE_UPDATE, _S, _T, _A),
    *_binary(PERM.ATTENDANCE_CREATE, PERM.ATTENDANCE_VERIFY),
    *_scoped(PERM.TASK_VIEW, _S, _T, _A),
    *_scoped(PERM.TASK_ASSIGN, _T, _A),
    *_scoped(PERM.TASK_UPDATE, _S, _T, _A),
    *_scoped(PERM.TASK_DELETE, _A),
    *_binary(PERM.TASK_CREATE),
    *_scoped(PERM.EVALUATION_VIEW, _S, _T, _A),
    *_scoped(PERM.EVALUATION_CREATE, _S, _T, _A),
    *_scoped(PERM.EVALUATION_APPROVE, _T, _A),
    *_binary(PERM.BILLING_VIEW, PERM.BILLING_MANAGE),
    *_scoped(PERM.SALARY_VIEW, _S, _T, _A),
    *_binary(PERM.SALARY_MANAGE),
    *_binary(PERM.CALENDAR_VIEW, PERM.CALENDAR_CREATE),
    *_scoped(PERM.CALENDAR_MANAGE, _T, _A),
    *_binary(PERM.ROOM_VIEW, PERM.ROOM_BOOK, PERM.ROOM_MANAGE),
    *_scoped(PERM.LEAVE_VIEW, _S, _T, _A),
    *_binary(PERM.LEAVE_CREATE),
    *_scoped(PERM.LEAVE_APPROVE, _T, _A),
    *_binary(PERM.AI_VIEW, PERM.AI_USE),
    *_scoped(PERM.REPORT_VIEW, _S, _T, _A),
)


@dataclass(frozen=True)
class RoleGrant:
    role: Role
    scopes: Mapping[str, Scope] = field(default_factory=dict)
    binary: FrozenSet[str] = frozenset()


class PermissionCatalog:
    """
    Immutable Role -> permissions table.

    Grants are additive: a role holds a permission (at some scope) or it
    does not. The table is the single source of truth for scopes; key
    suffixes are never parsed.
    """

    def __init__(
        self,
        definitions: Iterable[PermissionDef],
        grants: Iterable[RoleGrant],
        hierarchy: RoleHierarchy = DEFAULT_HIERARCHY,
    ) -> None:
        defs: dict[str, PermissionDef] = {}
        families: dict[str, list[PermissionDef]] = {}
        for d in definitions:
            if d.key in defs:
                raise ValueError(f"Duplicate permission key: {d.key}")
            defs[d.key] = d
            families.setdefault(d.family, []).append(d)

        by_role: dict[Role, RoleGrant] = {}
        for g in grants:
            if g.role in by_role:
                raise ValueError(f"Duplicate grant for role: {g.role.value}")
            for family in g.scopes:
                members = families.get(family)
                if not members or members[0].is_binary:
                    raise ValueError(f"{g.role.value}: {family!r} is not a scoped permission family")
            for key in g.binary:
                d = defs.get(key)
                if d is None or not d.is_binary:
                    raise ValueError(f"{g.role.value}: {key!r} is not a binary permission")
            by_role[g.role] = g

        self.hierarchy = hierarchy
        self._defs: Mapping[str, PermissionDef] = MappingProxyType(defs)
        self._families: Mapping[str, tuple[PermissionDef, ...]] = MappingProxyType(
            {k: tuple(v) for k, v in families.items()}
        )
        self._grants: Mapping[Role, RoleGrant] = MappingProxyType(by_role)
        self._expanded: Mapping[Role, FrozenSet[str]] = MappingProxyType(
            {role: self._expand(g) for role, g in by_role.items()}
        )

    def _expand(self, grant: RoleGrant) -> FrozenSet[str]:
        keys = set(grant.binary)
        for family, granted in grant.scopes.items():
            keys.update(d.key for d in self._families[family] if granted.covers(d.scope))
        return frozenset(keys)

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------
    def resolve(self, permission: str | None) -> Optional[PermissionDef]:
        return self._defs.get((permission or "").strip())

    def family_of(self, permission: str | None) -> Optional[str]:
        """Family for a concrete key or a family name; None if unknown."""
        p = (permission or "").strip()
        d = self._defs.get(p)
        if d is not None:
            return d.family
        if p in self._families:
            return p
        return None

    def is_binary_family(self, family: str) -> bool:
        members = self._families.get(family, ())
        return bool(members) and members[0].is_binary

    def grant_for(self, role: Role | str | None) -> Optional[RoleGrant]:
        parsed = self.hierarchy.parse(role)
        if parsed is None:
            return None
        return self._grants.get(parsed)

    def known_permissions(self) -> FrozenSet[str]:
        return frozenset(self._defs)

    def families(self) -> FrozenSet[str]:
        return frozenset(self._families)

    def roles(self) -> list[Role]:
        return [r for r in self.hierarchy.roles() if r in self._grants]

    # ------------------------------------------------------------------
    # contract
    # ------------------------------------------------------------------
    def permissions_for(self, role: Role | str | None) -> FrozenSet[str]:
        parsed = self.hierarchy.parse(role)
        if parsed is None:
            return frozenset()
        return self._expanded.get(parsed, frozenset())

    def granted_scope(self, role: Role | str | None, permission: str | None) -> Optional[Scope]:
        """Max scope granted for the permission's family, or None when not held."""
        grant = self.grant_for(role)
        family = self.family_of(permission)
        if grant is None or family is None:
            return None
        if self.is_binary_family(family):
            return Scope.ALL if family in grant.binary else None
        return grant.scopes.get(family)

    def holds_family(self, role: Role | str | None, permission: str | None) -> bool:
        return self.granted_scope(role, permission) is not None

    def scope_for(self, role: Role | str | None, permission: str | None) -> Scope:
        return self.granted_scope(role, permission) or Scope.SELF


# Each role is authored as a superset of every lower-ranked role: whoever can
# manage a member can also see and act on what that member can.
_TOP_TIER_SCOPES: Mapping[str, Scope] = {
    PERM.USER_VIEW: _A,
    PERM.USER_UPDATE: _A,
    PERM.ATTENDANCE_VIEW: _A,
    PERM.ATTENDANCE_UPDATE: _A,
    PERM.TASK_VIEW: _A,
    PERM.TASK_ASSIGN: _A,
    PERM.TASK_UPDATE: _A,
    PERM.TASK_DELETE: _A,
    PERM.EVALUATION_VIEW: _A,
    PERM.EVALUATION_CREATE: _A,
    PERM.EVALUATION_APPROVE: _A,
    PERM.SALARY_VIEW: _A,
    PERM.LEAVE_VIEW: _A,
    PERM.LEAVE_APPROVE: _A,
    PERM.REPORT_VIEW: _A,
    PERM.CALENDAR_MANAGE: _A,
}

_TOP_TIER_BINARY: FrozenSet[str] = frozenset(
    {
        PERM.DASHBOARD_VIEW,
        PERM.DASHBOARD_ADMIN_VIEW,
        PERM.ADMIN_MANAGE,
        PERM.ORG_VIEW,
        PERM.ORG_MANAGE,
        PERM.USER_CREATE,
        PERM.USER_SUSPEND,
        PERM.USER_ROLE_MANAGE,
        PERM.ATTENDANCE_CREATE,
        PERM.ATTENDANCE_VERIFY,
        PERM.TASK_CREATE,
        PERM.LEAVE_CREATE,
        PERM.SALARY_MANAGE,
        PERM.BILLING_VIEW,
        PERM.BILLING_MANAGE,
        PERM.CALENDAR_VIEW,
        PERM.CALENDAR_CREATE,
        PERM.ROOM_VIEW,
        PERM.ROOM_BOOK,
        PERM.ROOM_MANAGE,
        PERM.AI_VIEW,
        PERM.AI_USE,
    }
)

# staff and student_l2 share the everyday self-service set
_MEMBER_SCOPES: Mapping[str, Scope] = {
    PERM.USER_VIEW: _S,
    PERM.USER_UPDATE: _S,
    PERM.ATTENDANCE_VIEW: _S,
    PERM.ATTENDANCE_UPDATE: _S,
    PERM.TASK_VIEW: _S,
    PERM.TASK_UPDATE: _S,
    PERM.EVALUATION_VIEW: _S,
    PERM.LEAVE_VIEW: _S,
    PERM.SALARY_VIEW: _S,
    PERM.REPORT_VIEW: _S,
}

_MEMBER_BINARY: FrozenSet[str] = frozenset(
    {
        PERM.DASHBOARD_VIEW,
        PERM.ATTENDANCE_CREATE,
        PERM.TASK_CREATE,
        PERM.LEAVE_CREATE,
        PERM.CALENDAR_VIEW,
        PERM.AI_USE,
    }
)

ROLE_GRANTS: tuple[RoleGrant, ...] = (
    RoleGrant(Role.BOD, scopes=_TOP_TIER_SCOPES, binary=_TOP_TIER_BINARY),
    RoleGrant(Role.ADMIN, scopes=_TOP_TIER_SCOPES, binary=_TOP_TIER_BINARY),
    RoleGrant(
        Role.LEADER,
        scopes={
            PERM.USER_VIEW: _T,
            PERM.USER_UPDATE: _T,
            PERM.ATTENDANCE_VIEW: _T,
            PERM.ATTENDANCE_UPDATE: _T,
            PERM.TASK_VIEW: _T,
            PERM.TASK_ASSIGN: _T,
            PERM.TASK_UPDATE: _T,
            PERM.EVALUATION_VIEW: _T,
            PERM.EVALUATION_CREATE: _T,
            PERM.SALARY_VIEW: _T,
            PERM.LEAVE_VIEW: _T,
            PERM.LEAVE_APPROVE: _T,
            PERM.REPORT_VIEW: _T,
            PERM.CALENDAR_MANAGE: _T,
        },
        binary=frozenset(
            {
                PERM.DASHBOARD_VIEW,
                PERM.USER_ROLE_MANAGE,
                PERM.ATTENDANCE_CREATE,
                PERM.ATTENDANCE_VERIFY,
                PERM.TASK_CREATE,
                PERM.LEAVE_CREATE,
                PERM.CALENDAR_VIEW,
                PERM.ROOM_BOOK,
                PERM.AI_USE,
            }
        ),
    ),
    # hr ranks below leader, so its reach stops at the team as well
    RoleGrant(
        Role.HR,
        scopes={
            PERM.USER_VIEW: _T,
            PERM.USER_UPDATE: _S,
            PERM.ATTENDANCE_VIEW: _T,
            PERM.ATTENDANCE_UPDATE: _S,
            PERM.TASK_VIEW: _T,
            PERM.TASK_UPDATE: _T,
            PERM.EVALUATION_VIEW: _T,
            PERM.EVALUATION_CREATE: _T,
            PERM.SALARY_VIEW: _T,
            PERM.LEAVE_VIEW: _T,
            PERM.LEAVE_APPROVE: _T,
            PERM.REPORT_VIEW: _T,
        },
        binary=_MEMBER_BINARY | {PERM.ATTENDANCE_VERIFY, PERM.ROOM_BOOK},
    ),
    RoleGrant(
        Role.STUDENT_L3,
        scopes={
            **_MEMBER_SCOPES,
            PERM.USER_VIEW: _T,
            PERM.TASK_VIEW: _T,
            PERM.TASK_UPDATE: _T,
            PERM.EVALUATION_CREATE: _T,
        },
        binary=_MEMBER_BINARY | {PERM.ROOM_BOOK},
    ),
    RoleGrant(
        Role.MENTOR,
        scopes={**_MEMBER_SCOPES, PERM.EVALUATION_CREATE: _T},
        binary=_MEMBER_BINARY | {PERM.ROOM_BOOK},
    ),
    RoleGrant(Role.STUDENT_L2, scopes=_MEMBER_SCOPES, binary=_MEMBER_BINARY | {PERM.ROOM_BOOK}),
    RoleGrant(Role.STAFF, scopes=_MEMBER_SCOPES, binary=_MEMBER_BINARY),
    RoleGrant(
        Role.COLLABORATOR,
        scopes={
            PERM.USER_VIEW: _S,
            PERM.ATTENDANCE_VIEW: _S,
            PERM.ATTENDANCE_UPDATE: _S,
            PERM.TASK_VIEW: _S,
            PERM.TASK_UPDATE: _S,
            PERM.EVALUATION_VIEW: _S,
            PERM.LEAVE_VIEW: _S,
            PERM.REPORT_VIEW: _S,
        },
        binary=frozenset(
            {
                PERM.DASHBOARD_VIEW,
                PERM.ATTENDANCE_CREATE,
                PERM.LEAVE_CREATE,
                PERM.CALENDAR_VIEW,
                PERM.AI_USE,
            }
        ),
    ),
    RoleGrant(
        Role.STUDENT_L1,
        scopes={
            PERM.USER_VIEW: _S,
            PERM.ATTENDANCE_VIEW: _S,
            PERM.TASK_VIEW: _S,
            PERM.EVALUATION_VIEW: _S,
            PERM.LEAVE_VIEW: _S,
            PERM.REPORT_VIEW: _S,
        },
        binary=frozenset(
            {
                PERM.DASHBOARD_VIEW,
                PERM.ATTENDANCE_CREATE,
                PERM.LEAVE_CREATE,
                PERM.CALENDAR_VIEW,
            }
        ),
    ),
    RoleGrant(
        Role.CUSTOMER,
        scopes={
            PERM.USER_VIEW: _S,
            PERM.REPORT_VIEW: _S,
        },
        binary=frozenset({PERM.DASHBOARD_VIEW, PERM.CALENDAR_VIEW}),
    ),
    # blocked until an admin approves the registration
    RoleGrant(Role.PENDING_APPROVAL),
)


DEFAULT_CATALOG = PermissionCatalog(PERMISSION_DEFINITIONS, ROLE_GRANTS)

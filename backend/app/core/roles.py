# app/core/roles.py

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Mapping

from app.core.errors import UnknownRoleError


class Role(str, enum.Enum):
    BOD = "bod"                            # board of directors
    ADMIN = "admin"                        # system administrator
    LEADER = "leader"                      # team / project lead
    HR = "hr"                              # people operations
    STUDENT_L3 = "student_l3"              # supports leadership
    MENTOR = "mentor"                      # professional evaluation
    STUDENT_L2 = "student_l2"
    STAFF = "staff"                        # full-time employee
    COLLABORATOR = "collaborator"
    STUDENT_L1 = "student_l1"
    CUSTOMER = "customer"                  # read-only
    PENDING_APPROVAL = "pending_approval"  # registered, not yet approved


# Lower rank = more authority. Ranks are unique: the order is strict.
ROLE_RANKS: Mapping[Role, int] = {
    Role.BOD: 1,
    Role.ADMIN: 2,
    Role.LEADER: 3,
    Role.HR: 4,
    Role.STUDENT_L3: 5,
    Role.MENTOR: 6,
    Role.STUDENT_L2: 7,
    Role.STAFF: 8,
    Role.COLLABORATOR: 9,
    Role.STUDENT_L1: 10,
    Role.CUSTOMER: 11,
    Role.PENDING_APPROVAL: 12,
}

ROLE_LABELS: Mapping[Role, str] = {
    Role.BOD: "Board of Directors",
    Role.ADMIN: "Administrator",
    Role.LEADER: "Leader",
    Role.HR: "HR",
    Role.STUDENT_L3: "Student L3",
    Role.MENTOR: "Mentor",
    Role.STUDENT_L2: "Student L2",
    Role.STAFF: "Staff",
    Role.COLLABORATOR: "Collaborator",
    Role.STUDENT_L1: "Student L1",
    Role.CUSTOMER: "Customer",
    Role.PENDING_APPROVAL: "Pending approval",
}

TOP_TIER: frozenset[Role] = frozenset({Role.BOD, Role.ADMIN})

# Roles at or above this rank can only be assigned by a top-tier actor.
PROTECTED_RANK_THRESHOLD = 2


def normalize_role_key(role: Role | str | None) -> str:
    if isinstance(role, Role):
        return role.value
    return (role or "").strip().lower()


@dataclass(frozen=True)
class RoleHierarchy:
    """
    Strict total order over the fixed role set.

    Pure lookups over a static table. `rank_of` raises UnknownRoleError;
    the predicates built for guard code (`parse`, `is_top_tier`, ...) treat
    unknown keys as "no authority" instead.
    """

    ranks: Mapping[Role, int] = field(default_factory=lambda: dict(ROLE_RANKS))
    top_tier: frozenset[Role] = TOP_TIER
    protected_threshold: int = PROTECTED_RANK_THRESHOLD

    def __post_init__(self) -> None:
        values = list(self.ranks.values())
        if len(values) != len(set(values)):
            raise ValueError("Role ranks must be unique (strict total order).")
        missing = self.top_tier - set(self.ranks)
        if missing:
            raise ValueError(f"Top-tier roles missing a rank: {sorted(r.value for r in missing)}")

    def parse(self, role: Role | str | None) -> Role | None:
        key = normalize_role_key(role)
        try:
            parsed = Role(key)
        except ValueError:
            return None
        return parsed if parsed in self.ranks else None

    def rank_of(self, role: Role | str | None) -> int:
        parsed = self.parse(role)
        if parsed is None:
            raise UnknownRoleError(role)
        return self.ranks[parsed]

    def is_higher_rank(self, a: Role | str | None, b: Role | str | None) -> bool:
        return self.rank_of(a) < self.rank_of(b)

    def is_top_tier(self, role: Role | str | None) -> bool:
        return self.parse(role) in self.top_tier

    def is_protected(self, role: Role | str | None) -> bool:
        parsed = self.parse(role)
        if parsed is None:
            return False
        return self.ranks[parsed] <= self.protected_threshold

    def roles(self) -> list[Role]:
        """Roles ordered from most to least authority."""
        return sorted(self.ranks, key=self.ranks.__getitem__)


def role_label(role: Role | str | None) -> str:
    key = normalize_role_key(role)
    try:
        return ROLE_LABELS[Role(key)]
    except (ValueError, KeyError):
        return "Unknown"


DEFAULT_HIERARCHY = RoleHierarchy()

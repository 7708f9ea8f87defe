# tests/test_engine.py
from __future__ import annotations

import logging

import pytest

from app.auth.engine import AuthorizationEngine
from app.auth.permissions import DEFAULT_CATALOG, PERM, Scope
from app.core.errors import (
    InsufficientAuthorityError,
    PermissionDenied,
    SelfEscalationError,
    UnknownRoleError,
)
from app.core.roles import Role

engine = AuthorizationEngine()

ALL_PERMISSIONS = sorted(DEFAULT_CATALOG.known_permissions())


# ---------------------------------------------------------
# has_permission / can_access
# ---------------------------------------------------------
def test_has_permission_concrete_keys():
    assert engine.has_permission(Role.ADMIN, PERM.USER_ROLE_MANAGE)
    assert engine.has_permission("leader", "task.view_team")
    assert not engine.has_permission(Role.STAFF, "task.view_team")
    assert not engine.has_permission(Role.STAFF, PERM.USER_ROLE_MANAGE)


def test_has_permission_family_names():
    assert engine.has_permission(Role.LEADER, PERM.TASK_VIEW)
    assert engine.has_permission(Role.STAFF, PERM.TASK_VIEW)
    assert not engine.has_permission(Role.CUSTOMER, PERM.TASK_VIEW)


def test_has_permission_is_total():
    assert not engine.has_permission("wizard", PERM.TASK_VIEW)
    assert not engine.has_permission(None, PERM.TASK_VIEW)
    assert not engine.has_permission(Role.ADMIN, "nope.nothing")
    assert not engine.has_permission(Role.ADMIN, "")


def test_pending_approval_is_denied_everything():
    for p in ALL_PERMISSIONS:
        assert not engine.has_permission(Role.PENDING_APPROVAL, p)
        for s in Scope:
            assert not engine.can_access(Role.PENDING_APPROVAL, p, s)


def test_has_any_and_all():
    assert engine.has_any_permission(Role.STAFF, PERM.USER_ROLE_MANAGE, PERM.TASK_CREATE)
    assert not engine.has_any_permission(Role.STAFF, PERM.USER_ROLE_MANAGE, PERM.ORG_MANAGE)
    assert engine.has_all_permissions(Role.ADMIN, PERM.USER_ROLE_MANAGE, PERM.ORG_MANAGE)
    assert not engine.has_all_permissions(Role.LEADER, PERM.USER_ROLE_MANAGE, PERM.ORG_MANAGE)
    assert not engine.has_all_permissions(Role.ADMIN)


def test_can_access_respects_granted_scope():
    assert engine.can_access(Role.LEADER, PERM.TASK_VIEW, Scope.SELF)
    assert engine.can_access(Role.LEADER, PERM.TASK_VIEW, Scope.TEAM)
    assert not engine.can_access(Role.LEADER, PERM.TASK_VIEW, Scope.ALL)

    assert engine.can_access(Role.ADMIN, PERM.TASK_VIEW, "all")
    assert not engine.can_access(Role.STAFF, PERM.TASK_VIEW, Scope.TEAM)


def test_can_access_requires_the_concrete_key():
    # staff holds task.view at self scope, but not the task.view_team key
    assert not engine.can_access(Role.STAFF, "task.view_team", Scope.SELF)
    assert not engine.can_access(Role.STAFF, "task.view_team", Scope.TEAM)


def test_can_access_rejects_unknown_scope():
    assert not engine.can_access(Role.ADMIN, PERM.TASK_VIEW, "galaxy")


@pytest.mark.parametrize("role", list(Role))
def test_can_access_implies_has_permission_and_narrower_scopes(role):
    for p in ALL_PERMISSIONS:
        if engine.can_access(role, p, Scope.ALL):
            assert engine.can_access(role, p, Scope.TEAM)
        if engine.can_access(role, p, Scope.TEAM):
            assert engine.can_access(role, p, Scope.SELF)
        if engine.can_access(role, p, Scope.SELF):
            assert engine.has_permission(role, p)


def test_can_view_scope():
    assert engine.can_view_scope(Role.ADMIN, PERM.LEAVE_VIEW) == Scope.ALL
    assert engine.can_view_scope(Role.HR, PERM.LEAVE_VIEW) == Scope.TEAM
    assert engine.can_view_scope(Role.LEADER, PERM.LEAVE_VIEW) == Scope.TEAM
    assert engine.can_view_scope(Role.STAFF, PERM.LEAVE_VIEW) == Scope.SELF
    assert engine.can_view_scope("wizard", PERM.LEAVE_VIEW) == Scope.SELF


# ---------------------------------------------------------
# hierarchy
# ---------------------------------------------------------
def test_can_manage_user():
    assert engine.can_manage_user(Role.BOD, Role.ADMIN)
    assert engine.can_manage_user(Role.LEADER, Role.STAFF)
    assert not engine.can_manage_user(Role.STAFF, Role.LEADER)
    assert not engine.can_manage_user(Role.ADMIN, Role.BOD)


@pytest.mark.parametrize("role", list(Role))
def test_nobody_manages_their_own_rank(role):
    assert not engine.can_manage_user(role, role)


def test_can_manage_user_unknown_roles():
    assert not engine.can_manage_user("wizard", Role.STAFF)
    assert not engine.can_manage_user(Role.ADMIN, "wizard")


def test_managed_roles():
    assert engine.get_managed_roles(Role.PENDING_APPROVAL) == frozenset()
    assert engine.get_managed_roles("wizard") == frozenset()
    assert engine.get_managed_roles(Role.BOD) == frozenset(Role) - {Role.BOD}
    assert engine.get_managed_roles(Role.ADMIN) == frozenset(Role) - {Role.BOD, Role.ADMIN}

    ordered = engine.managed_roles_ordered(Role.LEADER)
    assert ordered[0] == Role.HR
    assert ordered[-1] == Role.PENDING_APPROVAL
    assert Role.LEADER not in ordered


# ---------------------------------------------------------
# role-change protocol
# ---------------------------------------------------------
def test_top_tier_may_assign_any_role():
    assert engine.validate_role_change(Role.ADMIN, "leader") == Role.LEADER
    assert engine.validate_role_change(Role.BOD, Role.ADMIN) == Role.ADMIN


def test_leader_may_assign_lower_roles():
    assert engine.validate_role_change(Role.LEADER, "hr") == Role.HR
    assert engine.validate_role_change(Role.LEADER, " STAFF ") == Role.STAFF


def test_leader_cannot_assign_protected_role(caplog):
    with caplog.at_level(logging.INFO, logger="app.auth.engine"):
        with pytest.raises(InsufficientAuthorityError):
            engine.validate_role_change(Role.LEADER, Role.ADMIN)
    assert "protected role admin" in caplog.text


def test_cannot_assign_own_rank_or_higher():
    with pytest.raises(SelfEscalationError):
        engine.validate_role_change(Role.LEADER, Role.LEADER)
    with pytest.raises(SelfEscalationError):
        engine.validate_role_change(Role.HR, Role.LEADER)


def test_unknown_roles_in_role_change():
    with pytest.raises(UnknownRoleError):
        engine.validate_role_change(Role.ADMIN, "wizard")
    with pytest.raises(PermissionDenied):
        engine.validate_role_change("wizard", Role.STAFF)

# app/crud/scoping.py
from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import or_

from app.auth.permissions import Scope
from app.auth.principal import AccessGrant, Principal
from app.models.attendance_record import AttendanceRecord
from app.models.leave_request import LeaveRequest
from app.models.membership import Membership
from app.models.task import Task
from app.models.user import User


def scope_predicates(
    principal: Principal,
    scope: Scope,
    *,
    org_col: Any,
    owner_col: Any,
    team_col: Optional[Any] = None,
    manager_col: Optional[Any] = None,
) -> list[Any]:
    """
    Ownership filter for a granted scope.

    Rows are always limited to the principal's organization.
      all  -> no further filter
      team -> rows of the principal's team (or, for people, reports managed by them)
      self -> rows owned by the principal
    A team grant without any team link to compare against falls back to self.
    """
    preds: list[Any] = [org_col == principal.org_id]

    if scope == Scope.ALL:
        return preds

    if scope == Scope.TEAM:
        team_preds = []
        if team_col is not None and principal.team_id is not None:
            team_preds.append(team_col == principal.team_id)
        if manager_col is not None:
            team_preds.append(manager_col == principal.id)
        if team_preds:
            preds.append(or_(*team_preds) if len(team_preds) > 1 else team_preds[0])
            return preds

    preds.append(owner_col == principal.id)
    return preds


def task_scope(grant: AccessGrant) -> list[Any]:
    return scope_predicates(
        grant.principal,
        grant.scope,
        org_col=Task.org_id,
        owner_col=Task.assignee_id,
        team_col=Task.team_id,
    )


def leave_scope(grant: AccessGrant) -> list[Any]:
    return scope_predicates(
        grant.principal,
        grant.scope,
        org_col=LeaveRequest.org_id,
        owner_col=LeaveRequest.user_id,
        team_col=LeaveRequest.team_id,
    )


def attendance_scope(grant: AccessGrant) -> list[Any]:
    return scope_predicates(
        grant.principal,
        grant.scope,
        org_col=AttendanceRecord.org_id,
        owner_col=AttendanceRecord.user_id,
        team_col=AttendanceRecord.team_id,
    )


def member_scope(grant: AccessGrant) -> list[Any]:
    """People visibility; the query must join User on Membership.user_id."""
    return scope_predicates(
        grant.principal,
        grant.scope,
        org_col=Membership.org_id,
        owner_col=Membership.user_id,
        team_col=Membership.team_id,
        manager_col=User.manager_id,
    )

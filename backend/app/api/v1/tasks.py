from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.permissions import require_permission
from app.auth.engine import AuthorizationEngine, get_engine
from app.auth.permissions import PERM, Scope
from app.auth.principal import AccessGrant, Principal
from app.core.errors import PermissionDenied
from app.crud import records
from app.crud.membership import get_membership_in_org
from app.crud.scoping import task_scope
from app.db.session import get_db
from app.models.task import Task
from app.schemas.task import TaskCreate, TaskOut, TaskUpdate

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _check_assignment(
    db: AsyncSession,
    engine: AuthorizationEngine,
    principal: Principal,
    assignee_id: uuid.UUID,
    team_id: Optional[uuid.UUID],
) -> None:
    """
    Assigning work to someone else needs task.assign: team scope keeps both
    the assignee and the task inside the assigner's own team.
    """
    if assignee_id == principal.id and team_id == principal.team_id:
        return

    if assignee_id != principal.id and not engine.has_permission(principal.role, PERM.TASK_ASSIGN):
        raise PermissionDenied("You cannot assign tasks to other users.")

    assignee = await get_membership_in_org(db, principal.org_id, assignee_id)
    if assignee is None or not assignee.is_active:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="assignee_id is not an active member of this organization",
        )

    if engine.can_access(principal.role, PERM.TASK_ASSIGN, Scope.ALL):
        return

    own_team = principal.team_id
    if own_team is None or team_id != own_team or (assignee_id != principal.id and assignee.team_id != own_team):
        raise PermissionDenied("You can only assign tasks within your own team.")


@router.get("", response_model=List[TaskOut])
async def list_tasks(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    assignee_id: Optional[uuid.UUID] = None,
    team_id: Optional[uuid.UUID] = None,
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.TASK_VIEW)),
):
    """Tasks visible at the caller's widest task.view scope."""
    filters = task_scope(grant)
    if status_filter:
        filters.append(Task.status == status_filter)
    if assignee_id is not None:
        filters.append(Task.assignee_id == assignee_id)
    if team_id is not None:
        filters.append(Task.team_id == team_id)
    return await records.find(db, Task, *filters, order_by=Task.created_at.desc())


@router.get("/team", response_model=List[TaskOut])
async def list_team_tasks(
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission("task.view_team", Scope.TEAM)),
):
    """Team board: requires task visibility at team scope or wider."""
    return await records.find(db, Task, *task_scope(grant), order_by=Task.created_at.desc())


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreate,
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.TASK_CREATE)),
    engine: AuthorizationEngine = Depends(get_engine),
):
    principal = grant.principal
    assignee_id = payload.assignee_id or principal.id
    team_id = payload.team_id or principal.team_id

    await _check_assignment(db, engine, principal, assignee_id, team_id)

    return await records.insert(
        db,
        Task,
        org_id=principal.org_id,
        team_id=team_id,
        assignee_id=assignee_id,
        assigned_by=principal.id,
        title=payload.title,
        description=payload.description,
        status=payload.status,
        priority=payload.priority,
        due_date=payload.due_date,
        completed_at=_utcnow() if payload.status == "done" else None,
    )


@router.patch("/{task_id}", response_model=TaskOut)
async def update_task(
    task_id: uuid.UUID,
    payload: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.TASK_UPDATE)),
    engine: AuthorizationEngine = Depends(get_engine),
):
    filters = [Task.id == task_id, *task_scope(grant)]
    task = await records.get_one(db, Task, *filters)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    patch = payload.model_dump(exclude_unset=True)
    if not patch:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

    if "assignee_id" in patch and patch["assignee_id"] != task.assignee_id:
        if patch["assignee_id"] is None:
            if not engine.has_permission(grant.principal.role, PERM.TASK_ASSIGN):
                raise PermissionDenied("You cannot unassign tasks.")
        else:
            await _check_assignment(db, engine, grant.principal, patch["assignee_id"], task.team_id)

    if patch.get("status") == "done" and task.status != "done":
        patch["completed_at"] = _utcnow()
    elif "status" in patch and patch["status"] != "done":
        patch["completed_at"] = None

    return await records.update(db, Task, filters, patch)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.TASK_DELETE)),
):
    deleted = await records.delete(db, Task, Task.id == task_id, *task_scope(grant))
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return None

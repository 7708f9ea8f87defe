from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.permissions import ensure_authority_over, require_permission
from app.auth.engine import AuthorizationEngine, get_engine
from app.auth.permissions import PERM
from app.auth.principal import AccessGrant
from app.core.errors import PermissionDenied
from app.crud import records
from app.crud.scoping import leave_scope
from app.db.session import get_db
from app.models.leave_request import LeaveRequest
from app.schemas.leave_request import LeaveDecision, LeaveRequestCreate, LeaveRequestOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leave-requests", tags=["leave"])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@router.get("", response_model=List[LeaveRequestOut])
async def list_leave_requests(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    user_id: Optional[uuid.UUID] = None,
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.LEAVE_VIEW)),
):
    filters = leave_scope(grant)
    if status_filter:
        filters.append(LeaveRequest.status == status_filter)
    if user_id is not None:
        filters.append(LeaveRequest.user_id == user_id)
    return await records.find(db, LeaveRequest, *filters, order_by=LeaveRequest.created_at.desc())


@router.post("", response_model=LeaveRequestOut, status_code=status.HTTP_201_CREATED)
async def create_leave_request(
    payload: LeaveRequestCreate,
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.LEAVE_CREATE)),
):
    """Requests are always filed for the caller, in the caller's team."""
    principal = grant.principal
    return await records.insert(
        db,
        LeaveRequest,
        org_id=principal.org_id,
        team_id=principal.team_id,
        user_id=principal.id,
        type=payload.type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        days=LeaveRequest.count_days(payload.start_date, payload.end_date),
        reason=payload.reason,
        status="pending",
    )


@router.post("/{request_id}/decision", response_model=LeaveRequestOut)
async def decide_leave_request(
    request_id: uuid.UUID,
    payload: LeaveDecision,
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.LEAVE_APPROVE)),
    engine: AuthorizationEngine = Depends(get_engine),
):
    """
    Approve or reject a pending request within the approver's leave.approve
    scope (team or organization). The requester must rank below the approver.
    """
    filters = [LeaveRequest.id == request_id, *leave_scope(grant)]
    leave = await records.get_one(db, LeaveRequest, *filters)
    if leave is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leave request not found")

    if leave.user_id == grant.principal.id:
        raise PermissionDenied("You cannot decide on your own leave request.")
    await ensure_authority_over(db, engine, grant.principal, leave.user_id, "decide leave")

    if leave.status != "pending":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Leave request already {leave.status}")

    updated = await records.update(
        db,
        LeaveRequest,
        filters,
        {
            "status": payload.status,
            "approved_by": grant.principal.id,
            "approved_at": _utcnow(),
            "notes": payload.notes,
        },
    )
    logger.info("Leave request %s %s by %s", request_id, payload.status, grant.principal.id)
    return updated

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.permissions import ensure_authority_over, require_permission
from app.auth.engine import AuthorizationEngine, get_engine
from app.auth.permissions import PERM
from app.auth.principal import AccessGrant
from app.crud import records
from app.crud.scoping import attendance_scope
from app.db.session import get_db
from app.models.attendance_record import AttendanceRecord
from app.schemas.attendance import AttendanceOut

router = APIRouter(prefix="/attendance", tags=["attendance"])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@router.get("", response_model=List[AttendanceOut])
async def list_attendance(
    work_date: Optional[date] = None,
    user_id: Optional[uuid.UUID] = None,
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.ATTENDANCE_VIEW)),
):
    filters = attendance_scope(grant)
    if work_date is not None:
        filters.append(AttendanceRecord.work_date == work_date)
    if user_id is not None:
        filters.append(AttendanceRecord.user_id == user_id)
    return await records.find(
        db,
        AttendanceRecord,
        *filters,
        order_by=AttendanceRecord.check_in_at.desc(),
    )


@router.post("/check-in", response_model=AttendanceOut, status_code=status.HTTP_201_CREATED)
async def check_in(
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.ATTENDANCE_CREATE)),
):
    principal = grant.principal
    now = _utcnow()

    existing = await records.get_one(
        db,
        AttendanceRecord,
        AttendanceRecord.user_id == principal.id,
        AttendanceRecord.work_date == now.date(),
    )
    if existing is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already checked in today")

    return await records.insert(
        db,
        AttendanceRecord,
        org_id=principal.org_id,
        team_id=principal.team_id,
        user_id=principal.id,
        work_date=now.date(),
        check_in_at=now,
        status="present",
    )


@router.post("/{record_id}/check-out", response_model=AttendanceOut)
async def check_out(
    record_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.ATTENDANCE_CREATE)),
):
    principal = grant.principal
    # only ever your own record
    filters = [
        AttendanceRecord.id == record_id,
        AttendanceRecord.org_id == principal.org_id,
        AttendanceRecord.user_id == principal.id,
    ]
    record = await records.get_one(db, AttendanceRecord, *filters)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attendance record not found")
    if record.check_out_at is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already checked out")

    return await records.update(db, AttendanceRecord, filters, {"check_out_at": _utcnow()})


@router.post("/{record_id}/verify", response_model=AttendanceOut)
async def verify_attendance(
    record_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    grant: AccessGrant = Depends(require_permission(PERM.ATTENDANCE_VERIFY)),
    engine: AuthorizationEngine = Depends(get_engine),
):
    """Verification is limited to visible records of members ranked below the verifier."""
    principal = grant.principal
    view_grant = AccessGrant(
        principal=principal,
        permission=PERM.ATTENDANCE_VIEW,
        scope=engine.can_view_scope(principal.role, PERM.ATTENDANCE_VIEW),
    )
    filters = [AttendanceRecord.id == record_id, *attendance_scope(view_grant)]
    record = await records.get_one(db, AttendanceRecord, *filters)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attendance record not found")
    await ensure_authority_over(db, engine, principal, record.user_id, "verify attendance")

    return await records.update(
        db,
        AttendanceRecord,
        filters,
        {"verified_by": principal.id, "verified_at": _utcnow()},
    )

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class AttendanceOut(BaseModel):
    id: uuid.UUID
    org_id: uuid.UUID
    team_id: Optional[uuid.UUID] = None
    user_id: uuid.UUID
    work_date: date
    check_in_at: datetime
    check_out_at: Optional[datetime] = None
    status: str
    verified_by: Optional[uuid.UUID] = None
    verified_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

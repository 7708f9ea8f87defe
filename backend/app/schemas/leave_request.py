from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

LeaveType = Literal["annual", "sick", "unpaid", "other"]


class LeaveRequestCreate(BaseModel):
    type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(..., min_length=1, max_length=2000)

    @model_validator(mode="after")
    def check_dates(self) -> "LeaveRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class LeaveDecision(BaseModel):
    status: Literal["approved", "rejected"]
    notes: Optional[str] = Field(default=None, max_length=2000)


class LeaveRequestOut(BaseModel):
    id: uuid.UUID
    org_id: uuid.UUID
    team_id: Optional[uuid.UUID] = None
    user_id: uuid.UUID
    type: str
    start_date: date
    end_date: date
    days: int
    reason: str
    status: str
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.roles import normalize_role_key


class MemberOut(BaseModel):
    org_id: UUID
    user_id: UUID
    team_id: Optional[UUID] = None
    manager_id: Optional[UUID] = None
    email: str
    full_name: Optional[str] = None
    role: str
    role_label: str
    is_active: bool
    created_at: datetime


class MemberRoleOut(BaseModel):
    org_id: UUID
    user_id: UUID
    role: str
    role_label: str
    rank: Optional[int] = None
    assigned_by: Optional[UUID] = None
    assigned_at: Optional[datetime] = None


class RoleChangeRequest(BaseModel):
    new_role: str = Field(..., min_length=1, max_length=30, description="Role key, e.g. 'leader'")

    @field_validator("new_role")
    @classmethod
    def normalize_new_role(cls, v: str) -> str:
        return normalize_role_key(v)


class RoleChangeOut(BaseModel):
    user_id: UUID
    org_id: UUID
    old_role: str
    role: str
    message: str


class RoleOption(BaseModel):
    key: str
    label: str
    rank: int


class PermissionSnapshot(BaseModel):
    """What the client needs to hide/show controls. Advisory only."""

    user_id: UUID
    org_id: UUID
    team_id: Optional[UUID] = None
    role: str
    role_label: str
    rank: Optional[int] = None
    is_top_tier: bool
    permissions: List[str] = []
    scopes: dict[str, str] = {}
    managed_roles: List[RoleOption] = []

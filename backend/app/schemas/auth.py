# backend/app/schemas/auth.py
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, EmailStr, Field, field_validator


class MagicCodeRequest(BaseModel):
    email: EmailStr


class MagicCodeVerify(BaseModel):
    email: EmailStr
    code: str = Field(min_length=4, max_length=64)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ProfileUpdateRequest(BaseModel):
    """Self-service profile fields. Role, team and manager are not editable here."""

    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = Field(default=None, max_length=200)
    avatar_url: Optional[AnyHttpUrl] = None

    @field_validator("full_name")
    @classmethod
    def collapse_whitespace(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return " ".join(v.split()) or None


class MeResponse(BaseModel):
    """The signed-in user together with the membership that drives authorization."""

    id: UUID
    email: EmailStr
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    manager_id: Optional[UUID] = None
    status: str

    # None until the user holds an active membership
    org_id: Optional[UUID] = None
    team_id: Optional[UUID] = None
    role: Optional[str] = None
    role_label: Optional[str] = None

    created_at: datetime
    updated_at: datetime

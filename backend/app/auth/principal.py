from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from app.auth.permissions import Scope


@dataclass(frozen=True)
class Principal:
    """Who is asking: resolved once per request from the token + membership."""

    id: uuid.UUID
    email: str
    org_id: uuid.UUID
    role: str
    team_id: Optional[uuid.UUID] = None
    manager_id: Optional[uuid.UUID] = None
    membership_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class AccessGrant:
    """
    Result of a passed guard: the principal, the permission that was checked
    and the widest scope the principal's role holds for it. Handlers narrow
    their queries by `scope`.
    """

    principal: Principal
    permission: str
    scope: Scope

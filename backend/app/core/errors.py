# backend/app/core/errors.py
"""
Authorization error taxonomy.

Query helpers on the engine never raise these; they are produced by the
role-change protocol and by the request guards, and rendered by the
exception handler registered in app.main.
"""

from __future__ import annotations


class AuthorizationError(Exception):
    status_code: int = 403
    code: str = "rbac_error"

    def __init__(self, message: str = "Authorization failed.") -> None:
        self.message = message
        super().__init__(message)

    def to_detail(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class UnknownRoleError(AuthorizationError):
    """Role key is not part of the role hierarchy."""

    status_code = 400
    code = "rbac_unknown_role"

    def __init__(self, role: object) -> None:
        self.role = role
        super().__init__(f"Unknown role: {role!r}")


class PermissionDenied(AuthorizationError):
    status_code = 403
    code = "rbac_forbidden"

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)


class IdentityUnresolved(PermissionDenied):
    code = "rbac_identity_unresolved"

    def __init__(self, message: str = "No active membership could be resolved for this user.") -> None:
        super().__init__(message)


class InsufficientAuthorityError(AuthorizationError):
    status_code = 403
    code = "rbac_insufficient_authority"

    def __init__(self, message: str = "Only BOD/Admin can assign high-level roles.") -> None:
        super().__init__(message)


class SelfEscalationError(AuthorizationError):
    status_code = 403
    code = "rbac_self_escalation"

    def __init__(self, message: str = "Cannot assign a role equal to or higher than your own.") -> None:
        super().__init__(message)

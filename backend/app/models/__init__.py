# Import models here so Alembic can discover metadata.
from app.models.user import User  # noqa: F401

# organizations, teams, memberships (role assignment)
from app.models.organization import Organization, Team  # noqa: F401
from app.models.membership import Membership  # noqa: F401

# guarded work records
from app.models.task import Task  # noqa: F401
from app.models.leave_request import LeaveRequest  # noqa: F401
from app.models.attendance_record import AttendanceRecord  # noqa: F401

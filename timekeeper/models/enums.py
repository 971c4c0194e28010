"""도메인 상태/유형 열거형.

Domain enums shared by models, services, and schemas.
Columns store the plain string value; StrEnum members compare equal to it.
"""

from enum import StrEnum


class AttendanceStatus(StrEnum):
    PRESENT = "PRESENT"
    HALF = "HALF"
    LEAVE = "LEAVE"
    ABSENT = "ABSENT"
    HOLIDAY = "HOLIDAY"


class BreakType(StrEnum):
    LUNCH = "LUNCH"
    EXTERNAL = "EXTERNAL"


class ClockAction(StrEnum):
    CLOCK_IN = "clock-in"
    CLOCK_OUT = "clock-out"
    BREAK_IN = "break-in"
    BREAK_OUT = "break-out"


class ClockState(StrEnum):
    NOT_STARTED = "NOT_STARTED"
    CLOCKED_IN = "CLOCKED_IN"
    ON_BREAK = "ON_BREAK"
    CLOCKED_OUT = "CLOCKED_OUT"


class CorrectionKind(StrEnum):
    CLOCK = "CLOCK"
    BREAK = "BREAK"


class CorrectionStatus(StrEnum):
    PENDING = "PENDING"
    MANAGER_APPROVED = "MANAGER_APPROVED"
    ADMIN_APPROVED = "ADMIN_APPROVED"
    REJECTED = "REJECTED"


class LeaveRequestStatus(StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class ActorRole(StrEnum):
    """결정 주체 역할: role level 1 = ADMIN, 2 = MANAGER, 3 = EMPLOYEE."""

    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


class Decision(StrEnum):
    APPROVE = "approve"
    REJECT = "reject"


# 종료 상태: Terminal states that no transition may leave
CORRECTION_TERMINAL_STATUSES: frozenset[str] = frozenset(
    {CorrectionStatus.ADMIN_APPROVED, CorrectionStatus.REJECTED}
)
LEAVE_TERMINAL_STATUSES: frozenset[str] = frozenset(
    {LeaveRequestStatus.APPROVED, LeaveRequestStatus.REJECTED, LeaveRequestStatus.CANCELLED}
)

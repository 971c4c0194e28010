"""SQLAlchemy ORM 모델 패키지: 모든 도메인 모델의 중앙 임포트 지점.

SQLAlchemy ORM models package: Central import point for all domain models.
Importing from this package ensures all models are registered with the
SQLAlchemy metadata, which is required for Alembic migrations and
relationship resolution.

Modules:
    organization: 조직(정책), 휴일, 팀 (Organization with policy, Holiday, Team, TeamMember)
    user: 역할 및 사용자 (Role and User)
    attendance: 근태 기록 및 휴게 (Attendance days and breaks)
    correction: 근태 정정 요청 (Correction requests)
    leave: 휴가 유형, 신청, 잔여 (Leave types, requests, balances)
"""

from timekeeper.models.organization import Organization, Holiday, Team, TeamMember
from timekeeper.models.user import Role, User
from timekeeper.models.attendance import Attendance, AttendanceBreak
from timekeeper.models.correction import CorrectionRequest
from timekeeper.models.leave import LeaveType, LeaveRequest, LeaveBalance

__all__ = [
    "Organization", "Holiday", "Team", "TeamMember",
    "Role", "User",
    "Attendance", "AttendanceBreak",
    "CorrectionRequest",
    "LeaveType", "LeaveRequest", "LeaveBalance",
]

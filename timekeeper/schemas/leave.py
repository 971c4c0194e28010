"""휴가 관련 Pydantic 요청/응답 스키마 정의.

Leave request, decision, and yearly balance schemas.
"""

from datetime import datetime
from pydantic import BaseModel, Field

from timekeeper.models.enums import Decision, LeaveRequestStatus


class LeaveRequestCreate(BaseModel):
    """휴가 신청 생성 스키마.

    Attributes:
        leave_type_id: 휴가 유형 UUID
        start_date / end_date: 시작/종료 시각 (UTC 날짜 기준으로 일수 계산)
        is_half_day: 반차 여부: 기간과 무관하게 0.5일
    """

    leave_type_id: str
    start_date: datetime
    end_date: datetime
    is_half_day: bool = False
    reason: str | None = Field(default=None, max_length=2000)


class LeaveDecision(BaseModel):
    decision: Decision
    note: str | None = Field(default=None, max_length=2000)


class LeaveRequestResponse(BaseModel):
    id: str
    user_id: str
    leave_type_id: str
    leave_type_code: str | None
    start_date: datetime
    end_date: datetime
    is_half_day: bool
    days: float  # 신청 일수 (Requested days)
    reason: str | None
    status: LeaveRequestStatus
    decided_by: str | None
    decision_note: str | None
    decided_at: datetime | None
    created_at: datetime


class LeaveBalanceUpsert(BaseModel):
    """연간 휴가 할당량 설정 (Set the yearly quota; null clears it back to the type default)."""

    user_id: str
    leave_type_id: str
    year: int = Field(..., ge=1970, le=9999)
    balance: float | None = Field(default=None, ge=0)


class LeaveBalanceResponse(BaseModel):
    id: str
    user_id: str
    leave_type_id: str
    year: int
    balance: float | None  # 명시적 할당량 (Explicit quota; null = type default)
    quota: float | None  # 유효 할당량 (Effective quota; null = unlimited)
    used: float
    available: float | None

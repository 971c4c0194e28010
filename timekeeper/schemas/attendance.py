"""근태 관련 Pydantic 요청/응답 스키마 정의.

Attendance request/response schemas: clock actions, attendance days with
their breaks, live metrics, and the payable-day period summary.
"""

from datetime import date, datetime
from pydantic import BaseModel

from timekeeper.models.enums import AttendanceStatus, BreakType, ClockAction, ClockState


class ClockRequest(BaseModel):
    """출퇴근/휴게 이벤트 요청 스키마.

    Clock event request.

    Attributes:
        action: 동작 (clock-in, clock-out, break-in, break-out)
        break_type: 휴게 유형, 휴게 동작에만 사용 (LUNCH | EXTERNAL, default EXTERNAL)
        at: 이벤트 시각, 생략 시 서버 현재 시각 (Event instant; defaults to server now)
    """

    action: ClockAction
    break_type: BreakType | None = None
    at: datetime | None = None


class BreakResponse(BaseModel):
    id: str
    type: BreakType
    start_at: datetime
    end_at: datetime | None
    minutes: int  # 현재까지 휴게 분 (Break minutes so far)


class AttendanceResponse(BaseModel):
    """근태일 응답 스키마.

    Attendance day response with persisted derived metrics.
    ``status`` is null while the day is open.
    """

    id: str
    user_id: str
    work_date: date
    clock_in: datetime | None
    clock_out: datetime | None
    clock_state: ClockState
    breaks: list[BreakResponse]
    net_minutes: int
    late_minutes: int
    early_leave_minutes: int
    external_break_minutes: int
    overtime_minutes: int
    status: AttendanceStatus | None
    version: int


class MetricsResponse(BaseModel):
    """근태 지표 응답 스키마 (Live or final metrics for one day)."""

    user_id: str
    work_date: date
    gross_minutes: int
    lunch_minutes: int
    lunch_deducted_minutes: int
    external_break_minutes: int
    break_deducted_minutes: int
    net_minutes: int
    late_minutes: int
    early_leave_minutes: int
    overtime_minutes: int
    status: AttendanceStatus | None
    is_final: bool


class PeriodSummaryItem(BaseModel):
    """사용자별 기간 집계 (Per-user period aggregate; payroll input)."""

    user_id: str
    present_days: int = 0
    half_days: int = 0
    leave_days: float = 0
    paid_leave_days: float = 0
    absent_days: int = 0
    holiday_days: int = 0
    net_minutes: int = 0
    overtime_minutes: int = 0
    external_break_minutes: int = 0
    late_minutes: int = 0
    early_leave_minutes: int = 0
    payable_days: float = 0


class PeriodSummaryResponse(BaseModel):
    date_from: date
    date_to: date
    items: list[PeriodSummaryItem]

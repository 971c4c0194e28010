"""조직 근태 정책 및 휴일 Pydantic 스키마.

Organization attendance policy (settings) and holiday request/response schemas.
All minute values are minutes since local midnight in the policy timezone.
"""

from datetime import date, datetime
from pydantic import BaseModel, Field


class PolicySettingsUpdate(BaseModel):
    """근태 정책 수정 요청 스키마 (부분 업데이트).

    Policy settings update (partial). Fields left out are unchanged;
    fields sent as null fall back to the server default.
    Range checks live in policy_service so they can see the merged result.
    """

    timezone: str | None = None  # IANA 타임존 (e.g. "Asia/Seoul")
    workday_start_minutes: int | None = None
    workday_end_minutes: int | None = None
    required_daily_minutes: int | None = None
    half_day_threshold_minutes: int | None = None
    paid_lunch_minutes: int | None = None
    lunch_window_start_minutes: int | None = None
    lunch_window_end_minutes: int | None = None
    allow_external_breaks: bool | None = None
    grace_late_minutes: int | None = None
    grace_early_minutes: int | None = None


class PolicySettingsResponse(BaseModel):
    """유효 근태 정책 응답 스키마 (Effective policy, defaults applied)."""

    organization_id: str
    timezone: str
    workday_start_minutes: int
    workday_end_minutes: int
    required_daily_minutes: int
    half_day_threshold_minutes: int
    paid_lunch_minutes: int
    lunch_window_start_minutes: int | None
    lunch_window_end_minutes: int | None
    allow_external_breaks: bool
    grace_late_minutes: int
    grace_early_minutes: int


class HolidayCreate(BaseModel):
    holiday_date: date
    label: str = Field(..., min_length=1, max_length=255)
    is_full_day: bool = True


class HolidayResponse(BaseModel):
    id: str
    holiday_date: date
    label: str
    is_full_day: bool
    created_at: datetime

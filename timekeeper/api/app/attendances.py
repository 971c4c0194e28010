"""앱 근태 라우터: 내 출퇴근/휴게 기록 및 지표 API.

App Attendance Router: Clock and break events for the current user,
today's attendance day, day history, and live metrics.
"""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.api.deps import get_current_user
from timekeeper.database import get_db
from timekeeper.models.user import User
from timekeeper.repositories.attendance_repository import attendance_repository
from timekeeper.schemas.attendance import AttendanceResponse, ClockRequest, MetricsResponse
from timekeeper.services.attendance_day_service import attendance_day_service
from timekeeper.services.clock_service import clock_service
from timekeeper.utils.exceptions import ValidationError
from timekeeper.utils.timeutil import utc_work_date, utcnow

router: APIRouter = APIRouter()


@router.post("/clock", response_model=AttendanceResponse)
async def record_clock_event(
    data: ClockRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """출근/퇴근/휴게 시작/휴게 종료를 기록합니다.

    Record a clock-in, clock-out, break-in, or break-out.

    Args:
        data: 동작, 휴게 유형, 시각 (Action, break type, optional instant)
        db: 비동기 데이터베이스 세션 (Async database session)
        current_user: 인증된 사용자 (Authenticated user)

    Returns:
        dict: 갱신된 근태일 (Updated attendance day)
    """
    attendance = await clock_service.record_clock_event(
        db,
        organization_id=current_user.organization_id,
        user_id=current_user.id,
        action=data.action,
        break_type=data.break_type,
        at=data.at,
    )
    return attendance_day_service.build_response(attendance)


@router.get("/today", response_model=AttendanceResponse | None)
async def get_my_today_attendance(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict | None:
    """오늘(UTC) 내 근태일을 조회합니다 (Today's UTC attendance day, or null)."""
    attendance = await attendance_day_service.get_day(
        db, current_user.organization_id, current_user.id, utc_work_date(utcnow())
    )
    if attendance is None:
        return None
    return attendance_day_service.build_response(attendance)


@router.get("/metrics", response_model=MetricsResponse)
async def get_my_metrics(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    work_date: Annotated[date | None, Query()] = None,
) -> dict:
    """근태 지표를 조회합니다: 진행 중인 날은 현재 시각 기준 실시간 값.

    Metrics for a work date (default today). An open day reports the live
    "worked so far" values; nothing is persisted.
    """
    target: date = work_date or utc_work_date(utcnow())
    metrics = await attendance_day_service.get_metrics(db, current_user.organization_id, current_user.id, target)
    return {"user_id": str(current_user.id), "work_date": target, **metrics.model_dump()}


@router.get("", response_model=list[AttendanceResponse])
async def list_my_attendances(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    date_from: Annotated[date, Query()],
    date_to: Annotated[date, Query()],
) -> list[dict]:
    """기간 내 내 근태일 목록 (My attendance days in an inclusive range)."""
    if date_to < date_from:
        raise ValidationError("date_to must not be before date_from", code="INVALID_RANGE")
    days = await attendance_repository.get_range(
        db, current_user.organization_id, date_from, date_to, user_id=current_user.id
    )
    return [attendance_day_service.build_response(a) for a in days]

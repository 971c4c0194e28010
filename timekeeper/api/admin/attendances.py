"""관리자 근태 라우터: 기간 집계 및 사용자 근태 조회 API.

Admin Attendance Router: Payable-day period summary, per-user attendance
days, and live metrics for managed users.
"""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.api.deps import require_admin, require_manager
from timekeeper.database import get_db
from timekeeper.models.enums import ActorRole
from timekeeper.models.user import User
from timekeeper.repositories.attendance_repository import attendance_repository
from timekeeper.repositories.user_repository import user_repository
from timekeeper.schemas.attendance import AttendanceResponse, MetricsResponse, PeriodSummaryResponse
from timekeeper.services.attendance_day_service import attendance_day_service
from timekeeper.utils.exceptions import AuthorizationError, NotFoundError, ValidationError
from timekeeper.utils.timeutil import utc_work_date, utcnow

router: APIRouter = APIRouter()


async def _check_user_access(db: AsyncSession, current_user: User, user_id: UUID) -> None:
    """조회 대상 사용자 접근 확인: 관리자는 조직 내 전체, 매니저는 관리 대상만.

    Raises:
        NotFoundError: 조직에 없는 사용자
        AuthorizationError: 매니저가 관리하지 않는 사용자
    """
    if await user_repository.get_by_id(db, user_id, current_user.organization_id) is None:
        raise NotFoundError("User not found")
    if current_user.actor_role == ActorRole.ADMIN:
        return
    if not (
        await user_repository.is_direct_manager(db, current_user.id, user_id)
        or await user_repository.manages_team_of(db, current_user.id, user_id)
    ):
        raise AuthorizationError("You do not manage this user", code="NOT_USERS_MANAGER")


@router.get("/summary", response_model=PeriodSummaryResponse)
async def summarize_period(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    date_from: Annotated[date, Query()],
    date_to: Annotated[date, Query()],
    user_id: Annotated[str | None, Query()] = None,
) -> dict:
    """기간별 근태 집계를 조회합니다: 급여 입력값.

    Per-user period summary: day counts by status, minute totals, and
    payable days.

    Args:
        db: 비동기 데이터베이스 세션 (Async database session)
        current_user: 관리자 (Admin)
        date_from: 시작일, 포함 (Inclusive start date)
        date_to: 종료일, 포함 (Inclusive end date)
        user_id: 사용자 UUID 필터, 선택 (Optional user UUID filter)

    Returns:
        dict: 기간 및 사용자별 집계 (Range and per-user aggregates)
    """
    items = await attendance_day_service.summarize_period(
        db,
        current_user.organization_id,
        date_from,
        date_to,
        user_id=UUID(user_id) if user_id else None,
    )
    return {"date_from": date_from, "date_to": date_to, "items": items}


@router.get("/users/{user_id}", response_model=list[AttendanceResponse])
async def list_user_attendances(
    user_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_manager)],
    date_from: Annotated[date, Query()],
    date_to: Annotated[date, Query()],
) -> list[dict]:
    await _check_user_access(db, current_user, user_id)
    if date_to < date_from:
        raise ValidationError("date_to must not be before date_from", code="INVALID_RANGE")
    days = await attendance_repository.get_range(db, current_user.organization_id, date_from, date_to, user_id=user_id)
    return [attendance_day_service.build_response(a) for a in days]


@router.get("/users/{user_id}/metrics", response_model=MetricsResponse)
async def get_user_metrics(
    user_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_manager)],
    work_date: Annotated[date | None, Query()] = None,
) -> dict:
    """사용자의 근태 지표 (Live or final metrics for a managed user)."""
    await _check_user_access(db, current_user, user_id)
    target: date = work_date or utc_work_date(utcnow())
    metrics = await attendance_day_service.get_metrics(db, current_user.organization_id, user_id, target)
    return {"user_id": str(user_id), "work_date": target, **metrics.model_dump()}

"""관리자 근태 정책 라우터: 정책 설정 및 휴일 관리 API.

Admin Policy Router: Read and update the organization's attendance policy
and manage holidays. Every settings write invalidates the cached policy.
"""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.api.deps import require_admin, require_manager
from timekeeper.database import get_db
from timekeeper.models.user import User
from timekeeper.schemas.common import MessageResponse
from timekeeper.schemas.policy import HolidayCreate, HolidayResponse, PolicySettingsResponse, PolicySettingsUpdate
from timekeeper.services.policy_service import policy_service

router: APIRouter = APIRouter()


@router.get("/settings", response_model=PolicySettingsResponse)
async def get_policy_settings(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_manager)],
) -> dict:
    """유효 근태 정책을 조회합니다 (Effective policy with defaults applied)."""
    return await policy_service.get_settings(db, current_user.organization_id)


@router.put("/settings", response_model=PolicySettingsResponse)
async def update_policy_settings(
    data: PolicySettingsUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    """근태 정책을 수정합니다.

    Update policy settings. Only fields present in the body change.

    Args:
        data: 정책 수정 데이터 (Partial policy update)
        db: 비동기 데이터베이스 세션 (Async database session)
        current_user: 관리자 (Admin)

    Returns:
        dict: 수정 후 유효 정책 (Effective policy after the update)
    """
    return await policy_service.update_settings(
        db, current_user.organization_id, data, actor_id=current_user.id
    )


@router.get("/holidays", response_model=list[HolidayResponse])
async def list_holidays(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_manager)],
    date_from: Annotated[date | None, Query()] = None,
    date_to: Annotated[date | None, Query()] = None,
) -> list[dict]:
    holidays = await policy_service.list_holidays(db, current_user.organization_id, date_from, date_to)
    return [policy_service.build_holiday_response(h) for h in holidays]


@router.post("/holidays", response_model=HolidayResponse, status_code=status.HTTP_201_CREATED)
async def create_holiday(
    data: HolidayCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    holiday = await policy_service.create_holiday(db, current_user.organization_id, data, actor_id=current_user.id)
    return policy_service.build_holiday_response(holiday)


@router.delete("/holidays/{holiday_id}", response_model=MessageResponse)
async def delete_holiday(
    holiday_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    await policy_service.delete_holiday(db, current_user.organization_id, holiday_id, actor_id=current_user.id)
    return {"message": "Holiday deleted successfully"}

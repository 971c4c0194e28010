"""관리자 근태 정정 라우터: 정정 요청 검토/결정 API.

Admin Correction Router: Review, decide, and re-apply correction requests.
Managers see and decide for the users they manage; admins for the whole
organization.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.api.deps import require_admin, require_manager
from timekeeper.database import get_db
from timekeeper.models.user import User
from timekeeper.schemas.common import PaginatedResponse
from timekeeper.schemas.correction import CorrectionDecision, CorrectionResponse
from timekeeper.services.correction_service import correction_service

router: APIRouter = APIRouter()


@router.get("", response_model=PaginatedResponse)
async def list_corrections(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_manager)],
    status: Annotated[str | None, Query()] = None,
    user_id: Annotated[str | None, Query()] = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """검토 대상 정정 요청 목록을 조회합니다.

    List correction requests visible to the reviewer.

    Args:
        db: 비동기 데이터베이스 세션 (Async database session)
        current_user: 매니저 이상 사용자 (Manager or admin)
        status: 상태 필터, 선택 (Optional status filter)
        user_id: 사용자 UUID 필터, 선택 (Optional user UUID filter)
        page: 페이지 번호 (Page number)
        per_page: 페이지당 항목 수 (Items per page)

    Returns:
        dict: 페이지네이션된 정정 요청 목록 (Paginated correction list)
    """
    user_uuid: UUID | None = UUID(user_id) if user_id else None
    corrections, total = await correction_service.list_for_reviewer(
        db,
        current_user.organization_id,
        current_user,
        current_user.actor_role,
        status=status,
        user_id=user_uuid,
        page=page,
        per_page=per_page,
    )
    return {
        "items": [correction_service.build_response(c) for c in corrections],
        "total": total,
        "page": page,
        "per_page": per_page,
    }


@router.post("/{correction_id}/decision", response_model=CorrectionResponse)
async def decide_correction(
    correction_id: UUID,
    data: CorrectionDecision,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_manager)],
) -> dict:
    """정정 요청을 승인 또는 반려합니다.

    Approve or reject a correction. A manager approval moves it to
    MANAGER_APPROVED; an admin approval finalizes and applies it.
    """
    correction = await correction_service.decide_correction(
        db,
        current_user.organization_id,
        correction_id,
        actor=current_user,
        actor_role=current_user.actor_role,
        decision=data.decision,
        note=data.note,
    )
    return correction_service.build_response(correction)


@router.post("/{correction_id}/reapply", response_model=CorrectionResponse)
async def reapply_correction(
    correction_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    """승인된 정정을 근태일에 다시 반영합니다 (Re-run application; idempotent)."""
    correction = await correction_service.reapply_correction(
        db, current_user.organization_id, correction_id, current_user, current_user.actor_role
    )
    return correction_service.build_response(correction)

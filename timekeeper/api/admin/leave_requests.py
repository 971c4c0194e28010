"""관리자 휴가 라우터: 휴가 신청 결정 및 연간 잔여 관리 API.

Admin Leave Router: Review and decide leave requests, and manage yearly
leave balances.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.api.deps import require_admin, require_manager
from timekeeper.database import get_db
from timekeeper.models.user import User
from timekeeper.schemas.common import PaginatedResponse
from timekeeper.schemas.leave import (
    LeaveBalanceResponse,
    LeaveBalanceUpsert,
    LeaveDecision,
    LeaveRequestResponse,
)
from timekeeper.services.leave_service import leave_service

router: APIRouter = APIRouter()


@router.get("/requests", response_model=PaginatedResponse)
async def list_leave_requests(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_manager)],
    status: Annotated[str | None, Query()] = None,
    user_id: Annotated[str | None, Query()] = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """검토 대상 휴가 신청 목록 (Leave requests visible to the reviewer)."""
    user_uuid: UUID | None = UUID(user_id) if user_id else None
    requests, total = await leave_service.list_for_reviewer(
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
        "items": [leave_service.build_response(r) for r in requests],
        "total": total,
        "page": page,
        "per_page": per_page,
    }


@router.post("/requests/{request_id}/decision", response_model=LeaveRequestResponse)
async def decide_leave_request(
    request_id: UUID,
    data: LeaveDecision,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_manager)],
) -> dict:
    """휴가 신청을 승인 또는 반려합니다.

    Approve or reject a PENDING leave request. Approval fails with 409
    QUOTA_EXCEEDED when it would overcommit the yearly quota.

    Args:
        request_id: 휴가 신청 UUID (Leave request UUID)
        data: 결정 및 메모 (Decision and note)
        db: 비동기 데이터베이스 세션 (Async database session)
        current_user: 매니저 이상 사용자 (Manager or admin)

    Returns:
        dict: 결정된 휴가 신청 (Decided leave request)
    """
    request = await leave_service.decide_leave_request(
        db,
        current_user.organization_id,
        request_id,
        actor=current_user,
        actor_role=current_user.actor_role,
        decision=data.decision,
        note=data.note,
    )
    return leave_service.build_response(request)


@router.get("/balances", response_model=list[LeaveBalanceResponse])
async def list_leave_balances(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    year: Annotated[int | None, Query()] = None,
    user_id: Annotated[str | None, Query()] = None,
    leave_type_id: Annotated[str | None, Query()] = None,
) -> list[dict]:
    return await leave_service.list_balances(
        db,
        current_user.organization_id,
        year=year,
        user_id=UUID(user_id) if user_id else None,
        leave_type_id=UUID(leave_type_id) if leave_type_id else None,
    )


@router.put("/balances", response_model=LeaveBalanceResponse)
async def upsert_leave_balance(
    data: LeaveBalanceUpsert,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    """연간 할당량을 설정합니다 (Set a user's yearly quota; usage is recomputed)."""
    return await leave_service.upsert_balance(db, current_user.organization_id, data, actor_id=current_user.id)

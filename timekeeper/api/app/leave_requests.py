"""앱 휴가 라우터: 내 휴가 신청 및 잔여 API.

App Leave Router: Submit, list, and cancel my leave requests; view my
yearly balances.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.api.deps import get_current_user
from timekeeper.database import get_db
from timekeeper.models.user import User
from timekeeper.schemas.common import PaginatedResponse
from timekeeper.schemas.leave import LeaveBalanceResponse, LeaveRequestCreate, LeaveRequestResponse
from timekeeper.services.leave_service import leave_service

router: APIRouter = APIRouter()


@router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_request(
    data: LeaveRequestCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """휴가를 신청합니다.

    Submit a leave request. Refused with 409 QUOTA_EXCEEDED when approved
    plus pending days for the year already exhaust the quota.
    """
    request = await leave_service.create_leave_request(db, current_user.organization_id, current_user.id, data)
    return leave_service.build_response(request)


@router.get("", response_model=PaginatedResponse)
async def list_my_leave_requests(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    status: Annotated[str | None, Query()] = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    requests, total = await leave_service.list_own(
        db, current_user.organization_id, current_user.id, status=status, page=page, per_page=per_page
    )
    return {
        "items": [leave_service.build_response(r) for r in requests],
        "total": total,
        "page": page,
        "per_page": per_page,
    }


@router.post("/{request_id}/cancel", response_model=LeaveRequestResponse)
async def cancel_leave_request(
    request_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """대기 중인 내 휴가 신청을 취소합니다 (Cancel my PENDING request)."""
    request = await leave_service.cancel_leave_request(
        db, current_user.organization_id, request_id, current_user.id
    )
    return leave_service.build_response(request)


@router.get("/balances", response_model=list[LeaveBalanceResponse])
async def list_my_balances(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    year: Annotated[int | None, Query()] = None,
) -> list[dict]:
    """내 연간 휴가 잔여 (My yearly leave balances)."""
    return await leave_service.list_balances(
        db, current_user.organization_id, year=year, user_id=current_user.id
    )

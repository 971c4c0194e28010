"""앱 근태 정정 라우터: 내 정정 요청 API.

App Correction Router: Submit and list the current user's correction
requests.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.api.deps import get_current_user
from timekeeper.database import get_db
from timekeeper.models.user import User
from timekeeper.schemas.common import PaginatedResponse
from timekeeper.schemas.correction import CorrectionCreate, CorrectionResponse
from timekeeper.services.correction_service import correction_service

router: APIRouter = APIRouter()


@router.post("", response_model=CorrectionResponse, status_code=status.HTTP_201_CREATED)
async def create_correction(
    data: CorrectionCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """근태 정정을 요청합니다.

    Submit a correction request for one of my attendance days.

    Args:
        data: 정정 요청 데이터 (Correction request data)
        db: 비동기 데이터베이스 세션 (Async database session)
        current_user: 인증된 사용자 (Authenticated user)

    Returns:
        dict: 생성된 정정 요청 (Created correction request)
    """
    correction = await correction_service.create_correction(
        db, current_user.organization_id, current_user.id, data
    )
    return correction_service.build_response(correction)


@router.get("", response_model=PaginatedResponse)
async def list_my_corrections(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    status: Annotated[str | None, Query()] = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """내 정정 요청 목록 (My correction requests, newest first)."""
    corrections, total = await correction_service.list_own(
        db, current_user.organization_id, current_user.id, status=status, page=page, per_page=per_page
    )
    return {
        "items": [correction_service.build_response(c) for c in corrections],
        "total": total,
        "page": page,
        "per_page": per_page,
    }

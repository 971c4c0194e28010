"""근태 정정 요청 레포지토리: 정정 요청 조회 쿼리.

Correction Request Repository: Listing queries for correction requests,
scoped by owner, by a manager's reports, or org-wide.
"""

from typing import Sequence
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.models.correction import CorrectionRequest
from timekeeper.repositories.base import BaseRepository


class CorrectionRepository(BaseRepository[CorrectionRequest]):
    """근태 정정 요청 레포지토리.

    Extends:
        BaseRepository[CorrectionRequest]
    """

    def __init__(self) -> None:
        super().__init__(CorrectionRequest)

    async def get_by_filters(
        self,
        db: AsyncSession,
        organization_id: UUID,
        status: str | None = None,
        user_id: UUID | None = None,
        user_ids: list[UUID] | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[CorrectionRequest], int]:
        """필터 조건에 맞는 정정 요청을 페이지네이션하여 조회합니다.

        Retrieve paginated correction requests matching the given filters.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            organization_id: 조직 UUID (Organization UUID)
            status: 상태 필터, 선택 (Optional status filter)
            user_id: 요청자 필터, 선택 (Optional owner filter)
            user_ids: 요청자 범위, 선택: 매니저 범위 조회용
                      (Optional owner scope, used for manager listings)
            page: 페이지 번호, 1부터 시작 (Page number, 1-based)
            per_page: 페이지당 항목 수 (Items per page)

        Returns:
            tuple[Sequence[CorrectionRequest], int]: (정정 요청 목록, 전체 개수)
        """
        query: Select = select(CorrectionRequest).where(CorrectionRequest.organization_id == organization_id)

        if status is not None:
            query = query.where(CorrectionRequest.status == status)
        if user_id is not None:
            query = query.where(CorrectionRequest.user_id == user_id)
        if user_ids is not None:
            query = query.where(CorrectionRequest.user_id.in_(user_ids))

        query = query.order_by(CorrectionRequest.created_at.desc())
        return await self.get_paginated(db, query, page, per_page)


# 싱글턴 인스턴스: Singleton instance
correction_repository: CorrectionRepository = CorrectionRepository()

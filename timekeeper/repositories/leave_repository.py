"""휴가 레포지토리: 휴가 유형, 신청, 잔여 쿼리.

Leave Repository: Queries for leave types, leave requests and yearly
balances. Stored instants are UTC; year and day windows are compared as
half-open UTC intervals.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.models.enums import LeaveRequestStatus
from timekeeper.models.leave import LeaveBalance, LeaveRequest, LeaveType
from timekeeper.repositories.base import BaseRepository
from timekeeper.utils.timeutil import start_of_utc_day


def _year_window(year: int) -> tuple[datetime, datetime]:
    return (
        datetime(year, 1, 1, tzinfo=timezone.utc),
        datetime(year + 1, 1, 1, tzinfo=timezone.utc),
    )


class LeaveTypeRepository(BaseRepository[LeaveType]):

    def __init__(self) -> None:
        super().__init__(LeaveType)


class LeaveRequestRepository(BaseRepository[LeaveRequest]):
    """휴가 신청 레포지토리.

    Extends:
        BaseRepository[LeaveRequest]
    """

    def __init__(self) -> None:
        super().__init__(LeaveRequest)

    async def get_by_filters(
        self,
        db: AsyncSession,
        organization_id: UUID,
        status: str | None = None,
        user_id: UUID | None = None,
        user_ids: list[UUID] | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[LeaveRequest], int]:
        """필터 조건에 맞는 휴가 신청을 페이지네이션하여 조회합니다.

        Retrieve paginated leave requests matching the given filters.
        """
        query: Select = select(LeaveRequest).where(LeaveRequest.organization_id == organization_id)
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        if user_id is not None:
            query = query.where(LeaveRequest.user_id == user_id)
        if user_ids is not None:
            query = query.where(LeaveRequest.user_id.in_(user_ids))
        query = query.order_by(LeaveRequest.start_date.desc())
        return await self.get_paginated(db, query, page, per_page)

    async def get_overlapping_year(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        leave_type_id: UUID,
        year: int,
        statuses: set[str],
        excluding_id: UUID | None = None,
    ) -> Sequence[LeaveRequest]:
        """연도와 겹치는 휴가 신청 목록: 지정 상태만, 특정 신청 제외.

        Leave requests whose [start, end] interval overlaps ``year`` and whose
        status is in ``statuses``, optionally excluding one request.
        """
        year_start, next_year_start = _year_window(year)
        query: Select = select(LeaveRequest).where(
            LeaveRequest.organization_id == organization_id,
            LeaveRequest.user_id == user_id,
            LeaveRequest.leave_type_id == leave_type_id,
            LeaveRequest.status.in_(list(statuses)),
            LeaveRequest.start_date < next_year_start,
            LeaveRequest.end_date >= year_start,
        )
        if excluding_id is not None:
            query = query.where(LeaveRequest.id != excluding_id)
        result = await db.execute(query)
        return result.scalars().all()

    async def get_approved_full_day_covering(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        day: date,
    ) -> LeaveRequest | None:
        """해당 날짜를 포함하는 승인된 종일 휴가 (Approved full-day leave covering ``day``)."""
        day_start: datetime = start_of_utc_day(day)
        query: Select = (
            select(LeaveRequest)
            .where(
                LeaveRequest.organization_id == organization_id,
                LeaveRequest.user_id == user_id,
                LeaveRequest.status == LeaveRequestStatus.APPROVED,
                LeaveRequest.is_half_day.is_(False),
                LeaveRequest.start_date < day_start + timedelta(days=1),
                LeaveRequest.end_date >= day_start,
            )
            .limit(1)
        )
        result = await db.execute(query)
        return result.scalars().first()

    async def get_approved_in_range(
        self,
        db: AsyncSession,
        organization_id: UUID,
        date_from: date,
        date_to: date,
        user_id: UUID | None = None,
    ) -> Sequence[LeaveRequest]:
        """기간과 겹치는 승인된 휴가 목록 (Approved leave overlapping an inclusive date range)."""
        query: Select = select(LeaveRequest).where(
            LeaveRequest.organization_id == organization_id,
            LeaveRequest.status == LeaveRequestStatus.APPROVED,
            LeaveRequest.start_date < start_of_utc_day(date_to) + timedelta(days=1),
            LeaveRequest.end_date >= start_of_utc_day(date_from),
        )
        if user_id is not None:
            query = query.where(LeaveRequest.user_id == user_id)
        result = await db.execute(query)
        return result.scalars().all()


class LeaveBalanceRepository(BaseRepository[LeaveBalance]):
    """연간 휴가 잔여 레포지토리 (Yearly leave balance repository)."""

    def __init__(self) -> None:
        super().__init__(LeaveBalance)

    async def get_by_key(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        leave_type_id: UUID,
        year: int,
        for_update: bool = False,
    ) -> LeaveBalance | None:
        """(조직, 사용자, 유형, 연도)로 잔여를 조회합니다: 선택적으로 행 잠금.

        Retrieve the balance row for the key, optionally locking it.
        """
        query: Select = select(LeaveBalance).where(
            LeaveBalance.organization_id == organization_id,
            LeaveBalance.user_id == user_id,
            LeaveBalance.leave_type_id == leave_type_id,
            LeaveBalance.year == year,
        )
        if for_update:
            query = query.with_for_update(of=self.model).execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_filters(
        self,
        db: AsyncSession,
        organization_id: UUID,
        year: int | None = None,
        user_id: UUID | None = None,
        leave_type_id: UUID | None = None,
    ) -> Sequence[LeaveBalance]:
        query: Select = select(LeaveBalance).where(LeaveBalance.organization_id == organization_id)
        if year is not None:
            query = query.where(LeaveBalance.year == year)
        if user_id is not None:
            query = query.where(LeaveBalance.user_id == user_id)
        if leave_type_id is not None:
            query = query.where(LeaveBalance.leave_type_id == leave_type_id)
        result = await db.execute(query.order_by(LeaveBalance.year, LeaveBalance.user_id))
        return result.scalars().all()


# 싱글턴 인스턴스: Singleton instances
leave_type_repository: LeaveTypeRepository = LeaveTypeRepository()
leave_request_repository: LeaveRequestRepository = LeaveRequestRepository()
leave_balance_repository: LeaveBalanceRepository = LeaveBalanceRepository()

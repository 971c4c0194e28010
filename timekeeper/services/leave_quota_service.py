"""휴가 할당량 계산 서비스.

Leave Quota Service: Day counting and quota/consumption lookups shared by
leave submission and approval.
"""

from datetime import datetime
from typing import Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.models.leave import LeaveBalance, LeaveRequest, LeaveType
from timekeeper.repositories.leave_repository import leave_balance_repository, leave_request_repository
from timekeeper.utils.timeutil import utc_work_date


def leave_days(start: datetime, end: datetime, is_half_day: bool) -> float:
    """신청 일수: 반차는 0.5, 그 외 UTC 날짜 기준 양 끝 포함 (최소 1).

    Requested days: 0.5 for a half day, otherwise the inclusive count of UTC
    calendar dates from start to end, never less than 1.
    """
    if is_half_day:
        return 0.5
    span: int = (utc_work_date(end) - utc_work_date(start)).days + 1
    return float(max(1, span))


def request_days(request: LeaveRequest) -> float:
    return leave_days(request.start_date, request.end_date, request.is_half_day)


class LeaveQuotaService:
    """휴가 할당량 조회 서비스 (Quota and consumption lookups)."""

    async def quota_for(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        leave_type: LeaveType,
        year: int,
        balance: LeaveBalance | None = None,
    ) -> float | None:
        """유효 할당량: 명시적 잔여 설정 우선, 없으면 유형 기본값, None은 무제한.

        Effective quota for the key: the balance row's explicit value when set,
        else the leave type's default. None means unlimited.
        """
        if balance is None:
            balance = await leave_balance_repository.get_by_key(db, organization_id, user_id, leave_type.id, year)
        if balance is not None and balance.balance is not None:
            return balance.balance
        return leave_type.default_annual_quota

    async def consumed_days(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        leave_type_id: UUID,
        year: int,
        statuses: Iterable[str],
        excluding_id: UUID | None = None,
    ) -> float:
        """연도와 겹치는 신청의 일수 합계: 지정 상태만, 특정 신청 제외.

        Sum of requested days over requests overlapping ``year`` in the given
        statuses, excluding one request (the one being decided).
        """
        requests = await leave_request_repository.get_overlapping_year(
            db, organization_id, user_id, leave_type_id, year, set(statuses), excluding_id
        )
        return sum((request_days(r) for r in requests), 0.0)


# 싱글턴 인스턴스: Singleton instance
leave_quota_service: LeaveQuotaService = LeaveQuotaService()

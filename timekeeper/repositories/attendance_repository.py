"""근태 관리 레포지토리: 근태일 및 휴게 관련 DB 쿼리 담당.

Attendance Repository: Handles attendance day and break database queries.
Every mutation path loads the day through ``get_for_update`` so that the
row lock is taken before the state machine inspects it.
"""

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.models.attendance import Attendance
from timekeeper.repositories.base import BaseRepository


class AttendanceRepository(BaseRepository[Attendance]):
    """근태 기록 레포지토리.

    Attendance day repository with per-key lookups and range queries.

    Extends:
        BaseRepository[Attendance]
    """

    def __init__(self) -> None:
        super().__init__(Attendance)

    def _day_query(self, organization_id: UUID, user_id: UUID, work_date: date) -> Select:
        return select(Attendance).where(
            Attendance.organization_id == organization_id,
            Attendance.user_id == user_id,
            Attendance.work_date == work_date,
        )

    async def get_day(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        work_date: date,
    ) -> Attendance | None:
        """(조직, 사용자, 날짜)로 근태일을 조회합니다.

        Retrieve the attendance day for (organization, user, date), breaks included.
        """
        result = await db.execute(self._day_query(organization_id, user_id, work_date))
        return result.scalar_one_or_none()

    async def get_for_update(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        work_date: date,
    ) -> Attendance | None:
        """근태일을 행 잠금과 함께 조회합니다: SELECT ... FOR UPDATE.

        Retrieve the attendance day and lock its row for the rest of the
        transaction. ``populate_existing`` refreshes an identity-mapped
        instance so a retried mutation never sees stale state.
        """
        query: Select = (
            self._day_query(organization_id, user_id, work_date)
            .with_for_update(of=self.model)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_range(
        self,
        db: AsyncSession,
        organization_id: UUID,
        date_from: date,
        date_to: date,
        user_id: UUID | None = None,
    ) -> Sequence[Attendance]:
        """기간 내 근태일 목록을 조회합니다 (양 끝 포함).

        Retrieve attendance days within an inclusive date range.
        """
        query: Select = select(Attendance).where(
            Attendance.organization_id == organization_id,
            Attendance.work_date >= date_from,
            Attendance.work_date <= date_to,
        )
        if user_id is not None:
            query = query.where(Attendance.user_id == user_id)
        result = await db.execute(query.order_by(Attendance.user_id, Attendance.work_date))
        return result.scalars().all()

    async def add_day(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        work_date: date,
    ) -> Attendance:
        """빈 근태일을 생성합니다: 유니크 제약 위반 시 IntegrityError.

        Insert an empty attendance day. A concurrent insert of the same key
        surfaces as IntegrityError on flush, which the caller retries.
        """
        attendance: Attendance = Attendance(
            organization_id=organization_id,
            user_id=user_id,
            work_date=work_date,
            breaks=[],
        )
        db.add(attendance)
        await db.flush()
        return attendance


# 싱글턴 인스턴스: Singleton instance
attendance_repository: AttendanceRepository = AttendanceRepository()

"""조직 레포지토리: 조직(정책) 및 휴일 쿼리.

Organization Repository: Queries for organizations (policy rows) and
their holidays.
"""

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.models.organization import Holiday, Organization
from timekeeper.repositories.base import BaseRepository


class OrganizationRepository(BaseRepository[Organization]):
    """조직 테이블에 대한 데이터베이스 쿼리를 담당하는 레포지토리.

    Repository handling database queries for the organizations table.
    Inherits generic CRUD from BaseRepository.
    """

    def __init__(self) -> None:
        super().__init__(Organization)


class HolidayRepository(BaseRepository[Holiday]):

    def __init__(self) -> None:
        super().__init__(Holiday)

    async def get_in_range(
        self,
        db: AsyncSession,
        organization_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> Sequence[Holiday]:
        query: Select = select(Holiday).where(Holiday.organization_id == organization_id)
        if date_from is not None:
            query = query.where(Holiday.holiday_date >= date_from)
        if date_to is not None:
            query = query.where(Holiday.holiday_date <= date_to)
        result = await db.execute(query.order_by(Holiday.holiday_date))
        return result.scalars().all()

    async def is_full_day_holiday(
        self, db: AsyncSession, organization_id: UUID, day: date
    ) -> bool:
        query: Select = select(func.count()).select_from(Holiday).where(
            Holiday.organization_id == organization_id,
            Holiday.holiday_date == day,
            Holiday.is_full_day.is_(True),
        )
        return ((await db.execute(query)).scalar() or 0) > 0


# 싱글턴 인스턴스: Singleton instances
organization_repository: OrganizationRepository = OrganizationRepository()
holiday_repository: HolidayRepository = HolidayRepository()

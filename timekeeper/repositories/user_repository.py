"""사용자 레포지토리: 사용자 조회 및 매니저 관계 쿼리.

User Repository: Lookup and manager-relationship queries for users.
User CRUD belongs to the identity service; this repository only answers
the two questions the approval workflows ask: "is this the user's manager
of record?" and "does this manager run a team the user belongs to?".
"""

from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from timekeeper.models.organization import Team, TeamMember
from timekeeper.models.user import User
from timekeeper.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """사용자 테이블에 대한 데이터베이스 쿼리를 담당하는 레포지토리.

    Repository handling database queries for the users table.
    """

    def __init__(self) -> None:
        super().__init__(User)

    async def get_with_role(
        self,
        db: AsyncSession,
        user_id: UUID,
        organization_id: UUID | None = None,
    ) -> User | None:
        """역할을 즉시 로딩하여 사용자를 조회합니다.

        Retrieve a user with its role eager-loaded.
        """
        query: Select = select(User).options(selectinload(User.role)).where(User.id == user_id)
        if organization_id is not None:
            query = query.where(User.organization_id == organization_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def is_direct_manager(
        self,
        db: AsyncSession,
        manager_id: UUID,
        user_id: UUID,
    ) -> bool:
        """담당 매니저 여부 (Whether ``manager_id`` is the user's manager of record)."""
        query: Select = select(func.count()).select_from(User).where(
            User.id == user_id,
            User.manager_id == manager_id,
        )
        return ((await db.execute(query)).scalar() or 0) > 0

    async def manages_team_of(
        self,
        db: AsyncSession,
        manager_id: UUID,
        user_id: UUID,
    ) -> bool:
        """사용자가 속한 팀의 매니저 여부.

        Whether ``manager_id`` manages any team the user belongs to.
        """
        query: Select = (
            select(func.count())
            .select_from(TeamMember)
            .join(Team, Team.id == TeamMember.team_id)
            .where(TeamMember.user_id == user_id, Team.manager_id == manager_id)
        )
        return ((await db.execute(query)).scalar() or 0) > 0

    async def get_managed_user_ids(
        self,
        db: AsyncSession,
        organization_id: UUID,
        manager_id: UUID,
    ) -> list[UUID]:
        """매니저가 관리하는 사용자 ID 목록: 직속 부하 + 관리 팀 구성원.

        Users the manager may decide for: direct reports plus members of
        every team the manager runs.
        """
        team_members: Select = (
            select(TeamMember.user_id)
            .join(Team, Team.id == TeamMember.team_id)
            .where(Team.manager_id == manager_id, Team.organization_id == organization_id)
        )
        query: Select = select(User.id).where(
            User.organization_id == organization_id,
            or_(User.manager_id == manager_id, User.id.in_(team_members)),
        )
        result = await db.execute(query)
        return list(result.scalars().all())


# 싱글턴 인스턴스: Singleton instance
user_repository: UserRepository = UserRepository()

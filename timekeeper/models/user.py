"""사용자 및 역할 관련 SQLAlchemy ORM 모델 정의.

User and Role SQLAlchemy ORM model definitions.
Implements role-based access control (RBAC) with hierarchical levels
within each organization. User/role CRUD belongs to the identity service;
these tables are read here to resolve actors and manager relationships.

Tables:
    - roles: 조직 내 역할 (Roles within an organization, level-based hierarchy)
    - users: 사용자 계정 (User accounts with org/role scoping and manager of record)
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Boolean, DateTime, Integer, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timekeeper.database import Base
from timekeeper.models.enums import ActorRole

# 역할 레벨 상수: Lower level numbers indicate higher authority
ADMIN_LEVEL: int = 1
MANAGER_LEVEL: int = 2
EMPLOYEE_LEVEL: int = 3


class Role(Base):
    """역할 모델: 조직 내 권한 수준을 정의.

    Role model: Defines permission levels within an organization.
    Lower level numbers indicate higher authority:
        1 = admin, 2 = manager, 3 = employee

    Constraints:
        uq_role_org_name: 조직 내 역할 이름 고유 (Unique role name per org)
        uq_role_org_level: 조직 내 역할 레벨 고유 (Unique role level per org)
    """

    __tablename__ = "roles"

    # 역할 고유 식별자: Role unique identifier (UUID v4, auto-generated)
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # 소속 조직 FK: Parent organization (CASCADE: 조직 삭제 시 역할도 삭제)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    # 역할 이름: Role display name (e.g. "admin", "manager", "employee")
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # 권한 레벨: Permission level (1=admin 최고 권한, 3=employee 최저 권한)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_role_org_name"),
        UniqueConstraint("organization_id", "level", name="uq_role_org_level"),
    )

    # 관계: Relationships
    organization = relationship("Organization", back_populates="roles")
    users = relationship("User", back_populates="role")


class User(Base):
    """사용자 모델: 시스템 사용자 계정 정보.

    User model: System user account information.
    Each user belongs to exactly one organization, has one role, and may have
    a manager of record (``manager_id``).

    Attributes:
        id: 고유 식별자 UUID (Unique identifier)
        organization_id: 소속 조직 FK (Parent organization foreign key)
        role_id: 역할 FK (Assigned role foreign key)
        manager_id: 담당 매니저 FK (Manager of record, nullable)
        email: 이메일 (Login email, unique per org)
        full_name: 실명 (Full display name)
        is_active: 활성 상태 (Active status, soft-delete pattern)
    """

    __tablename__ = "users"

    # 사용자 고유 식별자: User unique identifier (UUID v4, auto-generated)
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # 소속 조직 FK: Parent organization (CASCADE: 조직 삭제 시 사용자도 삭제)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    # 역할 FK: Assigned role (역할 삭제 시 제한됨, role deletion is restricted)
    role_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("roles.id"), nullable=False)
    # 담당 매니저 FK: Manager of record (self-reference)
    manager_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    # 이메일: Login email (조직 내 고유, unique within org)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    # 실명: User's full display name
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # 활성 상태: Whether the user account is active
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="uq_user_org_email"),
    )

    # 관계: Relationships
    organization = relationship("Organization", back_populates="users")
    role = relationship("Role", back_populates="users")

    @property
    def actor_role(self) -> ActorRole:
        """역할 레벨을 결정 주체 역할로 변환 (Map role level to ActorRole).

        Requires ``role`` to be loaded.
        """
        level: int = self.role.level if self.role is not None else EMPLOYEE_LEVEL
        if level <= ADMIN_LEVEL:
            return ActorRole.ADMIN
        if level <= MANAGER_LEVEL:
            return ActorRole.MANAGER
        return ActorRole.EMPLOYEE

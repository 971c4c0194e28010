"""조직 관련 SQLAlchemy ORM 모델 정의.

Organization-related SQLAlchemy ORM model definitions.
The organization row doubles as the tenant's attendance policy store;
holidays and teams hang off it.

Tables:
    - organizations: 최상위 테넌트 + 근태 정책 (Top-level tenant with attendance policy)
    - holidays: 조직 휴일 (Tenant holidays)
    - teams: 팀 (Teams with an optional manager)
    - team_members: 팀 구성원 (Team membership)
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timekeeper.database import Base


class Organization(Base):
    """조직(테넌트) 모델: 시스템의 최상위 엔티티이자 근태 정책 보관소.

    Organization (tenant) model: Top-level entity in the system.
    All data is scoped under an organization for multi-tenant isolation.
    Policy columns are nullable; unset values fall back to ``settings.DEFAULT_*``.

    Attributes:
        id: 고유 식별자 UUID (Unique identifier)
        name: 조직 이름 (Organization name)
        is_active: 활성 상태 (Active status flag)
        timezone: IANA 타임존 (Timezone for minute-of-day evaluation)
        workday_start_minutes: 업무 시작 (Minutes since local midnight)
        workday_end_minutes: 업무 종료 (Minutes since local midnight)
        required_daily_minutes: 일일 필수 근무 분 (Required net minutes per day)
        half_day_threshold_minutes: 반차 기준 분 (Half-day threshold)
        paid_lunch_minutes: 유급 점심 허용 분 (Paid lunch allowance)
        lunch_window_start_minutes / lunch_window_end_minutes: 점심 시간대 (Lunch window)
        allow_external_breaks: 외출 허용 여부 (Whether EXTERNAL breaks are permitted)
        grace_late_minutes / grace_early_minutes: 지각/조퇴 유예 분 (Grace periods)
    """

    __tablename__ = "organizations"

    # 조직 고유 식별자: Organization unique identifier (UUID v4, auto-generated)
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # 조직 이름: Organization display name
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # 활성 상태: Whether the organization is active (soft-delete pattern)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # --- 근태 정책 (Attendance policy) ---
    timezone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    workday_start_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    workday_end_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    required_daily_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    half_day_threshold_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    paid_lunch_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lunch_window_start_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lunch_window_end_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    allow_external_breaks: Mapped[bool] = mapped_column(Boolean, default=True)
    grace_late_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grace_early_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # 생성 일시: Record creation timestamp (UTC)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    # 수정 일시: Last modification timestamp (UTC, auto-updated)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # 관계: Relationships (cascade: 조직 삭제 시 하위 데이터 일괄 삭제)
    roles = relationship("Role", back_populates="organization", cascade="all, delete-orphan")
    users = relationship("User", back_populates="organization", cascade="all, delete-orphan")
    holidays = relationship("Holiday", back_populates="organization", cascade="all, delete-orphan")
    teams = relationship("Team", back_populates="organization", cascade="all, delete-orphan")


class Holiday(Base):
    """조직 휴일 모델.

    Tenant holiday. A full-day holiday turns a day without clock-in
    into HOLIDAY instead of ABSENT.

    Constraints:
        uq_holiday_org_date: 조직 내 날짜 고유 (One holiday per org per date)
    """

    __tablename__ = "holidays"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    is_full_day: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("organization_id", "holiday_date", name="uq_holiday_org_date"),
    )

    organization = relationship("Organization", back_populates="holidays")


class Team(Base):
    """팀 모델: 팀 매니저는 구성원의 정정/휴가 요청을 결정할 수 있습니다.

    Team model. The team's manager may decide correction and leave requests
    of every member, in addition to each user's manager of record.
    """

    __tablename__ = "teams"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # 팀 매니저 FK: Manager of the team (nullable: team without manager)
    manager_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_team_org_name"),
    )

    organization = relationship("Organization", back_populates="teams")
    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")


class TeamMember(Base):
    """팀 구성원 연결 테이블 (Team membership association)."""

    __tablename__ = "team_members"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_member"),
    )

    team = relationship("Team", back_populates="members")

"""근태 관리 관련 SQLAlchemy ORM 모델 정의.

Attendance management SQLAlchemy ORM model definitions.
Includes daily attendance records with their derived metrics and the
breaks taken during each day.

Tables:
    - attendances: 근태 기록 (Daily attendance records per user, with derived metrics)
    - attendance_breaks: 휴게 기록 (Lunch and external breaks of an attendance day)
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timekeeper.database import Base


class Attendance(Base):
    """근태 기록 모델: 일별 사용자 출퇴근 기록.

    Attendance record model: Daily user clock-in/out record.
    One record per (organization, user, UTC work date). Created lazily on the
    first clock, break, or correction event for that date. Metric columns are
    derived and rewritten on every mutation.

    Status flow: NOT_STARTED -> CLOCKED_IN -> (ON_BREAK <-> CLOCKED_IN)* -> CLOCKED_OUT

    Attributes:
        id: 고유 식별자 UUID (Unique identifier)
        organization_id: 소속 조직 FK (Organization scope for multi-tenant isolation)
        user_id: 사용자 FK (User who clocked in)
        work_date: 근무 날짜, UTC 기준 (UTC calendar date of attendance)
        clock_in: 출근 시각 (Clock-in timestamp)
        clock_out: 퇴근 시각 (Clock-out timestamp)
        net_minutes: 순 근무 분 (Worked minutes after break deductions)
        late_minutes: 지각 분 (Late minutes past grace)
        early_leave_minutes: 조퇴 분 (Early-leave minutes past grace)
        external_break_minutes: 외출 분 (External break minutes)
        overtime_minutes: 초과 근무 분 (Overtime minutes)
        status: 상태 (PRESENT, HALF, LEAVE, ABSENT, HOLIDAY; null while the day is open)
        version: 낙관적 동시성 버전 (Optimistic concurrency version)

    Constraints:
        uq_attendance_org_user_date: 동일 조직+사용자+날짜 중복 불가
            (One attendance record per user per day)
    """

    __tablename__ = "attendances"

    # 근태 고유 식별자: Attendance unique identifier (UUID v4, auto-generated)
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # 소속 조직 FK: Organization scope for multi-tenant data isolation
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    # 사용자 FK: User who recorded attendance
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # 근무 날짜: UTC calendar date (date only, no time)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    # 출근 시각: Clock-in timestamp with timezone
    clock_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # 퇴근 시각: Clock-out timestamp with timezone
    clock_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # --- 파생 지표 (Derived metrics) ---
    net_minutes: Mapped[int] = mapped_column(Integer, default=0)
    late_minutes: Mapped[int] = mapped_column(Integer, default=0)
    early_leave_minutes: Mapped[int] = mapped_column(Integer, default=0)
    external_break_minutes: Mapped[int] = mapped_column(Integer, default=0)
    overtime_minutes: Mapped[int] = mapped_column(Integer, default=0)
    # 상태: null while the day is still open (clocked in, not out)
    status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # 버전: Bumped on every UPDATE; a stale writer fails with StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # 생성 일시: Record creation timestamp (UTC)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    # 수정 일시: Last modification timestamp (UTC, auto-updated)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", "work_date", name="uq_attendance_org_user_date"),
    )

    __mapper_args__ = {"version_id_col": version}

    breaks: Mapped[list["AttendanceBreak"]] = relationship(
        "AttendanceBreak",
        back_populates="attendance",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="AttendanceBreak.start_at",
    )


class AttendanceBreak(Base):
    """휴게 기록 모델: 근태일에 속한 점심/외출 휴게.

    Break taken during an attendance day. ``end_at`` null means the break is
    still open. The partial unique index makes the database refuse a second
    open break of the same type on one day.
    """

    __tablename__ = "attendance_breaks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    attendance_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("attendances.id", ondelete="CASCADE"), nullable=False)
    # 휴게 유형: LUNCH or EXTERNAL
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index(
            "uq_attendance_break_open_per_type",
            "attendance_id",
            "type",
            unique=True,
            postgresql_where=text("end_at IS NULL"),
            sqlite_where=text("end_at IS NULL"),
        ),
    )

    attendance: Mapped["Attendance"] = relationship("Attendance", back_populates="breaks")

    @property
    def is_open(self) -> bool:
        return self.end_at is None

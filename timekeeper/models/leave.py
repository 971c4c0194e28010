"""휴가 관련 SQLAlchemy ORM 모델 정의.

Leave management SQLAlchemy ORM model definitions.

Tables:
    - leave_types: 휴가 유형 (Leave types with an optional org-wide annual quota)
    - leave_requests: 휴가 신청 (Leave requests, PENDING -> APPROVED | REJECTED | CANCELLED)
    - leave_balances: 연간 휴가 잔여 (Per user/type/year quota and recomputed usage)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timekeeper.database import Base


class LeaveType(Base):
    """휴가 유형 모델.

    Leave type model. ``default_annual_quota`` null means unlimited unless a
    user's LeaveBalance sets an explicit quota.
    """

    __tablename__ = "leave_types"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    # 유형 코드: Short code (e.g. "ANNUAL", "SICK")
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # 유급 여부: Paid leave counts toward payable days
    is_paid: Mapped[bool] = mapped_column(Boolean, default=True)
    default_annual_quota: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_leave_type_org_code"),
    )


class LeaveRequest(Base):
    """휴가 신청 모델.

    Leave request model. ``start_date``/``end_date`` are instants; day counts
    use their UTC calendar dates. A half-day request always counts 0.5 days.

    Status flow: PENDING -> APPROVED | REJECTED | CANCELLED (all terminal)
    """

    __tablename__ = "leave_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    leave_type_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("leave_types.id", ondelete="CASCADE"), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_half_day: Mapped[bool] = mapped_column(Boolean, default=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    # 결정자 FK: Deciding manager/admin
    decided_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    decision_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_leave_request_user_type", "user_id", "leave_type_id"),
        Index("ix_leave_request_org_status", "organization_id", "status"),
    )

    leave_type = relationship("LeaveType", lazy="joined")


class LeaveBalance(Base):
    """연간 휴가 잔여 모델.

    Yearly leave balance. ``balance`` is the quota for that year (null falls
    back to the leave type default); ``used`` is recomputed from approved
    requests on every approval, never incremented.

    Constraints:
        uq_leave_balance_key: 조직+사용자+유형+연도 고유 (One row per user/type/year)
    """

    __tablename__ = "leave_balances"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    leave_type_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("leave_types.id", ondelete="CASCADE"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    balance: Mapped[float | None] = mapped_column(Float, nullable=True)
    used: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", "leave_type_id", "year", name="uq_leave_balance_key"),
    )

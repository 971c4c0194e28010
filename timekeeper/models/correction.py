"""근태 정정 요청 SQLAlchemy ORM 모델 정의.

Correction request model: a user-submitted edit to historical clock or
break times, decided by a manager and/or an admin.

Tables:
    - correction_requests: 근태 정정 요청 (Correction requests with two-stage approval)
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from timekeeper.database import Base


class CorrectionRequest(Base):
    """근태 정정 요청 모델.

    Correction request model.

    Status flow: PENDING -> MANAGER_APPROVED -> ADMIN_APPROVED
                 PENDING | MANAGER_APPROVED -> REJECTED
    ADMIN_APPROVED and REJECTED are terminal.

    Attributes:
        id: 고유 식별자 UUID (Unique identifier)
        organization_id: 소속 조직 FK (Organization scope)
        user_id: 요청자 FK (Requesting user)
        work_date: 대상 근무일 (Target attendance date, UTC)
        kind: 정정 유형 (CLOCK or BREAK)
        proposed_clock_in / proposed_clock_out: 제안 출퇴근 시각 (Proposed clock times)
        proposed_break_start / proposed_break_end: 제안 휴게 시각 (Proposed break times)
        note: 요청 메모 (Requester note)
        status: 상태 (PENDING, MANAGER_APPROVED, ADMIN_APPROVED, REJECTED)
        manager_id / admin_id: 결정자 FK (Deciding manager / admin)
        decision_note: 결정 메모 (Note left by the decider)
        decided_at: 결정 일시 (Last decision timestamp)
        applied_at: 근태 반영 일시 (When the edit was last applied to attendance)
        applied_break_id: 반영된 휴게 FK (Break edited by a BREAK correction, reused on replay)
    """

    __tablename__ = "correction_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    proposed_clock_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    proposed_clock_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    proposed_break_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    proposed_break_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    manager_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    admin_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    decision_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # 휴게 삭제 시 참조만 해제: replay then falls back to the day's EXTERNAL break
    applied_break_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("attendance_breaks.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_correction_org_status", "organization_id", "status"),
        Index("ix_correction_user_date", "user_id", "work_date"),
    )

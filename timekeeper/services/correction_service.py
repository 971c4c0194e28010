"""근태 정정 승인 상태 머신 서비스.

Correction Approval State Machine Service: Submission, listing, two-stage
decision, and idempotent application of correction requests.

Status flow:
    PENDING -> MANAGER_APPROVED -> ADMIN_APPROVED (terminal)
    PENDING | MANAGER_APPROVED -> REJECTED (terminal)
    관리자는 PENDING에서 바로 ADMIN_APPROVED/REJECTED로 결정 가능
    (An admin may decide straight from PENDING.)

Decision and application are separate commits. The decision is committed
first; the attendance edit then runs through ``mutate_day`` and records
``applied_at``/``applied_break_id`` in the same commit as the edit.
Re-running the application on an ADMIN_APPROVED correction converges to
the same attendance day, so a failed recompute is recovered by replay
(admin re-approve or ``reapply_correction``).
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.models.attendance import Attendance, AttendanceBreak
from timekeeper.models.correction import CorrectionRequest
from timekeeper.models.enums import (
    CORRECTION_TERMINAL_STATUSES,
    ActorRole,
    BreakType,
    CorrectionKind,
    CorrectionStatus,
    Decision,
)
from timekeeper.models.user import User
from timekeeper.repositories.correction_repository import correction_repository
from timekeeper.repositories.user_repository import user_repository
from timekeeper.schemas.correction import CorrectionCreate
from timekeeper.services.attendance_day_service import attendance_day_service
from timekeeper.services.event_service import event_service
from timekeeper.services.time_metric_service import Policy
from timekeeper.utils.exceptions import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from timekeeper.utils.timeutil import ensure_utc, start_of_utc_day, utcnow

logger = logging.getLogger(__name__)


class CorrectionService:
    """근태 정정 서비스.

    Correction request service handling submission, manager/admin
    decisions, and application to the attendance day.
    """

    # === 제출 및 조회 (Submission and listing) ===

    async def create_correction(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        data: CorrectionCreate,
    ) -> CorrectionRequest:
        """정정 요청을 생성합니다.

        Create a PENDING correction request for the requesting user.

        Raises:
            ValidationError: 제안 시각 누락 또는 종료가 시작보다 이름
                (No proposed time for the kind, or end before start)
        """
        clock_in: datetime | None = ensure_utc(data.proposed_clock_in)
        clock_out: datetime | None = ensure_utc(data.proposed_clock_out)
        break_start: datetime | None = ensure_utc(data.proposed_break_start)
        break_end: datetime | None = ensure_utc(data.proposed_break_end)

        if data.kind == CorrectionKind.CLOCK:
            if clock_in is None and clock_out is None:
                raise ValidationError("A CLOCK correction needs a proposed clock-in or clock-out", code="MISSING_PROPOSED_TIME")
            if clock_in is not None and clock_out is not None and clock_out < clock_in:
                raise ValidationError("Proposed clock-out is before proposed clock-in", code="INVALID_TIME")
            break_start = break_end = None
        else:
            if break_start is None and break_end is None:
                raise ValidationError("A BREAK correction needs a proposed break start or end", code="MISSING_PROPOSED_TIME")
            if break_start is not None and break_end is not None and break_end < break_start:
                raise ValidationError("Proposed break end is before proposed break start", code="INVALID_TIME")
            clock_in = clock_out = None

        correction: CorrectionRequest = await correction_repository.create(
            db,
            {
                "organization_id": organization_id,
                "user_id": user_id,
                "work_date": data.work_date,
                "kind": data.kind.value,
                "proposed_clock_in": clock_in,
                "proposed_clock_out": clock_out,
                "proposed_break_start": break_start,
                "proposed_break_end": break_end,
                "note": data.note,
                "status": CorrectionStatus.PENDING.value,
            },
        )
        await db.commit()

        event_service.emit(
            "correction.created",
            organization_id,
            entity="correction",
            entity_id=correction.id,
            actor_id=user_id,
            after={"status": correction.status, "kind": correction.kind, "work_date": correction.work_date.isoformat()},
        )
        return correction

    async def list_own(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        status: str | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[CorrectionRequest], int]:
        return await correction_repository.get_by_filters(
            db, organization_id, status=status, user_id=user_id, page=page, per_page=per_page
        )

    async def list_for_reviewer(
        self,
        db: AsyncSession,
        organization_id: UUID,
        actor: User,
        actor_role: ActorRole,
        status: str | None = None,
        user_id: UUID | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[CorrectionRequest], int]:
        """검토자 범위의 정정 요청 목록: 관리자는 조직 전체, 매니저는 관리 대상만.

        List corrections visible to a reviewer: admins see the whole
        organization, managers see direct reports and managed team members.
        """
        if actor_role == ActorRole.ADMIN:
            return await correction_repository.get_by_filters(
                db, organization_id, status=status, user_id=user_id, page=page, per_page=per_page
            )
        if actor_role != ActorRole.MANAGER:
            raise AuthorizationError()
        managed: list[UUID] = await user_repository.get_managed_user_ids(db, organization_id, actor.id)
        return await correction_repository.get_by_filters(
            db, organization_id, status=status, user_id=user_id, user_ids=managed, page=page, per_page=per_page
        )

    # === 결정 (Decision) ===

    async def decide_correction(
        self,
        db: AsyncSession,
        organization_id: UUID,
        correction_id: UUID,
        actor: User,
        actor_role: ActorRole,
        decision: Decision,
        note: str | None = None,
    ) -> CorrectionRequest:
        """정정 요청을 승인/반려합니다.

        Decide a correction request.

        Manager:
            PENDING + approve -> MANAGER_APPROVED (attendance untouched)
            PENDING + reject  -> REJECTED
            MANAGER_APPROVED + approve -> no-op repeat, returned unchanged
        Admin:
            PENDING | MANAGER_APPROVED + approve -> ADMIN_APPROVED, then applied
            PENDING | MANAGER_APPROVED + reject  -> REJECTED
            ADMIN_APPROVED + approve -> application replayed, status unchanged
        Anything else from a decided state raises ALREADY_DECIDED.

        Raises:
            NotFoundError: 정정 요청 없음
            AuthorizationError: 매니저 관계 없음 또는 결정 권한 없음
            StateConflictError: ALREADY_DECIDED
        """
        decision = Decision(decision)
        actor_role = ActorRole(actor_role)
        if actor_role not in (ActorRole.MANAGER, ActorRole.ADMIN):
            raise AuthorizationError("Only managers and admins can decide corrections")

        correction: CorrectionRequest | None = await correction_repository.get_by_id(
            db, correction_id, organization_id, for_update=True
        )
        if correction is None:
            raise NotFoundError("Correction request not found")

        if actor_role == ActorRole.MANAGER:
            await self._ensure_manages(db, actor.id, correction.user_id)

        current: str = correction.status
        if actor_role == ActorRole.ADMIN and current == CorrectionStatus.ADMIN_APPROVED and decision == Decision.APPROVE:
            # 승인 재시도: decision is a repeat; only the application step runs again
            await db.rollback()
            logger.info("Replaying application of correction %s", correction_id)
            return await self.apply_correction(db, organization_id, correction_id)

        if actor_role == ActorRole.MANAGER and current == CorrectionStatus.MANAGER_APPROVED and decision == Decision.APPROVE:
            await db.commit()
            return correction

        if current in CORRECTION_TERMINAL_STATUSES or (
            actor_role == ActorRole.MANAGER and current != CorrectionStatus.PENDING
        ):
            await db.rollback()
            raise StateConflictError("ALREADY_DECIDED", f"Correction is already {current}", status=current)

        now: datetime = utcnow()
        if decision == Decision.REJECT:
            new_status: CorrectionStatus = CorrectionStatus.REJECTED
        elif actor_role == ActorRole.ADMIN:
            new_status = CorrectionStatus.ADMIN_APPROVED
        else:
            new_status = CorrectionStatus.MANAGER_APPROVED

        if actor_role == ActorRole.ADMIN:
            correction.admin_id = actor.id
        else:
            correction.manager_id = actor.id
        correction.status = new_status.value
        correction.decision_note = note
        correction.decided_at = now
        await db.commit()

        logger.info("Correction %s: %s -> %s by %s %s", correction_id, current, new_status.value, actor_role.value, actor.id)
        event_service.emit(
            "correction.decided",
            organization_id,
            entity="correction",
            entity_id=correction.id,
            actor_id=actor.id,
            before={"status": current},
            after={"status": new_status.value, "decision": decision.value, "actor_role": actor_role.value},
        )

        if new_status == CorrectionStatus.ADMIN_APPROVED:
            return await self.apply_correction(db, organization_id, correction_id)
        return correction

    async def reapply_correction(
        self,
        db: AsyncSession,
        organization_id: UUID,
        correction_id: UUID,
        actor: User,
        actor_role: ActorRole,
    ) -> CorrectionRequest:
        """승인된 정정을 근태에 다시 반영합니다 (관리자 전용, 멱등).

        Re-run the application step for an ADMIN_APPROVED correction.
        Used to recover when the recompute after approval failed.
        """
        if ActorRole(actor_role) != ActorRole.ADMIN:
            raise AuthorizationError("Only admins can re-apply corrections")
        correction: CorrectionRequest | None = await correction_repository.get_by_id(db, correction_id, organization_id)
        if correction is None:
            raise NotFoundError("Correction request not found")
        if correction.status != CorrectionStatus.ADMIN_APPROVED:
            raise StateConflictError(
                "NOT_APPROVED", "Only ADMIN_APPROVED corrections can be re-applied", status=correction.status
            )
        logger.info("Re-applying correction %s by admin %s", correction_id, actor.id)
        return await self.apply_correction(db, organization_id, correction_id)

    # === 반영 (Application) ===

    async def apply_correction(
        self,
        db: AsyncSession,
        organization_id: UUID,
        correction_id: UUID,
    ) -> CorrectionRequest:
        """승인된 정정을 근태일에 반영합니다: 멱등.

        Apply an approved correction to its attendance day.

        CLOCK: 제안된 출퇴근 시각만 덮어씀 (Overwrite only the proposed clock fields.)
        BREAK: 이전에 반영한 휴게, 없으면 첫 EXTERNAL 휴게, 없으면 새로 생성 후 덮어씀.
               (Edit the previously applied break, else the day's first EXTERNAL
               break, else create one; a new break without a proposed start
               starts at the work date's UTC midnight.)

        The correction row is re-read under a row lock inside the day
        mutation, so concurrent replays of the same correction serialize and
        edit the same break.
        """
        correction: CorrectionRequest | None = await correction_repository.get_by_id(db, correction_id, organization_id)
        if correction is None:
            raise NotFoundError("Correction request not found")
        user_id: UUID = correction.user_id
        work_date = correction.work_date

        async def _edit(attendance: Attendance, policy: Policy) -> None:
            row: CorrectionRequest | None = await correction_repository.get_by_id(
                db, correction_id, organization_id, for_update=True
            )
            if row is None:
                raise NotFoundError("Correction request not found")

            if row.kind == CorrectionKind.CLOCK:
                if row.proposed_clock_in is not None:
                    attendance.clock_in = ensure_utc(row.proposed_clock_in)
                if row.proposed_clock_out is not None:
                    attendance.clock_out = ensure_utc(row.proposed_clock_out)
            else:
                target: AttendanceBreak = await self._resolve_break(db, attendance, row)
                row.applied_break_id = target.id
            row.applied_at = utcnow()

        await attendance_day_service.mutate_day(db, organization_id, user_id, work_date, _edit)

        applied: CorrectionRequest | None = await correction_repository.get_by_id(db, correction_id, organization_id)
        if applied is None:
            raise NotFoundError("Correction request not found")
        event_service.emit(
            "correction.applied",
            organization_id,
            entity="correction",
            entity_id=applied.id,
            after={"work_date": work_date.isoformat(), "kind": applied.kind, "applied_break_id": str(applied.applied_break_id) if applied.applied_break_id else None},
        )
        return applied

    async def _resolve_break(
        self,
        db: AsyncSession,
        attendance: Attendance,
        row: CorrectionRequest,
    ) -> AttendanceBreak:
        start: datetime | None = ensure_utc(row.proposed_break_start)
        end: datetime | None = ensure_utc(row.proposed_break_end)

        target: AttendanceBreak | None = None
        if row.applied_break_id is not None:
            target = next((b for b in attendance.breaks if b.id == row.applied_break_id), None)
        if target is None:
            externals: list[AttendanceBreak] = sorted(
                (b for b in attendance.breaks if b.type == BreakType.EXTERNAL),
                key=lambda b: ensure_utc(b.start_at),
            )
            target = externals[0] if externals else None

        if target is None:
            target = AttendanceBreak(
                id=uuid.uuid4(),
                type=BreakType.EXTERNAL.value,
                start_at=start if start is not None else start_of_utc_day(row.work_date),
                end_at=end,
            )
            attendance.breaks.append(target)
            # 휴게 INSERT 후 정정 행에서 참조: Insert the break before the correction row references it
            await db.flush()
            return target

        if start is not None:
            target.start_at = start
        if end is not None:
            target.end_at = end
        return target

    async def _ensure_manages(self, db: AsyncSession, manager_id: UUID, user_id: UUID) -> None:
        """매니저 관계 확인: 담당 매니저 또는 소속 팀 매니저.

        Two independent predicates OR'd together: manager of record, or
        manager of a team the user belongs to.
        """
        if await user_repository.is_direct_manager(db, manager_id, user_id):
            return
        if await user_repository.manages_team_of(db, manager_id, user_id):
            return
        raise AuthorizationError("You do not manage this user", code="NOT_USERS_MANAGER")

    def build_response(self, correction: CorrectionRequest) -> dict[str, Any]:
        """정정 요청 응답 딕셔너리를 생성합니다 (Build the API response dict)."""
        return {
            "id": str(correction.id),
            "user_id": str(correction.user_id),
            "work_date": correction.work_date,
            "kind": correction.kind,
            "proposed_clock_in": ensure_utc(correction.proposed_clock_in),
            "proposed_clock_out": ensure_utc(correction.proposed_clock_out),
            "proposed_break_start": ensure_utc(correction.proposed_break_start),
            "proposed_break_end": ensure_utc(correction.proposed_break_end),
            "note": correction.note,
            "status": correction.status,
            "manager_id": str(correction.manager_id) if correction.manager_id else None,
            "admin_id": str(correction.admin_id) if correction.admin_id else None,
            "decision_note": correction.decision_note,
            "decided_at": ensure_utc(correction.decided_at),
            "applied_at": ensure_utc(correction.applied_at),
            "created_at": ensure_utc(correction.created_at),
        }


# 싱글턴 인스턴스: Singleton instance
correction_service: CorrectionService = CorrectionService()

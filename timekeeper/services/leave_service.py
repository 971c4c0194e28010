"""휴가 신청 및 연간 할당량 서비스.

Leave Service: Leave request submission, decision with quota enforcement,
cancellation, and yearly balance administration.

Status flow: PENDING -> APPROVED | REJECTED | CANCELLED (terminal)

Approval holds the quota lock for (organization, user, leave type, year)
and the balance row lock, recomputes consumption from APPROVED requests
(excluding the one being decided), and rejects the approval with
QuotaExceededError when it would overcommit the quota. The balance row's
``used`` is always written as the recomputed total, never incremented.
A request spanning New Year also refreshes the later year's balance row.
"""

import logging
from contextlib import AsyncExitStack
from datetime import date, datetime
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.models.enums import ActorRole, Decision, LeaveRequestStatus
from timekeeper.models.leave import LeaveBalance, LeaveRequest, LeaveType
from timekeeper.models.user import User
from timekeeper.repositories.leave_repository import (
    leave_balance_repository,
    leave_request_repository,
    leave_type_repository,
)
from timekeeper.repositories.user_repository import user_repository
from timekeeper.schemas.leave import LeaveBalanceUpsert, LeaveRequestCreate
from timekeeper.services.attendance_day_service import attendance_day_service, dates_between
from timekeeper.services.event_service import event_service
from timekeeper.services.leave_quota_service import leave_quota_service, request_days, leave_days
from timekeeper.utils.exceptions import (
    AuthorizationError,
    NotFoundError,
    QuotaExceededError,
    StateConflictError,
    ValidationError,
)
from timekeeper.utils.locks import leave_quota_locks
from timekeeper.utils.timeutil import ensure_utc, utc_work_date, utcnow

logger = logging.getLogger(__name__)

# 신청 시 사전 점검 대상 상태: Statuses that count against quota at submission
_RESERVED_STATUSES: frozenset[str] = frozenset({LeaveRequestStatus.APPROVED, LeaveRequestStatus.PENDING})
_APPROVED_STATUSES: frozenset[str] = frozenset({LeaveRequestStatus.APPROVED})


class LeaveService:
    """휴가 서비스.

    Leave request and balance service.
    """

    async def _get_leave_type(self, db: AsyncSession, organization_id: UUID, leave_type_id: UUID) -> LeaveType:
        leave_type: LeaveType | None = await leave_type_repository.get_by_id(db, leave_type_id, organization_id)
        if leave_type is None:
            raise NotFoundError("Leave type not found")
        return leave_type

    # === 신청 (Submission) ===

    async def create_leave_request(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        data: LeaveRequestCreate,
    ) -> LeaveRequest:
        """휴가를 신청합니다.

        Submit a PENDING leave request. Submission is refused early when
        approved plus pending days for the year would already exceed the
        quota; the authoritative check happens again at approval.

        Raises:
            NotFoundError: 휴가 유형 없음
            ValidationError: 종료가 시작보다 이름 또는 비활성 유형
            QuotaExceededError: 할당량 초과 (Quota exceeded)
        """
        leave_type: LeaveType = await self._get_leave_type(db, organization_id, UUID(data.leave_type_id))
        if not leave_type.is_active:
            raise ValidationError("Leave type is not active", code="LEAVE_TYPE_INACTIVE")

        start: datetime = ensure_utc(data.start_date)
        end: datetime = ensure_utc(data.end_date)
        if end < start:
            raise ValidationError("end_date must not be before start_date", code="INVALID_RANGE")

        days: float = leave_days(start, end, data.is_half_day)
        year: int = start.year
        quota: float | None = await leave_quota_service.quota_for(db, organization_id, user_id, leave_type, year)
        if quota is not None:
            reserved: float = await leave_quota_service.consumed_days(
                db, organization_id, user_id, leave_type.id, year, _RESERVED_STATUSES
            )
            if reserved + days > quota:
                raise QuotaExceededError(quota=quota, consumed=reserved, requested=days)

        request: LeaveRequest = await leave_request_repository.create(
            db,
            {
                "organization_id": organization_id,
                "user_id": user_id,
                "leave_type_id": leave_type.id,
                "start_date": start,
                "end_date": end,
                "is_half_day": data.is_half_day,
                "reason": data.reason,
                "status": LeaveRequestStatus.PENDING.value,
            },
        )
        await db.commit()

        event_service.emit(
            "leave.created",
            organization_id,
            entity="leave_request",
            entity_id=request.id,
            actor_id=user_id,
            after={"status": request.status, "leave_type": leave_type.code, "days": days},
        )
        return request

    async def cancel_leave_request(
        self,
        db: AsyncSession,
        organization_id: UUID,
        request_id: UUID,
        user_id: UUID,
    ) -> LeaveRequest:
        """본인의 대기 중 휴가 신청을 취소합니다 (Owner cancels a PENDING request)."""
        request: LeaveRequest | None = await leave_request_repository.get_by_id(
            db, request_id, organization_id, for_update=True
        )
        if request is None:
            raise NotFoundError("Leave request not found")
        if request.user_id != user_id:
            await db.rollback()
            raise AuthorizationError("Only the requester can cancel a leave request")
        if request.status != LeaveRequestStatus.PENDING:
            current: str = request.status
            await db.rollback()
            raise StateConflictError("ALREADY_DECIDED", f"Leave request is already {current}", status=current)

        request.status = LeaveRequestStatus.CANCELLED.value
        await db.commit()
        event_service.emit(
            "leave.cancelled",
            organization_id,
            entity="leave_request",
            entity_id=request.id,
            actor_id=user_id,
            before={"status": LeaveRequestStatus.PENDING.value},
            after={"status": request.status},
        )
        return request

    # === 조회 (Listing) ===

    async def list_own(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        status: str | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[LeaveRequest], int]:
        return await leave_request_repository.get_by_filters(
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
    ) -> tuple[Sequence[LeaveRequest], int]:
        if actor_role == ActorRole.ADMIN:
            return await leave_request_repository.get_by_filters(
                db, organization_id, status=status, user_id=user_id, page=page, per_page=per_page
            )
        if actor_role != ActorRole.MANAGER:
            raise AuthorizationError()
        managed: list[UUID] = await user_repository.get_managed_user_ids(db, organization_id, actor.id)
        return await leave_request_repository.get_by_filters(
            db, organization_id, status=status, user_id=user_id, user_ids=managed, page=page, per_page=per_page
        )

    # === 결정 (Decision) ===

    async def decide_leave_request(
        self,
        db: AsyncSession,
        organization_id: UUID,
        request_id: UUID,
        actor: User,
        actor_role: ActorRole,
        decision: Decision,
        note: str | None = None,
    ) -> LeaveRequest:
        """휴가 신청을 승인/반려합니다.

        Approve or reject a PENDING leave request.

        Approval re-checks the quota under the quota lock and, on success,
        writes the balance's ``used`` as the recomputed approved total. A
        full-day approval then recomputes existing attendance days in its
        range so their status becomes LEAVE.

        Raises:
            NotFoundError: 신청 없음
            AuthorizationError: 결정 권한 없음 또는 매니저 관계 없음
            StateConflictError: ALREADY_DECIDED 또는 동시 수정
            QuotaExceededError: 할당량 초과
        """
        decision = Decision(decision)
        actor_role = ActorRole(actor_role)
        if actor_role not in (ActorRole.MANAGER, ActorRole.ADMIN):
            raise AuthorizationError("Only managers and admins can decide leave requests")

        request: LeaveRequest | None = await leave_request_repository.get_by_id(db, request_id, organization_id)
        if request is None:
            raise NotFoundError("Leave request not found")
        if actor_role == ActorRole.MANAGER:
            if not (
                await user_repository.is_direct_manager(db, actor.id, request.user_id)
                or await user_repository.manages_team_of(db, actor.id, request.user_id)
            ):
                raise AuthorizationError("You do not manage this user", code="NOT_USERS_MANAGER")

        year: int = ensure_utc(request.start_date).year
        last_year: int = max(year, ensure_utc(request.end_date).year)

        # 신청이 걸친 모든 연도의 락을 오름차순으로 획득: Lock every spanned year, ascending
        async with AsyncExitStack() as held:
            for locked_year in range(year, last_year + 1):
                await held.enter_async_context(
                    leave_quota_locks.hold((organization_id, request.user_id, request.leave_type_id, locked_year))
                )
            request = await leave_request_repository.get_by_id(db, request_id, organization_id, for_update=True)
            if request is None:
                raise NotFoundError("Leave request not found")
            if request.status != LeaveRequestStatus.PENDING:
                current: str = request.status
                await db.rollback()
                raise StateConflictError("ALREADY_DECIDED", f"Leave request is already {current}", status=current)

            if decision == Decision.APPROVE:
                await self._reserve_quota(db, request, year)
                await self._sync_following_years(db, request, year, last_year)
                request.status = LeaveRequestStatus.APPROVED.value
            else:
                request.status = LeaveRequestStatus.REJECTED.value
            request.decided_by = actor.id
            request.decision_note = note
            request.decided_at = utcnow()

            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise StateConflictError(
                    "CONCURRENT_MODIFICATION",
                    "The leave balance was modified concurrently. Please retry.",
                )

        logger.info(
            "Leave request %s %s by %s %s", request_id, request.status, actor_role.value, actor.id
        )
        event_service.emit(
            "leave.decided",
            organization_id,
            entity="leave_request",
            entity_id=request.id,
            actor_id=actor.id,
            before={"status": LeaveRequestStatus.PENDING.value},
            after={"status": request.status, "days": request_days(request)},
        )

        if request.status == LeaveRequestStatus.APPROVED and not request.is_half_day:
            await self._refresh_covered_days(db, request)
        return request

    async def _reserve_quota(self, db: AsyncSession, request: LeaveRequest, year: int) -> LeaveBalance:
        """할당량 확인 후 잔여 행의 사용량을 재계산된 값으로 기록합니다.

        Check the quota and write the recomputed usage into the balance row,
        creating the row when missing. Runs under the quota lock with the
        balance row locked.
        """
        balance: LeaveBalance | None = await leave_balance_repository.get_by_key(
            db, request.organization_id, request.user_id, request.leave_type_id, year, for_update=True
        )
        quota: float | None = await leave_quota_service.quota_for(
            db, request.organization_id, request.user_id, request.leave_type, year, balance=balance
        )
        consumed: float = await leave_quota_service.consumed_days(
            db, request.organization_id, request.user_id, request.leave_type_id, year,
            _APPROVED_STATUSES, excluding_id=request.id,
        )
        requested: float = request_days(request)
        if quota is not None and consumed + requested > quota:
            await db.rollback()
            raise QuotaExceededError(quota=quota, consumed=consumed, requested=requested)

        if balance is None:
            balance = LeaveBalance(
                organization_id=request.organization_id,
                user_id=request.user_id,
                leave_type_id=request.leave_type_id,
                year=year,
                balance=None,
                used=consumed + requested,
            )
            db.add(balance)
        else:
            balance.used = consumed + requested
        return balance

    async def _sync_following_years(self, db: AsyncSession, request: LeaveRequest, year: int, last_year: int) -> None:
        """시작 연도 이후 겹치는 연도의 사용량 재계산.

        Rewrite ``used`` on the existing balance rows of the later years an
        approved request overlaps. Years with no row are left without one;
        their usage is recomputed when a balance is first set.
        """
        for other_year in range(year + 1, last_year + 1):
            balance: LeaveBalance | None = await leave_balance_repository.get_by_key(
                db, request.organization_id, request.user_id, request.leave_type_id, other_year, for_update=True
            )
            if balance is None:
                continue
            consumed: float = await leave_quota_service.consumed_days(
                db, request.organization_id, request.user_id, request.leave_type_id, other_year,
                _APPROVED_STATUSES, excluding_id=request.id,
            )
            balance.used = consumed + request_days(request)

    async def _refresh_covered_days(self, db: AsyncSession, request: LeaveRequest) -> None:
        # 기존 근태일만 재계산: Only days that already have a record are recomputed
        start: date = utc_work_date(request.start_date)
        end: date = utc_work_date(request.end_date)
        for day in dates_between(start, end):
            await attendance_day_service.refresh_day(db, request.organization_id, request.user_id, day)

    # === 연간 잔여 (Yearly balances) ===

    async def list_balances(
        self,
        db: AsyncSession,
        organization_id: UUID,
        year: int | None = None,
        user_id: UUID | None = None,
        leave_type_id: UUID | None = None,
    ) -> list[dict[str, Any]]:
        balances: Sequence[LeaveBalance] = await leave_balance_repository.get_by_filters(
            db, organization_id, year=year, user_id=user_id, leave_type_id=leave_type_id
        )
        types: dict[UUID, LeaveType] = {
            t.id: t for t in await leave_type_repository.get_all(db, organization_id)
        }
        return [self.build_balance_response(b, types.get(b.leave_type_id)) for b in balances]

    async def upsert_balance(
        self,
        db: AsyncSession,
        organization_id: UUID,
        data: LeaveBalanceUpsert,
        actor_id: UUID | None = None,
    ) -> dict[str, Any]:
        """연간 할당량을 설정합니다: 사용량은 승인 내역으로 재계산.

        Set the explicit yearly quota for a user and leave type. ``used`` is
        recomputed from approved requests in the same write.
        """
        user_id: UUID = UUID(data.user_id)
        if await user_repository.get_by_id(db, user_id, organization_id) is None:
            raise NotFoundError("User not found")
        leave_type: LeaveType = await self._get_leave_type(db, organization_id, UUID(data.leave_type_id))

        key: tuple[UUID, UUID, UUID, int] = (organization_id, user_id, leave_type.id, data.year)
        async with leave_quota_locks.hold(key):
            balance: LeaveBalance | None = await leave_balance_repository.get_by_key(
                db, organization_id, user_id, leave_type.id, data.year, for_update=True
            )
            before: float | None = balance.balance if balance is not None else None
            used: float = await leave_quota_service.consumed_days(
                db, organization_id, user_id, leave_type.id, data.year, _APPROVED_STATUSES
            )
            if balance is None:
                balance = LeaveBalance(
                    organization_id=organization_id,
                    user_id=user_id,
                    leave_type_id=leave_type.id,
                    year=data.year,
                    balance=data.balance,
                    used=used,
                )
                db.add(balance)
            else:
                balance.balance = data.balance
                balance.used = used
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise StateConflictError(
                    "CONCURRENT_MODIFICATION",
                    "The leave balance was modified concurrently. Please retry.",
                )

        event_service.emit(
            "leave_balance.updated",
            organization_id,
            entity="leave_balance",
            entity_id=balance.id,
            actor_id=actor_id,
            before={"balance": before},
            after={"balance": balance.balance, "used": balance.used},
        )
        return self.build_balance_response(balance, leave_type)

    # === 응답 (Responses) ===

    def build_response(self, request: LeaveRequest) -> dict[str, Any]:
        """휴가 신청 응답 딕셔너리를 생성합니다 (Build the API response dict)."""
        return {
            "id": str(request.id),
            "user_id": str(request.user_id),
            "leave_type_id": str(request.leave_type_id),
            "leave_type_code": request.leave_type.code if request.leave_type is not None else None,
            "start_date": ensure_utc(request.start_date),
            "end_date": ensure_utc(request.end_date),
            "is_half_day": request.is_half_day,
            "days": request_days(request),
            "reason": request.reason,
            "status": request.status,
            "decided_by": str(request.decided_by) if request.decided_by else None,
            "decision_note": request.decision_note,
            "decided_at": ensure_utc(request.decided_at),
            "created_at": ensure_utc(request.created_at),
        }

    def build_balance_response(self, balance: LeaveBalance, leave_type: LeaveType | None) -> dict[str, Any]:
        quota: float | None = balance.balance
        if quota is None and leave_type is not None:
            quota = leave_type.default_annual_quota
        return {
            "id": str(balance.id),
            "user_id": str(balance.user_id),
            "leave_type_id": str(balance.leave_type_id),
            "year": balance.year,
            "balance": balance.balance,
            "quota": quota,
            "used": balance.used,
            "available": max(0.0, quota - balance.used) if quota is not None else None,
        }


# 싱글턴 인스턴스: Singleton instance
leave_service: LeaveService = LeaveService()

"""근태일 서비스: 모든 근태일 변경의 단일 진입점.

Attendance Day Service: The single path through which every attendance
day mutation flows. ``mutate_day`` serializes writers per
(organization, user, date), loads or creates the row under a row lock,
runs the caller's mutation, recomputes the derived metrics, and commits.
No call site can change clock or break data without the recompute.

Also serves read-only live metrics and the payable-day period summary.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timedelta
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from timekeeper.config import settings
from timekeeper.models.attendance import Attendance
from timekeeper.models.enums import AttendanceStatus, ClockState
from timekeeper.models.leave import LeaveRequest
from timekeeper.repositories.attendance_repository import attendance_repository
from timekeeper.repositories.leave_repository import leave_request_repository
from timekeeper.schemas.attendance import PeriodSummaryItem
from timekeeper.services.policy_service import policy_service
from timekeeper.services.time_metric_service import DaySnapshot, Metrics, Policy, time_metric_service
from timekeeper.utils.exceptions import StateConflictError, ValidationError
from timekeeper.utils.locks import attendance_day_locks
from timekeeper.utils.timeutil import ensure_utc, minutes_between, utc_work_date, utcnow

logger = logging.getLogger(__name__)

DayMutation = Callable[[Attendance, Policy], Awaitable[None]]


def clock_state(attendance: Attendance | None) -> ClockState:
    """근태일의 현재 출퇴근 상태 (Current clock state of a day)."""
    if attendance is None or attendance.clock_in is None:
        return ClockState.NOT_STARTED
    if attendance.clock_out is not None:
        return ClockState.CLOCKED_OUT
    if any(b.is_open for b in attendance.breaks):
        return ClockState.ON_BREAK
    return ClockState.CLOCKED_IN


class AttendanceDayService:
    """근태일 변경/조회 서비스.

    Attendance day mutation and read service.
    """

    async def mutate_day(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        work_date: date,
        mutate: DayMutation | None = None,
        *,
        create: bool = True,
        now: datetime | None = None,
    ) -> Attendance | None:
        """근태일을 잠금 하에 변경하고 지표를 재계산하여 커밋합니다.

        Mutate one attendance day under its per-key lock, recompute metrics,
        and commit. Concurrent writers from other processes surface as
        IntegrityError (duplicate day, second open break) or StaleDataError
        (version mismatch); both are retried with a fresh read up to
        ``MUTATION_MAX_RETRIES`` times.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            organization_id: 조직 UUID
            user_id: 사용자 UUID
            work_date: UTC 근무일 (UTC work date)
            mutate: 변경 함수, None이면 재계산만 (Mutation; None only recomputes)
            create: 근태일이 없을 때 생성 여부 (Create the day when missing)
            now: 열린 구간 기준 시각 (Reference instant for open intervals)

        Returns:
            Attendance | None: 변경된 근태일, create=False이고 없으면 None

        Raises:
            StateConflictError: 상태 충돌 또는 재시도 소진 (CONCURRENT_MODIFICATION)
        """
        key: tuple[UUID, UUID, date] = (organization_id, user_id, work_date)
        max_attempts: int = max(1, settings.MUTATION_MAX_RETRIES)

        async with attendance_day_locks.hold(key):
            for attempt in range(1, max_attempts + 1):
                try:
                    attendance: Attendance | None = await attendance_repository.get_for_update(
                        db, organization_id, user_id, work_date
                    )
                    if attendance is None:
                        if not create:
                            return None
                        attendance = await attendance_repository.add_day(db, organization_id, user_id, work_date)

                    policy: Policy = await policy_service.get_policy(db, organization_id)
                    if mutate is not None:
                        await mutate(attendance, policy)
                        await db.flush()
                    await self._apply_metrics(db, attendance, policy, now=now)
                    await db.commit()
                    return attendance
                except (IntegrityError, StaleDataError) as exc:
                    await db.rollback()
                    logger.warning(
                        "Concurrent modification on attendance day %s (attempt %d/%d): %s",
                        key, attempt, max_attempts, type(exc).__name__,
                    )
                except Exception:
                    # 실패한 변경 폐기: Discard the partial mutation
                    await db.rollback()
                    raise

        raise StateConflictError(
            "CONCURRENT_MODIFICATION",
            "The attendance day was modified concurrently. Please retry.",
        )

    async def refresh_day(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        work_date: date,
    ) -> Attendance | None:
        """기존 근태일의 지표만 재계산합니다 (Recompute an existing day; no-op when absent)."""
        return await self.mutate_day(db, organization_id, user_id, work_date, None, create=False)

    async def _evaluate(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        work_date: date,
        snapshot: DaySnapshot,
        policy: Policy,
        now: datetime | None,
    ) -> Metrics:
        is_holiday: bool = await policy_service.is_holiday(db, organization_id, work_date)
        metrics: Metrics = time_metric_service.compute_metrics(snapshot, policy, is_holiday=is_holiday, now=now)
        # 승인된 종일 휴가는 계산된 상태보다 우선: Approved full-day leave overrides computed status
        leave: LeaveRequest | None = await leave_request_repository.get_approved_full_day_covering(
            db, organization_id, user_id, work_date
        )
        if leave is not None:
            metrics = metrics.model_copy(update={"status": AttendanceStatus.LEAVE})
        return metrics

    async def _apply_metrics(
        self,
        db: AsyncSession,
        attendance: Attendance,
        policy: Policy,
        now: datetime | None = None,
    ) -> Metrics:
        metrics: Metrics = await self._evaluate(
            db,
            attendance.organization_id,
            attendance.user_id,
            attendance.work_date,
            DaySnapshot.from_attendance(attendance),
            policy,
            now,
        )
        attendance.net_minutes = metrics.net_minutes
        attendance.late_minutes = metrics.late_minutes
        attendance.early_leave_minutes = metrics.early_leave_minutes
        attendance.external_break_minutes = metrics.external_break_minutes
        attendance.overtime_minutes = metrics.overtime_minutes
        attendance.status = metrics.status.value if metrics.status is not None else None
        return metrics

    # === 조회 (Reads) ===

    async def get_day(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        work_date: date,
    ) -> Attendance | None:
        return await attendance_repository.get_day(db, organization_id, user_id, work_date)

    async def get_metrics(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        work_date: date,
        now: datetime | None = None,
    ) -> Metrics:
        """근태일 지표를 조회합니다: 열린 근태일은 실시간 재계산.

        Read-only metrics for a day. Always recomputed from the raw instants,
        so an open day reports live "worked so far" values; nothing is persisted.
        A date with no record yields ABSENT, HOLIDAY, or LEAVE.
        """
        policy: Policy = await policy_service.get_policy(db, organization_id)
        attendance: Attendance | None = await attendance_repository.get_day(db, organization_id, user_id, work_date)
        snapshot: DaySnapshot = (
            DaySnapshot.from_attendance(attendance) if attendance is not None else DaySnapshot(work_date=work_date)
        )
        return await self._evaluate(db, organization_id, user_id, work_date, snapshot, policy, now)

    async def summarize_period(
        self,
        db: AsyncSession,
        organization_id: UUID,
        date_from: date,
        date_to: date,
        user_id: UUID | None = None,
    ) -> list[PeriodSummaryItem]:
        """기간별 사용자 근태 집계: 급여 입력값.

        Aggregate attendance per user over an inclusive date range:
        day counts by status, minute totals, and
        ``payable_days = present + 0.5 * half + paid leave days``.
        Leave days come from approved requests clipped to the range;
        a half-day request counts 0.5 when it starts inside the range.
        """
        if date_to < date_from:
            raise ValidationError("date_to must not be before date_from", code="INVALID_RANGE")

        days: Sequence[Attendance] = await attendance_repository.get_range(
            db, organization_id, date_from, date_to, user_id
        )
        leaves: Sequence[LeaveRequest] = await leave_request_repository.get_approved_in_range(
            db, organization_id, date_from, date_to, user_id
        )

        items: dict[UUID, PeriodSummaryItem] = defaultdict(lambda: PeriodSummaryItem(user_id=""))
        for day in days:
            item: PeriodSummaryItem = items[day.user_id]
            item.net_minutes += day.net_minutes or 0
            item.overtime_minutes += day.overtime_minutes or 0
            item.external_break_minutes += day.external_break_minutes or 0
            item.late_minutes += day.late_minutes or 0
            item.early_leave_minutes += day.early_leave_minutes or 0
            if day.status == AttendanceStatus.PRESENT:
                item.present_days += 1
            elif day.status == AttendanceStatus.HALF:
                item.half_days += 1
            elif day.status == AttendanceStatus.ABSENT:
                item.absent_days += 1
            elif day.status == AttendanceStatus.HOLIDAY:
                item.holiday_days += 1

        for leave in leaves:
            clipped: float = _days_in_range(leave, date_from, date_to)
            if clipped <= 0:
                continue
            item = items[leave.user_id]
            item.leave_days += clipped
            if leave.leave_type is not None and leave.leave_type.is_paid:
                item.paid_leave_days += clipped

        result: list[PeriodSummaryItem] = []
        for uid, item in sorted(items.items(), key=lambda pair: str(pair[0])):
            item.user_id = str(uid)
            item.payable_days = item.present_days + 0.5 * item.half_days + item.paid_leave_days
            result.append(item)
        return result

    def build_response(self, attendance: Attendance, now: datetime | None = None) -> dict[str, Any]:
        """근태일 응답 딕셔너리를 생성합니다 (Build the API response dict)."""
        reference: datetime = ensure_utc(now) if now is not None else utcnow()
        horizon: datetime = ensure_utc(attendance.clock_out) or reference
        return {
            "id": str(attendance.id),
            "user_id": str(attendance.user_id),
            "work_date": attendance.work_date,
            "clock_in": ensure_utc(attendance.clock_in),
            "clock_out": ensure_utc(attendance.clock_out),
            "clock_state": clock_state(attendance),
            "breaks": [
                {
                    "id": str(b.id),
                    "type": b.type,
                    "start_at": ensure_utc(b.start_at),
                    "end_at": ensure_utc(b.end_at),
                    "minutes": minutes_between(b.start_at, min(ensure_utc(b.end_at) or horizon, horizon)),
                }
                for b in attendance.breaks
            ],
            "net_minutes": attendance.net_minutes,
            "late_minutes": attendance.late_minutes,
            "early_leave_minutes": attendance.early_leave_minutes,
            "external_break_minutes": attendance.external_break_minutes,
            "overtime_minutes": attendance.overtime_minutes,
            "status": attendance.status,
            "version": attendance.version,
        }


def _days_in_range(leave: LeaveRequest, date_from: date, date_to: date) -> float:
    start: date = utc_work_date(leave.start_date)
    end: date = utc_work_date(leave.end_date)
    if leave.is_half_day:
        return 0.5 if date_from <= start <= date_to else 0.0
    overlap_start: date = max(start, date_from)
    overlap_end: date = min(end, date_to)
    if overlap_end < overlap_start:
        return 0.0
    return float((overlap_end - overlap_start).days + 1)


def dates_between(start: date, end: date) -> list[date]:
    """양 끝 포함 날짜 목록 (Inclusive list of dates)."""
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


# 싱글턴 인스턴스: Singleton instance
attendance_day_service: AttendanceDayService = AttendanceDayService()

"""출퇴근 상태 머신 서비스: 출근, 퇴근, 휴게 시작/종료.

Clock State Machine Service: Validates and applies clock and break events
to one attendance day.

States per day:
    NOT_STARTED -> CLOCKED_IN -> (ON_BREAK <-> CLOCKED_IN)* -> CLOCKED_OUT

Guards:
    - clock-in: 이미 출근 -> ALREADY_CLOCKED_IN
    - clock-out: 출근 전 -> CLOCK_IN_REQUIRED, 이미 퇴근 -> ALREADY_CLOCKED_OUT
      열린 휴게가 있어도 퇴근 가능. 휴게는 열린 채로 남고 계산은 퇴근 시각까지만.
    - break-in: 출근 전 -> CLOCK_IN_REQUIRED, 퇴근 후 -> ALREADY_CLOCKED_OUT,
      같은 유형의 열린 휴게 -> BREAK_ALREADY_OPEN
    - break-out: 같은 유형의 열린 휴게 없음 -> NO_ACTIVE_BREAK (가장 최근 것을 닫음)
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.models.attendance import Attendance, AttendanceBreak
from timekeeper.models.enums import BreakType, ClockAction
from timekeeper.services.attendance_day_service import attendance_day_service, clock_state
from timekeeper.services.event_service import event_service
from timekeeper.services.time_metric_service import Policy
from timekeeper.utils.exceptions import StateConflictError, ValidationError
from timekeeper.utils.timeutil import ensure_utc, utc_work_date, utcnow

logger = logging.getLogger(__name__)


class ClockService:
    """출퇴근 상태 머신 서비스.

    Clock state machine. Every transition runs inside
    ``attendance_day_service.mutate_day``, so the guard check, the write,
    and the metric recompute happen under one per-day lock and commit.
    """

    async def record_clock_event(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user_id: UUID,
        action: ClockAction,
        break_type: BreakType | None = None,
        at: datetime | None = None,
    ) -> Attendance:
        """출퇴근/휴게 이벤트를 기록합니다.

        Record a clock or break event for the user's UTC work date of ``at``.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            organization_id: 조직 UUID (Organization UUID)
            user_id: 사용자 UUID (User UUID)
            action: 동작 (clock-in, clock-out, break-in, break-out)
            break_type: 휴게 유형, 기본 EXTERNAL (Break type; defaults to EXTERNAL)
            at: 이벤트 시각, 기본 현재 (Event instant; defaults to now)

        Returns:
            Attendance: 갱신된 근태일 (Updated attendance day)

        Raises:
            StateConflictError: 현재 상태에서 허용되지 않는 전이
            ValidationError: 외출이 허용되지 않는 조직에서 EXTERNAL 휴게 시작
        """
        action = ClockAction(action)
        instant: datetime = ensure_utc(at) if at is not None else utcnow()
        kind: BreakType = BreakType(break_type) if break_type is not None else BreakType.EXTERNAL
        before: dict[str, str] = {}

        async def _transition(attendance: Attendance, policy: Policy) -> None:
            before["state"] = clock_state(attendance)
            if action == ClockAction.CLOCK_IN:
                self._clock_in(attendance, instant)
            elif action == ClockAction.CLOCK_OUT:
                self._clock_out(attendance, instant)
            elif action == ClockAction.BREAK_IN:
                self._break_in(attendance, kind, instant, policy)
            else:
                self._break_out(attendance, kind, instant)

        attendance: Attendance = await attendance_day_service.mutate_day(
            db,
            organization_id,
            user_id,
            utc_work_date(instant),
            _transition,
            now=instant,
        )

        after_state: str = clock_state(attendance)
        logger.info(
            "Clock event %s for user %s on %s: %s -> %s",
            action.value, user_id, attendance.work_date, before.get("state"), after_state,
        )
        event_service.emit(
            f"attendance.{action.value}",
            organization_id,
            entity="attendance",
            entity_id=attendance.id,
            actor_id=user_id,
            before={"state": before.get("state")},
            after={
                "state": after_state,
                "break_type": kind.value if action in (ClockAction.BREAK_IN, ClockAction.BREAK_OUT) else None,
                "status": attendance.status,
                "net_minutes": attendance.net_minutes,
            },
        )
        return attendance

    def _clock_in(self, attendance: Attendance, instant: datetime) -> None:
        if attendance.clock_in is not None:
            raise StateConflictError("ALREADY_CLOCKED_IN", "Already clocked in for this day")
        attendance.clock_in = instant

    def _clock_out(self, attendance: Attendance, instant: datetime) -> None:
        if attendance.clock_in is None:
            raise StateConflictError("CLOCK_IN_REQUIRED", "Clock in before clocking out")
        if attendance.clock_out is not None:
            raise StateConflictError("ALREADY_CLOCKED_OUT", "Already clocked out for this day")
        if instant < ensure_utc(attendance.clock_in):
            raise ValidationError("Clock-out cannot be before clock-in", code="INVALID_TIME")
        attendance.clock_out = instant

    def _break_in(self, attendance: Attendance, kind: BreakType, instant: datetime, policy: Policy) -> None:
        if attendance.clock_in is None:
            raise StateConflictError("CLOCK_IN_REQUIRED", "Clock in before starting a break")
        if attendance.clock_out is not None:
            raise StateConflictError("ALREADY_CLOCKED_OUT", "Breaks cannot start after clock-out")
        if kind == BreakType.EXTERNAL and not policy.allow_external_breaks:
            raise ValidationError("External breaks are not allowed", code="EXTERNAL_BREAKS_DISABLED")
        if any(b.type == kind and b.is_open for b in attendance.breaks):
            raise StateConflictError("BREAK_ALREADY_OPEN", f"A {kind.value} break is already open", break_type=kind.value)
        attendance.breaks.append(AttendanceBreak(type=kind.value, start_at=instant))

    def _break_out(self, attendance: Attendance, kind: BreakType, instant: datetime) -> None:
        open_breaks: list[AttendanceBreak] = [b for b in attendance.breaks if b.type == kind and b.is_open]
        if not open_breaks:
            raise StateConflictError("NO_ACTIVE_BREAK", f"No open {kind.value} break", break_type=kind.value)
        latest: AttendanceBreak = max(open_breaks, key=lambda b: ensure_utc(b.start_at))
        latest.end_at = max(instant, ensure_utc(latest.start_at))


# 싱글턴 인스턴스: Singleton instance
clock_service: ClockService = ClockService()

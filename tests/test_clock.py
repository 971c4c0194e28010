"""출퇴근 상태 머신 테스트.

Clock state machine tests: guards, break handling, recompute on every
mutation, and concurrent events on the same day.
"""

import asyncio
from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.models.attendance import Attendance
from timekeeper.models.enums import AttendanceStatus, BreakType, ClockAction, ClockState
from timekeeper.schemas.policy import PolicySettingsUpdate
from timekeeper.services.attendance_day_service import attendance_day_service, clock_state
from timekeeper.services.clock_service import clock_service
from timekeeper.services.policy_service import policy_service
from timekeeper.utils.exceptions import StateConflictError, ValidationError
from tests.conftest import at

DAY = "2026-03-02"


async def _clock(db, user, action, hhmm, break_type=None):
    return await clock_service.record_clock_event(
        db, user.organization_id, user.id, action, break_type=break_type, at=at(DAY, hhmm)
    )


async def _count_days(db: AsyncSession, user) -> int:
    return (await db.execute(select(func.count()).select_from(Attendance).where(Attendance.user_id == user.id))).scalar()


class TestClockFlow:
    """정상 흐름: 출근, 점심, 퇴근."""

    async def test_full_day(self, db: AsyncSession, employee_user):
        attendance = await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:05")
        assert clock_state(attendance) == ClockState.CLOCKED_IN
        assert attendance.work_date == date.fromisoformat(DAY)
        assert attendance.status is None

        attendance = await _clock(db, employee_user, ClockAction.BREAK_IN, "12:00", BreakType.LUNCH)
        assert clock_state(attendance) == ClockState.ON_BREAK

        attendance = await _clock(db, employee_user, ClockAction.BREAK_OUT, "13:00", BreakType.LUNCH)
        assert clock_state(attendance) == ClockState.CLOCKED_IN

        attendance = await _clock(db, employee_user, ClockAction.CLOCK_OUT, "18:00")
        assert clock_state(attendance) == ClockState.CLOCKED_OUT
        assert attendance.net_minutes == 535
        assert attendance.late_minutes == 0
        assert attendance.early_leave_minutes == 0
        assert attendance.status == AttendanceStatus.PRESENT
        assert len(attendance.breaks) == 1
        assert await _count_days(db, employee_user) == 1

    async def test_metrics_recomputed_on_each_event(self, db: AsyncSession, employee_user):
        """외출 종료 시점에 순 근무가 이미 반영됨 (net reflects each mutation)."""
        await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:00")
        await _clock(db, employee_user, ClockAction.BREAK_IN, "10:00", BreakType.EXTERNAL)
        attendance = await _clock(db, employee_user, ClockAction.BREAK_OUT, "10:30", BreakType.EXTERNAL)
        assert attendance.external_break_minutes == 30
        assert attendance.net_minutes == 60

    async def test_break_type_defaults_to_external(self, db: AsyncSession, employee_user):
        await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:00")
        attendance = await _clock(db, employee_user, ClockAction.BREAK_IN, "10:00")
        assert attendance.breaks[0].type == BreakType.EXTERNAL


class TestClockGuards:
    """상태 전이 가드."""

    async def test_double_clock_in(self, db: AsyncSession, employee_user):
        await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:00")
        with pytest.raises(StateConflictError) as exc:
            await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:10")
        assert exc.value.code == "ALREADY_CLOCKED_IN"
        assert exc.value.status_code == 409

    async def test_clock_out_requires_clock_in(self, db: AsyncSession, employee_user):
        with pytest.raises(StateConflictError) as exc:
            await _clock(db, employee_user, ClockAction.CLOCK_OUT, "18:00")
        assert exc.value.code == "CLOCK_IN_REQUIRED"
        # 실패한 전이는 근태일을 남기지 않음: A rejected event leaves no row behind
        assert await _count_days(db, employee_user) == 0

    async def test_double_clock_out(self, db: AsyncSession, employee_user):
        await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:00")
        await _clock(db, employee_user, ClockAction.CLOCK_OUT, "18:00")
        with pytest.raises(StateConflictError) as exc:
            await _clock(db, employee_user, ClockAction.CLOCK_OUT, "18:30")
        assert exc.value.code == "ALREADY_CLOCKED_OUT"

    async def test_clock_out_before_clock_in(self, db: AsyncSession, employee_user):
        await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:00")
        with pytest.raises(ValidationError) as exc:
            await _clock(db, employee_user, ClockAction.CLOCK_OUT, "08:00")
        assert exc.value.code == "INVALID_TIME"

    async def test_break_in_requires_clock_in(self, db: AsyncSession, employee_user):
        with pytest.raises(StateConflictError) as exc:
            await _clock(db, employee_user, ClockAction.BREAK_IN, "10:00", BreakType.LUNCH)
        assert exc.value.code == "CLOCK_IN_REQUIRED"

    async def test_break_out_without_open_break(self, db: AsyncSession, employee_user):
        await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:00")
        with pytest.raises(StateConflictError) as exc:
            await _clock(db, employee_user, ClockAction.BREAK_OUT, "10:00", BreakType.LUNCH)
        assert exc.value.code == "NO_ACTIVE_BREAK"

    async def test_one_open_break_per_type(self, db: AsyncSession, employee_user):
        await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:00")
        await _clock(db, employee_user, ClockAction.BREAK_IN, "12:00", BreakType.LUNCH)
        with pytest.raises(StateConflictError) as exc:
            await _clock(db, employee_user, ClockAction.BREAK_IN, "12:05", BreakType.LUNCH)
        assert exc.value.code == "BREAK_ALREADY_OPEN"

        # 다른 유형은 동시에 열 수 있음: A different type may be open at the same time
        attendance = await _clock(db, employee_user, ClockAction.BREAK_IN, "12:10", BreakType.EXTERNAL)
        assert sum(1 for b in attendance.breaks if b.end_at is None) == 2

    async def test_external_breaks_disabled(self, db: AsyncSession, org, employee_user):
        await policy_service.update_settings(db, org.id, PolicySettingsUpdate(allow_external_breaks=False))

        await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:00")
        with pytest.raises(ValidationError) as exc:
            await _clock(db, employee_user, ClockAction.BREAK_IN, "10:00", BreakType.EXTERNAL)
        assert exc.value.code == "EXTERNAL_BREAKS_DISABLED"

        attendance = await _clock(db, employee_user, ClockAction.BREAK_IN, "12:00", BreakType.LUNCH)
        assert clock_state(attendance) == ClockState.ON_BREAK


class TestClockOutWithOpenBreak:
    """열린 휴게가 있는 상태에서의 퇴근."""

    async def test_break_stays_open_and_is_capped(self, db: AsyncSession, employee_user):
        await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:00")
        await _clock(db, employee_user, ClockAction.BREAK_IN, "17:00", BreakType.EXTERNAL)
        attendance = await _clock(db, employee_user, ClockAction.CLOCK_OUT, "18:00")

        assert attendance.breaks[0].end_at is None
        assert attendance.external_break_minutes == 60
        assert attendance.net_minutes == 480
        assert attendance.status == AttendanceStatus.PRESENT

    async def test_break_in_after_clock_out(self, db: AsyncSession, employee_user):
        await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:00")
        await _clock(db, employee_user, ClockAction.CLOCK_OUT, "18:00")
        with pytest.raises(StateConflictError) as exc:
            await _clock(db, employee_user, ClockAction.BREAK_IN, "18:10", BreakType.LUNCH)
        assert exc.value.code == "ALREADY_CLOCKED_OUT"

    async def test_break_out_after_clock_out_closes_break(self, db: AsyncSession, employee_user):
        await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:00")
        await _clock(db, employee_user, ClockAction.BREAK_IN, "17:30", BreakType.EXTERNAL)
        await _clock(db, employee_user, ClockAction.CLOCK_OUT, "18:00")
        attendance = await _clock(db, employee_user, ClockAction.BREAK_OUT, "18:20", BreakType.EXTERNAL)
        assert attendance.breaks[0].end_at is not None
        # 퇴근 이후 구간은 계산에서 제외: Minutes after clock-out never count
        assert attendance.external_break_minutes == 30


class TestConcurrentClockEvents:
    """같은 근태일에 대한 동시 이벤트."""

    async def test_concurrent_break_in_one_wins(self, session_factory, db: AsyncSession, employee_user):
        """외출 시작 두 번이 동시에 오면 하나만 성공, 나머지는 StateConflict."""
        await _clock(db, employee_user, ClockAction.CLOCK_IN, "09:00")

        async def _break_in(hhmm: str):
            async with session_factory() as session:
                return await _clock(session, employee_user, ClockAction.BREAK_IN, hhmm, BreakType.EXTERNAL)

        results = await asyncio.gather(_break_in("10:00"), _break_in("10:00"), return_exceptions=True)
        successes = [r for r in results if isinstance(r, Attendance)]
        failures = [r for r in results if isinstance(r, StateConflictError)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert failures[0].code == "BREAK_ALREADY_OPEN"

        attendance = await attendance_day_service.get_day(
            db, employee_user.organization_id, employee_user.id, date.fromisoformat(DAY)
        )
        await db.refresh(attendance, ["breaks"])
        assert len(attendance.breaks) == 1

    async def test_concurrent_clock_in_creates_one_day(self, session_factory, db: AsyncSession, employee_user):
        async def _clock_in(hhmm: str):
            async with session_factory() as session:
                return await _clock(session, employee_user, ClockAction.CLOCK_IN, hhmm)

        results = await asyncio.gather(_clock_in("09:00"), _clock_in("09:01"), return_exceptions=True)
        assert sum(isinstance(r, Attendance) for r in results) == 1
        assert [r.code for r in results if isinstance(r, StateConflictError)] == ["ALREADY_CLOCKED_IN"]
        assert await _count_days(db, employee_user) == 1

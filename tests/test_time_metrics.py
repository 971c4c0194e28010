"""근태 지표 계산 엔진 테스트.

Time-metric engine tests: pure computation over day snapshots and policies.
"""

from datetime import date, timedelta

import pytest

from timekeeper.models.enums import AttendanceStatus, BreakType
from timekeeper.services.time_metric_service import BreakSnapshot, DaySnapshot, Policy, time_metric_service
from tests.conftest import at

DAY = "2026-03-02"
POLICY = Policy(
    timezone="UTC",
    workday_start_minutes=540,
    workday_end_minutes=1080,
    required_daily_minutes=480,
    half_day_threshold_minutes=240,
    paid_lunch_minutes=60,
    grace_late_minutes=10,
    grace_early_minutes=0,
)


def _day(clock_in=None, clock_out=None, breaks=()) -> DaySnapshot:
    return DaySnapshot(work_date=date.fromisoformat(DAY), clock_in=clock_in, clock_out=clock_out, breaks=tuple(breaks))


class TestClosedDay:
    """퇴근 완료된 근태일."""

    def test_paid_lunch_is_not_deducted(self):
        """09:05-18:00, 점심 60분: 유급 점심 범위 내라 차감 없음, 유예 내 지각 0."""
        day = _day(
            at(DAY, "09:05"),
            at(DAY, "18:00"),
            [BreakSnapshot(type=BreakType.LUNCH, start=at(DAY, "12:00"), end=at(DAY, "13:00"))],
        )
        m = time_metric_service.compute_metrics(day, POLICY, now=at(DAY, "20:00"))
        assert m.gross_minutes == 535
        assert m.lunch_minutes == 60
        assert m.lunch_deducted_minutes == 0
        assert m.late_minutes == 0
        assert m.early_leave_minutes == 0
        assert m.net_minutes == 535
        assert m.overtime_minutes == 55
        assert m.status == AttendanceStatus.PRESENT
        assert m.is_final is True

    def test_unpaid_lunch_makes_half_day(self):
        """유급 점심 0분이면 점심 전체 차감: 순 475분, HALF."""
        policy = POLICY.model_copy(update={"paid_lunch_minutes": 0})
        day = _day(
            at(DAY, "09:05"),
            at(DAY, "18:00"),
            [BreakSnapshot(type=BreakType.LUNCH, start=at(DAY, "12:00"), end=at(DAY, "13:00"))],
        )
        m = time_metric_service.compute_metrics(day, policy)
        assert m.net_minutes == 475
        assert m.overtime_minutes == 0
        assert policy.half_day_threshold_minutes <= m.net_minutes < policy.required_daily_minutes
        assert m.status == AttendanceStatus.HALF

    def test_lunch_beyond_allowance_is_deducted(self):
        """점심 90분: 허용 60분 초과분 30분만 차감."""
        day = _day(
            at(DAY, "09:00"),
            at(DAY, "18:00"),
            [BreakSnapshot(type=BreakType.LUNCH, start=at(DAY, "12:00"), end=at(DAY, "13:30"))],
        )
        m = time_metric_service.compute_metrics(day, POLICY)
        assert m.lunch_deducted_minutes == 30
        assert m.net_minutes == 510

    def test_lunch_outside_window_is_deducted(self):
        """점심 시간대 11:30-13:30 밖의 점심은 유급 허용 대상 아님."""
        policy = POLICY.model_copy(update={"lunch_window_start_minutes": 690, "lunch_window_end_minutes": 810})
        day = _day(
            at(DAY, "09:00"),
            at(DAY, "18:00"),
            [BreakSnapshot(type=BreakType.LUNCH, start=at(DAY, "14:00"), end=at(DAY, "15:00"))],
        )
        m = time_metric_service.compute_metrics(day, policy)
        assert m.lunch_deducted_minutes == 60
        assert m.net_minutes == 480

    def test_external_break_always_deducted(self):
        day = _day(
            at(DAY, "09:00"),
            at(DAY, "18:00"),
            [BreakSnapshot(type=BreakType.EXTERNAL, start=at(DAY, "15:00"), end=at(DAY, "15:45"))],
        )
        m = time_metric_service.compute_metrics(day, POLICY)
        assert m.external_break_minutes == 45
        assert m.net_minutes == 495

    def test_late_and_early_leave(self):
        """09:30 출근(유예 10분 후 20분 지각), 17:00 퇴근(60분 조퇴)."""
        m = time_metric_service.compute_metrics(_day(at(DAY, "09:30"), at(DAY, "17:00")), POLICY)
        assert m.late_minutes == 20
        assert m.early_leave_minutes == 60
        assert m.net_minutes == 450
        assert m.status == AttendanceStatus.HALF

    def test_short_day_is_absent(self):
        m = time_metric_service.compute_metrics(_day(at(DAY, "09:00"), at(DAY, "11:00")), POLICY)
        assert m.net_minutes == 120
        assert m.status == AttendanceStatus.ABSENT

    def test_late_uses_policy_timezone(self):
        """Asia/Seoul 09:00은 UTC 00:00: 지각 없음."""
        policy = POLICY.model_copy(update={"timezone": "Asia/Seoul"})
        m = time_metric_service.compute_metrics(_day(at(DAY, "00:00"), at(DAY, "09:00")), policy)
        assert m.late_minutes == 0
        assert m.early_leave_minutes == 0

    def test_net_never_negative(self):
        day = _day(
            at(DAY, "09:00"),
            at(DAY, "10:00"),
            [BreakSnapshot(type=BreakType.EXTERNAL, start=at(DAY, "08:00"), end=at(DAY, "11:00"))],
        )
        m = time_metric_service.compute_metrics(day, POLICY)
        assert m.net_minutes == 0

    def test_seconds_round_half_up(self):
        day = _day(at(DAY, "09:00"), at(DAY, "17:00") + timedelta(seconds=30))
        m = time_metric_service.compute_metrics(day, POLICY)
        assert m.gross_minutes == 481

    def test_break_before_clock_in_is_clipped(self):
        """출근 전 휴게 구간은 차감하지 않음: 08:30-09:30 외출은 30분만."""
        day = _day(
            at(DAY, "09:00"),
            at(DAY, "18:00"),
            [
                BreakSnapshot(type=BreakType.EXTERNAL, start=at(DAY, "08:30"), end=at(DAY, "09:30")),
                BreakSnapshot(type=BreakType.LUNCH, start=at(DAY, "07:00"), end=at(DAY, "08:00")),
            ],
        )
        m = time_metric_service.compute_metrics(day, POLICY)
        assert m.external_break_minutes == 30
        assert m.lunch_minutes == 0
        assert m.net_minutes == 510
        assert m.status == AttendanceStatus.PRESENT


class TestOpenDay:
    """근무 중(퇴근 전) 근태일: 실시간 값."""

    def test_open_external_break_accrues_until_now(self):
        """09:00 출근, 30분 전 시작한 외출이 진행 중: 순 근무는 경과 시간 - 30분."""
        now = at(DAY, "14:00")
        day = _day(
            at(DAY, "09:00"),
            None,
            [BreakSnapshot(type=BreakType.EXTERNAL, start=now - timedelta(minutes=30))],
        )
        m = time_metric_service.compute_metrics(day, POLICY, now=now)
        assert m.gross_minutes == 300
        assert m.external_break_minutes == 30
        assert m.net_minutes == 270
        assert m.status is None
        assert m.is_final is False

    def test_no_early_leave_while_open(self):
        m = time_metric_service.compute_metrics(_day(at(DAY, "09:00")), POLICY, now=at(DAY, "10:00"))
        assert m.early_leave_minutes == 0

    def test_open_break_capped_at_clock_out(self):
        """퇴근 후에도 열린 휴게는 퇴근 시각까지만 계산."""
        day = _day(
            at(DAY, "09:00"),
            at(DAY, "18:00"),
            [BreakSnapshot(type=BreakType.EXTERNAL, start=at(DAY, "17:00"))],
        )
        m = time_metric_service.compute_metrics(day, POLICY, now=at(DAY, "23:00"))
        assert m.external_break_minutes == 60
        assert m.net_minutes == 480
        assert m.status == AttendanceStatus.PRESENT


class TestNoClockIn:

    def test_absent_without_clock_in(self):
        m = time_metric_service.compute_metrics(_day(), POLICY)
        assert m.net_minutes == 0
        assert m.status == AttendanceStatus.ABSENT

    def test_holiday_without_clock_in(self):
        m = time_metric_service.compute_metrics(_day(), POLICY, is_holiday=True)
        assert m.status == AttendanceStatus.HOLIDAY


@pytest.mark.parametrize("now", [at(DAY, "18:00"), at(DAY, "23:59")])
def test_closed_day_is_deterministic(now):
    """같은 입력은 같은 지표: 퇴근 완료된 날은 now와 무관."""
    day = _day(
        at(DAY, "08:50"),
        at(DAY, "18:10"),
        [
            BreakSnapshot(type=BreakType.LUNCH, start=at(DAY, "12:00"), end=at(DAY, "12:40")),
            BreakSnapshot(type=BreakType.EXTERNAL, start=at(DAY, "15:00"), end=at(DAY, "15:20")),
        ],
    )
    first = time_metric_service.compute_metrics(day, POLICY, now=now)
    second = time_metric_service.compute_metrics(day, POLICY, now=at(DAY, "18:30"))
    assert first == second
    assert first.net_minutes == 540

"""근태 지표 계산 엔진: 순수 함수 서비스.

Time-Metric Engine: Derives payroll-relevant metrics from one attendance
day's clock and break instants plus the tenant policy.

The computation is pure: no I/O, no clock reads unless ``now`` is omitted,
and the same (snapshot, policy, is_holiday, now) always yields the same
Metrics. Callers that need reproducible live values pass ``now`` explicitly.

Rules:
    - 휴게 분: (end ?? horizon) - start, 반올림, 0 이상
      Break minutes are whole minutes rounded half-up, clamped at 0.
      An open break accrues until clock-out, or until ``now`` while the day is open.
      Break time before clock-in or past clock-out is never counted.
    - 점심: 유급 점심 허용 분까지는 차감하지 않음. 점심 시간대가 설정되면 시간대 안의 점심만 허용 대상.
      Lunch up to ``paid_lunch_minutes`` is not deducted; with a lunch window
      set, only in-window lunch is covered.
    - 순 근무 = 총 근무 - (외출 + 초과 점심), 0 이상. 출근 없으면 0.
    - 지각/조퇴는 정책 타임존 기준 자정 이후 분으로 계산.
    - 상태: 출근 중(퇴근 전)이면 None. 출근 없으면 HOLIDAY/ABSENT. 그 외 PRESENT/HALF/ABSENT.
"""

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict

from timekeeper.models.attendance import Attendance
from timekeeper.models.enums import AttendanceStatus, BreakType
from timekeeper.utils.timeutil import ensure_utc, minute_of_day, minutes_between, utcnow


class Policy(BaseModel):
    """조직 근태 정책: 계산 중 불변 값.

    Tenant attendance policy. Immutable for the duration of a computation.
    """

    model_config = ConfigDict(frozen=True)

    timezone: str = "UTC"
    workday_start_minutes: int = 540
    workday_end_minutes: int = 1080
    required_daily_minutes: int = 480
    half_day_threshold_minutes: int = 240
    paid_lunch_minutes: int = 60
    lunch_window_start_minutes: int | None = None
    lunch_window_end_minutes: int | None = None
    allow_external_breaks: bool = True
    grace_late_minutes: int = 0
    grace_early_minutes: int = 0

    @property
    def has_lunch_window(self) -> bool:
        return self.lunch_window_start_minutes is not None and self.lunch_window_end_minutes is not None


class BreakSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: BreakType
    start: datetime
    end: datetime | None = None


class DaySnapshot(BaseModel):
    """근태일 스냅샷 (Immutable view of one attendance day's raw instants)."""

    model_config = ConfigDict(frozen=True)

    work_date: date
    clock_in: datetime | None = None
    clock_out: datetime | None = None
    breaks: tuple[BreakSnapshot, ...] = ()

    @classmethod
    def from_attendance(cls, attendance: Attendance) -> "DaySnapshot":
        return cls(
            work_date=attendance.work_date,
            clock_in=ensure_utc(attendance.clock_in),
            clock_out=ensure_utc(attendance.clock_out),
            breaks=tuple(
                BreakSnapshot(type=BreakType(b.type), start=ensure_utc(b.start_at), end=ensure_utc(b.end_at))
                for b in attendance.breaks
            ),
        )


class Metrics(BaseModel):
    """계산된 근태 지표 (Derived metrics for one attendance day)."""

    model_config = ConfigDict(frozen=True)

    gross_minutes: int = 0
    lunch_minutes: int = 0
    lunch_deducted_minutes: int = 0
    external_break_minutes: int = 0
    break_deducted_minutes: int = 0
    net_minutes: int = 0
    late_minutes: int = 0
    early_leave_minutes: int = 0
    overtime_minutes: int = 0
    status: AttendanceStatus | None = None
    # 확정 여부: False while the day is open and metrics are live
    is_final: bool = True


class TimeMetricService:
    """근태 지표 계산 서비스.

    Stateless metric computation. See the module docstring for the rules.
    """

    def compute_metrics(
        self,
        day: DaySnapshot,
        policy: Policy,
        *,
        is_holiday: bool = False,
        now: datetime | None = None,
    ) -> Metrics:
        """근태일 스냅샷과 정책으로 지표를 계산합니다.

        Compute metrics for a day snapshot under ``policy``.

        Args:
            day: 근태일 스냅샷 (Attendance day snapshot)
            policy: 조직 정책 (Tenant policy)
            is_holiday: 조직 휴일 여부 (Whether the date is a full-day tenant holiday)
            now: 기준 시각, 생략 시 현재 UTC (Reference instant for open intervals)

        Returns:
            Metrics: 계산된 지표 (Derived metrics)
        """
        reference: datetime = ensure_utc(now) if now is not None else utcnow()
        clock_in: datetime | None = ensure_utc(day.clock_in)
        clock_out: datetime | None = ensure_utc(day.clock_out)
        # 열린 구간의 끝: Open intervals end at clock-out, else at "now"
        horizon: datetime = clock_out if clock_out is not None else reference

        external_minutes: int = 0
        lunch_minutes: int = 0
        lunch_covered_candidate: int = 0
        for brk in day.breaks:
            start: datetime = ensure_utc(brk.start)
            # 출근 이전 구간은 제외: Nothing before clock-in counts
            if clock_in is not None:
                start = max(start, clock_in)
            end: datetime = ensure_utc(brk.end) if brk.end is not None else horizon
            # 퇴근 이후 구간은 제외: Nothing after clock-out counts
            end = min(end, horizon)
            duration: int = minutes_between(start, end)
            if brk.type == BreakType.EXTERNAL:
                external_minutes += duration
            else:
                lunch_minutes += duration
                lunch_covered_candidate += self._lunch_in_window(start, end, duration, policy)

        lunch_deducted: int = max(0, lunch_minutes - min(lunch_covered_candidate, policy.paid_lunch_minutes))
        break_deducted: int = external_minutes + lunch_deducted

        gross: int = 0
        net: int = 0
        late: int = 0
        early: int = 0
        if clock_in is not None:
            gross = minutes_between(clock_in, horizon)
            net = max(0, gross - break_deducted)
            late = max(0, minute_of_day(clock_in, policy.timezone) - policy.workday_start_minutes - policy.grace_late_minutes)
            if clock_out is not None and not is_holiday:
                early = max(0, policy.workday_end_minutes - minute_of_day(clock_out, policy.timezone) - policy.grace_early_minutes)
        overtime: int = max(0, net - policy.required_daily_minutes)

        status: AttendanceStatus | None
        is_final: bool = True
        if clock_in is None:
            status = AttendanceStatus.HOLIDAY if is_holiday else AttendanceStatus.ABSENT
        elif clock_out is None:
            # 근무 중: live values, status not finalized until clock-out
            status = None
            is_final = False
        elif net >= policy.required_daily_minutes:
            status = AttendanceStatus.PRESENT
        elif net >= policy.half_day_threshold_minutes:
            status = AttendanceStatus.HALF
        else:
            status = AttendanceStatus.ABSENT

        return Metrics(
            gross_minutes=gross,
            lunch_minutes=lunch_minutes,
            lunch_deducted_minutes=lunch_deducted,
            external_break_minutes=external_minutes,
            break_deducted_minutes=break_deducted,
            net_minutes=net,
            late_minutes=late,
            early_leave_minutes=early,
            overtime_minutes=overtime,
            status=status,
            is_final=is_final,
        )

    def _lunch_in_window(self, start: datetime, end: datetime, duration: int, policy: Policy) -> int:
        """점심 중 시간대 안에 있는 분 (Lunch minutes eligible for the paid allowance)."""
        if not policy.has_lunch_window:
            return duration
        tz: ZoneInfo = ZoneInfo(policy.timezone)
        local_day: date = start.astimezone(tz).date()
        midnight: datetime = datetime.combine(local_day, time.min, tzinfo=tz)
        window_start: datetime = midnight + timedelta(minutes=policy.lunch_window_start_minutes)
        window_end: datetime = midnight + timedelta(minutes=policy.lunch_window_end_minutes)
        overlap_start: datetime = max(start, window_start)
        overlap_end: datetime = min(end, window_end)
        if overlap_end <= overlap_start:
            return 0
        return minutes_between(overlap_start, overlap_end)


# 싱글턴 인스턴스: Singleton instance
time_metric_service: TimeMetricService = TimeMetricService()

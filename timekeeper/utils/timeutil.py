"""시간 계산 유틸리티 모듈.

UTC normalization and minute arithmetic helpers shared by the metric
engine and the state machines. SQLite drops tzinfo on round-trip, so every
instant read back from the database passes through ``ensure_utc``.
"""

import math
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """현재 UTC 시각 (Current instant, timezone-aware UTC)."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """naive datetime은 UTC로 간주하고, aware datetime은 UTC로 변환합니다.

    Treat naive datetimes as UTC; convert aware datetimes to UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_work_date(value: datetime) -> date:
    """순간 값이 속한 UTC 달력 날짜 (UTC calendar date of an instant)."""
    return ensure_utc(value).date()


def start_of_utc_day(day: date) -> datetime:
    """UTC 자정 (Midnight UTC at the start of the given date)."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def minutes_between(start: datetime, end: datetime) -> int:
    """두 순간 사이의 분: 반올림, 0 이상.

    Whole minutes between two instants, rounded half-up and clamped at 0.
    """
    seconds: float = (ensure_utc(end) - ensure_utc(start)).total_seconds()
    return max(0, math.floor(seconds / 60 + 0.5))


def minute_of_day(value: datetime, tz_name: str) -> int:
    """정책 타임존 기준 자정 이후 분 (Minutes since local midnight in ``tz_name``)."""
    local: datetime = ensure_utc(value).astimezone(ZoneInfo(tz_name))
    return local.hour * 60 + local.minute

"""근태 정책 서비스: 조직 정책 조회/캐시, 휴일, 관리자 설정.

Policy Store Service: Per-tenant attendance policy as an immutable value,
cached per organization with a TTL and invalidated explicitly whenever the
admin settings change. Also owns tenant holidays.
"""

import logging
import time
from datetime import date
from typing import Any, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.config import settings
from timekeeper.models.organization import Holiday, Organization
from timekeeper.repositories.organization_repository import holiday_repository, organization_repository
from timekeeper.schemas.policy import HolidayCreate, PolicySettingsUpdate
from timekeeper.services.event_service import event_service
from timekeeper.services.time_metric_service import Policy
from timekeeper.utils.exceptions import NotFoundError, StateConflictError, ValidationError

logger = logging.getLogger(__name__)

# 정책 필드: Organization columns that make up the policy
POLICY_FIELDS: tuple[str, ...] = (
    "timezone",
    "workday_start_minutes",
    "workday_end_minutes",
    "required_daily_minutes",
    "half_day_threshold_minutes",
    "paid_lunch_minutes",
    "lunch_window_start_minutes",
    "lunch_window_end_minutes",
    "allow_external_breaks",
    "grace_late_minutes",
    "grace_early_minutes",
)

_MINUTE_FIELDS: tuple[str, ...] = (
    "workday_start_minutes",
    "workday_end_minutes",
    "required_daily_minutes",
    "half_day_threshold_minutes",
    "paid_lunch_minutes",
    "lunch_window_start_minutes",
    "lunch_window_end_minutes",
    "grace_late_minutes",
    "grace_early_minutes",
)
MAX_PAID_LUNCH_MINUTES: int = 240
MAX_GRACE_MINUTES: int = 120


def policy_from_organization(org: Organization) -> Policy:
    """조직 행에서 유효 정책을 만듭니다: 미설정 필드는 기본값.

    Build the effective policy from an organization row, filling unset
    fields from ``settings.DEFAULT_*``.
    """
    required: int = org.required_daily_minutes if org.required_daily_minutes is not None else settings.DEFAULT_REQUIRED_DAILY_MINUTES

    def _or(value: int | None, default: int) -> int:
        return value if value is not None else default

    return Policy(
        timezone=org.timezone or settings.DEFAULT_TIMEZONE,
        workday_start_minutes=_or(org.workday_start_minutes, settings.DEFAULT_WORKDAY_START_MINUTES),
        workday_end_minutes=_or(org.workday_end_minutes, settings.DEFAULT_WORKDAY_END_MINUTES),
        required_daily_minutes=required,
        half_day_threshold_minutes=_or(org.half_day_threshold_minutes, required // 2),
        paid_lunch_minutes=_or(org.paid_lunch_minutes, settings.DEFAULT_PAID_LUNCH_MINUTES),
        lunch_window_start_minutes=org.lunch_window_start_minutes,
        lunch_window_end_minutes=org.lunch_window_end_minutes,
        allow_external_breaks=org.allow_external_breaks if org.allow_external_breaks is not None else True,
        grace_late_minutes=_or(org.grace_late_minutes, 0),
        grace_early_minutes=_or(org.grace_early_minutes, 0),
    )


class PolicyService:
    """근태 정책 서비스.

    Policy store with a per-organization TTL cache. Cached values are frozen
    Policy instances, so sharing them between requests is safe.
    """

    def __init__(self, ttl_seconds: int | None = None) -> None:
        self._ttl: float = float(ttl_seconds if ttl_seconds is not None else settings.POLICY_CACHE_TTL_SECONDS)
        self._cache: dict[UUID, tuple[float, Policy]] = {}

    # === 정책 조회 (Policy lookup) ===

    async def get_policy(self, db: AsyncSession, organization_id: UUID) -> Policy:
        """조직 정책을 조회합니다 (캐시 우선).

        Return the organization's policy, served from cache while fresh.

        Raises:
            NotFoundError: 조직이 없을 때 (Organization not found)
        """
        cached: tuple[float, Policy] | None = self._cache.get(organization_id)
        if cached is not None and cached[0] > time.monotonic():
            return cached[1]

        org: Organization | None = await organization_repository.get_by_id(db, organization_id)
        if org is None:
            raise NotFoundError("Organization not found")
        policy: Policy = policy_from_organization(org)
        self._cache[organization_id] = (time.monotonic() + self._ttl, policy)
        return policy

    def invalidate(self, organization_id: UUID | None = None) -> None:
        """캐시 무효화: None이면 전체 (Drop one organization's cached policy, or all)."""
        if organization_id is None:
            self._cache.clear()
        else:
            self._cache.pop(organization_id, None)

    async def is_holiday(self, db: AsyncSession, organization_id: UUID, day: date) -> bool:
        """종일 휴일 여부 (Whether ``day`` is a full-day holiday for the tenant)."""
        return await holiday_repository.is_full_day_holiday(db, organization_id, day)

    # === 관리자 설정 (Admin settings) ===

    async def get_settings(self, db: AsyncSession, organization_id: UUID) -> dict[str, Any]:
        policy: Policy = await self.get_policy(db, organization_id)
        return {"organization_id": str(organization_id), **policy.model_dump()}

    async def update_settings(
        self,
        db: AsyncSession,
        organization_id: UUID,
        data: PolicySettingsUpdate,
        actor_id: UUID | None = None,
    ) -> dict[str, Any]:
        """근태 정책을 수정하고 캐시를 무효화합니다.

        Validate and apply a partial settings update, commit, and invalidate
        the cached policy.

        Raises:
            NotFoundError: 조직이 없을 때
            ValidationError: 범위를 벗어난 값 (Out-of-range values)
        """
        org: Organization | None = await organization_repository.get_by_id(db, organization_id)
        if org is None:
            raise NotFoundError("Organization not found")

        changes: dict[str, Any] = data.model_dump(exclude_unset=True)
        before: dict[str, Any] = {field: getattr(org, field) for field in changes}
        merged: dict[str, Any] = {field: getattr(org, field) for field in POLICY_FIELDS}
        merged.update(changes)
        self._validate(merged)

        for field, value in changes.items():
            if field == "allow_external_breaks" and value is None:
                value = True
            setattr(org, field, value)
        await db.commit()
        self.invalidate(organization_id)

        logger.info("Policy settings updated for org %s: %s", organization_id, sorted(changes))
        event_service.emit(
            "policy.updated",
            organization_id,
            entity="organization",
            entity_id=organization_id,
            actor_id=actor_id,
            before=before,
            after=changes,
        )
        return await self.get_settings(db, organization_id)

    def _validate(self, values: dict[str, Any]) -> None:
        for field in _MINUTE_FIELDS:
            value: int | None = values.get(field)
            if value is not None and not 0 <= value <= 1440:
                raise ValidationError(f"{field} must be between 0 and 1440", field=field)

        paid_lunch: int | None = values.get("paid_lunch_minutes")
        if paid_lunch is not None and paid_lunch > MAX_PAID_LUNCH_MINUTES:
            raise ValidationError(f"paid_lunch_minutes must be at most {MAX_PAID_LUNCH_MINUTES}", field="paid_lunch_minutes")

        for field in ("grace_late_minutes", "grace_early_minutes"):
            grace: int | None = values.get(field)
            if grace is not None and grace > MAX_GRACE_MINUTES:
                raise ValidationError(f"{field} must be at most {MAX_GRACE_MINUTES}", field=field)

        start: int | None = values.get("workday_start_minutes")
        end: int | None = values.get("workday_end_minutes")
        start = start if start is not None else settings.DEFAULT_WORKDAY_START_MINUTES
        end = end if end is not None else settings.DEFAULT_WORKDAY_END_MINUTES
        if start >= end:
            raise ValidationError("workday_start_minutes must be before workday_end_minutes", field="workday_start_minutes")

        window_start: int | None = values.get("lunch_window_start_minutes")
        window_end: int | None = values.get("lunch_window_end_minutes")
        if (window_start is None) != (window_end is None):
            raise ValidationError("Lunch window needs both start and end", field="lunch_window_start_minutes")
        if window_start is not None and window_end is not None and window_start >= window_end:
            raise ValidationError("lunch_window_start_minutes must be before lunch_window_end_minutes", field="lunch_window_start_minutes")

        tz_name: str | None = values.get("timezone")
        if tz_name is not None:
            try:
                ZoneInfo(tz_name)
            except (ZoneInfoNotFoundError, ValueError):
                raise ValidationError(f"Unknown timezone: {tz_name}", field="timezone")

    # === 휴일 (Holidays) ===

    async def list_holidays(
        self,
        db: AsyncSession,
        organization_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> Sequence[Holiday]:
        return await holiday_repository.get_in_range(db, organization_id, date_from, date_to)

    async def create_holiday(
        self,
        db: AsyncSession,
        organization_id: UUID,
        data: HolidayCreate,
        actor_id: UUID | None = None,
    ) -> Holiday:
        """휴일을 등록합니다: 같은 날짜가 있으면 409.

        Create a holiday. A second holiday on the same date is a conflict.
        """
        try:
            holiday: Holiday = await holiday_repository.create(
                db,
                {
                    "organization_id": organization_id,
                    "holiday_date": data.holiday_date,
                    "label": data.label,
                    "is_full_day": data.is_full_day,
                },
            )
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise StateConflictError("HOLIDAY_EXISTS", f"A holiday already exists on {data.holiday_date.isoformat()}")

        event_service.emit(
            "holiday.created",
            organization_id,
            entity="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            after={"holiday_date": holiday.holiday_date.isoformat(), "is_full_day": holiday.is_full_day},
        )
        return holiday

    async def delete_holiday(
        self,
        db: AsyncSession,
        organization_id: UUID,
        holiday_id: UUID,
        actor_id: UUID | None = None,
    ) -> None:
        deleted: bool = await holiday_repository.delete(db, holiday_id, organization_id)
        if not deleted:
            raise NotFoundError("Holiday not found")
        await db.commit()
        event_service.emit("holiday.deleted", organization_id, entity="holiday", entity_id=holiday_id, actor_id=actor_id)

    def build_holiday_response(self, holiday: Holiday) -> dict[str, Any]:
        return {
            "id": str(holiday.id),
            "holiday_date": holiday.holiday_date,
            "label": holiday.label,
            "is_full_day": holiday.is_full_day,
            "created_at": holiday.created_at,
        }


# 싱글턴 인스턴스: Singleton instance
policy_service: PolicyService = PolicyService()

"""휴가 신청 및 연간 할당량 테스트.

Leave tests: submission precheck, quota enforcement on approval,
cancellation, balance administration, and attendance status on approval.
"""

import asyncio
import uuid
from datetime import date

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.models.attendance import Attendance
from timekeeper.models.enums import ActorRole, AttendanceStatus, ClockAction, Decision, LeaveRequestStatus
from timekeeper.models.leave import LeaveRequest, LeaveType
from timekeeper.repositories.leave_repository import leave_balance_repository, leave_request_repository
from timekeeper.schemas.leave import LeaveBalanceUpsert, LeaveRequestCreate
from timekeeper.services.clock_service import clock_service
from timekeeper.services.leave_quota_service import leave_days
from timekeeper.services.leave_service import leave_service
from timekeeper.utils.exceptions import AuthorizationError, QuotaExceededError, StateConflictError, ValidationError
from tests.conftest import at

YEAR = 2026


async def _seed_request(seed_db: AsyncSession, user, leave_type, start: str, end: str, status: str, half: bool = False) -> LeaveRequest:
    """할당량 사전 점검 없이 신청을 직접 생성 (Insert a request bypassing the submission check)."""
    request = LeaveRequest(
        organization_id=user.organization_id,
        user_id=user.id,
        leave_type_id=leave_type.id,
        start_date=at(start, "00:00"),
        end_date=at(end, "00:00"),
        is_half_day=half,
        status=status,
    )
    seed_db.add(request)
    await seed_db.commit()
    return request


async def _reload(db: AsyncSession, request_id) -> LeaveRequest:
    result = await db.execute(
        select(LeaveRequest).where(LeaveRequest.id == request_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


@pytest_asyncio.fixture
async def eight_days_taken(seed_db: AsyncSession, employee_user, annual_leave):
    """1월 5일~12일 승인된 연차 8일 (Eight approved annual-leave days in January)."""
    return await _seed_request(seed_db, employee_user, annual_leave, "2026-01-05", "2026-01-12", LeaveRequestStatus.APPROVED)


class TestLeaveDays:

    def test_inclusive_utc_dates(self):
        assert leave_days(at("2026-03-02", "09:00"), at("2026-03-04", "18:00"), False) == 3.0

    def test_half_day_ignores_span(self):
        assert leave_days(at("2026-03-02", "09:00"), at("2026-03-05", "13:00"), True) == 0.5

    def test_same_day_counts_one(self):
        assert leave_days(at("2026-03-02", "09:00"), at("2026-03-02", "10:00"), False) == 1.0


class TestLeaveSubmission:
    """휴가 신청."""

    async def test_create_pending(self, db: AsyncSession, employee_user, annual_leave):
        request = await leave_service.create_leave_request(
            db,
            employee_user.organization_id,
            employee_user.id,
            LeaveRequestCreate(
                leave_type_id=str(annual_leave.id),
                start_date=at("2026-03-02", "00:00"),
                end_date=at("2026-03-03", "00:00"),
            ),
        )
        assert request.status == LeaveRequestStatus.PENDING
        assert leave_service.build_response(request)["days"] == 2.0

    async def test_end_before_start(self, db: AsyncSession, employee_user, annual_leave):
        data = LeaveRequestCreate(
            leave_type_id=str(annual_leave.id),
            start_date=at("2026-03-03", "00:00"),
            end_date=at("2026-03-02", "00:00"),
        )
        with pytest.raises(ValidationError) as exc:
            await leave_service.create_leave_request(db, employee_user.organization_id, employee_user.id, data)
        assert exc.value.code == "INVALID_RANGE"

    async def test_inactive_type(self, db: AsyncSession, seed_db: AsyncSession, employee_user):
        retired = LeaveType(organization_id=employee_user.organization_id, code="OLD", name="Retired", is_active=False)
        seed_db.add(retired)
        await seed_db.commit()
        data = LeaveRequestCreate(
            leave_type_id=str(retired.id),
            start_date=at("2026-03-02", "00:00"),
            end_date=at("2026-03-02", "00:00"),
        )
        with pytest.raises(ValidationError) as exc:
            await leave_service.create_leave_request(db, employee_user.organization_id, employee_user.id, data)
        assert exc.value.code == "LEAVE_TYPE_INACTIVE"

    async def test_precheck_counts_pending(self, db: AsyncSession, seed_db: AsyncSession, employee_user, annual_leave, eight_days_taken):
        """승인 8일 + 대기 2일이면 1일 신청도 거절."""
        await _seed_request(seed_db, employee_user, annual_leave, "2026-02-02", "2026-02-03", LeaveRequestStatus.PENDING)
        data = LeaveRequestCreate(
            leave_type_id=str(annual_leave.id),
            start_date=at("2026-03-02", "00:00"),
            end_date=at("2026-03-02", "00:00"),
        )
        with pytest.raises(QuotaExceededError) as exc:
            await leave_service.create_leave_request(db, employee_user.organization_id, employee_user.id, data)
        assert exc.value.code == "QUOTA_EXCEEDED"
        assert exc.value.status_code == 409
        assert exc.value.extra["available"] == 0.0


class TestLeaveApproval:
    """휴가 승인 시 할당량 적용."""

    async def test_half_day_consumes_half(self, db: AsyncSession, employee_user, manager_user, annual_leave, eight_days_taken):
        """할당량 10일, 승인 8일: 반차 승인 후 사용 8.5일."""
        org_id = employee_user.organization_id
        request = await leave_service.create_leave_request(
            db,
            org_id,
            employee_user.id,
            LeaveRequestCreate(
                leave_type_id=str(annual_leave.id),
                start_date=at("2026-03-02", "09:00"),
                end_date=at("2026-03-02", "13:00"),
                is_half_day=True,
            ),
        )
        approved = await leave_service.decide_leave_request(
            db, org_id, request.id, manager_user, ActorRole.MANAGER, Decision.APPROVE
        )
        assert approved.status == LeaveRequestStatus.APPROVED
        assert approved.decided_by == manager_user.id

        balance = await leave_balance_repository.get_by_key(db, org_id, employee_user.id, annual_leave.id, YEAR)
        assert balance.used == 8.5
        response = leave_service.build_balance_response(balance, annual_leave)
        assert response["quota"] == 10
        assert response["available"] == 1.5

    async def test_approval_over_quota(self, db: AsyncSession, seed_db: AsyncSession, employee_user, admin_user, annual_leave, eight_days_taken):
        org_id = employee_user.organization_id
        first = await _seed_request(seed_db, employee_user, annual_leave, "2026-03-02", "2026-03-03", LeaveRequestStatus.PENDING)
        second = await _seed_request(seed_db, employee_user, annual_leave, "2026-03-09", "2026-03-10", LeaveRequestStatus.PENDING)

        await leave_service.decide_leave_request(db, org_id, first.id, admin_user, ActorRole.ADMIN, Decision.APPROVE)
        with pytest.raises(QuotaExceededError) as exc:
            await leave_service.decide_leave_request(db, org_id, second.id, admin_user, ActorRole.ADMIN, Decision.APPROVE)
        assert exc.value.extra["quota"] == 10
        assert exc.value.extra["consumed"] == 10.0
        assert exc.value.extra["requested"] == 2.0

        assert (await _reload(db, second.id)).status == LeaveRequestStatus.PENDING
        balance = await leave_balance_repository.get_by_key(db, org_id, employee_user.id, annual_leave.id, YEAR)
        assert balance.used == 10.0

    async def test_reject_leaves_balance_alone(self, db: AsyncSession, seed_db: AsyncSession, employee_user, admin_user, annual_leave):
        org_id = employee_user.organization_id
        request = await _seed_request(seed_db, employee_user, annual_leave, "2026-03-02", "2026-03-03", LeaveRequestStatus.PENDING)
        rejected = await leave_service.decide_leave_request(
            db, org_id, request.id, admin_user, ActorRole.ADMIN, Decision.REJECT, note="peak season"
        )
        assert rejected.status == LeaveRequestStatus.REJECTED
        assert rejected.decision_note == "peak season"
        assert await leave_balance_repository.get_by_key(db, org_id, employee_user.id, annual_leave.id, YEAR) is None

        with pytest.raises(StateConflictError) as exc:
            await leave_service.decide_leave_request(db, org_id, request.id, admin_user, ActorRole.ADMIN, Decision.APPROVE)
        assert exc.value.code == "ALREADY_DECIDED"

    async def test_unlimited_type(self, db: AsyncSession, seed_db: AsyncSession, employee_user, admin_user):
        unpaid = LeaveType(organization_id=employee_user.organization_id, code="UNPAID", name="Unpaid", is_paid=False)
        seed_db.add(unpaid)
        await seed_db.commit()
        request = await _seed_request(seed_db, employee_user, unpaid, "2026-03-02", "2026-03-31", LeaveRequestStatus.PENDING)
        approved = await leave_service.decide_leave_request(
            db, employee_user.organization_id, request.id, admin_user, ActorRole.ADMIN, Decision.APPROVE
        )
        assert approved.status == LeaveRequestStatus.APPROVED

    async def test_unrelated_manager(self, db: AsyncSession, seed_db: AsyncSession, employee_user, other_manager, annual_leave):
        request = await _seed_request(seed_db, employee_user, annual_leave, "2026-03-02", "2026-03-02", LeaveRequestStatus.PENDING)
        with pytest.raises(AuthorizationError) as exc:
            await leave_service.decide_leave_request(
                db, employee_user.organization_id, request.id, other_manager, ActorRole.MANAGER, Decision.APPROVE
            )
        assert exc.value.code == "NOT_USERS_MANAGER"

    async def test_full_day_approval_marks_attendance(self, db: AsyncSession, seed_db: AsyncSession, employee_user, admin_user, annual_leave):
        """기존 근태일은 종일 휴가 승인 후 LEAVE로 재계산."""
        org_id = employee_user.organization_id
        await clock_service.record_clock_event(db, org_id, employee_user.id, ClockAction.CLOCK_IN, at=at("2026-03-02", "09:00"))
        day = await clock_service.record_clock_event(db, org_id, employee_user.id, ClockAction.CLOCK_OUT, at=at("2026-03-02", "10:00"))
        assert day.status == AttendanceStatus.ABSENT

        request = await _seed_request(seed_db, employee_user, annual_leave, "2026-03-02", "2026-03-02", LeaveRequestStatus.PENDING)
        await leave_service.decide_leave_request(db, org_id, request.id, admin_user, ActorRole.ADMIN, Decision.APPROVE)

        result = await db.execute(
            select(Attendance)
            .where(Attendance.user_id == employee_user.id, Attendance.work_date == date(2026, 3, 2))
            .execution_options(populate_existing=True)
        )
        assert result.scalar_one().status == AttendanceStatus.LEAVE


class TestLeaveCancellation:

    async def test_owner_cancels_pending(self, db: AsyncSession, seed_db: AsyncSession, employee_user, annual_leave):
        request = await _seed_request(seed_db, employee_user, annual_leave, "2026-03-02", "2026-03-02", LeaveRequestStatus.PENDING)
        cancelled = await leave_service.cancel_leave_request(db, employee_user.organization_id, request.id, employee_user.id)
        assert cancelled.status == LeaveRequestStatus.CANCELLED

        with pytest.raises(StateConflictError) as exc:
            await leave_service.cancel_leave_request(db, employee_user.organization_id, request.id, employee_user.id)
        assert exc.value.code == "ALREADY_DECIDED"

    async def test_only_owner_cancels(self, db: AsyncSession, seed_db: AsyncSession, employee_user, manager_user, annual_leave):
        request = await _seed_request(seed_db, employee_user, annual_leave, "2026-03-02", "2026-03-02", LeaveRequestStatus.PENDING)
        with pytest.raises(AuthorizationError):
            await leave_service.cancel_leave_request(db, employee_user.organization_id, request.id, manager_user.id)


class TestLeaveBalances:
    """연간 할당량 관리."""

    async def test_upsert_recomputes_used(self, db: AsyncSession, employee_user, admin_user, annual_leave, eight_days_taken):
        org_id = employee_user.organization_id
        result = await leave_service.upsert_balance(
            db,
            org_id,
            LeaveBalanceUpsert(user_id=str(employee_user.id), leave_type_id=str(annual_leave.id), year=YEAR, balance=15),
            actor_id=admin_user.id,
        )
        assert result["balance"] == 15
        assert result["quota"] == 15
        assert result["used"] == 8.0
        assert result["available"] == 7.0

        cleared = await leave_service.upsert_balance(
            db,
            org_id,
            LeaveBalanceUpsert(user_id=str(employee_user.id), leave_type_id=str(annual_leave.id), year=YEAR, balance=None),
        )
        assert cleared["balance"] is None
        assert cleared["quota"] == 10

        listed = await leave_service.list_balances(db, org_id, year=YEAR, user_id=employee_user.id)
        assert len(listed) == 1
        assert listed[0]["used"] == 8.0

    async def test_explicit_balance_allows_more(self, db: AsyncSession, seed_db: AsyncSession, employee_user, admin_user, annual_leave, eight_days_taken):
        org_id = employee_user.organization_id
        await leave_service.upsert_balance(
            db, org_id, LeaveBalanceUpsert(user_id=str(employee_user.id), leave_type_id=str(annual_leave.id), year=YEAR, balance=12)
        )
        request = await _seed_request(seed_db, employee_user, annual_leave, "2026-03-02", "2026-03-05", LeaveRequestStatus.PENDING)
        approved = await leave_service.decide_leave_request(db, org_id, request.id, admin_user, ActorRole.ADMIN, Decision.APPROVE)
        assert approved.status == LeaveRequestStatus.APPROVED
        balance = await leave_balance_repository.get_by_key(db, org_id, employee_user.id, annual_leave.id, YEAR)
        assert balance.used == 12.0


class TestConcurrentApproval:

    async def test_only_one_fits(self, session_factory, seed_db: AsyncSession, employee_user, admin_user, annual_leave, eight_days_taken):
        """남은 2일에 2일짜리 두 건 동시 승인: 하나만 성공."""
        first = await _seed_request(seed_db, employee_user, annual_leave, "2026-03-02", "2026-03-03", LeaveRequestStatus.PENDING)
        second = await _seed_request(seed_db, employee_user, annual_leave, "2026-03-09", "2026-03-10", LeaveRequestStatus.PENDING)

        async def _approve(request_id):
            async with session_factory() as session:
                return await leave_service.decide_leave_request(
                    session, employee_user.organization_id, request_id, admin_user, ActorRole.ADMIN, Decision.APPROVE
                )

        results = await asyncio.gather(_approve(first.id), _approve(second.id), return_exceptions=True)
        assert sum(isinstance(r, LeaveRequest) for r in results) == 1
        assert sum(isinstance(r, QuotaExceededError) for r in results) == 1

        async with session_factory() as session:
            balance = await leave_balance_repository.get_by_key(
                session, employee_user.organization_id, employee_user.id, annual_leave.id, YEAR
            )
            assert balance.used == 10.0


class TestYearBoundary:
    """연도를 걸친 휴가: 이후 연도 잔여도 재계산."""

    async def test_following_year_balance_is_refreshed(self, db: AsyncSession, seed_db: AsyncSession, employee_user, admin_user, annual_leave):
        org_id = employee_user.organization_id
        await leave_service.upsert_balance(
            db, org_id, LeaveBalanceUpsert(user_id=str(employee_user.id), leave_type_id=str(annual_leave.id), year=2027, balance=10)
        )
        request = await _seed_request(seed_db, employee_user, annual_leave, "2026-12-30", "2027-01-02", LeaveRequestStatus.PENDING)

        await leave_service.decide_leave_request(db, org_id, request.id, admin_user, ActorRole.ADMIN, Decision.APPROVE)

        start_year = await leave_balance_repository.get_by_key(db, org_id, employee_user.id, annual_leave.id, 2026, for_update=True)
        next_year = await leave_balance_repository.get_by_key(db, org_id, employee_user.id, annual_leave.id, 2027, for_update=True)
        assert start_year.used == 4.0
        assert next_year.used == 4.0
        assert leave_service.build_balance_response(next_year, annual_leave)["available"] == 6.0

    async def test_missing_following_year_row_is_not_created(self, db: AsyncSession, seed_db: AsyncSession, employee_user, admin_user, annual_leave):
        org_id = employee_user.organization_id
        request = await _seed_request(seed_db, employee_user, annual_leave, "2026-12-31", "2027-01-01", LeaveRequestStatus.PENDING)

        await leave_service.decide_leave_request(db, org_id, request.id, admin_user, ActorRole.ADMIN, Decision.APPROVE)

        assert await leave_balance_repository.get_by_key(db, org_id, employee_user.id, annual_leave.id, 2027) is None
        listed = await leave_service.upsert_balance(
            db, org_id, LeaveBalanceUpsert(user_id=str(employee_user.id), leave_type_id=str(annual_leave.id), year=2027, balance=10)
        )
        assert listed["used"] == 2.0


class _CapturingSession:
    """실행된 쿼리를 기록만 하는 세션 (Records the statement instead of running it)."""

    def __init__(self) -> None:
        self.statements: list = []

    async def execute(self, statement):
        self.statements.append(statement)
        return self

    def scalar_one_or_none(self):
        return None


class TestRowLockStatements:
    """PostgreSQL 행 잠금 SQL: 외부 조인 측은 잠그지 않음."""

    async def test_leave_request_lock_targets_base_table(self):
        session = _CapturingSession()
        await leave_request_repository.get_by_id(session, uuid.uuid4(), uuid.uuid4(), for_update=True)

        sql = str(session.statements[0].compile(dialect=postgresql.dialect()))
        assert "LEFT OUTER JOIN leave_types" in sql
        assert "FOR UPDATE OF leave_requests" in sql

    async def test_balance_lock_targets_base_table(self):
        session = _CapturingSession()
        await leave_balance_repository.get_by_key(session, uuid.uuid4(), uuid.uuid4(), uuid.uuid4(), YEAR, for_update=True)

        sql = str(session.statements[0].compile(dialect=postgresql.dialect()))
        assert sql.rstrip().endswith("FOR UPDATE OF leave_balances")

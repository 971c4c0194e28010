"""테스트 인프라: 임시 SQLite DB, 세션, httpx 클라이언트 픽스처.

Test infrastructure: Temporary SQLite database (aiosqlite), sessions, and
an httpx client bound to the FastAPI app. Each test gets a fresh database
file, so separate sessions use separate connections just like in production.
"""

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from timekeeper.database import Base, get_db
from timekeeper.main import app
from timekeeper.models import *  # noqa: F401,F403  (register all models with metadata)
from timekeeper.services.event_service import event_service
from timekeeper.services.policy_service import policy_service
from timekeeper.utils.jwt import create_access_token


def at(day: str, hhmm: str) -> datetime:
    """UTC 시각 헬퍼: at("2026-03-02", "09:05")."""
    return datetime.fromisoformat(f"{day}T{hhmm}:00").replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Function-scoped: 엔진, 세션, 클라이언트
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """테스트용 async 엔진: 테스트마다 새 DB 파일에 스키마를 생성합니다.

    TEST_DATABASE_URL이 설정되면 해당 DB(예: PostgreSQL)를 사용하고 종료 시 스키마를 삭제합니다.
    """
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'timekeeper.db'}"
    eng = create_async_engine(url, echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    if "TEST_DATABASE_URL" in os.environ:
        async with eng.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    await eng.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """각 테스트에 격리된 DB 세션을 제공합니다."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def seed_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """테스트 데이터 생성 전용 세션.

    Session used only by the data fixtures. Services roll back the session
    they are given on failure, which would expire fixture objects sharing it.
    """
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(autouse=True)
async def _reset_shared_state() -> AsyncGenerator[None, None]:
    """정책 캐시 초기화 및 이벤트 전달 대기 (Clear policy cache; flush pending events)."""
    policy_service.invalidate()
    yield
    await event_service.drain()
    policy_service.invalidate()


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """FastAPI 테스트 클라이언트: 요청마다 테스트 DB 세션을 사용합니다."""
    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# 헬퍼 픽스처: 테스트용 데이터 생성
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def org(seed_db: AsyncSession):
    """테스트 조직: UTC, 09:00-18:00, 필수 480분, 유급 점심 60분, 지각 유예 10분."""
    from timekeeper.models.organization import Organization
    o = Organization(
        name="Test Corp",
        timezone="UTC",
        workday_start_minutes=540,
        workday_end_minutes=1080,
        required_daily_minutes=480,
        half_day_threshold_minutes=240,
        paid_lunch_minutes=60,
        grace_late_minutes=10,
        grace_early_minutes=0,
    )
    seed_db.add(o)
    await seed_db.commit()
    return o


@pytest_asyncio.fixture
async def roles(seed_db: AsyncSession, org):
    """기본 3개 역할을 생성합니다 (admin=1, manager=2, employee=3)."""
    from timekeeper.models.user import Role
    result = {}
    for name, level in [("admin", 1), ("manager", 2), ("employee", 3)]:
        role = Role(organization_id=org.id, name=name, level=level)
        seed_db.add(role)
        result[name] = role
    await seed_db.commit()
    return result


async def _make_user(db: AsyncSession, org, role, email: str, manager_id=None):
    from timekeeper.models.user import User
    user = User(
        organization_id=org.id,
        role_id=role.id,
        manager_id=manager_id,
        email=email,
        full_name=email.split("@")[0].title(),
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def admin_user(seed_db: AsyncSession, org, roles):
    return await _make_user(seed_db, org, roles["admin"], "admin@test.com")


@pytest_asyncio.fixture
async def manager_user(seed_db: AsyncSession, org, roles):
    return await _make_user(seed_db, org, roles["manager"], "manager@test.com")


@pytest_asyncio.fixture
async def employee_user(seed_db: AsyncSession, org, roles, manager_user):
    """매니저를 담당 매니저로 둔 직원 (Employee whose manager of record is manager_user)."""
    return await _make_user(seed_db, org, roles["employee"], "employee@test.com", manager_id=manager_user.id)


@pytest_asyncio.fixture
async def other_manager(seed_db: AsyncSession, org, roles):
    """관계없는 매니저 (A manager with no relationship to employee_user)."""
    return await _make_user(seed_db, org, roles["manager"], "other.manager@test.com")


@pytest_asyncio.fixture
async def annual_leave(seed_db: AsyncSession, org):
    """연차 유형: 기본 할당량 10일 (Annual leave, 10 days per year by default)."""
    from timekeeper.models.leave import LeaveType
    lt = LeaveType(organization_id=org.id, code="ANNUAL", name="Annual Leave", is_paid=True, default_annual_quota=10)
    seed_db.add(lt)
    await seed_db.commit()
    return lt


def make_token(user) -> str:
    """테스트용 JWT 액세스 토큰을 생성합니다."""
    return create_access_token({"sub": str(user.id), "org": str(user.organization_id)})


@pytest.fixture
def admin_token(admin_user) -> str:
    return make_token(admin_user)


@pytest.fixture
def manager_token(manager_user) -> str:
    return make_token(manager_user)


@pytest.fixture
def employee_token(employee_user) -> str:
    return make_token(employee_user)


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}

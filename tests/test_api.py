"""HTTP API 테스트: 인증, 권한, 주요 흐름.

HTTP API tests: Authentication, role checks, and the main flows through
/api/v1/app/ and /api/v1/admin/.
"""

import uuid

from httpx import AsyncClient

from tests.conftest import auth_header

APP = "/api/v1/app"
ADMIN = "/api/v1/admin"


async def _clock(client: AsyncClient, token: str, action: str, instant: str, break_type: str | None = None):
    body: dict = {"action": action, "at": instant}
    if break_type is not None:
        body["break_type"] = break_type
    return await client.post(f"{APP}/my/attendance/clock", json=body, headers=auth_header(token))


class TestAuth:
    """인증 검사."""

    async def test_health(self, client: AsyncClient):
        res = await client.get("/health")
        assert res.status_code == 200
        assert res.json() == {"status": "ok"}

    async def test_missing_token(self, client: AsyncClient):
        res = await client.get(f"{APP}/my/attendance/today")
        assert res.status_code in (401, 403)

    async def test_invalid_token(self, client: AsyncClient):
        res = await client.get(f"{APP}/my/attendance/today", headers=auth_header("not-a-jwt"))
        assert res.status_code == 401

    async def test_employee_forbidden_on_admin_routes(self, client: AsyncClient, employee_token):
        res = await client.get(f"{ADMIN}/policy/settings", headers=auth_header(employee_token))
        assert res.status_code == 403
        assert res.json()["detail"]["code"] == "FORBIDDEN"

    async def test_manager_cannot_change_settings(self, client: AsyncClient, manager_token):
        res = await client.put(
            f"{ADMIN}/policy/settings", json={"paid_lunch_minutes": 30}, headers=auth_header(manager_token)
        )
        assert res.status_code == 403


class TestMyAttendanceApi:
    """내 출퇴근 API."""

    async def test_clock_flow(self, client: AsyncClient, employee_token):
        res = await _clock(client, employee_token, "clock-in", "2026-03-02T09:05:00Z")
        assert res.status_code == 200
        assert res.json()["clock_state"] == "CLOCKED_IN"

        await _clock(client, employee_token, "break-in", "2026-03-02T12:00:00Z", "LUNCH")
        await _clock(client, employee_token, "break-out", "2026-03-02T13:00:00Z", "LUNCH")
        res = await _clock(client, employee_token, "clock-out", "2026-03-02T18:00:00Z")
        assert res.status_code == 200
        data = res.json()
        assert data["clock_state"] == "CLOCKED_OUT"
        assert data["net_minutes"] == 535
        assert data["status"] == "PRESENT"
        assert data["breaks"][0]["minutes"] == 60

        res = await client.get(
            f"{APP}/my/attendance",
            params={"date_from": "2026-03-01", "date_to": "2026-03-31"},
            headers=auth_header(employee_token),
        )
        assert res.status_code == 200
        assert len(res.json()) == 1

        res = await client.get(
            f"{APP}/my/attendance/metrics", params={"work_date": "2026-03-02"}, headers=auth_header(employee_token)
        )
        assert res.status_code == 200
        assert res.json()["is_final"] is True
        assert res.json()["lunch_deducted_minutes"] == 0

    async def test_conflict_payload(self, client: AsyncClient, employee_token):
        await _clock(client, employee_token, "clock-in", "2026-03-02T09:00:00Z")
        res = await _clock(client, employee_token, "clock-in", "2026-03-02T09:01:00Z")
        assert res.status_code == 409
        assert res.json()["detail"]["code"] == "ALREADY_CLOCKED_IN"

    async def test_unknown_action(self, client: AsyncClient, employee_token):
        res = await _clock(client, employee_token, "teleport", "2026-03-02T09:00:00Z")
        assert res.status_code == 422


class TestCorrectionApi:
    """정정 요청 제출 → 매니저 → 관리자."""

    async def test_two_stage_flow(self, client: AsyncClient, employee_token, manager_token, admin_token):
        res = await client.post(
            f"{APP}/my/corrections",
            json={
                "work_date": "2026-03-02",
                "kind": "CLOCK",
                "proposed_clock_in": "2026-03-02T09:00:00Z",
                "proposed_clock_out": "2026-03-02T18:00:00Z",
            },
            headers=auth_header(employee_token),
        )
        assert res.status_code == 201
        correction_id = res.json()["id"]
        assert res.json()["status"] == "PENDING"

        res = await client.get(f"{ADMIN}/corrections", params={"status": "PENDING"}, headers=auth_header(manager_token))
        assert res.status_code == 200
        assert res.json()["total"] == 1

        res = await client.post(
            f"{ADMIN}/corrections/{correction_id}/decision",
            json={"decision": "approve"},
            headers=auth_header(manager_token),
        )
        assert res.status_code == 200
        assert res.json()["status"] == "MANAGER_APPROVED"

        res = await client.post(
            f"{ADMIN}/corrections/{correction_id}/decision",
            json={"decision": "approve", "note": "verified"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        assert res.json()["status"] == "ADMIN_APPROVED"
        assert res.json()["applied_at"] is not None

        res = await client.get(
            f"{APP}/my/attendance",
            params={"date_from": "2026-03-02", "date_to": "2026-03-02"},
            headers=auth_header(employee_token),
        )
        assert res.json()[0]["net_minutes"] == 540

    async def test_unrelated_manager(self, client: AsyncClient, employee_token, other_manager):
        from tests.conftest import make_token

        res = await client.post(
            f"{APP}/my/corrections",
            json={"work_date": "2026-03-02", "kind": "BREAK", "proposed_break_start": "2026-03-02T15:00:00Z"},
            headers=auth_header(employee_token),
        )
        correction_id = res.json()["id"]
        res = await client.post(
            f"{ADMIN}/corrections/{correction_id}/decision",
            json={"decision": "approve"},
            headers=auth_header(make_token(other_manager)),
        )
        assert res.status_code == 403
        assert res.json()["detail"]["code"] == "NOT_USERS_MANAGER"

    async def test_unknown_correction(self, client: AsyncClient, admin_token):
        res = await client.post(
            f"{ADMIN}/corrections/{uuid.uuid4()}/decision",
            json={"decision": "reject"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 404


class TestLeaveApi:
    """휴가 신청 및 결정."""

    async def test_request_and_approve(self, client: AsyncClient, employee_token, manager_token, admin_token, employee_user, annual_leave):
        res = await client.post(
            f"{APP}/my/leave-requests",
            json={
                "leave_type_id": str(annual_leave.id),
                "start_date": "2026-03-02T00:00:00Z",
                "end_date": "2026-03-04T00:00:00Z",
            },
            headers=auth_header(employee_token),
        )
        assert res.status_code == 201
        assert res.json()["days"] == 3.0
        request_id = res.json()["id"]

        res = await client.post(
            f"{ADMIN}/leave/requests/{request_id}/decision",
            json={"decision": "approve"},
            headers=auth_header(manager_token),
        )
        assert res.status_code == 200
        assert res.json()["status"] == "APPROVED"

        res = await client.get(f"{APP}/my/leave-requests/balances", params={"year": 2026}, headers=auth_header(employee_token))
        assert res.status_code == 200
        assert res.json()[0]["used"] == 3.0
        assert res.json()[0]["available"] == 7.0

        res = await client.put(
            f"{ADMIN}/leave/balances",
            json={"user_id": str(employee_user.id), "leave_type_id": str(annual_leave.id), "year": 2026, "balance": 3},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        assert res.json()["available"] == 0.0

    async def test_quota_exceeded_payload(self, client: AsyncClient, employee_token, annual_leave):
        res = await client.post(
            f"{APP}/my/leave-requests",
            json={
                "leave_type_id": str(annual_leave.id),
                "start_date": "2026-03-02T00:00:00Z",
                "end_date": "2026-03-13T00:00:00Z",
            },
            headers=auth_header(employee_token),
        )
        assert res.status_code == 409
        detail = res.json()["detail"]
        assert detail["code"] == "QUOTA_EXCEEDED"
        assert detail["available"] == 10.0
        assert detail["requested"] == 12.0


class TestAdminSettingsApi:

    async def test_settings_and_holidays(self, client: AsyncClient, admin_token, manager_token):
        res = await client.put(
            f"{ADMIN}/policy/settings", json={"grace_late_minutes": 5}, headers=auth_header(admin_token)
        )
        assert res.status_code == 200
        assert res.json()["grace_late_minutes"] == 5

        res = await client.get(f"{ADMIN}/policy/settings", headers=auth_header(manager_token))
        assert res.json()["grace_late_minutes"] == 5

        res = await client.put(
            f"{ADMIN}/policy/settings", json={"workday_start_minutes": 2000}, headers=auth_header(admin_token)
        )
        assert res.status_code == 400

        res = await client.post(
            f"{ADMIN}/policy/holidays",
            json={"holiday_date": "2026-03-01", "label": "Independence Movement Day"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 201
        res = await client.post(
            f"{ADMIN}/policy/holidays",
            json={"holiday_date": "2026-03-01", "label": "Duplicate"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 409

    async def test_summary_requires_admin(self, client: AsyncClient, manager_token, admin_token):
        params = {"date_from": "2026-03-01", "date_to": "2026-03-31"}
        res = await client.get(f"{ADMIN}/attendances/summary", params=params, headers=auth_header(manager_token))
        assert res.status_code == 403
        res = await client.get(f"{ADMIN}/attendances/summary", params=params, headers=auth_header(admin_token))
        assert res.status_code == 200
        assert res.json()["items"] == []

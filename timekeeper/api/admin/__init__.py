"""관리자 API 라우터 패키지: 모든 관리자/매니저 엔드포인트 통합.

Admin API Router package: Aggregates the manager- and admin-facing
endpoints into a single router for inclusion in the FastAPI application.

Included routers:
    - settings: 근태 정책 및 휴일 (Attendance policy and holidays)
    - attendances: 기간 집계 및 사용자 근태 (Period summary, user attendance)
    - corrections: 정정 요청 검토/결정 (Correction review and decision)
    - leave_requests: 휴가 결정 및 연간 잔여 (Leave decisions and balances)
"""

from fastapi import APIRouter

from timekeeper.api.admin.settings import router as settings_router
from timekeeper.api.admin.attendances import router as attendances_router
from timekeeper.api.admin.corrections import router as corrections_router
from timekeeper.api.admin.leave_requests import router as leave_router

admin_router: APIRouter = APIRouter()

# 정책/휴일: /policy/settings, /policy/holidays 하위
admin_router.include_router(settings_router, prefix="/policy", tags=["Policy"])
# 근태: /attendances/summary, /attendances/users/{user_id}
admin_router.include_router(attendances_router, prefix="/attendances", tags=["Attendances"])
admin_router.include_router(corrections_router, prefix="/corrections", tags=["Corrections"])
# 휴가: /leave/requests, /leave/balances
admin_router.include_router(leave_router, prefix="/leave", tags=["Leave"])

"""앱 API 라우터 패키지: 모든 앱(직원용) 엔드포인트 통합.

App API Router package: Aggregates the employee-facing endpoints into a
single router for inclusion in the FastAPI application.

Included routers:
    - attendances: 내 출퇴근/휴게 및 지표 (My clock events, days, metrics)
    - corrections: 내 정정 요청 (My correction requests)
    - leave_requests: 내 휴가 신청 및 잔여 (My leave requests and balances)
"""

from fastapi import APIRouter

from timekeeper.api.app.attendances import router as attendance_router
from timekeeper.api.app.corrections import router as corrections_router
from timekeeper.api.app.leave_requests import router as leave_router

app_router: APIRouter = APIRouter()

# 내 근태: /my/attendance 하위 (clock, today, metrics, history)
app_router.include_router(attendance_router, prefix="/my/attendance", tags=["My Attendance"])
app_router.include_router(corrections_router, prefix="/my/corrections", tags=["My Corrections"])
app_router.include_router(leave_router, prefix="/my/leave-requests", tags=["My Leave"])

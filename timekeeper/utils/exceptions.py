"""도메인 예외 클래스 모듈.

Domain exception classes module.
Every error the core can return is an HTTPException subclass carrying a
structured ``detail`` payload, so the API layer renders it directly and
service callers can still catch it as a typed error.

Payload shape:
    {"code": "ALREADY_CLOCKED_IN", "message": "...", **extra}

Usage:
    from timekeeper.utils.exceptions import NotFoundError, StateConflictError
    raise NotFoundError("Correction request not found")
    raise StateConflictError("ALREADY_DECIDED", "Already decided", status="REJECTED")
"""

from typing import Any

from fastapi import HTTPException, status


class TimekeeperError(HTTPException):
    """모든 도메인 예외의 부모 클래스.

    Base class for all domain errors.

    Args:
        status_code: HTTP 상태 코드 (HTTP status code)
        code: 기계 판독용 오류 코드 (Machine-readable error code)
        message: 사람이 읽을 수 있는 메시지 (Human-readable message)
        **extra: 추가 구조화 데이터 (Additional structured data for the caller)
    """

    def __init__(self, status_code: int, code: str, message: str, **extra: Any) -> None:
        self.code: str = code
        self.message: str = message
        self.extra: dict[str, Any] = extra
        super().__init__(status_code=status_code, detail={"code": code, "message": message, **extra})


class ValidationError(TimekeeperError):
    """400 Bad Request: 잘못된 입력값.

    Malformed input, e.g. a correction that proposes no time at all.
    """

    def __init__(self, message: str = "Invalid input", code: str = "VALIDATION_ERROR", **extra: Any) -> None:
        super().__init__(status.HTTP_400_BAD_REQUEST, code, message, **extra)


class StateConflictError(TimekeeperError):
    """409 Conflict: 현재 상태에서 허용되지 않는 전이.

    Transition not permitted from the current state
    (already clocked in, no active break, already decided, ...).
    """

    def __init__(self, code: str, message: str, **extra: Any) -> None:
        super().__init__(status.HTTP_409_CONFLICT, code, message, **extra)


class AuthorizationError(TimekeeperError):
    """403 Forbidden: 대상 사용자/조직에 대한 권한 없음.

    The actor lacks the required relationship to the target user or tenant.
    """

    def __init__(self, message: str = "Insufficient permissions", code: str = "FORBIDDEN", **extra: Any) -> None:
        super().__init__(status.HTTP_403_FORBIDDEN, code, message, **extra)


class QuotaExceededError(TimekeeperError):
    """409 Conflict: 휴가 승인 시 연간 할당량 초과.

    Leave approval would overcommit the yearly balance.
    ``extra`` carries quota, consumed, requested and available days.
    """

    def __init__(self, quota: float, consumed: float, requested: float) -> None:
        available: float = max(0.0, quota - consumed)
        super().__init__(
            status.HTTP_409_CONFLICT,
            "QUOTA_EXCEEDED",
            f"Quota exceeded. Available: {available:g} day(s).",
            quota=quota,
            consumed=consumed,
            requested=requested,
            available=available,
        )


class NotFoundError(TimekeeperError):
    """404 Not Found: 요청한 리소스를 찾을 수 없음."""

    def __init__(self, message: str = "Resource not found", code: str = "NOT_FOUND", **extra: Any) -> None:
        super().__init__(status.HTTP_404_NOT_FOUND, code, message, **extra)


class UnauthorizedError(HTTPException):
    """401 Unauthorized: 인증 실패.

    Raised when the bearer token is missing, invalid, or expired.
    """

    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)

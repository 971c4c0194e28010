"""FastAPI 의존성 주입 모듈: 인증 및 권한 검사.

FastAPI dependency injection module: Authentication and authorization.
Tokens are minted by the external identity service; here they are only
verified and resolved to a user of this organization.

Authentication Flow:
    1. 클라이언트가 Authorization: Bearer <token> 헤더를 전송
       (Client sends Authorization: Bearer <token> header)
    2. decode_token()이 JWT를 검증 (decode_token verifies the JWT)
    3. 페이로드의 "sub"로 역할과 함께 사용자를 조회
       (User is loaded with its role using the "sub" claim)
    4. 비활성 사용자는 거부 (Inactive users are rejected)

Authorization (require_level):
    역할 레벨이 max_level 이하인지 확인: lower level = higher authority.
    1 = admin, 2 = manager, 3 = employee
"""

from typing import Annotated, Awaitable, Callable
from uuid import UUID

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from timekeeper.database import get_db
from timekeeper.models.user import ADMIN_LEVEL, MANAGER_LEVEL, User
from timekeeper.repositories.user_repository import user_repository
from timekeeper.utils.exceptions import AuthorizationError, UnauthorizedError
from timekeeper.utils.jwt import decode_token

# HTTP Bearer 토큰 추출기 (Extracts the token from Authorization: Bearer <token>)
security: HTTPBearer = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """JWT 토큰에서 현재 인증된 사용자를 추출합니다.

    Decode the bearer token and return the active user it names, with the
    role eager-loaded.

    Raises:
        UnauthorizedError: 토큰이 유효하지 않거나 사용자가 없음/비활성
    """
    try:
        payload: dict = decode_token(credentials.credentials)
        if payload.get("type") != "access":
            raise UnauthorizedError("Invalid token type")
        user_id: UUID = UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError, TypeError):
        raise UnauthorizedError("Invalid or expired token")

    user: User | None = await user_repository.get_with_role(db, user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError("User not found or inactive")
    return user


def require_level(max_level: int) -> Callable[..., Awaitable[User]]:
    """역할 레벨 기반 권한 검사 의존성 팩토리.

    Dependency factory enforcing a maximum role level (inclusive).
    """
    async def _check(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        role = current_user.role
        if role is None or role.level > max_level:
            raise AuthorizationError()
        return current_user
    return _check


# 편의 의존성: Pre-configured level dependencies
require_admin = require_level(ADMIN_LEVEL)      # 관리자만 (Admin only)
require_manager = require_level(MANAGER_LEVEL)  # 관리자 + 매니저 (Admin or manager)

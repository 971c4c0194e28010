"""API 요청 로깅 미들웨어 (로컬 로그 + Axiom).

Request logging middleware. Every request is logged locally through the
``timekeeper.access`` logger; when Axiom is configured the same record,
plus the masked request body and the error code of 4xx/5xx responses, is
ingested into the Axiom dataset.
"""

import asyncio
import json
import logging
import re
import time
from typing import Any

from axiom_py import Client as AxiomClient
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from timekeeper.config import settings

logger = logging.getLogger("timekeeper.access")

# 마스킹 대상 필드 패턴: Keys whose values never leave the process
_SENSITIVE_KEYS = re.compile(r"(secret|token|authorization|api_key|credential)", re.IGNORECASE)

# 로깅 제외 경로: Paths excluded from logging
_SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


def _mask(data: Any, depth: int = 0) -> Any:
    """민감 필드 마스킹: Recursively mask sensitive keys in dicts and lists."""
    if depth > 5:
        return "..."
    if isinstance(data, dict):
        return {k: "***" if _SENSITIVE_KEYS.search(k) else _mask(v, depth + 1) for k, v in data.items()}
    if isinstance(data, list):
        return [_mask(item, depth + 1) for item in data[:20]]
    return data


def _error_summary(body: bytes) -> Any:
    """오류 응답 본문에서 code/message 추출 (Pull the structured detail out of an error body)."""
    try:
        detail: Any = json.loads(body).get("detail")
    except (json.JSONDecodeError, UnicodeDecodeError, AttributeError):
        return body.decode("utf-8", errors="replace")[:500]
    if isinstance(detail, dict):
        return {"code": detail.get("code"), "message": str(detail.get("message", ""))[:500]}
    return str(detail)[:500]


class AxiomLoggingMiddleware(BaseHTTPMiddleware):
    """모든 API 요청/응답을 로깅하는 미들웨어.

    Logs method, path, status and duration for every request. Axiom ingest
    failures are logged and never affect the response.
    """

    def __init__(self, app: Any) -> None:
        super().__init__(app)
        self._client: AxiomClient | None = None
        self._dataset: str = settings.AXIOM_DATASET
        if settings.AXIOM_API_TOKEN and settings.AXIOM_DATASET:
            self._client = AxiomClient(token=settings.AXIOM_API_TOKEN)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in _SKIP_PATHS:
            return await call_next(request)

        start_time: float = time.perf_counter()
        method: str = request.method
        path: str = request.url.path

        request_body: Any = None
        if self._client is not None and method in ("POST", "PUT", "PATCH"):
            body_bytes: bytes = await request.body()
            if body_bytes:
                try:
                    request_body = _mask(json.loads(body_bytes))
                except (json.JSONDecodeError, UnicodeDecodeError):
                    request_body = "(non-json body)"

        status_code: int = 500
        error: Any = None
        try:
            response: Response = await call_next(request)
            status_code = response.status_code
            if status_code >= 400 and self._client is not None:
                # 본문을 소비했으므로 새 응답으로 감싸 반환: Body was consumed; re-wrap it
                chunks: list[bytes] = []
                async for chunk in response.body_iterator:
                    chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8"))
                resp_body: bytes = b"".join(chunks)
                error = _error_summary(resp_body)
                response = Response(
                    content=resp_body,
                    status_code=status_code,
                    headers=dict(response.headers),
                    media_type=response.media_type,
                )
        except Exception as exc:
            error = f"{type(exc).__name__}: {str(exc)[:300]}"
            raise
        finally:
            duration_ms: float = round((time.perf_counter() - start_time) * 1000, 2)
            logger.info("%s %s -> %d (%.2f ms)", method, path, status_code, duration_ms)

            if self._client is not None:
                log_event: dict[str, Any] = {
                    "method": method,
                    "path": path,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                }
                if request.query_params:
                    log_event["query_params"] = _mask(dict(request.query_params))
                if request_body is not None:
                    log_event["request_body"] = request_body
                if error is not None:
                    log_event["error"] = error
                try:
                    await asyncio.to_thread(self._client.ingest_events, self._dataset, [log_event])
                except Exception:
                    logger.warning("Axiom ingest failed for %s %s", method, path, exc_info=True)

        return response

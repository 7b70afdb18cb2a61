from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from stylist.limits import TRANSPORT_LIMIT_BYTES, format_bytes

logger = logging.getLogger("stylist.body-guard")


class RejectOversizedBody(BaseHTTPMiddleware):
    """Reject API requests whose body exceeds the multipart transport limit."""

    WATCH_PATH_PREFIXES = ("/api/",)

    def __init__(self, app, *, max_body_bytes: int | None = None, **_: Any) -> None:  # type: ignore[override]
        self.max_body_bytes = self._normalise_limit(max_body_bytes, TRANSPORT_LIMIT_BYTES)
        super().__init__(app)

    @staticmethod
    def _normalise_limit(candidate: int | None, fallback: int) -> int | None:
        if candidate is None:
            candidate = fallback
        if candidate <= 0:
            return None
        return candidate

    def _too_large(self, content_length: int | None, body_len: int) -> bool:
        if self.max_body_bytes is None:
            return False
        if content_length and content_length > self.max_body_bytes:
            return True
        return body_len > self.max_body_bytes

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.method not in {"POST", "PUT", "PATCH"}:
            return await call_next(request)

        path = request.url.path
        if not any(path.startswith(prefix) for prefix in self.WATCH_PATH_PREFIXES):
            return await call_next(request)

        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        start = time.time()

        content_length_header = request.headers.get("content-length")
        try:
            content_length = int(content_length_header) if content_length_header else None
        except (TypeError, ValueError):
            content_length = None

        if self._too_large(content_length, 0):
            return self._reject(rid, path, content_length or 0)

        body = await request.body()
        size = len(body)
        if self._too_large(None, size):
            return self._reject(rid, path, size)

        logger.info("[guard] rid=%s path=%s cl=%s size=%s", rid, path, content_length_header, size)

        async def receive() -> dict[str, Any]:
            return {"type": "http.request", "body": body, "more_body": False}

        response = await call_next(Request(request.scope, receive))
        duration_ms = int((time.time() - start) * 1000)
        logger.info("[guard] rid=%s done status=%s dur_ms=%s", rid, response.status_code, duration_ms)
        return response

    def _reject(self, rid: str, path: str, size: int) -> JSONResponse:
        logger.info("[guard] rid=%s path=%s blocked oversize=%s", rid, path, size)
        return JSONResponse(
            status_code=413,
            content={
                "error": (
                    "Request body is too large. Please keep uploads under "
                    f"{format_bytes(self.max_body_bytes or 0)}."
                ),
                "details": f"oversize:{size}",
            },
        )

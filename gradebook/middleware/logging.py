"""Request logging middleware."""

import logging
import time
from typing import Callable
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with a request id and echoes it as X-Request-ID."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Reuse the caller's id when one is supplied
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else None
        logger.info(f"[REQUEST {request_id}] Started {request.method} {request.url.path} from {client_ip}")

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.error(
                f"[REQUEST {request_id}] Failed {request.method} {request.url.path}: {str(e)} ({duration_ms} ms)"
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        logger.info(
            f"[REQUEST {request_id}] Completed {request.method} {request.url.path} "
            f"-> {response.status_code} ({duration_ms} ms)"
        )
        response.headers["X-Request-ID"] = request_id
        return response

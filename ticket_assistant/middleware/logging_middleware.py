"""
Logging Middleware - Request/Response logging
"""
import time
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ticket_assistant.utils.logger import get_logger

logger = get_logger(__name__)

HEALTH_PATH = "/api/v1/health"


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status code and duration of every request

    Adds an ``X-Process-Time`` header (milliseconds) to responses.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        # Health checks are polled constantly
        if request.url.path.startswith(HEALTH_PATH):
            return await call_next(request)

        start_time = time.perf_counter()
        method = request.method
        path = request.url.path
        client_host = request.client.host if request.client else "unknown"

        logger.info(f"→ {method} {path} from {client_host}")

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            logger.error(f"✗ {method} {path} ERROR ({duration_ms}ms): {e}", exc_info=True)
            raise

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(f"← {method} {path} {response.status_code} ({duration_ms}ms)")
        response.headers["X-Process-Time"] = str(duration_ms)
        return response

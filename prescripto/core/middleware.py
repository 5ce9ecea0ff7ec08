"""
Request middleware for the FastAPI application.
"""
import time
import logging
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

# Set up logging
logger = logging.getLogger(__name__)

def client_address(request: Request) -> str:
    """Best-effort client address, honouring a proxy's X-Forwarded-For header."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an ID and client address, and logs its outcome.

    The address is kept on ``request.state.client_ip`` so audit entries can
    record where a change came from.
    """
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        request.state.client_ip = client_address(request)

        logger.info(f"{request.method} {request.url.path} [{request_id}] started")
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"{request.method} {request.url.path} [{request_id}] failed "
                f"after {time.perf_counter() - started:.4f}s: {str(e)}"
            )
            raise

        elapsed = time.perf_counter() - started
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.info(
            f"{request.method} {request.url.path} [{request_id}] from {request.state.client_ip} "
            f"-> {response.status_code} in {elapsed:.4f}s"
        )
        return response


def setup_middlewares(app):
    """
    Set up all custom middlewares for the application.

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(RequestLoggingMiddleware)

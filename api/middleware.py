"""
HTTP middleware and the rate limit dependency for Zenly Platform Service

Middleware order in ``api.main`` matters: the request id is assigned first
so the access log lines and any error envelope share it.
"""

import time
import uuid
from typing import Callable, Optional

from fastapi import Depends, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from common.config import get_settings
from common.logger import get_logger, log_api_request, log_api_response, request_id_var
from common.exceptions import RateLimitError
from common.monitoring import record_rate_limit_rejection
from common.rate_limit import get_rate_limit_service
from common.auth.dependencies import get_optional_user
from common.auth.models import CurrentUser

settings = get_settings()
logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Probes and scrapes would drown the access log
QUIET_PATHS = {"/health", "/metrics"}


def client_ip(request: Request) -> str:
    """Network address used for ip keyed limits"""
    return request.client.host if request.client else "unknown"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's X-Request-ID or mint one, and expose it to log records"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log: one line in, one line out, plus X-Response-Time"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        quiet = path in QUIET_PATHS
        started = time.perf_counter()

        if not quiet:
            log_api_request(logger, method=request.method, path=path, client_host=client_ip(request))

        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000

        if not quiet:
            log_api_response(logger, status_code=response.status_code, duration_ms=duration_ms)

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Baseline browser hardening headers; HSTS only behind production TLS"""

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers.update(self.HEADERS)
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=15552000; includeSubDomains"
        return response


class RateLimiter:
    """
    Fixed-window rate limit dependency for one named policy

    Usage:
        @router.get("/search", dependencies=[Depends(RateLimiter("resource_search"))])

    ``resource_param`` names the path parameter used by the resource keyed
    strategies. Allowed responses carry RateLimit-* headers; the request
    over the limit raises a 429 with Retry-After.
    """

    def __init__(self, policy_name: str, resource_param: str = "id"):
        self.policy_name = policy_name
        self.resource_param = resource_param

    async def __call__(
        self,
        request: Request,
        response: Response,
        user: Optional[CurrentUser] = Depends(get_optional_user),
    ):
        if not settings.RATE_LIMIT_ENABLED:
            return

        result = await get_rate_limit_service().hit(
            self.policy_name,
            ip=client_ip(request),
            user_id=user.id if user else None,
            resource_id=request.path_params.get(self.resource_param)
        )
        headers = result.headers()

        if not result.allowed:
            record_rate_limit_rejection(self.policy_name)
            raise RateLimitError(
                message=result.policy.message,
                retry_after=result.reset_after,
                headers=headers
            )

        for name, value in headers.items():
            response.headers[name] = value

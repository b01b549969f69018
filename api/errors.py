"""
Exception handlers shared by every router

Every failure leaves the API as ``{success: false, error, code?, errors?}``
except the 429 body, which is the bare ``{error}`` the rate limiter sends.
"""

import traceback

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError

from common.config import get_settings
from common.logger import get_logger, log_error_with_context
from common.response import create_error_response, ErrorCode
from common.exceptions import ZenlyException, RateLimitError
from common.monitoring import increment_error

settings = get_settings()
logger = get_logger(__name__)

# Pydantic location prefixes that mean nothing to API callers
_LOCATION_NOISE = {"body", "query", "path"}


def _error(status_code: int, message: str, code=None, headers=None, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(message=message, code=code, **extra),
        headers=headers
    )


async def catch_unhandled(request: Request, call_next):
    """Last resort 500; the stack is only exposed outside production"""
    try:
        return await call_next(request)
    except Exception as e:
        log_error_with_context(logger, e, {
            "method": request.method,
            "path": request.url.path,
            "request_id": getattr(request.state, "request_id", None)
        })
        increment_error(type(e).__name__, 500)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            str(e) or "Internal server error",
            code=ErrorCode.INTERNAL_ERROR,
            stack=None if settings.is_production else traceback.format_exc()
        )


async def rate_limited(request: Request, exc: RateLimitError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=exc.headers)


async def zenly_error(request: Request, exc: ZenlyException):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    else:
        logger.warning(f"{type(exc).__name__}: {exc.message}", extra={"path": request.url.path})
    increment_error(type(exc).__name__, exc.status_code)
    return _error(exc.status_code, exc.message, code=exc.error_code, headers=exc.headers, errors=exc.errors)


async def duplicate_key(request: Request, exc: DuplicateKeyError):
    """Unique index violations become 409 ``<field> already exists``"""
    details = exc.details or {}
    field = next(iter(details.get("keyPattern") or details.get("keyValue") or {}), "value")
    logger.warning(f"Duplicate key on {field}")
    return _error(status.HTTP_409_CONFLICT, f"{field} already exists", code=ErrorCode.DUPLICATE_KEY)


async def invalid_id(request: Request, exc: InvalidId):
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid ID format", code=ErrorCode.INVALID_ID)


def _describe(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part not in _LOCATION_NOISE)
    message = error.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


async def request_validation(request: Request, exc: RequestValidationError):
    errors = [_describe(error) for error in exc.errors()]
    logger.warning(f"Validation failed on {request.url.path}: {errors}")
    return _error(status.HTTP_400_BAD_REQUEST, "Validation failed", code=ErrorCode.VALIDATION_ERROR, errors=errors)


async def routing_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return _error(exc.status_code, "Route not found", code=ErrorCode.NOT_FOUND, path=request.url.path)

    logger.warning(f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}")
    return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(RateLimitError, rate_limited)
    app.add_exception_handler(ZenlyException, zenly_error)
    app.add_exception_handler(DuplicateKeyError, duplicate_key)
    app.add_exception_handler(InvalidId, invalid_id)
    app.add_exception_handler(RequestValidationError, request_validation)
    app.add_exception_handler(StarletteHTTPException, routing_error)
    app.middleware("http")(catch_unhandled)

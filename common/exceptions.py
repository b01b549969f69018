"""
Custom exceptions for Zenly Platform Service

This module defines custom exceptions that map to standardized error responses.
"""

from typing import Optional, Dict, List
from common.response import ErrorCode


class ZenlyException(Exception):
    """Base exception for all Zenly service errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[ErrorCode] = None,
        errors: Optional[List[str]] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.errors = errors
        self.headers = headers
        super().__init__(self.message)


class ValidationError(ZenlyException):
    """Raised when request validation fails"""

    def __init__(self, message: str = "Validation failed", errors: Optional[List[str]] = None):
        super().__init__(
            message=message,
            status_code=400,
            errors=errors
        )


class InvalidIdentifierError(ZenlyException):
    """Raised when a path or body identifier is not a valid ObjectId"""

    def __init__(self, value: str = ""):
        self.value = value
        super().__init__(
            message="Invalid ID format",
            status_code=400,
            error_code=ErrorCode.INVALID_ID
        )


class AuthenticationError(ZenlyException):
    """Raised when authentication fails"""

    def __init__(self, message: str = "Invalid token", error_code: Optional[ErrorCode] = None):
        super().__init__(
            message=message,
            status_code=401,
            error_code=error_code
        )


class TokenExpiredError(AuthenticationError):
    """Raised when a bearer credential has expired; clients refresh on this code"""

    def __init__(self):
        super().__init__(message="Token expired", error_code=ErrorCode.TOKEN_EXPIRED)


class AuthorizationError(ZenlyException):
    """Raised when user lacks required permissions"""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code=ErrorCode.FORBIDDEN
        )


class NotFoundError(ZenlyException):
    """Raised when requested resource is not found"""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code=ErrorCode.NOT_FOUND
        )


class ConflictError(ZenlyException):
    """Raised on duplicate keys or otherwise conflicting writes"""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=409,
            error_code=ErrorCode.DUPLICATE_KEY
        )


class RateLimitError(ZenlyException):
    """Raised when a fixed-window rate limit is exceeded"""

    def __init__(self, message: str, retry_after: int, headers: Optional[Dict[str, str]] = None):
        self.retry_after = retry_after
        super().__init__(
            message=message,
            status_code=429,
            error_code=ErrorCode.RATE_LIMITED,
            headers=headers
        )

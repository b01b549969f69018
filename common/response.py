"""
Standard API Response Models and Utilities

This module provides the response envelopes shared by every Zenly endpoint.
Successful responses look like ``{"success": true, "data": ...}`` and errors
look like ``{"success": false, "error": "...", "code": "..."}``.
"""

from pydantic import BaseModel, Field
from typing import Any, Optional, Dict, List, TypeVar, Generic
from enum import Enum


class ErrorCode(str, Enum):
    """Machine readable codes attached to some error responses"""
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_ID = "INVALID_ID"
    DUPLICATE_KEY = "DUPLICATE_KEY"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


T = TypeVar('T')


class StandardResponse(BaseModel, Generic[T]):
    """
    Success envelope used by all endpoints
    """
    success: bool = Field(True, description="Whether the request was successful")
    data: Optional[T] = Field(None, description="Response payload")
    message: Optional[str] = Field(None, description="Optional human readable message")

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "data": {"_id": "665f1c2e8a1b2c3d4e5f6a7b", "title": "Box breathing"},
                "message": None
            }
        }


class ErrorResponse(BaseModel):
    """
    Error envelope

    ``errors`` lists individual validation failures, ``code`` distinguishes
    errors the client reacts to (TOKEN_EXPIRED) and ``stack`` is only
    populated outside production.
    """
    success: bool = False
    error: str = Field(..., description="Human-readable error message")
    errors: Optional[List[str]] = None
    code: Optional[str] = None
    stack: Optional[str] = None


class CursorPagination(BaseModel):
    nextCursor: Optional[str] = None
    hasMore: bool
    total: int
    limit: int


class CursorPage(StandardResponse[List[T]], Generic[T]):
    """Response format for cursor paginated lists"""
    pagination: CursorPagination


def create_success_response(
    data: Any = None,
    message: Optional[str] = None,
    **extra: Any
) -> Dict[str, Any]:
    """
    Create a standardized success response dictionary.

    Extra keyword arguments are merged into the top level (e.g. ``total``).
    """
    response = StandardResponse(success=True, data=data, message=message)
    body = response.model_dump(mode='json', exclude_none=True)
    if data is None:
        body["data"] = None
    body.update(extra)
    return body


def create_error_response(
    message: str,
    code: Optional[ErrorCode] = None,
    errors: Optional[List[str]] = None,
    stack: Optional[str] = None,
    **extra: Any
) -> Dict[str, Any]:
    """
    Create a standardized error response dictionary.
    """
    response = ErrorResponse(
        error=message,
        errors=errors,
        code=code.value if code else None,
        stack=stack
    )
    body = response.model_dump(mode='json', exclude_none=True)
    body.update(extra)
    return body


def create_cursor_page(
    items: List[Any],
    next_cursor: Optional[str],
    has_more: bool,
    total: int,
    limit: int
) -> Dict[str, Any]:
    """
    Create a cursor paginated response dictionary.
    """
    page = CursorPage(
        success=True,
        data=items,
        pagination=CursorPagination(
            nextCursor=next_cursor,
            hasMore=has_more,
            total=total,
            limit=limit
        )
    )
    return page.model_dump(mode='json', exclude={"message"})

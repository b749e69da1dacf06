"""Uniform response envelope shared by every endpoint.

Success: ``{"success": true, "data": ..., "message": ..., "pagination": {...}?}``
Failure: ``{"success": false, "message": "..."}``
"""
from __future__ import annotations

from typing import Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginationOut(BaseModel):
    """Pagination metadata for list responses."""

    page: int = Field(..., ge=1, description="Current page (1-based)")
    size: int = Field(..., ge=1, description="Page size")
    total: int = Field(..., ge=0, description="Total number of matching records")
    total_pages: int = Field(..., ge=0, description="ceil(total / size); 0 when nothing matches")


class ApiResponse(BaseModel, Generic[T]):
    """Single-object (or plain list) response envelope."""

    success: bool = Field(True, description="Whether the request succeeded")
    data: Optional[T] = Field(None, description="Response payload")
    message: Optional[str] = Field(None, description="Human-readable message")


class PaginatedResponse(BaseModel, Generic[T]):
    """Paginated list response envelope."""

    success: bool = Field(True, description="Whether the request succeeded")
    data: List[T] = Field(default_factory=list, description="Records in the current page")
    pagination: PaginationOut = Field(..., description="Pagination metadata")
    message: Optional[str] = Field(None, description="Human-readable message")


class ErrorResponse(BaseModel):
    """Failure envelope. ``message`` is safe to show to end users."""

    success: bool = Field(False, description="Always false")
    message: str = Field(..., description="What went wrong")


# PUBLIC_INTERFACE
def success_envelope(data: T, message: Optional[str] = None) -> ApiResponse[T]:
    return ApiResponse(data=data, message=message)


# PUBLIC_INTERFACE
def paginated_envelope(items: Sequence[T], page_info) -> PaginatedResponse[T]:
    """Wrap a page of records and its PageInfo in the list envelope."""
    return PaginatedResponse(data=list(items), pagination=PaginationOut(**page_info.as_dict()))


# PUBLIC_INTERFACE
def error_envelope(message: str) -> dict:
    return ErrorResponse(message=message).model_dump()

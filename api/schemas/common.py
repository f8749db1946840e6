"""Common Pydantic schemas shared across the API."""

from datetime import datetime
from typing import Any, Generic, TypeVar, Optional
from pydantic import BaseModel, Field


T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Offset-paginated response wrapper."""

    items: list[T] = Field(description="List of items for this page")
    total: int = Field(ge=0, description="Total number of items across all pages")
    limit: int = Field(ge=1, le=100, description="Maximum items per page")
    offset: int = Field(ge=0, description="Number of items skipped")


class TimestampMixin(BaseModel):
    """Mixin for timestamp fields."""

    created_at: datetime = Field(description="Timestamp when the resource was created")
    updated_at: datetime = Field(description="Timestamp when the resource was last updated")


class ErrorBody(BaseModel):
    """Error payload."""

    code: str = Field(description="Error code for programmatic handling")
    message: str = Field(description="Human-readable error message")
    details: Optional[dict[str, Any]] = Field(None, description="Structured error details")
    path: Optional[str] = Field(None, description="Request path")
    method: Optional[str] = Field(None, description="Request method")


class ErrorResponse(BaseModel):
    """Error response model."""

    error: ErrorBody

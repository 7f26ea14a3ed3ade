"""Common schemas used across the ledger API."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base for every request/response body.

    Fields are declared snake_case and travel camelCase on the wire;
    both spellings are accepted on input.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentOut(CamelModel):
    """Fields every gate-pass document carries in responses."""
    id: str = Field(alias="_id")
    created_at: str | None = None
    updated_at: str | None = None
    revision: int = Field(0, alias="__v")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope wrapping every ledger response.

    Usage:
        response_model=ApiResponse[CreatedGradingGatePass]

    Returns:
        {
            "success": true,
            "data": {...},
            "message": "Grading gate pass created"
        }
    """
    success: bool = True
    data: T | None = None
    message: str | None = None


class Pagination(CamelModel):
    """Page metadata for page / limit listings.

    Returns:
        {"page": 2, "limit": 10, "total": 35, "totalPages": 4}
    """
    page: int
    limit: int
    total: int
    total_pages: int


def iso(value) -> str | None:
    """ISO-8601 rendering of a date/datetime column (None passes through)."""
    return value.isoformat() if value is not None else None

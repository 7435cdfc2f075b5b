import math
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ApiResponse(BaseModel, Generic[T]):
    """Envelope every endpoint answers with."""

    success: bool
    data: Optional[T] = None
    message: Optional[str] = None
    error: Optional[str] = None
    pagination: Optional[Pagination] = None


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    data: Optional[List[FieldError]] = None


def ok(data=None, message: str | None = None, pagination: Pagination | None = None) -> dict:
    body = {"success": True, "data": data}
    if message is not None:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination
    return body


def clamp_pagination(page=None, limit=None, default_limit: int = DEFAULT_PAGE_LIMIT) -> tuple[int, int]:
    """Clamp page to >= 1 and limit to 1..MAX_PAGE_LIMIT."""
    try:
        page = int(page) if page is not None else 1
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(limit) if limit is not None else default_limit
    except (TypeError, ValueError):
        limit = default_limit

    return max(1, page), min(MAX_PAGE_LIMIT, max(1, limit))


def page_range(page: int, limit: int) -> tuple[int, int]:
    """Inclusive row range for a 1-based page."""
    offset = (page - 1) * limit
    return offset, offset + limit - 1


def build_pagination(page: int, limit: int, total: int | None) -> Pagination:
    total = total or 0
    return Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit))

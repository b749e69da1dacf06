from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from src.inventory.errors import InvalidInputError

DEFAULT_PAGE = 1
DEFAULT_SIZE = 20
MAX_SIZE = 100

# Public sort names; services map them onto columns
SORTABLE_FIELDS = ("name", "type", "location", "environment", "vendor", "created_at", "updated_at")
DEFAULT_SORT_FIELD = "created_at"


@dataclass(frozen=True)
class SortSpec:
    """A validated sort request: field is always one of SORTABLE_FIELDS."""

    field: str
    descending: bool

    @property
    def direction(self) -> str:
        return "desc" if self.descending else "asc"


@dataclass(frozen=True)
class PageRequest:
    """1-based page window."""

    page: int = DEFAULT_PAGE
    size: int = DEFAULT_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size

    @property
    def limit(self) -> int:
        return self.size


@dataclass(frozen=True)
class PageInfo:
    page: int
    size: int
    total: int
    total_pages: int

    def as_dict(self) -> dict:
        return {"page": self.page, "size": self.size, "total": self.total, "total_pages": self.total_pages}


# PUBLIC_INTERFACE
def resolve_sort(sort_field: Optional[str] = None, sort_direction: Optional[str] = None) -> SortSpec:
    """Validate the requested ordering against the allow-list.

    No field means newest first (created_at desc). A field without a direction sorts ascending.

    Raises:
        InvalidInputError: unknown field or direction. Raised before any query is built,
            so an arbitrary string can never become a column reference.
    """
    direction = (sort_direction or "").strip().lower()
    if direction not in ("", "asc", "desc"):
        raise InvalidInputError(f"Invalid sort direction '{sort_direction}'. Use 'asc' or 'desc'")

    field = (sort_field or "").strip()
    if not field:
        return SortSpec(field=DEFAULT_SORT_FIELD, descending=direction != "asc")
    if field not in SORTABLE_FIELDS:
        raise InvalidInputError(
            f"Invalid sort field '{sort_field}'. Allowed fields: {', '.join(SORTABLE_FIELDS)}"
        )
    return SortSpec(field=field, descending=direction == "desc")


# PUBLIC_INTERFACE
def resolve_page(page: Optional[int] = None, size: Optional[int] = None) -> PageRequest:
    """Normalize page/size, clamping into [1, ...] and [1, MAX_SIZE]."""
    page = DEFAULT_PAGE if page is None else page
    size = DEFAULT_SIZE if size is None else size
    page = 1 if page < 1 else page
    size = 1 if size < 1 else min(size, MAX_SIZE)
    return PageRequest(page=page, size=size)


# PUBLIC_INTERFACE
def total_pages(total: int, size: int) -> int:
    """ceil(total / size); zero rows means zero pages."""
    if total <= 0:
        return 0
    return math.ceil(total / size)


# PUBLIC_INTERFACE
def page_info(request: PageRequest, total: int) -> PageInfo:
    return PageInfo(page=request.page, size=request.size, total=total, total_pages=total_pages(total, request.size))

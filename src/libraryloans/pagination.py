"""Paging and sorting of query results.

A ``PageRequest`` says which slice of a result set the caller wants; a
``Page`` carries that slice together with the total number of matches
across all pages.
"""

from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

T = TypeVar("T")

MAX_PAGE_SIZE = 1000
# Largest page whose offset still fits a 64-bit SQLite integer
MAX_PAGE = (2**63 - 1) // MAX_PAGE_SIZE


class PageRequest(BaseModel):
    """Page index (0-based), page size and optional sort field.

    ``sort`` is a field name; prefix it with ``-`` for descending order.
    """

    page: int = Field(0, ge=0, le=MAX_PAGE)
    size: int = Field(10, ge=1, le=MAX_PAGE_SIZE)
    sort: Optional[str] = None

    @property
    def offset(self) -> int:
        return self.page * self.size

    @property
    def sort_field(self) -> Optional[str]:
        if not self.sort:
            return None
        return self.sort.lstrip("-")

    @property
    def descending(self) -> bool:
        return bool(self.sort) and self.sort.startswith("-")


@dataclass
class Page(Generic[T]):
    """One page of results."""

    items: list[T] = field(default_factory=list)
    total: int = 0
    page: int = 0
    size: int = 10

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return -(-self.total // self.size)

    @property
    def is_last(self) -> bool:
        return self.page + 1 >= self.total_pages

    def __len__(self) -> int:
        return len(self.items)


def paginate(
    session: Session,
    stmt: Select,
    request: PageRequest,
    sortable: dict,
    default_order,
) -> Page:
    """Run ``stmt`` for one page and count its total matches.

    Args:
        session: Open session
        stmt: Filtered select of a single entity
        request: Requested page
        sortable: Map of accepted sort field names to columns
        default_order: Column ordering used when no sort is requested,
            and as a tie-breaker otherwise

    Raises:
        KeyError: If the requested sort field is not in ``sortable``
    """
    total = session.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ).scalar_one()

    order = []
    if request.sort_field:
        column = sortable[request.sort_field]
        order.append(column.desc() if request.descending else column.asc())
    order.append(default_order)

    items = (
        session.execute(stmt.order_by(*order).offset(request.offset).limit(request.size))
        .scalars()
        .all()
    )
    return Page(items=list(items), total=total, page=request.page, size=request.size)

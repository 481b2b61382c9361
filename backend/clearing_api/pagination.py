"""Pagination contract shared by every list operation.

Requests carry ``skip``, ``limit``, a free-text ``search`` and a ``sort``
mapping of field → direction; responses carry the page, the total number
of matching rows (independent of paging) and the echoed parameters.
"""
from __future__ import annotations

import dataclasses
from collections.abc import Callable, Sequence
from typing import Any

from fastapi import Query
from sqlalchemy import JSON, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from clearing_api.config import settings
from clearing_api.errors import ValidationFailedError

SORT_DIRECTIONS = ("asc", "desc")


@dataclasses.dataclass(frozen=True)
class PaginationRequest:
    skip: int = 0
    limit: int = settings.PAGINATION_DEFAULT_LIMIT
    search: str | None = None
    sort: dict[str, str] = dataclasses.field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "skip": self.skip,
            "limit": self.limit,
            "search": self.search,
            "sort": dict(self.sort),
        }


@dataclasses.dataclass
class Page:
    items: Sequence[Any]
    total: int
    pagination: PaginationRequest

    def to_dict(self, serialize: Callable[[Any], dict[str, Any]]) -> dict[str, Any]:
        return {
            "items": [serialize(item) for item in self.items],
            "total": self.total,
            **self.pagination.to_dict(),
        }


def parse_sort(raw: str | None) -> dict[str, str]:
    """Parse ``"name:asc,created_at:desc"`` into an ordered field → direction mapping."""
    order: dict[str, str] = {}
    if not raw:
        return order
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        field, _, direction = part.partition(":")
        direction = (direction or "asc").strip().lower()
        if direction not in SORT_DIRECTIONS:
            raise ValidationFailedError(
                f"Invalid sort direction '{direction}' for field '{field}'",
                details=[part],
            )
        order[field.strip()] = direction
    return order


def pagination_params(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.PAGINATION_DEFAULT_LIMIT, ge=1, le=settings.PAGINATION_MAX_LIMIT),
    search: str | None = Query(None),
    sort: str | None = Query(None, description="Comma-separated field:asc|desc pairs"),
) -> PaginationRequest:
    """FastAPI dependency building a ``PaginationRequest`` from the query string."""
    return PaginationRequest(
        skip=skip,
        limit=limit,
        search=search or None,
        sort=parse_sort(sort),
    )


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def paginate(
    db: AsyncSession,
    stmt: Select,
    model: Any,
    pagination: PaginationRequest,
    search_columns: Sequence[Any] = (),
) -> Page:
    """Apply search, sort and paging to *stmt* and count the full match set.

    Sorting is allowed on any non-JSON column declared on *model*; any other
    field is a validation error rather than being ignored. The search term is
    matched literally, so `%` and `_` are not wildcards.
    """
    if pagination.search and search_columns:
        like = f"%{escape_like(pagination.search)}%"
        stmt = stmt.where(or_(*(column.ilike(like, escape="\\") for column in search_columns)))

    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar_one()

    columns = model.__table__.columns
    unknown = [
        field for field in pagination.sort
        if field not in columns or isinstance(columns[field].type, JSON)
    ]
    if unknown:
        raise ValidationFailedError(
            f"Cannot sort by field(s): {', '.join(unknown)}",
            details=unknown,
        )
    ordering = [
        columns[field].desc() if direction == "desc" else columns[field].asc()
        for field, direction in pagination.sort.items()
    ]
    # Tie-break on id so pages are stable
    ordering.append(columns["id"].asc())

    stmt = stmt.order_by(*ordering).offset(pagination.skip).limit(pagination.limit)
    items = (await db.execute(stmt)).scalars().all()
    return Page(items=items, total=total, pagination=pagination)

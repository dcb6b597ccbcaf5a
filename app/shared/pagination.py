"""Offset pagination for list endpoints."""

from typing import Any

from pydantic import BaseModel, Field, computed_field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select


class PaginationParams(BaseModel):
    """Pagination parameters."""

    page: int = Field(default=1, ge=1, description="Page number (1-based)")
    size: int = Field(default=20, ge=1, le=100, description="Page size")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size


class Page(BaseModel):
    """One page of ORM rows and the counts a client pages with."""

    items: list[Any]
    total: int
    page: int
    size: int

    @computed_field
    @property
    def total_pages(self) -> int:
        return -(-self.total // self.size)

    @computed_field
    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @computed_field
    @property
    def has_prev(self) -> bool:
        return self.page > 1


async def paginate(db: AsyncSession, query: Select, pagination: PaginationParams) -> Page:
    """Run ``query`` for one page; the total ignores the query's ordering."""
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0

    result = await db.execute(query.offset(pagination.offset).limit(pagination.size))
    return Page(items=list(result.scalars().all()), total=total, page=pagination.page, size=pagination.size)

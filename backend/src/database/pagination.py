from math import ceil
from typing import TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")

MAX_PAGE_SIZE = 100


class Paginator:
    """Offset pagination over a select statement."""

    def __init__(self, page: int = 1, limit: int = 20) -> None:
        self.page = max(page, 1)
        self.limit = min(max(limit, 1), MAX_PAGE_SIZE)
        self.offset = (self.page - 1) * self.limit

    def page_count(self, total: int) -> int:
        return ceil(total / self.limit) if total else 0

    async def paginate(self, session: AsyncSession, query: Select[tuple[T]]) -> tuple[list[T], int]:
        """
        Paginate a query and return items with total count.

        Parameters
        ----------
        session : AsyncSession
            Database session
        query : Select
            Base query to paginate

        Returns
        -------
        tuple[list[T], int]
            List of items and total count
        """
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = await session.scalar(count_query) or 0

        result = await session.execute(query.offset(self.offset).limit(self.limit))
        return list(result.scalars().all()), total

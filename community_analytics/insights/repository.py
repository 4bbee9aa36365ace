import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, column, func, select, table
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import TableClause


logger = logging.getLogger(__name__)

# Owned by the wider application; only counted here
posts = table("posts", column("id"), column("created_at", DateTime))
comments = table("comments", column("id"), column("created_at", DateTime))
profiles = table("profiles", column("id"))


class CommunityActivityRepository:
    """Counts community activity in tables the analytics engine does not own."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _count(
        self,
        source: TableClause,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        include_end: bool = True,
    ) -> int:
        query = select(func.count()).select_from(source)

        if start is not None:
            query = query.where(source.c.created_at >= start)

        if end is not None:
            query = query.where(
                source.c.created_at <= end
                if include_end
                else source.c.created_at < end
            )

        return int(await self.session.scalar(query) or 0)

    async def count_posts(
        self, start: datetime, end: datetime, include_end: bool = True
    ) -> int:
        return await self._count(posts, start, end, include_end)

    async def count_comments(self, start: datetime, end: datetime) -> int:
        return await self._count(comments, start, end)

    async def count_users(self) -> int:
        return await self._count(profiles)

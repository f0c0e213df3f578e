from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

from sqlalchemy import Executable, Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.pagination import PageRequest


class BaseRepository:
    """
    Base class for repositories providing common helpers.

    Note:
      Every query must filter on platform_id explicitly; repositories never
      commit, the calling route or service owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute a SQLAlchemy statement."""
        return await self.session.execute(statement, params or {})

    async def scalars(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return scalars."""
        result = await self.execute(statement, params)
        return result.scalars()

    async def scalar_one_or_none(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return a single scalar or None."""
        result = await self.execute(statement, params)
        return result.scalar_one_or_none()

    async def commit(self) -> None:
        """Commit current transaction."""
        await self.session.commit()

    async def add_all(self, entities: Iterable[Any]) -> None:
        """Add multiple entities to session."""
        self.session.add_all(list(entities))

    async def add(self, entity: Any) -> None:
        """Add a single entity to session."""
        self.session.add(entity)

    async def save(self, entity: Any) -> Any:
        """Flush pending changes for `entity` and reload server-generated columns."""
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def remove(self, entity: Any) -> None:
        """Delete `entity` and flush so constraint errors surface here."""
        await self.session.delete(entity)
        await self.session.flush()

    async def paginate(
        self,
        stmt: Select,
        paging: PageRequest,
        sortable: Mapping[str, Any],
    ) -> Tuple[Sequence[Any], int]:
        """
        Apply sorting/offset/limit to `stmt` and return (rows, total).

        `sortable` maps accepted sort_by names to columns; sort_by may be comma-separated.
        """
        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        total = int((await self.execute(count_stmt)).scalar_one())

        columns = [sortable[name] for name in paging.sort_by.split(",") if name in sortable]
        if not columns and "created_at" in sortable:
            columns = [sortable["created_at"]]
        ordering = [c.asc() if paging.sort_order == "asc" else c.desc() for c in columns]
        page_stmt = stmt.order_by(*ordering).offset(paging.offset).limit(paging.limit)
        rows = list((await self.scalars(page_stmt)).all())
        return rows, total

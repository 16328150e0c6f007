import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .exceptions import StoreError

logger = logging.getLogger("tripdesk.store")

AGGREGATE_FUNCTIONS = {
    "count": func.count,
    "sum": func.sum,
    "avg": func.avg,
}


class Collection:
    """
    A queryable collection over one mapped class.

    Every call opens its own short-lived session from ``session_factory``,
    so the page fetch, the count and any number of aggregates for one
    request can be awaited side by side.
    """

    def __init__(self, model, session_factory: async_sessionmaker):
        self.model = model
        self.session_factory = session_factory

    @property
    def name(self) -> str:
        return self.model.__name__

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as db:
                yield db
        except SQLAlchemyError as e:
            logger.exception(f"Store call on {self.name} failed")
            raise StoreError(f"Store call on {self.name} failed: {e}") from e

    @staticmethod
    def _where(stmt, predicate):
        if predicate is not None:
            stmt = stmt.where(predicate)
        return stmt

    async def find(
        self,
        predicate=None,
        order_by: Sequence = (),
        skip: int = 0,
        take: int | None = None,
        options: Iterable = (),
    ) -> list:
        stmt = self._where(select(self.model), predicate).order_by(*order_by)
        if skip:
            stmt = stmt.offset(skip)
        if take is not None:
            stmt = stmt.limit(take)
        options = tuple(options)
        if options:
            stmt = stmt.options(*options)

        async with self._session() as db:
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def count(self, predicate=None) -> int:
        stmt = self._where(select(func.count()).select_from(self.model), predicate)
        async with self._session() as db:
            return (await db.execute(stmt)).scalar_one()

    async def aggregate(self, predicate=None, column=None, fn: str = "count"):
        """
        Single scalar aggregate. Returns ``None`` when a sum or average
        matched no rows; callers decide the empty value.
        """
        aggregate_fn = AGGREGATE_FUNCTIONS[fn]
        expr = aggregate_fn() if column is None else aggregate_fn(column)
        stmt = self._where(select(expr).select_from(self.model), predicate)
        async with self._session() as db:
            return (await db.execute(stmt)).scalar()

    async def grouped(self, key, columns: dict[str, Any], predicate=None) -> dict[Any, dict[str, Any]]:
        """
        One ``GROUP BY key`` query returning ``{key_value: {label: value}}``.
        Used to batch per-row aggregates instead of querying row by row.
        """
        labelled = [expr.label(label) for label, expr in columns.items()]
        stmt = (
            self._where(select(key.label("group_key"), *labelled).select_from(self.model), predicate)
            .group_by(key)
        )
        async with self._session() as db:
            rows = (await db.execute(stmt)).mappings().all()
        return {
            row["group_key"]: {label: row[label] for label in columns}
            for row in rows
        }

    async def distinct(self, column, predicate=None) -> list:
        stmt = self._where(select(column).select_from(self.model), predicate).distinct().order_by(column)
        async with self._session() as db:
            return list((await db.execute(stmt)).scalars().all())

    async def get(self, entity_id: int, options: Iterable = ()):
        async with self._session() as db:
            return await db.get(self.model, entity_id, options=tuple(options) or None)

    async def update(self, entity_id: int, patch: dict[str, Any]):
        async with self._session() as db:
            entity = await db.get(self.model, entity_id)
            if entity is None:
                return None
            for field, value in patch.items():
                setattr(entity, field, value)
            await db.commit()
            await db.refresh(entity)
            return entity

    async def create(self, record: dict[str, Any]):
        async with self._session() as db:
            entity = self.model(**record)
            db.add(entity)
            await db.commit()
            await db.refresh(entity)
            return entity

    async def delete(self, entity_id: int) -> bool:
        async with self._session() as db:
            entity = await db.get(self.model, entity_id)
            if entity is None:
                return False
            await db.delete(entity)
            await db.commit()
            return True


@asynccontextmanager
async def unit_of_work(session_factory: async_sessionmaker) -> AsyncIterator[AsyncSession]:
    """
    One transaction for a command: the entity update and its audit row are
    committed together or not at all.
    """
    try:
        async with session_factory() as db:
            async with db.begin():
                yield db
    except SQLAlchemyError as e:
        logger.exception("Unit of work rolled back")
        raise StoreError(f"Transaction failed: {e}") from e

"""Remote data source access.

The dashboard treats the relational store as a set of named record
collections. Every accessor speaks plain ``dict`` rows keyed by the remote
(snake_case) column names; translating them into the in-memory shapes is the
job of :mod:`dreamrent.mappers`.

Writes performed through :class:`SQLDataSource` are published on a
per-collection change feed, which is what the realtime deal board listens to.
"""

import abc
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .errors import RemoteError
from .models import COLLECTIONS
from .signals import Signal, Subscription

Row = Dict[str, Any]


class ChangeType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class ChangeEvent:
    """A single change delivered by the change feed of a collection."""

    type: ChangeType
    collection: str
    new: Optional[Row] = None
    old: Optional[Row] = None


class DataSource(abc.ABC):
    """Generic access to the remote record collections.

    Implementations raise :class:`~dreamrent.errors.RemoteError` when the
    store cannot be reached or rejects an operation.
    """

    @abc.abstractmethod
    async def list(
        self, collection: str, order_by: Optional[str] = None, descending: bool = False
    ) -> List[Row]:
        """Return every row of ``collection``, optionally ordered."""

    @abc.abstractmethod
    async def get(self, collection: str, record_id: str) -> Optional[Row]:
        """Return the row with primary key ``record_id`` or ``None``."""

    @abc.abstractmethod
    async def find(
        self,
        collection: str,
        equals: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
        match_any: bool = False,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Row]:
        """Return rows matching equality and case-insensitive substring filters.

        Filters are combined with AND, or with OR when ``match_any`` is set.
        """

    @abc.abstractmethod
    async def insert(self, collection: str, row: Row) -> Row:
        """Insert ``row`` and return the stored row."""

    @abc.abstractmethod
    async def update(self, collection: str, record_id: str, changes: Row) -> Optional[Row]:
        """Apply ``changes`` to one row and return it, ``None`` when missing."""

    @abc.abstractmethod
    async def upsert(self, collection: str, row: Row) -> Row:
        """Insert ``row`` or update the existing row with the same id."""

    @abc.abstractmethod
    async def delete(self, collection: str, record_id: str) -> bool:
        """Delete one row; return whether it existed."""

    @abc.abstractmethod
    async def delete_where(self, collection: str, column: str, values: Iterable[Any]) -> int:
        """Delete rows whose ``column`` is in ``values``; return the count."""

    @abc.abstractmethod
    async def update_where(
        self, collection: str, column: str, values: Iterable[Any], changes: Row
    ) -> int:
        """Update rows whose ``column`` is in ``values``; return the count."""

    @abc.abstractmethod
    def subscribe(
        self, collection: str, callback: Callable[[ChangeEvent], Any]
    ) -> Subscription:
        """Deliver every change of ``collection`` to ``callback``."""


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLDataSource(DataSource):
    """:class:`DataSource` backed by an async SQLAlchemy session factory."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker
        self._feeds: Dict[str, Signal[ChangeEvent]] = {}

    def _model(self, collection: str):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise RemoteError(f"Unknown collection: {collection}") from None

    @staticmethod
    def _column(model, name: str):
        if name not in model.__table__.columns:
            raise RemoteError(f"Unknown column {model.__tablename__}.{name}")
        return getattr(model, name)

    @staticmethod
    def _to_row(obj) -> Row:
        return {column.name: getattr(obj, column.name) for column in obj.__table__.columns}

    @staticmethod
    def _assign(obj, changes: Row) -> None:
        columns = obj.__table__.columns
        for key, value in changes.items():
            if key in columns and key != "id":
                setattr(obj, key, value)

    @asynccontextmanager
    async def _session(self, operation: str, collection: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessionmaker() as session:
                yield session
        except SQLAlchemyError as exc:
            raise RemoteError(f"{operation} on {collection} failed: {exc}") from exc

    async def _publish(self, event: ChangeEvent) -> None:
        feed = self._feeds.get(event.collection)
        if feed is not None:
            await feed.emit(event)

    async def list(self, collection, order_by=None, descending=False):
        return await self.find(collection, order_by=order_by, descending=descending)

    async def get(self, collection, record_id):
        model = self._model(collection)
        async with self._session("get", collection) as session:
            obj = await session.get(model, record_id)
            return self._to_row(obj) if obj is not None else None

    async def find(
        self,
        collection,
        equals=None,
        ilike=None,
        match_any=False,
        order_by=None,
        descending=False,
    ):
        model = self._model(collection)
        clauses = [
            self._column(model, name) == value for name, value in (equals or {}).items()
        ]
        clauses += [
            self._column(model, name).ilike(f"%{_escape_like(value)}%", escape="\\")
            for name, value in (ilike or {}).items()
        ]
        stmt = select(model)
        if clauses:
            stmt = stmt.where(or_(*clauses) if match_any else and_(*clauses))
        if order_by:
            column = self._column(model, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        async with self._session("find", collection) as session:
            result = await session.scalars(stmt)
            return [self._to_row(obj) for obj in result.all()]

    async def insert(self, collection, row):
        model = self._model(collection)
        async with self._session("insert", collection) as session:
            obj = model()
            if row.get("id"):
                obj.id = row["id"]
            self._assign(obj, row)
            session.add(obj)
            await session.commit()
            await session.refresh(obj)
            stored = self._to_row(obj)
        await self._publish(ChangeEvent(ChangeType.CREATED, collection, new=stored))
        return stored

    async def update(self, collection, record_id, changes):
        model = self._model(collection)
        async with self._session("update", collection) as session:
            obj = await session.get(model, record_id)
            if obj is None:
                return None
            old = self._to_row(obj)
            self._assign(obj, changes)
            await session.commit()
            await session.refresh(obj)
            stored = self._to_row(obj)
        await self._publish(ChangeEvent(ChangeType.UPDATED, collection, new=stored, old=old))
        return stored

    async def upsert(self, collection, row):
        if row.get("id") and await self.get(collection, row["id"]) is not None:
            return await self.update(collection, row["id"], row)
        return await self.insert(collection, row)

    async def delete(self, collection, record_id):
        model = self._model(collection)
        async with self._session("delete", collection) as session:
            obj = await session.get(model, record_id)
            if obj is None:
                return False
            old = self._to_row(obj)
            await session.delete(obj)
            await session.commit()
        await self._publish(ChangeEvent(ChangeType.DELETED, collection, old=old))
        return True

    async def delete_where(self, collection, column, values):
        model = self._model(collection)
        values = list(values)
        if not values:
            return 0
        async with self._session("delete_where", collection) as session:
            result = await session.scalars(
                select(model).where(self._column(model, column).in_(values))
            )
            objects = result.all()
            removed = [self._to_row(obj) for obj in objects]
            for obj in objects:
                await session.delete(obj)
            await session.commit()
        for old in removed:
            await self._publish(ChangeEvent(ChangeType.DELETED, collection, old=old))
        return len(removed)

    async def update_where(self, collection, column, values, changes):
        model = self._model(collection)
        values = list(values)
        if not values:
            return 0
        events = []
        async with self._session("update_where", collection) as session:
            result = await session.scalars(
                select(model).where(self._column(model, column).in_(values))
            )
            objects = result.all()
            for obj in objects:
                old = self._to_row(obj)
                self._assign(obj, changes)
                events.append((obj, old))
            await session.commit()
            for obj, _ in events:
                await session.refresh(obj)
            events = [(self._to_row(obj), old) for obj, old in events]
        for new, old in events:
            await self._publish(ChangeEvent(ChangeType.UPDATED, collection, new=new, old=old))
        return len(events)

    def subscribe(self, collection, callback):
        self._model(collection)
        feed = self._feeds.setdefault(collection, Signal(f"{collection}_changes"))
        return feed.subscribe(callback)

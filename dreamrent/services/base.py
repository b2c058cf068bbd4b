"""Shared plumbing of the entity services.

A service owns one collection of the remote data source and the entity
cache in front of it. Reads go through the cache; writes go to the data
source and invalidate the cache on success. Data source failures are logged
and reported as ``None``/``False``/``[]`` so routers can answer without
handling exceptions.
"""

from typing import Any, Dict, Generic, Iterable, List, Mapping, Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from ..cache import CachePolicy, EntityCache
from ..clock import Clock
from ..datasource import DataSource, Row
from ..errors import RemoteError
from ..mappers import RecordMapper
from ..storage import KeyValueStore

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class RecordService(Generic[T]):
    """CRUD over one collection with a stale-while-revalidate list cache.

    Args:
        source: Remote data source.
        store: Key/value store holding the cache entry.
        clock: Time source for cache expiry.
        policy: Cache freshness and size limits.
    """

    kind: str
    collection: str
    mapper: RecordMapper
    order_by: Optional[str] = "created_at"
    descending: bool = True

    def __init__(
        self,
        source: DataSource,
        store: KeyValueStore,
        clock: Clock,
        policy: CachePolicy,
    ):
        self.source = source
        self.cache: EntityCache[T] = EntityCache(
            self.kind,
            self.mapper.model,
            store,
            self.fetch_all,
            clock,
            policy,
            defaults=self.defaults(),
        )

    def defaults(self):
        """Return a factory of hard-coded records, if the kind has any."""
        return None

    def parse(self, row: Row) -> T:
        return self.mapper.parse(row)

    def parse_valid(self, row: Optional[Row]) -> Optional[T]:
        """Parse ``row``, logging and dropping rows that fail validation."""
        if row is None:
            return None
        try:
            return self.parse(row)
        except ValidationError as exc:
            logger.error(
                f"{self.kind}_row_invalid",
                id=row.get("id"),
                errors=exc.error_count(),
                error=str(exc),
            )
            return None

    def parse_rows(self, rows: Iterable[Row]) -> List[T]:
        return [record for record in map(self.parse_valid, rows) if record is not None]

    async def list_rows(self) -> List[Row]:
        return await self.source.list(
            self.collection, order_by=self.order_by, descending=self.descending
        )

    async def fetch_all(self) -> List[T]:
        """Load the whole collection from the data source.

        Rows that do not validate are skipped.

        Raises:
            RemoteError: If the data source fails.
        """
        return self.parse_rows(await self.list_rows())

    async def get_all(self) -> List[T]:
        return await self.cache.get_list()

    async def get_by_id(self, record_id: str) -> Optional[T]:
        try:
            row = await self.source.get(self.collection, record_id)
        except RemoteError as exc:
            logger.error(f"{self.kind}_fetch_failed", id=record_id, error=str(exc))
            return None
        return self.parse_valid(row)

    async def find(self, **filters: Any) -> List[T]:
        try:
            rows = await self.source.find(
                self.collection,
                order_by=self.order_by,
                descending=self.descending,
                **filters,
            )
        except RemoteError as exc:
            logger.error(f"{self.kind}_find_failed", error=str(exc))
            return []
        return self.parse_rows(rows)

    async def create(self, values: Mapping[str, Any]) -> Optional[T]:
        try:
            row = await self.source.insert(self.collection, self.mapper.to_row(values))
        except RemoteError as exc:
            logger.error(f"{self.kind}_create_failed", error=str(exc))
            return None
        await self.cache.invalidate()
        return self.parse_valid(row)

    async def update(self, record_id: str, values: Mapping[str, Any]) -> Optional[T]:
        try:
            row = await self.source.update(
                self.collection, record_id, self.mapper.to_row(values)
            )
        except RemoteError as exc:
            logger.error(f"{self.kind}_update_failed", id=record_id, error=str(exc))
            return None
        if row is None:
            return None
        await self.cache.invalidate()
        return self.parse_valid(row)

    async def delete(self, record_id: str) -> bool:
        try:
            deleted = await self.source.delete(self.collection, record_id)
        except RemoteError as exc:
            logger.error(f"{self.kind}_delete_failed", id=record_id, error=str(exc))
            return False
        if deleted:
            await self.cache.invalidate()
        return deleted


def payload(model: BaseModel, partial: bool = False) -> Dict[str, Any]:
    """Return the attribute values of a request model.

    Partial payloads only carry the fields the caller actually sent.
    """
    return model.model_dump(mode="json", exclude_unset=partial)

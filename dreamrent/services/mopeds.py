"""Moped inventory.

Moped records embed base64 photos, so their cache entry is size-bounded:
oversized lists lose their photos first and are truncated next. Detail
views resolve single mopeds through a short-lived id index instead of
refetching the whole list.
"""

from typing import Iterable, List, Optional

import structlog

from .. import mappers
from ..cache import CachePolicy, LookupIndex
from ..clock import Clock
from ..datasource import DataSource
from ..errors import RemoteError
from ..schemas import Moped, MopedCreate, MopedUpdate
from ..storage import KeyValueStore
from .base import RecordService, payload

logger = structlog.get_logger(__name__)


class MopedService(RecordService[Moped]):
    kind = "mopeds"
    collection = "mopeds"
    mapper = mappers.MOPEDS
    order_by = "brand"
    descending = False

    def __init__(
        self,
        source: DataSource,
        store: KeyValueStore,
        clock: Clock,
        policy: CachePolicy,
        index_ttl: float = 60,
    ):
        super().__init__(source, store, clock, policy)
        self.index: LookupIndex[Moped] = LookupIndex(self.get_mopeds, clock, index_ttl)
        self.cache.on_refresh(self.index.rebuild)

    async def get_mopeds(self) -> List[Moped]:
        mopeds = await self.get_all()
        self.index.rebuild(mopeds)
        return mopeds

    async def get_moped_by_id(self, moped_id: str) -> Optional[Moped]:
        return await self.get_by_id(moped_id)

    async def get_moped_by_id_cached(self, moped_id: str) -> Optional[Moped]:
        """Resolve ``moped_id`` through the lookup index."""
        return await self.index.get(moped_id)

    async def find_moped_by_license_plate(self, license_plate: str) -> Optional[Moped]:
        plate = (license_plate or "").strip().lower()
        if not plate:
            return None
        for moped in await self.get_mopeds():
            if moped.license_plate.strip().lower() == plate:
                return moped
        return None

    async def add_moped(self, data: MopedCreate) -> Optional[Moped]:
        moped = await self.create(payload(data))
        if moped is not None:
            self.index.clear()
        return moped

    async def update_moped(self, moped_id: str, data: MopedUpdate) -> Optional[Moped]:
        moped = await self.update(moped_id, payload(data, partial=True))
        if moped is not None:
            self.index.clear()
        return moped

    async def delete_moped(self, moped_id: str) -> bool:
        deleted = await self.delete(moped_id)
        if deleted:
            self.index.clear()
        return deleted

    async def save_mopeds(self, mopeds: Iterable[Moped]) -> bool:
        """Write back a batch of edited mopeds, one update per record."""
        try:
            for moped in mopeds:
                values = moped.model_dump(mode="json", exclude={"id", "created_at"})
                await self.source.update(self.collection, moped.id, self.mapper.to_row(values))
        except RemoteError as exc:
            logger.error("mopeds_save_failed", error=str(exc))
            return False
        finally:
            await self.cache.invalidate()
            self.index.clear()
        return True

"""Service container assembled at startup and stored on ``app.state``."""

from dataclasses import dataclass
from typing import Optional

from .cache import CachePolicy
from .clock import Clock, SystemClock
from .core import Settings
from .datasource import DataSource
from .realtime import DealBoard
from .services.contacts import ContactService
from .services.deals import DealService
from .services.mopeds import MopedService
from .services.pipeline import PipelineService
from .services.users import UserService
from .session import Session
from .signals import Signals
from .storage import KeyValueStore


@dataclass
class Services:
    settings: Settings
    clock: Clock
    store: KeyValueStore
    source: DataSource
    signals: Signals
    users: UserService
    contacts: ContactService
    mopeds: MopedService
    deals: DealService
    pipeline: PipelineService
    session: Session
    board: DealBoard

    async def start(self) -> None:
        """Bootstrap the admin, restore the session and load the board."""
        await self.users.ensure_protected_admin()
        self.session.attach()
        await self.session.restore()
        self.board.load(await self.deals.get_deals())
        self.board.attach(self.source)

    async def stop(self) -> None:
        self.board.close()
        self.session.close()
        for cache in (
            self.users.cache,
            self.contacts.cache,
            self.mopeds.cache,
            self.deals.cache,
            self.pipeline.stages.cache,
            self.pipeline.fields.cache,
            self.pipeline.groups.cache,
        ):
            await cache.drain()


def build_services(
    settings: Settings,
    source: DataSource,
    store: KeyValueStore,
    clock: Optional[Clock] = None,
) -> Services:
    """Wire every service against one data source and key/value store."""
    clock = clock or SystemClock()
    signals = Signals()
    hot = CachePolicy(ttl=settings.HOT_CACHE_TTL_SECONDS)
    config = CachePolicy(ttl=settings.CONFIG_CACHE_TTL_SECONDS)
    sized = CachePolicy(
        ttl=settings.HOT_CACHE_TTL_SECONDS,
        max_items=settings.CACHE_MAX_ITEMS,
        max_bytes=settings.CACHE_MAX_BYTES,
        degraded_items=settings.CACHE_DEGRADED_ITEMS,
        strip_fields=("photo",),
    )

    users = UserService(source, store, clock, hot, signals, settings)
    contacts = ContactService(source, store, clock, sized)
    mopeds = MopedService(
        source, store, clock, sized, index_ttl=settings.LOOKUP_INDEX_TTL_SECONDS
    )
    deals = DealService(source, store, clock, hot, contacts)
    pipeline = PipelineService(source, store, clock, config, deals)
    return Services(
        settings=settings,
        clock=clock,
        store=store,
        source=source,
        signals=signals,
        users=users,
        contacts=contacts,
        mopeds=mopeds,
        deals=deals,
        pipeline=pipeline,
        session=Session(users, store, signals),
        board=DealBoard(),
    )

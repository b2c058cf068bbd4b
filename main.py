"""
Main application entry point for the Dream Rent dashboard.

This module initializes the FastAPI application, sets up middleware,
configures CORS, and wires the service container in the application
lifespan: the data source and key/value store are opened, the protected
administrator is bootstrapped, the operator session is restored, the live
deal board is attached to the deals change feed, and the login rate limiter
is initialized with a Redis backend (falling back to fakeredis).

Modules:
- FastAPI: Web framework
- CORSMiddleware: Middleware for handling CORS
- FastAPILimiter: Rate limiting
- redis.asyncio: Async Redis client
- fakeredis.aioredis: Fake Redis for testing/offline
- dreamrent.container: Service container
- dreamrent.auth, users, contacts, mopeds, deals, pipeline: Routers
- dreamrent.core: Application settings
"""

from contextlib import asynccontextmanager

import redis.asyncio as redis
import structlog
from fakeredis.aioredis import FakeRedis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi_limiter import FastAPILimiter
from redis.exceptions import RedisError

from dreamrent import contacts, deals, mopeds, pipeline, users
from dreamrent.auth import router as auth_router
from dreamrent.container import build_services
from dreamrent.core import get_settings
from dreamrent.database import create_engine, create_sessionmaker, create_tables
from dreamrent.datasource import SQLDataSource
from dreamrent.logging import RequestIdMiddleware, setup_logging
from dreamrent.storage import get_cache_client

settings = get_settings()
logger = structlog.get_logger(__name__)


async def init_rate_limiter() -> None:
    """
    Initialize the rate limiter with a Redis backend.

    Falls back to FakeRedis if Redis is unavailable (e.g., during tests or
    offline).
    """
    redis_client = redis.from_url(
        settings.REDIS_URL, encoding="utf-8", decode_responses=True
    )
    try:
        await FastAPILimiter.init(redis_client)
    except (RedisError, OSError) as exc:
        logger.warning("rate_limiter_using_fakeredis", error=str(exc))
        await redis_client.aclose()
        await FastAPILimiter.init(FakeRedis(decode_responses=True))


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    engine = create_engine(settings.DATABASE_URL)
    # Create tables (for development only)
    await create_tables(engine)
    store = await get_cache_client()
    source = SQLDataSource(create_sessionmaker(engine))
    services = build_services(settings, source, store)
    app.state.services = services
    await services.start()
    await init_rate_limiter()
    logger.info("dashboard_started", authenticated=services.session.is_authenticated)
    try:
        yield
    finally:
        await services.stop()
        await FastAPILimiter.close()
        await store.close()
        await engine.dispose()


# Initialize FastAPI application
app = FastAPI(title="Dream Rent Dashboard", lifespan=lifespan)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)

# Include routers for application areas
app.include_router(auth_router)
app.include_router(users.router)
app.include_router(contacts.router)
app.include_router(mopeds.router)
app.include_router(deals.router)
app.include_router(pipeline.router)


@app.get("/")
def root():
    """
    Root endpoint for the API.

    Returns a simple JSON message directing users to the Swagger UI.

    Returns:
        dict: JSON message with information about the API
    """
    return {"msg": "Dream Rent Dashboard API. Visit /docs for Swagger UI"}

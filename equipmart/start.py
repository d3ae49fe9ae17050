"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from equipmart.config import settings
from equipmart.db import init_db
from equipmart.routers import health, search
from equipmart.services.popularity import PopularityTracker
from equipmart.services.search import SearchService
from equipmart.services.store import BeanieListingStore
from equipmart.tasks.scheduler import scheduler, start_scheduler
from equipmart.utils.cache import CacheService
from equipmart.utils.logging_config import setup_logging
from equipmart.utils.middleware import setup_middleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Starting application")

    # Initialize database first
    client = await init_db()

    store = BeanieListingStore()
    cache = CacheService()
    tracker = PopularityTracker(cache, store)
    app.state.cache = cache
    app.state.tracker = tracker
    app.state.search_service = SearchService(store, cache, tracker)

    start_scheduler(tracker)
    yield
    logger.info("Shutting down application")

    scheduler.shutdown()
    await app.state.search_service.drain()
    await cache.close()
    client.close()


app = FastAPI(
    title="Equipmart Search",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
setup_middleware(app)

# Include routers
app.include_router(search.router)
app.include_router(health.router)

"""
Pytest configuration and fixtures.
"""
from datetime import datetime, timedelta

import fakeredis
import pytest
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr

from equipmart.config import settings
from equipmart.services.pagination import CursorCodec
from equipmart.services.popularity import PopularityTracker
from equipmart.services.search import SearchService
from equipmart.utils.cache import CacheService

from tests.fakes import BASE_TIME, FakeListingStore, category_tree, sample_listings

ADMIN_KEY = "test-admin-key"


class FakeClock:
    """Settable clock passed wherever the code asks for the current time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(BASE_TIME)


@pytest.fixture
async def redis():
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def cache(redis):
    return CacheService(redis)


@pytest.fixture
def listings():
    return sample_listings()


@pytest.fixture
def store(listings):
    return FakeListingStore(listings, category_tree())


@pytest.fixture
def tracker(cache, store, clock):
    return PopularityTracker(cache, store, clock=clock)


@pytest.fixture
def codec(clock):
    return CursorCodec("test-cursor-secret", clock=clock)


@pytest.fixture
def make_service(cache, tracker, codec):
    """Factory fixture building a SearchService over a given store."""

    def _make_service(store):
        return SearchService(store, cache, tracker, codec=codec)

    return _make_service


@pytest.fixture
def service(make_service, store):
    return make_service(store)


@pytest.fixture
def admin_key(monkeypatch):
    monkeypatch.setattr(settings.api, "api_key", SecretStr(ADMIN_KEY))
    return ADMIN_KEY


@pytest.fixture
async def client(service, tracker, cache):
    """HTTP client for the app, wired to the test services."""
    from equipmart.start import app

    app.state.cache = cache
    app.state.tracker = tracker
    app.state.search_service = service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client

    await service.drain()

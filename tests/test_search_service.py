import logging
from decimal import Decimal

import fakeredis
import pytest
from pydantic import SecretStr

from equipmart.config import DEFAULT_CURSOR_SECRET, settings
from equipmart.schemas.search import (SearchFilters, SearchOptions, SortKey,
                                      SortOrder)
from equipmart.services.popularity import PopularityTracker
from equipmart.services.search import SearchService
from equipmart.utils.cache import CacheService
from tests.fakes import (FailingListingStore, FakeListingStore, category_tree,
                         live_ids, make_listing)

# Live listings in created_at desc order (l-10 and l-11 share a timestamp)
NEWEST_FIRST = ["l-01", "l-02", "l-03", "l-04", "l-05", "l-06", "l-11", "l-10", "l-12"]


def ids(listings):
    return [listing.id for listing in listings]


async def scroll_all(service, filters, sort_by, sort_order, limit):
    seen = []
    cursor = None
    for _ in range(50):
        page = await service.search_with_cursor(
            filters, cursor=cursor, limit=limit, sort_by=sort_by, sort_order=sort_order
        )
        seen.extend(ids(page.data))
        if not page.has_next_page:
            return seen
        cursor = page.next_cursor
    raise AssertionError("cursor pagination did not terminate")


async def test_industrial_mixer_scenario(make_service):
    store = FakeListingStore(
        [
            make_listing("live-mixer", "Industrial Mixer", price=Decimal("250000")),
            make_listing("sold-mixer", "Industrial Mixer", price=Decimal("200000"), status="SOLD"),
        ],
        category_tree(),
    )
    service = make_service(store)

    result = await service.search(
        SearchFilters(query="mixer", min_price=100000, max_price=300000),
        SearchOptions(page=1, limit=20, sort_by=SortKey.RELEVANCE),
    )

    assert ids(result.listings) == ["live-mixer"]
    assert result.total == 1
    assert result.total_pages == 1
    assert result.listings[0].relevance_score is not None
    await service.drain()


async def test_results_are_live_unless_inactive_included(service, listings):
    result = await service.search(SearchFilters(), SearchOptions(limit=100))
    assert set(ids(result.listings)) == set(live_ids(listings))
    assert all(listing.status == "LIVE" and listing.is_active for listing in result.listings)

    everything = await service.search(SearchFilters(), SearchOptions(limit=100, include_inactive=True))
    assert everything.total == len(listings)
    await service.drain()


async def test_category_search_is_transitive(service):
    result = await service.search(SearchFilters(category_id="cat-equipment"), SearchOptions(limit=100))
    assert set(ids(result.listings)) == {"l-01", "l-02", "l-03", "l-04", "l-05", "l-10", "l-11", "l-12"}
    await service.drain()


async def test_offset_pages_and_facets(service):
    options = dict(limit=4, sort_by=SortKey.CREATED_AT, sort_order=SortOrder.DESC)
    pages = [await service.search(SearchFilters(), SearchOptions(page=page, **options)) for page in (1, 2, 3)]

    assert [listing_id for page in pages for listing_id in ids(page.listings)] == NEWEST_FIRST
    assert [page.total_pages for page in pages] == [3, 3, 3]
    assert pages[0].facets is not None
    assert pages[1].facets is None and pages[2].facets is None
    await service.drain()


async def test_text_search_is_ranked(service):
    result = await service.search(SearchFilters(query="mixer"), SearchOptions())

    scores = [listing.relevance_score for listing in result.listings]
    assert scores == sorted(scores, reverse=True)
    assert sorted(ids(result.listings)) == ["l-01", "l-02", "l-10"]
    # title and description both mention "mixer"
    assert ids(result.listings)[0] == "l-02"
    await service.drain()


async def test_cached_result_is_identical_and_skips_store(service, store):
    filters = SearchFilters(query="mixer")
    options = SearchOptions()

    first = await service.search(filters, options)
    await service.drain()
    calls = len(store.find_calls)
    second = await service.search(filters, options)
    await service.drain()

    assert len(store.find_calls) == calls
    assert second.listings == first.listings
    assert second.facets == first.facets
    assert second.model_dump_json() == first.model_dump_json()


async def test_cache_hits_are_still_tracked(service, tracker):
    for _ in range(2):
        await service.search(SearchFilters(query="Mixer"), SearchOptions())
        await service.drain()

    popular = await tracker.get_popular_searches()
    assert [(item.query, item.count) for item in popular] == [("mixer", 2)]


async def test_searches_without_text_are_not_tracked(service, tracker):
    await service.search(SearchFilters(city="Houston"), SearchOptions())
    await service.drain()
    assert await tracker.get_popular_searches() == []


@pytest.mark.parametrize(
    "sort_by, sort_order",
    [
        (SortKey.CREATED_AT, SortOrder.DESC),
        (SortKey.CREATED_AT, SortOrder.ASC),
        (SortKey.PRICE, SortOrder.ASC),
        (SortKey.VIEWS, SortOrder.DESC),
        (SortKey.SAVES, SortOrder.ASC),
        (SortKey.RELEVANCE, SortOrder.DESC),
    ],
)
@pytest.mark.parametrize("limit", [1, 2, 4, 20])
async def test_cursor_pagination_visits_every_listing_once(service, listings, sort_by, sort_order, limit):
    seen = await scroll_all(service, SearchFilters(), sort_by, sort_order, limit)

    assert len(seen) == len(set(seen))
    assert set(seen) == set(live_ids(listings))
    await service.drain()


async def test_cursor_pagination_with_text_query(service):
    seen = await scroll_all(service, SearchFilters(query="mixer"), SortKey.RELEVANCE, SortOrder.DESC, 2)
    assert sorted(seen) == ["l-01", "l-02", "l-10"]
    await service.drain()


async def test_cursor_page_shape(service):
    first = await service.search_with_cursor(SearchFilters(), limit=3)
    assert ids(first.data) == NEWEST_FIRST[:3]
    assert first.limit == 3
    assert first.has_next_page
    assert not first.has_previous_page
    assert first.next_cursor and first.previous_cursor

    second = await service.search_with_cursor(SearchFilters(), cursor=first.next_cursor, limit=3)
    assert ids(second.data) == NEWEST_FIRST[3:6]
    assert second.has_previous_page

    last = await service.search_with_cursor(SearchFilters(), cursor=second.next_cursor, limit=3)
    assert ids(last.data) == NEWEST_FIRST[6:]
    assert not last.has_next_page
    assert last.next_cursor is None


async def test_expired_cursor_restarts_from_the_beginning(service, codec, clock):
    first = await service.search_with_cursor(SearchFilters(), limit=3, sort_by=SortKey.CREATED_AT)
    clock.advance(hours=25)

    assert codec.decode(first.next_cursor) is None
    again = await service.search_with_cursor(
        SearchFilters(), cursor=first.next_cursor, limit=3, sort_by=SortKey.CREATED_AT
    )
    assert ids(again.data) == ids(first.data)
    assert not again.has_previous_page


async def test_cursor_for_another_sort_key_is_ignored(service):
    first = await service.search_with_cursor(SearchFilters(), limit=3, sort_by=SortKey.PRICE)
    page = await service.search_with_cursor(
        SearchFilters(), cursor=first.next_cursor, limit=3, sort_by=SortKey.CREATED_AT
    )
    assert ids(page.data) == NEWEST_FIRST[:3]
    assert not page.has_previous_page


async def test_garbage_cursor_is_ignored(service):
    page = await service.search_with_cursor(SearchFilters(), cursor="garbage", limit=3)
    assert ids(page.data) == NEWEST_FIRST[:3]


async def test_store_failure_propagates(make_service):
    service = make_service(FailingListingStore(categories=category_tree()))
    with pytest.raises(RuntimeError):
        await service.search(SearchFilters(), SearchOptions())
    with pytest.raises(RuntimeError):
        await service.search_with_cursor(SearchFilters())


async def test_search_survives_redis_outage(store, codec, clock):
    server = fakeredis.FakeServer()
    server.connected = False
    cache = CacheService(fakeredis.FakeAsyncRedis(server=server, decode_responses=True))
    service = SearchService(store, cache, PopularityTracker(cache, store, clock=clock), codec=codec)

    result = await service.search(SearchFilters(query="excavator"), SearchOptions())
    await service.drain()

    assert set(ids(result.listings)) == {"l-03", "l-04", "l-12"}


async def test_search_suggestions(service, tracker):
    for query in ["forklift", "forklift", "forklift parts", "mixer"]:
        await tracker.track_search(query)

    assert await service.get_search_suggestions("Fork", 5) == ["forklift", "forklift parts", "Forklifts"]
    assert await service.get_search_suggestions("fork", 1) == ["forklift"]
    assert await service.get_search_suggestions("excav", 5) == ["Excavators", "Mini Excavators"]
    assert await service.get_search_suggestions("  ", 5) == []


async def test_clear_search_cache(service, redis):
    await service.search(SearchFilters(query="mixer"), SearchOptions())
    await service.search(SearchFilters(query="crane"), SearchOptions())
    await service.drain()
    await redis.set("analytics:popular_searches:marker", "1")

    assert await service.clear_search_cache() == 2
    assert await redis.keys("search:*") == []
    assert await redis.exists("analytics:popular_searches:marker") == 1


def test_default_cursor_secret_is_reported(store, cache, tracker, caplog):
    defaults = settings.search.model_copy(update={"cursor_secret": SecretStr(DEFAULT_CURSOR_SECRET)})
    with caplog.at_level(logging.WARNING, logger="equipmart.services.search"):
        SearchService(store, cache, tracker, search_settings=defaults)
    assert "CURSOR_SECRET is not set" in caplog.text

    caplog.clear()
    configured = settings.search.model_copy(update={"cursor_secret": SecretStr("a-real-secret")})
    with caplog.at_level(logging.WARNING, logger="equipmart.services.search"):
        service = SearchService(store, cache, tracker, search_settings=configured)
    assert "CURSOR_SECRET" not in caplog.text
    assert service.codec.decode(service.codec.encode(SortKey.PRICE, "10", "l-01")) is not None

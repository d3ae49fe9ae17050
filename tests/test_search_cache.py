from datetime import datetime, timezone
from decimal import Decimal

import pytest

from equipmart.schemas.listings import Condition, Listing
from equipmart.schemas.search import (SearchFacets, SearchFilters,
                                      SearchOptions, SearchResult, SortKey)
from equipmart.services.search_cache import SearchCache


@pytest.fixture
def results_cache(cache):
    return SearchCache(cache, ttl=300)


def sample_result():
    return SearchResult(
        listings=[
            Listing(
                id="l-01",
                title="Industrial Mixer",
                category_id="cat-mixers",
                condition=Condition.GOOD,
                price=Decimal("250000.50"),
                created_at=datetime(2026, 3, 10, 12, tzinfo=timezone.utc),
                relevance_score=17.5,
            )
        ],
        total=1,
        page=1,
        total_pages=1,
        facets=SearchFacets(),
    )


def test_key_is_deterministic_and_normalized(results_cache):
    options = SearchOptions()
    first = results_cache.make_key(SearchFilters(query="Industrial  Mixer", min_price=100), options)
    second = results_cache.make_key(SearchFilters(min_price=100, query="industrial mixer"), options)

    assert first == second
    assert first.startswith("search:")
    assert len(first) == len("search:") + 64


def test_key_depends_on_filters_and_options(results_cache):
    filters = SearchFilters(query="mixer")
    base = results_cache.make_key(filters, SearchOptions())

    assert results_cache.make_key(filters, SearchOptions(page=2)) != base
    assert results_cache.make_key(filters, SearchOptions(sort_by=SortKey.PRICE)) != base
    assert results_cache.make_key(SearchFilters(query="mixer", city="Dallas"), SearchOptions()) != base


async def test_put_then_get_returns_identical_result(results_cache, redis):
    key = results_cache.make_key(SearchFilters(query="mixer"), SearchOptions())
    result = sample_result()

    assert await results_cache.put(key, result)
    cached = await results_cache.get(key)

    assert cached == result
    assert cached.listings[0].price == Decimal("250000.50")
    assert 0 < await redis.ttl(key) <= 300


async def test_corrupt_entry_is_a_miss(results_cache, redis):
    await redis.set("search:broken", "{not json")
    assert await results_cache.get("search:broken") is None
    assert await results_cache.get("search:missing") is None


async def test_clear_is_confined_to_search_namespace(results_cache, redis):
    await redis.set("search:aaa", "1")
    await redis.set("search:bbb", "1")
    await redis.set("analytics:popular_searches", "1")

    assert await results_cache.clear("*") == 2
    assert await redis.exists("analytics:popular_searches") == 1


def test_namespaced_patterns(results_cache):
    assert results_cache.namespaced(None) == "search:*"
    assert results_cache.namespaced("search:abc*") == "search:abc*"
    assert results_cache.namespaced("abc*") == "search:abc*"

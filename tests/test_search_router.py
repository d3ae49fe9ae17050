import pytest

from equipmart.start import app
from tests.fakes import FailingListingStore, category_tree


def error_code(response):
    return response.json()["error"]["code"]


async def test_search_envelope(client):
    response = await client.get("/search", params={"q": "mixer", "limit": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["total"] == 3
    assert data["totalPages"] == 2
    assert data["page"] == 1
    assert len(data["listings"]) == 2
    assert data["listings"][0]["relevanceScore"] > 0
    assert "categoryId" in data["listings"][0]
    assert {"categories", "conditions", "priceRanges", "locations"} <= set(data["facets"])


async def test_search_filters_from_query_string(client):
    response = await client.get(
        "/search", params={"categoryId": "cat-construction", "sortBy": "price", "sortOrder": "asc"}
    )

    listings = response.json()["data"]["listings"]
    assert [listing["id"] for listing in listings] == ["l-12", "l-04", "l-05", "l-03"]


async def test_unparseable_filters_do_not_fail(client):
    response = await client.get("/search", params={"minPrice": "cheap", "condition": "BROKEN"})
    assert response.status_code == 200
    assert response.json()["data"]["total"] == 9


@pytest.mark.parametrize(
    "params, code",
    [
        ({"page": "0"}, "INVALID_PAGE"),
        ({"limit": "101"}, "INVALID_LIMIT"),
        ({"limit": "abc"}, "INVALID_LIMIT"),
        ({"sortBy": "distance"}, "INVALID_SORT_BY"),
        ({"sortOrder": "sideways"}, "INVALID_SORT_ORDER"),
    ],
)
async def test_invalid_search_parameters(client, params, code):
    response = await client.get("/search", params=params)
    assert response.status_code == 400
    assert error_code(response) == code


async def test_include_inactive_requires_admin(client, admin_key):
    response = await client.get("/search", params={"includeInactive": "true"})
    assert response.status_code == 403
    assert error_code(response) == "FORBIDDEN"

    response = await client.get(
        "/search", params={"includeInactive": "true", "limit": 100}, headers={"X-Key": admin_key}
    )
    assert response.status_code == 200
    assert response.json()["data"]["total"] == 12


async def test_status_override_is_admin_only(client, admin_key):
    response = await client.get("/search", params={"status": "SOLD"})
    assert all(listing["status"] == "LIVE" for listing in response.json()["data"]["listings"])

    response = await client.get(
        "/search", params={"status": "SOLD", "includeInactive": "true"}, headers={"X-Key": admin_key}
    )
    assert [listing["id"] for listing in response.json()["data"]["listings"]] == ["l-07"]


async def test_store_failure_is_a_generic_500(client, make_service):
    app.state.search_service = make_service(FailingListingStore(categories=category_tree()))

    response = await client.get("/search", params={"q": "mixer"})

    assert response.status_code == 500
    assert response.json() == {"error": {"code": "SEARCH_FAILED", "message": "Search request failed"}}

    response = await client.get("/search/scroll")
    assert response.status_code == 500
    assert error_code(response) == "SCROLL_SEARCH_FAILED"


async def test_scroll(client):
    first = (await client.get("/search/scroll", params={"limit": 4})).json()["data"]
    assert [listing["id"] for listing in first["data"]] == ["l-01", "l-02", "l-03", "l-04"]
    assert first["hasNextPage"] is True
    assert first["hasPreviousPage"] is False

    second = (
        await client.get("/search/scroll", params={"limit": 4, "cursor": first["nextCursor"]})
    ).json()["data"]
    assert [listing["id"] for listing in second["data"]] == ["l-05", "l-06", "l-11", "l-10"]
    assert second["hasPreviousPage"] is True


async def test_suggestions(client, tracker):
    await tracker.track_search("forklift")

    response = await client.get("/search/suggestions", params={"q": "fork"})
    assert response.json()["data"] == {"query": "fork", "suggestions": ["forklift", "Forklifts"]}

    response = await client.get("/search/suggestions")
    assert response.status_code == 400
    assert error_code(response) == "MISSING_QUERY"

    response = await client.get("/search/suggestions", params={"q": "fork", "limit": "21"})
    assert error_code(response) == "INVALID_LIMIT"


async def test_clear_search_cache_requires_admin(client, service, admin_key):
    await client.get("/search", params={"q": "mixer"})
    await service.drain()

    response = await client.delete("/search/cache")
    assert response.status_code == 403

    response = await client.delete("/search/cache", headers={"X-Key": "wrong"})
    assert response.status_code == 403

    response = await client.delete("/search/cache", headers={"X-Key": admin_key})
    assert response.status_code == 200
    assert response.json()["data"] == {"pattern": "search:*", "deleted": 1}


async def test_admin_endpoints_reject_when_no_key_is_configured(client):
    response = await client.delete("/search/cache", headers={"X-Key": ""})
    assert response.status_code == 403


async def test_popular_and_trending(client, service):
    for query in ["forklift", "forklift", "crane"]:
        await client.get("/search", params={"q": query})
        await service.drain()

    popular = (await client.get("/search/popular")).json()["data"]["popularSearches"]
    assert [(item["query"], item["count"]) for item in popular] == [("forklift", 2), ("crane", 1)]

    trending = (await client.get("/search/trending", params={"limit": 1})).json()["data"]["trendingQueries"]
    assert [item["query"] for item in trending] == ["forklift"]

    response = await client.get("/search/popular", params={"limit": "51"})
    assert error_code(response) == "INVALID_LIMIT"


async def test_analytics(client, tracker):
    await tracker.track_search("mixer", category_id="cat-mixers")

    response = await client.get("/search/analytics")

    data = response.json()["data"]
    assert data["popularSearches"][0]["query"] == "mixer"
    assert data["popularCategories"][0]["categoryId"] == "cat-mixers"
    assert data["searchVolume"]["today"] == 1


async def test_history_and_recommendations(client, service):
    await client.get("/search", params={"q": "crane"})
    await client.get("/search", params={"q": "forklift"}, headers={"X-User-Id": "u-1"})
    await service.drain()

    response = await client.get("/search/history")
    assert response.status_code == 400
    assert error_code(response) == "MISSING_USER"

    history = (await client.get("/search/history", headers={"X-User-Id": "u-1"})).json()["data"]["history"]
    assert [entry["query"] for entry in history] == ["forklift"]

    response = await client.get("/search/recommendations", headers={"X-User-Id": "u-1"})
    assert response.json()["data"]["recommendations"] == ["crane"]


async def test_track_category_view(client, tracker, redis):
    response = await client.post("/search/categories/cat-forklifts/views", headers={"X-User-Id": "u-1"})

    assert response.status_code == 200
    assert response.json()["data"] == {"categoryId": "cat-forklifts", "tracked": True}
    assert await redis.zscore("analytics:user_categories:u-1", "cat-forklifts") == 1


async def test_clear_analytics(client, tracker, admin_key):
    await tracker.track_search("mixer")

    response = await client.delete("/search/analytics", params={"type": "searches"})
    assert response.status_code == 403

    response = await client.delete("/search/analytics", params={"type": "everything"}, headers={"X-Key": admin_key})
    assert response.status_code == 400
    assert error_code(response) == "INVALID_ANALYTICS_TYPE"

    response = await client.delete("/search/analytics", params={"type": "searches"}, headers={"X-Key": admin_key})
    assert response.status_code == 200
    assert response.json()["data"]["scope"] == "searches"
    assert await tracker.get_popular_searches() == []


async def test_health(client, monkeypatch):
    async def healthy():
        return True

    monkeypatch.setattr("equipmart.routers.health.check_connection", healthy)
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert {check["name"] for check in body["checks"]} == {"database", "cache"}


async def test_health_reports_database_outage(client, monkeypatch):
    async def unhealthy():
        return False

    monkeypatch.setattr("equipmart.routers.health.check_connection", unhealthy)
    response = await client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"

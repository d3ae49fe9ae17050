"""FastAPI dependencies giving endpoints access to the shared services."""

from fastapi import Request

from .services.popularity import PopularityTracker
from .services.search import SearchService
from .utils.cache import CacheService


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def get_tracker(request: Request) -> PopularityTracker:
    return request.app.state.tracker


def get_cache(request: Request) -> CacheService:
    return request.app.state.cache

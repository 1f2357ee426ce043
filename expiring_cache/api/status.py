from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query

from expiring_cache.schemas import CacheEventsResponse, CacheStatusResponse, CacheSummary
from expiring_cache.status_service import get_status_service

router = APIRouter(prefix="/api/cache")


@router.get("/status", response_model=CacheStatusResponse)
def cache_status():
    service = get_status_service()
    return CacheStatusResponse(caches=[CacheSummary(**item) for item in service.list_caches()])


@router.get("/status/{cache_name}", response_model=CacheSummary)
def cache_status_detail(cache_name: str):
    item = get_status_service().get_cache(cache_name)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Cache '{cache_name}' not found")
    return CacheSummary(**item)


@router.get("/status/{cache_name}/events", response_model=CacheEventsResponse)
def cache_events(
    cache_name: str,
    cursor: int = Query(default=0, ge=0),
    limit: int = Query(default=200, ge=0, le=1000),
):
    return get_status_service().get_events(cache_name, cursor=cursor, limit=limit)


@router.post("/status/{cache_name}/events/clear")
def cache_events_clear(cache_name: str) -> dict[str, Any]:
    get_status_service().clear_events(cache_name)
    return {"ok": True}

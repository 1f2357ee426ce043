from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CacheSummary(BaseModel):
    name: str
    sweep_active: bool = False
    hits: int = 0
    misses: int = 0
    expired: int = 0
    reclaimed: int = 0
    evicted: int = 0
    sweeps: int = 0
    cleared_total: int = Field(default=0, description="Entries removed by background sweeps")
    last_sweep_ms: Optional[float] = None
    updated_at: Optional[str] = None


class CacheStatusResponse(BaseModel):
    caches: list[CacheSummary]


class CacheEventItem(BaseModel):
    id: int
    time: str
    type: str
    key: Optional[str] = None
    cleared: int = 0
    duration_ms: Optional[float] = None


class CacheEventsResponse(BaseModel):
    items: list[CacheEventItem]
    cursor: int

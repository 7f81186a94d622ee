import json
from typing import Dict, Optional

import httpx
import redis.asyncio as aioredis

from .base import PriceCacheClient, CacheEntry, Source
from .postgrest import table_url, service_headers, async_client
from ..core.config import settings
from ..core.utils import isoformat, parse_timestamp

def _entry_to_row(entry: CacheEntry) -> dict:
    return {
        "cp": entry.postal_code,
        "price_m2": entry.price_per_area,
        "source": entry.source.value,
        "fetched_at": isoformat(entry.fetched_at),
        "ttl_days": entry.ttl_days,
    }

def _row_source(value) -> Source:
    # Older rows carry provider names such as "openai"
    try:
        return Source(value)
    except ValueError:
        return Source.EXTERNAL_PROVIDER

def _row_to_entry(row: dict) -> CacheEntry:
    return CacheEntry(
        postal_code=str(row["cp"]),
        price_per_area=float(row["price_m2"]),
        source=_row_source(row.get("source")),
        fetched_at=parse_timestamp(row["fetched_at"]),
        ttl_days=int(row.get("ttl_days", 0) or 0),
    )

class MemoryPriceCache(PriceCacheClient):
    """
    Process-local table keyed by postal code. Entries are never evicted;
    staleness is decided by the caller from fetched_at + ttl_days.
    """
    def __init__(self):
        self.rows: Dict[str, CacheEntry] = {}

    async def get(self, postal_code: str) -> Optional[CacheEntry]:
        return self.rows.get(postal_code)

    async def upsert(self, entry: CacheEntry) -> None:
        self.rows[entry.postal_code] = entry

class RedisPriceCache(PriceCacheClient):
    """
    One JSON document per postal code. No Redis-side expiry: a stale entry
    stays readable, it just stops being fresh.
    """
    def __init__(self, url: str, prefix: str = "price_m2:"):
        self.client = aioredis.Redis.from_url(url, decode_responses=True)
        self.prefix = prefix

    async def get(self, postal_code: str) -> Optional[CacheEntry]:
        raw = await self.client.get(self.prefix + postal_code)
        if not raw:
            return None
        return _row_to_entry(json.loads(raw))

    async def upsert(self, entry: CacheEntry) -> None:
        await self.client.set(self.prefix + entry.postal_code, json.dumps(_entry_to_row(entry)))

class SupabasePriceCache(PriceCacheClient):
    """
    `price_m2_cache` table behind PostgREST, primary key `cp`.
    """
    table = "price_m2_cache"

    def __init__(self, base_url: str, service_key: str, transport: httpx.AsyncBaseTransport | None = None):
        self.url = table_url(base_url, self.table)
        self.service_key = service_key
        self.transport = transport

    async def get(self, postal_code: str) -> Optional[CacheEntry]:
        async with async_client(self.transport) as client:
            r = await client.get(
                self.url,
                params={"cp": f"eq.{postal_code}", "select": "cp,price_m2,source,fetched_at,ttl_days"},
                headers=service_headers(self.service_key),
            )
            r.raise_for_status()
            rows = r.json()
        if not rows:
            return None
        return _row_to_entry(rows[0])

    async def upsert(self, entry: CacheEntry) -> None:
        async with async_client(self.transport) as client:
            r = await client.post(
                self.url,
                params={"on_conflict": "cp"},
                json=_entry_to_row(entry),
                headers=service_headers(self.service_key, prefer="resolution=merge-duplicates,return=minimal"),
            )
            r.raise_for_status()

def price_cache_client() -> PriceCacheClient:
    """
    Factory picks the backend from CACHE_BACKEND.
    """
    if settings.CACHE_BACKEND == "supabase" and settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY:
        return SupabasePriceCache(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    if settings.CACHE_BACKEND == "redis":
        return RedisPriceCache(settings.REDIS_URL)
    return MemoryPriceCache()

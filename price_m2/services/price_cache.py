import logging
from datetime import datetime
from typing import Callable, Optional

from ..core.metrics import CACHE_WRITE_FAILURES
from ..core.utils import utcnow
from ..data.base import CacheEntry, PriceCacheClient, Source, WriteResult

logger = logging.getLogger(__name__)

DEFAULT_TTL_DAYS = 90


class FreshnessCache:
    """
    Postal code → last known price per m², usable while now < fresh_until.

    Stale and absent entries both read as a miss. Writes replace the whole
    entry and are stamped with the write time.
    """
    def __init__(self, client: PriceCacheClient, clock: Callable[[], datetime] = utcnow):
        self.client = client
        self.clock = clock

    async def lookup(self, postal_code: str) -> Optional[float]:
        try:
            entry = await self.client.get(postal_code)
        except Exception:
            logger.warning("price cache read failed; treating as miss", exc_info=True,
                           extra={"postal_code": postal_code})
            return None
        if entry is None or not entry.is_fresh(self.clock()):
            return None
        return entry.price_per_area

    async def store(
        self,
        postal_code: str,
        price: float,
        source: Source = Source.EXTERNAL_PROVIDER,
        ttl_days: int = DEFAULT_TTL_DAYS,
    ) -> WriteResult:
        entry = CacheEntry(
            postal_code=postal_code,
            price_per_area=price,
            source=source,
            fetched_at=self.clock(),
            ttl_days=ttl_days,
        )
        try:
            await self.client.upsert(entry)
        except Exception as exc:
            CACHE_WRITE_FAILURES.inc()
            logger.warning("price cache write failed; continuing", exc_info=True,
                           extra={"postal_code": postal_code})
            return WriteResult(ok=False, error=str(exc) or exc.__class__.__name__)
        return WriteResult(ok=True)

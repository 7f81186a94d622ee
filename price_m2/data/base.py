from typing import Protocol, Optional, Any
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

# ----- Data shapes (thin & explicit) -----

class Source(str, Enum):
    """Where a price-per-m² came from."""
    CACHED = "cached"
    EXTERNAL_PROVIDER = "external_provider"
    AUTHORITATIVE_DATASET = "authoritative_dataset"  # reserved: official dataset lookup
    UNAVAILABLE = "unavailable"

@dataclass
class CacheEntry:
    postal_code: str              # 5 digits, one entry per code
    price_per_area: float
    source: Source
    fetched_at: datetime
    ttl_days: int = 90

    @property
    def fresh_until(self) -> datetime:
        return self.fetched_at + timedelta(days=self.ttl_days)

    def is_fresh(self, now: datetime) -> bool:
        return now < self.fresh_until

@dataclass
class ValuationResult:
    lead_id: str
    price_per_area: Optional[float]
    total_price: Optional[int]
    source: Source
    confidence: int
    computed_at: datetime
    detail: Optional[dict[str, Any]] = field(default=None)

@dataclass
class WriteResult:
    """Outcome of a write the pipeline is allowed to survive."""
    ok: bool
    error: Optional[str] = None

# ----- Protocols (interfaces) -----

class PriceCacheClient(Protocol):
    async def get(self, postal_code: str) -> Optional[CacheEntry]: ...
    async def upsert(self, entry: CacheEntry) -> None: ...

class LeadStoreClient(Protocol):
    async def update_valuation(self, lead_id: str, fields: dict[str, Any]) -> int:
        """Update an existing lead; returns the number of rows touched."""
        ...

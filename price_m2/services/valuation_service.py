import logging
from datetime import datetime
from typing import Callable

from ..core.config import settings
from ..core.errors import PersistenceError, ValidationError
from ..core.metrics import VALUATIONS
from ..core.utils import isoformat, round_half_up, utcnow
from ..data.base import LeadStoreClient, Source, ValuationResult
from ..data.cache_client import price_cache_client
from ..data.lead_store import lead_store_client
from ..models.base import PriceEstimator
from ..models.strategies import price_estimator
from ..schemas import ValuationRequest
from .postal_code import extract_postal_code
from .price_cache import DEFAULT_TTL_DAYS, FreshnessCache

logger = logging.getLogger(__name__)

# Caller-facing trust per source. authoritative_dataset is reserved for an
# official dataset lookup and is not produced by the pipeline yet.
CONFIDENCE = {
    Source.CACHED: 85,
    Source.EXTERNAL_PROVIDER: 85,
    Source.AUTHORITATIVE_DATASET: 60,
    Source.UNAVAILABLE: 0,
}

class ValuationService:
    """
    Orchestrates:
      request → postal code → fresh cache hit, else provider (+ cache write-back)
      → total price + confidence → lead store
    Holds no per-request state; collaborators are injected.
    """
    def __init__(
        self,
        cache: FreshnessCache,
        provider: PriceEstimator,
        leads: LeadStoreClient,
        ttl_days: int = DEFAULT_TTL_DAYS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.cache = cache
        self.provider = provider
        self.leads = leads
        self.ttl_days = ttl_days
        self.clock = clock

    async def evaluate(self, request: ValuationRequest) -> ValuationResult:
        lead_id = (request.lead_id or "").strip()
        address = (request.address or "").strip()
        if not lead_id or not (address or (request.postal_code or "").strip()):
            raise ValidationError("lead_id and address are required")
        postal_code = extract_postal_code(request.postal_code, address)

        # 1) Cache
        detail = None
        price = await self.cache.lookup(postal_code)
        if price is not None:
            source = Source.CACHED
        else:
            # 2) Provider on miss; a write-back failure does not abort the request
            estimate = await self.provider.estimate(address or None, postal_code)
            if estimate is None:
                source = Source.UNAVAILABLE
            else:
                source = Source.EXTERNAL_PROVIDER
                price, detail = estimate.price_per_area, estimate.detail
                await self.cache.store(postal_code, price, source, ttl_days=self.ttl_days)

        if isinstance(price, float) and price.is_integer():
            price = int(price)

        # 3) Total + confidence
        total_price = None
        if price is not None and request.area:
            total_price = round_half_up(price * request.area)

        result = ValuationResult(
            lead_id=lead_id,
            price_per_area=price,
            total_price=total_price,
            source=source,
            confidence=CONFIDENCE[source],
            computed_at=self.clock(),
            detail=detail,
        )

        # 4) Persist against the lead
        await self._persist(result)
        VALUATIONS.labels(source=source.value).inc()
        logger.info(
            "valuation computed",
            extra={"lead_id": lead_id, "postal_code": postal_code, "source": source.value,
                   "price_m2": price, "valuation_price": total_price},
        )
        return result

    async def _persist(self, result: ValuationResult) -> None:
        fields = {
            "price_m2": result.price_per_area,
            "valuation_price": result.total_price,
            "valuation_source": result.source.value,
            "valuation_confidence": result.confidence,
            "valuation_at": isoformat(result.computed_at),
        }
        try:
            rows = await self.leads.update_valuation(result.lead_id, fields)
        except Exception as exc:
            raise PersistenceError(f"lead store update failed for lead {result.lead_id}") from exc
        if not rows:
            logger.warning("lead not found; valuation not persisted", extra={"lead_id": result.lead_id})

def build_valuation_service() -> ValuationService:
    """Wire collaborators from settings."""
    return ValuationService(
        cache=FreshnessCache(price_cache_client()),
        provider=price_estimator(),
        leads=lead_store_client(),
        ttl_days=settings.CACHE_TTL_DAYS,
    )

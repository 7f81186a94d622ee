from typing import Optional
from .base import Estimate, PriceEstimator
from ..core.utils import fnv1a_32, seeded_rand

class MockEstimator(PriceEstimator):
    """
    Deterministic placeholder provider for local runs without an API key.
    The postal code (or address) seeds a plausible price per m².
    """
    def __init__(self, low: int = 1_200, high: int = 6_500):
        self.low = low
        self.high = high

    async def estimate(self, address: Optional[str], postal_code: Optional[str]) -> Optional[Estimate]:
        key = postal_code or (address or "").strip().lower()
        if not key:
            return None
        seed = fnv1a_32(key)
        price = int(self.low + seeded_rand(seed, 1)[0] * (self.high - self.low))
        return Estimate(price_per_area=price, detail={"provider": "mock"})

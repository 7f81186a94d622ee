from dataclasses import dataclass
from typing import Protocol, Optional, Dict, Any

@dataclass
class Estimate:
    price_per_area: int
    detail: Optional[Dict[str, Any]] = None

class PriceEstimator(Protocol):
    async def estimate(self, address: Optional[str], postal_code: Optional[str]) -> Optional[Estimate]:
        """
        Returns an Estimate, or None when no usable price could be obtained.
        Never raises.
        """
        ...

class CompletionClient(Protocol):
    async def complete(self, prompt: str, json_mode: bool = False) -> str:
        """Send one prompt to a text-generation backend and return the raw text."""
        ...

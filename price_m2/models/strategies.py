"""Extraction strategies over a text-generation backend.

All three share one flow: build a prompt for a location, ask the backend,
parse the answer. The first attempt uses the full address; when it yields
nothing and retrying is enabled, one more attempt is made with the postal
code alone. Anything that goes wrong ends as None.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from .base import CompletionClient, Estimate, PriceEstimator
from .mock_model import MockEstimator
from .openai_model import OpenAICompletionClient
from .parsing import AVERAGED_SOURCES, parse_averaged, parse_free_text, parse_strict
from ..core.config import settings
from ..core.errors import ProviderError
from ..core.metrics import PROVIDER_ATTEMPTS

logger = logging.getLogger(__name__)


class CompletionEstimator(PriceEstimator, ABC):
    name = "completion"
    json_mode = False

    def __init__(self, client: CompletionClient, retry: bool = True):
        self.client = client
        self.retry = retry

    @abstractmethod
    def prompt(self, location: str) -> str:
        ...

    @abstractmethod
    def parse(self, text: str) -> Estimate:
        ...

    def locations(self, address: Optional[str], postal_code: Optional[str]) -> list[str]:
        out = []
        if address and address.strip():
            out.append(address.strip())
        if postal_code and (self.retry or not out):
            out.append(f"el código postal {postal_code} (España)")
        return out[:2]

    async def estimate(self, address: Optional[str], postal_code: Optional[str]) -> Optional[Estimate]:
        for attempt, location in enumerate(self.locations(address, postal_code), start=1):
            result = await self._attempt(location, attempt)
            if result is not None:
                return result
        return None

    async def _attempt(self, location: str, attempt: int) -> Optional[Estimate]:
        extra = {"strategy": self.name, "attempt": attempt}
        try:
            text = await self.client.complete(self.prompt(location), json_mode=self.json_mode)
            result = self.parse(text)
        except ProviderError as exc:
            PROVIDER_ATTEMPTS.labels(strategy=self.name, outcome="unavailable").inc()
            logger.info("provider gave no usable price: %s", exc, extra=extra)
            return None
        except Exception:
            PROVIDER_ATTEMPTS.labels(strategy=self.name, outcome="error").inc()
            logger.warning("provider call failed", exc_info=True, extra=extra)
            return None
        PROVIDER_ATTEMPTS.labels(strategy=self.name, outcome="ok").inc()
        return result


class StrictStructuredEstimator(CompletionEstimator):
    """One integer field in a fixed JSON shape."""
    name = "strict"
    json_mode = True

    def prompt(self, location: str) -> str:
        return (
            "Estima el precio medio de venta de vivienda por metro cuadrado en "
            f"{location}. Responde SOLO con JSON con esta forma exacta: "
            '{"price_m2": <entero en euros>}. '
            'Si no hay datos fiables, responde exactamente: {"price_m2": null}.'
        )

    def parse(self, text: str) -> Estimate:
        return Estimate(price_per_area=parse_strict(text))


class AveragedEstimator(CompletionEstimator):
    """Up to three named portals in one JSON answer, averaged."""
    name = "averaged"
    json_mode = True

    def prompt(self, location: str) -> str:
        fields = ", ".join(f'"{s}": <número o null>' for s in AVERAGED_SOURCES)
        return (
            "Indica el precio medio de venta de vivienda por metro cuadrado en "
            f"{location} según Idealista, Fotocasa y RealAdvisor. "
            f"Responde SOLO con JSON con esta forma exacta: {{{fields}}}. "
            "Usa null para cada fuente sin datos fiables. "
            'Si ninguna tiene datos, responde exactamente: {"na": true}.'
        )

    def parse(self, text: str) -> Estimate:
        price, detail = parse_averaged(text)
        return Estimate(price_per_area=price, detail=detail)


class FreeTextEstimator(CompletionEstimator):
    """Short natural-language answer such as "6526 €/m²" or "NA"."""
    name = "free_text"

    def prompt(self, location: str) -> str:
        return (
            "Dime el precio promedio por metro cuadrado de venta de vivienda en "
            f"{location}.\n"
            "Responde SOLO en este formato exacto: 6526 €/m². "
            "Si no hay datos, responde exactamente: NA."
        )

    def parse(self, text: str) -> Estimate:
        return Estimate(price_per_area=parse_free_text(text))


STRATEGIES = {
    StrictStructuredEstimator.name: StrictStructuredEstimator,
    AveragedEstimator.name: AveragedEstimator,
    FreeTextEstimator.name: FreeTextEstimator,
}


def price_estimator() -> PriceEstimator:
    """
    Factory picks an OpenAI-backed strategy, or the mock when explicitly asked.
    Without an API key the OpenAI strategies report every lookup as unavailable.
    """
    if settings.PRICE_PROVIDER == "mock":
        return MockEstimator()
    if settings.PRICE_PROVIDER != "openai":
        raise ValueError(f"unknown PRICE_PROVIDER {settings.PRICE_PROVIDER!r}")
    try:
        strategy = STRATEGIES[settings.PROVIDER_STRATEGY]
    except KeyError:
        raise ValueError(f"unknown PROVIDER_STRATEGY {settings.PROVIDER_STRATEGY!r}") from None
    return strategy(OpenAICompletionClient(), retry=settings.PROVIDER_RETRY)

from typing import Any
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .core.utils import isoformat
from .data.base import Source, ValuationResult

class ValuationRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    # Presence of lead_id/address is checked by the service so it can
    # answer with a plain {"error": ...} body.
    lead_id: str | None = None
    address: str | None = None
    area: float | None = Field(
        default=None, gt=0, validation_alias=AliasChoices("area", "square_meters")
    )
    postal_code: str | None = None

class ValuationResponse(BaseModel):
    lead_id: str
    price_m2: int | float | None
    valuation_price: int | None
    source: Source
    confidence: int = Field(ge=0, le=100)
    valuation_at: str
    detail: dict[str, Any] | None = None

    @classmethod
    def from_result(cls, result: ValuationResult) -> "ValuationResponse":
        return cls(
            lead_id=result.lead_id,
            price_m2=result.price_per_area,
            valuation_price=result.total_price,
            source=result.source,
            confidence=result.confidence,
            valuation_at=isoformat(result.computed_at),
            detail=result.detail,
        )

class ErrorResponse(BaseModel):
    error: str

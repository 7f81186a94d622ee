import json
from functools import lru_cache

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as SchemaError

from ..schemas import ErrorResponse, ValuationRequest, ValuationResponse
from ..services.valuation_service import ValuationService, build_valuation_service
from ..core.errors import ValidationError
from ..core.security import require_api_key, rate_limit

router = APIRouter()

@lru_cache(maxsize=1)
def service_dep() -> ValuationService:
    # Built once: the memory cache backend must outlive a single request.
    return build_valuation_service()

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)

def _schema_message(exc: SchemaError) -> str:
    first = exc.errors()[0]
    loc = ".".join(str(p) for p in first.get("loc", ())) or "body"
    return f"{loc}: {first.get('msg', 'invalid value')}"

async def _request_fields(request: Request) -> dict:
    """Query string fields overlaid with the JSON body (body wins)."""
    fields = dict(request.query_params)
    raw = await request.body()
    if raw.strip():
        body = json.loads(raw)
        if not isinstance(body, dict):
            raise ValueError("JSON body must be an object")
        fields.update(body)
    return fields

@router.post(
    "/valuation/v1/price-m2",
    response_model=ValuationResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def post_price_m2(
    request: Request,
    _auth = Depends(require_api_key),     # API key guard
    _lim  = Depends(rate_limit),          # Rate limiting
    svc: ValuationService = Depends(service_dep),
):
    try:
        fields = await _request_fields(request)
    except ValueError:
        return _error(400, "invalid JSON body")
    try:
        body = ValuationRequest.model_validate(fields)
    except SchemaError as exc:
        return _error(400, _schema_message(exc))

    try:
        result = await svc.evaluate(body)
    except ValidationError as exc:
        return _error(400, str(exc))

    payload = ValuationResponse.from_result(result).model_dump(mode="json")
    if payload.get("detail") is None:
        payload.pop("detail", None)
    return JSONResponse(payload)

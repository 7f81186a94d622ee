"""Turn raw provider text into a price per m².

Each parser either returns a positive price or raises ProviderError; the
estimator strategies translate that into "unavailable".

Numbers follow Spanish formatting: "." groups thousands and "," marks the
decimals, so "3.150,00" is 3150. A lone "." is read as a thousands separator
only when it is followed by groups of exactly three digits.
"""

import json
import math
import re
from statistics import mean
from typing import Any, Dict, Iterable, Optional, Tuple

from ..core.errors import ProviderError
from ..core.utils import round_half_up

AVERAGED_SOURCES = ("idealista", "fotocasa", "realadvisor")

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_NA_TEXT_RE = re.compile(r"^\s*n/?a\s*\.?\s*$", re.IGNORECASE)
_THOUSANDS_RE = re.compile(r"\d{1,3}(?:\.\d{3})+")
# Grouped thousands first ("3.150,00"), then a plain 3-6 digit token ("6526")
_NUMBER_RE = re.compile(
    r"(?<![\d.,])(\d{1,3}(?:\.\d{3})+(?:,\d{1,3})?|\d{3,6}(?:[.,]\d{1,3})?)(?!\d)"
)


def normalize_number(token: str) -> float:
    token = token.strip().replace(" ", "").replace("\u00a0", "")
    if "," in token and "." in token:
        if token.rfind(",") > token.rfind("."):
            token = token.replace(".", "").replace(",", ".")
        else:
            token = token.replace(",", "")
    elif "," in token:
        token = token.replace(",", ".")
    elif _THOUSANDS_RE.fullmatch(token):
        token = token.replace(".", "")
    try:
        value = float(token)
    except ValueError:
        raise ProviderError(f"not a number: {token!r}") from None
    if not math.isfinite(value):
        raise ProviderError(f"not a finite number: {token!r}")
    return value


def _is_na_object(text: str) -> bool:
    """True for the explicit {"na": true} sentinel."""
    try:
        data = json.loads(_FENCE_RE.sub("", text.strip()))
    except json.JSONDecodeError:
        return False
    return isinstance(data, dict) and data.get("na") is True


def _load_json(text: str) -> Dict[str, Any]:
    cleaned = _FENCE_RE.sub("", (text or "").strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ProviderError(f"malformed JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise ProviderError("expected a JSON object")
    if data.get("na") is True:
        raise ProviderError("provider reported no data")
    return data


def _coerce_number(value: Any) -> Optional[float]:
    """Positive number from a JSON value, None when absent or unusable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) and value > 0 else None
    if isinstance(value, str):
        try:
            number = normalize_number(value)
        except ProviderError:
            return None
        return number if number > 0 else None
    return None


def parse_strict(text: str, field: str = "price_m2") -> int:
    data = _load_json(text)
    value = data.get(field)
    if value is None:
        raise ProviderError(f"{field} missing or null")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProviderError(f"{field} is not an integer: {value!r}")
    if value <= 0:
        raise ProviderError(f"{field} is not positive: {value!r}")
    return value


def parse_averaged(text: str, sources: Iterable[str] = AVERAGED_SOURCES) -> Tuple[int, Dict[str, Any]]:
    data = _load_json(text)
    detail: Dict[str, Any] = {}
    values = []
    for name in sources:
        number = _coerce_number(data.get(name))
        detail[name] = number
        if number is not None:
            values.append(number)
    if not values:
        raise ProviderError("no source reported a price")
    return round_half_up(mean(values)), detail


def parse_free_text(text: str) -> int:
    text = (text or "").strip()
    if not text:
        raise ProviderError("empty response")
    if _NA_TEXT_RE.match(text) or _is_na_object(text):
        raise ProviderError("provider reported no data")
    match = _NUMBER_RE.search(text)
    if not match:
        raise ProviderError(f"no price in response: {text[:80]!r}")
    value = normalize_number(match.group(1))
    if value <= 0:
        raise ProviderError(f"price is not positive: {value!r}")
    return round_half_up(value)

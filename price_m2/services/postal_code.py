import re
from typing import Optional

from ..core.errors import ValidationError

# Five ASCII digits standing on their own ("28013", not "280131" or "a28013b")
POSTAL_CODE_RE = re.compile(r"\b\d{5}\b", re.ASCII)


def find_postal_code(address: Optional[str]) -> Optional[str]:
    """First standalone 5-digit run in a free-text address, if any."""
    if not address:
        return None
    match = POSTAL_CODE_RE.search(address)
    return match.group(0) if match else None


def extract_postal_code(postal_code: Optional[str], address: Optional[str]) -> str:
    """
    Cache key for a request: the explicit postal code when given (trusted,
    only trimmed), otherwise the one found in the address.
    """
    explicit = (postal_code or "").strip()
    if explicit:
        return explicit
    found = find_postal_code(address)
    if not found:
        raise ValidationError("could not detect a postal code in address")
    return found

"""Shared bits for the Supabase (PostgREST) adapters."""
import httpx


def table_url(base_url: str, table: str) -> str:
    return f"{base_url.rstrip('/')}/rest/v1/{table}"


def service_headers(service_key: str, prefer: str | None = None) -> dict[str, str]:
    headers = {
        "apikey": service_key,
        "Authorization": f"Bearer {service_key}",
        "Content-Type": "application/json",
    }
    if prefer:
        headers["Prefer"] = prefer
    return headers


def async_client(transport: httpx.AsyncBaseTransport | None = None, timeout: float = 10) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout, transport=transport)

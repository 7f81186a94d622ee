from typing import Any, Dict

import httpx

from .base import LeadStoreClient
from .postgrest import table_url, service_headers, async_client
from ..core.config import settings

class MemoryLeadStore(LeadStoreClient):
    """
    In-process lead table for local runs and tests.
    Only existing leads are updated; unknown ids touch nothing.
    """
    def __init__(self, leads: Dict[str, Dict[str, Any]] | None = None):
        self.leads: Dict[str, Dict[str, Any]] = leads if leads is not None else {}
        self.writes: list[tuple[str, Dict[str, Any]]] = []

    async def update_valuation(self, lead_id: str, fields: Dict[str, Any]) -> int:
        self.writes.append((lead_id, dict(fields)))
        row = self.leads.get(lead_id)
        if row is None:
            return 0
        row.update(fields)
        return 1

class SupabaseLeadStore(LeadStoreClient):
    """
    `leads` table behind PostgREST. PATCH by id, never inserts.
    """
    table = "leads"

    def __init__(self, base_url: str, service_key: str, transport: httpx.AsyncBaseTransport | None = None):
        self.url = table_url(base_url, self.table)
        self.service_key = service_key
        self.transport = transport

    async def update_valuation(self, lead_id: str, fields: Dict[str, Any]) -> int:
        async with async_client(self.transport) as client:
            r = await client.patch(
                self.url,
                params={"id": f"eq.{lead_id}", "select": "id"},
                json=fields,
                headers=service_headers(self.service_key, prefer="return=representation"),
            )
            r.raise_for_status()
            return len(r.json())

def lead_store_client() -> LeadStoreClient:
    if settings.LEAD_STORE_BACKEND == "supabase" and settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY:
        return SupabaseLeadStore(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    return MemoryLeadStore()

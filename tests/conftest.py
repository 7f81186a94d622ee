"""Shared doubles for the valuation pipeline tests."""

from datetime import datetime, timedelta, timezone

import pytest

from price_m2.core.cache import counters
from price_m2.data.cache_client import MemoryPriceCache
from price_m2.data.lead_store import MemoryLeadStore
from price_m2.models.base import Estimate
from price_m2.services.price_cache import FreshnessCache
from price_m2.services.valuation_service import ValuationService


class Clock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class DummyProvider:
    """Returns a fixed price (or None) and records every call."""
    def __init__(self, price=None, detail=None):
        self.price = price
        self.detail = detail
        self.calls = []

    async def estimate(self, address, postal_code):
        self.calls.append((address, postal_code))
        if self.price is None:
            return None
        return Estimate(price_per_area=self.price, detail=self.detail)


class ScriptedCompletion:
    """Completion backend replaying canned answers (or raising them)."""
    def __init__(self, *answers):
        self.answers = list(answers)
        self.prompts = []

    async def complete(self, prompt, json_mode=False):
        self.prompts.append((prompt, json_mode))
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


class RecordingCacheClient(MemoryPriceCache):
    def __init__(self, fail_reads=False, fail_writes=False):
        super().__init__()
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.reads = 0
        self.writes = 0

    async def get(self, postal_code):
        self.reads += 1
        if self.fail_reads:
            raise ConnectionError("cache down")
        return await super().get(postal_code)

    async def upsert(self, entry):
        self.writes += 1
        if self.fail_writes:
            raise ConnectionError("cache down")
        await super().upsert(entry)


class FailingLeadStore(MemoryLeadStore):
    async def update_valuation(self, lead_id, fields):
        raise ConnectionError("lead store down")


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def cache_client():
    return RecordingCacheClient()


@pytest.fixture
def lead_store():
    return MemoryLeadStore({"L1": {"id": "L1"}})


@pytest.fixture
def provider():
    return DummyProvider(price=3000)


@pytest.fixture
def service(cache_client, provider, lead_store, clock):
    return ValuationService(
        cache=FreshnessCache(cache_client, clock=clock),
        provider=provider,
        leads=lead_store,
        clock=clock,
    )


@pytest.fixture(autouse=True)
def reset_rate_limits():
    counters.clear()
    yield
    counters.clear()

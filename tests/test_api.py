import logging

import pytest
from fastapi.testclient import TestClient

from conftest import DummyProvider, FailingLeadStore
from price_m2.core.config import settings
from price_m2.core.logging import RequestIdFilter
from price_m2.main import create_app
from price_m2.routers.valuation import service_dep
from price_m2.services.price_cache import FreshnessCache
from price_m2.services.valuation_service import ValuationService

URL = "/valuation/v1/price-m2"
BODY = {"lead_id": "L1", "address": "Calle Mayor 5, 28013", "area": 80}


@pytest.fixture(autouse=True)
def open_settings(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "dev")
    monkeypatch.setattr(settings, "API_KEY", None)
    monkeypatch.setattr(settings, "RATE_LIMIT_RPM", 60)


def make_client(svc, **kwargs):
    app = create_app()
    app.dependency_overrides[service_dep] = lambda: svc
    return TestClient(app, **kwargs)


@pytest.fixture
def client(service):
    return make_client(service)


def test_first_request_uses_provider_then_cache(client, provider, cache_client):
    r = client.post(URL, json=BODY)
    assert r.status_code == 200
    data = r.json()
    assert data["lead_id"] == "L1"
    assert data["price_m2"] == 3000
    assert data["valuation_price"] == 240000
    assert data["source"] == "external_provider"
    assert data["confidence"] == 85
    assert data["valuation_at"].endswith("Z")
    assert "detail" not in data
    assert cache_client.rows["28013"].price_per_area == 3000

    r = client.post(URL, json=BODY)
    data = r.json()
    assert data["source"] == "cached"
    assert data["price_m2"] == 3000
    assert data["valuation_price"] == 240000
    assert len(provider.calls) == 1


def test_square_meters_is_accepted_for_area(client):
    body = {"lead_id": "L1", "address": "Calle Mayor 5, 28013", "square_meters": 50}
    assert client.post(URL, json=body).json()["valuation_price"] == 150000


def test_fields_can_come_from_query_string(client):
    r = client.post(URL, params={"lead_id": "L1", "postal_code": "28013", "area": "10"})
    assert r.status_code == 200
    assert r.json()["valuation_price"] == 30000


def test_numeric_postal_code_in_body(client, cache_client):
    r = client.post(URL, json={"lead_id": "L1", "address": "Calle Mayor 5", "postal_code": 28013})
    assert r.status_code == 200
    assert "28013" in cache_client.rows


@pytest.mark.parametrize("body", [
    {"address": "Calle Mayor 5, 28013"},
    {"lead_id": "L1"},
    {"lead_id": "L1", "address": "Calle Mayor 5, Madrid"},
    {"lead_id": "L1", "address": "Calle Mayor 5, 28013", "area": -3},
    {"lead_id": "L1", "address": "Calle Mayor 5, 28013", "area": "lots"},
])
def test_bad_requests_return_400_without_side_effects(client, provider, lead_store, body):
    r = client.post(URL, json=body)
    assert r.status_code == 400
    assert set(r.json()) == {"error"}
    assert provider.calls == []
    assert lead_store.writes == []


def test_malformed_json_body(client):
    r = client.post(URL, content=b"{not json", headers={"content-type": "application/json"})
    assert r.status_code == 400
    assert r.json() == {"error": "invalid JSON body"}


def test_unavailable_provider_returns_nulls(cache_client, lead_store, clock):
    svc = ValuationService(FreshnessCache(cache_client, clock=clock), DummyProvider(None), lead_store, clock=clock)
    r = make_client(svc).post(URL, json=BODY)
    assert r.status_code == 200
    data = r.json()
    assert data["price_m2"] is None
    assert data["valuation_price"] is None
    assert data["source"] == "unavailable"
    assert data["confidence"] == 0


def test_provider_detail_is_returned(cache_client, lead_store, clock):
    detail = {"idealista": 3000, "fotocasa": 3200, "realadvisor": None}
    svc = ValuationService(FreshnessCache(cache_client, clock=clock), DummyProvider(3100, detail), lead_store, clock=clock)
    data = make_client(svc).post(URL, json=BODY).json()
    assert data["price_m2"] == 3100
    assert data["detail"] == detail


def test_lead_store_failure_is_internal_error(cache_client, clock):
    svc = ValuationService(FreshnessCache(cache_client, clock=clock), DummyProvider(3000), FailingLeadStore(), clock=clock)
    r = make_client(svc).post(URL, json=BODY)
    assert r.status_code == 500
    assert r.json() == {"error": "internal_error"}


def test_unexpected_errors_do_not_leak(cache_client, lead_store, clock):
    class ExplodingProvider:
        async def estimate(self, address, postal_code):
            raise RuntimeError("secret stack detail")

    svc = ValuationService(FreshnessCache(cache_client, clock=clock), ExplodingProvider(), lead_store, clock=clock)
    r = make_client(svc, raise_server_exceptions=False).post(URL, json=BODY)
    assert r.status_code == 500
    assert r.json() == {"error": "internal_error"}


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_unexpected_error_log_carries_request_id(cache_client, lead_store, clock):
    class ExplodingProvider:
        async def estimate(self, address, postal_code):
            raise RuntimeError("boom")

    svc = ValuationService(FreshnessCache(cache_client, clock=clock), ExplodingProvider(), lead_store, clock=clock)
    client = make_client(svc, raise_server_exceptions=False)
    handler = ListHandler()
    main_logger = logging.getLogger("price_m2.main")
    main_logger.addHandler(handler)
    try:
        r = client.post(URL, json=BODY, headers={"x-request-id": "req-42"})
    finally:
        main_logger.removeHandler(handler)

    assert r.status_code == 500
    errors = [rec for rec in handler.records if rec.levelno == logging.ERROR]
    assert errors
    assert errors[0].request_id == "req-42"


def test_request_id_filter_keeps_explicit_id():
    record = logging.LogRecord("x", logging.INFO, "", 0, "msg", None, None)
    record.request_id = "explicit"
    RequestIdFilter().filter(record)
    assert record.request_id == "explicit"

    bare = logging.LogRecord("x", logging.INFO, "", 0, "msg", None, None)
    RequestIdFilter().filter(bare)
    assert bare.request_id is None


def test_api_key_is_enforced_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "s3cret")

    r = client.post(URL, json=BODY)
    assert r.status_code == 401
    assert r.json() == {"error": "unauthorized"}

    r = client.post(URL, json=BODY, headers={"x-api-key": "s3cret"})
    assert r.status_code == 200


def test_missing_api_key_outside_dev_is_rejected(client, monkeypatch):
    monkeypatch.setattr(settings, "ENV", "prod")
    assert client.post(URL, json=BODY).status_code == 401


def test_rate_limit(client, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_RPM", 2)
    assert client.post(URL, json=BODY).status_code == 200
    assert client.post(URL, json=BODY).status_code == 200
    r = client.post(URL, json=BODY)
    assert r.status_code == 429
    assert "error" in r.json()


def test_health_is_open(client, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "s3cret")
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_request_id_is_propagated(client):
    r = client.get("/health", headers={"x-request-id": "abc-123"})
    assert r.headers["x-request-id"] == "abc-123"
    assert client.get("/health").headers["x-request-id"]

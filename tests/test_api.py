"""
Tests for the DropMint HTTP API (src/app.py, src/api/)

Tests cover:
- Health and metrics endpoints
- Collection, drop and fee configuration reads
- Payment estimates and API key authentication
- Error status mapping
"""

from dataclasses import dataclass

import pytest

from api.utils import error_response, parse_currencies, parse_items
from app import create_app
from config import Settings
from errors import (
    FeeOnTransferError,
    InsufficientPaymentError,
    InvalidBasisPointsError,
    UnauthorizedError,
)
from ledger import NATIVE_CURRENCY, ManualClock, derive_address
from storefront import Storefront

API_KEY = "test-api-key"
ADMIN = derive_address("api:admin")
CREATOR = derive_address("api:creator")
PLATFORM = derive_address("api:platform")
START = 1_700_000_000


@dataclass
class ApiFixture:
    client: object
    store: Storefront
    collection_address: str
    usdc_address: str


def build(settings):
    store = Storefront.create(settings, admin=ADMIN, clock=ManualClock(START))
    collection = store.deploy_collection(ADMIN, "genesis", creator=CREATOR, creator_bps=1000)
    usdc = store.deploy_token("USDC", ADMIN, decimals=6)
    collection.create_drop(CREATOR, 1000, START)
    collection.create_drop(CREATOR, 0, START)
    collection.create_drop(CREATOR, 500, START, active=False)
    collection.set_currency_price(CREATOR, 1, usdc.address, 40)

    app = create_app(store, settings)
    app.config["TESTING"] = True
    return ApiFixture(app.test_client(), store, collection.address, usdc.address)


@pytest.fixture
def api():
    return build(Settings(platform_recipient=PLATFORM, api_key=API_KEY))


@pytest.fixture
def headers():
    return {"X-API-Key": API_KEY}


def item(api, token_id, amount=1):
    return {"collection": api.collection_address, "token_id": token_id, "amount": amount}


# ============================================================
# Monitoring Endpoint Tests
# ============================================================

class TestMonitoringEndpoints:
    """Tests for /health and /metrics."""

    def test_health(self, api):
        response = api.client.get("/health")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["collections"] == 1
        assert data["ledger_time"] == START

    def test_prometheus_metrics(self, api):
        response = api.client.get("/metrics")

        assert response.status_code == 200
        assert response.mimetype == "text/plain"
        assert "dropmint_registered_collections 1" in response.get_data(as_text=True)

    def test_json_metrics(self, api):
        api.client.get("/health")

        data = api.client.get("/metrics/json").get_json()

        assert data["gauges"]["registered_collections"] == 1
        assert "http_requests_total" in data["counters"]

    def test_request_id_echoed(self, api):
        response = api.client.get("/health", headers={"X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"


# ============================================================
# Collection Endpoint Tests
# ============================================================

class TestCollectionEndpoints:
    """Tests for the read-only collection routes."""

    def test_list_collections(self, api):
        data = api.client.get("/collections").get_json()

        assert data["count"] == 1
        assert data["collections"][0]["address"] == api.collection_address
        assert data["collections"][0]["next_token_id"] == 3

    def test_get_drop(self, api):
        response = api.client.get(f"/collections/{api.collection_address}/drops/1")

        assert response.status_code == 200
        data = response.get_json()
        assert data["live"] is True
        assert data["drop"]["native_price"] == 0
        assert data["drop"]["currency_prices"][api.usdc_address] == {"price": 40, "enabled": True}

    def test_inactive_drop_not_live(self, api):
        data = api.client.get(f"/collections/{api.collection_address}/drops/2").get_json()

        assert data["live"] is False

    def test_unknown_drop_is_404(self, api):
        response = api.client.get(f"/collections/{api.collection_address}/drops/99")

        assert response.status_code == 404
        assert response.get_json()["error_type"] == "DropNotFoundError"

    def test_unknown_collection_is_404(self, api):
        response = api.client.get(f"/collections/{derive_address('missing')}/drops/0")

        assert response.status_code == 404
        assert response.get_json()["category"] == "state"

    def test_fee_config_with_split(self, api):
        response = api.client.get(f"/collections/{api.collection_address}/fee-config/0?amount=2")

        assert response.status_code == 200
        data = response.get_json()
        assert data["is_override"] is False
        assert data["fee_config"]["platform_recipient"] == PLATFORM
        assert data["split"] == {
            "total": 2000,
            "platform": 100,
            "creator": 200,
            "reward_pool": 0,
            "treasury": 1700,
            "reward_pool_paid": False,
            "is_free_mint": False,
        }

    @pytest.mark.parametrize("amount", ["0", "-1", "many"])
    def test_fee_config_bad_amount(self, api, amount):
        response = api.client.get(f"/collections/{api.collection_address}/fee-config/0?amount={amount}")

        assert response.status_code == 400


# ============================================================
# Estimate Endpoint Tests
# ============================================================

class TestEstimateEndpoints:
    """Tests for /estimate and /estimate/mixed."""

    def test_native_estimate(self, api, headers):
        response = api.client.post(
            "/estimate", json={"items": [item(api, 0, 2), item(api, 1, 3)]}, headers=headers,
        )

        assert response.status_code == 200
        data = response.get_json()
        free_fee = api.store.settings.free_mint_fee
        assert data["native_total"] == 2000 + 3 * free_fee
        assert data["groups"][0]["currency"] == NATIVE_CURRENCY

    def test_mixed_estimate(self, api, headers):
        response = api.client.post(
            "/estimate/mixed",
            json={
                "items": [item(api, 0, 1), item(api, 1, 2)],
                "currencies": [api.usdc_address],
                "prefer_native": True,
            },
            headers=headers,
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data["native_total"] == 1000
        assert data["currency_totals"] == {api.usdc_address: 80}
        assert len(data["groups"]) == 2

    def test_checksummed_addresses(self, api, headers):
        collection = "0x" + api.collection_address[2:].upper()
        response = api.client.post(
            "/estimate/mixed",
            json={
                "items": [{"collection": collection, "token_id": 1, "amount": 2}],
                "currencies": ["0x" + api.usdc_address[2:].upper()],
            },
            headers=headers,
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data["currency_totals"] == {api.usdc_address: 80}
        assert data["groups"][0]["collection"] == api.collection_address

    def test_inactive_drop_is_400(self, api, headers):
        response = api.client.post("/estimate", json={"items": [item(api, 2)]}, headers=headers)

        assert response.status_code == 400
        assert response.get_json()["error_type"] == "DropNotActiveError"

    def test_unregistered_collection_is_404(self, api, headers):
        payload = {"items": [{"collection": derive_address("stray"), "token_id": 0, "amount": 1}]}

        response = api.client.post("/estimate", json=payload, headers=headers)

        assert response.status_code == 404

    @pytest.mark.parametrize("payload,message", [
        ({}, "Missing required field: items"),
        ({"items": []}, "items must not be empty"),
        ({"items": [{"collection": "nope", "token_id": 0, "amount": 1}]}, "not a valid address"),
        ({"items": [{"collection": "0x" + "1" * 40, "token_id": "0", "amount": 1}]}, "token_id"),
    ])
    def test_malformed_body(self, api, headers, payload, message):
        response = api.client.post("/estimate", json=payload, headers=headers)

        assert response.status_code == 400
        assert message in response.get_json()["error"]

    def test_bad_currency(self, api, headers):
        response = api.client.post(
            "/estimate/mixed", json={"items": [item(api, 0)], "currencies": ["usdc"]}, headers=headers,
        )

        assert response.status_code == 400

    def test_method_not_allowed(self, api):
        response = api.client.get("/estimate")

        assert response.status_code == 405

    def test_unknown_route(self, api):
        response = api.client.get("/nowhere")

        assert response.status_code == 404
        assert response.get_json() == {"error": "Not found"}


class TestAuthentication:
    """Tests for X-API-Key handling on POST routes."""

    def test_missing_key(self, api):
        response = api.client.post("/estimate", json={"items": [item(api, 0)]})

        assert response.status_code == 401

    def test_wrong_key(self, api):
        response = api.client.post("/estimate", json={"items": [item(api, 0)]}, headers={"X-API-Key": "nope"})

        assert response.status_code == 403

    def test_unconfigured_key(self):
        api = build(Settings(platform_recipient=PLATFORM))

        response = api.client.post("/estimate", json={"items": [item(api, 0)]}, headers={"X-API-Key": "x"})

        assert response.status_code == 503

    def test_auth_disabled(self):
        api = build(Settings(platform_recipient=PLATFORM, require_auth=False))

        response = api.client.post("/estimate", json={"items": [item(api, 0)]})

        assert response.status_code == 200
        assert response.get_json()["native_total"] == 1000


# ============================================================
# Utility Tests
# ============================================================

class TestErrorMapping:
    """Tests for library error to HTTP status mapping."""

    @pytest.mark.parametrize("error,status", [
        (InsufficientPaymentError(10, 5, NATIVE_CURRENCY), 402),
        (UnauthorizedError(ADMIN, "admin"), 403),
        (InvalidBasisPointsError(20_000), 400),
        (FeeOnTransferError(ADMIN, 10, 9, NATIVE_CURRENCY), 400),
    ])
    def test_status_by_category(self, api, error, status):
        with api.client.application.app_context():
            response, code = error_response(error)

            assert code == status
            assert response.get_json()["error_type"] == type(error).__name__

    def test_parse_items_limit(self):
        raw = [{"collection": "0x" + "1" * 40, "token_id": 0, "amount": 1}] * 201

        items, error = parse_items(raw)

        assert items is None
        assert "200" in error

    def test_parse_currencies(self):
        currencies, error = parse_currencies(["0x" + "A" * 40])

        assert error is None
        assert currencies == ["0x" + "a" * 40]

"""
HTTP API Tests
==============

Coverage:
  - X-Principal identity (401 without it)
  - Listings: fee, register, update, details, by owner
  - Subscriptions: quote, subscribe, history, active view, price
  - Upkeep check/perform split, stale and malformed perform_data
  - Admin: penalize, withdraw, balances
  - Structured error bodies (code, status) from the error registry
  - Events feed
"""

import pytest
from fastapi.testclient import TestClient

from licenseledger.config import ONE_USD, SECONDS_PER_DAY
from licenseledger.core.dependencies import configure_services
from licenseledger.main import app
from licenseledger.services.subscription_ledger import Locator

from conftest import ADMIN, CONSUMER, GRACE_PERIOD_S, OTHER_CONSUMER, PROVIDER, required_native

client = TestClient(app)


@pytest.fixture(autouse=True)
def services(oracle, clock):
    return configure_services(oracle=oracle, clock=clock, grace_period_s=GRACE_PERIOD_S)


def _as(principal):
    return {"X-Principal": principal}


def _register(name="Test MCP", price=10 * ONE_USD, owner=PROVIDER, url="localhost/test"):
    fee = client.get("/listings/fee").json()["registration_fee_native"]
    resp = client.post(
        "/listings",
        json={"name": name, "price_usd_per_period": price, "description": "d", "url": url, "paid_fee": fee},
        headers=_as(owner),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def _subscribe(listing_id, consumer=CONSUMER):
    required = client.get(f"/subscriptions/quote/{listing_id}").json()["required_native"]
    resp = client.post(
        "/subscriptions",
        json={"listing_id": listing_id, "paid_native": required},
        headers=_as(consumer),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["index"]


def _error_code(resp):
    return resp.json()["error"]["code"]


class TestHealth:
    def test_health(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["next_listing_id"] == 0


class TestIdentity:
    def test_missing_principal_rejected(self):
        resp = client.post(
            "/listings",
            json={"name": "x", "price_usd_per_period": 1, "paid_fee": 10 ** 18},
        )
        assert resp.status_code == 401

    def test_blank_principal_rejected(self):
        resp = client.post("/subscriptions", json={"listing_id": 0, "paid_native": 1}, headers=_as("  "))
        assert resp.status_code == 401


class TestListings:
    def test_fee(self):
        data = client.get("/listings/fee").json()
        assert data["registration_fee_usd"] == ONE_USD
        assert data["registration_fee_native"] == required_native(ONE_USD)

    def test_register_and_read_back(self):
        listing_id = _register("Svc", 10 * ONE_USD)
        assert listing_id == 0

        data = client.get(f"/listings/{listing_id}").json()
        assert data["owner"] == PROVIDER
        assert data["name"] == "Svc"
        assert data["price_usd_per_period"] == 10 * ONE_USD

    def test_register_underpaid(self):
        resp = client.post(
            "/listings",
            json={"name": "Svc", "price_usd_per_period": ONE_USD, "paid_fee": 1},
            headers=_as(PROVIDER),
        )
        assert resp.status_code == 402
        assert _error_code(resp) == "LDG-PAY-001"

    def test_update_by_owner(self):
        listing_id = _register()
        resp = client.put(
            f"/listings/{listing_id}",
            json={"name": "Renamed", "price_usd_per_period": 2 * ONE_USD, "description": "", "url": "u"},
            headers=_as(PROVIDER),
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Renamed"
        assert resp.json()["id"] == listing_id

    def test_update_by_stranger(self):
        listing_id = _register()
        resp = client.put(
            f"/listings/{listing_id}",
            json={"name": "Hijack", "price_usd_per_period": 0},
            headers=_as(CONSUMER),
        )
        assert resp.status_code == 403
        assert _error_code(resp) == "LDG-ADM-001"

    def test_unknown_listing(self):
        resp = client.get("/listings/5")
        assert resp.status_code == 404
        body = resp.json()["error"]
        assert body["code"] == "LDG-REG-001"
        assert body["retryable"] is False
        assert body["remediation"]

    def test_by_owner(self):
        _register("A")
        _register("X", owner=CONSUMER)
        _register("B")
        names = [item["name"] for item in client.get("/listings", params={"owner": PROVIDER}).json()]
        assert names == ["A", "B"]


class TestSubscriptions:
    def test_price(self):
        assert client.get("/price").json() == {"price": 1_841_000_000, "decimals": 8}

    def test_scenario_subscribe_and_list(self):
        listing_id = _register("Test MCP", 10 * ONE_USD, url="localhost/test")
        index = _subscribe(listing_id)
        assert index == 0

        subs = client.get(f"/subscriptions/{CONSUMER}").json()
        assert len(subs) == 1
        assert subs[0]["listing_id"] == listing_id
        assert subs[0]["provider"] == PROVIDER
        assert subs[0]["service_url"] == "localhost/test"
        assert subs[0]["amount_paid_native"] == required_native(10 * ONE_USD)
        assert subs[0]["status"] == "active"

        active = client.get(f"/subscriptions/{CONSUMER}/active").json()
        assert [s["index"] for s in active] == [0]

    def test_subscribe_unknown_listing(self):
        resp = client.post("/subscriptions", json={"listing_id": 0, "paid_native": 10 ** 20}, headers=_as(CONSUMER))
        assert resp.status_code == 404
        assert _error_code(resp) == "LDG-SUB-001"

    def test_subscribe_underpaid(self):
        listing_id = _register()
        required = client.get(f"/subscriptions/quote/{listing_id}").json()["required_native"]
        resp = client.post(
            "/subscriptions",
            json={"listing_id": listing_id, "paid_native": required - 1},
            headers=_as(CONSUMER),
        )
        assert resp.status_code == 402
        assert client.get(f"/subscriptions/{CONSUMER}").json() == []

    def test_oracle_failure(self, oracle):
        listing_id = _register()
        oracle.update_answer(0)
        resp = client.post("/subscriptions", json={"listing_id": listing_id, "paid_native": 10 ** 20}, headers=_as(CONSUMER))
        assert resp.status_code == 502
        assert _error_code(resp) == "LDG-ORC-001"
        assert resp.json()["error"]["retryable"] is True


class TestUpkeep:
    def test_check_and_perform(self, clock):
        listing_id = _register()
        _subscribe(listing_id)

        assert client.get("/upkeep/check").json()["upkeep_needed"] is False

        clock.advance(31 * SECONDS_PER_DAY)
        check = client.get("/upkeep/check").json()
        assert check["upkeep_needed"] is True
        assert check["consumer"] == CONSUMER
        assert check["index"] == 0
        assert Locator.decode(check["perform_data"]) == Locator(CONSUMER, 0)

        resp = client.post("/upkeep/perform", json={"perform_data": check["perform_data"]})
        assert resp.status_code == 200
        assert resp.json() == {"consumer": CONSUMER, "index": 0, "status": "completed"}
        assert client.get("/upkeep/check").json()["upkeep_needed"] is False

        again = client.post("/upkeep/perform", json={"perform_data": check["perform_data"]})
        assert again.status_code == 409
        assert _error_code(again) == "LDG-SUB-002"

    def test_perform_not_yet_expired(self):
        listing_id = _register()
        _subscribe(listing_id)
        resp = client.post("/upkeep/perform", json={"perform_data": Locator(CONSUMER, 0).encode()})
        assert resp.status_code == 409
        assert _error_code(resp) == "LDG-SUB-003"

    def test_perform_unknown_locator(self):
        resp = client.post("/upkeep/perform", json={"perform_data": Locator(CONSUMER, 0).encode()})
        assert resp.status_code == 404
        assert _error_code(resp) == "LDG-SUB-004"

    def test_perform_malformed(self):
        resp = client.post("/upkeep/perform", json={"perform_data": "0xnothex"})
        assert resp.status_code == 422


class TestAdmin:
    def test_penalize_refunds(self):
        listing_id = _register()
        _subscribe(listing_id, CONSUMER)
        _subscribe(listing_id, OTHER_CONSUMER)
        pay = required_native(10 * ONE_USD)

        resp = client.post(f"/admin/penalize/{listing_id}", headers=_as(ADMIN))
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_refunded"] == 2 * pay
        assert [(r["consumer"], r["index"]) for r in data["refunds"]] == [(CONSUMER, 0), (OTHER_CONSUMER, 0)]
        assert client.get(f"/subscriptions/{CONSUMER}/active").json() == []
        assert client.get("/admin/balances").json()["ledger"] == 0

    def test_penalize_requires_admin(self):
        listing_id = _register()
        resp = client.post(f"/admin/penalize/{listing_id}", headers=_as(PROVIDER))
        assert resp.status_code == 403

    def test_withdraw_registry_fees(self):
        _register()
        fee = required_native(ONE_USD)
        assert client.get("/admin/balances").json() == {"registry": fee, "ledger": 0}

        resp = client.post("/admin/withdraw/registry", json={"recipient": "0xtreasury"}, headers=_as(ADMIN))
        assert resp.status_code == 200
        assert resp.json() == {"account": "registry", "recipient": "0xtreasury", "amount": fee}

        empty = client.post("/admin/withdraw/registry", headers=_as(ADMIN))
        assert empty.status_code == 409
        assert _error_code(empty) == "LDG-ADM-002"

    def test_ledger_withdraw_holds_active_payments(self):
        listing_id = _register()
        _subscribe(listing_id)
        pay = required_native(10 * ONE_USD)

        resp = client.post("/admin/withdraw/ledger", headers=_as(ADMIN))
        assert resp.status_code == 409
        assert _error_code(resp) == "LDG-ADM-002"

        penalized = client.post(f"/admin/penalize/{listing_id}", headers=_as(ADMIN))
        assert penalized.status_code == 200
        assert penalized.json()["total_refunded"] == pay
        assert client.get("/admin/balances").json()["ledger"] == 0

    def test_withdraw_unknown_account(self):
        resp = client.post("/admin/withdraw/elsewhere", headers=_as(ADMIN))
        assert resp.status_code == 422


class TestEvents:
    def test_lifecycle_feed(self, clock):
        listing_id = _register()
        _subscribe(listing_id)
        clock.advance(GRACE_PERIOD_S + 1)
        client.post("/upkeep/perform", json={"perform_data": Locator(CONSUMER, 0).encode()})

        kinds = [e["kind"] for e in client.get("/events").json()]
        assert kinds == ["listing_registered", "subscribed", "subscription_resolved"]

        resolved = client.get("/events", params={"kind": "subscription_resolved"}).json()
        assert resolved[0]["payload"]["cause"] == "expiry"

        first_id = client.get("/events").json()[0]["id"]
        later = client.get("/events", params={"after_id": first_id}).json()
        assert [e["kind"] for e in later] == ["subscribed", "subscription_resolved"]

"""
Service Registry Tests
======================

Coverage:
  - Listing fee conversion through the oracle (recomputed on every call)
  - register(): id assignment, owner, fee enforcement, fee retained, event
  - update(): owner-only, NotFound, in-place overwrite, event
  - exists() / get_details() / list_by_owner()
  - withdraw(): admin only, NothingToWithdraw, payout recorded
"""

import pytest

from licenseledger.config import ONE_USD
from licenseledger.core.errors import InsufficientPayment, InvalidOraclePrice, NotFound, NothingToWithdraw, Unauthorized
from licenseledger.services import treasury
from licenseledger.services.event_log import list_events

from conftest import ADMIN, CONSUMER, ORACLE_ANSWER, PROVIDER, required_native


class TestRegistrationFee:
    def test_fee_converted_at_oracle_rate(self, registry):
        assert registry.registration_fee_native() == required_native(ONE_USD)
        assert registry.registration_fee_native() > 0

    def test_fee_tracks_price_changes(self, registry, oracle):
        before = registry.registration_fee_native()
        oracle.update_answer(ORACLE_ANSWER * 2)
        after = registry.registration_fee_native()
        assert after == required_native(ONE_USD, answer=ORACLE_ANSWER * 2)
        assert after < before

    def test_fee_rejects_non_positive_price(self, registry, oracle):
        oracle.update_answer(0)
        with pytest.raises(InvalidOraclePrice):
            registry.registration_fee_native()


class TestRegister:
    def test_ids_are_sequential_from_zero(self, register_listing, registry):
        assert registry.next_listing_id() == 0
        assert register_listing("A") == 0
        assert register_listing("B") == 1
        assert register_listing("C") == 2
        assert registry.next_listing_id() == 3

    def test_stores_listing_with_caller_as_owner(self, registry):
        fee = registry.registration_fee_native()
        listing_id = registry.register(PROVIDER, "Svc", 10 * ONE_USD, "desc", "https://svc.example", fee)

        listing = registry.get_details(listing_id)
        assert listing.owner == PROVIDER
        assert listing.name == "Svc"
        assert listing.description == "desc"
        assert listing.url == "https://svc.example"
        assert listing.price_usd_per_period == 10 * ONE_USD

    def test_underpaid_fee_rejected_without_side_effects(self, registry):
        fee = registry.registration_fee_native()
        with pytest.raises(InsufficientPayment):
            registry.register(PROVIDER, "Svc", ONE_USD, "", "", fee - 1)
        assert registry.next_listing_id() == 0
        assert registry.balance() == 0
        assert list_events() == []

    def test_overpaid_fee_is_kept(self, registry):
        fee = registry.registration_fee_native()
        registry.register(PROVIDER, "Svc", ONE_USD, "", "", fee * 3)
        assert registry.balance() == fee * 3

    def test_emits_registration_event(self, registry):
        fee = registry.registration_fee_native()
        listing_id = registry.register(PROVIDER, "Svc", ONE_USD, "", "", fee)

        events = list_events(kind="listing_registered")
        assert len(events) == 1
        assert events[0].payload == {"owner": PROVIDER, "paid_fee": fee, "id": listing_id}

    def test_price_above_64_bits_round_trips(self, registry):
        price = 10 ** 30 + 7
        fee = registry.registration_fee_native()
        listing_id = registry.register(PROVIDER, "Big", price, "", "", fee)
        assert registry.get_details(listing_id).price_usd_per_period == price


class TestUpdate:
    def test_owner_updates_in_place(self, registry, register_listing):
        listing_id = register_listing()
        updated = registry.update(PROVIDER, listing_id, "Renamed", 25 * ONE_USD, "new desc", "https://new.example")

        assert updated.id == listing_id
        stored = registry.get_details(listing_id)
        assert stored.name == "Renamed"
        assert stored.price_usd_per_period == 25 * ONE_USD
        assert stored.description == "new desc"
        assert stored.url == "https://new.example"
        assert stored.owner == PROVIDER
        assert registry.next_listing_id() == 1

    def test_non_owner_rejected(self, registry, register_listing):
        listing_id = register_listing()
        with pytest.raises(Unauthorized):
            registry.update(CONSUMER, listing_id, "Hijack", 0, "", "")
        assert registry.get_details(listing_id).name == "Test MCP"

    def test_unknown_id_not_found(self, registry):
        with pytest.raises(NotFound):
            registry.update(PROVIDER, 0, "x", ONE_USD, "", "")

    def test_emits_update_event(self, registry, register_listing):
        listing_id = register_listing()
        registry.update(PROVIDER, listing_id, "Renamed", 7 * ONE_USD, "", "")

        events = list_events(kind="listing_updated")
        assert len(events) == 1
        assert events[0].payload["owner"] == PROVIDER
        assert events[0].payload["id"] == listing_id
        assert events[0].payload["price_usd_per_period"] == 7 * ONE_USD


class TestReads:
    def test_exists_is_total(self, registry, register_listing):
        assert registry.exists(0) is False
        assert registry.exists(-1) is False
        register_listing()
        assert registry.exists(0) is True
        assert registry.exists(1) is False
        assert registry.exists(10 ** 6) is False

    def test_existing_ids_stay_valid(self, registry, register_listing):
        ids = [register_listing(f"S{i}") for i in range(5)]
        registry.update(PROVIDER, ids[2], "changed", ONE_USD, "", "")
        assert all(registry.exists(i) for i in ids)

    def test_get_details_unknown(self, registry):
        with pytest.raises(NotFound):
            registry.get_details(3)

    def test_list_by_owner_in_registration_order(self, registry, register_listing):
        register_listing("A", owner=PROVIDER)
        register_listing("X", owner=CONSUMER)
        register_listing("B", owner=PROVIDER)

        names = [listing.name for listing in registry.list_by_owner(PROVIDER)]
        assert names == ["A", "B"]
        assert registry.list_by_owner("0xnobody") == []


class TestWithdraw:
    def test_admin_withdraws_all_fees(self, registry, register_listing):
        register_listing("A")
        register_listing("B")
        total = registry.balance()

        payout = registry.withdraw(ADMIN)
        assert payout.amount == total
        assert payout.recipient == ADMIN
        assert registry.balance() == 0
        assert [p.amount for p in treasury.payouts_to(ADMIN)] == [total]

    def test_withdraw_to_designated_recipient(self, registry, register_listing):
        register_listing()
        payout = registry.withdraw(ADMIN, recipient="0xtreasury")
        assert payout.recipient == "0xtreasury"

    def test_non_admin_rejected(self, registry, register_listing):
        register_listing()
        with pytest.raises(Unauthorized):
            registry.withdraw(PROVIDER)

    def test_empty_balance(self, registry):
        with pytest.raises(NothingToWithdraw):
            registry.withdraw(ADMIN)

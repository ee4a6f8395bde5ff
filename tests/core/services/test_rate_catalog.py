"""Tests for RateCatalog."""

from decimal import Decimal
from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from core.exceptions import ConflictError, NoActiveRateError, NotFoundError
from core.models import RateCreate, RateUpdate


class TestRateCreate:
    """Tests for RateCatalog.create."""

    def test_creates_active_rate(self, standard_rate):
        assert standard_rate.is_active
        assert standard_rate.amount_per_hour == Decimal("10.00")

    def test_duplicate_active_description_raises(self, rate_catalog, standard_rate):
        with pytest.raises(ConflictError, match="Standard"):
            rate_catalog.create(RateCreate(description="Standard", amount_per_hour=Decimal("5.00")))

    def test_description_reusable_after_deactivation(self, rate_catalog, standard_rate):
        rate_catalog.deactivate(standard_rate.id)

        replacement = rate_catalog.create(RateCreate(description="Standard", amount_per_hour=Decimal("11.00")))

        assert replacement.id != standard_rate.id

    def test_negative_amount_rejected(self):
        with pytest.raises(PydanticValidationError):
            RateCreate(description="Bad", amount_per_hour=Decimal("-1.00"))

    def test_three_decimal_places_rejected(self):
        with pytest.raises(PydanticValidationError):
            RateCreate(description="Bad", amount_per_hour=Decimal("1.005"))


class TestRateLookup:
    """Default and active lookups."""

    def test_default_is_lowest_id_active(self, rate_catalog, standard_rate):
        rate_catalog.create(RateCreate(description="Another", amount_per_hour=Decimal("1.00")))

        assert rate_catalog.get_default_active().id == standard_rate.id

    def test_no_active_rates_raises(self, rate_catalog):
        with pytest.raises(NoActiveRateError, match="No active rates"):
            rate_catalog.get_default_active()

    def test_get_active_by_id_rejects_inactive(self, rate_catalog, standard_rate):
        rate_catalog.deactivate(standard_rate.id)

        with pytest.raises(NotFoundError):
            rate_catalog.get_active_by_id(standard_rate.id)

    def test_list_active_excludes_inactive(self, rate_catalog, standard_rate):
        night = rate_catalog.create(RateCreate(description="Night", amount_per_hour=Decimal("6.00")))
        rate_catalog.deactivate(night.id)

        assert [r.id for r in rate_catalog.list_active()] == [standard_rate.id]
        assert {r.id for r in rate_catalog.list_all()} == {standard_rate.id, night.id}


class TestRateUpdate:
    """Tests for RateCatalog.update."""

    def test_updates_amount(self, rate_catalog, standard_rate):
        updated = rate_catalog.update(standard_rate.id, RateUpdate(amount_per_hour=Decimal("12.50")))

        assert updated.amount_per_hour == Decimal("12.50")

    def test_deactivate_in_use_via_update_raises(
        self, rate_catalog, session_service, registered_client, free_space, standard_rate
    ):
        session_service.register_entry(registered_client.id, free_space.id)

        with pytest.raises(ConflictError, match="in use"):
            rate_catalog.update(standard_rate.id, RateUpdate(is_active=False))

        assert rate_catalog.get(standard_rate.id).is_active

    def test_rename_collision_raises(self, rate_catalog, standard_rate):
        other = rate_catalog.create(RateCreate(description="Night", amount_per_hour=Decimal("6.00")))

        with pytest.raises(ConflictError):
            rate_catalog.update(other.id, RateUpdate(description="Standard"))


class TestRateDeactivate:
    """Tests for RateCatalog.deactivate."""

    def test_deactivates(self, rate_catalog, standard_rate):
        rate = rate_catalog.deactivate(standard_rate.id)

        assert rate.is_active is False
        assert rate_catalog.get(standard_rate.id) is not None

    def test_in_use_rate_stays_active(
        self, rate_catalog, session_service, registered_client, free_space, standard_rate
    ):
        session_service.register_entry(registered_client.id, free_space.id)

        with pytest.raises(ConflictError):
            rate_catalog.deactivate(standard_rate.id)

        assert rate_catalog.get(standard_rate.id).is_active

    def test_deactivate_after_exit(
        self, rate_catalog, session_service, registered_client, free_space, standard_rate, clock
    ):
        entry = session_service.register_entry(registered_client.id, free_space.id)
        clock.advance(hours=1)
        session_service.register_exit(entry.ticket.id)

        assert rate_catalog.deactivate(standard_rate.id).is_active is False

    def test_deactivate_missing_raises(self, rate_catalog):
        with pytest.raises(NotFoundError):
            rate_catalog.deactivate(77)

    def test_deactivate_locks_rate_before_checking_use(self, rate_catalog, standard_rate):
        """The row lock must be taken before the active-ticket check."""
        calls = []
        rates, tickets = rate_catalog.stores.rates, rate_catalog.stores.tickets

        def lock(rate_id, exclusive):
            calls.append(("lock", exclusive))
            return rates.get(rate_id)

        def has_active_for_rate(rate_id):
            calls.append(("check", rate_id))
            return False

        with patch.object(rates, "lock", side_effect=lock), \
                patch.object(tickets, "has_active_for_rate", side_effect=has_active_for_rate):
            rate_catalog.deactivate(standard_rate.id)

        assert calls == [("lock", True), ("check", standard_rate.id)]


class TestHoldForTicket:
    """Tests for RateCatalog.hold_for_ticket."""

    def test_named_rate_is_share_locked(self, rate_catalog, standard_rate):
        with patch.object(rate_catalog.stores.rates, "lock", wraps=rate_catalog.stores.rates.lock) as lock:
            rate = rate_catalog.hold_for_ticket(standard_rate.id)

        assert rate.id == standard_rate.id
        lock.assert_called_once_with(standard_rate.id, exclusive=False)

    def test_default_rate_when_none_named(self, rate_catalog, standard_rate):
        assert rate_catalog.hold_for_ticket().id == standard_rate.id

    def test_rate_deactivated_before_lock_raises(self, rate_catalog, standard_rate):
        inactive = standard_rate.model_copy(update={"is_active": False})

        with patch.object(rate_catalog.stores.rates, "lock", return_value=inactive):
            with pytest.raises(NotFoundError):
                rate_catalog.hold_for_ticket(standard_rate.id)

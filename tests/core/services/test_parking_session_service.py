"""Tests for ParkingSessionService: entry/exit workflows."""

import threading
from datetime import timedelta, timezone, datetime
from decimal import Decimal
from unittest.mock import patch

import pytest

from core.exceptions import (
    NoActiveRateError,
    NotFoundError,
    SpaceReleaseError,
    SpaceUnavailableError,
    TicketNotActiveError,
    ValidationError,
)
from core.models import (
    ClientCreate,
    RateCreate,
    RateUpdate,
    SpaceCreate,
    SpaceStatus,
    TicketCreate,
    TicketStatus,
    TicketUpdate,
)


def _assert_consistent(stores):
    """Each space is FREE iff no ACTIVE ticket references it."""
    for space in stores.spaces.list_all():
        has_active = stores.tickets.has_active_for_space(space.id)
        assert (space.status == SpaceStatus.FREE) == (not has_active), space


class TestRegisterEntry:
    """Tests for ParkingSessionService.register_entry."""

    def test_creates_active_ticket_and_occupies_space(
        self, stores, session_service, registered_client, free_space, standard_rate, clock
    ):
        """Entry opens an ACTIVE ticket and the space becomes OCCUPIED."""
        result = session_service.register_entry(registered_client.id, free_space.id)

        assert result.ticket.status == TicketStatus.ACTIVE
        assert result.ticket.client_id == registered_client.id
        assert result.ticket.space_id == free_space.id
        assert result.ticket.rate_id == standard_rate.id
        assert result.ticket.entry_time == clock()
        assert result.ticket.exit_time is None
        assert result.ticket.hours == Decimal("0")
        assert result.ticket.amount == Decimal("0")
        assert result.space.status == SpaceStatus.OCCUPIED
        assert stores.spaces.get(free_space.id).status == SpaceStatus.OCCUPIED
        _assert_consistent(stores)

    def test_returns_client_and_rate(self, session_service, registered_client, free_space, standard_rate):
        """EntryResult carries the resolved client and rate."""
        result = session_service.register_entry(registered_client.id, free_space.id)

        assert result.client == registered_client
        assert result.rate == standard_rate

    def test_defaults_to_lowest_id_active_rate(
        self, session_service, rate_catalog, registered_client, free_space, standard_rate
    ):
        """Without rate_id the active rate with the lowest id is used."""
        rate_catalog.create(RateCreate(description="Premium", amount_per_hour=Decimal("25.00")))

        result = session_service.register_entry(registered_client.id, free_space.id)

        assert result.rate.id == standard_rate.id

    def test_default_skips_inactive_rates(
        self, session_service, rate_catalog, registered_client, free_space, standard_rate
    ):
        """A deactivated lower-id rate is not used as the default."""
        premium = rate_catalog.create(RateCreate(description="Premium", amount_per_hour=Decimal("25.00")))
        rate_catalog.deactivate(standard_rate.id)

        result = session_service.register_entry(registered_client.id, free_space.id)

        assert result.rate.id == premium.id

    def test_explicit_rate_is_used(
        self, session_service, rate_catalog, registered_client, free_space, standard_rate
    ):
        """An explicit active rate_id overrides the default."""
        premium = rate_catalog.create(RateCreate(description="Premium", amount_per_hour=Decimal("25.00")))

        result = session_service.register_entry(registered_client.id, free_space.id, rate_id=premium.id)

        assert result.ticket.rate_id == premium.id

    def test_missing_client_raises_not_found(self, stores, session_service, free_space, standard_rate):
        """Unknown client fails and the space stays FREE."""
        with pytest.raises(NotFoundError, match="Client 999"):
            session_service.register_entry(999, free_space.id)

        assert stores.spaces.get(free_space.id).status == SpaceStatus.FREE

    def test_missing_space_raises_not_found(self, session_service, registered_client, standard_rate):
        with pytest.raises(NotFoundError, match="Space 999"):
            session_service.register_entry(registered_client.id, 999)

    def test_inactive_explicit_rate_raises_not_found(
        self, stores, session_service, rate_catalog, registered_client, free_space, standard_rate
    ):
        """An explicit rate that is inactive is treated as missing."""
        rate_catalog.update(standard_rate.id, RateUpdate(is_active=False))

        with pytest.raises(NotFoundError, match="Active rate"):
            session_service.register_entry(registered_client.id, free_space.id, rate_id=standard_rate.id)

        assert stores.spaces.get(free_space.id).status == SpaceStatus.FREE

    def test_no_active_rate_raises(self, stores, session_service, registered_client, free_space):
        """With no rate at all there is no default to fall back on."""
        with pytest.raises(NoActiveRateError):
            session_service.register_entry(registered_client.id, free_space.id)

        assert stores.spaces.get(free_space.id).status == SpaceStatus.FREE
        assert stores.tickets.list_by_status(TicketStatus.ACTIVE, 100) == []

    def test_occupied_space_raises_without_side_effects(
        self, stores, session_service, client_directory, registered_client, free_space, standard_rate
    ):
        """A second entry on an occupied space fails and changes nothing."""
        first = session_service.register_entry(registered_client.id, free_space.id)
        other = client_directory.create(ClientCreate(tax_id="800555111", name="Luis Gomez", plate="XYZ987"))
        audit_before = len(stores.database.audit_log)

        with pytest.raises(SpaceUnavailableError, match="occupied"):
            session_service.register_entry(other.id, free_space.id)

        active = stores.tickets.list_by_status(TicketStatus.ACTIVE, 100)
        assert [t.id for t in active] == [first.ticket.id]
        assert len(stores.database.audit_log) == audit_before
        _assert_consistent(stores)

    def test_failure_after_reserve_rolls_back_space(
        self, stores, session_service, registered_client, free_space, standard_rate
    ):
        """If writing the ticket fails, the reserved space returns to FREE."""
        with patch.object(session_service.ledger, "open", side_effect=RuntimeError("write failed")):
            with pytest.raises(RuntimeError):
                session_service.register_entry(registered_client.id, free_space.id)

        assert stores.spaces.get(free_space.id).status == SpaceStatus.FREE
        _assert_consistent(stores)

    def test_backdated_entry_time(self, session_service, registered_client, free_space, standard_rate, clock):
        """An explicit past entry_time is stored as given."""
        entry = clock() - timedelta(hours=2)

        result = session_service.register_entry(
            registered_client.id, free_space.id, entry_time=entry
        )

        assert result.ticket.entry_time == entry

    def test_future_entry_time_raises(self, session_service, registered_client, free_space, standard_rate, clock):
        with pytest.raises(ValidationError, match="future"):
            session_service.register_entry(
                registered_client.id, free_space.id, entry_time=clock() + timedelta(minutes=5)
            )

    def test_naive_entry_time_raises(self, session_service, registered_client, free_space, standard_rate):
        with pytest.raises(ValidationError, match="timezone"):
            session_service.register_entry(
                registered_client.id, free_space.id, entry_time=datetime(2024, 3, 1, 10, 0)
            )


class TestConcurrentEntry:
    """Racing entries on one space."""

    def test_exactly_one_entry_wins(
        self, stores, session_service, client_directory, free_space, standard_rate
    ):
        """Of N concurrent entries on the same space, exactly one succeeds."""
        owners = [
            client_directory.create(ClientCreate(tax_id=f"TAX-{i}", name=f"Owner {i}", plate=f"PLT{i}"))
            for i in range(8)
        ]
        barrier = threading.Barrier(len(owners))
        wins = []
        losses = []

        def enter(client_id):
            barrier.wait()
            try:
                wins.append(session_service.register_entry(client_id, free_space.id))
            except SpaceUnavailableError as e:
                losses.append(e)

        threads = [threading.Thread(target=enter, args=(o.id,)) for o in owners]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(wins) == 1
        assert len(losses) == len(owners) - 1
        assert len(stores.tickets.list_for_space(free_space.id, 100)) == 1
        _assert_consistent(stores)


class TestRegisterExit:
    """Tests for ParkingSessionService.register_exit."""

    def test_ninety_minutes_at_ten_per_hour(
        self, stores, session_service, registered_client, free_space, standard_rate, clock
    ):
        """12:00 -> 13:30 at 10.00/h is 1.50 h and 15.00."""
        entry = session_service.register_entry(registered_client.id, free_space.id)
        clock.advance(minutes=90)

        result = session_service.register_exit(entry.ticket.id)

        assert result.hours == Decimal("1.50")
        assert result.amount == Decimal("15.00")
        assert result.exit_time == datetime(2024, 3, 1, 13, 30, tzinfo=timezone.utc)
        assert result.ticket.status == TicketStatus.FINALIZED
        assert result.ticket.exit_time == result.exit_time
        assert result.ticket.hours == Decimal("1.50")
        assert result.ticket.amount == Decimal("15.00")
        assert stores.spaces.get(free_space.id).status == SpaceStatus.FREE
        _assert_consistent(stores)

    def test_uses_rate_at_exit_time(
        self, session_service, rate_catalog, registered_client, free_space, standard_rate, clock
    ):
        """The hourly amount is read when the ticket closes."""
        entry = session_service.register_entry(registered_client.id, free_space.id)
        rate_catalog.update(standard_rate.id, RateUpdate(amount_per_hour=Decimal("12.00")))
        clock.advance(hours=2)

        result = session_service.register_exit(entry.ticket.id)

        assert result.amount == Decimal("24.00")

    def test_double_exit_raises(self, session_service, registered_client, free_space, standard_rate, clock):
        """A finalized ticket cannot be closed again."""
        entry = session_service.register_entry(registered_client.id, free_space.id)
        clock.advance(minutes=30)
        session_service.register_exit(entry.ticket.id)

        with pytest.raises(TicketNotActiveError, match="finalized"):
            session_service.register_exit(entry.ticket.id)

    def test_second_exit_leaves_ticket_unchanged(
        self, session_service, stores, registered_client, free_space, standard_rate, clock
    ):
        """exit_time, hours, amount and status keep the first close's values."""
        entry = session_service.register_entry(registered_client.id, free_space.id)
        clock.advance(minutes=30)
        session_service.register_exit(entry.ticket.id)
        closed = stores.tickets.get(entry.ticket.id)
        clock.advance(minutes=90)

        with pytest.raises(TicketNotActiveError):
            session_service.register_exit(entry.ticket.id)

        assert stores.tickets.get(entry.ticket.id) == closed
        assert closed.hours == Decimal("0.50")
        assert closed.amount == Decimal("5.00")

    def test_missing_ticket_raises(self, session_service):
        with pytest.raises(NotFoundError, match="Ticket 42"):
            session_service.register_exit(42)

    def test_space_can_be_reused_after_exit(
        self, session_service, registered_client, free_space, standard_rate, clock
    ):
        first = session_service.register_entry(registered_client.id, free_space.id)
        clock.advance(minutes=10)
        session_service.register_exit(first.ticket.id)

        second = session_service.register_entry(registered_client.id, free_space.id)

        assert second.ticket.id != first.ticket.id
        assert second.space.status == SpaceStatus.OCCUPIED

    def test_release_failure_raises_space_release_error(
        self, stores, session_service, registered_client, free_space, standard_rate, clock
    ):
        """A failed release surfaces as SpaceReleaseError and nothing is committed."""
        entry = session_service.register_entry(registered_client.id, free_space.id)
        clock.advance(minutes=45)

        with patch.object(session_service.spaces, "release", side_effect=RuntimeError("lock timeout")):
            with pytest.raises(SpaceReleaseError, match="lock timeout") as exc_info:
                session_service.register_exit(entry.ticket.id)

        assert exc_info.value.code == "SPACE_RELEASE_FAILED"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert stores.tickets.get(entry.ticket.id).status == TicketStatus.ACTIVE
        assert stores.spaces.get(free_space.id).status == SpaceStatus.OCCUPIED
        _assert_consistent(stores)


class TestCancelTicket:
    """Tests for ParkingSessionService.cancel_ticket."""

    def test_cancels_and_frees_space(self, stores, session_service, registered_client, free_space, standard_rate):
        entry = session_service.register_entry(registered_client.id, free_space.id)

        cancelled = session_service.cancel_ticket(entry.ticket.id)

        assert cancelled.status == TicketStatus.CANCELLED
        assert cancelled.exit_time is None
        assert cancelled.amount == Decimal("0")
        assert stores.spaces.get(free_space.id).status == SpaceStatus.FREE
        _assert_consistent(stores)

    def test_cancel_finalized_raises(self, session_service, registered_client, free_space, standard_rate, clock):
        entry = session_service.register_entry(registered_client.id, free_space.id)
        clock.advance(minutes=5)
        session_service.register_exit(entry.ticket.id)

        with pytest.raises(TicketNotActiveError):
            session_service.cancel_ticket(entry.ticket.id)


class TestCreateTicket:
    """Tests for ParkingSessionService.create_ticket."""

    def test_creates_with_explicit_rate(self, stores, session_service, registered_client, free_space, standard_rate):
        ticket = session_service.create_ticket(
            TicketCreate(client_id=registered_client.id, space_id=free_space.id, rate_id=standard_rate.id)
        )

        assert ticket.status == TicketStatus.ACTIVE
        assert stores.spaces.get(free_space.id).status == SpaceStatus.OCCUPIED


class TestUpdateTicket:
    """Tests for ParkingSessionService.update_ticket."""

    def test_move_to_another_space(
        self, stores, session_service, space_registry, registered_client, free_space, standard_rate
    ):
        """Moving claims the new space and frees the old one."""
        other = space_registry.create(SpaceCreate(number="B-01"))
        entry = session_service.register_entry(registered_client.id, free_space.id)

        updated = session_service.update_ticket(entry.ticket.id, TicketUpdate(space_id=other.id))

        assert updated.space_id == other.id
        assert stores.spaces.get(free_space.id).status == SpaceStatus.FREE
        assert stores.spaces.get(other.id).status == SpaceStatus.OCCUPIED
        _assert_consistent(stores)

    def test_move_to_occupied_space_raises(
        self, stores, session_service, space_registry, client_directory,
        registered_client, free_space, standard_rate
    ):
        other = space_registry.create(SpaceCreate(number="B-01"))
        second_owner = client_directory.create(ClientCreate(tax_id="777", name="Second", plate="QWE111"))
        entry = session_service.register_entry(registered_client.id, free_space.id)
        session_service.register_entry(second_owner.id, other.id)

        with pytest.raises(SpaceUnavailableError):
            session_service.update_ticket(entry.ticket.id, TicketUpdate(space_id=other.id))

        assert stores.tickets.get(entry.ticket.id).space_id == free_space.id
        _assert_consistent(stores)

    def test_change_rate(self, session_service, rate_catalog, registered_client, free_space, standard_rate):
        premium = rate_catalog.create(RateCreate(description="Premium", amount_per_hour=Decimal("25.00")))
        entry = session_service.register_entry(registered_client.id, free_space.id)

        updated = session_service.update_ticket(entry.ticket.id, TicketUpdate(rate_id=premium.id))

        assert updated.rate_id == premium.id

    def test_change_to_missing_client_raises(self, session_service, registered_client, free_space, standard_rate):
        entry = session_service.register_entry(registered_client.id, free_space.id)

        with pytest.raises(NotFoundError):
            session_service.update_ticket(entry.ticket.id, TicketUpdate(client_id=999))

    def test_update_finalized_raises(self, session_service, registered_client, free_space, standard_rate, clock):
        entry = session_service.register_entry(registered_client.id, free_space.id)
        clock.advance(minutes=1)
        session_service.register_exit(entry.ticket.id)

        with pytest.raises(TicketNotActiveError):
            session_service.update_ticket(entry.ticket.id, TicketUpdate(rate_id=standard_rate.id))

"""Tests for parking domain models."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from core.models import (
    Client,
    ClientCreate,
    ClientUpdate,
    EntryRequest,
    RateCreate,
    Space,
    SpaceStatus,
    Ticket,
    TicketStatus,
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestClientModels:

    def test_create_strips_and_uppercases_plate(self):
        data = ClientCreate(tax_id=" 900 ", name=" Ana ", plate=" abc123 ")

        assert data.tax_id == "900"
        assert data.name == "Ana"
        assert data.plate == "ABC123"

    def test_create_requires_all_fields(self):
        with pytest.raises(ValidationError):
            ClientCreate(tax_id="900", name="Ana")

    def test_update_allows_partial(self):
        data = ClientUpdate(plate="xyz")

        assert data.model_dump(exclude_none=True) == {"plate": "XYZ"}

    def test_update_rejects_blank(self):
        with pytest.raises(ValidationError):
            ClientUpdate(name="  ")

    def test_client_is_frozen(self):
        client = Client(id=1, tax_id="1", name="A", plate="B", created_at=NOW, updated_at=NOW)

        with pytest.raises(ValidationError):
            client.name = "changed"


class TestSpaceModels:

    def test_is_free(self):
        space = Space(id=1, number="A-01", status=SpaceStatus.FREE, created_at=NOW, updated_at=NOW)

        assert space.is_free
        assert not space.model_copy(update={"status": SpaceStatus.RESERVED}).is_free

    def test_status_values(self):
        assert [s.value for s in SpaceStatus] == ["free", "reserved", "occupied"]


class TestRateModels:

    def test_amount_parsed_from_string(self):
        assert RateCreate(description="Std", amount_per_hour="10.50").amount_per_hour == Decimal("10.50")

    def test_blank_description_rejected(self):
        with pytest.raises(ValidationError):
            RateCreate(description="", amount_per_hour=Decimal("1"))


class TestTicketModels:

    def _ticket(self, status):
        return Ticket(
            id=1, client_id=1, space_id=1, rate_id=1,
            entry_time=NOW, exit_time=None,
            hours=Decimal("0"), amount=Decimal("0"),
            status=status, created_at=NOW, updated_at=NOW,
        )

    def test_active_is_not_terminal(self):
        ticket = self._ticket(TicketStatus.ACTIVE)

        assert ticket.is_active
        assert not ticket.is_terminal

    @pytest.mark.parametrize("status", [TicketStatus.FINALIZED, TicketStatus.CANCELLED])
    def test_terminal_statuses(self, status):
        assert self._ticket(status).is_terminal

    def test_decimals_serialize_as_strings(self):
        dumped = self._ticket(TicketStatus.ACTIVE).model_dump(mode="json")

        assert dumped["hours"] == "0"
        assert dumped["status"] == "active"

    def test_entry_request_rate_optional(self):
        assert EntryRequest(client_id=1, space_id=2).rate_id is None

    def test_entry_request_rejects_non_positive_ids(self):
        with pytest.raises(ValidationError):
            EntryRequest(client_id=0, space_id=2)

"""
Parking session service: vehicle entry and exit.

Coordinates ClientDirectory, SpaceRegistry, RateCatalog and TicketLedger.
Every workflow runs inside one store transaction, so validation, the space
claim and the ticket write either all happen or none do. Two entries racing
for one space serialize on the space's compare-and-swap; the loser gets
SpaceUnavailableError and its transaction rolls back.
"""

import logging
from datetime import datetime
from typing import Callable

from core.exceptions import SpaceReleaseError, ValidationError
from core.models import EntryResult, ExitResult, Ticket, TicketCreate, TicketUpdate
from core.services.client_directory import ClientDirectory
from core.services.rate_catalog import RateCatalog
from core.services.space_registry import SpaceRegistry
from core.services.ticket_ledger import TicketLedger
from core.stores import ParkingStores
from utils.timezone import now_utc, to_utc

logger = logging.getLogger(__name__)


class ParkingSessionService:
    """Orchestrates entry/exit across clients, spaces, rates and tickets."""

    def __init__(
        self,
        stores: ParkingStores,
        clients: ClientDirectory,
        spaces: SpaceRegistry,
        rates: RateCatalog,
        ledger: TicketLedger,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.stores = stores
        self.clients = clients
        self.spaces = spaces
        self.rates = rates
        self.ledger = ledger
        self._clock = clock

    def register_entry(
        self,
        client_id: int,
        space_id: int,
        rate_id: int | None = None,
        entry_time: datetime | None = None,
    ) -> EntryResult:
        """
        Park a client's vehicle in a free space and open its ticket.

        Args:
            client_id: Registered client
            space_id: Space to occupy; must be FREE
            rate_id: Rate to bill at; defaults to the lowest-id active rate
            entry_time: Backdated entry time; defaults to now

        Returns:
            EntryResult with the ticket, client, occupied space and rate

        Raises:
            NotFoundError: Client, space or named rate missing (rate also if inactive)
            SpaceUnavailableError: Space is reserved or occupied
            NoActiveRateError: No rate named and none active
            ValidationError: entry_time is naive or in the future
        """
        entry_time = self._resolve_entry_time(entry_time)

        with self.stores.transaction():
            client = self.clients.get_or_fail(client_id)
            self.spaces.get_free_or_fail(space_id)
            rate = self.rates.hold_for_ticket(rate_id)

            self.spaces.reserve(space_id)
            ticket = self.ledger.open(client.id, space_id, rate.id, entry_time)
            space = self.spaces.occupy(space_id)

        return EntryResult(ticket=ticket, client=client, space=space, rate=rate)

    def create_ticket(self, data: TicketCreate) -> Ticket:
        """Generic ticket creation: an entry with an explicit rate."""
        result = self.register_entry(data.client_id, data.space_id, data.rate_id, data.entry_time)
        return result.ticket

    def register_exit(self, ticket_id: int) -> ExitResult:
        """
        Close a ticket at the current time and free its space.

        Returns:
            ExitResult with the finalized ticket, hours, amount and exit time

        Raises:
            NotFoundError: No such ticket
            TicketNotActiveError: Ticket already finalized or cancelled
            ConflictError: Clock is behind the entry time
            SpaceReleaseError: Space could not be freed; nothing is committed
        """
        exit_time = self._clock()

        with self.stores.transaction():
            result = self.ledger.close(ticket_id, exit_time)
            self._release_space(result.ticket)

        return result

    def cancel_ticket(self, ticket_id: int) -> Ticket:
        """
        Cancel an active ticket without charge and free its space.

        Raises:
            NotFoundError: No such ticket
            TicketNotActiveError: Ticket already finalized or cancelled
            SpaceReleaseError: Space could not be freed; nothing is committed
        """
        with self.stores.transaction():
            ticket = self.ledger.cancel(ticket_id)
            self._release_space(ticket)

        return ticket

    def update_ticket(self, ticket_id: int, data: TicketUpdate) -> Ticket:
        """
        Change the client, rate or space of an active ticket.

        Moving to another space claims the new one before releasing the old.

        Raises:
            NotFoundError: Ticket, client, space or active rate missing
            TicketNotActiveError: Ticket is finalized or cancelled
            SpaceUnavailableError: New space is not FREE
        """
        with self.stores.transaction():
            current = self.ledger.get_active_or_fail(ticket_id)
            fields = {}

            if data.client_id is not None and data.client_id != current.client_id:
                self.clients.get_or_fail(data.client_id)
                fields["client_id"] = data.client_id

            if data.rate_id is not None and data.rate_id != current.rate_id:
                self.rates.hold_for_ticket(data.rate_id)
                fields["rate_id"] = data.rate_id

            moving = data.space_id is not None and data.space_id != current.space_id
            if moving:
                self.spaces.get_free_or_fail(data.space_id)
                self.spaces.reserve(data.space_id)
                fields["space_id"] = data.space_id

            updated = self.ledger.reassign(ticket_id, fields)

            if moving:
                self.spaces.occupy(data.space_id)
                self.spaces.release(current.space_id)
                logger.info(
                    f"Ticket {ticket_id} moved from space {current.space_id} to {data.space_id}"
                )

        return updated

    def _release_space(self, ticket: Ticket) -> None:
        try:
            self.spaces.release(ticket.space_id)
        except Exception as e:
            logger.exception(
                f"Failed to release space {ticket.space_id} for ticket {ticket.id}; rolling back"
            )
            raise SpaceReleaseError(ticket.id, ticket.space_id, str(e)) from e

    def _resolve_entry_time(self, entry_time: datetime | None) -> datetime:
        now = self._clock()
        if entry_time is None:
            return now
        if entry_time.tzinfo is None:
            raise ValidationError("entry_time must include a timezone offset")
        entry_time = to_utc(entry_time)
        if entry_time > now:
            raise ValidationError("entry_time cannot be in the future")
        return entry_time

"""
Ticket ledger for the billing-session lifecycle.

Handles open, close (with charge computation) and cancel. A ticket is
mutated at most once after it is opened; FINALIZED and CANCELLED are
terminal. The ledger trusts its caller for client/space/rate validation.
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import ConflictError, NotFoundError, TicketNotActiveError
from core.models import Ticket, TicketDetail, TicketStatus, ExitResult
from core.stores import ParkingStores
from utils.timezone import now_utc, milliseconds_between

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")
_MS_PER_HOUR = Decimal(3_600_000)


def compute_charge(
    entry_time: datetime,
    exit_time: datetime,
    amount_per_hour: Decimal,
) -> tuple[Decimal, Decimal]:
    """
    Hours parked and amount due.

    hours is the elapsed time in hours rounded to 2 places; amount is
    hours (already rounded) times the hourly rate, rounded to 2 places.
    Both round half up.

    Raises:
        ConflictError: If exit_time precedes entry_time
    """
    elapsed_ms = milliseconds_between(entry_time, exit_time)
    if elapsed_ms < 0:
        raise ConflictError(
            f"Exit time {exit_time.isoformat()} is before entry time {entry_time.isoformat()}"
        )

    hours = (Decimal(elapsed_ms) / _MS_PER_HOUR).quantize(_CENTS, rounding=ROUND_HALF_UP)
    amount = (hours * amount_per_hour).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return hours, amount


class TicketLedger:
    """Service for ticket records and billing."""

    def __init__(self, stores: ParkingStores, audit: AuditLogger):
        self.stores = stores
        self.audit = audit

    def open(self, client_id: int, space_id: int, rate_id: int, entry_time: datetime) -> Ticket:
        """
        Open an ACTIVE ticket with zero hours and amount.

        Args:
            client_id: Client parking the vehicle
            space_id: Space it occupies
            rate_id: Rate it will be billed at
            entry_time: When the vehicle entered (timezone-aware)

        Returns:
            Created ticket
        """
        ticket = self.stores.tickets.create(client_id, space_id, rate_id, entry_time, now_utc())

        self.audit.log_change(
            entity_type="ticket",
            entity_id=ticket.id,
            action=AuditAction.CREATE,
            changes={"created": ticket.model_dump(mode="json")}
        )

        logger.info(f"Ticket {ticket.id} opened for client {client_id} on space {space_id}")
        return ticket

    def get(self, ticket_id: int) -> Ticket | None:
        return self.stores.tickets.get(ticket_id)

    def get_or_fail(self, ticket_id: int) -> Ticket:
        ticket = self.stores.tickets.get(ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket", ticket_id)
        return ticket

    def get_active_or_fail(self, ticket_id: int) -> Ticket:
        """
        Raises:
            NotFoundError: If no such ticket
            TicketNotActiveError: If the ticket is finalized or cancelled
        """
        ticket = self.get_or_fail(ticket_id)
        if not ticket.is_active:
            raise TicketNotActiveError(ticket_id, ticket.status.value)
        return ticket

    def close(self, ticket_id: int, exit_time: datetime) -> ExitResult:
        """
        Finalize a ticket and compute what is owed.

        Args:
            ticket_id: Ticket to close
            exit_time: When the vehicle left (timezone-aware)

        Returns:
            ExitResult with the finalized ticket, hours, amount and exit time

        Raises:
            NotFoundError: If the ticket (or its rate) does not exist
            TicketNotActiveError: If the ticket is not ACTIVE
            ConflictError: If exit_time precedes the entry time
        """
        current = self.get_active_or_fail(ticket_id)

        rate = self.stores.rates.get(current.rate_id)
        if rate is None:
            raise NotFoundError("Rate", current.rate_id)

        hours, amount = compute_charge(current.entry_time, exit_time, rate.amount_per_hour)

        closed = self.stores.tickets.finalize(ticket_id, exit_time, hours, amount, now_utc())
        if closed is None:
            # Lost a race with another close/cancel
            latest = self.get_or_fail(ticket_id)
            raise TicketNotActiveError(ticket_id, latest.status.value)

        self.audit.log_change(
            entity_type="ticket",
            entity_id=ticket_id,
            action=AuditAction.UPDATE,
            changes={
                "status": {"old": current.status.value, "new": TicketStatus.FINALIZED.value},
                "exit_time": {"old": None, "new": exit_time.isoformat()},
                "hours": {"old": str(current.hours), "new": str(hours)},
                "amount": {"old": str(current.amount), "new": str(amount)},
            }
        )

        logger.info(f"Ticket {ticket_id} finalized: {hours} h, amount {amount}")
        return ExitResult(ticket=closed, hours=hours, amount=amount, exit_time=exit_time)

    def cancel(self, ticket_id: int) -> Ticket:
        """
        ACTIVE -> CANCELLED. No charge is computed.

        Raises:
            NotFoundError: If no such ticket
            TicketNotActiveError: If the ticket is not ACTIVE
        """
        current = self.get_active_or_fail(ticket_id)

        cancelled = self.stores.tickets.cancel(ticket_id, now_utc())
        if cancelled is None:
            latest = self.get_or_fail(ticket_id)
            raise TicketNotActiveError(ticket_id, latest.status.value)

        self.audit.log_change(
            entity_type="ticket",
            entity_id=ticket_id,
            action=AuditAction.UPDATE,
            changes={"status": {"old": current.status.value, "new": TicketStatus.CANCELLED.value}}
        )

        logger.info(f"Ticket {ticket_id} cancelled")
        return cancelled

    def reassign(self, ticket_id: int, fields: dict[str, Any]) -> Ticket:
        """
        Change client/space/rate references of an ACTIVE ticket.

        Callers are responsible for validating the new references and for
        moving space state.

        Raises:
            NotFoundError: If no such ticket
            TicketNotActiveError: If the ticket is not ACTIVE
        """
        current = self.get_active_or_fail(ticket_id)
        if not fields:
            return current

        updated = self.stores.tickets.update_active(ticket_id, fields, now_utc())
        if updated is None:
            latest = self.get_or_fail(ticket_id)
            raise TicketNotActiveError(ticket_id, latest.status.value)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                entity_type="ticket",
                entity_id=ticket_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        return updated

    def list_by_status(self, status: TicketStatus = TicketStatus.ACTIVE, limit: int = 100) -> list[Ticket]:
        """Tickets in a status, newest entry first. Defaults to ACTIVE."""
        return self.stores.tickets.list_by_status(status, limit)

    def list_for_client(self, client_id: int, limit: int = 100) -> list[Ticket]:
        return self.stores.tickets.list_for_client(client_id, limit)

    def list_for_space(self, space_id: int, limit: int = 100) -> list[Ticket]:
        return self.stores.tickets.list_for_space(space_id, limit)

    def get_detail(self, ticket_id: int) -> TicketDetail:
        """Ticket with its client, space and rate embedded."""
        return self._detail(self.get_or_fail(ticket_id))

    def list_details_by_status(
        self, status: TicketStatus = TicketStatus.ACTIVE, limit: int = 100
    ) -> list[TicketDetail]:
        return [self._detail(t) for t in self.list_by_status(status, limit)]

    def _detail(self, ticket: Ticket) -> TicketDetail:
        # Referenced rows cannot be deleted while a ticket points at them
        return TicketDetail(
            **ticket.model_dump(),
            client=self.stores.clients.get(ticket.client_id),
            space=self.stores.spaces.get(ticket.space_id),
            rate=self.stores.rates.get(ticket.rate_id),
        )

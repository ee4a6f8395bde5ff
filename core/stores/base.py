"""
Store interfaces consumed by the parking services.

Stores persist immutable model records and enforce uniqueness; they hold
no business rules beyond atomic compare-and-swap on status columns. Two
implementations exist: core.stores.postgres and core.stores.memory.
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Protocol
from uuid import UUID

from core.models import (
    Client, ClientCreate,
    Space, SpaceStatus,
    Rate, RateCreate,
    Ticket, TicketStatus,
)


class Transactional(Protocol):
    def transaction(self) -> AbstractContextManager:
        """Atomic unit: commit on normal exit, roll back on exception."""
        ...


class ClientStore(Protocol):
    def get(self, client_id: int) -> Client | None: ...

    def get_by_tax_id(self, tax_id: str) -> Client | None: ...

    def list_all(self, limit: int, offset: int = 0) -> list[Client]: ...

    def create(self, data: ClientCreate, now: datetime) -> Client:
        """Raises ConflictError on duplicate tax_id."""
        ...

    def update(self, client_id: int, fields: dict[str, Any], now: datetime) -> Client | None:
        """Raises ConflictError on duplicate tax_id. None if missing."""
        ...

    def delete(self, client_id: int) -> bool: ...


class SpaceStore(Protocol):
    def get(self, space_id: int) -> Space | None: ...

    def get_by_number(self, number: str) -> Space | None: ...

    def list_all(self) -> list[Space]:
        """All spaces ordered by number."""
        ...

    def create(self, number: str, now: datetime) -> Space:
        """Create a FREE space. Raises ConflictError on duplicate number."""
        ...

    def rename(self, space_id: int, number: str, now: datetime) -> Space | None:
        """Raises ConflictError on duplicate number. None if missing."""
        ...

    def transition(
        self,
        space_id: int,
        from_statuses: Iterable[SpaceStatus],
        to_status: SpaceStatus,
        now: datetime,
    ) -> Space | None:
        """
        Atomically move a space to to_status if its current status is one
        of from_statuses. Returns the updated space, or None when the space
        is missing or in another status.
        """
        ...

    def try_reserve(self, space_id: int, now: datetime) -> Space | None:
        """FREE -> RESERVED compare-and-swap. None if the space was not FREE."""
        ...

    def delete(self, space_id: int) -> bool: ...


class RateStore(Protocol):
    def get(self, rate_id: int) -> Rate | None: ...

    def lock(self, rate_id: int, exclusive: bool) -> Rate | None:
        """Read the rate and hold a row lock on it until the transaction ends."""
        ...

    def find_active_by_description(self, description: str) -> Rate | None: ...

    def first_active(self) -> Rate | None:
        """Active rate with the lowest id."""
        ...

    def list_all(self, active_only: bool) -> list[Rate]:
        """Rates ordered by description."""
        ...

    def create(self, data: RateCreate, now: datetime) -> Rate: ...

    def update(self, rate_id: int, fields: dict[str, Any], now: datetime) -> Rate | None: ...


class TicketStore(Protocol):
    def get(self, ticket_id: int) -> Ticket | None: ...

    def list_by_status(self, status: TicketStatus, limit: int) -> list[Ticket]:
        """Tickets in status, newest entry first."""
        ...

    def list_for_client(self, client_id: int, limit: int) -> list[Ticket]: ...

    def list_for_space(self, space_id: int, limit: int) -> list[Ticket]: ...

    def create(
        self,
        client_id: int,
        space_id: int,
        rate_id: int,
        entry_time: datetime,
        now: datetime,
    ) -> Ticket:
        """Insert an ACTIVE ticket with zero hours and amount."""
        ...

    def finalize(
        self,
        ticket_id: int,
        exit_time: datetime,
        hours: Decimal,
        amount: Decimal,
        now: datetime,
    ) -> Ticket | None:
        """ACTIVE -> FINALIZED compare-and-swap. None if not ACTIVE."""
        ...

    def cancel(self, ticket_id: int, now: datetime) -> Ticket | None:
        """ACTIVE -> CANCELLED compare-and-swap. None if not ACTIVE."""
        ...

    def update_active(self, ticket_id: int, fields: dict[str, Any], now: datetime) -> Ticket | None:
        """Change references of an ACTIVE ticket. None if not ACTIVE."""
        ...

    def has_active_for_space(self, space_id: int) -> bool: ...

    def has_active_for_rate(self, rate_id: int) -> bool: ...

    def count_for_client(self, client_id: int) -> int: ...


class AuditStore(Protocol):
    def append(
        self,
        entry_id: UUID,
        entity_type: str,
        entity_id: int,
        action: str,
        changes: dict[str, Any],
        created_at: datetime,
    ) -> None: ...

    def history(self, entity_type: str, entity_id: int) -> list[dict[str, Any]]:
        """Entries for one entity, newest first."""
        ...


@dataclass(frozen=True)
class ParkingStores:
    """The store set one deployment runs against, plus its transaction scope."""

    clients: ClientStore
    spaces: SpaceStore
    rates: RateStore
    tickets: TicketStore
    audit: AuditStore
    database: Transactional

    def transaction(self) -> AbstractContextManager:
        return self.database.transaction()

"""
In-memory store implementations.

Thread-safe: every operation and every transaction holds one re-entrant
lock, so transactions are fully serialized. Records are immutable models,
which lets a transaction snapshot tables with shallow copies and restore
them on rollback. Used for tests and local development.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from core.exceptions import ConflictError
from core.models import (
    Client, ClientCreate,
    Space, SpaceStatus,
    Rate, RateCreate,
    Ticket, TicketStatus,
)
from core.stores.base import ParkingStores

logger = logging.getLogger(__name__)

_ZERO = Decimal("0.00")


def _is_referenced(db: "MemoryDatabase", column: str, value: int) -> bool:
    """Foreign-key RESTRICT check against the tickets table."""
    return any(getattr(t, column) == value for t in db.tables["tickets"].values())


class MemoryDatabase:
    """Tables, id sequences and the lock shared by the memory stores."""

    def __init__(self):
        self.lock = threading.RLock()
        self.tables: dict[str, dict[int, Any]] = {
            "clients": {}, "spaces": {}, "rates": {}, "tickets": {},
        }
        self.audit_log: list[dict[str, Any]] = []
        self._sequences: dict[str, int] = {name: 0 for name in self.tables}
        self._depth = 0

    def next_id(self, table: str) -> int:
        self._sequences[table] += 1
        return self._sequences[table]

    @contextmanager
    def transaction(self):
        """Serialize the block against all other store access; undo it on error."""
        with self.lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            snapshot = (
                {name: dict(rows) for name, rows in self.tables.items()},
                dict(self._sequences),
                list(self.audit_log),
            )
            self._depth = 1
            try:
                yield
            except Exception:
                self.tables, self._sequences, self.audit_log = snapshot
                logger.debug("Memory transaction rolled back")
                raise
            finally:
                self._depth = 0


class MemoryClientStore:

    def __init__(self, db: MemoryDatabase):
        self._db = db

    @property
    def _rows(self) -> dict[int, Client]:
        return self._db.tables["clients"]

    def _check_unique(self, tax_id: str, exclude_id: int | None = None) -> None:
        for client in self._rows.values():
            if client.tax_id == tax_id and client.id != exclude_id:
                raise ConflictError(f"Client with tax id '{tax_id}' already exists")

    def get(self, client_id: int) -> Client | None:
        with self._db.lock:
            return self._rows.get(client_id)

    def get_by_tax_id(self, tax_id: str) -> Client | None:
        with self._db.lock:
            return next((c for c in self._rows.values() if c.tax_id == tax_id), None)

    def list_all(self, limit: int, offset: int = 0) -> list[Client]:
        with self._db.lock:
            rows = sorted(self._rows.values(), key=lambda c: c.id)
            return rows[offset:offset + limit]

    def create(self, data: ClientCreate, now: datetime) -> Client:
        with self._db.lock:
            self._check_unique(data.tax_id)
            client = Client(
                id=self._db.next_id("clients"),
                tax_id=data.tax_id,
                name=data.name,
                plate=data.plate,
                created_at=now,
                updated_at=now,
            )
            self._rows[client.id] = client
            return client

    def update(self, client_id: int, fields: dict[str, Any], now: datetime) -> Client | None:
        with self._db.lock:
            current = self._rows.get(client_id)
            if current is None:
                return None
            if "tax_id" in fields:
                self._check_unique(fields["tax_id"], exclude_id=client_id)
            updated = current.model_copy(update={**fields, "updated_at": now})
            self._rows[client_id] = updated
            return updated

    def delete(self, client_id: int) -> bool:
        with self._db.lock:
            if _is_referenced(self._db, "client_id", client_id):
                raise ConflictError(f"Client {client_id} is referenced by tickets")
            return self._rows.pop(client_id, None) is not None


class MemorySpaceStore:

    def __init__(self, db: MemoryDatabase):
        self._db = db

    @property
    def _rows(self) -> dict[int, Space]:
        return self._db.tables["spaces"]

    def _check_unique(self, number: str, exclude_id: int | None = None) -> None:
        for space in self._rows.values():
            if space.number == number and space.id != exclude_id:
                raise ConflictError(f"Space number '{number}' already exists")

    def get(self, space_id: int) -> Space | None:
        with self._db.lock:
            return self._rows.get(space_id)

    def get_by_number(self, number: str) -> Space | None:
        with self._db.lock:
            return next((s for s in self._rows.values() if s.number == number), None)

    def list_all(self) -> list[Space]:
        with self._db.lock:
            return sorted(self._rows.values(), key=lambda s: s.number)

    def create(self, number: str, now: datetime) -> Space:
        with self._db.lock:
            self._check_unique(number)
            space = Space(
                id=self._db.next_id("spaces"),
                number=number,
                status=SpaceStatus.FREE,
                created_at=now,
                updated_at=now,
            )
            self._rows[space.id] = space
            return space

    def rename(self, space_id: int, number: str, now: datetime) -> Space | None:
        with self._db.lock:
            current = self._rows.get(space_id)
            if current is None:
                return None
            self._check_unique(number, exclude_id=space_id)
            updated = current.model_copy(update={"number": number, "updated_at": now})
            self._rows[space_id] = updated
            return updated

    def transition(
        self,
        space_id: int,
        from_statuses: Iterable[SpaceStatus],
        to_status: SpaceStatus,
        now: datetime,
    ) -> Space | None:
        with self._db.lock:
            current = self._rows.get(space_id)
            if current is None or current.status not in set(from_statuses):
                return None
            updated = current.model_copy(update={"status": to_status, "updated_at": now})
            self._rows[space_id] = updated
            return updated

    def try_reserve(self, space_id: int, now: datetime) -> Space | None:
        return self.transition(space_id, [SpaceStatus.FREE], SpaceStatus.RESERVED, now)

    def delete(self, space_id: int) -> bool:
        with self._db.lock:
            if _is_referenced(self._db, "space_id", space_id):
                raise ConflictError(f"Space {space_id} is referenced by tickets")
            return self._rows.pop(space_id, None) is not None


class MemoryRateStore:

    def __init__(self, db: MemoryDatabase):
        self._db = db

    @property
    def _rows(self) -> dict[int, Rate]:
        return self._db.tables["rates"]

    def get(self, rate_id: int) -> Rate | None:
        with self._db.lock:
            return self._rows.get(rate_id)

    def lock(self, rate_id: int, exclusive: bool) -> Rate | None:
        # Transactions already hold the database lock for their whole span
        return self.get(rate_id)

    def find_active_by_description(self, description: str) -> Rate | None:
        with self._db.lock:
            return next(
                (r for r in self._rows.values() if r.is_active and r.description == description),
                None,
            )

    def first_active(self) -> Rate | None:
        with self._db.lock:
            active = [r for r in self._rows.values() if r.is_active]
            return min(active, key=lambda r: r.id) if active else None

    def list_all(self, active_only: bool) -> list[Rate]:
        with self._db.lock:
            rows = [r for r in self._rows.values() if r.is_active or not active_only]
            return sorted(rows, key=lambda r: (r.description, r.id))

    def create(self, data: RateCreate, now: datetime) -> Rate:
        with self._db.lock:
            rate = Rate(
                id=self._db.next_id("rates"),
                description=data.description,
                amount_per_hour=data.amount_per_hour,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            self._rows[rate.id] = rate
            return rate

    def update(self, rate_id: int, fields: dict[str, Any], now: datetime) -> Rate | None:
        with self._db.lock:
            current = self._rows.get(rate_id)
            if current is None:
                return None
            updated = current.model_copy(update={**fields, "updated_at": now})
            self._rows[rate_id] = updated
            return updated


class MemoryTicketStore:

    def __init__(self, db: MemoryDatabase):
        self._db = db

    @property
    def _rows(self) -> dict[int, Ticket]:
        return self._db.tables["tickets"]

    def _newest_first(self, tickets: Iterable[Ticket], limit: int) -> list[Ticket]:
        return sorted(tickets, key=lambda t: (t.entry_time, t.id), reverse=True)[:limit]

    def get(self, ticket_id: int) -> Ticket | None:
        with self._db.lock:
            return self._rows.get(ticket_id)

    def list_by_status(self, status: TicketStatus, limit: int) -> list[Ticket]:
        with self._db.lock:
            return self._newest_first((t for t in self._rows.values() if t.status == status), limit)

    def list_for_client(self, client_id: int, limit: int) -> list[Ticket]:
        with self._db.lock:
            return self._newest_first((t for t in self._rows.values() if t.client_id == client_id), limit)

    def list_for_space(self, space_id: int, limit: int) -> list[Ticket]:
        with self._db.lock:
            return self._newest_first((t for t in self._rows.values() if t.space_id == space_id), limit)

    def create(
        self,
        client_id: int,
        space_id: int,
        rate_id: int,
        entry_time: datetime,
        now: datetime,
    ) -> Ticket:
        with self._db.lock:
            ticket = Ticket(
                id=self._db.next_id("tickets"),
                client_id=client_id,
                space_id=space_id,
                rate_id=rate_id,
                entry_time=entry_time,
                exit_time=None,
                hours=_ZERO,
                amount=_ZERO,
                status=TicketStatus.ACTIVE,
                created_at=now,
                updated_at=now,
            )
            self._rows[ticket.id] = ticket
            return ticket

    def _swap_active(self, ticket_id: int, changes: dict[str, Any], now: datetime) -> Ticket | None:
        with self._db.lock:
            current = self._rows.get(ticket_id)
            if current is None or current.status != TicketStatus.ACTIVE:
                return None
            updated = current.model_copy(update={**changes, "updated_at": now})
            self._rows[ticket_id] = updated
            return updated

    def finalize(
        self,
        ticket_id: int,
        exit_time: datetime,
        hours: Decimal,
        amount: Decimal,
        now: datetime,
    ) -> Ticket | None:
        return self._swap_active(ticket_id, {
            "exit_time": exit_time,
            "hours": hours,
            "amount": amount,
            "status": TicketStatus.FINALIZED,
        }, now)

    def cancel(self, ticket_id: int, now: datetime) -> Ticket | None:
        return self._swap_active(ticket_id, {"status": TicketStatus.CANCELLED}, now)

    def update_active(self, ticket_id: int, fields: dict[str, Any], now: datetime) -> Ticket | None:
        return self._swap_active(ticket_id, fields, now)

    def has_active_for_space(self, space_id: int) -> bool:
        with self._db.lock:
            return any(t.space_id == space_id and t.is_active for t in self._rows.values())

    def has_active_for_rate(self, rate_id: int) -> bool:
        with self._db.lock:
            return any(t.rate_id == rate_id and t.is_active for t in self._rows.values())

    def count_for_client(self, client_id: int) -> int:
        with self._db.lock:
            return sum(1 for t in self._rows.values() if t.client_id == client_id)


class MemoryAuditStore:

    def __init__(self, db: MemoryDatabase):
        self._db = db

    def append(
        self,
        entry_id: UUID,
        entity_type: str,
        entity_id: int,
        action: str,
        changes: dict[str, Any],
        created_at: datetime,
    ) -> None:
        with self._db.lock:
            self._db.audit_log.append({
                "id": entry_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action,
                "changes": changes,
                "created_at": created_at,
            })

    def history(self, entity_type: str, entity_id: int) -> list[dict[str, Any]]:
        with self._db.lock:
            entries = [
                e for e in self._db.audit_log
                if e["entity_type"] == entity_type and e["entity_id"] == entity_id
            ]
            return list(reversed(entries))


def create_memory_stores(db: MemoryDatabase | None = None) -> ParkingStores:
    """Build a ParkingStores set backed by one MemoryDatabase."""
    db = db or MemoryDatabase()
    return ParkingStores(
        clients=MemoryClientStore(db),
        spaces=MemorySpaceStore(db),
        rates=MemoryRateStore(db),
        tickets=MemoryTicketStore(db),
        audit=MemoryAuditStore(db),
        database=db,
    )

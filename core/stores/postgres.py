"""
PostgreSQL store implementations.

Status changes are single UPDATE ... WHERE status ... RETURNING statements,
so the compare-and-swap happens under the row lock Postgres takes for the
update; a concurrent loser sees zero rows. Schema lives in schema.sql.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

import psycopg2.errors
import psycopg2.extras

from clients.postgres_client import PostgresClient
from core.exceptions import ConflictError
from core.models import (
    Client, ClientCreate,
    Space, SpaceStatus,
    Rate, RateCreate,
    Ticket, TicketStatus,
)
from core.stores.base import ParkingStores

logger = logging.getLogger(__name__)

_CLIENT_COLUMNS = {"tax_id", "name", "plate"}
_RATE_COLUMNS = {"description", "amount_per_hour", "is_active"}
_TICKET_COLUMNS = {"client_id", "space_id", "rate_id"}


def _build_set_clause(fields: dict[str, Any], allowed: set[str], now: datetime) -> tuple[str, list]:
    """SET clause and params for the allowed subset of fields plus updated_at."""
    set_parts = []
    params = []
    for field, value in fields.items():
        if field not in allowed:
            logger.warning(f"Ignoring unknown column '{field}' in update")
            continue
        set_parts.append(f"{field} = %s")
        params.append(value)

    set_parts.append("updated_at = %s")
    params.append(now)
    return ", ".join(set_parts), params


class PostgresClientStore:

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def get(self, client_id: int) -> Client | None:
        row = self.postgres.execute_single("SELECT * FROM clients WHERE id = %s", (client_id,))
        return Client.model_validate(row) if row else None

    def get_by_tax_id(self, tax_id: str) -> Client | None:
        row = self.postgres.execute_single("SELECT * FROM clients WHERE tax_id = %s", (tax_id,))
        return Client.model_validate(row) if row else None

    def list_all(self, limit: int, offset: int = 0) -> list[Client]:
        rows = self.postgres.execute(
            "SELECT * FROM clients ORDER BY id ASC LIMIT %s OFFSET %s",
            (limit, offset)
        )
        return [Client.model_validate(row) for row in rows]

    def create(self, data: ClientCreate, now: datetime) -> Client:
        try:
            row = self.postgres.execute_returning(
                """
                INSERT INTO clients (tax_id, name, plate, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING *
                """,
                (data.tax_id, data.name, data.plate, now, now)
            )[0]
        except psycopg2.errors.UniqueViolation as e:
            raise ConflictError(f"Client with tax id '{data.tax_id}' already exists") from e
        return Client.model_validate(row)

    def update(self, client_id: int, fields: dict[str, Any], now: datetime) -> Client | None:
        set_clause, params = _build_set_clause(fields, _CLIENT_COLUMNS, now)
        try:
            rows = self.postgres.execute_returning(
                f"UPDATE clients SET {set_clause} WHERE id = %s RETURNING *",
                tuple(params + [client_id])
            )
        except psycopg2.errors.UniqueViolation as e:
            raise ConflictError(f"Client with tax id '{fields.get('tax_id')}' already exists") from e
        return Client.model_validate(rows[0]) if rows else None

    def delete(self, client_id: int) -> bool:
        try:
            rows = self.postgres.execute_returning(
                "DELETE FROM clients WHERE id = %s RETURNING id",
                (client_id,)
            )
        except psycopg2.errors.ForeignKeyViolation as e:
            raise ConflictError(f"Client {client_id} is referenced by tickets") from e
        return bool(rows)


class PostgresSpaceStore:

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def get(self, space_id: int) -> Space | None:
        row = self.postgres.execute_single("SELECT * FROM spaces WHERE id = %s", (space_id,))
        return Space.model_validate(row) if row else None

    def get_by_number(self, number: str) -> Space | None:
        row = self.postgres.execute_single("SELECT * FROM spaces WHERE number = %s", (number,))
        return Space.model_validate(row) if row else None

    def list_all(self) -> list[Space]:
        rows = self.postgres.execute("SELECT * FROM spaces ORDER BY number ASC")
        return [Space.model_validate(row) for row in rows]

    def create(self, number: str, now: datetime) -> Space:
        try:
            row = self.postgres.execute_returning(
                """
                INSERT INTO spaces (number, status, created_at, updated_at)
                VALUES (%s, %s, %s, %s)
                RETURNING *
                """,
                (number, SpaceStatus.FREE.value, now, now)
            )[0]
        except psycopg2.errors.UniqueViolation as e:
            raise ConflictError(f"Space number '{number}' already exists") from e
        return Space.model_validate(row)

    def rename(self, space_id: int, number: str, now: datetime) -> Space | None:
        try:
            rows = self.postgres.execute_returning(
                "UPDATE spaces SET number = %s, updated_at = %s WHERE id = %s RETURNING *",
                (number, now, space_id)
            )
        except psycopg2.errors.UniqueViolation as e:
            raise ConflictError(f"Space number '{number}' already exists") from e
        return Space.model_validate(rows[0]) if rows else None

    def transition(
        self,
        space_id: int,
        from_statuses: Iterable[SpaceStatus],
        to_status: SpaceStatus,
        now: datetime,
    ) -> Space | None:
        rows = self.postgres.execute_returning(
            """
            UPDATE spaces
            SET status = %s, updated_at = %s
            WHERE id = %s AND status = ANY(%s)
            RETURNING *
            """,
            (to_status.value, now, space_id, [s.value for s in from_statuses])
        )
        return Space.model_validate(rows[0]) if rows else None

    def try_reserve(self, space_id: int, now: datetime) -> Space | None:
        return self.transition(space_id, [SpaceStatus.FREE], SpaceStatus.RESERVED, now)

    def delete(self, space_id: int) -> bool:
        try:
            rows = self.postgres.execute_returning(
                "DELETE FROM spaces WHERE id = %s RETURNING id",
                (space_id,)
            )
        except psycopg2.errors.ForeignKeyViolation as e:
            raise ConflictError(f"Space {space_id} is referenced by tickets") from e
        return bool(rows)


class PostgresRateStore:

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def get(self, rate_id: int) -> Rate | None:
        row = self.postgres.execute_single("SELECT * FROM rates WHERE id = %s", (rate_id,))
        return Rate.model_validate(row) if row else None

    def lock(self, rate_id: int, exclusive: bool) -> Rate | None:
        mode = "FOR UPDATE" if exclusive else "FOR SHARE"
        row = self.postgres.execute_single(f"SELECT * FROM rates WHERE id = %s {mode}", (rate_id,))
        return Rate.model_validate(row) if row else None

    def find_active_by_description(self, description: str) -> Rate | None:
        row = self.postgres.execute_single(
            "SELECT * FROM rates WHERE description = %s AND is_active = true",
            (description,)
        )
        return Rate.model_validate(row) if row else None

    def first_active(self) -> Rate | None:
        row = self.postgres.execute_single(
            "SELECT * FROM rates WHERE is_active = true ORDER BY id ASC LIMIT 1"
        )
        return Rate.model_validate(row) if row else None

    def list_all(self, active_only: bool) -> list[Rate]:
        if active_only:
            rows = self.postgres.execute(
                "SELECT * FROM rates WHERE is_active = true ORDER BY description ASC, id ASC"
            )
        else:
            rows = self.postgres.execute("SELECT * FROM rates ORDER BY description ASC, id ASC")
        return [Rate.model_validate(row) for row in rows]

    def create(self, data: RateCreate, now: datetime) -> Rate:
        try:
            row = self.postgres.execute_returning(
                """
                INSERT INTO rates (description, amount_per_hour, is_active, created_at, updated_at)
                VALUES (%s, %s, true, %s, %s)
                RETURNING *
                """,
                (data.description, data.amount_per_hour, now, now)
            )[0]
        except psycopg2.errors.UniqueViolation as e:
            raise ConflictError(f"Active rate '{data.description}' already exists") from e
        return Rate.model_validate(row)

    def update(self, rate_id: int, fields: dict[str, Any], now: datetime) -> Rate | None:
        set_clause, params = _build_set_clause(fields, _RATE_COLUMNS, now)
        try:
            rows = self.postgres.execute_returning(
                f"UPDATE rates SET {set_clause} WHERE id = %s RETURNING *",
                tuple(params + [rate_id])
            )
        except psycopg2.errors.UniqueViolation as e:
            raise ConflictError("Another active rate has the same description") from e
        return Rate.model_validate(rows[0]) if rows else None


class PostgresTicketStore:

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def get(self, ticket_id: int) -> Ticket | None:
        row = self.postgres.execute_single("SELECT * FROM tickets WHERE id = %s", (ticket_id,))
        return Ticket.model_validate(row) if row else None

    def list_by_status(self, status: TicketStatus, limit: int) -> list[Ticket]:
        rows = self.postgres.execute(
            """
            SELECT * FROM tickets
            WHERE status = %s
            ORDER BY entry_time DESC, id DESC
            LIMIT %s
            """,
            (status.value, limit)
        )
        return [Ticket.model_validate(row) for row in rows]

    def list_for_client(self, client_id: int, limit: int) -> list[Ticket]:
        rows = self.postgres.execute(
            """
            SELECT * FROM tickets
            WHERE client_id = %s
            ORDER BY entry_time DESC, id DESC
            LIMIT %s
            """,
            (client_id, limit)
        )
        return [Ticket.model_validate(row) for row in rows]

    def list_for_space(self, space_id: int, limit: int) -> list[Ticket]:
        rows = self.postgres.execute(
            """
            SELECT * FROM tickets
            WHERE space_id = %s
            ORDER BY entry_time DESC, id DESC
            LIMIT %s
            """,
            (space_id, limit)
        )
        return [Ticket.model_validate(row) for row in rows]

    def create(
        self,
        client_id: int,
        space_id: int,
        rate_id: int,
        entry_time: datetime,
        now: datetime,
    ) -> Ticket:
        row = self.postgres.execute_returning(
            """
            INSERT INTO tickets (
                client_id, space_id, rate_id,
                entry_time, exit_time, hours, amount,
                status, created_at, updated_at
            ) VALUES (
                %s, %s, %s,
                %s, NULL, 0, 0,
                %s, %s, %s
            )
            RETURNING *
            """,
            (
                client_id, space_id, rate_id,
                entry_time,
                TicketStatus.ACTIVE.value, now, now
            )
        )[0]
        return Ticket.model_validate(row)

    def finalize(
        self,
        ticket_id: int,
        exit_time: datetime,
        hours: Decimal,
        amount: Decimal,
        now: datetime,
    ) -> Ticket | None:
        rows = self.postgres.execute_returning(
            """
            UPDATE tickets
            SET exit_time = %s, hours = %s, amount = %s, status = %s, updated_at = %s
            WHERE id = %s AND status = %s
            RETURNING *
            """,
            (
                exit_time, hours, amount, TicketStatus.FINALIZED.value, now,
                ticket_id, TicketStatus.ACTIVE.value
            )
        )
        return Ticket.model_validate(rows[0]) if rows else None

    def cancel(self, ticket_id: int, now: datetime) -> Ticket | None:
        rows = self.postgres.execute_returning(
            """
            UPDATE tickets
            SET status = %s, updated_at = %s
            WHERE id = %s AND status = %s
            RETURNING *
            """,
            (TicketStatus.CANCELLED.value, now, ticket_id, TicketStatus.ACTIVE.value)
        )
        return Ticket.model_validate(rows[0]) if rows else None

    def update_active(self, ticket_id: int, fields: dict[str, Any], now: datetime) -> Ticket | None:
        set_clause, params = _build_set_clause(fields, _TICKET_COLUMNS, now)
        rows = self.postgres.execute_returning(
            f"UPDATE tickets SET {set_clause} WHERE id = %s AND status = %s RETURNING *",
            tuple(params + [ticket_id, TicketStatus.ACTIVE.value])
        )
        return Ticket.model_validate(rows[0]) if rows else None

    def has_active_for_space(self, space_id: int) -> bool:
        return bool(self.postgres.execute_scalar(
            "SELECT EXISTS (SELECT 1 FROM tickets WHERE space_id = %s AND status = %s)",
            (space_id, TicketStatus.ACTIVE.value)
        ))

    def has_active_for_rate(self, rate_id: int) -> bool:
        return bool(self.postgres.execute_scalar(
            "SELECT EXISTS (SELECT 1 FROM tickets WHERE rate_id = %s AND status = %s)",
            (rate_id, TicketStatus.ACTIVE.value)
        ))

    def count_for_client(self, client_id: int) -> int:
        return self.postgres.execute_scalar(
            "SELECT count(*) FROM tickets WHERE client_id = %s",
            (client_id,)
        ) or 0


class PostgresAuditStore:
    """Append-only audit_log table."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def append(
        self,
        entry_id: UUID,
        entity_type: str,
        entity_id: int,
        action: str,
        changes: dict[str, Any],
        created_at: datetime,
    ) -> None:
        self.postgres.execute(
            """
            INSERT INTO audit_log (id, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (str(entry_id), entity_type, entity_id, action, psycopg2.extras.Json(changes), created_at)
        )

    def history(self, entity_type: str, entity_id: int) -> list[dict[str, Any]]:
        return self.postgres.execute(
            """
            SELECT id, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC
            """,
            (entity_type, entity_id)
        )


def create_postgres_stores(postgres: PostgresClient) -> ParkingStores:
    """Build a ParkingStores set over one PostgresClient."""
    return ParkingStores(
        clients=PostgresClientStore(postgres),
        spaces=PostgresSpaceStore(postgres),
        rates=PostgresRateStore(postgres),
        tickets=PostgresTicketStore(postgres),
        audit=PostgresAuditStore(postgres),
        database=postgres,
    )

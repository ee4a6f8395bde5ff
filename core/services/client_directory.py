"""
Client directory: registration and lookup of vehicle owners.

Session logic only reads from here. Clients referenced by any ticket
cannot be deleted.
"""

import logging

from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import ConflictError, NotFoundError
from core.models import Client, ClientCreate, ClientUpdate
from core.stores import ParkingStores
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class ClientDirectory:
    """Service for client operations."""

    def __init__(self, stores: ParkingStores, audit: AuditLogger):
        self.stores = stores
        self.audit = audit

    def create(self, data: ClientCreate) -> Client:
        """
        Register a new client.

        Raises:
            ConflictError: If the tax id is already registered
        """
        with self.stores.transaction():
            if self.stores.clients.get_by_tax_id(data.tax_id) is not None:
                raise ConflictError(f"Client with tax id '{data.tax_id}' already exists")

            client = self.stores.clients.create(data, now_utc())

            self.audit.log_change(
                entity_type="client",
                entity_id=client.id,
                action=AuditAction.CREATE,
                changes={"created": data.model_dump(mode="json")}
            )

        logger.info(f"Client {client.id} registered")
        return client

    def get(self, client_id: int) -> Client | None:
        return self.stores.clients.get(client_id)

    def get_or_fail(self, client_id: int) -> Client:
        """
        Get client by ID.

        Raises:
            NotFoundError: If no such client
        """
        client = self.stores.clients.get(client_id)
        if client is None:
            raise NotFoundError("Client", client_id)
        return client

    def get_by_tax_id(self, tax_id: str) -> Client | None:
        return self.stores.clients.get_by_tax_id(tax_id)

    def list_all(self, limit: int = 100, offset: int = 0) -> list[Client]:
        return self.stores.clients.list_all(limit, offset)

    def update(self, client_id: int, data: ClientUpdate) -> Client:
        """
        Apply corrective edits.

        Raises:
            NotFoundError: If no such client
            ConflictError: If the new tax id belongs to another client
        """
        with self.stores.transaction():
            current = self.get_or_fail(client_id)

            updates = data.model_dump(exclude_none=True)
            if not updates:
                return current

            if "tax_id" in updates and updates["tax_id"] != current.tax_id:
                other = self.stores.clients.get_by_tax_id(updates["tax_id"])
                if other is not None and other.id != client_id:
                    raise ConflictError(f"Tax id '{updates['tax_id']}' is used by another client")

            updated = self.stores.clients.update(client_id, updates, now_utc())

            changes = compute_changes(
                current.model_dump(mode="json"),
                updated.model_dump(mode="json")
            )
            if changes:
                self.audit.log_change(
                    entity_type="client",
                    entity_id=client_id,
                    action=AuditAction.UPDATE,
                    changes=changes
                )

        return updated

    def delete(self, client_id: int) -> None:
        """
        Delete a client that no ticket references.

        Raises:
            NotFoundError: If no such client
            ConflictError: If any ticket references the client
        """
        with self.stores.transaction():
            current = self.get_or_fail(client_id)

            if self.stores.tickets.count_for_client(client_id) > 0:
                raise ConflictError(f"Client {client_id} has tickets and cannot be deleted")

            self.stores.clients.delete(client_id)

            self.audit.log_change(
                entity_type="client",
                entity_id=client_id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")}
            )

        logger.info(f"Client {client_id} deleted")

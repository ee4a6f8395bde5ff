"""
Space registry: parking spaces and their occupancy state machine.

    FREE --reserve--> RESERVED --occupy--> OCCUPIED --release--> FREE
                          |________________release_______________^

Only reserve/occupy/release change status, and each is a compare-and-swap
in the store, so a space can never be claimed twice.
"""

import logging

from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import ConflictError, NotFoundError, SpaceUnavailableError
from core.models import Space, SpaceCreate, SpaceUpdate, SpaceStatus, SpaceAvailability
from core.stores import ParkingStores
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_UNAVAILABLE = (SpaceStatus.RESERVED, SpaceStatus.OCCUPIED)


class SpaceRegistry:
    """Service for parking space operations."""

    def __init__(self, stores: ParkingStores, audit: AuditLogger):
        self.stores = stores
        self.audit = audit

    def create(self, data: SpaceCreate) -> Space:
        """
        Create a FREE space.

        Raises:
            ConflictError: If the number is taken
        """
        with self.stores.transaction():
            if self.stores.spaces.get_by_number(data.number) is not None:
                raise ConflictError(f"Space number '{data.number}' already exists")

            space = self.stores.spaces.create(data.number, now_utc())

            self.audit.log_change(
                entity_type="space",
                entity_id=space.id,
                action=AuditAction.CREATE,
                changes={"created": space.model_dump(mode="json")}
            )

        return space

    def get(self, space_id: int) -> Space | None:
        return self.stores.spaces.get(space_id)

    def get_or_fail(self, space_id: int) -> Space:
        space = self.stores.spaces.get(space_id)
        if space is None:
            raise NotFoundError("Space", space_id)
        return space

    def get_free_or_fail(self, space_id: int) -> Space:
        """
        Get a space that can take a vehicle.

        Raises:
            NotFoundError: If no such space
            SpaceUnavailableError: If the space is reserved or occupied
        """
        space = self.get_or_fail(space_id)
        if not space.is_free:
            raise SpaceUnavailableError(space_id, space.status.value)
        return space

    def list_all(self) -> list[Space]:
        """All spaces ordered by number."""
        return self.stores.spaces.list_all()

    def get_status(self, space_id: int) -> SpaceAvailability:
        """
        Availability check.

        Raises:
            NotFoundError: If no such space
        """
        space = self.get_or_fail(space_id)
        return SpaceAvailability(
            id=space.id,
            status=space.status,
            has_active_ticket=self.stores.tickets.has_active_for_space(space_id),
        )

    def reserve(self, space_id: int) -> Space:
        """
        FREE -> RESERVED.

        Raises:
            NotFoundError: If no such space
            SpaceUnavailableError: If the space was not FREE at swap time
        """
        return self._transition(space_id, (SpaceStatus.FREE,), SpaceStatus.RESERVED)

    def occupy(self, space_id: int) -> Space:
        """RESERVED -> OCCUPIED, once the ticket holding the space exists."""
        return self._transition(space_id, (SpaceStatus.RESERVED,), SpaceStatus.OCCUPIED)

    def release(self, space_id: int) -> Space:
        """
        RESERVED/OCCUPIED -> FREE.

        Not idempotent: releasing a FREE space is a logic error.

        Raises:
            NotFoundError: If no such space
            ConflictError: If the space is already FREE
        """
        return self._transition(space_id, _UNAVAILABLE, SpaceStatus.FREE)

    def _transition(
        self,
        space_id: int,
        from_statuses: tuple[SpaceStatus, ...],
        to_status: SpaceStatus,
    ) -> Space:
        if to_status == SpaceStatus.RESERVED:
            updated = self.stores.spaces.try_reserve(space_id, now_utc())
        else:
            updated = self.stores.spaces.transition(space_id, from_statuses, to_status, now_utc())

        if updated is None:
            current = self.get_or_fail(space_id)
            if to_status == SpaceStatus.RESERVED:
                raise SpaceUnavailableError(space_id, current.status.value)
            raise ConflictError(
                f"Space {space_id} cannot move to {to_status.value} "
                f"(status: {current.status.value})"
            )

        self.audit.log_change(
            entity_type="space",
            entity_id=space_id,
            action=AuditAction.UPDATE,
            changes={"status": {"old": [s.value for s in from_statuses], "new": to_status.value}}
        )
        return updated

    def update(self, space_id: int, data: SpaceUpdate) -> Space:
        """
        Rename a space.

        Raises:
            NotFoundError: If no such space
            ConflictError: If the number belongs to another space
        """
        with self.stores.transaction():
            current = self.get_or_fail(space_id)

            if data.number is None or data.number == current.number:
                return current

            other = self.stores.spaces.get_by_number(data.number)
            if other is not None and other.id != space_id:
                raise ConflictError(f"Space number '{data.number}' is already in use")

            updated = self.stores.spaces.rename(space_id, data.number, now_utc())

            self.audit.log_change(
                entity_type="space",
                entity_id=space_id,
                action=AuditAction.UPDATE,
                changes=compute_changes(
                    current.model_dump(mode="json"),
                    updated.model_dump(mode="json")
                )
            )

        return updated

    def delete(self, space_id: int) -> None:
        """
        Delete a space with no active ticket.

        Raises:
            NotFoundError: If no such space
            ConflictError: If an active ticket references the space
        """
        with self.stores.transaction():
            current = self.get_or_fail(space_id)

            if self.stores.tickets.has_active_for_space(space_id):
                raise ConflictError(f"Space {space_id} is in use and cannot be deleted")

            self.stores.spaces.delete(space_id)

            self.audit.log_change(
                entity_type="space",
                entity_id=space_id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")}
            )

        logger.info(f"Space {space_id} deleted")

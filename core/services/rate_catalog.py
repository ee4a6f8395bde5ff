"""
Rate catalog: hourly billing plans.

Rates are never hard-deleted; deleting one deactivates it, and only when
no active ticket is billed against it. When an entry names no rate, the
active rate with the lowest id is used.
"""

import logging

from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import ConflictError, NoActiveRateError, NotFoundError
from core.models import Rate, RateCreate, RateUpdate
from core.stores import ParkingStores
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class RateCatalog:
    """Service for rate plan operations."""

    def __init__(self, stores: ParkingStores, audit: AuditLogger):
        self.stores = stores
        self.audit = audit

    def create(self, data: RateCreate) -> Rate:
        """
        Create an active rate.

        Raises:
            ConflictError: If an active rate already has this description
        """
        with self.stores.transaction():
            if self.stores.rates.find_active_by_description(data.description) is not None:
                raise ConflictError(f"Active rate '{data.description}' already exists")

            rate = self.stores.rates.create(data, now_utc())

            self.audit.log_change(
                entity_type="rate",
                entity_id=rate.id,
                action=AuditAction.CREATE,
                changes={"created": data.model_dump(mode="json")}
            )

        return rate

    def get(self, rate_id: int) -> Rate | None:
        """Get rate by ID, active or not."""
        return self.stores.rates.get(rate_id)

    def get_or_fail(self, rate_id: int) -> Rate:
        rate = self.stores.rates.get(rate_id)
        if rate is None:
            raise NotFoundError("Rate", rate_id)
        return rate

    def get_active_by_id(self, rate_id: int) -> Rate:
        """
        Get an active rate.

        Raises:
            NotFoundError: If the rate is missing or inactive
        """
        rate = self.stores.rates.get(rate_id)
        if rate is None or not rate.is_active:
            raise NotFoundError("Active rate", rate_id)
        return rate

    def get_default_active(self) -> Rate:
        """
        The rate used when an entry names none: lowest-id active rate.

        Raises:
            NoActiveRateError: If no rate is active
        """
        rate = self.stores.rates.first_active()
        if rate is None:
            raise NoActiveRateError()
        return rate

    def hold_for_ticket(self, rate_id: int | None = None) -> Rate:
        """
        Resolve the rate a ticket will bill at and share-lock it for the
        rest of the transaction, so it cannot be deactivated underneath.

        Raises:
            NotFoundError: Named rate missing, inactive, or deactivated meanwhile
            NoActiveRateError: No rate named and none active
        """
        rate = self.get_active_by_id(rate_id) if rate_id is not None else self.get_default_active()
        held = self.stores.rates.lock(rate.id, exclusive=False)
        if held is None or not held.is_active:
            raise NotFoundError("Active rate", rate.id)
        return held

    def list_active(self) -> list[Rate]:
        return self.stores.rates.list_all(active_only=True)

    def list_all(self) -> list[Rate]:
        return self.stores.rates.list_all(active_only=False)

    def update(self, rate_id: int, data: RateUpdate) -> Rate:
        """
        Update rate fields.

        Changing the hourly amount only affects tickets closed afterwards.

        Raises:
            NotFoundError: If no such rate
            ConflictError: If deactivating while in use, or the description
                collides with another active rate
        """
        with self.stores.transaction():
            current = self.get_or_fail(rate_id)

            updates = data.model_dump(exclude_none=True)
            if not updates:
                return current

            if updates.get("is_active") is False and current.is_active:
                current = self.stores.rates.lock(rate_id, exclusive=True)
                self._ensure_unused(rate_id)

            will_be_active = updates.get("is_active", current.is_active)
            description = updates.get("description", current.description)
            if will_be_active:
                other = self.stores.rates.find_active_by_description(description)
                if other is not None and other.id != rate_id:
                    raise ConflictError(f"Active rate '{description}' already exists")

            updated = self.stores.rates.update(rate_id, updates, now_utc())

            changes = compute_changes(
                current.model_dump(mode="json"),
                updated.model_dump(mode="json")
            )
            if changes:
                self.audit.log_change(
                    entity_type="rate",
                    entity_id=rate_id,
                    action=AuditAction.UPDATE,
                    changes=changes
                )

        return updated

    def deactivate(self, rate_id: int) -> Rate:
        """
        Soft delete: mark the rate inactive.

        Raises:
            NotFoundError: If no such rate
            ConflictError: If an active ticket uses the rate
        """
        with self.stores.transaction():
            # Exclusive lock waits out entries holding the rate, so the
            # active-ticket check below sees their tickets
            current = self.stores.rates.lock(rate_id, exclusive=True)
            if current is None:
                raise NotFoundError("Rate", rate_id)
            self._ensure_unused(rate_id)

            if not current.is_active:
                return current

            updated = self.stores.rates.update(rate_id, {"is_active": False}, now_utc())

            self.audit.log_change(
                entity_type="rate",
                entity_id=rate_id,
                action=AuditAction.DELETE,
                changes={"is_active": {"old": True, "new": False}}
            )

        logger.info(f"Rate {rate_id} deactivated")
        return updated

    def _ensure_unused(self, rate_id: int) -> None:
        if self.stores.tickets.has_active_for_rate(rate_id):
            raise ConflictError(f"Rate {rate_id} is in use by an active ticket")

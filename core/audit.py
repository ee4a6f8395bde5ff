"""
Audit trail for all entity changes.

Every mutation to a client, space, rate or ticket is appended here:
- Append-only (entries never modified or deleted)
- Detailed (captures old and new values)
- Written inside the same transaction as the change it records
"""

from enum import Enum
from typing import Any
from uuid import uuid4

from core.stores.base import AuditStore
from utils.timezone import now_utc


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at"}
    changes = {}

    for key in set(old) | set(new):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Records entity changes through an AuditStore.

    Always pass model_dump(mode="json") output so Decimals and datetimes
    are stored as JSON-compatible strings.

    Usage:
        audit = AuditLogger(stores.audit)

        audit.log_change(
            entity_type="space",
            entity_id=space.id,
            action=AuditAction.UPDATE,
            changes=compute_changes(old.model_dump(mode="json"), new.model_dump(mode="json")),
        )

        history = audit.get_entity_history("space", space.id)
    """

    def __init__(self, store: AuditStore):
        self.store = store

    def log_change(
        self,
        entity_type: str,
        entity_id: int,
        action: AuditAction,
        changes: dict[str, Any],
    ) -> None:
        """
        Log an entity change.

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        - DELETE: {"deleted": {full entity data at deletion}}
        """
        self.store.append(
            entry_id=uuid4(),
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            changes=changes,
            created_at=now_utc(),
        )

    def get_entity_history(self, entity_type: str, entity_id: int) -> list[dict[str, Any]]:
        """Full audit history for an entity, newest first."""
        return self.store.history(entity_type, entity_id)

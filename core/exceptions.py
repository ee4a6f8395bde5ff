"""Typed exceptions for parking domain failures.

The API layer maps these to HTTP responses:
NotFoundError -> 404, ConflictError / ValidationError -> 400,
SpaceReleaseError and anything unexpected -> 500.
"""


class ParkingError(Exception):
    """Base class for parking domain errors."""

    code = "PARKING_ERROR"


class NotFoundError(ParkingError):
    """An entity id does not resolve."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConflictError(ParkingError):
    """An invariant would be violated (duplicate key, busy space, closed ticket)."""

    code = "CONFLICT"


class SpaceUnavailableError(ConflictError):
    """Space is reserved or occupied."""

    code = "SPACE_UNAVAILABLE"

    def __init__(self, space_id: int, status: str):
        self.space_id = space_id
        self.status = status
        super().__init__(f"Space {space_id} is not available (status: {status})")


class TicketNotActiveError(ConflictError):
    """Ticket already reached a terminal state."""

    code = "TICKET_NOT_ACTIVE"

    def __init__(self, ticket_id: int, status: str):
        self.ticket_id = ticket_id
        self.status = status
        super().__init__(f"Ticket {ticket_id} is not active (status: {status})")


class NoActiveRateError(ConflictError):
    """No rate is active, so no default can be chosen."""

    code = "NO_ACTIVE_RATE"

    def __init__(self):
        super().__init__("No active rates available")


class ValidationError(ParkingError):
    """Input is malformed or missing a required value."""

    code = "VALIDATION_ERROR"


class SpaceReleaseError(ParkingError):
    """
    Space could not be released after its ticket was closed.

    Raised instead of the underlying error so callers can tell it apart
    from a failure to close the ticket itself. The surrounding transaction
    is rolled back, so the ticket stays active.
    """

    code = "SPACE_RELEASE_FAILED"

    def __init__(self, ticket_id: int, space_id: int, reason: str):
        self.ticket_id = ticket_id
        self.space_id = space_id
        super().__init__(
            f"Ticket {ticket_id} closed but space {space_id} could not be released: {reason}"
        )

"""Core domain models."""

from core.models.client import Client, ClientCreate, ClientUpdate
from core.models.space import Space, SpaceCreate, SpaceUpdate, SpaceStatus, SpaceAvailability
from core.models.rate import Rate, RateCreate, RateUpdate
from core.models.ticket import Ticket, TicketCreate, TicketUpdate, TicketStatus, EntryRequest
from core.models.session import EntryResult, ExitResult, TicketDetail

__all__ = [
    # Client
    "Client", "ClientCreate", "ClientUpdate",
    # Space
    "Space", "SpaceCreate", "SpaceUpdate", "SpaceStatus", "SpaceAvailability",
    # Rate
    "Rate", "RateCreate", "RateUpdate",
    # Ticket
    "Ticket", "TicketCreate", "TicketUpdate", "TicketStatus", "EntryRequest",
    # Entry/exit results
    "EntryResult", "ExitResult", "TicketDetail",
]

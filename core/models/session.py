"""Composite results returned by the entry/exit workflow."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from core.models.client import Client
from core.models.rate import Rate
from core.models.space import Space
from core.models.ticket import Ticket


class EntryResult(BaseModel):
    """Everything involved in a registered entry."""

    ticket: Ticket
    client: Client
    space: Space
    rate: Rate


class ExitResult(BaseModel):
    """Charges computed when a ticket is closed."""

    ticket: Ticket
    hours: Decimal
    amount: Decimal
    exit_time: datetime


class TicketDetail(Ticket):
    """A ticket with its client, space and rate records embedded."""

    client: Client
    space: Space
    rate: Rate

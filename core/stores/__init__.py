"""Persistence ports and their implementations."""

from core.stores.base import (
    ParkingStores,
    ClientStore,
    SpaceStore,
    RateStore,
    TicketStore,
    AuditStore,
    Transactional,
)
from core.stores.memory import MemoryDatabase, create_memory_stores

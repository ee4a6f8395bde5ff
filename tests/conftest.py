"""Shared test fixtures for the parking API test suite."""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env")

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from utils.request_context import clear_current_request_id


# =============================================================================
# TIME
# =============================================================================

NOON = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Manually advanced clock injected into ParkingSessionService."""

    def __init__(self, start: datetime = NOON):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


# =============================================================================
# CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_request_context():
    """Ensure clean request context before and after each test."""
    clear_current_request_id()
    yield
    clear_current_request_id()


# =============================================================================
# STORE & SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def stores():
    """Fresh in-memory store set per test."""
    from core.stores import create_memory_stores
    return create_memory_stores()


@pytest.fixture
def services(stores, clock):
    from main import build_services
    return build_services(stores, clock)


@pytest.fixture
def client_directory(services):
    return services["clients"]


@pytest.fixture
def space_registry(services):
    return services["spaces"]


@pytest.fixture
def rate_catalog(services):
    return services["rates"]


@pytest.fixture
def ticket_ledger(services):
    return services["ledger"]


@pytest.fixture
def session_service(services):
    return services["sessions"]


# =============================================================================
# DATA FIXTURES
# =============================================================================


@pytest.fixture
def registered_client(client_directory):
    """A registered client."""
    from core.models import ClientCreate
    return client_directory.create(ClientCreate(tax_id="900123456", name="Ana Torres", plate="abc123"))


@pytest.fixture
def free_space(space_registry):
    """A FREE space."""
    from core.models import SpaceCreate
    return space_registry.create(SpaceCreate(number="A-01"))


@pytest.fixture
def standard_rate(rate_catalog):
    """An active rate at 10.00 per hour."""
    from core.models import RateCreate
    return rate_catalog.create(RateCreate(description="Standard", amount_per_hour=Decimal("10.00")))

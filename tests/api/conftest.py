"""API test fixtures: TestClient over the full app with in-memory stores."""

import pytest
from starlette.testclient import TestClient

from core.config import ParkingConfig


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def config():
    return ParkingConfig(storage_backend="memory", log_level="WARNING")


@pytest.fixture
def app(config, stores, clock):
    """Full parking app: middleware, error handlers and all routers."""
    from main import create_app
    return create_app(config=config, stores=stores, clock=clock)


@pytest.fixture
def client(app):
    """HTTP test client. Server errors come back as 500 responses."""
    return TestClient(app, raise_server_exceptions=False)


# =============================================================================
# SEED HELPERS
# =============================================================================


@pytest.fixture
def seeded(client):
    """One client, two spaces and a 10.00/h rate created through the API."""
    owner = client.post(
        "/api/clientes",
        json={"tax_id": "900123456", "name": "Ana Torres", "plate": "abc123"},
    ).json()["data"]
    space_a = client.post("/api/espacios", json={"number": "A-01"}).json()["data"]
    space_b = client.post("/api/espacios", json={"number": "A-02"}).json()["data"]
    rate = client.post(
        "/api/tarifas",
        json={"description": "Standard", "amount_per_hour": "10.00"},
    ).json()["data"]
    return {"client": owner, "space": space_a, "other_space": space_b, "rate": rate}

"""
Application bootstrap.

Wires stores, services and routers into a FastAPI app. Serve with any
ASGI server that accepts an app factory, e.g.
`uvicorn --factory main:create_app`.
"""

import logging
from datetime import datetime
from typing import Callable

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import create_clients_router, create_rates_router, create_spaces_router, create_tickets_router
from api.base import success_response
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from core.audit import AuditLogger
from core.config import ParkingConfig
from core.services.client_directory import ClientDirectory
from core.services.parking_session_service import ParkingSessionService
from core.services.rate_catalog import RateCatalog
from core.services.space_registry import SpaceRegistry
from core.services.ticket_ledger import TicketLedger
from core.stores import ParkingStores, create_memory_stores
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_ENDPOINTS = {
    "clientes": "/api/clientes",
    "espacios": "/api/espacios",
    "tarifas": "/api/tarifas",
    "tickets": "/api/tickets",
    "entrada": "POST /api/tickets/entrada",
    "salida": "PUT /api/tickets/{id}/salida",
}


def build_services(stores: ParkingStores, clock: Callable[[], datetime] = now_utc) -> dict:
    """Service graph keyed the way the routers look services up."""
    audit = AuditLogger(stores.audit)
    clients = ClientDirectory(stores, audit)
    spaces = SpaceRegistry(stores, audit)
    rates = RateCatalog(stores, audit)
    ledger = TicketLedger(stores, audit)
    sessions = ParkingSessionService(stores, clients, spaces, rates, ledger, clock=clock)
    return {
        "clients": clients,
        "spaces": spaces,
        "rates": rates,
        "ledger": ledger,
        "sessions": sessions,
    }


def _create_stores(config: ParkingConfig) -> ParkingStores:
    if config.storage_backend == "memory":
        logger.warning("Using in-memory storage; data is lost on restart")
        return create_memory_stores()

    from clients.postgres_client import PostgresClient
    from clients.vault_client import get_database_url
    from core.stores.postgres import create_postgres_stores

    postgres = PostgresClient(
        get_database_url(),
        min_connections=config.db_min_connections,
        max_connections=config.db_max_connections,
        connect_timeout=config.db_connect_timeout_seconds,
    )
    return create_postgres_stores(postgres)


def create_app(
    config: ParkingConfig | None = None,
    stores: ParkingStores | None = None,
    clock: Callable[[], datetime] = now_utc,
) -> FastAPI:
    """
    Build the parking API.

    Args:
        config: Settings; read from PARKING_* env vars when omitted
        stores: Store set; built from config.storage_backend when omitted
        clock: Time source for entry/exit stamps
    """
    load_dotenv()
    config = config or ParkingConfig.from_env()

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if stores is None:
        stores = _create_stores(config)
    services = build_services(stores, clock)

    app = FastAPI(title=config.app_name)
    app.state.services = services
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    limit = config.default_list_limit
    app.include_router(create_clients_router(services, limit), prefix="/api")
    app.include_router(create_spaces_router(services), prefix="/api")
    app.include_router(create_rates_router(services), prefix="/api")
    app.include_router(create_tickets_router(services, limit), prefix="/api")

    @app.get("/health")
    def health():
        return success_response({"status": "ok"}, "Service healthy").model_dump(mode="json")

    @app.get("/api")
    def index():
        return success_response(
            {"name": config.app_name, "endpoints": _ENDPOINTS},
            "Parking API",
        ).model_dump(mode="json")

    logger.info(f"{config.app_name} ready (storage: {config.storage_backend})")
    return app

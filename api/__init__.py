"""HTTP interface: response envelope, error mapping and resource routers."""

from api.base import (
    APIResponse,
    success_response,
    error_response,
    ErrorCodes,
)
from api.clients import create_clients_router
from api.spaces import create_spaces_router
from api.rates import create_rates_router
from api.tickets import create_tickets_router

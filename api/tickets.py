"""/api/tickets: ticket queries, vehicle entry/exit and generic ticket CRUD."""

from fastapi import APIRouter, Query

from api.base import success_response
from core.models import EntryRequest, TicketCreate, TicketStatus, TicketUpdate


def create_tickets_router(services: dict, default_limit: int = 100) -> APIRouter:
    router = APIRouter(tags=["tickets"])

    ledger = services["ledger"]
    session_svc = services["sessions"]

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @router.get("/tickets")
    def list_tickets(
        estado: TicketStatus = Query(TicketStatus.ACTIVE, description="Ticket status filter"),
        limit: int = Query(default_limit, ge=1, le=1000),
    ):
        tickets = ledger.list_details_by_status(estado, limit)
        return success_response(
            [t.model_dump(mode="json") for t in tickets],
            "Tickets retrieved",
        ).model_dump(mode="json")

    @router.get("/tickets/cliente/{client_id}")
    def list_client_tickets(client_id: int, limit: int = Query(default_limit, ge=1, le=1000)):
        session_svc.clients.get_or_fail(client_id)
        tickets = ledger.list_for_client(client_id, limit)
        return success_response(
            [t.model_dump(mode="json") for t in tickets],
            "Client tickets retrieved",
        ).model_dump(mode="json")

    @router.get("/tickets/{ticket_id}")
    def get_ticket(ticket_id: int):
        ticket = ledger.get_detail(ticket_id)
        return success_response(ticket.model_dump(mode="json"), "Ticket retrieved").model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Entry / exit
    # -------------------------------------------------------------------------

    @router.post("/tickets/entrada", status_code=201)
    def register_entry(body: EntryRequest):
        result = session_svc.register_entry(body.client_id, body.space_id, body.rate_id)
        return success_response(
            result.model_dump(mode="json"),
            "Entry registered. Space occupied.",
        ).model_dump(mode="json")

    @router.put("/tickets/{ticket_id}/salida")
    def register_exit(ticket_id: int):
        result = session_svc.register_exit(ticket_id)
        return success_response(
            result.model_dump(mode="json"),
            "Exit registered and charge computed. Space released.",
        ).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Generic ticket CRUD
    # -------------------------------------------------------------------------

    @router.post("/tickets", status_code=201)
    def create_ticket(body: TicketCreate):
        ticket = session_svc.create_ticket(body)
        return success_response(ticket.model_dump(mode="json"), "Ticket created").model_dump(mode="json")

    @router.put("/tickets/{ticket_id}")
    def update_ticket(ticket_id: int, body: TicketUpdate):
        ticket = session_svc.update_ticket(ticket_id, body)
        return success_response(ticket.model_dump(mode="json"), "Ticket updated").model_dump(mode="json")

    @router.delete("/tickets/{ticket_id}")
    def cancel_ticket(ticket_id: int):
        ticket = session_svc.cancel_ticket(ticket_id)
        return success_response(ticket.model_dump(mode="json"), "Ticket cancelled").model_dump(mode="json")

    return router

"""/api/clientes: client registration and lookup."""

from fastapi import APIRouter, Query

from api.base import success_response
from core.exceptions import NotFoundError
from core.models import ClientCreate, ClientUpdate


def create_clients_router(services: dict, default_limit: int = 100) -> APIRouter:
    router = APIRouter(tags=["clientes"])

    client_svc = services["clients"]
    ledger = services["ledger"]

    @router.get("/clientes")
    def list_clients(
        limit: int = Query(default_limit, ge=1, le=1000),
        offset: int = Query(0, ge=0),
    ):
        clients = client_svc.list_all(limit, offset)
        return success_response(
            [c.model_dump(mode="json") for c in clients],
            "Clients retrieved",
        ).model_dump(mode="json")

    @router.get("/clientes/nit/{tax_id}")
    def get_client_by_tax_id(tax_id: str):
        client = client_svc.get_by_tax_id(tax_id)
        if client is None:
            raise NotFoundError("Client with tax id", tax_id)
        return success_response(client.model_dump(mode="json"), "Client retrieved").model_dump(mode="json")

    @router.get("/clientes/{client_id}")
    def get_client(client_id: int):
        client = client_svc.get_or_fail(client_id)
        data = client.model_dump(mode="json")
        data["tickets"] = [t.model_dump(mode="json") for t in ledger.list_for_client(client_id)]
        return success_response(data, "Client retrieved").model_dump(mode="json")

    @router.post("/clientes", status_code=201)
    def create_client(body: ClientCreate):
        client = client_svc.create(body)
        return success_response(client.model_dump(mode="json"), "Client created").model_dump(mode="json")

    @router.put("/clientes/{client_id}")
    def update_client(client_id: int, body: ClientUpdate):
        client = client_svc.update(client_id, body)
        return success_response(client.model_dump(mode="json"), "Client updated").model_dump(mode="json")

    @router.delete("/clientes/{client_id}")
    def delete_client(client_id: int):
        client_svc.delete(client_id)
        return success_response({"deleted": True}, "Client deleted").model_dump(mode="json")

    return router

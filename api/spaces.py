"""/api/espacios: parking space administration and availability."""

from fastapi import APIRouter

from api.base import success_response
from core.models import SpaceCreate, SpaceUpdate


def create_spaces_router(services: dict) -> APIRouter:
    router = APIRouter(tags=["espacios"])

    space_svc = services["spaces"]
    ledger = services["ledger"]

    @router.get("/espacios")
    def list_spaces():
        spaces = space_svc.list_all()
        return success_response(
            [s.model_dump(mode="json") for s in spaces],
            "Spaces retrieved",
        ).model_dump(mode="json")

    @router.get("/espacios/{space_id}/estado")
    def get_space_status(space_id: int):
        availability = space_svc.get_status(space_id)
        return success_response(
            availability.model_dump(mode="json"),
            "Space status retrieved",
        ).model_dump(mode="json")

    @router.get("/espacios/{space_id}")
    def get_space(space_id: int):
        space = space_svc.get_or_fail(space_id)
        data = space.model_dump(mode="json")
        data["tickets"] = [t.model_dump(mode="json") for t in ledger.list_for_space(space_id)]
        return success_response(data, "Space retrieved").model_dump(mode="json")

    @router.post("/espacios", status_code=201)
    def create_space(body: SpaceCreate):
        space = space_svc.create(body)
        return success_response(space.model_dump(mode="json"), "Space created").model_dump(mode="json")

    @router.put("/espacios/{space_id}")
    def update_space(space_id: int, body: SpaceUpdate):
        space = space_svc.update(space_id, body)
        return success_response(space.model_dump(mode="json"), "Space updated").model_dump(mode="json")

    @router.delete("/espacios/{space_id}")
    def delete_space(space_id: int):
        space_svc.delete(space_id)
        return success_response({"deleted": True}, "Space deleted").model_dump(mode="json")

    return router

"""/api/tarifas: hourly rate plans. DELETE deactivates."""

from fastapi import APIRouter, Query

from api.base import success_response
from core.models import RateCreate, RateUpdate


def create_rates_router(services: dict) -> APIRouter:
    router = APIRouter(tags=["tarifas"])

    rate_svc = services["rates"]

    @router.get("/tarifas")
    def list_rates(include_inactive: bool = Query(False, alias="all", description="Include inactive rates")):
        rates = rate_svc.list_all() if include_inactive else rate_svc.list_active()
        return success_response(
            [r.model_dump(mode="json") for r in rates],
            "Rates retrieved",
        ).model_dump(mode="json")

    @router.get("/tarifas/{rate_id}")
    def get_rate(rate_id: int):
        rate = rate_svc.get_or_fail(rate_id)
        return success_response(rate.model_dump(mode="json"), "Rate retrieved").model_dump(mode="json")

    @router.post("/tarifas", status_code=201)
    def create_rate(body: RateCreate):
        rate = rate_svc.create(body)
        return success_response(rate.model_dump(mode="json"), "Rate created").model_dump(mode="json")

    @router.put("/tarifas/{rate_id}")
    def update_rate(rate_id: int, body: RateUpdate):
        rate = rate_svc.update(rate_id, body)
        return success_response(rate.model_dump(mode="json"), "Rate updated").model_dump(mode="json")

    @router.delete("/tarifas/{rate_id}")
    def deactivate_rate(rate_id: int):
        rate = rate_svc.deactivate(rate_id)
        return success_response(rate.model_dump(mode="json"), "Rate deactivated").model_dump(mode="json")

    return router

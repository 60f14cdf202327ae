from __future__ import annotations
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..health import HealthRegistry, HealthReport


def get_router(registry: HealthRegistry) -> APIRouter:
    r = APIRouter(tags=["health"])

    @r.get("/healthz")
    def liveness():
        return {"status": "Healthy"}

    @r.get("/api/hc", response_model=HealthReport)
    def readiness():
        report = registry.run()
        return JSONResponse(status_code=200 if report.healthy else 503, content=report.model_dump(mode="json"))

    return r

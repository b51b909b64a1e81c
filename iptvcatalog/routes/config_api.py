"""Configuration and options API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from iptvcatalog.dependencies import get_config_service, get_worker_host
from iptvcatalog.services.config_service import ConfigService
from iptvcatalog.services.worker_host import WorkerHost, settings_from_options

router = APIRouter(tags=["config"])


@router.get("/api/options")
async def get_options(cfg: ConfigService = Depends(get_config_service)):
    return cfg.config.get("options", {})


@router.post("/api/options")
async def update_options(
    request: Request,
    cfg: ConfigService = Depends(get_config_service),
    host: WorkerHost = Depends(get_worker_host),
):
    data = await request.json()
    if not isinstance(data, dict):
        return JSONResponse(status_code=400, content={"error": "Expected a JSON object"})
    try:
        options = cfg.update_options(data)
    except ValidationError as e:
        return JSONResponse(status_code=422, content={"error": "Invalid options", "details": e.errors(include_url=False)})
    await host.reconfigure_async(settings_from_options(options))
    return {"status": "ok", "options": cfg.config["options"]}

"""Health and version check routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from iptvcatalog.dependencies import get_worker_host
from iptvcatalog.services.worker_host import WorkerHost

router = APIRouter(tags=["health"])

APP_VERSION = "0.1.0"


@router.get("/health")
async def health(host: WorkerHost = Depends(get_worker_host)):
    return {"status": "ok", "worker": "running" if host.running else "idle"}


@router.get("/api/version")
async def version():
    return {"current": APP_VERSION}

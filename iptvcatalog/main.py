"""IPTV catalog service: FastAPI application entrypoint."""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request

from iptvcatalog.routes import catalog_api, config_api, health, proxy
from iptvcatalog.services.config_service import ConfigService
from iptvcatalog.services.worker_host import WorkerHost, settings_from_options

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
logger = logging.getLogger(__name__)

DATA_DIR = os.environ.get("DATA_DIR", "/data" if os.path.exists("/data") else "./data")


def create_app(
    data_dir: str = DATA_DIR,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build a fully-wired app; *transport* replaces the network in tests."""
    cfg = ConfigService(data_dir)
    host = WorkerHost(transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        os.makedirs(data_dir, exist_ok=True)
        cfg.load()
        await host.reconfigure_async(settings_from_options(cfg.options))
        logger.info(f"Using data directory {data_dir}")
        yield
        await host.terminate_async()
        logger.info("Application shutdown complete")

    app = FastAPI(title="IPTV Catalog", lifespan=lifespan)

    # Attach state for DI
    app.state.config_service = cfg
    app.state.worker_host = host
    app.state.proxy_transport = transport

    # Middleware to ensure UTF-8 charset in JSON responses
    @app.middleware("http")
    async def add_utf8_charset(request: Request, call_next):
        response = await call_next(request)
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type and "charset" not in content_type:
            response.headers["content-type"] = "application/json; charset=utf-8"
        return response

    for r in (health, config_api, catalog_api, proxy):
        app.include_router(r.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=5000)

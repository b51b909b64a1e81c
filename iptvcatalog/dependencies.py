"""FastAPI dependency injection: provides services via Depends()."""
from __future__ import annotations

from fastapi import Request

from iptvcatalog.services.config_service import ConfigService
from iptvcatalog.services.worker_host import WorkerHost


def get_config_service(request: Request) -> ConfigService:
    return request.app.state.config_service


def get_worker_host(request: Request) -> WorkerHost:
    return request.app.state.worker_host


def is_secure_context(request: Request) -> bool:
    """Whether the page that issued *request* was served over HTTPS.

    The ``secure_context`` option overrides detection; otherwise the request
    scheme or ``X-Forwarded-Proto`` (behind a TLS-terminating proxy) decides.
    """
    override = request.app.state.config_service.get_secure_context_override()
    if override is not None:
        return override
    forwarded = request.headers.get("x-forwarded-proto", "")
    if forwarded:
        return forwarded.split(",")[0].strip().lower() == "https"
    return request.url.scheme == "https"

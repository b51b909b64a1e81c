"""Proxy route: same-origin bridge for plain-HTTP channel URLs and logos."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from iptvcatalog.services.proxy_rewriter import PROXY_PARAM, PROXY_ROUTE
from iptvcatalog.services.stream_service import proxy_request, validate_target

router = APIRouter(tags=["proxy"])


@router.api_route(PROXY_ROUTE, methods=["GET", "HEAD", "POST"])
async def proxy(request: Request, url: Optional[str] = Query(None, alias=PROXY_PARAM)):
    error = validate_target(url)
    if error:
        return JSONResponse(status_code=400, content={"error": error})
    transport = getattr(request.app.state, "proxy_transport", None)
    return await proxy_request(url, request, transport=transport)

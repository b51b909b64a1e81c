"""Catalog API routes: playlist ingestion and channel filtering via the worker host."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from iptvcatalog.dependencies import get_worker_host, is_secure_context
from iptvcatalog.errors import EmptyResultError, error_class
from iptvcatalog.models.channel import Channel, PlaylistSource, View
from iptvcatalog.models.messages import (
    AddRequest,
    ErrorReply,
    FilterRequest,
    LoadRequest,
    RequestKind,
    categories_from_reply,
)
from iptvcatalog.services.category_service import ensure_not_empty
from iptvcatalog.services.worker_host import Reply, WorkerHost

router = APIRouter(tags=["catalog"])


class FilterBody(BaseModel):
    all_channels: list[Channel] = Field(default_factory=list)
    view: View = View.CATEGORIES
    selected_category: str = "All"
    search_term: str = ""
    favorites: list[str] = Field(default_factory=list)
    history: list[str] = Field(default_factory=list)


def reply_response(reply: Reply) -> JSONResponse:
    status_code = 200
    if isinstance(reply, ErrorReply):
        status_code = error_class(reply.error_type).status_code
    return JSONResponse(status_code=status_code, content=reply.model_dump(mode="json", exclude_none=True))


@router.post("/api/playlists/load")
async def load_playlist(
    playlist: PlaylistSource,
    secure: bool = Depends(is_secure_context),
    host: WorkerHost = Depends(get_worker_host),
):
    reply = await host.submit(LoadRequest(playlist=playlist, secure_context=secure))
    return reply_response(reply)


@router.post("/api/playlists/add")
async def add_playlist(
    playlist: PlaylistSource,
    secure: bool = Depends(is_secure_context),
    host: WorkerHost = Depends(get_worker_host),
):
    reply = await host.submit(AddRequest(playlist=playlist, secure_context=secure))
    if isinstance(reply, ErrorReply):
        return reply_response(reply)
    try:
        ensure_not_empty(categories_from_reply(reply))
    except EmptyResultError as e:
        reply = ErrorReply(
            kind=RequestKind.ADD,
            request_id=reply.request_id,
            generation=reply.generation,
            message=str(e),
            error_type=type(e).__name__,
        )
    return reply_response(reply)


@router.post("/api/channels/filter")
async def filter_channels(body: FilterBody, host: WorkerHost = Depends(get_worker_host)):
    reply = await host.submit(FilterRequest(**body.model_dump()))
    return reply_response(reply)

"""Request/reply messages exchanged with the background execution host.

Requests form a closed union discriminated on ``kind``; replies carry the
originating kind so callers with several requests in flight can tell them
apart.
"""
from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from iptvcatalog.models.channel import Category, Channel, PlaylistSource, View


class RequestKind(str, enum.Enum):
    LOAD = "LOAD"
    ADD = "ADD"
    FILTER = "FILTER"


class _BaseRequest(BaseModel):
    request_id: str = ""
    generation: int = 0


class LoadRequest(_BaseRequest):
    kind: Literal["LOAD"] = "LOAD"
    playlist: PlaylistSource
    secure_context: bool = False


class AddRequest(_BaseRequest):
    kind: Literal["ADD"] = "ADD"
    playlist: PlaylistSource
    secure_context: bool = False


class FilterRequest(_BaseRequest):
    kind: Literal["FILTER"] = "FILTER"
    all_channels: list[Channel] = Field(default_factory=list)
    view: View = View.CATEGORIES
    selected_category: str = "All"
    search_term: str = ""
    favorites: list[str] = Field(default_factory=list)
    history: list[str] = Field(default_factory=list)


WorkerRequest = Annotated[Union[LoadRequest, AddRequest, FilterRequest], Field(discriminator="kind")]


class SuccessReply(BaseModel):
    status: Literal["success"] = "success"
    kind: RequestKind
    request_id: str = ""
    generation: int = 0
    # list[Category] for LOAD/ADD, list[Channel] for FILTER
    data: list[Any] = Field(default_factory=list)


class ErrorReply(BaseModel):
    status: Literal["error"] = "error"
    kind: RequestKind
    request_id: str = ""
    generation: int = 0
    message: str
    error_type: str = "InternalError"
    call: Optional[str] = None


WorkerReply = Annotated[Union[SuccessReply, ErrorReply], Field(discriminator="status")]

request_adapter: TypeAdapter[WorkerRequest] = TypeAdapter(WorkerRequest)
reply_adapter: TypeAdapter[WorkerReply] = TypeAdapter(WorkerReply)


def categories_from_reply(reply: SuccessReply) -> list[Category]:
    return [Category.model_validate(item) for item in reply.data]


def channels_from_reply(reply: SuccessReply) -> list[Channel]:
    return [Channel.model_validate(item) for item in reply.data]

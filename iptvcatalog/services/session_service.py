"""Catalog session: caller-side bookkeeping around the background host.

The session keeps the current catalog, drops replies that were superseded by
a newer request of the same operation, and debounces filter requests.
Favorites and history are owned by the caller; the helpers here only
compute the updated lists.
"""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from iptvcatalog.errors import error_from_reply
from iptvcatalog.models.channel import Category, Channel, FilterQuery, PlaylistSource
from iptvcatalog.models.config import Options
from iptvcatalog.models.messages import (
    AddRequest,
    ErrorReply,
    FilterRequest,
    LoadRequest,
    categories_from_reply,
    channels_from_reply,
)
from iptvcatalog.services.category_service import ensure_not_empty, flatten_categories
from iptvcatalog.services.worker_host import operation_for

if TYPE_CHECKING:
    from iptvcatalog.services.worker_host import Reply, Request, WorkerHost

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 300
DEFAULT_HISTORY_LIMIT = 50


def push_history(history: list[str], channel_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> list[str]:
    """Move *channel_id* to the front of *history*, capped at *limit* entries."""
    return [channel_id, *[h for h in history if h != channel_id]][:limit]


def toggle_favorite(favorites: list[str], channel_id: str) -> list[str]:
    """Remove *channel_id* if present, else add it at the front."""
    if channel_id in favorites:
        return [f for f in favorites if f != channel_id]
    return [channel_id, *favorites]


class CatalogSession:
    """Holds one loaded catalog and talks to a :class:`WorkerHost`."""

    def __init__(
        self,
        host: "WorkerHost",
        secure_context: bool = False,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.host = host
        self.secure_context = secure_context
        self.debounce = debounce_ms / 1000
        self.history_limit = history_limit
        self.categories: list[Category] = []
        self.channels: list[Channel] = []
        self.display: list[Channel] = []
        self._pending_filter: Optional[asyncio.Task] = None
        # latest generation this session issued, per operation
        self._latest: dict[str, int] = {}

    @classmethod
    def from_options(cls, host: "WorkerHost", options: Options, secure_context: bool = False) -> "CatalogSession":
        if options.secure_context is not None:
            secure_context = options.secure_context
        return cls(
            host,
            secure_context=secure_context,
            debounce_ms=options.debounce_ms,
            history_limit=options.history_limit,
        )

    def remember(self, history: list[str], channel_id: str) -> list[str]:
        return push_history(history, channel_id, self.history_limit)

    async def _submit(self, request: "Request") -> "Reply":
        request = self.host.prepare(request)
        self._latest[operation_for(request.kind)] = request.generation
        return await self.host.submit(request)

    def is_current(self, reply: "Reply") -> bool:
        return self._latest.get(operation_for(reply.kind)) == reply.generation

    def _check(self, reply: "Reply") -> bool:
        """Raise on error replies; False if the reply is stale."""
        if not self.is_current(reply):
            logger.debug(f"Discarding stale {reply.kind} reply {reply.request_id}")
            return False
        if isinstance(reply, ErrorReply):
            raise error_from_reply(reply.error_type, reply.message, reply.call)
        return True

    def _apply_catalog(self, categories: list[Category]) -> list[Category]:
        self.categories = categories
        self.channels = flatten_categories(categories)
        return categories

    async def load(self, playlist: PlaylistSource) -> Optional[list[Category]]:
        """Load *playlist* as the active catalog.

        Returns None when a newer LOAD/ADD was issued while this one ran.
        """
        reply = await self._submit(LoadRequest(playlist=playlist, secure_context=self.secure_context))
        if not self._check(reply):
            return None
        return self._apply_catalog(categories_from_reply(reply))

    async def add(self, playlist: PlaylistSource) -> Optional[list[Category]]:
        """Like :meth:`load`, but an empty playlist is rejected with EmptyResultError."""
        reply = await self._submit(AddRequest(playlist=playlist, secure_context=self.secure_context))
        if not self._check(reply):
            return None
        return self._apply_catalog(ensure_not_empty(categories_from_reply(reply)))

    async def filter(self, query: FilterQuery) -> Optional[list[Channel]]:
        reply = await self._submit(
            FilterRequest(
                all_channels=self.channels,
                view=query.view,
                selected_category=query.selected_category,
                search_term=query.search_term,
                favorites=query.favorites,
                history=query.history,
            )
        )
        if not self._check(reply):
            return None
        self.display = channels_from_reply(reply)
        return self.display

    async def _debounced_filter(self, query: FilterQuery) -> Optional[list[Channel]]:
        await asyncio.sleep(self.debounce)
        return await self.filter(query)

    def schedule_filter(self, query: FilterQuery) -> asyncio.Task:
        """Run :meth:`filter` after a quiet period, replacing any pending call."""
        if self._pending_filter is not None and not self._pending_filter.done():
            self._pending_filter.cancel()
        self._pending_filter = asyncio.ensure_future(self._debounced_filter(query))
        return self._pending_filter

    def clear(self) -> None:
        self.categories = []
        self.channels = []
        self.display = []

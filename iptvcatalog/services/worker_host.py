"""Background execution host: runs ingestion and filtering off the caller's loop.

The host owns a single worker thread with its own asyncio event loop and its
own HTTP client. It is created lazily on the first request (or an explicit
``start()``) and torn down with ``terminate()``. Requests and replies cross
the boundary as JSON text, so the worker never shares objects with the
caller.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import threading
import uuid
from concurrent.futures import CancelledError, Future
from dataclasses import dataclass
from typing import Optional, Union

import httpx

from iptvcatalog.errors import CatalogError, InternalError
from iptvcatalog.models.channel import Category, FilterQuery, PlaylistKind, PlaylistSource
from iptvcatalog.models.config import Options
from iptvcatalog.models.messages import (
    AddRequest,
    ErrorReply,
    FilterRequest,
    LoadRequest,
    RequestKind,
    SuccessReply,
    reply_adapter,
    request_adapter,
)
from iptvcatalog.services.category_service import group_channels_into_categories
from iptvcatalog.services.filter_service import filter_channels
from iptvcatalog.services.http_client import HttpClientService
from iptvcatalog.services.m3u_service import PlaylistFetcher, parse_m3u
from iptvcatalog.services.proxy_rewriter import fetch_rewriter, media_rewriter
from iptvcatalog.services.xtream_service import XtreamService

logger = logging.getLogger(__name__)

Request = Union[LoadRequest, AddRequest, FilterRequest]
Reply = Union[SuccessReply, ErrorReply]

# LOAD and ADD both replace the caller's catalog, so they share a generation counter
_OPERATIONS = {
    RequestKind.LOAD: "catalog",
    RequestKind.ADD: "catalog",
    RequestKind.FILTER: "filter",
}


def operation_for(kind: RequestKind) -> str:
    return _OPERATIONS[RequestKind(kind)]


@dataclass(frozen=True)
class HostSettings:
    fetch_timeout: float = 60.0
    fetch_via_proxy: bool = False
    public_origin: str = ""


def settings_from_options(options: Options) -> HostSettings:
    return HostSettings(
        fetch_timeout=options.fetch_timeout,
        fetch_via_proxy=options.fetch_via_proxy,
        public_origin=options.public_origin,
    )


async def ingest_playlist(
    playlist: PlaylistSource,
    secure_context: bool,
    fetcher: PlaylistFetcher,
    xtream: XtreamService,
) -> list[Category]:
    """Turn a playlist source into a sorted category list."""
    rewrite = media_rewriter(secure_context)
    if playlist.kind == PlaylistKind.FILE:
        channels = parse_m3u(playlist.source, rewrite)
    elif playlist.kind == PlaylistKind.URL:
        channels = await fetcher.fetch_and_parse(playlist.source, rewrite)
    elif playlist.kind == PlaylistKind.XTREAM:
        credentials = playlist.credentials
        channels = await xtream.fetch_live_channels(
            playlist.source, credentials.username, credentials.password, rewrite
        )
    else:
        raise InternalError(f"Unsupported playlist kind: {playlist.kind}")
    return group_channels_into_categories(channels)


class Worker:
    """Request handler living on the worker thread."""

    def __init__(self, http_client: HttpClientService, settings: HostSettings):
        self.http_client = http_client
        rewrite = fetch_rewriter(settings.fetch_via_proxy, settings.public_origin)
        self.fetcher = PlaylistFetcher(http_client, rewrite)
        self.xtream = XtreamService(http_client, rewrite)

    async def dispatch(self, request: Request) -> list:
        if isinstance(request, (LoadRequest, AddRequest)):
            categories = await ingest_playlist(request.playlist, request.secure_context, self.fetcher, self.xtream)
            return [category.model_dump(mode="json", by_alias=True) for category in categories]
        if isinstance(request, FilterRequest):
            query = FilterQuery(
                view=request.view,
                selected_category=request.selected_category,
                search_term=request.search_term,
                favorites=request.favorites,
                history=request.history,
            )
            channels = filter_channels(request.all_channels, query)
            return [channel.model_dump(mode="json", by_alias=True) for channel in channels]
        raise InternalError(f"Unsupported request: {type(request).__name__}")

    async def handle(self, request: Request) -> Reply:
        envelope = {"kind": request.kind, "request_id": request.request_id, "generation": request.generation}
        try:
            data = await self.dispatch(request)
        except CatalogError as e:
            logger.warning(f"{request.kind} request {request.request_id} failed: {e}")
            return ErrorReply(**envelope, message=str(e), error_type=type(e).__name__, call=getattr(e, "call", None))
        except Exception as e:
            logger.exception(f"Unexpected error handling {request.kind} request {request.request_id}")
            return ErrorReply(**envelope, message=f"Internal error: {e}", error_type=InternalError.__name__)
        return SuccessReply(**envelope, data=data)

    async def handle_json(self, payload: str) -> str:
        request = request_adapter.validate_json(payload)
        reply = await self.handle(request)
        return reply.model_dump_json()


class WorkerHost:
    """Owns the worker thread and the request/reply protocol."""

    def __init__(self, settings: Optional[HostSettings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or HostSettings()
        self.transport = transport
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._worker: Optional[Worker] = None
        self._generations: dict[str, int] = {"catalog": 0, "filter": 0}
        # bumped by terminate(); requests posted under an older epoch were cut off
        self._epoch = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Create the worker thread if it does not exist yet."""
        with self._lock:
            if self._thread is not None:
                return
            loop = asyncio.new_event_loop()
            http_client = HttpClientService(timeout=self.settings.fetch_timeout, transport=self.transport)
            ready = threading.Event()

            def run():
                asyncio.set_event_loop(loop)
                loop.call_soon(ready.set)
                try:
                    loop.run_forever()
                finally:
                    pending = asyncio.all_tasks(loop)
                    for task in pending:
                        task.cancel()
                    if pending:
                        loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
                    loop.run_until_complete(http_client.close())
                    loop.close()

            thread = threading.Thread(target=run, name="catalog-worker", daemon=True)
            thread.start()
            ready.wait()
            self._loop = loop
            self._thread = thread
            self._worker = Worker(http_client, self.settings)
            logger.info("Catalog worker started")

    def terminate(self, timeout: float = 5.0) -> None:
        """Stop the worker thread; in-flight requests are cancelled."""
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = self._thread = self._worker = None
            if loop is not None:
                self._epoch += 1
        if loop is None or thread is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout)
        logger.info("Catalog worker terminated")

    async def start_async(self) -> None:
        """:meth:`start` without blocking the caller's event loop."""
        if self.running:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.start)

    async def terminate_async(self, timeout: float = 5.0) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, functools.partial(self.terminate, timeout))

    async def reconfigure_async(self, settings: HostSettings) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, functools.partial(self.reconfigure, settings))

    def reconfigure(self, settings: HostSettings) -> None:
        """Apply new settings; a running worker is replaced on the next request."""
        if settings == self.settings:
            return
        self.settings = settings
        self.terminate()

    # ------------------------------------------------------------------
    # Generations
    # ------------------------------------------------------------------

    def next_generation(self, kind: RequestKind) -> int:
        operation = operation_for(kind)
        with self._lock:
            self._generations[operation] += 1
            return self._generations[operation]

    def current_generation(self, kind: RequestKind) -> int:
        return self._generations[operation_for(kind)]

    def is_current(self, reply: Reply) -> bool:
        """False once a newer request of the same operation has been issued."""
        return reply.generation == self.current_generation(reply.kind)

    def prepare(self, request: Request) -> Request:
        """Stamp *request* with an id and a generation if it has none."""
        update = {}
        if not request.request_id:
            update["request_id"] = uuid.uuid4().hex[:12]
        if not request.generation:
            update["generation"] = self.next_generation(request.kind)
        return request.model_copy(update=update) if update else request

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _post(self, request: Request) -> tuple["Future[str]", int]:
        self.start()
        with self._lock:
            loop, worker, epoch = self._loop, self._worker, self._epoch
        if loop is None or worker is None:
            raise InternalError("Catalog worker is not running")
        future = asyncio.run_coroutine_threadsafe(worker.handle_json(request.model_dump_json(by_alias=True)), loop)
        return future, epoch

    def _terminated_since(self, epoch: int) -> bool:
        return self._epoch != epoch

    @staticmethod
    def _failure(request: Request, message: str) -> ErrorReply:
        return ErrorReply(
            kind=request.kind,
            request_id=request.request_id,
            generation=request.generation,
            message=message,
            error_type=InternalError.__name__,
        )

    async def submit(self, request: Request) -> Reply:
        """Send *request* to the worker and await its reply without blocking the loop.

        Cancelling the caller cancels the request on the worker and propagates
        ``CancelledError``. A request cut off by :meth:`terminate` resolves to
        an ``InternalError`` reply instead.
        """
        request = self.prepare(request)
        await self.start_async()
        future, epoch = self._post(request)
        try:
            payload = await asyncio.wrap_future(future)
        except asyncio.CancelledError:
            if future.cancelled() and self._terminated_since(epoch):
                return self._failure(request, "Catalog worker was terminated")
            raise
        except Exception as e:
            logger.exception(f"Catalog worker failed on {request.kind} request {request.request_id}")
            return self._failure(request, f"Internal error: {e}")
        return reply_adapter.validate_json(payload)

    def submit_sync(self, request: Request, timeout: Optional[float] = None) -> Reply:
        """Blocking variant of :meth:`submit` for callers without an event loop."""
        request = self.prepare(request)
        future, epoch = self._post(request)
        try:
            payload = future.result(timeout)
        except CancelledError:
            if self._terminated_since(epoch):
                return self._failure(request, "Catalog worker was terminated")
            raise
        except Exception as e:
            logger.exception(f"Catalog worker failed on {request.kind} request {request.request_id}")
            return self._failure(request, f"Internal error: {e}")
        return reply_adapter.validate_json(payload)

"""Strategy executor -- one serving procedure per classification.

Each strategy is an async procedure over the store registry and the
network collaborator that always returns a well-formed
:class:`httpx.Response`. Network failures
(:class:`~cachegate.exceptions.NetworkUnavailableError`) and store failures
(:class:`~cachegate.exceptions.StoreError`) are handled here and turned
into store fallbacks or synthesized offline responses; neither escapes to
the caller.

Cache write-back in the network-first strategy is fire-and-forget: it is
scheduled on :class:`PendingWrites` and the live response is returned
immediately. Await :meth:`PendingWrites.drain` to observe completion.

Strategy summary:

==========================  ============================================
Classification              Behaviour
==========================  ============================================
``NETWORK_ONLY``            network (``no-store``); offline -> JSON 503
``NETWORK_FIRST``           network (``no-cache``), background write-back;
                            offline -> stored copy -> offline page/CSS
``MEDIA_CACHE_FIRST``       store -> network + write; offline -> SVG
``ORIGIN_ASSET_CACHE_FIRST``  store -> network + write to static store
``TIMED_CACHE``             store unless expired -> network + stamp;
                            stale entry served when refresh fails
==========================  ============================================
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Optional, TYPE_CHECKING

import httpx

from cachegate import fallbacks
from cachegate.exceptions import NetworkUnavailableError, StoreError
from cachegate.freshness import FreshnessTracker
from cachegate.identity import is_mutating, request_identity
from cachegate.models import Classification, EngineConfig
from cachegate.store.entries import RequestSnapshot, ResponseSnapshot, StoredEntry
from cachegate.store.registry import StoreRegistry

if TYPE_CHECKING:
    from cachegate.sync_queue import SyncQueue

logger = logging.getLogger(__name__)

NO_STORE = "no-store"
NO_CACHE = "no-cache"


class PendingWrites:
    """Track background store writes so they can be awaited deterministically."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def schedule(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def __len__(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every scheduled write (including ones scheduled meanwhile) finishes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class StrategyExecutor:
    """Run the serving strategy selected by the classifier.

    Args:
        config: Engine configuration (store names, expiration threshold,
            offline message).
        registry: Registry owning every store of the origin.
        network: Client used for all network I/O. Anything it raises as
            :class:`httpx.RequestError` counts as "network unavailable".
        tracker: Freshness tracker used by the timed strategy.
        pending: Sink for fire-and-forget writes.
        sync_queue: Optional queue receiving failed mutating requests when
            ``config.queue_failed_mutations`` is enabled.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        config: EngineConfig,
        registry: StoreRegistry,
        network: httpx.AsyncClient,
        tracker: Optional[FreshnessTracker] = None,
        pending: Optional[PendingWrites] = None,
        sync_queue: Optional[SyncQueue] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._registry = registry
        self._network = network
        self._tracker = tracker or FreshnessTracker(
            header=config.freshness_header,
            clock=clock,
            treat_unmarked_as_fresh=config.treat_unmarked_as_fresh,
        )
        self._pending = pending or PendingWrites()
        self._sync_queue = sync_queue
        self._clock = clock
        self._handlers: dict[Classification, Callable[[httpx.Request], Awaitable[httpx.Response]]] = {
            Classification.NETWORK_ONLY: self.network_only,
            Classification.NETWORK_FIRST: self.network_first,
            Classification.MEDIA_CACHE_FIRST: self.media_cache_first,
            Classification.ORIGIN_ASSET_CACHE_FIRST: self.origin_asset_cache_first,
            Classification.TIMED_CACHE: self.timed_cache,
        }

    @property
    def pending(self) -> PendingWrites:
        return self._pending

    async def execute(self, request: httpx.Request, classification: Classification) -> httpx.Response:
        """Serve *request* with the strategy for *classification*.

        Raises:
            ValueError: For ``Classification.IGNORED``, which is never served.
        """
        handler = self._handlers.get(classification)
        if handler is None:
            raise ValueError(f"No strategy serves {classification.value!r} requests")
        return await handler(request)

    # ------------------------------------------------------------------ #
    # Strategies
    # ------------------------------------------------------------------ #

    async def network_only(self, request: httpx.Request) -> httpx.Response:
        """Always go to the network; never read or write a store."""
        try:
            snapshot = await self.fetch(request, NO_STORE)
        except NetworkUnavailableError as exc:
            logger.debug("network-only offline for %s: %s", request.url, exc)
            await self.defer_mutation(request)
            return fallbacks.offline_json(self._config.offline_message, request)
        return snapshot.to_response(request)

    async def network_first(self, request: httpx.Request) -> httpx.Response:
        """Prefer live content; write it back in the background."""
        try:
            snapshot = await self.fetch(request, NO_CACHE)
        except NetworkUnavailableError as exc:
            logger.debug("network-first falling back to store for %s: %s", request.url, exc)
            await self.defer_mutation(request)
            cached = await self.lookup(request)
            if cached is not None:
                return cached.to_response(request)
            return fallbacks.for_document(request)

        if snapshot.is_success:
            self._pending.schedule(
                self.store_response(self._config.dynamic_store, request, snapshot)
            )
        return snapshot.to_response(request)

    async def media_cache_first(self, request: httpx.Request) -> httpx.Response:
        """Serve stored media without a round trip; fetch and store on a miss."""
        cached = await self.lookup(request)
        if cached is not None:
            return cached.to_response(request)
        try:
            snapshot = await self.fetch(request)
        except NetworkUnavailableError as exc:
            logger.debug("media offline for %s: %s", request.url, exc)
            await self.defer_mutation(request)
            return fallbacks.placeholder_image(request)
        if snapshot.is_success:
            await self.store_response(self._config.dynamic_store, request, snapshot)
        return snapshot.to_response(request)

    async def origin_asset_cache_first(self, request: httpx.Request) -> httpx.Response:
        """Serve manifest assets from the store; refill the static store on a miss."""
        cached = await self.lookup(request)
        if cached is not None:
            return cached.to_response(request)
        try:
            snapshot = await self.fetch(request)
        except NetworkUnavailableError as exc:
            logger.debug("origin asset offline for %s: %s", request.url, exc)
            await self.defer_mutation(request)
            return fallbacks.for_asset(request)
        if snapshot.is_success:
            await self.store_response(self._config.static_store, request, snapshot)
        return snapshot.to_response(request)

    async def timed_cache(self, request: httpx.Request) -> httpx.Response:
        """Serve stored entries until they expire; serve stale when refresh fails."""
        cached = await self.lookup(request)
        if cached is not None:
            if not self._tracker.is_expired(cached, self._config.expiration_seconds):
                return cached.to_response(request)
            try:
                snapshot = await self.fetch(request)
            except NetworkUnavailableError as exc:
                logger.debug("refresh failed for %s, serving stale: %s", request.url, exc)
                return cached.to_response(request)
            if not snapshot.is_success:
                logger.debug(
                    "refresh for %s returned %d, serving stale", request.url, snapshot.status_code
                )
                return cached.to_response(request)
            await self.store_response(
                self._config.dynamic_store, request, self._tracker.stamp(snapshot)
            )
            return snapshot.to_response(request)

        try:
            snapshot = await self.fetch(request)
        except NetworkUnavailableError as exc:
            logger.debug("timed cache miss while offline for %s: %s", request.url, exc)
            await self.defer_mutation(request)
            return fallbacks.service_unavailable(request)
        if snapshot.is_success:
            await self.store_response(
                self._config.dynamic_store, request, self._tracker.stamp(snapshot)
            )
        return snapshot.to_response(request)

    # ------------------------------------------------------------------ #
    # Network and store primitives
    # ------------------------------------------------------------------ #

    async def fetch(self, request: httpx.Request, cache_directive: Optional[str] = None) -> ResponseSnapshot:
        """Send *request* over the network and return a fully-read snapshot.

        Args:
            request: The intercepted request. Its body is read first so it
                can be resent later.
            cache_directive: ``Cache-Control`` value sent to the transport
                (``no-store`` / ``no-cache``); ``None`` leaves headers as-is.

        Raises:
            NetworkUnavailableError: On any :class:`httpx.RequestError`.
        """
        await request.aread()
        headers = httpx.Headers(request.headers)
        if cache_directive is not None:
            headers["Cache-Control"] = cache_directive
            headers["Pragma"] = "no-cache"
        outgoing = httpx.Request(
            request.method,
            request.url,
            headers=headers,
            content=request.content,
            extensions=request.extensions,
        )
        try:
            response = await self._network.send(outgoing)
            try:
                await response.aread()
            finally:
                await response.aclose()
        except httpx.RequestError as exc:
            raise NetworkUnavailableError(f"{request.method} {request.url}: {exc}") from exc
        return ResponseSnapshot.from_response(response)

    async def defer_mutation(self, request: httpx.Request) -> bool:
        """Hand a mutating request that failed offline to the sync queue.

        Only active with ``config.queue_failed_mutations``; the queue itself
        filters on the configured endpoint patterns.
        """
        if self._sync_queue is None or not self._config.queue_failed_mutations:
            return False
        if not is_mutating(request.method):
            return False
        return await self._sync_queue.enqueue_failed(request)

    async def lookup(self, request: httpx.Request) -> Optional[ResponseSnapshot]:
        """Return the stored response for *request*, dynamic store first.

        Only GET requests are ever cached. Store failures count as a miss.
        """
        if request.method.upper() != "GET":
            return None
        identity = request_identity(request.method, request.url)
        names = (self._config.dynamic_store, self._config.static_store)
        try:
            entry = await self._registry.match(identity, names)
        except StoreError as exc:
            logger.warning("Store read failed for %s, treating as miss: %s", identity, exc)
            return None
        if entry is None or entry.response is None:
            return None
        return entry.response

    async def store_response(
        self,
        store_name: str,
        request: httpx.Request,
        snapshot: ResponseSnapshot,
    ) -> bool:
        """Persist a successful GET response. Returns ``True`` if written.

        Non-GET requests and non-2xx responses are never stored. Store
        failures are logged and the write is dropped.
        """
        if request.method.upper() != "GET" or not snapshot.is_success:
            return False
        entry = StoredEntry(
            identity=request_identity(request.method, request.url),
            request=RequestSnapshot.from_request(request),
            response=snapshot,
            stored_at=self._clock(),
        )
        try:
            store = await self._registry.open_store(store_name)
            await store.put(entry)
        except StoreError as exc:
            logger.warning("Dropped write of %s to %s: %s", entry.identity, store_name, exc)
            return False
        logger.debug("Stored %s in %s", entry.identity, store_name)
        return True

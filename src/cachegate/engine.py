"""The cache strategy engine and its lifecycle.

:class:`CacheEngine` wires the classifier, store registry, strategy
executor, freshness tracker, and sync queue together behind five
lifecycle methods:

* :meth:`CacheEngine.on_install` -- pre-cache the static manifest.
* :meth:`CacheEngine.on_activate` -- sweep stale store generations and
  take control of request handling.
* :meth:`CacheEngine.on_request` -- classify and serve one request.
* :meth:`CacheEngine.on_reconnect` -- drain the sync queue.
* :meth:`CacheEngine.on_control_message` -- ``forceActivate`` / ``clearAll``.

Requests arriving while activation is in progress wait for it to finish
before they are classified. Requests arriving before the engine has ever
been activated are not intercepted.

Example::

    config = EngineConfig(origin="https://shop.example", version="2.0.4")
    async with CacheEngine(config, backend=DiskStoreBackend(store_dir)) as engine:
        await engine.on_install()
        response = await engine.on_request(httpx.Request("GET", "https://shop.example/"))
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any, Optional

import httpx

from cachegate.classifier import RequestClassifier
from cachegate.exceptions import NetworkUnavailableError, StoreError
from cachegate.freshness import FreshnessTracker
from cachegate.models import (
    Classification,
    ControlAction,
    DrainReport,
    EngineConfig,
    EnginePhase,
    InstallReport,
)
from cachegate.store.backends import MemoryStoreBackend, StoreBackend
from cachegate.store.registry import StoreRegistry
from cachegate.strategies import NO_CACHE, PendingWrites, StrategyExecutor
from cachegate.sync_queue import SyncQueue

logger = logging.getLogger(__name__)


class CacheEngine:
    """Client-side request interception engine.

    Args:
        config: Deployment configuration; store names derive from it.
        backend: Store collaborator. Defaults to a fresh
            :class:`~cachegate.store.backends.MemoryStoreBackend`.
        network: Client used for all network I/O. When omitted the engine
            creates (and later closes) one from ``config.request``.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        config: EngineConfig,
        backend: Optional[StoreBackend] = None,
        network: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._owns_network = network is None
        self._network = network or httpx.AsyncClient(
            timeout=config.request.timeout,
            verify=config.request.verify_ssl,
            follow_redirects=True,
        )
        self._registry = StoreRegistry(backend or MemoryStoreBackend(), config.namespace)
        self._classifier = RequestClassifier(config)
        self._pending = PendingWrites()
        self._sync_queue = SyncQueue(config, self._registry, self._network, clock=clock)
        self._executor = StrategyExecutor(
            config,
            self._registry,
            self._network,
            tracker=FreshnessTracker(
                header=config.freshness_header,
                clock=clock,
                treat_unmarked_as_fresh=config.treat_unmarked_as_fresh,
            ),
            pending=self._pending,
            sync_queue=self._sync_queue,
            clock=clock,
        )
        self._phase = EnginePhase.NEW
        self._controlling = False
        self._activated = asyncio.Event()
        self._lifecycle_lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> CacheEngine:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Finish background writes and release the network and store resources."""
        await self.flush()
        if self._owns_network:
            await self._network.aclose()
        await self._registry.backend.close()

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def phase(self) -> EnginePhase:
        return self._phase

    @property
    def is_controlling(self) -> bool:
        return self._controlling

    @property
    def registry(self) -> StoreRegistry:
        return self._registry

    @property
    def sync_queue(self) -> SyncQueue:
        return self._sync_queue

    @property
    def pending(self) -> PendingWrites:
        """Handle on in-flight background writes."""
        return self._pending

    async def flush(self) -> None:
        """Wait for every background store write to complete."""
        await self._pending.drain()

    def classify(self, request: httpx.Request) -> Classification:
        return self._classifier.classify(request)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def on_install(self) -> InstallReport:
        """Pre-cache the static manifest into the static store.

        Every asset is fetched independently; an asset that fails is logged
        and skipped without failing the install. When ``skip_waiting`` is
        enabled the engine activates immediately afterwards.
        """
        async with self._lifecycle_lock:
            self._phase = EnginePhase.INSTALLING
            report = InstallReport()
            results = await asyncio.gather(
                *(self._precache(path) for path in self._config.static_manifest)
            )
            for path, ok in zip(self._config.static_manifest, results):
                (report.cached if ok else report.failed).append(path)
            self._phase = EnginePhase.INSTALLED
            logger.info(
                "Installed %s: %d asset(s) cached, %d failed",
                self._config.static_store,
                len(report.cached),
                len(report.failed),
            )

        if self._config.skip_waiting:
            await self.on_activate()
        return report

    async def on_activate(self) -> list[str]:
        """Sweep stale store generations, then take control.

        Returns:
            Names of the stores deleted by the sweep.
        """
        async with self._lifecycle_lock:
            self._phase = EnginePhase.ACTIVATING
            self._activated.clear()
            try:
                deleted = await self._registry.activate_version(self._config.current_store_names)
            except StoreError as exc:
                logger.warning("Store sweep failed during activation: %s", exc)
                deleted = []
            self._controlling = True
            self._phase = EnginePhase.ACTIVE
            self._activated.set()
        logger.info("Activated %s", self._config.dynamic_store)
        return deleted

    async def on_request(self, request: httpx.Request) -> Optional[httpx.Response]:
        """Serve *request* if it is intercepted.

        Returns:
            The response to hand back to the caller, or ``None`` when the
            request is not intercepted (cross-origin pass-through, or the
            engine is not yet controlling) and should go to the network
            untouched.
        """
        if self._phase is EnginePhase.ACTIVATING:
            await self._activated.wait()
        if not self._controlling:
            return None

        classification = self._classifier.classify(request)
        if classification is Classification.IGNORED:
            return None
        logger.debug("%s %s -> %s", request.method, request.url, classification.value)
        return await self._executor.execute(request, classification)

    async def on_reconnect(self, tag: Optional[str] = None) -> Optional[DrainReport]:
        """Drain the sync queue when *tag* is the configured sync tag.

        Returns:
            The drain report, or ``None`` when the tag is not ours.
        """
        if tag is not None and tag != self._config.sync_tag:
            logger.debug("Ignoring reconnect tag %r", tag)
            return None
        return await self._sync_queue.drain()

    async def on_control_message(self, message: Mapping[str, Any]) -> Optional[dict[str, Any]]:
        """Handle an out-of-band control command.

        ``{"action": "forceActivate"}`` activates an installed engine and
        produces no reply. ``{"action": "clearAll"}`` deletes every store
        and replies ``{"success": True}``. Unknown actions are ignored.
        """
        action = ControlAction.parse(message.get("action"))
        if action is None:
            logger.warning("Ignoring unknown control message: %r", dict(message))
            return None

        if action is ControlAction.FORCE_ACTIVATE:
            if self._phase is EnginePhase.INSTALLED:
                await self.on_activate()
            return None

        await self._registry.clear_all()
        return {"success": True}

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _precache(self, path: str) -> bool:
        url = self._config.origin.rstrip("/") + path
        request = httpx.Request("GET", url)
        try:
            snapshot = await self._executor.fetch(request, NO_CACHE)
        except NetworkUnavailableError as exc:
            logger.warning("Failed to cache %s: %s", path, exc)
            return False
        if not snapshot.is_success:
            logger.warning("Failed to cache %s: HTTP %d", path, snapshot.status_code)
            return False
        return await self._executor.store_response(self._config.static_store, request, snapshot)

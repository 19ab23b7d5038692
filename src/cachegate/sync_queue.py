"""Deferred-write sync queue -- replay mutating requests after reconnecting.

Queued requests are not kept in a structure of their own: they are
:class:`~cachegate.store.entries.StoredEntry` records without a response,
stored in the dynamic store under their identity (``POST https://...``).
The queue is therefore the view of that store filtered by the configured
endpoint patterns.

Per identity the task moves ``pending -> removed`` on a delivered replay
and stays ``pending`` on failure. With ``max_replay_attempts`` set, a task
that keeps failing is dropped once it reaches the limit; without it the
task is retried on every drain.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Optional

import httpx

from cachegate.exceptions import StoreError
from cachegate.identity import identity_url, is_mutating, request_identity
from cachegate.models import DrainReport, EngineConfig
from cachegate.store.entries import RequestSnapshot, StoredEntry
from cachegate.store.registry import Store, StoreRegistry

logger = logging.getLogger(__name__)


class SyncQueue:
    """Record failed mutating requests and replay them on reconnect.

    Args:
        config: Supplies the dynamic store name, endpoint patterns, and
            the replay attempt limit.
        registry: Registry owning the dynamic store.
        network: Client used to replay requests.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        config: EngineConfig,
        registry: StoreRegistry,
        network: httpx.AsyncClient,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._registry = registry
        self._network = network
        self._clock = clock
        self._patterns = tuple(config.sync_patterns)
        self._in_flight: set[str] = set()

    def matches(self, url: httpx.URL | str) -> bool:
        """Return ``True`` if *url*'s path names a replayable endpoint."""
        path = httpx.URL(url).path
        return any(pattern in path for pattern in self._patterns)

    async def enqueue_failed(self, request: httpx.Request) -> bool:
        """Queue *request* for replay.

        Safe requests and URLs outside the sync patterns are ignored.
        A later failure for the same identity replaces the earlier task.

        Returns:
            ``True`` if the request was queued.
        """
        if not is_mutating(request.method) or not self.matches(request.url):
            return False
        await request.aread()
        entry = StoredEntry(
            identity=request_identity(request.method, request.url),
            request=RequestSnapshot.from_request(request),
            stored_at=self._clock(),
        )
        try:
            store = await self._registry.open_store(self._config.dynamic_store)
            await store.put(entry)
        except StoreError as exc:
            logger.warning("Could not queue %s for replay: %s", entry.identity, exc)
            return False
        logger.info("Queued %s for replay", entry.identity)
        return True

    async def pending(self) -> list[str]:
        """Return the identities currently waiting for replay."""
        store = await self._registry.open_store(self._config.dynamic_store)
        tasks: list[str] = []
        for identity in await store.keys():
            if not self.matches(identity_url(identity)):
                continue
            entry = await store.match(identity)
            if entry is not None and entry.is_sync_task:
                tasks.append(identity)
        return tasks

    async def drain(self) -> DrainReport:
        """Replay every pending task once.

        Nothing is raised: store and network failures are logged and the
        affected tasks stay queued. Overlapping drains skip identities
        another drain is already replaying or has removed.
        """
        report = DrainReport()
        try:
            store = await self._registry.open_store(self._config.dynamic_store)
            identities = await store.keys()
        except StoreError as exc:
            logger.warning("Sync drain could not read the queue: %s", exc)
            return report

        for identity in identities:
            if not self.matches(identity_url(identity)):
                continue
            if identity in self._in_flight:
                report.skipped.append(identity)
                continue
            self._in_flight.add(identity)
            try:
                await self._replay(store, identity, report)
            except StoreError as exc:
                logger.warning("Sync drain store failure for %s: %s", identity, exc)
                report.failed.append(identity)
            finally:
                self._in_flight.discard(identity)

        if report.replayed or report.failed or report.dropped:
            logger.info(
                "Sync drain: %d replayed, %d pending, %d dropped",
                len(report.replayed),
                len(report.failed),
                len(report.dropped),
            )
        return report

    async def _replay(self, store: Store, identity: str, report: DrainReport) -> None:
        entry = await store.match(identity)
        if entry is None:
            report.skipped.append(identity)
            return
        if not entry.is_sync_task:
            return

        try:
            response = await self._network.send(entry.request.to_request())
            await response.aclose()
        except httpx.RequestError as exc:
            logger.debug("Replay of %s failed: %s", identity, exc)
            await self._retry_later(store, entry, report)
            return

        await store.delete(identity)
        report.replayed.append(identity)
        logger.debug("Replayed %s (HTTP %d)", identity, response.status_code)

    async def _retry_later(self, store: Store, entry: StoredEntry, report: DrainReport) -> None:
        attempts = entry.attempts + 1
        limit: Optional[int] = self._config.max_replay_attempts
        if limit is not None and attempts >= limit:
            await store.delete(entry.identity)
            report.dropped.append(entry.identity)
            logger.warning(
                "Dropped %s after %d failed replay attempt(s)", entry.identity, attempts
            )
            return
        await store.put(entry.model_copy(update={"attempts": attempts}))
        report.failed.append(entry.identity)

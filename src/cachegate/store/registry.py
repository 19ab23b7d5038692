"""Store registry -- named, versioned buckets over a :class:`StoreBackend`.

Store names embed the cache generation (``cachegate-dynamic-v2``). Only
names listed as current survive :meth:`StoreRegistry.activate_version`;
every other store carrying this engine's namespace prefix is deleted, which
is how a version bump migrates the cache. Stores belonging to other
namespaces are never touched except by :meth:`StoreRegistry.clear_all`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional

from cachegate.store.backends import StoreBackend
from cachegate.store.entries import StoredEntry

logger = logging.getLogger(__name__)


class Store:
    """Handle on a single named store, returned by :meth:`StoreRegistry.open_store`."""

    def __init__(self, backend: StoreBackend, name: str) -> None:
        self._backend = backend
        self.name = name

    async def match(self, identity: str) -> Optional[StoredEntry]:
        return await self._backend.match(self.name, identity)

    async def put(self, entry: StoredEntry) -> None:
        await self._backend.put(self.name, entry)

    async def delete(self, identity: str) -> bool:
        return await self._backend.delete(self.name, identity)

    async def keys(self) -> list[str]:
        return await self._backend.keys(self.name)

    def __repr__(self) -> str:
        return f"Store({self.name!r})"


class StoreRegistry:
    """Own every store of one origin and sweep stale generations.

    Args:
        backend: The store collaborator.
        namespace: Prefix identifying stores owned by this engine.
    """

    def __init__(self, backend: StoreBackend, namespace: str) -> None:
        self._backend = backend
        self._prefix = f"{namespace}-"

    @property
    def backend(self) -> StoreBackend:
        return self._backend

    async def open_store(self, name: str) -> Store:
        """Return the store called *name*, creating it if absent."""
        await self._backend.open(name)
        return Store(self._backend, name)

    async def match(self, identity: str, names: Iterable[str]) -> Optional[StoredEntry]:
        """Return the first entry for *identity* found in *names*, searched in order."""
        for name in names:
            entry = await self._backend.match(name, identity)
            if entry is not None:
                return entry
        return None

    async def activate_version(self, current_names: Iterable[str]) -> list[str]:
        """Delete namespaced stores not listed in *current_names*.

        Returns:
            The names of the stores that were deleted. A second call with
            the same names deletes nothing.
        """
        keep = set(current_names)
        deleted: list[str] = []
        for name in await self._backend.list_store_names():
            if name.startswith(self._prefix) and name not in keep:
                if await self._backend.delete_store(name):
                    deleted.append(name)
        if deleted:
            logger.info("Removed stale stores: %s", ", ".join(deleted))
        return deleted

    async def clear_all(self) -> list[str]:
        """Delete every store, whatever its name."""
        deleted: list[str] = []
        for name in await self._backend.list_store_names():
            if await self._backend.delete_store(name):
                deleted.append(name)
        logger.info("Cleared %d store(s)", len(deleted))
        return deleted

    async def describe(self) -> dict[str, int]:
        """Return ``{store name: entry count}`` for every existing store."""
        summary: dict[str, int] = {}
        for name in sorted(await self._backend.list_store_names()):
            summary[name] = len(await self._backend.keys(name))
        return summary

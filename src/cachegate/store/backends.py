"""Store backends -- the asynchronous key-value collaborators behind the registry.

A backend holds any number of named stores, each mapping an identity
string to a :class:`~cachegate.store.entries.StoredEntry`. Two
implementations are provided:

* :class:`MemoryStoreBackend` -- in-process dictionaries, used by tests and
  by applications embedding the engine for a single session.
* :class:`DiskStoreBackend` -- one :mod:`diskcache` directory per store,
  used by the ``cachegate`` CLI so entries survive between invocations.

Backends report failures as :class:`~cachegate.exceptions.StoreError`.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import re
import shutil
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional

import diskcache

from cachegate.exceptions import StoreError
from cachegate.store.entries import StoredEntry

logger = logging.getLogger(__name__)

_STORE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class StoreBackend(abc.ABC):
    """Abstract asynchronous store collaborator.

    ``put`` on a store that does not exist creates it; reads on a missing
    store behave as if it were empty.
    """

    @abc.abstractmethod
    async def open(self, name: str) -> None:
        """Create store *name* if it does not exist yet."""

    @abc.abstractmethod
    async def match(self, name: str, identity: str) -> Optional[StoredEntry]:
        """Return the entry for *identity* in store *name*, or ``None``."""

    @abc.abstractmethod
    async def put(self, name: str, entry: StoredEntry) -> None:
        """Insert or replace *entry* under its identity (last write wins)."""

    @abc.abstractmethod
    async def delete(self, name: str, identity: str) -> bool:
        """Remove *identity* from store *name*. Returns ``False`` if absent."""

    @abc.abstractmethod
    async def keys(self, name: str) -> list[str]:
        """Return the identities held in store *name*."""

    @abc.abstractmethod
    async def list_store_names(self) -> list[str]:
        """Return the names of all existing stores."""

    @abc.abstractmethod
    async def delete_store(self, name: str) -> bool:
        """Destroy store *name* and its entries. Returns ``False`` if absent."""

    async def close(self) -> None:
        """Release backend resources."""


class MemoryStoreBackend(StoreBackend):
    """Dictionary-backed stores living for the lifetime of the object."""

    def __init__(self) -> None:
        self._stores: dict[str, dict[str, StoredEntry]] = {}

    async def open(self, name: str) -> None:
        self._stores.setdefault(name, {})

    async def match(self, name: str, identity: str) -> Optional[StoredEntry]:
        return self._stores.get(name, {}).get(identity)

    async def put(self, name: str, entry: StoredEntry) -> None:
        self._stores.setdefault(name, {})[entry.identity] = entry

    async def delete(self, name: str, identity: str) -> bool:
        return self._stores.get(name, {}).pop(identity, None) is not None

    async def keys(self, name: str) -> list[str]:
        return list(self._stores.get(name, {}))

    async def list_store_names(self) -> list[str]:
        return list(self._stores)

    async def delete_store(self, name: str) -> bool:
        return self._stores.pop(name, None) is not None


class DiskStoreBackend(StoreBackend):
    """Persist each store in its own :class:`diskcache.Cache` directory.

    Entries are written as plain dicts (``StoredEntry.model_dump()``) and
    validated on the way back out; a record that no longer validates is
    reported as a :class:`StoreError` so callers treat it as a miss.
    diskcache is synchronous, so every call runs in a worker thread.

    Args:
        root: Directory under which one sub-directory per store is created.

    Example::

        backend = DiskStoreBackend(get_cache_dir() / "stores")
        registry = StoreRegistry(backend, namespace="cachegate")
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._caches: dict[str, diskcache.Cache] = {}
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    async def open(self, name: str) -> None:
        await self._run(self._cache, name)

    async def match(self, name: str, identity: str) -> Optional[StoredEntry]:
        if not await self._run(self._exists, name):
            return None
        raw = await self._run(lambda: self._cache(name).get(identity))
        if raw is None:
            return None
        try:
            return StoredEntry.model_validate(raw)
        except ValueError as exc:
            raise StoreError(f"Corrupt entry {identity!r} in store {name!r}: {exc}") from exc

    async def put(self, name: str, entry: StoredEntry) -> None:
        data = entry.model_dump()
        await self._run(lambda: self._cache(name).set(entry.identity, data))

    async def delete(self, name: str, identity: str) -> bool:
        if not await self._run(self._exists, name):
            return False
        return bool(await self._run(lambda: self._cache(name).delete(identity)))

    async def keys(self, name: str) -> list[str]:
        if not await self._run(self._exists, name):
            return []
        return await self._run(lambda: [str(key) for key in self._cache(name)])

    async def list_store_names(self) -> list[str]:
        return await self._run(self._list_names)

    async def delete_store(self, name: str) -> bool:
        return await self._run(self._delete_store, name)

    async def close(self) -> None:
        await self._run(self._close_all)

    # ------------------------------------------------------------------ #
    # Private helpers (run in worker threads)
    # ------------------------------------------------------------------ #

    async def _run(self, func: Any, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except (OSError, sqlite3.Error, diskcache.Timeout) as exc:
            raise StoreError(f"Store backend failure under {self._root}: {exc}") from exc

    def _path(self, name: str) -> Path:
        if not _STORE_NAME_RE.match(name):
            raise StoreError(f"Invalid store name: {name!r}")
        return self._root / name

    def _exists(self, name: str) -> bool:
        return name in self._caches or self._path(name).is_dir()

    def _cache(self, name: str) -> diskcache.Cache:
        with self._lock:
            cache = self._caches.get(name)
            if cache is None:
                cache = diskcache.Cache(str(self._path(name)))
                self._caches[name] = cache
            return cache

    def _close_all(self) -> None:
        with self._lock:
            caches = list(self._caches.values())
            self._caches.clear()
        for cache in caches:
            cache.close()

    def _list_names(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(p.name for p in self._root.iterdir() if p.is_dir())

    def _delete_store(self, name: str) -> bool:
        path = self._path(name)
        with self._lock:
            cache = self._caches.pop(name, None)
            if cache is not None:
                cache.close()
            if not path.is_dir():
                return False
            shutil.rmtree(path)
        logger.debug("Deleted store directory %s", path)
        return True

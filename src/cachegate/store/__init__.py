"""Store registry and backends for cachegate.

:class:`StoreRegistry` manages named, versioned stores on top of a
:class:`StoreBackend`; :class:`MemoryStoreBackend` and
:class:`DiskStoreBackend` (backed by :mod:`diskcache`) are the bundled
backends. Entries are :class:`StoredEntry` records holding request and
response snapshots.
"""

from cachegate.store.backends import DiskStoreBackend, MemoryStoreBackend, StoreBackend
from cachegate.store.entries import RequestSnapshot, ResponseSnapshot, StoredEntry
from cachegate.store.registry import Store, StoreRegistry

__all__ = [
    "DiskStoreBackend",
    "MemoryStoreBackend",
    "RequestSnapshot",
    "ResponseSnapshot",
    "Store",
    "StoreBackend",
    "StoreRegistry",
    "StoredEntry",
]

"""cachegate -- a client-side request interception and offline cache engine.

cachegate sits in front of an HTTP client and decides, per request, whether
to serve from a local store, fetch fresh data, or both with a freshness
check, degrading to deterministic offline responses when the network is
gone. It plugs into :mod:`httpx` as a transport::

    from cachegate import CachingTransport, EngineConfig

    transport = CachingTransport(config=EngineConfig(origin="https://shop.example"))
    async with httpx.AsyncClient(transport=transport) as client:
        await transport.engine.on_install()
        page = await client.get("https://shop.example/")

Modules:
    engine: Lifecycle (install, activate, request, reconnect, control).
    classifier: Maps requests to serving strategies.
    strategies: The serving strategies themselves.
    freshness: Time-based expiration markers.
    fallbacks: Synthesized offline responses.
    sync_queue: Replay of mutating requests after reconnecting.
    store: Versioned stores over memory or :mod:`diskcache` backends.
    transport: The :mod:`httpx` integration.
    app: The ``cachegate`` administration CLI.
"""

__version__ = "0.1.0"

from cachegate.engine import CacheEngine  # noqa: E402
from cachegate.models import Classification, EngineConfig  # noqa: E402
from cachegate.transport import CachingTransport  # noqa: E402

__all__ = ["CacheEngine", "CachingTransport", "Classification", "EngineConfig", "__version__"]

"""httpx transport that routes requests through a :class:`CacheEngine`.

Mounting :class:`CachingTransport` on an :class:`httpx.AsyncClient` puts
the engine in front of every request the client makes. Requests the engine
does not intercept (cross-origin pass-through, or before activation) are
handed to the wrapped transport untouched; intercepted requests are served
by the engine, which uses the same wrapped transport for its own network
I/O.

Example::

    transport = CachingTransport(config=EngineConfig(origin="https://shop.example"))
    async with httpx.AsyncClient(transport=transport) as client:
        await transport.engine.on_install()
        response = await client.get("https://shop.example/style.css")
"""

from __future__ import annotations

from typing import Optional

import httpx

from cachegate.engine import CacheEngine
from cachegate.models import EngineConfig
from cachegate.store.backends import StoreBackend


class CachingTransport(httpx.AsyncBaseTransport):
    """Async transport delegating to a cache engine.

    Args:
        engine: A ready-made engine. When omitted one is built from
            *config* and *backend*, with its network bound to *transport*.
        config: Engine configuration used when *engine* is omitted.
        transport: The real transport. Defaults to
            :class:`httpx.AsyncHTTPTransport`.
        backend: Store backend used when *engine* is omitted.
    """

    def __init__(
        self,
        engine: Optional[CacheEngine] = None,
        *,
        config: Optional[EngineConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        backend: Optional[StoreBackend] = None,
    ) -> None:
        self._transport = transport or httpx.AsyncHTTPTransport()
        self._network: Optional[httpx.AsyncClient] = None
        if engine is None:
            self._network = httpx.AsyncClient(transport=self._transport)
            engine = CacheEngine(config or EngineConfig(), backend=backend, network=self._network)
        self._engine = engine

    @property
    def engine(self) -> CacheEngine:
        return self._engine

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        response = await self._engine.on_request(request)
        if response is None:
            return await self._transport.handle_async_request(request)
        return response

    async def aclose(self) -> None:
        await self._engine.aclose()
        if self._network is not None:
            # Closing the engine's client also closes the wrapped transport.
            await self._network.aclose()
        else:
            await self._transport.aclose()

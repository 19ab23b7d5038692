"""Shared test fixtures for cachegate.

Provides a scriptable fake network built on :class:`httpx.MockTransport`,
a controllable clock, an in-memory store backend, ready-made engine
configurations, and config/output isolation for CLI tests. These fixtures
are discovered automatically by pytest.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import httpx
import pytest
import pytest_asyncio

from cachegate.engine import CacheEngine
from cachegate.models import EngineConfig
from cachegate.output import reset_output
from cachegate.store.backends import MemoryStoreBackend
from cachegate.store.registry import StoreRegistry

ORIGIN = "https://shop.example"
MEDIA = "https://res.cloudinary.com"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeNetwork:
    """Route table served through :class:`httpx.MockTransport`.

    Unknown URLs answer 404. While ``offline`` is set every request raises
    :class:`httpx.ConnectError`, like a real transport with no connectivity.
    """

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, bytes, dict[str, str]]] = {}
        self.calls: list[httpx.Request] = []
        self.offline = False

    def add(
        self,
        url: str,
        content: bytes | str = b"",
        status_code: int = 200,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.routes[url] = (status_code, content, headers or {})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.offline:
            raise httpx.ConnectError("network unreachable", request=request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, content=b"not found")
        status_code, content, headers = route
        return httpx.Response(status_code, content=content, headers=headers)

    def urls(self) -> list[str]:
        return [str(r.url) for r in self.calls]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class FakeClock:
    """Callable clock returning a settable epoch time in seconds."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Global state isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Reset the global OutputManager and root logger after every test.

    The CLI root callback installs both; leaving them in place would leak
    stream references and log levels into later tests.
    """
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    reset_output()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every XDG directory into tmp_path and clear CACHEGATE_* variables."""
    monkeypatch.setattr("cachegate.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["CACHEGATE_ORIGIN", "CACHEGATE_VERSION", "CACHEGATE_STORE_DIR", "CACHEGATE_CONFIG"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(
        origin=ORIGIN,
        version="2",
        trusted_media_hosts=["cloudinary.com"],
        static_manifest=["/", "/index.html", "/style.css", "/logo.png"],
        skip_waiting=False,
    )


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> MemoryStoreBackend:
    return MemoryStoreBackend()


@pytest.fixture
def registry(backend: MemoryStoreBackend, config: EngineConfig) -> StoreRegistry:
    return StoreRegistry(backend, config.namespace)


@pytest.fixture
def engine(
    config: EngineConfig,
    backend: MemoryStoreBackend,
    network: FakeNetwork,
    clock: FakeClock,
) -> CacheEngine:
    return CacheEngine(config, backend=backend, network=network.client(), clock=clock)


@pytest_asyncio.fixture
async def active_engine(engine: CacheEngine) -> CacheEngine:
    await engine.on_activate()
    yield engine
    await engine.aclose()

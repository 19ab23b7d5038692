"""Tests for cachegate.engine -- install, activation, control, and reconnect."""

from __future__ import annotations

import asyncio
import logging

import httpx
import pytest

from cachegate.engine import CacheEngine
from cachegate.models import Classification, EngineConfig, EnginePhase

from conftest import ORIGIN


def _get(path: str) -> httpx.Request:
    return httpx.Request("GET", ORIGIN + path)


async def _seed_old_generation(engine: CacheEngine) -> None:
    for name in ("cachegate-static-v1", "cachegate-dynamic-v1"):
        await engine.registry.open_store(name)


# ---------------------------------------------------------------------------
# Install
# ---------------------------------------------------------------------------


class TestInstall:
    @pytest.mark.asyncio
    async def test_precaches_manifest_into_static_store(self, engine, network, config):
        for path in config.static_manifest:
            network.add(ORIGIN + path, f"asset {path}")

        report = await engine.on_install()

        assert report.cached == config.static_manifest
        assert report.failed == []
        assert engine.phase is EnginePhase.INSTALLED
        store = await engine.registry.open_store(config.static_store)
        assert len(await store.keys()) == len(config.static_manifest)
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_precache_bypasses_http_caches(self, engine, network):
        await engine.on_install()
        assert {r.headers["cache-control"] for r in network.calls} == {"no-cache"}
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_missing_asset_does_not_fail_install(self, engine, network, caplog):
        network.add(ORIGIN + "/", "home")
        network.add(ORIGIN + "/index.html", "home")

        with caplog.at_level(logging.WARNING, logger="cachegate.engine"):
            report = await engine.on_install()

        assert report.cached == ["/", "/index.html"]
        assert report.failed == ["/style.css", "/logo.png"]
        assert "Failed to cache /style.css" in caplog.text
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_install_while_offline(self, engine, network):
        network.offline = True
        report = await engine.on_install()
        assert report.cached == []
        assert len(report.failed) == 4
        assert engine.phase is EnginePhase.INSTALLED
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_skip_waiting_activates_immediately(self, config, backend, network, clock):
        config = config.model_copy(update={"skip_waiting": True})
        engine = CacheEngine(config, backend=backend, network=network.client(), clock=clock)
        await engine.on_install()
        assert engine.phase is EnginePhase.ACTIVE
        assert engine.is_controlling
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_without_skip_waiting_does_not_take_control(self, engine):
        await engine.on_install()
        assert not engine.is_controlling
        assert await engine.on_request(_get("/api/products")) is None
        await engine.aclose()


# ---------------------------------------------------------------------------
# Activate
# ---------------------------------------------------------------------------


class TestActivate:
    @pytest.mark.asyncio
    async def test_sweeps_old_generation(self, engine, backend):
        await _seed_old_generation(engine)
        await engine.registry.open_store("cachegate-static-v2")

        deleted = await engine.on_activate()

        assert sorted(deleted) == ["cachegate-dynamic-v1", "cachegate-static-v1"]
        assert await backend.list_store_names() == ["cachegate-static-v2"]
        assert engine.phase is EnginePhase.ACTIVE
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_second_activation_deletes_nothing(self, engine):
        await _seed_old_generation(engine)
        await engine.on_activate()
        assert await engine.on_activate() == []
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_version_bump_migrates(self, backend, network):
        old = CacheEngine(
            EngineConfig(origin=ORIGIN, version="1"), backend=backend, network=network.client()
        )
        network.add(ORIGIN + "/", "home")
        await old.on_install()
        assert "cachegate-static-v1" in await backend.list_store_names()

        new = CacheEngine(
            EngineConfig(origin=ORIGIN, version="2"), backend=backend, network=network.client()
        )
        await new.on_install()
        names = await backend.list_store_names()
        assert "cachegate-static-v1" not in names
        assert "cachegate-static-v2" in names
        await old.aclose()
        await new.aclose()

    @pytest.mark.asyncio
    async def test_requests_before_activation_pass_through(self, engine, network):
        assert await engine.on_request(_get("/api/products")) is None
        assert network.calls == []
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_requests_during_activation_wait(self, engine, backend, network):
        gate = asyncio.Event()
        original = backend.list_store_names

        async def slow_list():
            await gate.wait()
            return await original()

        backend.list_store_names = slow_list
        network.add(ORIGIN + "/api/products", "live")

        activation = asyncio.create_task(engine.on_activate())
        await asyncio.sleep(0)
        assert engine.phase is EnginePhase.ACTIVATING

        request = asyncio.create_task(engine.on_request(_get("/api/products")))
        await asyncio.sleep(0)
        assert not request.done()

        gate.set()
        await activation
        response = await request
        assert response is not None
        assert response.text == "live"
        await engine.aclose()


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestOnRequest:
    @pytest.mark.asyncio
    async def test_cross_origin_is_not_intercepted(self, active_engine, network):
        response = await active_engine.on_request(httpx.Request("GET", "https://cdn.other.example/x.js"))
        assert response is None
        assert network.calls == []

    @pytest.mark.asyncio
    async def test_always_returns_a_response_when_intercepted(self, active_engine, network):
        network.offline = True
        for path in ["/", "/a.css", "/logo.png", "/api/products", "/checkout.php"]:
            response = await active_engine.on_request(_get(path))
            assert isinstance(response, httpx.Response)


# ---------------------------------------------------------------------------
# Control messages
# ---------------------------------------------------------------------------


class TestControlMessages:
    @pytest.mark.asyncio
    async def test_clear_all_replies_success(self, active_engine, backend, network):
        network.add(ORIGIN + "/api/products", "x")
        await active_engine.on_request(_get("/api/products"))
        await backend.open("someone-else-v9")

        reply = await active_engine.on_control_message({"action": "clearAll"})

        assert reply == {"success": True}
        assert await backend.list_store_names() == []

    @pytest.mark.asyncio
    async def test_clear_cache_alias(self, active_engine, backend):
        await backend.open("cachegate-dynamic-v2")
        assert await active_engine.on_control_message({"action": "clearCache"}) == {"success": True}
        assert await backend.list_store_names() == []

    @pytest.mark.asyncio
    async def test_force_activate_installed_engine(self, engine):
        await engine.on_install()
        assert engine.phase is EnginePhase.INSTALLED
        assert await engine.on_control_message({"action": "forceActivate"}) is None
        assert engine.phase is EnginePhase.ACTIVE
        assert engine.is_controlling
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_skip_waiting_alias(self, engine):
        await engine.on_install()
        await engine.on_control_message({"action": "skipWaiting"})
        assert engine.phase is EnginePhase.ACTIVE
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_force_activate_is_noop_before_install(self, engine):
        await engine.on_control_message({"action": "forceActivate"})
        assert engine.phase is EnginePhase.NEW
        await engine.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", [{"action": "reboot"}, {}, {"action": 3}])
    async def test_unknown_messages_are_ignored(self, active_engine, backend, message, caplog):
        await backend.open("cachegate-dynamic-v2")
        with caplog.at_level(logging.WARNING, logger="cachegate.engine"):
            assert await active_engine.on_control_message(message) is None
        assert "unknown control message" in caplog.text
        assert await backend.list_store_names() == ["cachegate-dynamic-v2"]


# ---------------------------------------------------------------------------
# Reconnect
# ---------------------------------------------------------------------------


class TestReconnect:
    @pytest.mark.asyncio
    async def test_foreign_tag_is_ignored(self, active_engine):
        assert await active_engine.on_reconnect("sync-newsletter") is None

    @pytest.mark.asyncio
    async def test_sync_tag_drains(self, active_engine):
        report = await active_engine.on_reconnect("sync-orders")
        assert report is not None
        assert report.replayed == []

    @pytest.mark.asyncio
    async def test_offline_mutation_replayed_on_reconnect(self, config, backend, network, clock):
        config = config.model_copy(update={"queue_failed_mutations": True})
        engine = CacheEngine(config, backend=backend, network=network.client(), clock=clock)
        await engine.on_activate()
        url = ORIGIN + "/api/checkout.php"

        network.offline = True
        response = await engine.on_request(httpx.Request("POST", url, content=b"cart=1"))
        assert response.status_code == 503
        assert await engine.sync_queue.pending() == [f"POST {url}"]

        network.offline = False
        network.add(url, "ok")
        report = await engine.on_reconnect()
        assert report.replayed == [f"POST {url}"]
        assert network.calls[-1].content == b"cart=1"
        assert await engine.sync_queue.pending() == []
        await engine.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("path", "classification"),
        [
            ("/api/order", Classification.TIMED_CACHE),
            ("/orders/", Classification.NETWORK_FIRST),
        ],
    )
    async def test_order_mutation_queued_from_any_strategy(
        self, config, backend, network, clock, path, classification
    ):
        config = config.model_copy(update={"queue_failed_mutations": True})
        engine = CacheEngine(config, backend=backend, network=network.client(), clock=clock)
        await engine.on_activate()
        url = ORIGIN + path
        request = httpx.Request("POST", url, json={"sku": "A1"})
        assert engine.classify(request) is classification

        network.offline = True
        await engine.on_request(request)
        assert await engine.sync_queue.pending() == [f"POST {url}"]

        network.offline = False
        network.add(url, "created", status_code=201)
        report = await engine.on_reconnect("sync-orders")
        assert report.replayed == [f"POST {url}"]
        assert network.calls[-1].method == "POST"
        assert await engine.sync_queue.pending() == []
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_offline_read_of_order_endpoint_is_not_queued(self, config, backend, network, clock):
        config = config.model_copy(update={"queue_failed_mutations": True})
        engine = CacheEngine(config, backend=backend, network=network.client(), clock=clock)
        await engine.on_activate()

        network.offline = True
        await engine.on_request(httpx.Request("GET", ORIGIN + "/api/order"))
        assert await engine.sync_queue.pending() == []
        await engine.aclose()


class TestResources:
    @pytest.mark.asyncio
    async def test_owned_network_client_is_closed(self, config):
        engine = CacheEngine(config)
        await engine.aclose()
        assert engine._network.is_closed

    @pytest.mark.asyncio
    async def test_injected_client_is_left_open(self, config, network):
        client = network.client()
        async with CacheEngine(config, network=client):
            pass
        assert not client.is_closed
        await client.aclose()

"""Helpers shared by the command modules."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import typer

from cachegate.config import get_store_dir, resolve_config
from cachegate.engine import CacheEngine
from cachegate.models import GlobalConfig
from cachegate.store.backends import DiskStoreBackend


def resolve_from_context(ctx: typer.Context) -> GlobalConfig:
    """Resolve the effective config, applying the root callback's overrides."""
    obj = ctx.obj or {}
    return resolve_config(
        cli_origin=obj.get("origin"),
        cli_version=obj.get("cache_version"),
        cli_store_dir=obj.get("store_dir"),
    )


@asynccontextmanager
async def open_engine(config: GlobalConfig) -> AsyncIterator[CacheEngine]:
    """Yield an engine backed by the on-disk stores; closes it on exit."""
    backend = DiskStoreBackend(get_store_dir(config))
    async with CacheEngine(config.engine, backend=backend) as engine:
        yield engine

"""Sync commands -- inspect and replay queued mutating requests."""

from __future__ import annotations

import asyncio

import typer

from cachegate.commands.common import open_engine, resolve_from_context
from cachegate.models import DrainReport
from cachegate.output import format_response, info, success, warning


sync_app = typer.Typer(no_args_is_help=True)


@sync_app.command("list")
def sync_list(ctx: typer.Context) -> None:
    """Show requests waiting for replay."""
    config = resolve_from_context(ctx)

    async def _pending() -> list[str]:
        async with open_engine(config) as engine:
            return await engine.sync_queue.pending()

    pending = asyncio.run(_pending())
    if not pending:
        info("Sync queue is empty.")
        return
    format_response(pending)


@sync_app.command("drain")
def sync_drain(ctx: typer.Context) -> None:
    """Replay queued requests now, as if connectivity had just returned."""
    config = resolve_from_context(ctx)

    async def _drain() -> DrainReport:
        async with open_engine(config) as engine:
            return await engine.sync_queue.drain()

    report = asyncio.run(_drain())
    for identity in report.dropped:
        warning(f"Dropped {identity}")
    success(f"Replayed {len(report.replayed)}, still pending {len(report.failed)}")
    format_response(
        {
            "replayed": report.replayed,
            "failed": report.failed,
            "dropped": report.dropped,
            "skipped": report.skipped,
        }
    )

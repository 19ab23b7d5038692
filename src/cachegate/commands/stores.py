"""Store commands -- inspect and manage the on-disk stores.

Provides the ``cachegate stores`` sub-command group. Every command
operates on the disk backend rooted at the configured store directory.
"""

from __future__ import annotations

import asyncio

import typer

from cachegate.commands.common import open_engine, resolve_from_context
from cachegate.output import format_response, info, print_table, success, warning


stores_app = typer.Typer(no_args_is_help=True)


@stores_app.command("list")
def stores_list(ctx: typer.Context) -> None:
    """List every store with its entry count.

    Stores that will survive the next activation are marked ``current``.

    Example::

        cachegate stores list
        cachegate --json stores list
    """
    config = resolve_from_context(ctx)

    async def _describe() -> dict[str, int]:
        async with open_engine(config) as engine:
            return await engine.registry.describe()

    summary = asyncio.run(_describe())
    if not summary:
        info("No stores.")
        return
    current = config.engine.current_store_names
    rows = [
        [name, str(count), "current" if name in current else "stale"]
        for name, count in summary.items()
    ]
    print_table(["Store", "Entries", "Status"], rows, title="Stores")


@stores_app.command("install")
def stores_install(ctx: typer.Context) -> None:
    """Pre-cache the static manifest into the current static store.

    Assets that fail are reported and skipped; the install itself never
    fails because of a single asset.
    """
    config = resolve_from_context(ctx)

    async def _install():
        async with open_engine(config) as engine:
            return await engine.on_install()

    report = asyncio.run(_install())
    for path in report.failed:
        warning(f"Could not cache {path}")
    success(
        f"Installed {config.engine.static_store}: "
        f"{len(report.cached)} cached, {len(report.failed)} failed"
    )
    format_response({"cached": report.cached, "failed": report.failed})


@stores_app.command("activate")
def stores_activate(ctx: typer.Context) -> None:
    """Delete stores from previous cache versions."""
    config = resolve_from_context(ctx)

    async def _activate() -> list[str]:
        async with open_engine(config) as engine:
            return await engine.on_activate()

    deleted = asyncio.run(_activate())
    if deleted:
        success(f"Removed {len(deleted)} stale store(s): {', '.join(deleted)}")
    else:
        info("No stale stores.")


@stores_app.command("clear")
def stores_clear(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Delete every store, current ones included."""
    if not force and not typer.confirm("Delete all stores?"):
        info("Aborted.")
        raise typer.Exit()

    config = resolve_from_context(ctx)

    async def _clear():
        async with open_engine(config) as engine:
            return await engine.on_control_message({"action": "clearAll"})

    reply = asyncio.run(_clear())
    if reply and reply.get("success"):
        success("All stores cleared.")

"""Fetch command -- run a single request through the engine.

Useful for checking how a URL is classified and what the engine serves
for it, online or off. The engine is activated first, so stores left by
older cache versions are swept before the request is served.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx
import typer

from cachegate.commands.common import open_engine, resolve_from_context
from cachegate.exceptions import InvalidUsageError, NetworkUnavailableError
from cachegate.models import Classification, GlobalConfig
from cachegate.output import debug
from cachegate.response import format_engine_response


async def _fetch(
    config: GlobalConfig,
    request: httpx.Request,
) -> tuple[httpx.Response, Classification]:
    async with open_engine(config) as engine:
        await engine.on_activate()
        classification = engine.classify(request)
        response = await engine.on_request(request)
        if response is None:
            debug(f"{request.url} is not intercepted; sending directly")
            try:
                async with httpx.AsyncClient(
                    timeout=config.engine.request.timeout,
                    verify=config.engine.request.verify_ssl,
                ) as client:
                    response = await client.send(request)
            except httpx.RequestError as exc:
                raise NetworkUnavailableError(f"{request.method} {request.url}: {exc}") from exc
        return response, classification


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Absolute URL, or a path relative to the origin."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="Request body."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Extra header as 'Name: value' (repeatable)."
    ),
) -> None:
    """Send one request through the cache engine and print the response.

    Example::

        cachegate fetch /style.css
        cachegate fetch https://res.cloudinary.com/demo/image/upload/sample.jpg
        cachegate fetch /api/checkout.php -X POST -d '{"cart": 1}'
    """
    config = resolve_from_context(ctx)
    if url.startswith("/"):
        url = config.engine.origin.rstrip("/") + url
    elif not url.startswith(("http://", "https://")):
        raise InvalidUsageError(f"Expected an http(s) URL or a path starting with '/', got {url!r}")

    headers: dict[str, str] = {}
    for item in header or []:
        name, sep, value = item.partition(":")
        if not sep:
            raise InvalidUsageError(f"Expected 'Name: value' for --header, got {item!r}")
        headers[name.strip()] = value.strip()

    request = httpx.Request(
        method.upper(),
        url,
        headers=headers,
        content=data.encode("utf-8") if data is not None else None,
    )
    response, classification = asyncio.run(_fetch(config, request))
    format_engine_response(response, classification)

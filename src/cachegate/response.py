"""Response formatting bridge -- maps engine responses to the output system.

After the CLI runs a request through the engine, :func:`format_engine_response`
writes a status line (status, classification, and whether the body is a
synthesized offline fallback) to stderr and renders the body to stdout.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from cachegate.fallbacks import FALLBACK_HEADER
from cachegate.models import Classification
from cachegate.output import get_output


def format_engine_response(
    response: httpx.Response,
    classification: Optional[Classification] = None,
) -> None:
    """Print the status line to stderr and the body to stdout.

    Args:
        response: The response returned by the engine or the pass-through.
        classification: The strategy that served the request, if known.
    """
    output = get_output()

    parts = [f"HTTP {response.status_code} {response.reason_phrase or ''}".rstrip()]
    if classification is not None:
        parts.append(f"[{classification.value}]")
    if response.headers.get(FALLBACK_HEADER):
        parts.append("(offline fallback)")
    output.info(" ".join(parts))

    data = extract_response_data(response)
    if data is not None:
        output.format_response(data, response.headers.get("content-type", "text/plain"))


def extract_response_data(response: httpx.Response) -> Any:
    """Return the body as JSON if it parses, else as text, or ``None`` when empty.

    Binary bodies that are not valid UTF-8 are summarised rather than dumped.
    """
    if not response.content:
        return None
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            pass
    try:
        return response.content.decode(response.encoding or "utf-8")
    except (UnicodeDecodeError, LookupError):
        return f"<{len(response.content)} bytes of {content_type or 'binary data'}>"

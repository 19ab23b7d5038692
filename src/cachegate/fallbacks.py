"""Synthesized offline responses.

Every function returns a complete, already-read :class:`httpx.Response`
built from constants, so it can be produced with no network and no store.
Each carries ``x-cachegate-fallback: offline`` so callers can tell a
substitute from real content.
"""

from __future__ import annotations

import json
from typing import Optional

import httpx

FALLBACK_HEADER = "x-cachegate-fallback"

PLACEHOLDER_SVG = (
    '<svg width="300" height="300" xmlns="http://www.w3.org/2000/svg">'
    '<rect width="100%" height="100%" fill="#f0f0f0"/>'
    '<text x="50%" y="50%" font-family="Arial" font-size="16" fill="#999" '
    'text-anchor="middle" dy=".3em">Offline</text></svg>'
)

OFFLINE_HTML = (
    "<!DOCTYPE html>"
    '<html><head><meta charset="utf-8"><title>Offline</title></head>'
    "<body><h1>You are offline</h1>"
    "<p>Check your internet connection and try again.</p></body></html>"
)

OFFLINE_CSS = "/* offline */"

_IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".avif", ".ico")


def _synth(
    status_code: int,
    content: str,
    content_type: Optional[str],
    request: Optional[httpx.Request],
) -> httpx.Response:
    headers = {FALLBACK_HEADER: "offline"}
    if content_type is not None:
        headers["content-type"] = content_type
    return httpx.Response(
        status_code,
        headers=headers,
        content=content.encode("utf-8"),
        request=request,
    )


def placeholder_image(request: Optional[httpx.Request] = None) -> httpx.Response:
    """A 300x300 neutral SVG captioned "Offline"."""
    return _synth(200, PLACEHOLDER_SVG, "image/svg+xml", request)


def offline_page(request: Optional[httpx.Request] = None) -> httpx.Response:
    """A minimal HTML document telling the user they are offline."""
    return _synth(200, OFFLINE_HTML, "text/html; charset=utf-8", request)


def offline_stylesheet(request: Optional[httpx.Request] = None) -> httpx.Response:
    """An empty stylesheet so pages still render unstyled."""
    return _synth(200, OFFLINE_CSS, "text/css; charset=utf-8", request)


def offline_json(message: str, request: Optional[httpx.Request] = None) -> httpx.Response:
    """The 503 JSON envelope ``{"success": false, "error": "Offline", "message": ...}``."""
    body = json.dumps({"success": False, "error": "Offline", "message": message}, ensure_ascii=False)
    return _synth(503, body, "application/json", request)


def service_unavailable(request: Optional[httpx.Request] = None) -> httpx.Response:
    """An empty 503 response."""
    return _synth(503, "", None, request)


def for_document(request: httpx.Request) -> httpx.Response:
    """Pick the network-first fallback: a stylesheet for ``.css``, else the offline page."""
    if request.url.path.lower().endswith(".css"):
        return offline_stylesheet(request)
    return offline_page(request)


def for_asset(request: httpx.Request) -> httpx.Response:
    """Pick a fallback by the asset's path suffix, defaulting to an empty 503."""
    path = request.url.path.lower()
    if path.endswith(_IMAGE_SUFFIXES):
        return placeholder_image(request)
    if path.endswith(".css"):
        return offline_stylesheet(request)
    if path.endswith((".html", "/")):
        return offline_page(request)
    return service_unavailable(request)

"""Serialisable snapshots of requests and responses held in stores.

Live :class:`httpx.Request` / :class:`httpx.Response` objects wrap streams
and cannot be persisted. Before anything is written to a store the engine
reads the body fully and captures a snapshot; every response handed back to
a caller is rebuilt from a snapshot, so the stored copy and the returned
copy always agree on status and body.

Headers that describe the wire encoding (``content-encoding``,
``content-length``, ``transfer-encoding``) are dropped from response
snapshots because the captured body is already decoded.
"""

from __future__ import annotations

from typing import Optional

import httpx
from pydantic import BaseModel, Field

from cachegate.identity import request_identity

_WIRE_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


class RequestSnapshot(BaseModel):
    """A request captured for identity lookups or later replay."""

    method: str
    url: str
    headers: list[tuple[str, str]] = Field(default_factory=list)
    content: bytes = b""

    @classmethod
    def from_request(cls, request: httpx.Request) -> RequestSnapshot:
        """Capture *request*. Its body must already be read."""
        return cls(
            method=request.method,
            url=str(request.url),
            headers=[
                (k, v)
                for k, v in request.headers.multi_items()
                if k.lower() != "content-length"
            ],
            content=request.content,
        )

    @property
    def identity(self) -> str:
        return request_identity(self.method, self.url)

    def to_request(self) -> httpx.Request:
        """Rebuild a sendable :class:`httpx.Request`."""
        return httpx.Request(
            self.method,
            self.url,
            headers=self.headers,
            content=self.content or None,
        )


class ResponseSnapshot(BaseModel):
    """A fully-read response: status, ordered header pairs, and raw body."""

    status_code: int
    reason_phrase: str = ""
    headers: list[tuple[str, str]] = Field(default_factory=list)
    content: bytes = b""

    @classmethod
    def from_response(cls, response: httpx.Response) -> ResponseSnapshot:
        """Capture *response*. Its body must already be read."""
        return cls(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            headers=[
                (k, v)
                for k, v in response.headers.multi_items()
                if k.lower() not in _WIRE_HEADERS
            ],
            content=response.content,
        )

    @property
    def is_success(self) -> bool:
        """``True`` for 2xx statuses, the only responses ever persisted."""
        return 200 <= self.status_code < 300

    def header(self, name: str) -> Optional[str]:
        """Return the last value of header *name* (case-insensitive), if any."""
        name = name.lower()
        value: Optional[str] = None
        for key, current in self.headers:
            if key.lower() == name:
                value = current
        return value

    def with_header(self, name: str, value: str) -> ResponseSnapshot:
        """Return a copy with header *name* replaced by *value*."""
        lowered = name.lower()
        headers = [(k, v) for k, v in self.headers if k.lower() != lowered]
        headers.append((name, value))
        return self.model_copy(update={"headers": headers})

    def to_response(self, request: Optional[httpx.Request] = None) -> httpx.Response:
        """Build a fresh, already-read :class:`httpx.Response`."""
        extensions = {}
        if self.reason_phrase:
            extensions["reason_phrase"] = self.reason_phrase.encode("ascii", "replace")
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            content=self.content,
            request=request,
            extensions=extensions,
        )


class StoredEntry(BaseModel):
    """One (identity, response, timestamp) record in a store.

    Cached responses carry a ``response``. Sync tasks -- mutating requests
    queued for replay -- carry only the ``request`` and count their failed
    replay ``attempts``.
    """

    identity: str
    request: RequestSnapshot
    response: Optional[ResponseSnapshot] = None
    stored_at: float
    attempts: int = 0

    @property
    def is_sync_task(self) -> bool:
        return self.response is None

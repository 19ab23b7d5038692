"""Freshness markers for time-based expiration.

A marker is the storage time in epoch milliseconds, written into a response
header (``x-cachegate-date`` by default) when an entry is persisted by the
timed-cache strategy. Because it travels as an ordinary header it survives
any store round trip without touching the status or body.

Entries without a marker -- or with one that does not parse -- are
legacy entries. By default they never expire; see
:attr:`~cachegate.models.EngineConfig.treat_unmarked_as_fresh`.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Optional

from cachegate.store.entries import ResponseSnapshot

DEFAULT_MARKER_HEADER = "x-cachegate-date"


class FreshnessTracker:
    """Stamp and read freshness markers.

    Args:
        header: Header name holding the marker.
        clock: Returns the current time in epoch seconds.
        treat_unmarked_as_fresh: When ``False``, unmarked entries are
            always considered expired.
    """

    def __init__(
        self,
        header: str = DEFAULT_MARKER_HEADER,
        clock: Callable[[], float] = time.time,
        treat_unmarked_as_fresh: bool = True,
    ) -> None:
        self._header = header
        self._clock = clock
        self._unmarked_fresh = treat_unmarked_as_fresh

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def stamp(self, response: ResponseSnapshot) -> ResponseSnapshot:
        """Return a copy of *response* marked with the current time."""
        return response.with_header(self._header, str(self.now_ms()))

    def marker(self, response: ResponseSnapshot) -> Optional[int]:
        """Return the marker in epoch milliseconds, or ``None`` if absent or unparsable."""
        raw = response.header(self._header)
        if raw is None:
            return None
        try:
            return int(raw.strip())
        except ValueError:
            return None

    def age_seconds(self, response: ResponseSnapshot) -> Optional[float]:
        marker = self.marker(response)
        if marker is None:
            return None
        return (self.now_ms() - marker) / 1000

    def is_expired(self, response: ResponseSnapshot, threshold_seconds: float) -> bool:
        """Return ``True`` when the entry is older than *threshold_seconds*."""
        age = self.age_seconds(response)
        if age is None:
            return not self._unmarked_fresh
        return age > threshold_seconds

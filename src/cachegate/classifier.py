"""Request classification -- maps an intercepted request to a strategy.

:class:`RequestClassifier` is a pure, total function of the request URL:
every request maps to exactly one :class:`~cachegate.models.Classification`.
Rules are evaluated in priority order and the first match wins:

1. Cross-origin and not on the media allowlist -> ``IGNORED`` (pass-through).
2. Hostname on the media allowlist -> ``MEDIA_CACHE_FIRST``.
3. Path contains a mutating-API marker (``.php``) -> ``NETWORK_ONLY``.
4. Path ends with an HTML/script/stylesheet suffix or ``/`` -> ``NETWORK_FIRST``.
5. Path is listed in the static manifest -> ``ORIGIN_ASSET_CACHE_FIRST``.
6. Anything else -> ``TIMED_CACHE``.
"""

from __future__ import annotations

import httpx

from cachegate.identity import host_matches, origin_of
from cachegate.models import Classification, EngineConfig


class RequestClassifier:
    """Classify requests according to an :class:`~cachegate.models.EngineConfig`.

    Args:
        config: Engine configuration supplying the origin, allowlist,
            markers, suffixes, and static manifest.

    Example::

        classifier = RequestClassifier(EngineConfig(origin="https://shop.example"))
        classifier.classify(httpx.Request("GET", "https://shop.example/style.css"))
        # Classification.NETWORK_FIRST
    """

    def __init__(self, config: EngineConfig) -> None:
        self._origin = origin_of(config.origin)
        self._media_hosts = tuple(config.trusted_media_hosts)
        self._markers = tuple(config.mutating_markers)
        self._suffixes = tuple(s.lower() for s in config.network_first_suffixes)
        self._manifest = frozenset(config.static_manifest)

    def classify(self, request: httpx.Request) -> Classification:
        """Return the strategy category for *request*."""
        return self.classify_url(request.url)

    def classify_url(self, url: httpx.URL | str) -> Classification:
        """Return the strategy category for a bare URL."""
        url = httpx.URL(url)
        trusted = self.is_trusted_media_host(url.host)

        if not trusted and origin_of(url) != self._origin:
            return Classification.IGNORED
        if trusted:
            return Classification.MEDIA_CACHE_FIRST

        path = url.path
        if any(marker in path for marker in self._markers):
            return Classification.NETWORK_ONLY
        if path.endswith("/") or path.lower().endswith(self._suffixes):
            return Classification.NETWORK_FIRST
        if path in self._manifest:
            return Classification.ORIGIN_ASSET_CACHE_FIRST
        return Classification.TIMED_CACHE

    def is_trusted_media_host(self, hostname: str) -> bool:
        """Return ``True`` if *hostname* is (a subdomain of) an allowlisted media host."""
        if not hostname:
            return False
        return any(host_matches(hostname, allowed) for allowed in self._media_hosts)

"""Request identity and origin helpers.

An entry's identity is ``"<METHOD> <normalized-url>"``. Normalisation is
delegated to :class:`httpx.URL` (lower-cased scheme and host, default
ports dropped) and then the fragment and userinfo are discarded so that
``https://Shop.example:443/a#top`` and ``https://shop.example/a`` share
one entry.
"""

from __future__ import annotations

import httpx

SAFE_METHODS = frozenset({"GET", "HEAD"})


def origin_of(url: httpx.URL | str) -> str:
    """Return the ``scheme://host[:port]`` origin of *url*."""
    url = httpx.URL(url)
    return f"{url.scheme}://{url.netloc.decode('ascii')}"


def normalize_url(url: httpx.URL | str) -> str:
    """Return *url* without fragment or userinfo, with an explicit ``/`` path."""
    url = httpx.URL(url)
    return origin_of(url) + url.raw_path.decode("ascii")


def request_identity(method: str, url: httpx.URL | str) -> str:
    """Build the store key for a request."""
    return f"{method.upper()} {normalize_url(url)}"


def identity_url(identity: str) -> httpx.URL:
    """Recover the URL component of an identity built by :func:`request_identity`."""
    _, _, url = identity.partition(" ")
    return httpx.URL(url)


def is_mutating(method: str) -> bool:
    """Return ``True`` for methods that may change server state."""
    return method.upper() not in SAFE_METHODS


def host_matches(hostname: str, allowed: str) -> bool:
    """Match *hostname* against *allowed*, including its subdomains.

    Only the hostname component is compared, so ``evil.test/cloudinary.com``
    or ``notcloudinary.com`` never match ``cloudinary.com``.
    """
    hostname = hostname.lower().rstrip(".")
    allowed = allowed.lower().strip(".")
    return hostname == allowed or hostname.endswith("." + allowed)

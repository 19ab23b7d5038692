"""Canonical Pydantic models and enums shared across all cachegate modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`EngineConfig`, :class:`OutputConfig`,
    and :class:`GlobalConfig`.

**Engine vocabulary** -- enums and report objects produced by the engine:
    :class:`Classification`, :class:`EnginePhase`, :class:`ControlAction`,
    :class:`InstallReport`, and :class:`DrainReport`.

Store entries (request and response snapshots) live in
:mod:`cachegate.store.entries` because they carry ``httpx`` conversions.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, Field, field_validator


# --- Engine vocabulary ---


class Classification(str, enum.Enum):
    """Strategy category assigned to an intercepted request.

    ``IGNORED`` marks cross-origin requests that are not on the trusted
    media allowlist; the engine does not intercept those and the request
    passes through to the wrapped transport untouched.
    """

    IGNORED = "ignored"
    NETWORK_ONLY = "network-only"
    ORIGIN_ASSET_CACHE_FIRST = "origin-asset-cache-first"
    NETWORK_FIRST = "html-js-css-network-first"
    MEDIA_CACHE_FIRST = "cross-origin-media-cache-first"
    TIMED_CACHE = "default-timed-cache"


class EnginePhase(str, enum.Enum):
    """Lifecycle phase of a :class:`~cachegate.engine.CacheEngine`."""

    NEW = "new"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVE = "active"


class ControlAction(str, enum.Enum):
    """Out-of-band commands accepted on the control channel."""

    FORCE_ACTIVATE = "forceActivate"
    CLEAR_ALL = "clearAll"

    @classmethod
    def parse(cls, value: object) -> Optional[ControlAction]:
        """Map a raw ``action`` value (including legacy aliases) to a member.

        Returns ``None`` for unknown or missing actions.
        """
        if not isinstance(value, str):
            return None
        value = _CONTROL_ALIASES.get(value, value)
        try:
            return cls(value)
        except ValueError:
            return None


_CONTROL_ALIASES = {
    "skipWaiting": "forceActivate",
    "clearCache": "clearAll",
}


@dataclass
class InstallReport:
    """Outcome of pre-caching the static manifest.

    Attributes:
        cached: Manifest paths stored in the static store.
        failed: Manifest paths that could not be fetched or stored.
    """

    cached: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class DrainReport:
    """Outcome of one sync-queue drain.

    Attributes:
        replayed: Identities delivered and removed from the store.
        failed: Identities left pending for a future drain.
        dropped: Identities removed after reaching ``max_replay_attempts``.
        skipped: Identities already removed or in flight in another drain.
    """

    replayed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


# --- Configuration ---


class RequestConfig(BaseModel):
    """HTTP settings for the network collaborator built by the CLI."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class EngineConfig(BaseModel):
    """Deployment configuration injected into a :class:`~cachegate.engine.CacheEngine`.

    Store names are derived from ``namespace`` and ``version``: bumping the
    version changes both names, and the previous generation is swept on the
    next activation.

    Example::

        EngineConfig(
            origin="https://shop.example",
            version="2.0.4",
            trusted_media_hosts=["cloudinary.com"],
            static_manifest=["/", "/index.html", "/style.css"],
        )
    """

    namespace: str = Field(
        default="cachegate", description="Prefix shared by every store this engine owns"
    )
    version: str = Field(default="1", description="Cache generation tag")
    origin: str = Field(
        default="http://localhost", description="Origin whose requests are intercepted"
    )
    trusted_media_hosts: list[str] = Field(
        default_factory=lambda: ["cloudinary.com"],
        description="Cross-origin media hosts (subdomains included) served cache-first",
    )
    mutating_markers: list[str] = Field(
        default_factory=lambda: [".php"],
        description="Path fragments that mark server-script endpoints (network-only)",
    )
    network_first_suffixes: list[str] = Field(
        default_factory=lambda: [".html", ".js", ".css"],
        description="Path suffixes served network-first",
    )
    expiration_seconds: int = Field(
        default=24 * 60 * 60, description="Age after which timed entries are refreshed"
    )
    static_manifest: list[str] = Field(
        default_factory=lambda: ["/", "/index.html"],
        description="Origin-relative paths pre-cached at install time",
    )
    sync_tag: str = Field(
        default="sync-orders", description="Reconnect tag that triggers a sync drain"
    )
    sync_patterns: list[str] = Field(
        default_factory=lambda: ["checkout.php", "order"],
        description="Path fragments identifying replayable mutating endpoints",
    )
    queue_failed_mutations: bool = Field(
        default=False,
        description="Record failed offline mutations in the dynamic store for replay",
    )
    max_replay_attempts: Optional[int] = Field(
        default=None, description="Drop a sync task after this many failed replays"
    )
    treat_unmarked_as_fresh: bool = Field(
        default=True, description="Never expire timed entries lacking a freshness marker"
    )
    skip_waiting: bool = Field(
        default=True, description="Activate immediately after install"
    )
    freshness_header: str = Field(
        default="x-cachegate-date", description="Header carrying the freshness marker"
    )
    offline_message: str = Field(
        default="Internet connection unavailable. Please try again.",
        description="Message placed in the offline JSON error envelope",
    )
    request: RequestConfig = Field(default_factory=RequestConfig)

    @field_validator("static_manifest")
    @classmethod
    def _manifest_paths_are_relative(cls, value: list[str]) -> list[str]:
        for path in value:
            if not path.startswith("/"):
                raise ValueError(f"manifest path must start with '/': {path!r}")
        return value

    @field_validator("max_replay_attempts")
    @classmethod
    def _positive_attempts(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValueError("max_replay_attempts must be at least 1")
        return value

    @property
    def static_store(self) -> str:
        """Name of the current static (install-time) store."""
        return f"{self.namespace}-static-v{self.version}"

    @property
    def dynamic_store(self) -> str:
        """Name of the current dynamic (runtime) store."""
        return f"{self.namespace}-dynamic-v{self.version}"

    @property
    def current_store_names(self) -> set[str]:
        """Store names that survive activation."""
        return {self.static_store, self.dynamic_store}


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/cachegate/config.json``.

    Loaded and saved by :func:`~cachegate.config.load_global_config` and
    :func:`~cachegate.config.save_global_config`. See
    :func:`~cachegate.config.resolve_config` for the full precedence chain.
    """

    engine: EngineConfig = Field(default_factory=EngineConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    store_dir: Optional[str] = Field(
        default=None, description="Directory for the disk store backend"
    )

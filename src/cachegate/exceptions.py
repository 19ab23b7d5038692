"""Exception hierarchy for cachegate.

All exceptions inherit from :class:`CachegateError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`cachegate.exit_codes`.
Inside the engine these exceptions never reach the caller of
:meth:`~cachegate.engine.CacheEngine.on_request`: the strategy executor
converts them into store misses or synthesized offline responses. They do
surface from the administrative surfaces (config loading, the CLI).

Subclass hierarchy::

    CachegateError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- ConfigError              (exit 3)
    +-- StoreError               (exit 5)
    +-- NetworkUnavailableError  (exit 6)
"""

from cachegate.exit_codes import (
    EXIT_CONFIG_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NETWORK_UNAVAILABLE,
    EXIT_STORE_ERROR,
)


class CachegateError(Exception):
    """Base exception for all cachegate errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(CachegateError):
    """Raised for invalid CLI arguments (malformed headers or URLs)."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(CachegateError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_CONFIG_ERROR


class StoreError(CachegateError):
    """Raised when a store backend fails to read, write, or enumerate a store.

    The strategy executor treats this as a miss on reads and as a dropped
    write on writes.
    """

    exit_code = EXIT_STORE_ERROR


class NetworkUnavailableError(CachegateError):
    """Raised when the network collaborator reports a transport failure.

    Wraps :class:`httpx.RequestError` (connect errors, timeouts, protocol
    errors) so strategies can branch on a single exception type.
    """

    exit_code = EXIT_NETWORK_UNAVAILABLE

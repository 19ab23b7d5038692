"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~cachegate.exceptions.CachegateError` subclass.
Shell wrappers and CI scripts can inspect the exit code of the
``cachegate`` command without parsing stderr.

Example::

    $ cachegate stores list
    $ echo $?
    5   # EXIT_STORE_ERROR -- the store directory could not be read
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_CONFIG_ERROR = 3
"""The configuration file is missing, unreadable, or fails validation."""

EXIT_STORE_ERROR = 5
"""A store backend could not be opened, read, or written."""

EXIT_NETWORK_UNAVAILABLE = 6
"""The network collaborator reported a transport failure (offline, DNS, refused)."""

"""Exception hierarchy for tiercache.

All exceptions inherit from :class:`TierCacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`tiercache.exit_codes`.
The library itself only raises :class:`ConstructionError` and
:class:`CacheClosedError`; disk faults during reads, writes and deletes are
logged and absorbed so that cache operations never fail because of the
storage layer.

Subclass hierarchy::

    TierCacheError (exit 1)
    +-- ConstructionError   (exit 3)
    +-- CacheClosedError    (exit 1)
    +-- ProducerError       (exit 1)
    +-- ConfigError         (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- KeyNotFoundError    (exit 4)
"""

from tiercache.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_STORAGE_ERROR,
)


class TierCacheError(Exception):
    """Base exception for all tiercache errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConstructionError(TierCacheError):
    """Raised when a cache's storage directory cannot be created.

    Covers permission errors, a regular file sitting where the directory
    should be, and a full disk. The engine is unusable when this is raised.
    """

    exit_code = EXIT_STORAGE_ERROR


class CacheClosedError(TierCacheError):
    """Raised when an operation is attempted on a closed :class:`~tiercache.cache.CacheEngine`."""


class ProducerError(TierCacheError):
    """Delivered to a get-or-compute completion when the producer failed without an error object."""


class ConfigError(TierCacheError):
    """Raised for an unreadable or invalid settings file."""


class InvalidUsageError(TierCacheError):
    """Raised for invalid CLI arguments, such as two conflicting expiry options."""

    exit_code = EXIT_INVALID_USAGE


class KeyNotFoundError(TierCacheError):
    """Raised by the CLI when a key has no live entry."""

    exit_code = EXIT_NOT_FOUND

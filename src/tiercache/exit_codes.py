"""Numeric process exit codes used by the ``tiercache`` command-line tool.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~tiercache.exceptions.TierCacheError` subclass.
Shell scripts can inspect the exit code to tell a cache miss apart from a
broken storage directory without parsing stderr.

Example::

    $ tiercache get images avatar-42
    $ echo $?
    4   # EXIT_NOT_FOUND -- no live entry for that key
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or conflicting options."""

EXIT_STORAGE_ERROR = 3
"""The cache's storage directory could not be created or opened."""

EXIT_NOT_FOUND = 4
"""The requested key has no live entry in the cache."""

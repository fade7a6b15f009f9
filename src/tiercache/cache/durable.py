"""File-backed tier: one file per entry.

Entries live at ``<directory>/<token>.cache`` where ``token`` is the
sanitised key (see :func:`~tiercache.keys.sanitize_key`). File content is
whatever the configured serializer produces; the store itself never looks
inside it.

Failure policy: the store never raises for I/O or decoding problems.

* A missing, unreadable or undecodable file reads as ``None``.
* A failed write or delete is logged and reported through the boolean
  return value only.

Writes go through :func:`~tiercache.config.atomic_write`, so a reader sees
either the previous file or the new one, never a partial record.

The store is not synchronised; :class:`~tiercache.cache.CacheEngine`
orders every call to it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from tiercache.config import atomic_write
from tiercache.models import Entry
from tiercache.serializers import Serializer

logger = logging.getLogger(__name__)

FILE_SUFFIX = ".cache"


class DurableStore:
    """Read/write/delete cache entry files in a single directory.

    Args:
        directory: Existing directory that holds the entry files.
        serializer: Encoder used for file content.

    Example::

        store = DurableStore(Path("/tmp/images"), PickleSerializer())
        payload = store.encode(Entry(value=b"..."))
        store.write("avatar-42", payload)
        store.read("avatar-42").value
    """

    def __init__(self, directory: Path, serializer: Serializer) -> None:
        self._directory = directory
        self._serializer = serializer

    @property
    def directory(self) -> Path:
        """The directory holding this store's entry files."""
        return self._directory

    def path_for(self, token: str) -> Path:
        """Return the file path for *token*."""
        return self._directory / f"{token}{FILE_SUFFIX}"

    def encode(self, entry: Entry) -> Optional[bytes]:
        """Serialise *entry*, or return ``None`` if the serializer rejects it.

        Third-party serializers may raise anything, so every exception is
        logged and absorbed here.
        """
        try:
            return self._serializer.dumps(entry)
        except Exception:
            logger.warning("Cannot encode %r for disk; keeping it in memory only",
                           type(entry.value).__name__, exc_info=True)
            return None

    def read(self, token: str) -> Optional[Entry]:
        """Load the entry stored for *token*.

        Returns:
            The decoded :class:`~tiercache.models.Entry`, or ``None`` if the
            file does not exist or cannot be read or decoded.
        """
        path = self.path_for(token)
        if not path.is_file():
            return None
        try:
            return self._serializer.loads(path.read_bytes())
        except (ValueError, OSError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", path, exc)
            return None
        except Exception:
            logger.warning("Serializer failed on cache file %s; treating it as absent",
                           path, exc_info=True)
            return None

    def write(self, token: str, payload: bytes) -> bool:
        """Atomically replace the file for *token* with *payload*.

        Returns:
            ``True`` on success, ``False`` if the write failed.
        """
        path = self.path_for(token)
        try:
            atomic_write(path, payload)
        except OSError as exc:
            logger.warning("Failed to persist cache file %s: %s", path, exc)
            return False
        logger.debug("Persisted %s (%d bytes)", path, len(payload))
        return True

    def delete(self, token: str) -> bool:
        """Delete the file for *token*. A missing file counts as success."""
        path = self.path_for(token)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to delete cache file %s: %s", path, exc)
            return False
        return True

    def tokens(self) -> list[str]:
        """Return the tokens of every entry file, sorted alphabetically."""
        try:
            return sorted(
                p.name[: -len(FILE_SUFFIX)]
                for p in self._directory.glob(f"*{FILE_SUFFIX}")
                if p.is_file()
            )
        except OSError as exc:
            logger.warning("Cannot list cache directory %s: %s", self._directory, exc)
            return []

    def delete_all(self) -> int:
        """Delete every entry file and return how many were removed."""
        removed = 0
        for token in self.tokens():
            if self.delete(token):
                removed += 1
        return removed

"""Mapping of arbitrary cache keys to filesystem-safe tokens.

Every run of characters outside ``[A-Za-z0-9_]`` becomes a single ``-``,
so ``"//$%foo--1"`` is stored as ``-foo-1.cache``. Distinct keys can map to
the same token (``"a/b"`` and ``"a-b"`` both become ``"a-b"``); the engine
keys both tiers by token, so such keys share one entry.
"""

from __future__ import annotations

import re

_UNSAFE = re.compile(r"[^A-Za-z0-9_]+")

EMPTY_KEY_TOKEN = "-"
"""Token used for the empty key, which would otherwise produce a dot-file."""


def sanitize_key(key: str) -> str:
    """Return the filesystem-safe token for *key*."""
    token = _UNSAFE.sub("-", key)
    return token or EMPTY_KEY_TOKEN

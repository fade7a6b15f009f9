"""Directory layout, atomic writes and the persisted settings file.

This module handles everything tiercache keeps outside a cache's own
directory:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.tiercache/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir` and :func:`get_data_dir`. Named caches live under
  :func:`default_cache_location`.
* **Atomic writes** -- :func:`atomic_write` writes through a temp file and
  renames it into place, so neither the settings file nor a cache entry is
  ever observed half-written.
* **Global config** -- a single :class:`~tiercache.models.GlobalConfig`
  JSON file. :func:`load_global_config` honours ``TIERCACHE_CONFIG`` as an
  override of its location.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import IO, Any, Optional

from tiercache.exceptions import ConfigError
from tiercache.models import GlobalConfig

APP_NAME = "tiercache"
_CONFIG_FILENAME = "config.json"
_CONFIG_ENV_VAR = "TIERCACHE_CONFIG"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/tiercache/`` (default ``~/.config/tiercache/``).
    On macOS/Windows: ``~/.tiercache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the root directory for named caches, without creating it.

    On Linux/BSD: ``$XDG_CACHE_HOME/tiercache/`` (default ``~/.cache/tiercache/``).
    On macOS/Windows: ``~/.tiercache/cache/``.

    Creation is left to the engine so that failures surface as
    :class:`~tiercache.exceptions.ConstructionError`.
    """
    if _is_xdg_platform():
        return _xdg_base("XDG_CACHE_HOME", (".cache",)) / APP_NAME
    return _fallback_base_dir() / "cache"


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/tiercache/`` (default ``~/.local/share/tiercache/``).
    On macOS/Windows: ``~/.tiercache/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def default_cache_location(name: str, root: Optional[str | Path] = None) -> Path:
    """Return the directory a cache called *name* persists to.

    Args:
        name: The cache's name; used verbatim as the last path segment.
        root: Parent directory for named caches. Defaults to
            :func:`get_cache_dir`.
    """
    base = Path(root).expanduser() if root is not None else get_cache_dir()
    return base / name


# --- Atomic file writes ---


def atomic_write(path: Path, data: bytes | str) -> None:
    """Write *data* to *path* atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is removed and the exception re-raised; *path* is then either
    untouched or fully replaced, never truncated.

    Args:
        path: Destination file. Its parent directory must already exist.
        data: ``bytes`` are written verbatim, ``str`` as UTF-8.
    """
    binary = isinstance(data, bytes)
    fd: Optional[IO[Any]] = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="wb" if binary else "w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding=None if binary else "utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def global_config_path() -> Path:
    """Path to the settings file, honouring ``TIERCACHE_CONFIG``."""
    override = os.environ.get(_CONFIG_ENV_VAR, "")
    if override:
        return Path(override).expanduser()
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the settings file.

    Returns:
        The deserialised :class:`~tiercache.models.GlobalConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the settings file atomically."""
    path = global_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json")
    atomic_write(path, json.dumps(data, indent=2) + "\n")

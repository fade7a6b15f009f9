"""Entry commands -- read, write and prune a named cache from the shell.

Each command opens the cache called ``NAME`` with the settings from the
global config (see :mod:`tiercache.config`), performs one operation, and
closes it again so that queued disk writes are flushed before the process
exits.

* ``get`` / ``set`` / ``rm`` -- single keys.
* ``ls`` -- every value, optionally including expired ones.
* ``clear`` / ``purge`` -- remove everything, or only expired entries.
* ``stats`` -- entry counts and the storage directory.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Optional

import typer
from pydantic import ValidationError

from tiercache.cache import CacheEngine, open_cache
from tiercache.exceptions import InvalidUsageError, KeyNotFoundError, TierCacheError
from tiercache.expiry import Expiry
from tiercache.output import debug, error, format_response, info, print_table, success


@contextmanager
def _opened(ctx: typer.Context, name: str) -> Iterator[CacheEngine]:
    """Open cache *name* for one command, mapping tiercache errors to exit codes."""
    from tiercache.config import load_global_config

    obj = ctx.obj or {}
    try:
        settings = load_global_config().cache
        if obj.get("root") is not None:
            settings = settings.model_copy(update={"directory": obj["root"]})
        cache = open_cache(name, settings=settings)
    except TierCacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    debug(f"Using cache directory {cache.directory}")
    try:
        with cache:
            yield cache
    except TierCacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _parse_value(raw: str) -> Any:  # noqa: ANN401
    """Parse *raw* as JSON if possible, returning the string unchanged otherwise."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return raw


def _expiry_from_options(
    seconds: Optional[float],
    minutes: Optional[float],
    hours: Optional[float],
    days: Optional[float],
    at: Optional[str],
) -> Expiry:
    """Build the :class:`~tiercache.expiry.Expiry` selected by at most one option.

    Raises:
        InvalidUsageError: If more than one option is given, an offset is
            not finite, or ``--at`` is not an ISO 8601 timestamp.
    """
    chosen = {
        "--seconds": seconds,
        "--minutes": minutes,
        "--hours": hours,
        "--days": days,
        "--at": at,
    }
    given = [flag for flag, value in chosen.items() if value is not None]
    if len(given) > 1:
        raise InvalidUsageError(f"Choose one expiry option, got: {', '.join(given)}")
    offsets = {
        "--seconds": (Expiry.seconds, seconds),
        "--minutes": (Expiry.minutes, minutes),
        "--hours": (Expiry.hours, hours),
        "--days": (Expiry.days, days),
    }
    for flag, (build, amount) in offsets.items():
        if amount is None:
            continue
        try:
            return build(amount)
        except ValidationError:
            raise InvalidUsageError(f"{flag} needs a finite number, got {amount}") from None
    if at is not None:
        try:
            return Expiry.at(datetime.fromisoformat(at))
        except ValueError:
            raise InvalidUsageError(f"Not an ISO 8601 timestamp: {at}") from None
    return Expiry.never()


def _describe(value: Any) -> str:  # noqa: ANN401
    return value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)


def get_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Cache name."),
    key: str = typer.Argument(help="Key to look up."),
    include_expired: bool = typer.Option(
        False, "--include-expired", help="Show an expired value instead of deleting it."
    ),
) -> None:
    """Print the value stored under KEY.

    Exits with code 4 when the key has no live entry.

    Example::

        tiercache get weather berlin
        tiercache get weather berlin --include-expired --json
    """
    with _opened(ctx, name) as cache:
        value = cache.get(key, include_expired=include_expired)
        if value is None:
            exc = KeyNotFoundError(f"No entry for '{key}' in cache '{name}'")
            error(str(exc))
            raise typer.Exit(code=exc.exit_code)
        format_response(value)


def set_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Cache name."),
    key: str = typer.Argument(help="Key to store under."),
    value: str = typer.Argument(help="Value; parsed as JSON when possible."),
    seconds: Optional[float] = typer.Option(None, "--seconds", help="Expire after N seconds."),
    minutes: Optional[float] = typer.Option(None, "--minutes", help="Expire after N minutes."),
    hours: Optional[float] = typer.Option(None, "--hours", help="Expire after N hours."),
    days: Optional[float] = typer.Option(None, "--days", help="Expire after N days."),
    at: Optional[str] = typer.Option(None, "--at", help="Expire at an ISO 8601 instant (UTC if naive)."),
) -> None:
    """Store VALUE under KEY, optionally with an expiry.

    Example::

        tiercache set weather berlin '{"temp": 21}' --minutes 10
        tiercache set notes todo "buy milk"
    """
    try:
        expires = _expiry_from_options(seconds, minutes, hours, days, at)
    except InvalidUsageError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    with _opened(ctx, name) as cache:
        cache.set(key, _parse_value(value), expires)
    success(f"Stored '{key}' in cache '{name}'")


def remove_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Cache name."),
    key: str = typer.Argument(help="Key to remove."),
) -> None:
    """Remove KEY from the cache. Removing a missing key is not an error."""
    with _opened(ctx, name) as cache:
        cache.remove(key)
    success(f"Removed '{key}' from cache '{name}'")


def list_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Cache name."),
    show_all: bool = typer.Option(False, "--all", "-a", help="Include expired entries."),
) -> None:
    """List every value in the cache.

    Expired entries are deleted while listing unless ``--all`` is given.
    """
    with _opened(ctx, name) as cache:
        values = cache.all_values(include_expired=show_all)
    if not values:
        info(f"Cache '{name}' is empty.")
        return
    print_table(["value"], [[_describe(v)] for v in values], title=f"Cache '{name}'")


def clear_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Cache name."),
) -> None:
    """Delete every entry in the cache.

    Asks for confirmation unless ``--force`` is active.
    """
    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm(f"Delete every entry in cache '{name}'?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    with _opened(ctx, name) as cache:
        cache.remove_all()
    success(f"Cleared cache '{name}'")


def purge_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Cache name."),
) -> None:
    """Delete expired entries from the cache."""
    with _opened(ctx, name) as cache:
        removed = cache.remove_expired()
    success(f"Removed {removed} expired entr{'y' if removed == 1 else 'ies'} from '{name}'")


def stats_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Cache name."),
) -> None:
    """Show entry counts and the storage directory."""
    with _opened(ctx, name) as cache:
        format_response(cache.stats())

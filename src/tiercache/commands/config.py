"""Config commands -- view and modify the settings file.

Provides the ``tiercache config`` sub-command group for reading, updating
and resetting :class:`~tiercache.models.GlobalConfig`. The settings decide
how the command-line tool opens caches: memory capacity, on-disk
serializer and the root directory for named caches.
"""

from __future__ import annotations

from typing import Any

import typer

from tiercache.exceptions import ConfigError
from tiercache.exit_codes import EXIT_INVALID_USAGE
from tiercache.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


def _coerce(key: str, current: Any, value: str) -> Any:  # noqa: ANN401
    """Coerce the string *value* to the type of the field's *current* value."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            raise ConfigError(f"Expected integer for {key}, got: {value}") from None
    if current is None and value.lower() in ("none", "null", ""):
        return None
    return value


@config_app.command("show")
def config_show() -> None:
    """Show the current settings.

    Example::

        tiercache config show
        tiercache config show --json
    """
    from tiercache.config import global_config_path, load_global_config

    try:
        config = load_global_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    info(f"Config file: {global_config_path()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'cache.capacity')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is coerced to the type of the existing field and the result
    validated against :class:`~tiercache.models.GlobalConfig` before it is
    saved. ``none`` clears an optional field.

    Raises:
        typer.Exit: With code 2 if the key path is unknown or the value is
            rejected.

    Example::

        tiercache config set cache.capacity 5000
        tiercache config set cache.serializer json
        tiercache config set cache.directory /var/tmp/caches
    """
    from tiercache.config import load_global_config, save_global_config
    from tiercache.models import GlobalConfig

    try:
        config = load_global_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    try:
        coerced = _coerce(key, target[final_key], value)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset the settings to defaults.

    Asks for confirmation unless ``--force`` is active. Cached entries are
    not touched.

    Example::

        tiercache config reset --force
    """
    from tiercache.config import save_global_config
    from tiercache.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all settings to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")

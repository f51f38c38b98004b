"""Config commands -- view and modify global configuration.

Provides the ``apiharmony config`` sub-command group for reading, updating
and resetting the user's global configuration file
(:class:`~apiharmony.models.GlobalConfig`). Settings control the fetch
timeout and User-Agent, the document cache and the default output format.
"""

from __future__ import annotations

import typer

from apiharmony.exit_codes import EXIT_INVALID_USAGE
from apiharmony.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Example::

        apiharmony config show
        apiharmony --json config show
    """
    from apiharmony.config import get_config_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'fetch.timeout')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to the existing
    field's type (bool, int, float or str) and the updated config is
    validated against :class:`~apiharmony.models.GlobalConfig` before saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or validation fails.

    Example::

        apiharmony config set fetch.timeout 10
        apiharmony config set cache.enabled false
    """
    from pydantic import ValidationError as PydanticValidationError

    from apiharmony.config import load_global_config, save_global_config
    from apiharmony.models import GlobalConfig

    config = load_global_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    current = target[final_key]
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes", "on")
    elif isinstance(current, (int, float)):
        number_type = type(current)
        try:
            coerced = number_type(value)
        except ValueError:
            error(f"Expected {number_type.__name__} for {key}, got: {value}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    else:
        coerced = value

    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except PydanticValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Reset configuration to defaults.

    Example::

        apiharmony config reset --yes
    """
    from apiharmony.config import save_global_config
    from apiharmony.models import GlobalConfig

    if not yes:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")

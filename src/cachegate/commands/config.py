"""Config commands -- view and modify global configuration.

Provides the ``cachegate config`` sub-command group for reading, updating,
and resetting the user's global configuration file
(:class:`~cachegate.models.GlobalConfig`), which holds the engine
configuration used by every other command.
"""

from __future__ import annotations

from typing import Any

import typer

from cachegate.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    effective: bool = typer.Option(
        False, "--effective", help="Show the merged config (env, project file, flags)."
    ),
) -> None:
    """Show the current configuration.

    Example::

        cachegate config show
        cachegate --origin https://shop.example config show --effective
    """
    from cachegate.commands.common import resolve_from_context
    from cachegate.config import global_config_path, load_global_config

    info(f"Config file: {global_config_path()}")
    config = resolve_from_context(ctx) if effective else load_global_config()
    data = config.model_dump(mode="json")
    engine = config.engine
    data["engine"]["stores"] = {"static": engine.static_store, "dynamic": engine.dynamic_store}
    format_response(data)


def _coerce(key: str, current: Any, value: str) -> Any:
    """Coerce *value* to the type of the field's current value."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    if isinstance(current, list):
        return [item.strip() for item in value.split(",") if item.strip()]
    if current is None and value.lower() in ("none", "null", ""):
        return None
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'engine.version')."
    ),
    value: str = typer.Argument(help="Value to set. Lists are comma-separated."),
) -> None:
    """Set a configuration value.

    The value is coerced to the existing field's type (bool, int, list, or
    str) and the result is validated before saving.

    Example::

        cachegate config set engine.origin https://shop.example
        cachegate config set engine.version 2.0.4
        cachegate config set engine.static_manifest /,/index.html,/style.css
        cachegate config set engine.max_replay_attempts 5
    """
    from cachegate.config import load_global_config, save_global_config
    from cachegate.models import GlobalConfig

    config = load_global_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    coerced = _coerce(key, target[final_key], value)
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset configuration to defaults."""
    from cachegate.config import save_global_config
    from cachegate.models import GlobalConfig

    if not force and not typer.confirm("Reset all configuration to defaults?"):
        info("Aborted.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")

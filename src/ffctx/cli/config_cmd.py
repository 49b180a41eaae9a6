"""Config subcommands: get, set, list for global ffctx settings."""

from __future__ import annotations

from typing import Optional

import typer

from ffctx.cli._shared import FORMAT_OPTION
from ffctx.utils.config import load_global_config, save_global_config
from ffctx.utils.output import error, info, output, success

config_app = typer.Typer(no_args_is_help=True)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise ValueError("must be at least 1")
    return number


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise ValueError("must not be negative")
    return number


# key -> parser for the raw CLI value
_VALID_KEYS = {
    "cache_dir": str,
    "batch_size": _positive_int,
    "fetch_retries": _non_negative_int,
}


def _check_key(key: str) -> None:
    if key not in _VALID_KEYS:
        error(f"Unknown key: {key}. Valid keys: {', '.join(sorted(_VALID_KEYS))}")
        raise typer.Exit(1)


@config_app.command("get")
def config_get(
    key: str = typer.Argument(..., help="Configuration key"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Get a configuration value."""
    _check_key(key)
    value = load_global_config().get(key)
    if fmt == "json":
        output({"key": key, "value": value}, fmt="json")
    elif value is None:
        info(f"{key}: (not set)")
    else:
        info(f"{key}: {value}")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Configuration key"),
    value: str = typer.Argument(..., help="Value to set"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Set a configuration value."""
    _check_key(key)
    try:
        parsed = _VALID_KEYS[key](value)
    except ValueError as e:
        error(f"Invalid value for {key}: {value} ({e})")
        raise typer.Exit(1)

    config = load_global_config()
    config[key] = parsed
    save_global_config(config)

    if fmt == "json":
        output({"key": key, "value": parsed}, fmt="json")
    else:
        success(f"{key} = {parsed}")


@config_app.command("list")
def config_list(
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """List all configuration values."""
    config = load_global_config()
    if fmt == "json":
        output(config, fmt="json")
    elif config:
        for k, v in sorted(config.items()):
            info(f"{k}: {v}")
    else:
        info("No configuration set")

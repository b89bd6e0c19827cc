from __future__ import annotations

from typing import Annotated

import typer

from smartcast.config import (
    Settings,
    StorageConfig,
    render_settings_toml,
    write_settings,
)

from .common import load_settings_or_exit, resolve_config_path_or_exit

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config() -> None:
    """Print the effective configuration as TOML."""
    settings = load_settings_or_exit()
    path, exists = resolve_config_path_or_exit(allow_missing=True)

    source = str(path) if exists else "defaults"
    typer.echo(f"Config source: {source}")
    typer.echo(render_settings_toml(settings))


@app.command("init")
def init_config(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite existing config"),
    ] = False,
    storage: Annotated[
        str | None,
        typer.Option("--storage", help="Directory for tokens and scan results"),
    ] = None,
) -> None:
    """Write a config file with every default spelled out."""
    path, exists = resolve_config_path_or_exit(allow_missing=True)

    if exists and not force:
        typer.echo(f"Config already exists at {path}")
        return

    settings = Settings()
    if storage:
        settings = Settings(storage=StorageConfig(path=storage))
    write_settings(settings, path)
    typer.echo(f"Wrote default config to {path}")


@app.command("path")
def config_path() -> None:
    """Print where the config file is read from."""
    path, exists = resolve_config_path_or_exit(allow_missing=True)
    typer.echo(f"{path}{'' if exists else ' (missing, using defaults)'}")

from __future__ import annotations

from typing import Annotated

import typer

from smartcast.utils.logging import LogLevel, setup_logging

from . import config as config_cmd
from .control import register as register_control
from .pair import register as register_pair
from .scan import register as register_scan
from .tokens import register as register_tokens

app = typer.Typer(
    help="smartcast - discover and control SmartCast displays and speakers",
    no_args_is_help=True,
)

app.add_typer(config_cmd.app, name="config", help="Show or create the config file")

register_scan(app)
register_pair(app)
register_control(app)
register_tokens(app)


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Log protocol traffic"),
    ] = False,
    trace_http: Annotated[
        bool,
        typer.Option("--trace-http", help="Also log httpx connection traffic"),
    ] = False,
) -> None:
    """smartcast CLI."""
    level: LogLevel | None = "DEBUG" if debug else None
    setup_logging(level, trace_http=trace_http)

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"smartcast version {get_version('smartcast')}")
        raise typer.Exit()

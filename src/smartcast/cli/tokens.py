from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from smartcast.utils.redaction import Redactor

from .common import build_store, exit_on_error, load_settings_or_exit


def register(app: typer.Typer) -> None:
    @app.command()
    def tokens(
        show: bool = typer.Option(False, "--show", help="Print tokens in clear"),
    ) -> None:
        """List devices this client has paired with."""
        settings = load_settings_or_exit()
        store = build_store(settings)
        with exit_on_error():
            registry = store.load()

        console = Console()
        if not registry.devices:
            console.print("No paired devices. Use 'smartcast pair HOST' first.")
            return

        redactor = Redactor(enabled=not show)
        table = Table()
        table.add_column("Identifier", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Address")
        table.add_column("Token", style="yellow")
        for identifier, device in sorted(registry.devices.items()):
            table.add_row(
                identifier,
                device.name,
                str(device.endpoint),
                redactor.redact_token(device.token),
            )
        console.print(table)

    @app.command()
    def forget(
        identifier: str = typer.Argument(..., help="Identifier shown by 'tokens'"),
    ) -> None:
        """Delete a stored token."""
        settings = load_settings_or_exit()
        store = build_store(settings)
        with exit_on_error():
            removed = store.forget(identifier)
        if not removed:
            typer.echo(f"No token stored for {identifier}", err=True)
            raise typer.Exit(1)
        typer.echo(f"Forgot {identifier}")

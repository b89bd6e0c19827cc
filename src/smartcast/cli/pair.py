from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from .common import build_store, exit_on_error, load_settings_or_exit, open_session


def register(app: typer.Typer) -> None:
    @app.command()
    def pair(
        host: str = typer.Argument(..., help="Device IP address or host name"),
        port: int | None = typer.Option(
            None, "--port", "-p", help="API port. Probed if omitted."
        ),
        name: str | None = typer.Option(
            None, "--name", "-n", help="Client name shown on the device"
        ),
    ) -> None:
        """Pair with a device and store the auth token."""
        console = Console()
        settings = load_settings_or_exit()
        store = build_store(settings)

        # One loop across both pairing calls; the PIN prompt runs between them
        # so Ctrl+C reaches the prompt instead of the loop.
        with exit_on_error(), asyncio.Runner() as runner:
            identifier, session = runner.run(open_session(host, settings, store, port))
            try:
                challenge = runner.run(session.begin_pair(name))
                pin = None
                if challenge.needs_pin:
                    console.print("Pairing started. The device now shows a PIN.")
                    try:
                        pin = typer.prompt("PIN")
                    except typer.Abort:
                        runner.run(session.cancel_pair())
                        console.print("Pairing cancelled.")
                        raise
                token = runner.run(session.submit_pin(pin))
            finally:
                runner.run(session.aclose())

            friendly = session.descriptor.friendly_name if session.descriptor else ""
            store.remember(identifier, token, session.endpoint, name=friendly)

        console.print(f"[green]✓[/green] Paired with {session.endpoint}")
        console.print(f"Token stored in {store.tokens_path}")

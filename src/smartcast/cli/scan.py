from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.table import Table

from smartcast.core import scan_devices
from smartcast.utils.redaction import Redactor

from .common import build_store, exit_on_error, load_settings_or_exit, run

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    @app.command()
    def scan(
        timeout: float | None = typer.Option(
            None,
            "--timeout",
            "-t",
            help="Seconds to wait for replies. Uses config default if omitted.",
        ),
        save: bool = typer.Option(True, help="Save scan results to data directory"),
        redact: bool = typer.Option(
            False,
            "--redact",
            help="Redact sensitive values in output",
        ),
    ) -> None:
        """Search the local network for SmartCast devices."""
        console = Console()

        settings = load_settings_or_exit()
        store = build_store(settings)

        wait = timeout if timeout is not None else settings.discovery.timeout
        console.print(f"Searching for SmartCast devices ({wait:.1f}s)...")
        logger.info(
            "Discovery settings: target=%s, manufacturer=%r",
            settings.discovery.search_target,
            settings.discovery.manufacturer,
        )
        devices = run(scan_devices(wait, settings.discovery))

        if not devices:
            console.print("No SmartCast devices found.")
            return

        with exit_on_error():
            paired = store.load().devices

        redactor = Redactor(enabled=redact)
        table = Table()
        table.add_column("Address", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Kind")
        table.add_column("Model")
        table.add_column("Identifier")
        table.add_column("Paired", style="yellow")

        for device in devices:
            table.add_row(
                f"{redactor.redact_ip(device.host)}:{device.port}",
                device.friendly_name,
                str(device.kind),
                device.model,
                redactor.redact_identifier(device.identifier),
                "yes" if device.identifier in paired else "",
            )

        console.print(table)
        console.print(f"\n[green]Found {len(devices)} device(s)[/green]")

        if save:
            store.save_scan(devices)
            console.print(f"[green]✓[/green] Saved scan results to {store.scan_path}")

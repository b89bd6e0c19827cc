from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from smartcast.config import Settings
from smartcast.core import DeviceSession
from smartcast.exceptions import InvalidValue
from smartcast.models import (
    KeyAction,
    ObjectType,
    SettingsNode,
    SettingsPath,
    SettingValue,
    ValueKind,
)
from smartcast.storage import TokenStore

from .common import build_store, load_settings_or_exit, open_session, run

_TRUE = ("true", "on", "yes", "1")
_FALSE = ("false", "off", "no", "0")

_ACTIONS = {
    "press": KeyAction.PRESS,
    "down": KeyAction.DOWN,
    "up": KeyAction.UP,
}


def coerce_value(node: SettingsNode, raw: str) -> SettingValue:
    """Turn a command line string into the node's value kind."""
    if node.kind is ValueKind.BOOLEAN:
        lowered = raw.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise InvalidValue(f"Setting '{node.path}' expects on/off", raw)
    if node.kind is ValueKind.INTEGER:
        try:
            return int(raw)
        except ValueError as exc:
            raise InvalidValue(f"Setting '{node.path}' expects an integer", raw) from exc
    return raw


def _format_value(node: SettingsNode) -> str:
    if node.value is None:
        return ""
    if isinstance(node.value, bool):
        return "on" if node.value else "off"
    return str(node.value)


def _target_options() -> tuple[Settings, TokenStore]:
    settings = load_settings_or_exit()
    return settings, build_store(settings)


def register(app: typer.Typer) -> None:
    @app.command()
    def state(
        host: str = typer.Argument(..., help="Device IP address or host name"),
        port: int | None = typer.Option(None, "--port", "-p", help="API port"),
    ) -> None:
        """Show the power state."""
        settings, store = _target_options()

        async def _state() -> tuple[bool, str | None]:
            _, session = await open_session(host, settings, store, port)
            async with session:
                device_state = await session.get_state()
                current = None
                if session.is_paired:
                    current = (await session.current_input()).friendly_name
                return device_state.power_on, current

        power_on, current = run(_state())
        console = Console()
        console.print(f"Power: {'[green]on[/green]' if power_on else 'off'}")
        if current:
            console.print(f"Input: {current}")

    @app.command()
    def info(
        host: str = typer.Argument(..., help="Device IP address or host name"),
        port: int | None = typer.Option(None, "--port", "-p", help="API port"),
    ) -> None:
        """Show model, firmware and inputs reported by the device."""
        settings, store = _target_options()

        async def _info():
            _, session = await open_session(host, settings, store, port)
            async with session:
                return session.endpoint, await session.device_info()

        endpoint, device_info = run(_info())

        console = Console()
        console.print(f"[bold]{device_info.cast_name or endpoint}[/bold]\n")
        console.print(f"Address: {endpoint}")
        console.print(f"Model: {device_info.model_name}")
        console.print(f"Serial: {device_info.serial_number}")
        console.print(f"Firmware: {device_info.firmware_version}")
        if device_info.inputs:
            console.print(f"Inputs: {', '.join(device_info.inputs)}")

    @app.command()
    def settings(
        host: str = typer.Argument(..., help="Device IP address or host name"),
        path: str = typer.Argument("", help="Menu path, e.g. picture or audio"),
        port: int | None = typer.Option(None, "--port", "-p", help="API port"),
        show_hidden: bool = typer.Option(
            False, "--hidden", help="Include hidden settings"
        ),
    ) -> None:
        """List the settings below a menu path."""
        config, store = _target_options()

        async def _read() -> list[SettingsNode]:
            _, session = await open_session(host, config, store, port)
            async with session:
                return await session.read_settings(path)

        nodes = run(_read())

        table = Table(title=f"/{path.strip('/')}")
        table.add_column("CNAME", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Type")
        table.add_column("Value", style="yellow")
        table.add_column("Flags")

        for node in nodes:
            if node.hidden and not show_hidden:
                continue
            flags = [flag for flag, on in (("ro", node.readonly), ("hidden", node.hidden)) if on]
            type_name = "menu" if node.object_type is ObjectType.MENU else str(node.kind)
            table.add_row(
                node.cname, node.name, type_name, _format_value(node), " ".join(flags)
            )

        Console().print(table)

    @app.command("set")
    def set_setting(
        host: str = typer.Argument(..., help="Device IP address or host name"),
        path: str = typer.Argument(..., help="Menu path holding the setting"),
        cname: str = typer.Argument(..., help="CNAME of the setting"),
        value: str = typer.Argument(..., help="New value"),
        port: int | None = typer.Option(None, "--port", "-p", help="API port"),
    ) -> None:
        """Change one setting."""
        config, store = _target_options()

        async def _write() -> tuple[SettingsNode, SettingValue]:
            _, session = await open_session(host, config, store, port)
            async with session:
                nodes = await session.read_settings(path)
                node = next((n for n in nodes if n.cname == cname), None)
                if node is None:
                    raise InvalidValue(
                        f"No setting '{cname}' under '{SettingsPath.parse(path)}'"
                    )
                if node.object_type in (ObjectType.SLIDER, ObjectType.LIST):
                    node = await session.describe_setting(node)
                new_value = coerce_value(node, value)
                await session.write_setting(node, new_value)
                return node, new_value

        node, new_value = run(_write())
        Console().print(f"[green]✓[/green] {node.name} set to {new_value}")

    @app.command()
    def key(
        host: str = typer.Argument(..., help="Device IP address or host name"),
        key_name: str = typer.Argument(..., metavar="KEY", help="Key, e.g. VOLUME_UP"),
        action: str = typer.Option(
            "press", "--action", "-a", help="press, down or up"
        ),
        port: int | None = typer.Option(None, "--port", "-p", help="API port"),
    ) -> None:
        """Send a virtual remote key."""
        key_action = _ACTIONS.get(action.lower())
        if key_action is None:
            typer.echo(f"Unknown action '{action}', use press, down or up", err=True)
            raise typer.Exit(2)
        config, store = _target_options()

        async def _send() -> None:
            _, session = await open_session(host, config, store, port)
            async with session:
                await session.send_key(key_name, key_action)

        run(_send())
        Console().print(f"[green]✓[/green] Sent {key_name.upper()}")

    @app.command()
    def power(
        host: str = typer.Argument(..., help="Device IP address or host name"),
        turn_on: bool = typer.Option(True, "--on/--off", help="Power on or off"),
        port: int | None = typer.Option(None, "--port", "-p", help="API port"),
    ) -> None:
        """Power the device on or off."""
        config, store = _target_options()

        async def _power() -> None:
            _, session = await open_session(host, config, store, port)
            async with session:
                if turn_on:
                    await session.power_on()
                else:
                    await session.power_off()

        run(_power())
        Console().print(f"[green]✓[/green] Power {'on' if turn_on else 'off'}")

    @app.command("input")
    def input_source(
        host: str = typer.Argument(..., help="Device IP address or host name"),
        name: str | None = typer.Argument(None, help="Input to switch to"),
        port: int | None = typer.Option(None, "--port", "-p", help="API port"),
    ) -> None:
        """List inputs, or switch to NAME."""
        config, store = _target_options()
        console = Console()

        async def _inputs(session: DeviceSession) -> None:
            current = await session.current_input()
            table = Table()
            table.add_column("Name", style="cyan")
            table.add_column("Label", style="green")
            table.add_column("Current", style="yellow")
            for source in await session.list_inputs():
                active = "*" if source.name == current.friendly_name else ""
                table.add_row(source.name, source.friendly_name, active)
            console.print(table)

        async def _run() -> None:
            _, session = await open_session(host, config, store, port)
            async with session:
                if name is None:
                    await _inputs(session)
                else:
                    await session.change_input(name)
                    console.print(f"[green]✓[/green] Switched to {name}")

        run(_run())

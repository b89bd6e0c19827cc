from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.markup import escape

from smartcast.config import (
    Settings,
    data_dir_from_settings,
    get_settings,
    resolve_config_path,
)
from smartcast.core import DeviceSession
from smartcast.exceptions import SmartcastError
from smartcast.storage import TokenStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def load_settings_or_exit() -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def build_store(settings: Settings, data_dir: Path | None = None) -> TokenStore:
    path = data_dir or data_dir_from_settings(settings)
    return TokenStore(path)


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Print library and storage errors in red and exit with status 1."""
    try:
        yield
    except (SmartcastError, ValueError) as exc:
        Console(stderr=True).print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc


def run(coro: Coroutine[Any, Any, T]) -> T:
    with exit_on_error():
        return asyncio.run(coro)


async def open_session(
    host: str,
    settings: Settings,
    store: TokenStore,
    port: int | None = None,
) -> tuple[str, DeviceSession]:
    """Session for ``host`` with its stored token, if any.

    Returns the key the token is stored under: the device UUID when the host
    was seen in the last scan, else the host itself.
    """
    stored = store.find_by_host(host)
    token = stored[1].token if stored else None
    if port is None and stored:
        port = stored[1].port

    scan = store.load_last_scan()
    descriptor = None
    if scan is not None:
        descriptor = next((d for d in scan.devices if d.host == host), None)

    if stored:
        identifier = stored[0]
    elif descriptor is not None:
        identifier = descriptor.identifier
    else:
        identifier = host

    if descriptor is not None and port in (None, descriptor.port):
        logger.debug("Using scanned descriptor for %s", host)
        session = DeviceSession(
            descriptor,
            client=settings.client,
            connection=settings.connection,
            token=token,
        )
        return identifier, session

    session = await DeviceSession.from_address(
        host, port, settings=settings, token=token
    )
    return identifier, session

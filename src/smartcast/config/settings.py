from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from smartcast.constants import (
    API_PORT_OPTIONS,
    DEFAULT_API_PORT,
    DEFAULT_TIMEOUT,
    SSDP_MULTICAST_ADDRESS,
    SSDP_PORT,
    SSDP_SEARCH_TARGET,
)

from .paths import default_config_path, default_data_dir, expand_path

CONFIG_ENV_VAR = "SMARTCAST_CONFIG"


class StorageConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    path: str = Field(default_factory=lambda: str(default_data_dir()))


class DiscoveryConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    timeout: float = Field(default=3.0, gt=0)
    multicast_address: str = SSDP_MULTICAST_ADDRESS
    multicast_port: int = Field(default=SSDP_PORT, ge=1, le=65535)
    search_target: str = SSDP_SEARCH_TARGET
    # Empty string disables the manufacturer filter.
    manufacturer: str = "Vizio"
    describe: bool = True
    api_port: int = Field(default=DEFAULT_API_PORT, ge=1, le=65535)


class ConnectionConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    port_options: tuple[int, ...] = API_PORT_OPTIONS
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)


class ClientConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    name: str = Field(default="smartcast", min_length=1)
    id: str = Field(default="smartcast-python", min_length=1)


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    storage: StorageConfig = Field(default_factory=StorageConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def data_dir_from_settings(settings: Settings) -> Path:
    return expand_path(settings.storage.path)


def _toml_string(value: str) -> str:
    return json.dumps(value)


def render_settings_toml(settings: Settings) -> str:
    discovery = settings.discovery
    ports = ", ".join(str(port) for port in settings.connection.port_options)
    lines = [
        "# smartcast configuration",
        "",
        "[storage]",
        f"path = {_toml_string(settings.storage.path)}",
        "",
        "[discovery]",
        f"timeout = {discovery.timeout}",
        f"multicast_address = {_toml_string(discovery.multicast_address)}",
        f"multicast_port = {discovery.multicast_port}",
        f"search_target = {_toml_string(discovery.search_target)}",
        f"manufacturer = {_toml_string(discovery.manufacturer)}",
        f"describe = {'true' if discovery.describe else 'false'}",
        f"api_port = {discovery.api_port}",
        "",
        "[connection]",
        f"port_options = [{ports}]",
        f"timeout = {settings.connection.timeout}",
        "",
        "[client]",
        f"name = {_toml_string(settings.client.name)}",
        f"id = {_toml_string(settings.client.id)}",
        "",
    ]
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))

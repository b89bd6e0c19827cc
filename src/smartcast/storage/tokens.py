from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from smartcast.models import DeviceDescriptor, Endpoint, ScanResult

logger = logging.getLogger(__name__)

TOKENS_FILE = "tokens.yaml"
SCAN_FILE = "scan.json"


class PairedDevice(BaseModel):
    """A device this client has paired with."""

    model_config = {"extra": "forbid"}

    token: str = Field(min_length=1)
    host: str = Field(min_length=1)
    port: int = Field(ge=1, le=65535)
    name: str = ""

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint(host=self.host, port=self.port)

    def __repr__(self) -> str:
        return f"PairedDevice(host={self.host!r}, port={self.port}, name={self.name!r})"


class TokenRegistry(BaseModel):
    model_config = {"extra": "forbid"}

    devices: dict[str, PairedDevice] = Field(default_factory=dict)


class TokenStore:
    """Auth tokens keyed by device identifier, kept in ``tokens.yaml``.

    Tokens are credentials; the file is written with owner-only permissions.
    The last discovery result is cached next to it as ``scan.json``.
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._tokens_path = data_dir / TOKENS_FILE
        self._scan_path = data_dir / SCAN_FILE

    @property
    def path(self) -> Path:
        return self._data_dir

    @property
    def tokens_path(self) -> Path:
        return self._tokens_path

    @property
    def scan_path(self) -> Path:
        return self._scan_path

    def ensure_dirs(self) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def load(self) -> TokenRegistry:
        if not self._tokens_path.exists():
            return TokenRegistry()

        try:
            with self._tokens_path.open() as handle:
                data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ValueError(
                f"Invalid YAML in tokens file: {self._tokens_path}\n{exc}"
            ) from exc

        try:
            return TokenRegistry.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid tokens file: {self._tokens_path}\n{exc}") from exc

    def save(self, registry: TokenRegistry) -> None:
        self.ensure_dirs()
        with self._tokens_path.open("w") as handle:
            handle.write("# smartcast pairing tokens. Treat as secrets.\n\n")
            yaml.safe_dump(
                registry.model_dump(),
                handle,
                default_flow_style=False,
                sort_keys=True,
            )
        self._tokens_path.chmod(0o600)

    def remember(
        self, identifier: str, token: str, endpoint: Endpoint, name: str = ""
    ) -> PairedDevice:
        registry = self.load()
        device = PairedDevice(
            token=token, host=endpoint.host, port=endpoint.port, name=name
        )
        registry.devices[identifier] = device
        self.save(registry)
        logger.debug("Stored token for %s", identifier)
        return device

    def get(self, identifier: str) -> PairedDevice | None:
        return self.load().devices.get(identifier)

    def find_by_host(self, host: str) -> tuple[str, PairedDevice] | None:
        for identifier, device in self.load().devices.items():
            if device.host == host:
                return identifier, device
        return None

    def forget(self, identifier: str) -> bool:
        registry = self.load()
        if identifier not in registry.devices:
            return False
        del registry.devices[identifier]
        self.save(registry)
        return True

    def save_scan(self, devices: list[DeviceDescriptor]) -> None:
        scan = ScanResult(scan_timestamp=datetime.now(timezone.utc), devices=devices)
        self.ensure_dirs()
        with self._scan_path.open("w") as handle:
            json.dump(scan.model_dump(mode="json"), handle, indent=2)

    def load_last_scan(self) -> ScanResult | None:
        if not self._scan_path.exists():
            return None

        with self._scan_path.open("r") as handle:
            data = json.load(handle)

        try:
            return ScanResult.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid scan file: {self._scan_path}\n{exc}") from exc

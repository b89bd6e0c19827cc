from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class DeviceKind(StrEnum):
    TV = "tv"
    SPEAKER = "speaker"
    UNKNOWN = "unknown"

    @classmethod
    def from_model_name(cls, model: str) -> DeviceKind:
        name = model.strip().upper()
        if not name:
            return cls.UNKNOWN
        # Sound bars are sold as SB*/SP* models.
        if name.startswith(("SB", "SP")):
            return cls.SPEAKER
        return cls.TV


class Endpoint(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    host: str = Field(min_length=1)
    port: int = Field(ge=1, le=65535)

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    @property
    def base_url(self) -> str:
        return f"https://{self}"


class DeviceDescriptor(BaseModel):
    """A device found on the network, identified by its UUID."""

    model_config = {"frozen": True, "extra": "forbid"}

    identifier: str = Field(min_length=1)
    endpoint: Endpoint
    friendly_name: str = ""
    model: str = ""
    manufacturer: str = ""
    kind: DeviceKind = DeviceKind.UNKNOWN

    @field_validator("identifier")
    @classmethod
    def _strip_uuid_prefix(cls, value: str) -> str:
        value = value.strip()
        if value.lower().startswith("uuid:"):
            value = value[len("uuid:") :]
        if not value:
            raise ValueError("identifier must not be empty")
        return value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DeviceDescriptor):
            return NotImplemented
        return self.identifier == other.identifier

    def __hash__(self) -> int:
        return hash(self.identifier)

    @property
    def host(self) -> str:
        return self.endpoint.host

    @property
    def port(self) -> int:
        return self.endpoint.port


class ScanResult(BaseModel):
    model_config = {"extra": "forbid"}

    scan_timestamp: datetime
    devices: list[DeviceDescriptor]

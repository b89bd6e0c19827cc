from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class DeviceState(BaseModel):
    model_config = {"frozen": True}

    power_on: bool
    current_input: str | None = None


class DeviceInfo(BaseModel):
    """Static facts reported by /state/device/deviceinfo."""

    model_config = {"frozen": True}

    cast_name: str = ""
    model_name: str = ""
    serial_number: str = ""
    firmware_version: str = ""
    settings_root: str = ""
    inputs: tuple[str, ...] = ()

    @classmethod
    def from_item_value(cls, value: dict[str, Any]) -> DeviceInfo:
        system = value.get("SYSTEM_INFO") or {}
        if not isinstance(system, dict):
            raise ValueError(f"SYSTEM_INFO is {type(system).__name__}, not an object")
        return cls(
            cast_name=str(value.get("CAST_NAME", "")),
            model_name=str(value.get("MODEL_NAME", "")),
            serial_number=str(system.get("SERIAL_NUMBER", "")),
            firmware_version=str(system.get("VERSION", "")),
            settings_root=str(value.get("SETTINGS_ROOT", "")),
            inputs=tuple(str(name) for name in value.get("INPUTS") or ()),
        )


class InputSource(BaseModel):
    model_config = {"frozen": True}

    cname: str
    name: str
    friendly_name: str = ""
    hashval: int = Field(default=0, ge=0)

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> InputSource:
        value = item.get("VALUE")
        if isinstance(value, dict):
            friendly = str(value.get("NAME", ""))
        else:
            friendly = "" if value is None else str(value)
        return cls(
            cname=str(item["CNAME"]),
            name=str(item["NAME"]),
            friendly_name=friendly,
            hashval=int(item.get("HASHVAL") or 0),
        )

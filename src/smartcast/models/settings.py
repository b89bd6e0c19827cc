"""Settings tree nodes and their client side value checks.

The device reports every value loosely typed (booleans as ``"TRUE"``, slider
positions as numbers or numeric strings, ...). Nodes decode them into one of
four value kinds so that writes can be checked before anything is sent.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from smartcast.constants import (
    SETTINGS_DYNAMIC_BASE,
    SETTINGS_STATIC_BASE,
    TV_SETTINGS_ROOT,
)
from smartcast.exceptions import InvalidValue

SettingValue = bool | int | str

_OBJECT_TYPES = {
    "T_VALUE_ABS_V1": "slider",
    "T_LIST_V1": "list",
    "T_LIST_X_V1": "x_list",
    "T_VALUE_V1": "value",
    "T_MENU_V1": "menu",
}


class ObjectType(StrEnum):
    SLIDER = "slider"
    LIST = "list"
    X_LIST = "x_list"
    VALUE = "value"
    MENU = "menu"
    OTHER = "other"

    @classmethod
    def from_wire(cls, type_name: str) -> ObjectType:
        return cls(_OBJECT_TYPES.get(type_name.upper(), "other"))


class ValueKind(StrEnum):
    BOOLEAN = "boolean"
    INTEGER = "integer"
    ENUM = "enum"
    STRING = "string"
    NONE = "none"


class SettingsPath(BaseModel):
    """Address of a node: the CNAME segments below the settings root."""

    model_config = {"frozen": True}

    segments: tuple[str, ...] = ()

    @field_validator("segments")
    @classmethod
    def _no_empty_segments(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for segment in value:
            if not segment or "/" in segment:
                raise ValueError(f"invalid path segment: {segment!r}")
        return value

    @classmethod
    def parse(cls, value: SettingsPath | str | Iterable[str]) -> SettingsPath:
        if isinstance(value, SettingsPath):
            return value
        if isinstance(value, str):
            return cls(segments=tuple(part for part in value.split("/") if part))
        return cls(segments=tuple(value))

    def child(self, cname: str) -> SettingsPath:
        return SettingsPath(segments=(*self.segments, cname))

    @property
    def parent(self) -> SettingsPath:
        return SettingsPath(segments=self.segments[:-1])

    def __str__(self) -> str:
        return "/".join(self.segments)

    def url(self, root: str = TV_SETTINGS_ROOT, static: bool = False) -> str:
        """Request path under the dynamic (values) or static (constraints) tree."""
        base = SETTINGS_STATIC_BASE if static else SETTINGS_DYNAMIC_BASE
        return "/".join((base, root, *self.segments))


class SliderInfo(BaseModel):
    model_config = {"frozen": True}

    minimum: int
    maximum: int
    increment: int = 1
    center: int = 0
    dec_marker: str = ""
    inc_marker: str = ""

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> SliderInfo | None:
        if "MINIMUM" not in item or "MAXIMUM" not in item:
            return None
        return cls(
            minimum=int(item["MINIMUM"]),
            maximum=int(item["MAXIMUM"]),
            increment=int(item.get("INCREMENT", 1) or 1),
            center=int(item.get("CENTER", 0) or 0),
            dec_marker=str(item.get("DECMARKER", "")),
            inc_marker=str(item.get("INCMARKER", "")),
        )


def _wire_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.upper() in ("TRUE", "FALSE"):
        return value.upper() == "TRUE"
    raise ValueError(f"not a boolean: {value!r}")


def _decode_value(
    object_type: ObjectType, raw: Any
) -> tuple[ValueKind, SettingValue | None]:
    if object_type is ObjectType.MENU:
        return ValueKind.NONE, None
    if object_type is ObjectType.SLIDER:
        if raw is None:
            return ValueKind.INTEGER, None
        return ValueKind.INTEGER, int(raw)
    if object_type in (ObjectType.LIST, ObjectType.X_LIST):
        return ValueKind.ENUM, None if raw is None else str(raw)

    if raw is None:
        return ValueKind.NONE, None
    if isinstance(raw, bool):
        return ValueKind.BOOLEAN, raw
    if isinstance(raw, int):
        return ValueKind.INTEGER, raw
    if isinstance(raw, float) and raw.is_integer():
        return ValueKind.INTEGER, int(raw)
    if isinstance(raw, str):
        try:
            return ValueKind.BOOLEAN, _wire_bool(raw)
        except ValueError:
            return ValueKind.STRING, raw
    if isinstance(raw, dict) and "NAME" in raw:
        return ValueKind.STRING, str(raw["NAME"])
    raise ValueError(f"unsupported setting value: {raw!r}")


class SettingsNode(BaseModel):
    """One entry of the settings tree as read from the device."""

    model_config = {"frozen": True}

    path: SettingsPath
    cname: str
    name: str
    group: str = ""
    object_type: ObjectType
    kind: ValueKind
    value: SettingValue | None = None
    hashval: int | None = None
    hidden: bool = False
    readonly: bool = False
    slider: SliderInfo | None = None
    elements: tuple[str, ...] | None = Field(default=None)

    @classmethod
    def from_item(cls, parent: SettingsPath, item: dict[str, Any]) -> SettingsNode:
        """Decode one ``ITEMS`` entry. Raises KeyError/ValueError on bad input."""
        cname = str(item["CNAME"])
        object_type = ObjectType.from_wire(str(item["TYPE"]))
        kind, value = _decode_value(object_type, item.get("VALUE"))
        elements = item.get("ELEMENTS")
        hashval = item.get("HASHVAL")
        return cls(
            path=parent.child(cname),
            cname=cname,
            name=str(item.get("NAME", cname)),
            group=str(item.get("GROUP", "")),
            object_type=object_type,
            kind=kind,
            value=value,
            hashval=None if hashval is None else int(hashval),
            hidden=_wire_bool(item.get("HIDDEN", False)),
            readonly=_wire_bool(item.get("READONLY", False)),
            slider=SliderInfo.from_item(item),
            elements=None if elements is None else tuple(str(e) for e in elements),
        )

    @property
    def writable(self) -> bool:
        return not self.readonly and self.kind is not ValueKind.NONE

    def with_constraints(self, item: dict[str, Any]) -> SettingsNode:
        """Copy of this node with slider bounds/elements from a static item."""
        slider = SliderInfo.from_item(item) or self.slider
        elements = item.get("ELEMENTS")
        return self.model_copy(
            update={
                "slider": slider,
                "elements": (
                    self.elements
                    if elements is None
                    else tuple(str(e) for e in elements)
                ),
            }
        )

    def validate_value(self, value: Any) -> SettingValue:
        if self.readonly:
            raise InvalidValue(f"Setting '{self.path}' is read-only")
        if self.kind is ValueKind.NONE:
            raise InvalidValue(f"Setting '{self.path}' has no writable value")

        if self.kind is ValueKind.BOOLEAN:
            if not isinstance(value, bool):
                raise InvalidValue(
                    f"Setting '{self.path}' expects a boolean", repr(value)
                )
            return value

        if self.kind is ValueKind.INTEGER:
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidValue(
                    f"Setting '{self.path}' expects an integer", repr(value)
                )
            if self.slider is not None:
                low, high = self.slider.minimum, self.slider.maximum
                if not low <= value <= high:
                    raise InvalidValue(
                        f"Setting '{self.path}' out of range",
                        f"{value} not in [{low}, {high}]",
                    )
                step = self.slider.increment
                if step > 1 and (value - low) % step:
                    raise InvalidValue(
                        f"Setting '{self.path}' must move in steps of {step}",
                        str(value),
                    )
            return value

        if not isinstance(value, str):
            raise InvalidValue(f"Setting '{self.path}' expects a string", repr(value))
        if self.kind is ValueKind.ENUM and self.elements is not None:
            if value not in self.elements:
                raise InvalidValue(
                    f"Setting '{self.path}' does not allow {value!r}",
                    ", ".join(self.elements),
                )
        return value

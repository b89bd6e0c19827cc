"""Tests for value models: descriptors, settings nodes and keys."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from smartcast.exceptions import InvalidValue
from smartcast.models import (
    DeviceDescriptor,
    DeviceKind,
    Endpoint,
    Key,
    KeyAction,
    ObjectType,
    SettingsNode,
    SettingsPath,
    ValueKind,
    key_event,
)


def test_endpoint_str_and_url():
    endpoint = Endpoint(host="192.168.1.50", port=7345)
    assert str(endpoint) == "192.168.1.50:7345"
    assert endpoint.base_url == "https://192.168.1.50:7345"
    assert str(Endpoint(host="fe80::1", port=9000)) == "[fe80::1]:9000"


@pytest.mark.parametrize("port", [0, 70000])
def test_endpoint_rejects_bad_port(port: int):
    with pytest.raises(ValidationError):
        Endpoint(host="192.168.1.50", port=port)


def test_descriptor_identity_is_the_uuid():
    endpoint = Endpoint(host="192.168.1.50", port=7345)
    moved = Endpoint(host="192.168.1.51", port=7345)
    a = DeviceDescriptor(identifier="uuid:abc-123", endpoint=endpoint)
    b = DeviceDescriptor(identifier="abc-123", endpoint=moved, friendly_name="TV")
    assert a.identifier == "abc-123"
    assert a == b
    assert len({a, b}) == 1


def test_descriptor_rejects_empty_identifier():
    with pytest.raises(ValidationError):
        DeviceDescriptor(identifier="uuid:", endpoint=Endpoint(host="h", port=1))


@pytest.mark.parametrize(
    ("model", "kind"),
    [
        ("SB3651-H6", DeviceKind.SPEAKER),
        ("SP50-D5", DeviceKind.SPEAKER),
        ("M55Q7-H1", DeviceKind.TV),
        ("", DeviceKind.UNKNOWN),
    ],
)
def test_kind_from_model_name(model: str, kind: DeviceKind):
    assert DeviceKind.from_model_name(model) is kind


def test_settings_path_parse_and_url():
    path = SettingsPath.parse("/picture/color_calibration/")
    assert path.segments == ("picture", "color_calibration")
    assert str(path.child("tint")) == "picture/color_calibration/tint"
    assert str(path.parent) == "picture"
    assert path.url() == (
        "/menu_native/dynamic/tv_settings/picture/color_calibration"
    )
    assert path.url("audio_settings", static=True) == (
        "/menu_native/static/audio_settings/picture/color_calibration"
    )
    assert SettingsPath.parse("").url() == "/menu_native/dynamic/tv_settings"
    assert SettingsPath.parse(["a", "b"]) == SettingsPath(segments=("a", "b"))


def test_settings_path_rejects_bad_segments():
    with pytest.raises(ValidationError):
        SettingsPath(segments=("a/b",))


@pytest.mark.parametrize(
    ("item", "object_type", "kind", "value"),
    [
        ({"TYPE": "T_MENU_V1"}, ObjectType.MENU, ValueKind.NONE, None),
        ({"TYPE": "T_VALUE_ABS_V1", "VALUE": "42"}, ObjectType.SLIDER, ValueKind.INTEGER, 42),
        ({"TYPE": "T_LIST_V1", "VALUE": "Vivid"}, ObjectType.LIST, ValueKind.ENUM, "Vivid"),
        ({"TYPE": "T_VALUE_V1", "VALUE": "false"}, ObjectType.VALUE, ValueKind.BOOLEAN, False),
        ({"TYPE": "T_VALUE_V1", "VALUE": 3.0}, ObjectType.VALUE, ValueKind.INTEGER, 3),
        ({"TYPE": "T_VALUE_V1", "VALUE": "Den"}, ObjectType.VALUE, ValueKind.STRING, "Den"),
        ({"TYPE": "T_STRING_V1", "VALUE": {"NAME": "x"}}, ObjectType.OTHER, ValueKind.STRING, "x"),
    ],
)
def test_node_value_decoding(item, object_type, kind, value):
    node = SettingsNode.from_item(SettingsPath(), {"CNAME": "n", **item})
    assert node.object_type is object_type
    assert node.kind is kind
    assert node.value == value


def test_node_flags_and_defaults():
    node = SettingsNode.from_item(
        SettingsPath.parse("system"),
        {"CNAME": "serial", "TYPE": "T_VALUE_V1", "VALUE": "X", "READONLY": "TRUE"},
    )
    assert node.name == "serial"
    assert node.readonly is True
    assert node.hidden is False
    assert node.hashval is None
    assert not node.writable


def test_node_from_item_requires_cname():
    with pytest.raises(KeyError):
        SettingsNode.from_item(SettingsPath(), {"TYPE": "T_VALUE_V1"})


def _slider(**constraints) -> SettingsNode:
    node = SettingsNode.from_item(
        SettingsPath.parse("picture"),
        {"CNAME": "sharpness", "TYPE": "T_VALUE_ABS_V1", "VALUE": 10},
    )
    return node.with_constraints({"MINIMUM": 0, "MAXIMUM": 20, **constraints})


def test_slider_validation():
    node = _slider(INCREMENT=2)
    assert node.validate_value(12) == 12
    for bad in (-2, 22, 11, True, "12"):
        with pytest.raises(InvalidValue):
            node.validate_value(bad)


def test_enum_validation_uses_elements():
    node = SettingsNode.from_item(
        SettingsPath.parse("picture"),
        {"CNAME": "mode", "TYPE": "T_LIST_V1", "VALUE": "Standard"},
    )
    assert node.validate_value("anything") == "anything"

    constrained = node.with_constraints({"ELEMENTS": ["Standard", "Vivid"]})
    assert constrained.elements == ("Standard", "Vivid")
    assert constrained.validate_value("Vivid") == "Vivid"
    with pytest.raises(InvalidValue):
        constrained.validate_value("Cinema")
    with pytest.raises(InvalidValue):
        constrained.validate_value(1)


def test_menu_is_not_writable():
    node = SettingsNode.from_item(SettingsPath(), {"CNAME": "audio", "TYPE": "T_MENU_V1"})
    with pytest.raises(InvalidValue):
        node.validate_value("x")


def test_key_event():
    assert key_event(Key.VOLUME_UP) == {"CODESET": 5, "CODE": 1, "ACTION": "KEYPRESS"}
    assert key_event((4, 8), KeyAction.UP) == {"CODESET": 4, "CODE": 8, "ACTION": "KEYUP"}
    assert Key.parse(" power-on ") is Key.POWER_ON
    with pytest.raises(KeyError):
        Key.parse("nope")

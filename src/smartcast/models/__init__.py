"""Data models for smartcast."""

from smartcast.models.device import DeviceDescriptor, DeviceKind, Endpoint, ScanResult
from smartcast.models.pairing import (
    AuthState,
    Paired,
    Pairing,
    PairingChallenge,
    Unpaired,
)
from smartcast.models.remote import Key, KeyAction, KeyCode, key_event
from smartcast.models.settings import (
    ObjectType,
    SettingsNode,
    SettingsPath,
    SettingValue,
    SliderInfo,
    ValueKind,
)
from smartcast.models.state import DeviceInfo, DeviceState, InputSource

__all__ = [
    "AuthState",
    "DeviceDescriptor",
    "DeviceInfo",
    "DeviceKind",
    "DeviceState",
    "Endpoint",
    "InputSource",
    "Key",
    "KeyAction",
    "KeyCode",
    "ObjectType",
    "Paired",
    "Pairing",
    "PairingChallenge",
    "ScanResult",
    "SettingValue",
    "SettingsNode",
    "SettingsPath",
    "SliderInfo",
    "Unpaired",
    "ValueKind",
    "key_event",
]

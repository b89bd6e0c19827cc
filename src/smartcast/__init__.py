"""smartcast - discover, pair with and control SmartCast displays and speakers."""

from __future__ import annotations

from importlib.metadata import version

from .config import Settings, get_settings
from .core import (
    CommandDispatcher,
    DeviceSession,
    DiscoveryScanner,
    build_http_client,
    scan_devices,
)
from .exceptions import (
    DeviceError,
    DeviceNotFound,
    DiscoveryError,
    InvalidValue,
    NotAuthenticated,
    PairAlreadyInProgress,
    PairRejected,
    ProtocolError,
    SmartcastError,
    TransportError,
)
from .models import (
    DeviceDescriptor,
    DeviceInfo,
    DeviceState,
    Endpoint,
    Key,
    KeyAction,
    SettingsNode,
    SettingsPath,
)

__all__ = [
    "CommandDispatcher",
    "DeviceDescriptor",
    "DeviceError",
    "DeviceInfo",
    "DeviceNotFound",
    "DeviceSession",
    "DeviceState",
    "DiscoveryError",
    "DiscoveryScanner",
    "Endpoint",
    "InvalidValue",
    "Key",
    "KeyAction",
    "NotAuthenticated",
    "PairAlreadyInProgress",
    "PairRejected",
    "ProtocolError",
    "Settings",
    "SettingsNode",
    "SettingsPath",
    "SmartcastError",
    "TransportError",
    "__version__",
    "build_http_client",
    "get_settings",
    "scan_devices",
]

__version__ = version("smartcast")

from __future__ import annotations

from .discovery import DiscoveryScanner, scan_devices
from .dispatcher import CommandDispatcher, CommandRequest, interpret_response
from .session import DeviceSession
from .transport import build_http_client

__all__ = [
    "CommandDispatcher",
    "CommandRequest",
    "DeviceSession",
    "DiscoveryScanner",
    "build_http_client",
    "interpret_response",
    "scan_devices",
]

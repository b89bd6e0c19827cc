"""Mock SmartCast device for development and testing.

``MockSmartCastDevice`` answers the control API in memory through
``httpx.MockTransport`` and records every request it sees.
``MockSsdpResponder`` answers discovery queries on a loopback UDP port.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from smartcast.constants import (
    AUTH_HEADER,
    CURRENT_INPUT,
    DEVICE_INFO,
    INPUT_LIST,
    KEY_COMMAND,
    PAIRING_CANCEL,
    PAIRING_FINISH,
    PAIRING_START,
    POWER_STATE,
    SETTINGS_DYNAMIC_BASE,
    SETTINGS_STATIC_BASE,
    SSDP_SEARCH_TARGET,
)
from smartcast.core.transport import build_http_client
from smartcast.models import Endpoint, Key

logger = logging.getLogger(__name__)

DESCRIPTION_PATH = "/ssdp/device-desc.xml"

DEFAULT_SETTINGS: dict[str, list[dict[str, Any]]] = {
    "": [
        {"CNAME": "picture", "TYPE": "T_MENU_V1", "NAME": "Picture", "HASHVAL": 100},
        {"CNAME": "audio", "TYPE": "T_MENU_V1", "NAME": "Audio", "HASHVAL": 200},
        {"CNAME": "system", "TYPE": "T_MENU_V1", "NAME": "System", "HASHVAL": 300},
    ],
    "picture": [
        {
            "CNAME": "brightness",
            "TYPE": "T_VALUE_ABS_V1",
            "NAME": "Brightness",
            "VALUE": 50,
            "HASHVAL": 101,
        },
        {
            "CNAME": "picture_mode",
            "TYPE": "T_LIST_V1",
            "NAME": "Picture Mode",
            "VALUE": "Standard",
            "HASHVAL": 102,
        },
    ],
    "audio": [
        {
            "CNAME": "volume",
            "TYPE": "T_VALUE_ABS_V1",
            "NAME": "Volume",
            "VALUE": 11,
            "HASHVAL": 201,
        },
        {
            "CNAME": "tv_speakers",
            "TYPE": "T_VALUE_V1",
            "NAME": "TV Speakers",
            "VALUE": "TRUE",
            "HASHVAL": 202,
        },
    ],
    "system": [
        {
            "CNAME": "tv_name",
            "TYPE": "T_VALUE_V1",
            "NAME": "TV Name",
            "VALUE": "Living Room",
            "HASHVAL": 301,
        },
        {
            "CNAME": "serial",
            "TYPE": "T_VALUE_V1",
            "NAME": "Serial Number",
            "VALUE": "LWZ2ABC",
            "READONLY": "TRUE",
            "HASHVAL": 302,
        },
    ],
}

DEFAULT_CONSTRAINTS: dict[str, dict[str, Any]] = {
    "picture/brightness": {
        "CNAME": "brightness",
        "TYPE": "T_VALUE_ABS_V1",
        "MINIMUM": 0,
        "MAXIMUM": 100,
        "INCREMENT": 1,
        "CENTER": 50,
    },
    "picture/picture_mode": {
        "CNAME": "picture_mode",
        "TYPE": "T_LIST_V1",
        "ELEMENTS": ["Standard", "Vivid", "Calibrated", "Game"],
    },
    "audio/volume": {
        "CNAME": "volume",
        "TYPE": "T_VALUE_ABS_V1",
        "MINIMUM": 0,
        "MAXIMUM": 100,
        "INCREMENT": 1,
    },
}

DEFAULT_INPUTS: dict[str, str] = {
    "cast": "CAST",
    "hdmi1": "HDMI-1",
    "hdmi2": "HDMI-2",
    "comp": "COMP",
}


@dataclass
class RecordedRequest:
    method: str
    path: str
    token: str | None
    body: dict[str, Any] | None


def _status(result: str = "SUCCESS", detail: str = "Success") -> dict[str, Any]:
    return {"STATUS": {"RESULT": result, "DETAIL": detail}}


def _ok(**extra: Any) -> httpx.Response:
    return httpx.Response(200, json={**_status(), **extra})


def _fail(result: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=_status(result.upper(), result.lower()))


@dataclass
class MockSmartCastDevice:
    """In-memory SmartCast device with a small settings tree."""

    identifier: str = "0b7ea8ee-1d24-4f6b-9a3c-7ad2d2c8f001"
    name: str = "Living Room"
    model: str = "M55Q7-H1"
    manufacturer: str = "Vizio"
    host: str = "192.168.1.50"
    port: int = 7345

    pin: str = "1234"
    token: str = "Zmkr8cfbo1"
    process_id: int = 31337
    challenge_type: int = 1

    power_on: bool = True
    current_input: str = "hdmi1"
    inputs: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_INPUTS))
    settings: dict[str, list[dict[str, Any]]] = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_SETTINGS)
    )
    constraints: dict[str, dict[str, Any]] = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_CONSTRAINTS)
    )

    # Path -> device result code or exception raised by the transport.
    faults: dict[str, str | Exception] = field(default_factory=dict)
    # Answer auth failures with this HTTP status instead of a STATUS code.
    auth_failure_status: int | None = None

    requests: list[RecordedRequest] = field(default_factory=list, repr=False)
    keys: list[tuple[int, int, str]] = field(default_factory=list, repr=False)
    _pairing_open: bool = field(default=False, repr=False)
    _input_hashval: int = field(default=500, repr=False)

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint(host=self.host, port=self.port)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> httpx.AsyncClient:
        """HTTPS client wired to this device."""
        return build_http_client(self.endpoint, transport=self.transport())

    def request_count(self, path: str | None = None) -> int:
        if path is None:
            return len(self.requests)
        return sum(1 for request in self.requests if request.path == path)

    def description_xml(self) -> str:
        return (
            '<?xml version="1.0"?>'
            '<root xmlns="urn:schemas-upnp-org:device-1-0">'
            "<specVersion><major>1</major><minor>0</minor></specVersion>"
            "<device>"
            "<deviceType>urn:dial-multiscreen-org:device:dial:1</deviceType>"
            f"<friendlyName>{self.name}</friendlyName>"
            f"<manufacturer>{self.manufacturer}</manufacturer>"
            f"<modelName>{self.model}</modelName>"
            f"<UDN>uuid:{self.identifier}</UDN>"
            "</device>"
            "</root>"
        )

    def ssdp_reply(self, location_host: str = "127.0.0.1") -> bytes:
        location = f"http://{location_host}:8008/{self.identifier}{DESCRIPTION_PATH}"
        lines = [
            "HTTP/1.1 200 OK",
            "CACHE-CONTROL: max-age=1800",
            "EXT:",
            f"LOCATION: {location}",
            "SERVER: Linux/3.10.19-32 UPnP/1.0 Vizio-SmartCast/1.0",
            f"ST: {SSDP_SEARCH_TARGET}",
            f"USN: uuid:{self.identifier}::{SSDP_SEARCH_TARGET}",
            "BOOTID.UPNP.ORG: 7339",
            "",
            "",
        ]
        return "\r\n".join(lines).encode()

    def setting(self, path: str) -> dict[str, Any]:
        parent, _, cname = path.rpartition("/")
        for item in self.settings.get(parent, []):
            if item["CNAME"] == cname:
                return item
        raise KeyError(path)

    # ------------------------------------------------------------------ #
    # Request handling
    # ------------------------------------------------------------------ #

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        token = request.headers.get(AUTH_HEADER)
        self.requests.append(RecordedRequest(request.method, path, token, body))
        logger.debug("Mock device got %s %s", request.method, path)

        fault = self.faults.get(path)
        if isinstance(fault, Exception):
            raise fault
        if fault is not None:
            return _fail(fault)

        if path.endswith(DESCRIPTION_PATH):
            return httpx.Response(200, text=self.description_xml())
        if path == PAIRING_START:
            return self._pairing_start(body or {})
        if path == PAIRING_FINISH:
            return self._pairing_finish(body or {})
        if path == PAIRING_CANCEL:
            self._pairing_open = False
            return _ok(ITEM={})
        if path == POWER_STATE:
            return _ok(ITEMS=[{"CNAME": "power_mode", "VALUE": int(self.power_on)}])
        if path == DEVICE_INFO:
            return _ok(ITEMS=[{"CNAME": "deviceinfo", "VALUE": self._device_info()}])

        if token != self.token:
            if self.auth_failure_status is not None:
                return httpx.Response(self.auth_failure_status)
            return _fail("requires_pairing")

        if path == KEY_COMMAND and request.method == "PUT":
            return self._key_command(body or {})
        if path == CURRENT_INPUT:
            return self._current_input(request.method, body or {})
        if path == INPUT_LIST:
            return _ok(ITEMS=[self._input_item(cname) for cname in self.inputs])

        dynamic = f"{SETTINGS_DYNAMIC_BASE}/tv_settings"
        static = f"{SETTINGS_STATIC_BASE}/tv_settings"
        if path == dynamic or path.startswith(dynamic + "/"):
            sub = path[len(dynamic) :].strip("/")
            if request.method == "PUT":
                return self._write_setting(sub, body or {})
            return self._read_settings(sub)
        if path.startswith(static + "/"):
            sub = path[len(static) :].strip("/")
            if sub not in self.constraints:
                return _fail("uri_not_found")
            return _ok(ITEMS=[self.constraints[sub]])

        return _fail("uri_not_found", 404)

    def _device_info(self) -> dict[str, Any]:
        return {
            "CAST_NAME": self.name,
            "MODEL_NAME": self.model,
            "SETTINGS_ROOT": "tv_settings",
            "INPUTS": list(self.inputs.values()),
            "SYSTEM_INFO": {
                "SERIAL_NUMBER": "LWZ2ABC",
                "VERSION": "4.0.14.1-2",
                "CHIPSET": 5,
            },
        }

    def _pairing_start(self, body: dict[str, Any]) -> httpx.Response:
        if self._pairing_open:
            return _fail("blocked")
        if not body.get("DEVICE_NAME") or not body.get("DEVICE_ID"):
            return _fail("invalid_parameter")
        self._pairing_open = True
        return _ok(
            ITEM={
                "PAIRING_REQ_TOKEN": self.process_id,
                "CHALLENGE_TYPE": self.challenge_type,
            }
        )

    def _pairing_finish(self, body: dict[str, Any]) -> httpx.Response:
        if not self._pairing_open:
            return _fail("invalid_parameter")
        self._pairing_open = False
        if body.get("PAIRING_REQ_TOKEN") != self.process_id:
            return _fail("invalid_parameter")
        if body.get("CHALLENGE_TYPE") != self.challenge_type:
            return _fail("challenge_incorrect")
        if body.get("RESPONSE_VALUE") != self.pin:
            return _fail("pairing_denied")
        return _ok(ITEM={"AUTH_TOKEN": self.token})

    def _key_command(self, body: dict[str, Any]) -> httpx.Response:
        for event in body.get("KEYLIST", []):
            codeset, code = int(event["CODESET"]), int(event["CODE"])
            self.keys.append((codeset, code, str(event["ACTION"])))
            if (codeset, code) == Key.POWER_ON.value:
                self.power_on = True
            elif (codeset, code) == Key.POWER_OFF.value:
                self.power_on = False
            elif (codeset, code) == Key.POWER_TOGGLE.value:
                self.power_on = not self.power_on
        return _ok()

    def _input_item(self, cname: str) -> dict[str, Any]:
        return {
            "CNAME": cname,
            "NAME": self.inputs[cname],
            "TYPE": "T_DEVICE_V1",
            "VALUE": {"NAME": self.inputs[cname].title(), "METADATA": ""},
            "HASHVAL": 400 + list(self.inputs).index(cname),
        }

    def _current_input(self, method: str, body: dict[str, Any]) -> httpx.Response:
        if method == "PUT":
            if body.get("HASHVAL") != self._input_hashval:
                return _fail("failure")
            wanted = body.get("VALUE")
            for cname, name in self.inputs.items():
                if wanted == name:
                    self.current_input = cname
                    self._input_hashval += 1
                    return _ok()
            return _fail("value_out_of_range")
        return _ok(
            ITEMS=[
                {
                    "CNAME": "current_input",
                    "NAME": "Current Input",
                    "TYPE": "T_STRING_V1",
                    "VALUE": self.inputs[self.current_input],
                    "HASHVAL": self._input_hashval,
                }
            ]
        )

    def _read_settings(self, path: str) -> httpx.Response:
        if path not in self.settings:
            return _fail("uri_not_found")
        return _ok(ITEMS=copy.deepcopy(self.settings[path]))

    def _write_setting(self, path: str, body: dict[str, Any]) -> httpx.Response:
        try:
            item = self.setting(path)
        except KeyError:
            return _fail("uri_not_found")
        if body.get("REQUEST") != "MODIFY" or "VALUE" not in body:
            return _fail("invalid_parameter")
        if str(item.get("READONLY", "FALSE")).upper() == "TRUE":
            return _fail("failure")
        if "HASHVAL" in body and body["HASHVAL"] != item.get("HASHVAL"):
            return _fail("failure")
        value = body["VALUE"]
        if isinstance(item.get("VALUE"), str) and isinstance(value, bool):
            value = "TRUE" if value else "FALSE"
        item["VALUE"] = value
        item["HASHVAL"] = int(item.get("HASHVAL", 0)) + 1000
        return _ok()


class _SearchResponder(asyncio.DatagramProtocol):
    def __init__(self, responder: MockSsdpResponder) -> None:
        self._responder = responder
        self._transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        if not data.startswith(b"M-SEARCH") or self._transport is None:
            return
        self._responder.queries.append(data)
        for reply in self._responder.replies():
            self._transport.sendto(reply, addr)


@dataclass
class MockSsdpResponder:
    """Answers M-SEARCH queries on a loopback port with canned replies."""

    devices: list[MockSmartCastDevice] = field(default_factory=list)
    malformed: list[bytes] = field(default_factory=list)
    repeats: int = 1

    queries: list[bytes] = field(default_factory=list, repr=False)
    _transport: asyncio.DatagramTransport | None = field(default=None, repr=False)

    def replies(self) -> list[bytes]:
        good = [device.ssdp_reply() for device in self.devices]
        return good * self.repeats + list(self.malformed)

    def description_transport(self) -> httpx.MockTransport:
        """Serves each device's description at the LOCATION it advertises."""
        by_id = {device.identifier: device for device in self.devices}

        def handler(request: httpx.Request) -> httpx.Response:
            identifier = request.url.path.strip("/").split("/", 1)[0]
            device = by_id.get(identifier)
            if device is None:
                return httpx.Response(404)
            return httpx.Response(200, text=device.description_xml())

        return httpx.MockTransport(handler)

    async def start(self, host: str = "127.0.0.1") -> int:
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            lambda: _SearchResponder(self), local_addr=(host, 0)
        )
        self._transport = transport
        port: int = transport.get_extra_info("sockname")[1]
        logger.info("Mock SSDP responder listening on %s:%d", host, port)
        return port

    async def stop(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None

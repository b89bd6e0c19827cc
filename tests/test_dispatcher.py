from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from smartcast.core import CommandDispatcher, CommandRequest, build_http_client
from smartcast.core.dispatcher import interpret_response
from smartcast.exceptions import DeviceError, ProtocolError, TransportError
from smartcast.models import Endpoint

ENDPOINT = Endpoint(host="192.168.1.50", port=7345)


def _dispatcher(handler) -> CommandDispatcher:
    client = build_http_client(ENDPOINT, transport=httpx.MockTransport(handler))
    return CommandDispatcher(client)


def test_auth_header_only_with_token():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"STATUS": {"RESULT": "SUCCESS"}})

    dispatcher = _dispatcher(handler)
    asyncio.run(dispatcher.send("get", "/state/device/power_mode"))
    asyncio.run(dispatcher.send("PUT", "/key_command/", {"KEYLIST": []}, token="abc"))

    assert "AUTH" not in seen[0].headers
    assert seen[0].method == "GET"
    assert seen[1].headers["AUTH"] == "abc"
    assert seen[1].url == "https://192.168.1.50:7345/key_command/"
    assert json.loads(seen[1].content) == {"KEYLIST": []}


def test_device_status_code_maps_to_device_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"STATUS": {"RESULT": "URI_NOT_FOUND", "DETAIL": "uri"}}
        )

    with pytest.raises(DeviceError) as excinfo:
        asyncio.run(_dispatcher(handler).send("GET", "/nope"))

    assert excinfo.value.code == "uri_not_found"
    assert excinfo.value.message == "URI not found"
    assert not excinfo.value.is_auth_failure


def test_unknown_code_keeps_device_detail():
    with pytest.raises(DeviceError) as excinfo:
        interpret_response(
            200, b'{"STATUS": {"RESULT": "NEW_THING", "DETAIL": "Brand new"}}'
        )
    assert excinfo.value.code == "new_thing"
    assert str(excinfo.value) == "Brand new (new_thing)"


def test_http_error_status_without_device_code():
    with pytest.raises(DeviceError) as excinfo:
        interpret_response(403, b"")
    assert excinfo.value.code == "http_403"
    assert excinfo.value.is_auth_failure


def test_http_error_status_prefers_device_code():
    with pytest.raises(DeviceError) as excinfo:
        interpret_response(
            400, b'{"STATUS": {"RESULT": "REQUIRES_PAIRING", "DETAIL": ""}}'
        )
    assert excinfo.value.code == "requires_pairing"
    assert excinfo.value.is_auth_failure


@pytest.mark.parametrize(
    "content",
    [b"<html>not json</html>", b"[1, 2]", b'{"ITEMS": []}', b""],
)
def test_bad_shapes_are_protocol_errors(content: bytes):
    with pytest.raises(ProtocolError):
        interpret_response(200, content)


def test_success_returns_payload():
    payload = interpret_response(
        200, b'{"STATUS": {"RESULT": "success"}, "ITEMS": [{"VALUE": 1}]}'
    )
    assert payload["ITEMS"] == [{"VALUE": 1}]


def test_connect_error_maps_to_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(_dispatcher(handler).send("GET", "/state/device/power_mode"))
    assert excinfo.value.cancelled is False


def test_caller_timeout_is_cancelled_transport_error():
    class SlowTransport(httpx.AsyncBaseTransport):
        async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json={"STATUS": {"RESULT": "SUCCESS"}})

    client = build_http_client(ENDPOINT, transport=SlowTransport())
    dispatcher = CommandDispatcher(client)

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(dispatcher.send("GET", "/state/device/power_mode", timeout=0.05))
    assert excinfo.value.cancelled is True


def test_default_timeout_applies_when_caller_gives_none():
    class SlowTransport(httpx.AsyncBaseTransport):
        async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json={"STATUS": {"RESULT": "SUCCESS"}})

    client = build_http_client(ENDPOINT, transport=SlowTransport())
    dispatcher = CommandDispatcher(client, timeout=0.05)

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(dispatcher.dispatch(CommandRequest("GET", "/x")))
    assert excinfo.value.cancelled is True


def test_request_repr_hides_token():
    request = CommandRequest("GET", "/x", token="secret-token")
    assert "secret-token" not in repr(request)

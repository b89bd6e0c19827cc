from __future__ import annotations

import asyncio

import httpx
import pytest

from smartcast.constants import (
    CURRENT_INPUT,
    KEY_COMMAND,
    PAIRING_CANCEL,
    PAIRING_FINISH,
    PAIRING_START,
)
from smartcast.core import DeviceSession, build_http_client
from smartcast.exceptions import (
    DeviceError,
    DeviceNotFound,
    InvalidValue,
    NotAuthenticated,
    PairAlreadyInProgress,
    PairRejected,
    ProtocolError,
    TransportError,
)
from smartcast.mock_device import MockSmartCastDevice
from smartcast.models import (
    DeviceDescriptor,
    DeviceKind,
    Endpoint,
    Key,
    KeyAction,
    Paired,
    Pairing,
    SettingsNode,
    SettingsPath,
    Unpaired,
)


def _session(device: MockSmartCastDevice, **kwargs) -> DeviceSession:
    return DeviceSession(device.endpoint, http_client=device.client(), **kwargs)


def _paired(device: MockSmartCastDevice, **kwargs) -> DeviceSession:
    return _session(device, token=device.token, **kwargs)


def _brightness_node() -> SettingsNode:
    return SettingsNode.from_item(
        SettingsPath.parse("picture"),
        {"CNAME": "brightness", "TYPE": "T_VALUE_ABS_V1", "VALUE": 50, "HASHVAL": 101},
    )


# --------------------------------------------------------------------------- #
# Pairing
# --------------------------------------------------------------------------- #


def test_pairing_happy_path(device: MockSmartCastDevice):
    session = _session(device)

    async def scenario() -> str:
        challenge = await session.begin_pair()
        assert challenge.process_id == device.process_id
        assert challenge.needs_pin is True
        assert isinstance(session.state, Pairing)
        assert session.state.process_id == device.process_id
        return await session.submit_pin("1234")

    token = asyncio.run(scenario())

    assert token == device.token
    assert session.state == Paired(device.token)
    assert session.is_paired
    start, finish = device.requests
    assert start.path == PAIRING_START
    assert start.body == {"DEVICE_NAME": "smartcast", "DEVICE_ID": "smartcast-python"}
    assert finish.path == PAIRING_FINISH
    assert finish.body == {
        "DEVICE_ID": "smartcast-python",
        "CHALLENGE_TYPE": 1,
        "RESPONSE_VALUE": "1234",
        "PAIRING_REQ_TOKEN": device.process_id,
    }


def test_pairing_uses_given_client_name(device: MockSmartCastDevice):
    session = _session(device)
    asyncio.run(session.begin_pair("Kitchen tablet", "tablet-1"))
    assert device.requests[0].body == {
        "DEVICE_NAME": "Kitchen tablet",
        "DEVICE_ID": "tablet-1",
    }
    assert session.state.client_id == "tablet-1"


def test_wrong_pin_rejects_and_resets(device: MockSmartCastDevice):
    session = _session(device)

    async def scenario() -> None:
        await session.begin_pair()
        with pytest.raises(PairRejected) as excinfo:
            await session.submit_pin("9999")
        assert excinfo.value.code == "pairing_denied"

    asyncio.run(scenario())
    assert session.state == Unpaired()

    sent = device.request_count()
    with pytest.raises(NotAuthenticated):
        asyncio.run(session.submit_pin("1234"))
    assert device.request_count() == sent


def test_begin_pair_twice_is_rejected(device: MockSmartCastDevice):
    session = _session(device)

    async def scenario() -> None:
        await session.begin_pair()
        with pytest.raises(PairAlreadyInProgress):
            await session.begin_pair()

    asyncio.run(scenario())
    assert device.request_count(PAIRING_START) == 1
    assert isinstance(session.state, Pairing)


def test_submit_pin_transport_failure_keeps_pairing(device: MockSmartCastDevice):
    session = _session(device)
    device.faults[PAIRING_FINISH] = httpx.ReadTimeout("device went quiet")

    async def scenario() -> None:
        await session.begin_pair()
        with pytest.raises(TransportError) as excinfo:
            await session.submit_pin("1234")
        assert excinfo.value.cancelled is True

    asyncio.run(scenario())
    assert isinstance(session.state, Pairing)


def test_submit_pin_requires_pin_for_tv(device: MockSmartCastDevice):
    session = _session(device)

    async def scenario() -> None:
        await session.begin_pair()
        with pytest.raises(InvalidValue):
            await session.submit_pin()

    asyncio.run(scenario())
    assert isinstance(session.state, Pairing)
    assert device.request_count(PAIRING_FINISH) == 0


def test_submit_pin_rejects_non_string_pin(device: MockSmartCastDevice):
    session = _session(device)

    async def scenario() -> None:
        await session.begin_pair()
        with pytest.raises(InvalidValue):
            await session.submit_pin(1234)  # type: ignore[arg-type]

    asyncio.run(scenario())
    assert isinstance(session.state, Pairing)
    assert device.request_count(PAIRING_FINISH) == 0


def test_speaker_pairs_without_pin():
    device = MockSmartCastDevice(model="SB3651-H6", pin="0000")
    descriptor = DeviceDescriptor(
        identifier=device.identifier,
        endpoint=device.endpoint,
        model=device.model,
        kind=DeviceKind.from_model_name(device.model),
    )
    session = DeviceSession(descriptor, http_client=device.client())

    async def scenario() -> str:
        challenge = await session.begin_pair()
        assert challenge.needs_pin is False
        return await session.submit_pin()

    assert asyncio.run(scenario()) == device.token
    assert device.requests[-1].body["RESPONSE_VALUE"] == "0000"
    assert session.settings_root == "audio_settings"


def test_cancel_pair_notifies_device(device: MockSmartCastDevice):
    session = _session(device)

    async def scenario() -> None:
        await session.begin_pair()
        await session.cancel_pair()

    asyncio.run(scenario())
    assert session.state == Unpaired()
    cancel = device.requests[-1]
    assert cancel.path == PAIRING_CANCEL
    assert cancel.body["RESPONSE_VALUE"] == "1111"
    assert cancel.body["PAIRING_REQ_TOKEN"] == device.process_id


def test_cancel_pair_swallows_network_failure(
    device: MockSmartCastDevice, caplog: pytest.LogCaptureFixture
):
    session = _session(device)
    device.faults[PAIRING_CANCEL] = httpx.ConnectError("unreachable")

    async def scenario() -> None:
        await session.begin_pair()
        await session.cancel_pair()

    with caplog.at_level("WARNING"):
        asyncio.run(scenario())
    assert session.state == Unpaired()
    assert "Ignoring failed pairing cancel" in caplog.text


def test_cancel_pair_outside_pairing_is_noop(device: MockSmartCastDevice):
    session = _paired(device)
    asyncio.run(session.cancel_pair())
    assert device.request_count() == 0
    assert session.is_paired


def test_failed_repair_keeps_old_token(device: MockSmartCastDevice):
    session = _paired(device)
    device.faults[PAIRING_START] = "blocked"

    with pytest.raises(DeviceError) as excinfo:
        asyncio.run(session.begin_pair())

    assert excinfo.value.code == "blocked"
    assert session.token == device.token


def test_restore_and_forget_token(device: MockSmartCastDevice):
    session = _session(device)
    session.restore_token("abc")
    assert session.token == "abc"
    session.forget()
    assert session.state == Unpaired()
    with pytest.raises(InvalidValue):
        session.restore_token("")


def test_paired_repr_hides_token():
    assert "secret" not in repr(Paired("secret"))


# --------------------------------------------------------------------------- #
# Authenticated operations
# --------------------------------------------------------------------------- #


@pytest.mark.parametrize(
    "operation",
    [
        lambda s: s.read_settings("picture"),
        lambda s: s.describe_setting(_brightness_node()),
        lambda s: s.write_setting(_brightness_node(), 60),
        lambda s: s.send_key(Key.VOLUME_UP),
        lambda s: s.power_off(),
        lambda s: s.current_input(),
        lambda s: s.list_inputs(),
        lambda s: s.change_input("HDMI-2"),
    ],
)
def test_unpaired_operations_send_nothing(device: MockSmartCastDevice, operation):
    session = _session(device)
    with pytest.raises(NotAuthenticated):
        asyncio.run(operation(session))
    assert device.request_count() == 0


def test_get_state_works_unpaired(device: MockSmartCastDevice):
    device.power_on = False
    state = asyncio.run(_session(device).get_state())
    assert state.power_on is False
    assert device.requests[0].token is None


def test_power_keys_change_state(device: MockSmartCastDevice):
    session = _paired(device)

    async def scenario() -> bool:
        await session.power_off()
        return (await session.get_state()).power_on

    assert asyncio.run(scenario()) is False
    assert device.keys == [(11, 0, "KEYPRESS")]
    assert device.requests[-1].token == device.token


def test_send_key_by_name_and_tuple(device: MockSmartCastDevice):
    session = _paired(device)

    async def scenario() -> None:
        await session.send_key("volume-up")
        await session.send_key((5, 4), KeyAction.DOWN)

    asyncio.run(scenario())
    assert device.keys == [(5, 1, "KEYPRESS"), (5, 4, "KEYDOWN")]
    assert device.request_count(KEY_COMMAND) == 2


def test_send_unknown_key_name(device: MockSmartCastDevice):
    with pytest.raises(InvalidValue):
        asyncio.run(_paired(device).send_key("LAUNCH_ROCKETS"))
    assert device.request_count() == 0


@pytest.mark.parametrize(
    ("key", "action"),
    [
        (Key.MUTE_TOGGLE, "press"),
        ((5,), KeyAction.PRESS),
        ((5, "four"), KeyAction.PRESS),
    ],
)
def test_send_malformed_key_event(device: MockSmartCastDevice, key, action):
    with pytest.raises(InvalidValue):
        asyncio.run(_paired(device).send_key(key, action))
    assert device.request_count() == 0


def test_read_settings_decodes_nodes(device: MockSmartCastDevice):
    nodes = asyncio.run(_paired(device).read_settings("picture"))

    brightness, mode = nodes
    assert str(brightness.path) == "picture/brightness"
    assert brightness.value == 50
    assert brightness.hashval == 101
    assert mode.value == "Standard"
    assert device.requests[0].path == "/menu_native/dynamic/tv_settings/picture"


def test_read_settings_twice_is_identical(device: MockSmartCastDevice):
    session = _paired(device)

    async def scenario():
        return await session.read_settings("audio"), await session.read_settings(
            "audio"
        )

    first, second = asyncio.run(scenario())
    assert first == second


def test_concurrent_reads_share_token(device: MockSmartCastDevice):
    session = _paired(device)

    async def scenario():
        return await asyncio.gather(
            session.get_state(),
            session.read_settings(""),
            session.read_settings("system"),
        )

    state, root, system = asyncio.run(scenario())
    assert state.power_on is True
    assert [node.cname for node in root] == ["picture", "audio", "system"]
    assert system[1].readonly is True
    assert all(request.token == device.token for request in device.requests)


def test_write_setting_checks_range_before_sending(device: MockSmartCastDevice):
    session = _paired(device)

    async def scenario() -> SettingsNode:
        nodes = await session.read_settings("picture")
        return await session.describe_setting(nodes[0])

    node = asyncio.run(scenario())
    assert node.slider is not None
    assert (node.slider.minimum, node.slider.maximum) == (0, 100)

    sent = device.request_count()
    with pytest.raises(InvalidValue):
        asyncio.run(session.write_setting(node, 150))
    assert device.request_count() == sent

    asyncio.run(session.write_setting(node, 60))
    assert device.request_count() == sent + 1
    write = device.requests[-1]
    assert write.method == "PUT"
    assert write.path == "/menu_native/dynamic/tv_settings/picture/brightness"
    assert write.body == {"REQUEST": "MODIFY", "VALUE": 60, "HASHVAL": 101}
    assert node.value == 50
    assert device.setting("picture/brightness")["VALUE"] == 60


def test_write_setting_rejects_value_outside_elements(device: MockSmartCastDevice):
    session = _paired(device)

    async def scenario() -> SettingsNode:
        nodes = await session.read_settings("picture")
        return await session.describe_setting(nodes[1])

    node = asyncio.run(scenario())
    sent = device.request_count()

    with pytest.raises(InvalidValue):
        asyncio.run(session.write_setting(node, "Cinema"))
    assert device.request_count() == sent

    asyncio.run(session.write_setting(node, "Vivid"))
    assert device.setting("picture/picture_mode")["VALUE"] == "Vivid"


def test_write_boolean_setting(device: MockSmartCastDevice):
    session = _paired(device)

    async def scenario() -> None:
        nodes = await session.read_settings("audio")
        speakers = nodes[1]
        with pytest.raises(InvalidValue):
            await session.write_setting(speakers, "off")
        await session.write_setting(speakers, False)

    asyncio.run(scenario())
    assert device.setting("audio/tv_speakers")["VALUE"] == "FALSE"


def test_write_readonly_setting(device: MockSmartCastDevice):
    session = _paired(device)

    async def scenario() -> None:
        serial = (await session.read_settings("system"))[1]
        await session.write_setting(serial, "X")

    with pytest.raises(InvalidValue):
        asyncio.run(scenario())
    assert device.request_count() == 1


def test_write_setting_unpaired_checks_token_first(device: MockSmartCastDevice):
    with pytest.raises(NotAuthenticated):
        asyncio.run(_session(device).write_setting(_brightness_node(), 500))


def test_auth_failure_resets_session(device: MockSmartCastDevice):
    session = _session(device, token="revoked")

    with pytest.raises(DeviceError) as excinfo:
        asyncio.run(session.read_settings("picture"))

    assert excinfo.value.code == "requires_pairing"
    assert session.state == Unpaired()


def test_http_unauthorized_resets_session(device: MockSmartCastDevice):
    device.auth_failure_status = 401
    session = _session(device, token="revoked")

    with pytest.raises(DeviceError) as excinfo:
        asyncio.run(session.send_key(Key.MUTE_TOGGLE))

    assert excinfo.value.code == "http_401"
    assert session.state == Unpaired()


def test_other_device_errors_keep_token(device: MockSmartCastDevice):
    session = _paired(device)

    with pytest.raises(DeviceError) as excinfo:
        asyncio.run(session.read_settings("no_such_menu"))

    assert excinfo.value.code == "uri_not_found"
    assert session.is_paired


def test_device_info(device: MockSmartCastDevice):
    info = asyncio.run(_session(device).device_info())
    assert info.cast_name == "Living Room"
    assert info.model_name == "M55Q7-H1"
    assert info.serial_number == "LWZ2ABC"
    assert "HDMI-1" in info.inputs


def test_device_info_with_garbled_system_info(device: MockSmartCastDevice):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "STATUS": {"RESULT": "SUCCESS"},
                "ITEMS": [{"VALUE": {"SYSTEM_INFO": "oops"}}],
            },
        )

    client = build_http_client(device.endpoint, transport=httpx.MockTransport(handler))
    session = DeviceSession(device.endpoint, http_client=client)

    with pytest.raises(ProtocolError):
        asyncio.run(session.device_info())


def test_inputs(device: MockSmartCastDevice):
    session = _paired(device)

    async def scenario():
        inputs = await session.list_inputs()
        await session.change_input("HDMI-2")
        return inputs, await session.current_input()

    inputs, current = asyncio.run(scenario())
    assert [source.name for source in inputs] == ["CAST", "HDMI-1", "HDMI-2", "COMP"]
    assert current.friendly_name == "HDMI-2"
    assert device.current_input == "hdmi2"
    change = [r for r in device.requests if r.path == CURRENT_INPUT and r.method == "PUT"]
    assert change[0].body == {"REQUEST": "MODIFY", "VALUE": "HDMI-2", "HASHVAL": 500}


# --------------------------------------------------------------------------- #
# Construction
# --------------------------------------------------------------------------- #


def test_from_address_probes_ports(device: MockSmartCastDevice):
    device.port = 9000

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.port != 9000:
            raise httpx.ConnectError("refused", request=request)
        return device.handle(request)

    async def scenario() -> DeviceSession:
        session = await DeviceSession.from_address(
            device.host, transport=httpx.MockTransport(handler)
        )
        await session.get_state()
        await session.aclose()
        return session

    session = asyncio.run(scenario())
    assert session.endpoint == Endpoint(host=device.host, port=9000)


def test_from_address_gives_up(device: MockSmartCastDevice):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(DeviceNotFound):
        asyncio.run(
            DeviceSession.from_address(
                device.host, transport=httpx.MockTransport(handler)
            )
        )


def test_session_closes_owned_client():
    session = DeviceSession(Endpoint(host="192.168.1.60", port=7345))

    async def scenario() -> None:
        async with session:
            pass

    asyncio.run(scenario())
    assert session._owned_client is None


def test_from_identifier_uses_scanner(device: MockSmartCastDevice):
    descriptor = DeviceDescriptor(
        identifier=device.identifier,
        endpoint=device.endpoint,
        model="SB3651-H6",
        kind=DeviceKind.SPEAKER,
    )

    class FakeScanner:
        async def find(self, identifier, timeout=None):
            assert identifier == device.identifier
            return descriptor

    async def scenario() -> DeviceSession:
        async with await DeviceSession.from_identifier(
            device.identifier, scanner=FakeScanner(), token="abc"
        ) as session:
            return session

    session = asyncio.run(scenario())
    assert session.descriptor == descriptor
    assert session.kind is DeviceKind.SPEAKER
    assert session.token == "abc"

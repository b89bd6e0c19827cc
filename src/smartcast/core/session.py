"""Device session: pairing state machine and authenticated operations.

A session is ``Unpaired`` until ``begin_pair``/``submit_pin`` complete, or a
previously stored token is restored. Pairing is interactive (a human reads a
PIN off the screen), so it is two calls with arbitrary time in between:

    async with DeviceSession(descriptor) as session:
        challenge = await session.begin_pair("Living room remote")
        token = await session.submit_pin(input("PIN: "))
        await session.send_key(Key.VOLUME_UP)

Pairing transitions are serialized by a per session lock and only commit
after the device's reply has been fully parsed. Read operations need no lock
and may run concurrently once paired.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from types import TracebackType
from typing import Any

import httpx

from smartcast.config import ClientConfig, ConnectionConfig, Settings
from smartcast.constants import (
    AUDIO_SETTINGS_ROOT,
    CANCEL_PIN,
    CURRENT_INPUT,
    DEVICE_INFO,
    INPUT_LIST,
    KEY_COMMAND,
    PAIR_REJECTION_CODES,
    PAIRING_CANCEL,
    PAIRING_FINISH,
    PAIRING_START,
    POWER_STATE,
    SPEAKER_PIN,
    TV_SETTINGS_ROOT,
)
from smartcast.exceptions import (
    DeviceError,
    DeviceNotFound,
    InvalidValue,
    NotAuthenticated,
    PairAlreadyInProgress,
    PairRejected,
    ProtocolError,
    SmartcastError,
    TransportError,
)
from smartcast.models import (
    AuthState,
    DeviceDescriptor,
    DeviceInfo,
    DeviceKind,
    DeviceState,
    Endpoint,
    InputSource,
    Key,
    KeyAction,
    KeyCode,
    Paired,
    Pairing,
    PairingChallenge,
    SettingsNode,
    SettingsPath,
    SettingValue,
    Unpaired,
    key_event,
)

from .discovery import DiscoveryScanner
from .dispatcher import CommandDispatcher
from .transport import build_http_client

logger = logging.getLogger(__name__)


def _item(payload: dict[str, Any]) -> dict[str, Any]:
    item = payload.get("ITEM")
    if not isinstance(item, dict):
        raise ProtocolError("Response has no ITEM object")
    return item


def _items(payload: dict[str, Any]) -> list[dict[str, Any]]:
    items = payload.get("ITEMS")
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise ProtocolError("Response has no ITEMS list")
    return items


def _first_item(payload: dict[str, Any]) -> dict[str, Any]:
    items = _items(payload)
    if not items:
        raise ProtocolError("Response ITEMS list is empty")
    return items[0]


class DeviceSession:
    """An independently owned connection to one device."""

    def __init__(
        self,
        target: DeviceDescriptor | Endpoint,
        dispatcher: CommandDispatcher | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        client: ClientConfig | None = None,
        connection: ConnectionConfig | None = None,
        token: str | None = None,
        settings_root: str | None = None,
        request_timeout: float | None = None,
    ) -> None:
        if isinstance(target, DeviceDescriptor):
            self.descriptor: DeviceDescriptor | None = target
            self.endpoint = target.endpoint
        else:
            self.descriptor = None
            self.endpoint = target

        self._client_config = client or ClientConfig()
        connection = connection or ConnectionConfig()
        self._owned_client: httpx.AsyncClient | None = None
        if dispatcher is None:
            if http_client is None:
                http_client = build_http_client(self.endpoint, connection.timeout)
                self._owned_client = http_client
            dispatcher = CommandDispatcher(http_client)
        self._dispatcher = dispatcher

        if settings_root is None:
            settings_root = (
                AUDIO_SETTINGS_ROOT
                if self.kind is DeviceKind.SPEAKER
                else TV_SETTINGS_ROOT
            )
        self.settings_root = settings_root
        self.request_timeout = request_timeout

        self._state: AuthState = Paired(token) if token else Unpaired()
        self._pair_lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Construction helpers
    # ------------------------------------------------------------------ #

    @classmethod
    async def from_address(
        cls,
        host: str,
        port: int | None = None,
        *,
        settings: Settings | None = None,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> DeviceSession:
        """Session for a known address; probes the API ports if none is given."""
        settings = settings or Settings()
        timeout = settings.connection.timeout
        ports: Iterable[int] = (
            (port,) if port is not None else settings.connection.port_options
        )

        last_error: SmartcastError | None = None
        for candidate in ports:
            endpoint = Endpoint(host=host, port=candidate)
            http_client = build_http_client(endpoint, timeout, transport=transport)
            try:
                await CommandDispatcher(http_client).send("GET", DEVICE_INFO)
            except DeviceError:
                # A device status reply still proves the API lives here.
                pass
            except (TransportError, ProtocolError) as exc:
                logger.debug("No SmartCast API at %s: %s", endpoint, exc)
                last_error = exc
                await http_client.aclose()
                continue

            logger.info("Found SmartCast API at %s", endpoint)
            session = cls(
                endpoint,
                http_client=http_client,
                client=settings.client,
                connection=settings.connection,
                token=token,
            )
            session._owned_client = http_client
            return session

        tried = ", ".join(str(p) for p in ports)
        raise DeviceNotFound(
            f"No SmartCast API at {host} (ports {tried})",
            None if last_error is None else str(last_error),
        )

    @classmethod
    async def from_identifier(
        cls,
        identifier: str,
        *,
        scanner: DiscoveryScanner | None = None,
        settings: Settings | None = None,
        token: str | None = None,
        timeout: float | None = None,
    ) -> DeviceSession:
        """Resolve a device UUID with a discovery scan and open a session."""
        settings = settings or Settings()
        scanner = scanner or DiscoveryScanner(settings.discovery)
        descriptor = await scanner.find(identifier, timeout=timeout)
        return cls(
            descriptor,
            client=settings.client,
            connection=settings.connection,
            token=token,
        )

    async def aclose(self) -> None:
        if self._owned_client is not None:
            await self._owned_client.aclose()
            self._owned_client = None

    async def __aenter__(self) -> DeviceSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"DeviceSession({self.endpoint}, state={self._state.name})"

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def token(self) -> str | None:
        state = self._state
        return state.token if isinstance(state, Paired) else None

    @property
    def is_paired(self) -> bool:
        return isinstance(self._state, Paired)

    @property
    def kind(self) -> DeviceKind:
        if self.descriptor is None:
            return DeviceKind.UNKNOWN
        return self.descriptor.kind

    def restore_token(self, token: str) -> None:
        """Use a token obtained by an earlier pairing."""
        if not token:
            raise InvalidValue("Token must not be empty")
        self._state = Paired(token)

    def forget(self) -> None:
        self._state = Unpaired()

    def _reset(self, reason: str) -> None:
        if not isinstance(self._state, Unpaired):
            logger.info("Session %s back to unpaired: %s", self.endpoint, reason)
        self._state = Unpaired()

    # ------------------------------------------------------------------ #
    # Pairing
    # ------------------------------------------------------------------ #

    async def begin_pair(
        self, client_name: str | None = None, client_id: str | None = None
    ) -> PairingChallenge:
        """Ask the device to start pairing; a TV then shows a PIN."""
        async with self._pair_lock:
            if isinstance(self._state, Pairing):
                raise PairAlreadyInProgress(
                    "Pairing already in progress",
                    "call submit_pin or cancel_pair first",
                )

            name = client_name or self._client_config.name
            device_id = client_id or self._client_config.id
            try:
                payload = await self._dispatcher.send(
                    "PUT",
                    PAIRING_START,
                    {"DEVICE_NAME": name, "DEVICE_ID": device_id},
                    timeout=self.request_timeout,
                )
                item = _item(payload)
                challenge = PairingChallenge(
                    process_id=int(item["PAIRING_REQ_TOKEN"]),
                    challenge_type=int(item["CHALLENGE_TYPE"]),
                    needs_pin=self.kind is not DeviceKind.SPEAKER,
                )
            except (KeyError, TypeError, ValueError) as exc:
                # A failed start leaves any previous token in place.
                raise ProtocolError("Unexpected start-pairing reply", str(exc)) from exc

            self._state = Pairing(challenge=challenge, client_id=device_id)
            logger.info(
                "Pairing started with %s (process %d)",
                self.endpoint,
                challenge.process_id,
            )
            return challenge

    async def submit_pin(self, pin: str | None = None) -> str:
        """Finish pairing with the PIN shown by the device; returns the token."""
        async with self._pair_lock:
            state = self._state
            if not isinstance(state, Pairing):
                raise NotAuthenticated(
                    "No pairing in progress", "call begin_pair first"
                )
            if pin is None:
                if state.challenge.needs_pin:
                    raise InvalidValue("This device shows a PIN; pass it to submit_pin")
                pin = SPEAKER_PIN
            if not isinstance(pin, str):
                raise InvalidValue(f"PIN must be a string, got {type(pin).__name__}")

            body = {
                "DEVICE_ID": state.client_id,
                "CHALLENGE_TYPE": state.challenge.challenge_type,
                "RESPONSE_VALUE": pin.strip(),
                "PAIRING_REQ_TOKEN": state.process_id,
            }
            try:
                payload = await self._dispatcher.send(
                    "PUT", PAIRING_FINISH, body, timeout=self.request_timeout
                )
                token = _item(payload).get("AUTH_TOKEN")
            except DeviceError as exc:
                self._reset(f"pairing rejected ({exc.code})")
                if exc.code in PAIR_REJECTION_CODES:
                    raise PairRejected(exc.code, exc.message) from exc
                raise
            except ProtocolError:
                self._reset("unreadable finish-pairing reply")
                raise

            if token is None or token == "":
                self._reset("no token in finish-pairing reply")
                raise ProtocolError("Finish-pairing reply has no AUTH_TOKEN")

            self._state = Paired(str(token))
            logger.info("Paired with %s", self.endpoint)
            return str(token)

    async def cancel_pair(self) -> None:
        """Abandon an open pairing process. Never raises for network failures."""
        async with self._pair_lock:
            state = self._state
            if not isinstance(state, Pairing):
                return
            body = {
                "DEVICE_ID": state.client_id,
                "CHALLENGE_TYPE": state.challenge.challenge_type,
                "RESPONSE_VALUE": CANCEL_PIN,
                "PAIRING_REQ_TOKEN": state.process_id,
            }
            try:
                await self._dispatcher.send(
                    "PUT", PAIRING_CANCEL, body, timeout=self.request_timeout
                )
            except SmartcastError as exc:
                logger.warning("Ignoring failed pairing cancel on %s: %s", self.endpoint, exc)
            finally:
                self._reset("pairing cancelled")

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def _require_token(self) -> str:
        state = self._state
        if not isinstance(state, Paired):
            raise NotAuthenticated(
                f"Session with {self.endpoint} is not paired",
                f"state is {state.name}",
            )
        return state.token

    async def _send(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        token: str | None = None,
    ) -> dict[str, Any]:
        try:
            return await self._dispatcher.send(
                method, path, body, token=token, timeout=self.request_timeout
            )
        except DeviceError as exc:
            # Only drop the token this request used; a concurrent re-pair may
            # already have replaced it.
            if exc.is_auth_failure and token is not None and self.token == token:
                self._reset(f"device rejected token ({exc.code})")
            raise

    async def _authenticated(
        self, method: str, path: str, body: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        return await self._send(method, path, body, token=self._require_token())

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    async def get_state(self) -> DeviceState:
        """Power state. Sends the token when paired; some models require it."""
        payload = await self._send("GET", POWER_STATE, token=self.token)
        try:
            power = int(_first_item(payload)["VALUE"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolError("Unexpected power state reply", str(exc)) from exc
        return DeviceState(power_on=power == 1)

    async def device_info(self) -> DeviceInfo:
        payload = await self._send("GET", DEVICE_INFO, token=self.token)
        value = _first_item(payload).get("VALUE")
        if not isinstance(value, dict):
            raise ProtocolError("Unexpected device info reply")
        try:
            return DeviceInfo.from_item_value(value)
        except (TypeError, ValueError) as exc:
            raise ProtocolError("Unexpected device info reply", str(exc)) from exc

    async def read_settings(
        self, path: SettingsPath | str | Iterable[str] = ""
    ) -> list[SettingsNode]:
        """The nodes directly below ``path`` with their current values."""
        settings_path = SettingsPath.parse(path)
        payload = await self._authenticated(
            "GET", settings_path.url(self.settings_root)
        )
        try:
            return [
                SettingsNode.from_item(settings_path, item) for item in _items(payload)
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolError(
                f"Unexpected settings reply for '{settings_path}'", str(exc)
            ) from exc

    async def describe_setting(self, node: SettingsNode) -> SettingsNode:
        """Copy of ``node`` with slider bounds or list elements filled in."""
        payload = await self._authenticated(
            "GET", node.path.url(self.settings_root, static=True)
        )
        try:
            return node.with_constraints(_first_item(payload))
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolError(
                f"Unexpected constraints reply for '{node.path}'", str(exc)
            ) from exc

    async def write_setting(self, node: SettingsNode, value: SettingValue) -> None:
        """Write ``value`` to the node's path after checking it locally."""
        token = self._require_token()
        checked = node.validate_value(value)
        body: dict[str, Any] = {"REQUEST": "MODIFY", "VALUE": checked}
        if node.hashval is not None:
            body["HASHVAL"] = node.hashval
        await self._send("PUT", node.path.url(self.settings_root), body, token=token)
        logger.info("Wrote %r to %s", checked, node.path)

    async def send_key(
        self, key: KeyCode | str, action: KeyAction = KeyAction.PRESS
    ) -> None:
        """Virtual remote key. Success means the device accepted the command."""
        if isinstance(key, str):
            try:
                key = Key.parse(key)
            except KeyError as exc:
                raise InvalidValue(f"Unknown key {key!r}") from exc
        try:
            event = key_event(key, KeyAction(action))
        except (TypeError, ValueError) as exc:
            raise InvalidValue(f"Bad key event {key!r}/{action!r}", str(exc)) from exc
        await self._authenticated("PUT", KEY_COMMAND, {"KEYLIST": [event]})

    async def power_on(self) -> None:
        await self.send_key(Key.POWER_ON)

    async def power_off(self) -> None:
        await self.send_key(Key.POWER_OFF)

    async def current_input(self) -> InputSource:
        payload = await self._authenticated("GET", CURRENT_INPUT)
        try:
            return InputSource.from_item(_first_item(payload))
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolError("Unexpected current input reply", str(exc)) from exc

    async def list_inputs(self) -> list[InputSource]:
        payload = await self._authenticated("GET", INPUT_LIST)
        try:
            return [InputSource.from_item(item) for item in _items(payload)]
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolError("Unexpected input list reply", str(exc)) from exc

    async def change_input(self, name: str) -> None:
        if not name:
            raise InvalidValue("Input name must not be empty")
        current = await self.current_input()
        await self._authenticated(
            "PUT",
            CURRENT_INPUT,
            {"REQUEST": "MODIFY", "VALUE": name, "HASHVAL": current.hashval},
        )

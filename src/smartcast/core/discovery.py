"""SSDP discovery of SmartCast devices.

One ``M-SEARCH`` goes out per scan. Replies are collected until the timeout,
then each responder's UPnP description is fetched to learn its name and model.
A responder that answers with garbage is logged and skipped; it never fails
the scan.
"""

from __future__ import annotations

import asyncio
import logging
import re
import socket
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

import httpx

from smartcast.config import DiscoveryConfig
from smartcast.constants import SSDP_MX
from smartcast.exceptions import DeviceNotFound, DiscoveryError
from smartcast.models import DeviceDescriptor, DeviceKind, Endpoint

logger = logging.getLogger(__name__)

_STATUS_LINE_RE = re.compile(r"^HTTP/1\.[01]\s+200(\s|$)", re.IGNORECASE)
_MAX_DATAGRAM = 65507


def build_search_request(config: DiscoveryConfig) -> bytes:
    lines = [
        "M-SEARCH * HTTP/1.1",
        f"HOST: {config.multicast_address}:{config.multicast_port}",
        'MAN: "ssdp:discover"',
        f"ST: {config.search_target}",
        f"MX: {SSDP_MX}",
        "",
        "",
    ]
    return "\r\n".join(lines).encode("ascii")


@dataclass
class SsdpReply:
    identifier: str
    host: str
    location: str | None
    headers: dict[str, str] = field(default_factory=dict)


def parse_reply(data: bytes, addr: tuple[str, int]) -> SsdpReply | None:
    """Parse one search response; None if it is not a usable reply."""
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Dropping non UTF-8 reply from %s", addr[0])
        return None

    lines = text.replace("\r\n", "\n").split("\n")
    if not lines or not _STATUS_LINE_RE.match(lines[0].strip()):
        logger.debug("Dropping reply from %s: bad status line %r", addr[0], lines[0][:60])
        return None

    headers: dict[str, str] = {}
    for line in lines[1:]:
        if not line.strip():
            continue
        name, sep, value = line.partition(":")
        if not sep or not name.strip():
            logger.debug("Dropping reply from %s: bad header %r", addr[0], line[:60])
            return None
        headers[name.strip().upper()] = value.strip()

    usn = headers.get("USN", "")
    identifier = usn.split("::", 1)[0]
    if identifier.lower().startswith("uuid:"):
        identifier = identifier[len("uuid:") :]
    identifier = identifier.strip()
    if not identifier:
        logger.debug("Dropping reply from %s: no device UUID in USN", addr[0])
        return None

    return SsdpReply(
        identifier=identifier,
        host=addr[0],
        location=headers.get("LOCATION") or None,
        headers=headers,
    )


@dataclass
class DeviceDescription:
    friendly_name: str
    manufacturer: str
    model: str
    udn: str


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_description(xml_text: str) -> DeviceDescription:
    """Read the interesting fields of a UPnP device description."""
    root = ET.fromstring(xml_text)
    device = next(
        (node for node in root.iter() if _local_name(node.tag) == "device"), None
    )
    if device is None:
        raise ValueError("description has no <device> element")

    fields: dict[str, str] = {}
    for child in device:
        fields[_local_name(child.tag)] = (child.text or "").strip()

    return DeviceDescription(
        friendly_name=fields.get("friendlyName", ""),
        manufacturer=fields.get("manufacturer", ""),
        model=fields.get("modelName", ""),
        udn=fields.get("UDN", ""),
    )


class _ReplyCollector(asyncio.DatagramProtocol):
    def __init__(self) -> None:
        self.replies: asyncio.Queue[tuple[bytes, tuple[str, int]]] = asyncio.Queue()

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self.replies.put_nowait((data, addr))

    def error_received(self, exc: Exception) -> None:
        logger.debug("Discovery socket error: %s", exc)


def _open_search_socket(config: DiscoveryConfig, query: bytes) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    try:
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
        sock.bind(("", 0))
        sock.setblocking(False)
        sock.sendto(query, (config.multicast_address, config.multicast_port))
    except OSError:
        sock.close()
        raise
    return sock


class DiscoveryScanner:
    """Finds devices on the local network with an SSDP search."""

    def __init__(
        self,
        config: DiscoveryConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or DiscoveryConfig()
        self._http_client = http_client

    async def scan(self, timeout: float | None = None) -> list[DeviceDescriptor]:
        """Search once and return the devices that answered, by arrival order."""
        timeout = self.config.timeout if timeout is None else timeout
        replies = await self._collect(timeout)
        logger.debug("Collected %d distinct SSDP replies", len(replies))

        if not self.config.describe:
            return [self._descriptor(reply, None) for reply in replies]

        if self._http_client is not None:
            return await self._describe_all(self._http_client, replies)
        async with httpx.AsyncClient(timeout=max(timeout, 1.0)) as client:
            return await self._describe_all(client, replies)

    async def find(
        self, identifier: str, timeout: float | None = None
    ) -> DeviceDescriptor:
        key = identifier.strip()
        if key.lower().startswith("uuid:"):
            key = key[len("uuid:") :]
        for descriptor in await self.scan(timeout):
            if descriptor.identifier == key:
                return descriptor
        raise DeviceNotFound(f"No device with identifier {key} answered discovery")

    async def find_by_host(
        self, host: str, timeout: float | None = None
    ) -> DeviceDescriptor:
        for descriptor in await self.scan(timeout):
            if descriptor.host == host:
                return descriptor
        raise DeviceNotFound(f"No device at {host} answered discovery")

    async def _collect(self, timeout: float) -> list[SsdpReply]:
        loop = asyncio.get_running_loop()
        query = build_search_request(self.config)

        try:
            sock = _open_search_socket(self.config, query)
            transport, protocol = await loop.create_datagram_endpoint(
                _ReplyCollector, sock=sock
            )
        except OSError as exc:
            raise DiscoveryError("Could not send discovery query", str(exc)) from exc

        logger.debug(
            "Sent M-SEARCH to %s:%d (timeout=%.2fs)",
            self.config.multicast_address,
            self.config.multicast_port,
            timeout,
        )

        replies: dict[str, SsdpReply] = {}
        deadline = loop.time() + timeout
        try:
            while (remaining := deadline - loop.time()) > 0:
                try:
                    data, addr = await asyncio.wait_for(
                        protocol.replies.get(), remaining
                    )
                except TimeoutError:
                    break
                reply = parse_reply(data, addr)
                if reply is None:
                    continue
                if not self._matches_search_target(reply):
                    continue
                # Keeps first arrival position, last seen address.
                replies[reply.identifier] = reply
        finally:
            transport.close()

        return list(replies.values())

    def _matches_search_target(self, reply: SsdpReply) -> bool:
        st = reply.headers.get("ST")
        if st is None or st == self.config.search_target:
            return True
        logger.debug("Ignoring reply from %s for ST %s", reply.host, st)
        return False

    async def _describe_all(
        self, client: httpx.AsyncClient, replies: list[SsdpReply]
    ) -> list[DeviceDescriptor]:
        results = await asyncio.gather(
            *(self._describe(client, reply) for reply in replies)
        )
        return [descriptor for descriptor in results if descriptor is not None]

    async def _describe(
        self, client: httpx.AsyncClient, reply: SsdpReply
    ) -> DeviceDescriptor | None:
        if reply.location is None:
            logger.debug("Dropping reply from %s: no LOCATION", reply.host)
            return None
        try:
            response = await client.get(reply.location)
            response.raise_for_status()
            description = parse_description(response.text)
        except (httpx.HTTPError, httpx.InvalidURL, ET.ParseError, ValueError) as exc:
            logger.debug(
                "Dropping %s: description at %s unusable: %s",
                reply.identifier,
                reply.location,
                exc,
            )
            return None

        wanted = self.config.manufacturer
        if wanted and description.manufacturer.lower() != wanted.lower():
            logger.debug(
                "Ignoring %s: manufacturer %r", reply.identifier, description.manufacturer
            )
            return None

        return self._descriptor(reply, description)

    def _descriptor(
        self, reply: SsdpReply, description: DeviceDescription | None
    ) -> DeviceDescriptor:
        endpoint = Endpoint(host=reply.host, port=self.config.api_port)
        if description is None:
            return DeviceDescriptor(identifier=reply.identifier, endpoint=endpoint)
        descriptor = DeviceDescriptor(
            identifier=reply.identifier,
            endpoint=endpoint,
            friendly_name=description.friendly_name,
            manufacturer=description.manufacturer,
            model=description.model,
            kind=DeviceKind.from_model_name(description.model),
        )
        logger.debug(
            "Discovered '%s' (%s) at %s",
            descriptor.friendly_name,
            descriptor.identifier,
            descriptor.endpoint,
        )
        return descriptor


async def scan_devices(
    timeout: float | None = None, config: DiscoveryConfig | None = None
) -> list[DeviceDescriptor]:
    return await DiscoveryScanner(config).scan(timeout)

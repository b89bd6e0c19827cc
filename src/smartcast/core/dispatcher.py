"""Turns logical commands into HTTPS requests and typed results.

Every call is a single request: nothing here retries, since a retried pairing
request could silently corrupt the device side handshake.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from smartcast.constants import AUTH_HEADER, RESULT_CODES, RESULT_SUCCESS
from smartcast.exceptions import DeviceError, ProtocolError, TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandRequest:
    method: str
    path: str
    body: dict[str, Any] | None = None
    token: str | None = None

    def __repr__(self) -> str:
        token = "<redacted>" if self.token else None
        return (
            f"CommandRequest(method={self.method!r}, path={self.path!r}, "
            f"body={self.body!r}, token={token})"
        )


def _device_status(payload: Any) -> tuple[str, str] | None:
    if not isinstance(payload, dict):
        return None
    status = payload.get("STATUS")
    if not isinstance(status, dict) or not isinstance(status.get("RESULT"), str):
        return None
    detail = status.get("DETAIL")
    return status["RESULT"].lower(), detail if isinstance(detail, str) else ""


def _device_error(code: str, detail: str) -> DeviceError:
    # Known codes carry their own message; the device DETAIL often just
    # repeats the code.
    message = None if code in RESULT_CODES else (detail or None)
    return DeviceError(code, message)


def interpret_response(status_code: int, content: bytes) -> dict[str, Any]:
    """Map an HTTP status and body to the parsed payload or a typed error."""
    try:
        payload = json.loads(content) if content else None
    except ValueError:
        payload = None

    device_status = _device_status(payload)

    if status_code >= 400:
        if device_status is not None and device_status[0] != RESULT_SUCCESS:
            raise _device_error(*device_status)
        raise DeviceError(f"http_{status_code}")

    if not isinstance(payload, dict):
        raise ProtocolError(
            "Response is not a JSON object", content[:200].decode(errors="replace")
        )
    if device_status is None:
        raise ProtocolError("Response has no STATUS.RESULT", json.dumps(payload)[:200])

    result, detail = device_status
    if result != RESULT_SUCCESS:
        raise _device_error(result, detail)
    return payload


class CommandDispatcher:
    """Sends requests to one device over an injected ``httpx.AsyncClient``."""

    def __init__(
        self, http_client: httpx.AsyncClient, timeout: float | None = None
    ) -> None:
        self._client = http_client
        self.timeout = timeout

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._client

    async def send(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        token: str | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        request = CommandRequest(method.upper(), path, body, token)
        return await self.dispatch(request, timeout=timeout)

    async def dispatch(
        self, request: CommandRequest, timeout: float | None = None
    ) -> dict[str, Any]:
        headers = {AUTH_HEADER: request.token} if request.token else {}
        if timeout is None:
            timeout = self.timeout
        logger.debug(
            "%s %s (auth=%s)", request.method, request.path, bool(request.token)
        )

        try:
            async with asyncio.timeout(timeout):
                response = await self._client.request(
                    request.method,
                    request.path,
                    json=request.body,
                    headers=headers,
                )
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise TransportError(
                f"{request.method} {request.path} timed out",
                str(exc) or None,
                cancelled=True,
            ) from exc
        except httpx.TransportError as exc:
            raise TransportError(
                f"{request.method} {request.path} failed", str(exc) or None
            ) from exc

        logger.debug("%s %s -> HTTP %d", request.method, request.path, response.status_code)
        return interpret_response(response.status_code, response.content)

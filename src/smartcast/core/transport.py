from __future__ import annotations

import logging

import httpx

from smartcast.constants import DEFAULT_TIMEOUT
from smartcast.models import Endpoint

logger = logging.getLogger(__name__)


def build_http_client(
    endpoint: Endpoint,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """HTTPS client for one device.

    Devices present self-issued certificates, so chain validation is off while
    the connection itself stays TLS.
    """
    logger.debug("Building HTTPS client for %s (timeout=%.2fs)", endpoint, timeout)
    return httpx.AsyncClient(
        base_url=endpoint.base_url,
        verify=False,
        timeout=timeout,
        transport=transport,
        headers={"Content-Type": "application/json"},
    )

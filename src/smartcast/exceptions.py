"""Exceptions raised by smartcast."""

from __future__ import annotations

from .constants import AUTH_FAILURE_CODES, RESULT_CODES


class SmartcastError(Exception):
    """Base exception for all smartcast errors."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class DiscoveryError(SmartcastError):
    """The local network could not be used for discovery."""


class DeviceNotFound(DiscoveryError):
    """No device matched the requested identifier or address."""


class TransportError(SmartcastError):
    """Connection failure, timeout or cancellation. Safe to retry."""

    def __init__(
        self, message: str, details: str | None = None, cancelled: bool = False
    ):
        super().__init__(message, details)
        self.cancelled = cancelled


class ProtocolError(SmartcastError):
    """The device answered with something that is not the expected shape."""


class DeviceError(SmartcastError):
    """The device explicitly rejected a request."""

    def __init__(self, code: str, message: str | None = None):
        self.code = code.lower()
        super().__init__(message or RESULT_CODES.get(self.code, self.code))

    def __str__(self) -> str:
        return f"{self.message} ({self.code})"

    @property
    def is_auth_failure(self) -> bool:
        return self.code in AUTH_FAILURE_CODES


class PairRejected(DeviceError):
    """The device refused to finish pairing (wrong PIN, stale process, ...)."""


class NotAuthenticated(SmartcastError):
    """An operation needs a paired session."""


class PairAlreadyInProgress(SmartcastError):
    """begin_pair was called while a pairing process is open."""


class InvalidValue(SmartcastError):
    """A setting value failed client side validation."""

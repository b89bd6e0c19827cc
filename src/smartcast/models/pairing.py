"""Pairing handshake values and the session authentication state."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PairingChallenge:
    """What the device answered to a start-pairing request."""

    process_id: int
    challenge_type: int
    needs_pin: bool


@dataclass(frozen=True)
class Unpaired:
    name = "unpaired"


@dataclass(frozen=True)
class Pairing:
    challenge: PairingChallenge
    client_id: str
    name = "pairing"

    @property
    def process_id(self) -> int:
        return self.challenge.process_id


@dataclass(frozen=True)
class Paired:
    token: str = ""
    name = "paired"

    def __repr__(self) -> str:
        return "Paired(token=<redacted>)"


AuthState = Unpaired | Pairing | Paired

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Redactor:
    """Masks addresses, device ids and tokens in CLI output."""

    enabled: bool = True
    _id_map: dict[str, int] = field(default_factory=dict)

    def redact_ip(self, ip: str) -> str:
        if not self.enabled:
            return ip
        parts = ip.split(".")
        if len(parts) == 4 and all(part.isdigit() for part in parts):
            return f"x.x.x.{parts[3]}"
        return ip

    def redact_identifier(self, identifier: str) -> str:
        if not self.enabled:
            return identifier
        counter = self._id_map.get(identifier)
        if counter is None:
            counter = len(self._id_map) + 1
            self._id_map[identifier] = counter
        return f"{identifier[:8]}-xxxx-{counter:02d}"

    def redact_token(self, token: str | None) -> str:
        if not token:
            return ""
        if not self.enabled:
            return token
        return f"{token[:2]}***"

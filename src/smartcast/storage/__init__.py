from __future__ import annotations

from .tokens import PairedDevice, TokenRegistry, TokenStore

__all__ = ["PairedDevice", "TokenRegistry", "TokenStore"]

"""Virtual remote keys: (code set, code) pairs and key actions."""

from __future__ import annotations

from enum import Enum, StrEnum
from typing import Any


class KeyAction(StrEnum):
    DOWN = "KEYDOWN"
    UP = "KEYUP"
    PRESS = "KEYPRESS"


class Key(Enum):
    SEEK_FWD = (2, 0)
    SEEK_BACK = (2, 1)
    PAUSE = (2, 2)
    PLAY = (2, 3)

    DOWN = (3, 0)
    LEFT = (3, 1)
    OK = (3, 2)
    RIGHT = (3, 7)
    UP = (3, 8)

    BACK = (4, 0)
    SMARTCAST = (4, 3)
    CC_TOGGLE = (4, 4)
    INFO = (4, 6)
    MENU = (4, 8)
    HOME = (4, 15)

    VOLUME_DOWN = (5, 0)
    VOLUME_UP = (5, 1)
    MUTE_OFF = (5, 2)
    MUTE_ON = (5, 3)
    MUTE_TOGGLE = (5, 4)

    PIC_MODE = (6, 0)
    PIC_SIZE = (6, 2)

    INPUT_NEXT = (7, 1)

    CHANNEL_DOWN = (8, 0)
    CHANNEL_UP = (8, 1)
    CHANNEL_PREV = (8, 2)

    EXIT = (9, 0)

    POWER_OFF = (11, 0)
    POWER_ON = (11, 1)
    POWER_TOGGLE = (11, 2)

    @property
    def codeset(self) -> int:
        return self.value[0]

    @property
    def code(self) -> int:
        return self.value[1]

    @classmethod
    def parse(cls, name: str) -> Key:
        return cls[name.strip().upper().replace("-", "_")]


KeyCode = Key | tuple[int, int]


def key_event(key: KeyCode, action: KeyAction = KeyAction.PRESS) -> dict[str, Any]:
    codeset, code = key.value if isinstance(key, Key) else key
    return {"CODESET": int(codeset), "CODE": int(code), "ACTION": str(action)}

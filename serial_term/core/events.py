# serial_term/core/events.py
"""
Events fed into the session machine and the effects it hands back.

Events come from two places:
  - the user (connect / disconnect / keystrokes / baud rate edits)
  - the transport (opened / closed / error / inbound data)

Effects are requests; the runtime decides how to carry them out.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union


ENTER = "Enter"
BACKSPACE = "Backspace"


# ---- user intents ----

@dataclass(frozen=True)
class UserConnect:
    pass


@dataclass(frozen=True)
class UserDisconnect:
    pass


@dataclass(frozen=True)
class KeyPressed:
    key: str            # "Enter", "Backspace", a single character, or another key name
    ctrl: bool = False
    meta: bool = False


@dataclass(frozen=True)
class BaudRateChanged:
    value: Union[str, int]


# ---- transport signals ----

@dataclass(frozen=True)
class TransportOpened:
    pass


@dataclass(frozen=True)
class TransportClosed:
    pass


@dataclass(frozen=True)
class TransportError:
    message: str


@dataclass(frozen=True)
class DataReceived:
    text: str


UserEvent = Union[UserConnect, UserDisconnect, KeyPressed, BaudRateChanged]
TransportEvent = Union[TransportOpened, TransportClosed, TransportError, DataReceived]
Event = Union[UserEvent, TransportEvent]


# ---- effects ----

@dataclass(frozen=True)
class Open:
    baud_rate: int


@dataclass(frozen=True)
class Close:
    pass


@dataclass(frozen=True)
class Write:
    text: str


@dataclass(frozen=True)
class FocusView:
    pass


@dataclass(frozen=True)
class LinesAdded:
    lines: Tuple[str, ...]


@dataclass(frozen=True)
class ScrollToBottom:
    pass


TransportCommand = Union[Open, Close, Write]
Effect = Union[Open, Close, Write, FocusView, LinesAdded, ScrollToBottom]

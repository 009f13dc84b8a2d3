# serial_term/ui/keys.py
"""
Raw keyboard bytes -> session key events or terminal control actions.

Control shortcuts are taken before the session sees them:
  Ctrl-O  connect / reconnect
  Ctrl-X  disconnect
  Ctrl-B  next baud rate
  Ctrl-Q  quit (Ctrl-C too, since raw mode disables SIGINT)
Any other Ctrl/Alt combination is passed on flagged, and the session ignores it.
"""
from __future__ import annotations

import codecs
from enum import Enum
from typing import List, Union

from serial_term.core.events import BACKSPACE, ENTER, KeyPressed


class Action(Enum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    CYCLE_BAUD = "cycle_baud"
    QUIT = "quit"


CONTROL_ACTIONS = {
    0x0F: Action.CONNECT,      # Ctrl-O
    0x18: Action.DISCONNECT,   # Ctrl-X
    0x02: Action.CYCLE_BAUD,   # Ctrl-B
    0x11: Action.QUIT,         # Ctrl-Q
    0x03: Action.QUIT,         # Ctrl-C
}

# Final byte of CSI / SS3 sequences
ESCAPE_NAMES = {
    "A": "ArrowUp",
    "B": "ArrowDown",
    "C": "ArrowRight",
    "D": "ArrowLeft",
    "H": "Home",
    "F": "End",
    "~": "Function",
}

Keystroke = Union[KeyPressed, Action]

ESC = "\x1b"


class KeyDecoder:
    """Stateful decoder; feed it whatever the keyboard reader returns."""

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._last_cr = False

    def feed(self, data: bytes) -> List[Keystroke]:
        """
        Decode one read. An empty read means the keyboard went idle, which
        settles a trailing ESC as the Escape key.
        """
        idle = not data
        text = self._pending + self._utf8.decode(data)
        self._pending = ""
        out: List[Keystroke] = []
        i = 0
        while i < len(text):
            ch = text[i]

            if ch == ESC:
                consumed = self._escape(text, i, out, idle)
                if consumed == 0:
                    self._pending = text[i:]
                    break
                i += consumed
                self._last_cr = False
                continue

            if ch == "\n" and self._last_cr:
                self._last_cr = False
                i += 1
                continue
            self._last_cr = ch == "\r"

            out.append(self._single(ch))
            i += 1
        return out

    def _single(self, ch: str) -> Keystroke:
        code = ord(ch)
        if ch in ("\r", "\n"):
            return KeyPressed(ENTER)
        if code in (0x7F, 0x08):
            return KeyPressed(BACKSPACE)
        if ch == "\t":
            return KeyPressed("Tab")
        if code in CONTROL_ACTIONS:
            return CONTROL_ACTIONS[code]
        if 0x01 <= code <= 0x1A:
            return KeyPressed(chr(code + 0x60), ctrl=True)
        if code < 0x20:
            return KeyPressed(f"Control-{code:#04x}", ctrl=True)
        return KeyPressed(ch)

    def _escape(self, text: str, i: int, out: List[Keystroke], idle: bool) -> int:
        """Consume an escape sequence at text[i]; 0 means wait for more input."""
        rest = text[i + 1:]
        if not rest:
            if not idle:
                return 0
            out.append(KeyPressed("Escape"))
            return 1

        lead = rest[0]
        if lead in "[O":
            for j, c in enumerate(rest[1:], start=2):
                if "\x40" <= c <= "\x7e":
                    out.append(KeyPressed(ESCAPE_NAMES.get(c, "Unknown")))
                    return j + 1
            if not idle:
                return 0
            # never completed; treat the ESC as a key of its own
            out.append(KeyPressed("Escape"))
            return 1

        # Alt+key
        out.append(KeyPressed(lead, meta=True))
        return 2

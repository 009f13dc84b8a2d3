# serial_term/core/session.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Tuple, Union

from .events import (
    BACKSPACE,
    ENTER,
    BaudRateChanged,
    Close,
    DataReceived,
    Effect,
    Event,
    FocusView,
    KeyPressed,
    LinesAdded,
    Open,
    ScrollToBottom,
    TransportClosed,
    TransportError,
    TransportOpened,
    UserConnect,
    UserDisconnect,
    Write,
)
from .line_buffer import DEFAULT_LOG_CAPACITY, LineBuffer

log = logging.getLogger(__name__)

BAUD_RATES: Tuple[int, ...] = (1200, 2400, 4800, 9600, 19200, 38400, 57600, 115200)
DEFAULT_BAUD_RATE = 115200
WARNING_PREFIX = "⚠ "


# ---- connection status ----

@dataclass(frozen=True)
class Disconnected:
    def __str__(self) -> str:
        return "Disconnected"


@dataclass(frozen=True)
class Connecting:
    def __str__(self) -> str:
        return "Connecting"


@dataclass(frozen=True)
class Connected:
    def __str__(self) -> str:
        return "Connected"


@dataclass(frozen=True)
class Errored:
    message: str

    def __str__(self) -> str:
        return f"Error: {self.message}"


ConnectionStatus = Union[Disconnected, Connecting, Connected, Errored]


def parse_baud_rate(value: Union[str, int]) -> int | None:
    """Return the rate if it is one of BAUD_RATES, else None."""
    if isinstance(value, bool):
        return None
    try:
        rate = int(str(value).strip())
    except ValueError:
        return None
    return rate if rate in BAUD_RATES else None


@dataclass
class Session:
    status: ConnectionStatus = field(default_factory=Disconnected)
    pending_input: str = ""
    baud_rate: int = DEFAULT_BAUD_RATE
    buffer: LineBuffer = field(default_factory=LineBuffer)
    # A Close() this machine issued on its own (teardown) is still unconfirmed.
    closing: bool = False

    @property
    def log(self) -> List[str]:
        return self.buffer.log

    @property
    def reassembly_tail(self) -> str:
        return self.buffer.tail

    @property
    def baud_rate_editable(self) -> bool:
        return isinstance(self.status, (Disconnected, Errored))

    @property
    def can_connect(self) -> bool:
        return self.baud_rate_editable

    @property
    def connected(self) -> bool:
        return isinstance(self.status, Connected)

    def view(self) -> "SessionView":
        return SessionView(
            status=self.status,
            pending_input=self.pending_input,
            baud_rate=self.baud_rate,
            baud_rate_editable=self.baud_rate_editable,
        )


@dataclass(frozen=True)
class SessionView:
    """What the UI renders besides the log itself."""
    status: ConnectionStatus
    pending_input: str
    baud_rate: int
    baud_rate_editable: bool


class SessionMachine:
    """
    Single authority over a Session.

    dispatch() applies one event and returns the effects it produced, in order.
    It never touches a transport itself and never raises for bad input; events
    that are not legal in the current state are no-ops.
    """

    def __init__(
        self,
        session: Session | None = None,
        *,
        baud_rate: int = DEFAULT_BAUD_RATE,
        log_capacity: int = DEFAULT_LOG_CAPACITY,
        warning_prefix: str = WARNING_PREFIX,
    ) -> None:
        if session is None:
            if baud_rate not in BAUD_RATES:
                raise ValueError(f"unsupported baud rate: {baud_rate}")
            session = Session(baud_rate=baud_rate, buffer=LineBuffer(log_capacity))
        self.session = session
        self.warning_prefix = warning_prefix

    def dispatch(self, event: Event) -> List[Effect]:
        if isinstance(event, UserConnect):
            return self._on_connect()
        if isinstance(event, UserDisconnect):
            return self._on_disconnect()
        if isinstance(event, KeyPressed):
            return self._on_key(event)
        if isinstance(event, BaudRateChanged):
            return self._on_baud_rate(event)
        if isinstance(event, TransportOpened):
            return self._on_opened()
        if isinstance(event, TransportClosed):
            return self._on_closed()
        if isinstance(event, TransportError):
            return self._on_error(event.message)
        if isinstance(event, DataReceived):
            return self._on_data(event.text)
        log.debug("ignoring unknown event %r", event)
        return []

    # ---- user intents ----

    def _on_connect(self) -> List[Effect]:
        s = self.session
        if not s.can_connect:
            return []
        self._set_status(Connecting())
        return [Open(s.baud_rate)]

    def _on_disconnect(self) -> List[Effect]:
        # Status only changes once the transport confirms with TransportClosed.
        if not self.session.connected:
            return []
        return [Close()]

    def _on_key(self, event: KeyPressed) -> List[Effect]:
        s = self.session
        if not s.connected or event.ctrl or event.meta:
            return []

        if event.key == ENTER:
            text = s.pending_input + "\n"
            changed = bool(s.pending_input)
            s.pending_input = ""
            return [Write(text), ScrollToBottom()] if changed else [Write(text)]

        if event.key == BACKSPACE:
            if not s.pending_input:
                return []
            s.pending_input = s.pending_input[:-1]
            return [ScrollToBottom()]

        if len(event.key) == 1 and event.key.isprintable():
            s.pending_input += event.key
            return [ScrollToBottom()]

        return []

    def _on_baud_rate(self, event: BaudRateChanged) -> List[Effect]:
        s = self.session
        if not s.baud_rate_editable:
            return []
        rate = parse_baud_rate(event.value)
        if rate is None or rate == s.baud_rate:
            return []
        log.info("baud rate %d -> %d", s.baud_rate, rate)
        s.baud_rate = rate
        return []

    # ---- transport signals ----

    def _on_opened(self) -> List[Effect]:
        s = self.session
        if isinstance(s.status, (Errored, Disconnected)):
            # Open finished after the session stopped waiting for it.
            log.debug("releasing stale open in %s", s.status)
            s.closing = True
            return [Close()]
        if not isinstance(s.status, Connecting):
            return []
        self._set_status(Connected())
        return [FocusView()]

    def _on_closed(self) -> List[Effect]:
        s = self.session
        if s.closing:
            # Confirms our own teardown; a reconnect may already be under way.
            s.closing = False
            return []
        s.buffer.discard_tail()
        if isinstance(s.status, (Connected, Connecting)):
            s.pending_input = ""
            self._set_status(Disconnected())
        return []

    def _on_error(self, message: str) -> List[Effect]:
        s = self.session
        was_connected = s.connected
        # Either this answers an outstanding teardown or the link is gone anyway.
        s.closing = False
        s.pending_input = ""
        s.buffer.discard_tail()
        self._set_status(Errored(message))
        notice = self.warning_prefix + message
        s.buffer.append(notice)
        log.warning("transport error: %s", message)

        effects: List[Effect] = [LinesAdded((notice,)), ScrollToBottom()]
        if was_connected:
            # Release the handle instead of staying on a broken link.
            s.closing = True
            effects.insert(0, Close())
        return effects

    def _on_data(self, text: str) -> List[Effect]:
        if not self.session.connected:
            return []
        lines, grew = self.session.buffer.ingest(text)
        if not grew:
            return []
        return [LinesAdded(tuple(lines)), ScrollToBottom()]

    def _set_status(self, status: ConnectionStatus) -> None:
        log.info("status %s -> %s", self.session.status, status)
        self.session.status = status


def next_baud_rate(current: int) -> int:
    """The enumerated rate after `current`, wrapping around."""
    try:
        i = BAUD_RATES.index(current)
    except ValueError:
        return DEFAULT_BAUD_RATE
    return BAUD_RATES[(i + 1) % len(BAUD_RATES)]

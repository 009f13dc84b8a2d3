# serial_term/transports/base_transport.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from serial_term.core.events import TransportEvent

log = logging.getLogger(__name__)


class BaseTransport(ABC):
    """
    Base class for all transports. Handles:
      - registering the event handler
      - delivering lifecycle/data events to it
    Subclasses implement:
      - open(baud_rate)  -> emits exactly one TransportOpened or TransportError
      - close()          -> emits exactly one TransportClosed or TransportError
      - write(text)      -> fire-and-forget, failures arrive later as TransportError

    None of these raise; failures are reported as events.
    """

    def __init__(self) -> None:
        self._on_event: Optional[Callable[[TransportEvent], None]] = None

    def set_event_handler(self, handler: Callable[[TransportEvent], None]) -> None:
        self._on_event = handler

    # May be called from any thread; the handler must be thread-safe.
    def _emit(self, event: TransportEvent) -> None:
        if self._on_event:
            self._on_event(event)
        else:
            log.debug("no handler for %r", event)

    @abstractmethod
    async def open(self, baud_rate: int) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    async def write(self, text: str) -> None:
        ...


def describe(exc: BaseException) -> str:
    """User-facing message for an exception."""
    return str(exc) or exc.__class__.__name__

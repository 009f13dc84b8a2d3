# serial_term/core/runtime.py
from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Protocol, Union

from .event_bus import EventBus
from .events import (
    BaudRateChanged,
    Close,
    Effect,
    Event,
    FocusView,
    KeyPressed,
    LinesAdded,
    Open,
    ScrollToBottom,
    TransportCommand,
    TransportError,
    TransportEvent,
    UserConnect,
    UserDisconnect,
    Write,
)
from .session import Connecting, SessionMachine, SessionView, next_baud_rate
from .settings import TerminalSettings

log = logging.getLogger(__name__)

CONNECT_TIMEOUT_MESSAGE = "Timed out opening port"


class HasTransportCommands(Protocol):
    """Minimal transport interface used by the runtime."""

    def set_event_handler(self, handler: Callable[[TransportEvent], None]) -> None: ...
    async def open(self, baud_rate: int) -> None: ...
    async def close(self) -> None: ...
    async def write(self, text: str) -> None: ...


class TerminalRuntime:
    """
    Owns the session and is the only place it is mutated.

      - post() queues user and transport events (safe from any thread)
      - one task applies them to the SessionMachine strictly in order
      - a second task runs transport commands in order, so a slow open()
        never stalls event processing
      - UI signals go out on the EventBus:
          "state.changed"  SessionView
          "log.lines"      list[str] of newly completed lines
          "view.scroll"    None
          "view.focus"     None
    """

    def __init__(
        self,
        transport: HasTransportCommands,
        settings: Optional[TerminalSettings] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        settings = settings or TerminalSettings()
        self.transport = transport
        self.bus = bus or EventBus()
        self.machine = SessionMachine(
            baud_rate=settings.transport.baudrate,
            log_capacity=settings.session.log_capacity,
            warning_prefix=settings.session.warning_prefix,
        )
        self.session = self.machine.session
        self.connect_timeout_s = settings.session.connect_timeout_s

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._events: Optional[asyncio.Queue] = None
        self._commands: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []
        self._timeout_handle: Optional[asyncio.TimerHandle] = None

        self.transport.set_event_handler(self.post)

    # ---------- Lifecycle ----------

    async def start(self) -> None:
        if self._tasks:
            return
        self._loop = asyncio.get_running_loop()
        self._events = asyncio.Queue()
        self._commands = asyncio.Queue()
        self._tasks = [
            asyncio.create_task(self._event_loop(), name="serial-term-events"),
            asyncio.create_task(self._command_loop(), name="serial-term-commands"),
        ]
        self.bus.publish("state.changed", self.session.view())
        log.info("runtime started")

    async def stop(self) -> None:
        """Release the transport (if in use) and stop both tasks."""
        if not self._tasks:
            return

        self._cancel_timeout()
        if self.session.connected or isinstance(self.session.status, Connecting):
            try:
                await self.transport.close()
            except Exception:
                log.exception("transport close failed during shutdown")

        for t in self._tasks:
            t.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        log.info("runtime stopped")

    async def drain(self) -> None:
        """Wait until every queued event and command has been handled."""
        assert self._events is not None and self._commands is not None, "runtime not started"
        while True:
            await self._events.join()
            await self._commands.join()
            if self._events.empty() and self._commands.empty():
                return

    # ---------- Incoming events ----------

    def post(self, event: Event) -> None:
        """Queue an event. May be called from transport threads."""
        loop, queue = self._loop, self._events
        if loop is None or queue is None:
            raise RuntimeError("runtime not started")

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            queue.put_nowait(event)
            return
        try:
            loop.call_soon_threadsafe(queue.put_nowait, event)
        except RuntimeError:
            log.debug("event dropped after shutdown: %r", event)

    def connect(self) -> None:
        self.post(UserConnect())

    def disconnect(self) -> None:
        self.post(UserDisconnect())

    def press(self, key: str, *, ctrl: bool = False, meta: bool = False) -> None:
        self.post(KeyPressed(key, ctrl=ctrl, meta=meta))

    def set_baud_rate(self, value: Union[str, int]) -> None:
        self.post(BaudRateChanged(value))

    def cycle_baud_rate(self) -> None:
        self.post(BaudRateChanged(next_baud_rate(self.session.baud_rate)))

    async def _event_loop(self) -> None:
        assert self._events is not None
        while True:
            event = await self._events.get()
            try:
                self.process(event)
            except Exception:
                log.exception("failed to process %r", event)
            finally:
                self._events.task_done()

    def process(self, event: Event) -> List[Effect]:
        """Apply one event to the session and carry out the resulting effects."""
        before = self.session.view()
        effects = self.machine.dispatch(event)
        after = self.session.view()

        if after.status != before.status:
            self._update_timeout(after)
        if after != before:
            self.bus.publish("state.changed", after)

        for effect in effects:
            self._apply(effect)
        return effects

    def _apply(self, effect: Effect) -> None:
        if isinstance(effect, (Open, Close, Write)):
            assert self._commands is not None
            self._commands.put_nowait(effect)
        elif isinstance(effect, LinesAdded):
            self.bus.publish("log.lines", list(effect.lines))
        elif isinstance(effect, ScrollToBottom):
            self.bus.publish("view.scroll", None)
        elif isinstance(effect, FocusView):
            self.bus.publish("view.focus", None)
        else:
            log.debug("unhandled effect %r", effect)

    # ---------- Connect timeout ----------

    def _update_timeout(self, view: SessionView) -> None:
        self._cancel_timeout()
        if isinstance(view.status, Connecting) and self.connect_timeout_s:
            assert self._loop is not None
            self._timeout_handle = self._loop.call_later(
                self.connect_timeout_s, self._connect_timed_out
            )

    def _cancel_timeout(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _connect_timed_out(self) -> None:
        self._timeout_handle = None
        if isinstance(self.session.status, Connecting):
            log.warning("no open confirmation after %ss", self.connect_timeout_s)
            self.post(TransportError(CONNECT_TIMEOUT_MESSAGE))

    # ---------- Outgoing commands ----------

    async def _command_loop(self) -> None:
        assert self._commands is not None
        while True:
            command = await self._commands.get()
            try:
                await self._execute(command)
            except Exception as e:
                # Transports report failures as events; treat a raise the same way.
                log.exception("transport command %r raised", command)
                self.post(TransportError(str(e) or e.__class__.__name__))
            finally:
                self._commands.task_done()

    async def _execute(self, command: TransportCommand) -> None:
        log.debug("command %r", command)
        if isinstance(command, Open):
            await self.transport.open(command.baud_rate)
        elif isinstance(command, Close):
            await self.transport.close()
        elif isinstance(command, Write):
            await self.transport.write(command.text)

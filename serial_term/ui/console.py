# serial_term/ui/console.py
from __future__ import annotations

import logging
import os
import sys
import threading
from typing import Callable, Optional, TextIO

from serial_term.core.event_bus import EventBus
from serial_term.core.session import SessionView

log = logging.getLogger(__name__)

CLEAR_LINE = "\r\x1b[K"


class RawKeyboard:
    """Context manager for raw terminal input (no echo, no line buffering)."""

    def __init__(self) -> None:
        self._old = None
        self._fd: Optional[int] = None

    def __enter__(self) -> "RawKeyboard":
        if sys.platform != "win32":
            import termios
            import tty

            self._fd = sys.stdin.fileno()
            self._old = termios.tcgetattr(self._fd)
            tty.setraw(self._fd)
        return self

    def __exit__(self, *args) -> None:
        if self._old is not None:
            import termios

            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._old)
            self._old = None

    def read(self, timeout: float = 0.1) -> bytes:
        """Up to a few keystrokes, or b"" if nothing arrived within timeout."""
        if sys.platform == "win32":
            import msvcrt
            import time

            deadline = time.monotonic() + timeout
            while not msvcrt.kbhit():
                if time.monotonic() >= deadline:
                    return b""
                time.sleep(0.01)
            ch = msvcrt.getwch()
            if ch in ("\x00", "\xe0"):
                msvcrt.getwch()  # function/arrow key scan code; not forwarded
                return b""
            return ch.encode("utf-8")

        import select

        ready, _, _ = select.select([self._fd], [], [], timeout)
        if not ready:
            return b""
        return os.read(self._fd, 64)


class KeyboardReader:
    """
    Background thread feeding raw keyboard bytes to `on_input`.
    `on_input` runs on this thread; hand off to the event loop from there.
    """

    def __init__(self, keyboard: RawKeyboard, on_input: Callable[[bytes], None]) -> None:
        self.keyboard = keyboard
        self.on_input = on_input
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="keyboard-reader", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None

    def _loop(self) -> None:
        busy = False
        while not self._stop.is_set():
            data = self.keyboard.read(timeout=0.1)
            if data or busy:
                # One empty read after input tells the decoder the keyboard went idle.
                self.on_input(data)
            busy = bool(data)


class ConsoleView:
    """
    Line-oriented renderer for the terminal.

    Completed lines are printed above a single prompt line showing the
    connection status, baud rate and the input typed so far. Output uses
    \\r\\n since the tty is in raw mode.
    """

    def __init__(self, bus: EventBus, stream: TextIO = sys.stdout) -> None:
        self.stream = stream
        self.view: Optional[SessionView] = None

        bus.subscribe("state.changed", self._on_state)
        bus.subscribe("log.lines", self._on_lines)
        bus.subscribe("view.scroll", lambda _: self.redraw())
        bus.subscribe("view.focus", lambda _: self.redraw())

    def prompt(self) -> str:
        v = self.view
        if v is None:
            return ""
        lock = "" if v.baud_rate_editable else "*"
        return f"[{v.status} {v.baud_rate}{lock}] > {v.pending_input}"

    def banner(self, text: str) -> None:
        self._write(CLEAR_LINE + text.replace("\n", "\r\n") + "\r\n")
        self.redraw()

    def redraw(self) -> None:
        self._write(CLEAR_LINE + self.prompt())

    def close(self) -> None:
        self._write("\r\n")

    def _on_state(self, view: SessionView) -> None:
        self.view = view
        self.redraw()

    def _on_lines(self, lines) -> None:
        body = "".join(f"{line}\r\n" for line in lines)
        self._write(CLEAR_LINE + body + self.prompt())

    def _write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

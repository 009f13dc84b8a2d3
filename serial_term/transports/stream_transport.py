# serial_term/transports/stream_transport.py
from __future__ import annotations

import asyncio
import codecs
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

from serial_term.core import events
from serial_term.transports.base_transport import BaseTransport, describe

log = logging.getLogger(__name__)


class StreamTransport(BaseTransport, ABC):
    """
    Base for transports that expose a byte stream (read/write bytes).
    Handles:
      - background reader thread, aborted promptly by close()
      - incremental UTF-8 decoding of inbound bytes
      - running the blocking hooks off the asyncio loop

    Subclasses must implement:
      - _open(baud_rate)
      - _close()
      - _read_raw(n) -> bytes
      - _send_bytes(data: bytes) -> None
    and may override _cancel_read() to interrupt a blocked _read_raw().
    """

    def __init__(self, read_chunk: int = 256) -> None:
        super().__init__()
        self.read_chunk = read_chunk
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._is_open = False

    # ---- subclass hooks ----

    @abstractmethod
    def _open(self, baud_rate: int) -> None:
        ...

    @abstractmethod
    def _close(self) -> None:
        ...

    @abstractmethod
    def _read_raw(self, n: int) -> bytes:
        ...

    @abstractmethod
    def _send_bytes(self, data: bytes) -> None:
        """Blocking write of raw bytes to the underlying stream."""
        ...

    def _cancel_read(self) -> None:
        pass

    @property
    def is_open(self) -> bool:
        return self._is_open

    # ---- async lifecycle ----

    async def open(self, baud_rate: int) -> None:
        if self._is_open:
            self._emit(events.TransportError("Port is already open"))
            return

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._open, baud_rate)
        except Exception as e:
            log.warning("open failed: %s", describe(e))
            self._emit(events.TransportError(describe(e)))
            return

        self._is_open = True
        self._stop.clear()
        log.info("opened at %d baud", baud_rate)
        self._emit(events.TransportOpened())

        self._thread = threading.Thread(
            target=self._reader_loop,
            name=f"{type(self).__name__}-reader",
            daemon=True,
        )
        self._thread.start()

    async def close(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._shutdown)
        except Exception as e:
            log.warning("close failed: %s", describe(e))
            self._emit(events.TransportError(describe(e)))
            return
        self._emit(events.TransportClosed())

    async def write(self, text: str) -> None:
        if not self._is_open:
            log.debug("write dropped, stream not open: %r", text)
            return

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._send_bytes, text.encode("utf-8"))
        except Exception as e:
            log.warning("write failed: %s", describe(e))
            self._emit(events.TransportError(describe(e)))

    def _shutdown(self) -> None:
        self._stop.set()
        was_open, self._is_open = self._is_open, False

        if was_open:
            try:
                self._cancel_read()
            except Exception as e:
                log.debug("cancel_read failed: %s", describe(e))

        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
            if thread.is_alive():
                log.warning("reader thread did not stop within 1s")

        if was_open:
            self._close()
            log.info("closed")

    # ---- background reader ----

    def _reader_loop(self) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while not self._stop.is_set():
            try:
                data = self._read_raw(self.read_chunk)
            except Exception as e:
                if self._stop.is_set():
                    break  # read aborted by close()
                log.warning("read failed: %s", describe(e))
                self._emit(events.TransportError(describe(e)))
                return

            if not data:
                self._stop.wait(0.01)
                continue

            text = decoder.decode(data)
            if text:
                self._emit(events.DataReceived(text))

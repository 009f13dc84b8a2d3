# serial_term/transports/serial_transport.py
from __future__ import annotations

from typing import List, Optional

import serial
from serial.tools import list_ports

from serial_term.core.errors import (
    TransportCloseError,
    TransportOpenError,
    TransportReadError,
    TransportWriteError,
)
from serial_term.transports.stream_transport import StreamTransport


def available_ports() -> List[str]:
    """Device names of the serial ports currently present, sorted."""
    return sorted(p.device for p in list_ports.comports())


class SerialTransport(StreamTransport):
    """
    pyserial transport for USB/UART devices.
    'port' is something like:
      - macOS:    /dev/tty.usbserial-XXXX  or  /dev/tty.usbmodemXXXX
      - Linux:    /dev/ttyUSB0, /dev/ttyACM0
      - Windows:  COM3, COM5, ...
    When 'port' is None the first enumerated port is used at open time.
    """

    def __init__(
        self,
        port: Optional[str] = None,
        read_chunk: int = 256,
        timeout: float = 0.1,
    ) -> None:
        super().__init__(read_chunk=read_chunk)
        self.port = port
        self.timeout = timeout
        self._ser: Optional[serial.Serial] = None

    def _select_port(self) -> str:
        if self.port:
            return self.port
        ports = available_ports()
        if not ports:
            raise TransportOpenError("No port selected")
        return ports[0]

    def _open(self, baud_rate: int) -> None:
        device = self._select_port()
        try:
            self._ser = serial.Serial(device, baud_rate, timeout=self.timeout)
        except (serial.SerialException, ValueError) as e:
            raise TransportOpenError(str(e)) from e

    def _close(self) -> None:
        ser, self._ser = self._ser, None
        if ser is None:
            return
        try:
            if ser.is_open:
                ser.close()
        except (serial.SerialException, OSError) as e:
            raise TransportCloseError(str(e)) from e

    def _cancel_read(self) -> None:
        if self._ser is not None:
            self._ser.cancel_read()

    def _read_raw(self, n: int) -> bytes:
        ser = self._ser
        if ser is None:
            return b""
        try:
            # Block for the first byte (up to timeout), then take what is buffered.
            return ser.read(max(1, min(n, ser.in_waiting)))
        except (serial.SerialException, OSError) as e:
            raise TransportReadError(str(e)) from e

    def _send_bytes(self, data: bytes) -> None:
        ser = self._ser
        if ser is None or not ser.is_open:
            raise TransportWriteError("Serial not open")
        try:
            ser.write(data)
        except (serial.SerialException, OSError) as e:
            raise TransportWriteError(str(e)) from e

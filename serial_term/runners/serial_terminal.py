# serial_term/runners/serial_terminal.py
"""
Interactive serial terminal.

  serial-term --port /dev/ttyUSB0 --baud 9600 --connect

Keys: Ctrl-O connect, Ctrl-X disconnect, Ctrl-B next baud rate, Ctrl-Q quit.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from serial_term.core.errors import ConfigError
from serial_term.core.runtime import TerminalRuntime
from serial_term.core.session import BAUD_RATES
from serial_term.core.settings import TerminalSettings
from serial_term.logger.logger import Logger
from serial_term.transports.serial_transport import SerialTransport, available_ports
from serial_term.ui.console import ConsoleView, KeyboardReader, RawKeyboard
from serial_term.ui.keys import Action, KeyDecoder

HELP = "Ctrl-O connect | Ctrl-X disconnect | Ctrl-B baud rate | Ctrl-Q quit"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="serial-term", description="Interactive serial terminal")
    p.add_argument("--port", help="serial device (default: profile, then first available)")
    p.add_argument("--baud", type=int, choices=BAUD_RATES, help="initial baud rate")
    p.add_argument("--profile", default="default", help="settings profile name")
    p.add_argument("--config", type=Path, help="path to a settings YAML file")
    p.add_argument("--log-dir", help="directory for the log file")
    p.add_argument("--connect", action="store_true", help="connect immediately")
    p.add_argument("--list-ports", action="store_true", help="print available ports and exit")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return p


def load_settings(args: argparse.Namespace) -> TerminalSettings:
    settings = TerminalSettings.load(args.profile, path=args.config)
    if args.port:
        settings.transport.serial_port = args.port
    if args.baud:
        settings.transport.baudrate = args.baud
    if args.log_dir:
        settings.logging.log_dir = args.log_dir
    return settings


def handle_keystrokes(runtime: TerminalRuntime, decoder: KeyDecoder, data: bytes, quit_event: asyncio.Event) -> None:
    for item in decoder.feed(data):
        if item is Action.QUIT:
            quit_event.set()
        elif item is Action.CONNECT:
            runtime.connect()
        elif item is Action.DISCONNECT:
            runtime.disconnect()
        elif item is Action.CYCLE_BAUD:
            runtime.cycle_baud_rate()
        else:
            runtime.post(item)


async def run(settings: TerminalSettings, connect_now: bool = False) -> None:
    log = logging.getLogger("serial_term.runner")

    transport = SerialTransport(
        settings.transport.serial_port,
        read_chunk=settings.transport.read_chunk,
    )
    runtime = TerminalRuntime(transport, settings)
    view = ConsoleView(runtime.bus)

    loop = asyncio.get_running_loop()
    quit_event = asyncio.Event()
    decoder = KeyDecoder()

    def on_input(data: bytes) -> None:
        loop.call_soon_threadsafe(handle_keystrokes, runtime, decoder, data, quit_event)

    await runtime.start()
    with RawKeyboard() as keyboard:
        reader = KeyboardReader(keyboard, on_input)
        reader.start()
        port = settings.transport.serial_port or "first available port"
        view.banner(f"serial-term on {port}\n{HELP}")
        log.info("terminal ready on %s", port)

        if connect_now:
            runtime.connect()
        try:
            await quit_event.wait()
        finally:
            reader.stop()
            await runtime.stop()
            view.close()
            log.info("terminal closed")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.list_ports:
        for device in available_ports():
            print(device)
        return 0

    try:
        settings = load_settings(args)
    except ConfigError as e:
        print(f"[serial-term] {e}", file=sys.stderr)
        return 2

    level = logging.DEBUG if args.verbose else None
    logger = Logger.from_settings(settings.logging, level=level)
    try:
        asyncio.run(run(settings, connect_now=args.connect))
    except KeyboardInterrupt:
        pass
    finally:
        logger.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())

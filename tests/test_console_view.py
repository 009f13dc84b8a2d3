import io
import time

from serial_term.core.event_bus import EventBus
from serial_term.core.session import Connected, Disconnected, SessionView
from serial_term.ui.console import CLEAR_LINE, ConsoleView, KeyboardReader


def make_view():
    bus = EventBus()
    out = io.StringIO()
    return bus, out, ConsoleView(bus, stream=out)


def test_prompt_shows_status_rate_and_input():
    bus, out, view = make_view()
    bus.publish("state.changed", SessionView(Connected(), "ls", 9600, False))
    assert view.prompt() == "[Connected 9600*] > ls"
    assert out.getvalue().endswith(CLEAR_LINE + "[Connected 9600*] > ls")


def test_editable_rate_has_no_lock_marker():
    bus, _, view = make_view()
    bus.publish("state.changed", SessionView(Disconnected(), "", 115200, True))
    assert view.prompt() == "[Disconnected 115200] > "


def test_lines_printed_above_prompt():
    bus, out, _ = make_view()
    bus.publish("state.changed", SessionView(Connected(), "", 115200, False))
    out.truncate(0)
    out.seek(0)

    bus.publish("log.lines", ["hello world", "foo"])
    assert out.getvalue() == CLEAR_LINE + "hello world\r\nfoo\r\n" + "[Connected 115200*] > "


def test_banner_uses_crlf():
    bus, out, view = make_view()
    view.banner("a\nb")
    assert "a\r\nb\r\n" in out.getvalue()


def test_prompt_empty_before_first_state():
    _, _, view = make_view()
    assert view.prompt() == ""


class ScriptedKeyboard:
    def __init__(self, reads):
        self.reads = list(reads)

    def read(self, timeout=0.1):
        if self.reads:
            return self.reads.pop(0)
        time.sleep(0.005)
        return b""


def test_keyboard_reader_reports_idle_once_after_input():
    got = []
    reader = KeyboardReader(ScriptedKeyboard([b"\x1b", b"", b"", b"[A"]), got.append)
    reader.start()
    try:
        deadline = time.monotonic() + 2.0
        while len(got) < 4 and time.monotonic() < deadline:
            time.sleep(0.005)
        time.sleep(0.05)
    finally:
        reader.stop()
    assert got == [b"\x1b", b"", b"[A", b""]

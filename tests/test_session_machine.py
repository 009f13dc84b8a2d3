import pytest

from serial_term.core.events import (
    BACKSPACE,
    ENTER,
    BaudRateChanged,
    Close,
    DataReceived,
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
from serial_term.core.session import (
    BAUD_RATES,
    Connected,
    Connecting,
    Disconnected,
    Errored,
    Session,
    SessionMachine,
    next_baud_rate,
    parse_baud_rate,
)


def connected_machine(**kwargs) -> SessionMachine:
    m = SessionMachine(**kwargs)
    m.dispatch(UserConnect())
    m.dispatch(TransportOpened())
    assert m.session.status == Connected()
    return m


def type_text(m: SessionMachine, text: str) -> None:
    for ch in text:
        m.dispatch(KeyPressed(ch))


def test_initial_session():
    s = SessionMachine().session
    assert s.status == Disconnected()
    assert s.pending_input == ""
    assert s.baud_rate == 115200
    assert s.log == []
    assert s.baud_rate_editable is True


def test_connect_emits_open_with_selected_rate():
    m = SessionMachine()
    m.dispatch(BaudRateChanged("9600"))
    effects = m.dispatch(UserConnect())
    assert effects == [Open(9600)]
    assert m.session.status == Connecting()
    assert m.session.baud_rate_editable is False


def test_connect_ignored_while_connecting_or_connected():
    m = SessionMachine()
    m.dispatch(UserConnect())
    assert m.dispatch(UserConnect()) == []
    m.dispatch(TransportOpened())
    assert m.dispatch(UserConnect()) == []


def test_opened_connects_and_focuses():
    m = SessionMachine()
    m.dispatch(UserConnect())
    assert m.dispatch(TransportOpened()) == [FocusView()]
    assert m.session.connected


def test_open_error_while_connecting():
    m = SessionMachine()
    m.dispatch(UserConnect())
    effects = m.dispatch(TransportError("port busy"))

    assert m.session.status == Errored("port busy")
    assert m.session.log == ["⚠ port busy"]
    assert LinesAdded(("⚠ port busy",)) in effects
    assert Close() not in effects


def test_reconnect_after_error():
    m = SessionMachine()
    m.dispatch(UserConnect())
    m.dispatch(TransportError("port busy"))
    assert m.dispatch(UserConnect()) == [Open(115200)]
    assert m.session.status == Connecting()


def test_disconnect_waits_for_confirmation():
    m = connected_machine()
    assert m.dispatch(UserDisconnect()) == [Close()]
    assert m.session.status == Connected()

    m.dispatch(TransportClosed())
    assert m.session.status == Disconnected()


def test_disconnect_ignored_when_not_connected():
    m = SessionMachine()
    assert m.dispatch(UserDisconnect()) == []
    m.dispatch(UserConnect())
    assert m.dispatch(UserDisconnect()) == []


def test_error_while_connected_tears_down():
    m = connected_machine()
    type_text(m, "abc")
    m.dispatch(DataReceived("partial"))

    effects = m.dispatch(TransportError("device disconnected"))
    assert effects[0] == Close()
    assert m.session.status == Errored("device disconnected")
    assert m.session.log == ["⚠ device disconnected"]
    assert m.session.pending_input == ""
    assert m.session.reassembly_tail == ""

    # the close confirmation keeps the error visible
    m.dispatch(TransportClosed())
    assert m.session.status == Errored("device disconnected")


def test_closed_discards_partial_line():
    m = connected_machine()
    m.dispatch(DataReceived("complete\nincompl"))
    m.dispatch(TransportClosed())
    assert m.session.log == ["complete"]
    assert m.session.reassembly_tail == ""


def test_stale_open_after_error_is_closed():
    m = SessionMachine()
    m.dispatch(UserConnect())
    m.dispatch(TransportError("Timed out opening port"))
    assert m.dispatch(TransportOpened()) == [Close()]
    assert m.session.status == Errored("Timed out opening port")


def test_open_confirmed_while_disconnected_is_released():
    m = SessionMachine()
    assert m.dispatch(TransportOpened()) == [Close()]
    assert m.session.status == Disconnected()


def test_reconnect_before_teardown_confirmed():
    m = connected_machine()
    m.dispatch(TransportError("device disconnected"))
    assert m.session.closing is True

    assert m.dispatch(UserConnect()) == [Open(115200)]
    # the close for the teardown lands while the new open is pending
    assert m.dispatch(TransportClosed()) == []
    assert m.session.status == Connecting()
    assert m.session.closing is False

    assert m.dispatch(TransportOpened()) == [FocusView()]
    assert m.session.connected


def test_teardown_close_failure_clears_closing():
    m = connected_machine()
    m.dispatch(TransportError("device disconnected"))
    m.dispatch(TransportError("I/O error"))
    assert m.session.closing is False
    assert m.session.status == Errored("I/O error")


def test_user_disconnect_is_not_a_teardown():
    m = connected_machine()
    m.dispatch(UserDisconnect())
    assert m.session.closing is False
    m.dispatch(TransportClosed())
    assert m.session.status == Disconnected()


# ---- keystrokes ----

def test_keys_dropped_unless_connected():
    m = SessionMachine()
    assert m.dispatch(KeyPressed("a")) == []
    assert m.session.pending_input == ""

    m.dispatch(UserConnect())
    m.dispatch(KeyPressed("a"))
    assert m.session.pending_input == ""


def test_typing_appends_and_scrolls():
    m = connected_machine()
    assert m.dispatch(KeyPressed("l")) == [ScrollToBottom()]
    m.dispatch(KeyPressed("s"))
    assert m.session.pending_input == "ls"


def test_enter_writes_pending_line():
    m = connected_machine()
    type_text(m, "ls")
    effects = m.dispatch(KeyPressed(ENTER))
    assert effects[0] == Write("ls\n")
    assert m.session.pending_input == ""


def test_enter_with_nothing_typed_sends_newline():
    m = connected_machine()
    assert m.dispatch(KeyPressed(ENTER)) == [Write("\n")]


def test_backspace():
    m = connected_machine()
    type_text(m, "lsx")
    assert m.dispatch(KeyPressed(BACKSPACE)) == [ScrollToBottom()]
    assert m.session.pending_input == "ls"


def test_backspace_on_empty_input_is_noop():
    m = connected_machine()
    assert m.dispatch(KeyPressed(BACKSPACE)) == []
    assert m.session.pending_input == ""


@pytest.mark.parametrize(
    "key",
    [
        KeyPressed("c", ctrl=True),
        KeyPressed("r", meta=True),
        KeyPressed("ArrowUp"),
        KeyPressed("Tab"),
        KeyPressed("Escape"),
        KeyPressed("\x07"),
    ],
)
def test_other_keys_and_modifiers_ignored(key):
    m = connected_machine()
    type_text(m, "ab")
    assert m.dispatch(key) == []
    assert m.session.pending_input == "ab"


def test_unicode_character_accepted():
    m = connected_machine()
    m.dispatch(KeyPressed("é"))
    assert m.session.pending_input == "é"


# ---- baud rate ----

def test_baud_rate_change_when_disconnected():
    m = SessionMachine()
    assert m.dispatch(BaudRateChanged("9600")) == []
    assert m.session.baud_rate == 9600
    m.dispatch(BaudRateChanged(57600))
    assert m.session.baud_rate == 57600


def test_baud_rate_locked_while_connected():
    m = SessionMachine()
    m.dispatch(BaudRateChanged("9600"))
    m.dispatch(UserConnect())
    m.dispatch(BaudRateChanged("19200"))
    assert m.session.baud_rate == 9600

    m.dispatch(TransportOpened())
    m.dispatch(BaudRateChanged("115200"))
    assert m.session.baud_rate == 9600


def test_baud_rate_editable_after_error():
    m = SessionMachine()
    m.dispatch(UserConnect())
    m.dispatch(TransportError("nope"))
    m.dispatch(BaudRateChanged("2400"))
    assert m.session.baud_rate == 2400


@pytest.mark.parametrize("value", ["abc", "", "9601", "-9600", 300, True, "115200.0"])
def test_invalid_baud_rate_ignored(value):
    m = SessionMachine()
    m.dispatch(BaudRateChanged(value))
    assert m.session.baud_rate == 115200


def test_parse_baud_rate():
    assert parse_baud_rate(" 4800 ") == 4800
    assert parse_baud_rate("4800x") is None
    assert all(parse_baud_rate(str(r)) == r for r in BAUD_RATES)


def test_next_baud_rate_wraps():
    assert next_baud_rate(1200) == 2400
    assert next_baud_rate(115200) == 1200
    assert next_baud_rate(12345) == 115200


def test_unsupported_initial_baud_rate():
    with pytest.raises(ValueError):
        SessionMachine(baud_rate=12345)


# ---- inbound data ----

def test_data_produces_lines_and_scroll():
    m = connected_machine()
    assert m.dispatch(DataReceived("hello wor")) == []
    effects = m.dispatch(DataReceived("ld\nfoo\r\nbar"))
    assert effects == [LinesAdded(("hello world", "foo")), ScrollToBottom()]
    assert m.session.reassembly_tail == "bar"


def test_data_ignored_when_not_connected():
    m = SessionMachine()
    assert m.dispatch(DataReceived("x\n")) == []
    assert m.session.log == []


def test_log_cap_includes_error_notices():
    m = connected_machine(log_capacity=3)
    m.dispatch(DataReceived("a\nb\nc\n"))
    m.dispatch(TransportError("gone"))
    assert m.session.log == ["b", "c", "⚠ gone"]


def test_custom_warning_prefix():
    m = SessionMachine(warning_prefix="!! ")
    m.dispatch(UserConnect())
    m.dispatch(TransportError("busy"))
    assert m.session.log == ["!! busy"]


def test_explicit_session_is_used():
    s = Session(baud_rate=4800)
    m = SessionMachine(s)
    assert m.session is s
    assert m.dispatch(UserConnect()) == [Open(4800)]


def test_status_strings():
    assert str(Disconnected()) == "Disconnected"
    assert str(Errored("x")) == "Error: x"

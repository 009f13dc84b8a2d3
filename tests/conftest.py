# tests/conftest.py

import os

import pytest
import pytest_asyncio

from fakes.fake_transport import FakeTransport
from helpers import CapturingBus
from serial_term.core.runtime import TerminalRuntime
from serial_term.core.settings import TerminalSettings


# ============== Fixtures ==============

@pytest.fixture
def bus():
    return CapturingBus()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def settings():
    return TerminalSettings()


@pytest_asyncio.fixture
async def runtime(transport, settings, bus):
    rt = TerminalRuntime(transport, settings, bus=bus)
    await rt.start()
    try:
        yield rt
    finally:
        await rt.stop()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("SERIAL_TERM_PORT", raising=False)
    monkeypatch.delenv("SERIAL_TERM_BAUD", raising=False)


# ============== Pytest Configuration ==============

def pytest_addoption(parser):
    parser.addoption("--serial-port", action="store", default=os.getenv("SERIAL_PORT", ""))
    parser.addoption("--serial-baud", action="store", type=int, default=int(os.getenv("SERIAL_BAUD", "115200")))
    parser.addoption("--run-hil", action="store_true", default=False, help="Run HIL tests")


def pytest_configure(config):
    config.addinivalue_line("markers", "hil: hardware-in-the-loop tests (requires a serial device)")


def pytest_collection_modifyitems(config, items):
    """Skip HIL tests unless --run-hil is specified."""
    if not config.getoption("--run-hil"):
        skip_hil = pytest.mark.skip(reason="Need --run-hil option to run HIL tests")
        for item in items:
            if "hil" in item.keywords:
                item.add_marker(skip_hil)


# ============== HIL Fixtures ==============

@pytest.fixture(scope="session")
def serial_port(request) -> str:
    port = request.config.getoption("--serial-port")
    if not port:
        pytest.skip("Need --serial-port (or SERIAL_PORT) for HIL tests")
    return port


@pytest.fixture(scope="session")
def serial_baud(request) -> int:
    return request.config.getoption("--serial-baud")

"""pytest configuration and fixtures for hartlite tests.

Provides:
- FakeHartPort: In-memory serial port recording writes and RTS/DTR changes
- FakeDevice: Responder playing a HART field device on a FakeHartPort
- session fixtures built on both
- Markers for unit vs integration tests
"""

import threading
from collections.abc import Callable, Generator

import pytest

from common.command import CommandResult, ResponseCode
from common.encoding import encode_response
from common.protocol import LONG_ADDRESS_FLAG, PREAMBLE_BYTE
from session.controller import HartSession

# Zero command response data: expansion, manufacturer, device type,
# preambles, revisions (4), flags, device ID (3)
IDENTITY_DATA = bytes([0xFE, 0x12, 0x34, 0x05, 0x05, 0x01, 0x01, 0x08, 0x00, 0xAA, 0xBB, 0xCC])
DEVICE_ADDRESS = bytes([0x92, 0x34, 0xAA, 0xBB, 0xCC])

# Short enough to keep retry tests fast, long enough for a loaded CI box
TEST_TIMEOUT_S = 0.3

# Device turnaround between RTS release and the first reply byte
REPLY_DELAY_S = 0.01

Responder = Callable[[bytes], bytes | None]


class FakeHartPort:
    """Fake serial port for session tests.

    Every write is recorded and passed to the responder; whatever it
    returns is queued for reading REPLY_DELAY_S after RTS is released, as
    if the device answered once the master stopped transmitting. With echo
    set, written bytes are read back immediately like a modem with local
    echo. read() blocks briefly like a port with a timeout, so it can back
    a serial.threaded.ReaderThread.
    """

    def __init__(self, responder: Responder | None = None, echo: bool = False) -> None:
        self.responder = responder
        self.echo = echo
        self.written: list[bytes] = []
        self.line_events: list[tuple[str, bool]] = []
        self.timeout: float | None = 0.05
        self.is_open = True
        self._rts = False
        self._dtr = True
        self._rx = bytearray()
        self._reply: bytes | None = None
        self._cond = threading.Condition()

    @property
    def rts(self) -> bool:
        return self._rts

    @rts.setter
    def rts(self, value: bool) -> None:
        self._rts = value
        self.line_events.append(("rts", value))
        if not value and self._reply:
            reply, self._reply = self._reply, None
            threading.Timer(REPLY_DELAY_S, self.inject, [reply]).start()

    @property
    def dtr(self) -> bool:
        return self._dtr

    @dtr.setter
    def dtr(self, value: bool) -> None:
        self._dtr = value
        self.line_events.append(("dtr", value))

    def write(self, data: bytes) -> int:
        data = bytes(data)
        self.written.append(data)
        if self.echo:
            self.inject(data)
        if self.responder is not None:
            self._reply = self.responder(data)
        return len(data)

    def inject(self, data: bytes) -> None:
        """Queue data as if received from the device."""
        with self._cond:
            self._rx.extend(data)
            self._cond.notify_all()

    @property
    def in_waiting(self) -> int:
        with self._cond:
            return len(self._rx)

    def read(self, size: int = 1, /) -> bytes:
        with self._cond:
            if not self._rx and self.is_open:
                self._cond.wait(timeout=self.timeout)
            data = bytes(self._rx[:size])
            del self._rx[:size]
            return data

    def cancel_read(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def close(self) -> None:
        with self._cond:
            self.is_open = False
            self._cond.notify_all()


def request_command_number(frame: bytes) -> int:
    """Command number of an encoded request."""
    start = 0
    while frame[start] == PREAMBLE_BYTE:
        start += 1
    address_size = 5 if frame[start] & LONG_ADDRESS_FLAG else 1
    return frame[start + 1 + address_size]


def request_address(frame: bytes) -> bytes:
    """Address field of an encoded request."""
    start = 0
    while frame[start] == PREAMBLE_BYTE:
        start += 1
    address_size = 5 if frame[start] & LONG_ADDRESS_FLAG else 1
    return frame[start + 1 : start + 1 + address_size]


class FakeDevice:
    """Responder answering like a HART device with DEVICE_ADDRESS.

    replies maps command number to response data. A command in
    status_sequence takes its first status byte from the list, one entry
    per request, then falls back to 0x00. silent lists commands that get
    no answer.
    """

    def __init__(
        self,
        replies: dict[int, bytes] | None = None,
        status_sequence: dict[int, list[int]] | None = None,
        silent: set[int] | None = None,
    ) -> None:
        self.replies = {0: IDENTITY_DATA}
        self.replies.update(replies or {})
        self.status_sequence = {k: list(v) for k, v in (status_sequence or {}).items()}
        self.silent = silent or set()
        self.requests: list[bytes] = []

    def __call__(self, frame: bytes) -> bytes | None:
        self.requests.append(frame)
        command_number = request_command_number(frame)
        if command_number in self.silent:
            return None

        sequence = self.status_sequence.get(command_number)
        first_byte = sequence.pop(0) if sequence else 0x00
        address = request_address(frame)
        data = b"" if first_byte & 0x80 else self.replies.get(command_number, b"")
        result = CommandResult(
            command_number=command_number,
            response_code=ResponseCode(first_byte, 0x00),
            data=data,
            address=address,
        )
        return encode_response(result, preamble_length=5)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test (uses pyserial loop://)")


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def fake_port(device: FakeDevice) -> FakeHartPort:
    return FakeHartPort(responder=device)


@pytest.fixture
def session(fake_port: FakeHartPort) -> Generator[HartSession, None, None]:
    """Open HartSession on fake_port, closed after the test."""
    hart = HartSession("fake0", timeout_s=TEST_TIMEOUT_S, opener=lambda name: fake_port)
    hart.open()
    yield hart
    if hart.is_open:
        hart.close()

"""Incremental response frame parser for hartlite.

Contains:
- ParserState: States of the frame state machine
- FrameParser: serial.threaded.Protocol that turns a byte stream into
  CommandResult objects
- parse_frame: Decode a complete frame held in memory

The parser is fed whatever the port delivers, from one byte to many frames
at a time. Every completed frame with a valid check byte is handed to the
on_frame callback, then the parser goes back to looking for a preamble.
Frames with a bad check byte are dropped without notification; the
session's response timeout covers them.
"""

import logging
import threading
from collections.abc import Callable
from enum import Enum, auto

import serial.threaded

from common.command import CommandResult, ResponseCode
from common.encoding import format_bytes
from common.protocol import (
    LONG_ADDRESS_FLAG,
    LONG_ADDRESS_SIZE,
    PREAMBLE_BYTE,
    SHORT_ADDRESS_SIZE,
    STATUS_SIZE,
    TRACE,
    Delimiter,
)

logger = logging.getLogger(__name__)

FrameCallback = Callable[[CommandResult], None]


class ParserState(Enum):
    """Frame state machine states."""

    SEEK_PREAMBLE = auto()
    READ_DELIMITER = auto()
    READ_ADDRESS = auto()
    READ_COMMAND = auto()
    READ_BYTE_COUNT = auto()
    READ_STATUS = auto()
    READ_DATA = auto()
    READ_CHECKSUM = auto()


class FrameParser(serial.threaded.Protocol):
    """State machine decoding response frames from a byte stream.

    Used directly (feed) or as the protocol of a serial.threaded.ReaderThread
    (data_received). reset() may be called from another thread while the
    reader thread is feeding.
    """

    def __init__(self, on_frame: FrameCallback | None = None, port_name: str = "") -> None:
        self.on_frame = on_frame
        self.port_name = port_name
        self._lock = threading.Lock()
        self.reset()

    @property
    def state(self) -> ParserState:
        return self._state

    def reset(self) -> None:
        """Discard any partial frame and wait for the next preamble."""
        with self._lock:
            self._reset()

    def _reset(self) -> None:
        self._state = ParserState.SEEK_PREAMBLE
        self._preamble_length = 0
        self._delimiter = 0
        self._address = bytearray()
        self._address_size = 0
        self._command_number = 0
        self._byte_count = 0
        self._status = bytearray()
        self._data = bytearray()
        self._check = 0

    # serial.threaded.Protocol

    def connection_made(self, transport: serial.threaded.ReaderThread) -> None:
        logger.debug(f"Reader started on {self.port_name}")

    def data_received(self, data: bytes) -> None:
        logger.debug(f"Received data from {self.port_name}: {format_bytes(data)}")
        self.feed(data)

    def connection_lost(self, exc: BaseException | None) -> None:
        if exc is not None:
            logger.warning(f"Reader on {self.port_name} stopped: {exc}")
        else:
            logger.debug(f"Reader on {self.port_name} stopped")

    # State machine

    def feed(self, data: bytes) -> None:
        """Consume bytes, emitting a CommandResult for each completed frame."""
        completed: list[CommandResult] = []
        with self._lock:
            for byte in data:
                result = self._consume(byte)
                if result is not None:
                    completed.append(result)

        # Outside the lock so the callback may reset the parser
        for result in completed:
            if self.on_frame is not None:
                self.on_frame(result)

    def _consume(self, byte: int) -> CommandResult | None:
        state = self._state

        if state is ParserState.SEEK_PREAMBLE:
            if byte == PREAMBLE_BYTE:
                self._preamble_length += 1
                return None
            self._state = ParserState.READ_DELIMITER
            state = ParserState.READ_DELIMITER

        if state is ParserState.READ_DELIMITER:
            self._read_delimiter(byte)
            return None

        self._check ^= byte

        if state is ParserState.READ_ADDRESS:
            self._address.append(byte)
            if len(self._address) == self._address_size:
                self._state = ParserState.READ_COMMAND
        elif state is ParserState.READ_COMMAND:
            self._command_number = byte
            self._state = ParserState.READ_BYTE_COUNT
        elif state is ParserState.READ_BYTE_COUNT:
            if byte < STATUS_SIZE:
                logger.debug(f"Dropping frame with byte count {byte}")
                self._reset()
                return None
            self._byte_count = byte
            self._state = ParserState.READ_STATUS
        elif state is ParserState.READ_STATUS:
            self._status.append(byte)
            if len(self._status) == STATUS_SIZE:
                self._state = (
                    ParserState.READ_DATA
                    if self._byte_count > STATUS_SIZE
                    else ParserState.READ_CHECKSUM
                )
        elif state is ParserState.READ_DATA:
            self._data.append(byte)
            if len(self._data) == self._byte_count - STATUS_SIZE:
                self._state = ParserState.READ_CHECKSUM
        elif state is ParserState.READ_CHECKSUM:
            # XOR over the whole frame including the check byte is zero
            result = self._complete() if self._check == 0 else None
            if result is None:
                logger.debug(f"Dropping frame for command {self._command_number}: check byte mismatch")
            self._reset()
            return result

        return None

    def _read_delimiter(self, byte: int) -> None:
        if byte not in (Delimiter.ACK_SHORT, Delimiter.ACK_LONG):
            logger.log(TRACE, f"Ignoring byte 0x{byte:02X} while seeking a response delimiter")
            self._reset()
            return

        self._delimiter = byte
        self._check = byte
        self._address_size = (
            LONG_ADDRESS_SIZE if byte & LONG_ADDRESS_FLAG else SHORT_ADDRESS_SIZE
        )
        self._state = ParserState.READ_ADDRESS

    def _complete(self) -> CommandResult:
        return CommandResult(
            command_number=self._command_number,
            response_code=ResponseCode.from_bytes(bytes(self._status)),
            data=bytes(self._data),
            address=bytes(self._address),
            delimiter=self._delimiter,
            preamble_length=self._preamble_length,
        )


def parse_frame(data: bytes) -> CommandResult | None:
    """Decode the first valid response frame in data.

    Returns None if data holds no complete frame with a valid check byte.
    """
    frames: list[CommandResult] = []
    FrameParser(frames.append).feed(data)
    return frames[0] if frames else None

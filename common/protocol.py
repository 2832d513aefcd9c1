"""Protocol definitions for hartlite.

Contains:
- Frame delimiters and wire constants
- SerialPort Protocol for type checking
- Half-duplex timing constants and transmit_hold_ms
- Session defaults (overridable from the environment)
- Logging configuration
"""

import logging
import math
import os
from enum import IntEnum
from typing import Protocol

# TRACE logging level (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class Delimiter(IntEnum):
    """Start delimiters used by this master."""

    STX_SHORT = 0x02  # Master to slave, polling address
    STX_LONG = 0x82  # Master to slave, unique address
    ACK_SHORT = 0x06  # Slave to master, polling address
    ACK_LONG = 0x86  # Slave to master, unique address


class SerialPort(Protocol):
    """Protocol for serial port operations needed by the session."""

    rts: bool
    dtr: bool

    def write(self, data: bytes, /) -> int | None: ...
    def read(self, size: int = ..., /) -> bytes: ...
    def close(self) -> None: ...
    @property
    def in_waiting(self) -> int: ...
    @property
    def is_open(self) -> bool: ...


# Wire constants
PREAMBLE_BYTE = 0xFF
LONG_ADDRESS_FLAG = 0x80  # Delimiter bit 7
LONG_ADDRESS_SIZE = 5
SHORT_ADDRESS_SIZE = 1
PRIMARY_MASTER = 0x80  # Address byte 0 bit 7
STATUS_SIZE = 2
MAX_BYTE_COUNT = 0xFF
ZERO_COMMAND = 0

# Line settings (HART FSK modem)
BAUDRATE = 1200

# Half-duplex timing (milliseconds)
KEY_UP_DELAY_MS = 100  # Before asserting RTS
DRIVER_SETTLE_DELAY_MS = 5  # Between RTS and the first byte
BYTE_TRANSMISSION_MS = 9.1525  # Per byte on the wire at 1200 baud
POST_TRANSMIT_GUARD_MS = 50

# Session defaults (configurable via envvars)
DEFAULT_PREAMBLE_LENGTH = int(os.environ.get("HART_PREAMBLE_LENGTH", "10"))
DEFAULT_MAX_RETRIES = int(os.environ.get("HART_MAX_RETRIES", "2"))
DEFAULT_TIMEOUT_S = float(os.environ.get("HART_TIMEOUT_S", "4.0"))


def transmit_hold_ms(byte_count: int) -> int:
    """Time RTS must stay asserted after the write starts, in milliseconds."""
    return math.ceil(BYTE_TRANSMISSION_MS * byte_count) + POST_TRANSMIT_GUARD_MS

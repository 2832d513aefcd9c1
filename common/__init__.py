"""Common modules for hartlite.

This package contains the wire-level definitions shared by the session and
the command line tool:
- protocol: Delimiters, timing constants, session defaults, SerialPort Protocol
- command: Command, ResponseCode, CommunicationFault, CommandResult
- encoding: Frame encoding and check byte
- results: OpenResult, CloseResult and transport exceptions
- device: Serial device setup for HART modems
- report: Reporting abstractions
"""

from common.command import (
    Command,
    CommandResult,
    CommunicationFault,
    ResponseCode,
)
from common.encoding import EncodingError, checksum, encode, encode_response, zero
from common.protocol import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_PREAMBLE_LENGTH,
    DEFAULT_TIMEOUT_S,
    Delimiter,
    SerialPort,
    transmit_hold_ms,
)
from common.results import (
    CloseResult,
    OpenResult,
    ResponseTimeoutError,
    TransportError,
)

__all__ = [
    # Protocol
    "Delimiter",
    "SerialPort",
    "DEFAULT_PREAMBLE_LENGTH",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_TIMEOUT_S",
    "transmit_hold_ms",
    # Commands
    "Command",
    "CommandResult",
    "CommunicationFault",
    "ResponseCode",
    # Encoding
    "checksum",
    "encode",
    "encode_response",
    "zero",
    # Results
    "CloseResult",
    "OpenResult",
    # Exceptions
    "EncodingError",
    "ResponseTimeoutError",
    "TransportError",
]

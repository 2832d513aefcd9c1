"""Frame encoding for hartlite.

Frames on the wire look like:
  [0xFF x preamble][delimiter][address][command][byte count][data][check byte]

The address is 5 bytes in long frames and a single polling-address byte in
short frames. The check byte is the XOR of every byte from the delimiter
through the last data byte.
"""

from functools import reduce
from operator import xor

from common.command import Command, CommandResult
from common.protocol import (
    DEFAULT_PREAMBLE_LENGTH,
    LONG_ADDRESS_SIZE,
    MAX_BYTE_COUNT,
    PREAMBLE_BYTE,
    PRIMARY_MASTER,
    ZERO_COMMAND,
    Delimiter,
)

POLLING_ADDRESS = 0  # Single device on the loop


class EncodingError(Exception):
    """Raised when a command cannot be represented as a frame."""

    pass


def checksum(body: bytes) -> int:
    """Longitudinal parity (XOR) of body."""
    return reduce(xor, body, 0)


def format_bytes(data: bytes) -> str:
    """Format bytes for logging, e.g. FF-FF-82-A6."""
    return data.hex("-").upper()


def _frame(delimiter: int, address: bytes, command_number: int, body: bytes, preamble_length: int) -> bytes:
    if not 0 <= command_number <= 0xFF:
        raise EncodingError(f"Command number {command_number} out of range 0-255")
    if len(body) > MAX_BYTE_COUNT:
        raise EncodingError(f"Data too long: {len(body)} bytes, byte count allows {MAX_BYTE_COUNT}")

    frame = bytes([delimiter]) + address + bytes([command_number, len(body)]) + body
    return bytes([PREAMBLE_BYTE]) * preamble_length + frame + bytes([checksum(frame)])


def _address_field(address: bytes | None, long_delimiter: int, short_delimiter: int) -> tuple[int, bytes]:
    if address is None:
        return short_delimiter, bytes([PRIMARY_MASTER | POLLING_ADDRESS])
    if len(address) != LONG_ADDRESS_SIZE:
        raise EncodingError(f"Address must be {LONG_ADDRESS_SIZE} bytes, got {len(address)}")
    return long_delimiter, bytes(address)


def encode(command: Command) -> bytes:
    """Encode a request frame.

    Commands without an address (the zero command) use a short frame
    addressed to polling address 0 from the primary master.

    Raises:
        EncodingError: If the command number, data length or address cannot
            be framed.
    """
    delimiter, address = _address_field(command.address, Delimiter.STX_LONG, Delimiter.STX_SHORT)
    return _frame(
        delimiter,
        address,
        command.command_number,
        command.status + command.data,
        command.preamble_length,
    )


def encode_response(result: CommandResult, preamble_length: int = DEFAULT_PREAMBLE_LENGTH) -> bytes:
    """Encode a response frame as a field device would send it.

    The byte count covers the two status bytes plus the data.
    """
    delimiter, address = _address_field(
        result.address if result.is_long_frame else None,
        Delimiter.ACK_LONG,
        Delimiter.ACK_SHORT,
    )
    if not result.is_long_frame and result.address:
        address = result.address
    return _frame(
        delimiter,
        address,
        result.command_number,
        bytes(result.response_code) + result.data,
        preamble_length,
    )


def zero(preamble_length: int = DEFAULT_PREAMBLE_LENGTH) -> Command:
    """Build the zero command (Read Unique Identifier) request."""
    return Command(command_number=ZERO_COMMAND, preamble_length=preamble_length)

"""Command and response dataclasses for hartlite.

Contains:
- Command: A request to be framed and sent to a field device
- CommunicationFault: Fault flags of a communication-status byte
- ResponseCode: The two status bytes of a response
- CommandResult: A decoded response frame
"""

from dataclasses import dataclass
from enum import IntFlag

from common.protocol import DEFAULT_PREAMBLE_LENGTH, ZERO_COMMAND

COMMUNICATION_ERROR_FLAG = 0x80
FAULT_MASK = 0x7A  # Bits 6, 5, 4, 3 and 1


class CommunicationFault(IntFlag):
    """Faults a device reports about the request it received."""

    BUFFER_OVERFLOW = 0x02
    LONGITUDINAL_PARITY = 0x08
    FRAMING = 0x10
    OVERRUN = 0x20
    PARITY = 0x40


FAULT_DESCRIPTIONS = {
    CommunicationFault.PARITY: (
        "Vertical Parity Error - The parity of one or more of the bytes "
        "received by the device was not odd."
    ),
    CommunicationFault.OVERRUN: (
        "Overrun Error - At least one byte of data in the receive buffer of "
        "the UART was overwritten before it was read."
    ),
    CommunicationFault.FRAMING: (
        "Framing Error - The Stop Bit of one or more bytes received by the "
        "device was not detected by the UART."
    ),
    CommunicationFault.LONGITUDINAL_PARITY: (
        "Longitudinal Parity Error - The Longitudinal Parity calculated by "
        "the device did not match the Check Byte at the end of the message."
    ),
    CommunicationFault.BUFFER_OVERFLOW: (
        "Buffer Overflow - The message was too long for the receive buffer "
        "of the device."
    ),
}


@dataclass(frozen=True)
class Command:
    """A request frame before encoding."""

    command_number: int
    data: bytes = b""
    address: bytes | None = None  # 5-byte unique address, None for short frames
    preamble_length: int = DEFAULT_PREAMBLE_LENGTH
    status: bytes = b""  # Reserved, empty on requests

    @property
    def is_zero(self) -> bool:
        return self.command_number == ZERO_COMMAND


@dataclass(frozen=True)
class ResponseCode:
    """The two status bytes that open every response's data field.

    When bit 7 of first_byte is set the byte is a communication-status byte
    and its remaining bits flag line-level faults. Otherwise first_byte is
    the command-specific response code. second_byte is the field device
    status.
    """

    first_byte: int
    second_byte: int

    @classmethod
    def from_bytes(cls, status: bytes) -> "ResponseCode":
        return cls(first_byte=status[0], second_byte=status[1])

    @property
    def is_communication_error(self) -> bool:
        return bool(self.first_byte & COMMUNICATION_ERROR_FLAG)

    @property
    def faults(self) -> CommunicationFault:
        """Fault flags, empty unless this is a communication-status byte."""
        if not self.is_communication_error:
            return CommunicationFault(0)
        return CommunicationFault(self.first_byte & FAULT_MASK)

    def __bytes__(self) -> bytes:
        return bytes([self.first_byte, self.second_byte])


@dataclass(frozen=True)
class CommandResult:
    """A response frame decoded by the stream parser."""

    command_number: int
    response_code: ResponseCode
    data: bytes = b""  # Payload after the two status bytes
    address: bytes = b""
    delimiter: int = 0
    preamble_length: int = 0  # Preamble bytes seen before the delimiter

    @property
    def is_long_frame(self) -> bool:
        return len(self.address) == 5

    def __repr__(self) -> str:
        return (
            f"CommandResult(command={self.command_number}, "
            f"address={self.address.hex() or '(none)'}, "
            f"status={bytes(self.response_code).hex()}, "
            f"data={self.data.hex(' ') if self.data else '(empty)'})"
        )

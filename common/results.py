"""Port results and transport exceptions for hartlite.

Contains:
- OpenResult: Outcome of opening a session's port
- CloseResult: Outcome of closing a session's port
- TransportError: Exception for I/O failures during an exchange
- ResponseTimeoutError: Exception for an expired response wait
"""

from enum import IntEnum


class OpenResult(IntEnum):
    """Outcome of HartSession.open()."""

    OPENED = 0
    COM_PORT_NOT_EXISTING = 1
    COM_PORT_ALREADY_OPEN = 2
    UNKNOWN_ERROR = 3


class CloseResult(IntEnum):
    """Outcome of HartSession.close()."""

    CLOSED = 0
    PORT_NOT_OPEN = 1


class TransportError(Exception):
    """Raised when an exchange cannot use the port (not open, write failed)."""

    pass


class ResponseTimeoutError(TransportError):
    """Raised when no valid response frame arrives before the deadline."""

    pass

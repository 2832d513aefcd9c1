"""HART master session for hartlite.

Contains HartSession, which owns the serial port and runs the
request/response protocol:

  1. Reset the parser and arm a single-slot response channel
  2. Key the modem (RTS on, DTR off), write the frame, hold RTS for the wire
     time of the frame plus a guard band, then return to receive mode
  3. Wait for the parser to deliver a response, up to timeout_s
  4. Retry on timeout, communication error or unexpected fault until the
     retry budget is spent

Inbound bytes are delivered by a serial.threaded.ReaderThread into the
FrameParser, which calls back into the session on that thread. The
response channel is the only hand-off between the two threads; exactly one
request is in flight at any time.
"""

import errno
import logging
import queue
import time
from collections.abc import Callable

import serial.threaded

from common.command import FAULT_DESCRIPTIONS, Command, CommandResult
from common.device import open_hart_serial
from common.encoding import encode, format_bytes, zero
from common.protocol import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_PREAMBLE_LENGTH,
    DEFAULT_TIMEOUT_S,
    DRIVER_SETTLE_DELAY_MS,
    KEY_UP_DELAY_MS,
    PRIMARY_MASTER,
    ZERO_COMMAND,
    SerialPort,
    transmit_hold_ms,
)
from common.results import CloseResult, OpenResult, ResponseTimeoutError, TransportError
from session.parser import FrameParser
from session.stats import ExchangeStats

logger = logging.getLogger(__name__)

# Minimum data length of a zero command response carrying the unique ID
IDENTITY_DATA_SIZE = 12

_NOT_EXISTING_ERRNOS = {errno.ENOENT, errno.ENODEV, errno.ENXIO}
_IN_USE_ERRNOS = {errno.EACCES, errno.EBUSY}

PortOpener = Callable[[str], SerialPort]


def classify_open_error(exc: BaseException) -> OpenResult:
    """Map an exception raised while opening a port to an OpenResult."""
    code = getattr(exc, "errno", None)
    # pyserial on Windows only carries the OS error in the message
    text = str(exc)
    if isinstance(exc, FileNotFoundError) or code in _NOT_EXISTING_ERRNOS or "FileNotFoundError" in text:
        return OpenResult.COM_PORT_NOT_EXISTING
    if isinstance(exc, PermissionError) or code in _IN_USE_ERRNOS or "PermissionError" in text:
        return OpenResult.COM_PORT_ALREADY_OPEN
    return OpenResult.UNKNOWN_ERROR


def learn_address(result: CommandResult) -> bytes | None:
    """Extract the 5-byte unique address from a zero command response.

    Returns None if the response is too short to carry one.
    """
    data = result.data
    if len(data) < IDENTITY_DATA_SIZE:
        return None
    return bytes([data[1] | PRIMARY_MASTER, data[2], data[9], data[10], data[11]])


class HartSession:
    """Master side of a point-to-point HART connection."""

    def __init__(
        self,
        port_name: str,
        max_retries: int = DEFAULT_MAX_RETRIES,
        *,
        preamble_length: int = DEFAULT_PREAMBLE_LENGTH,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        automatic_zero_command: bool = True,
        opener: PortOpener | None = None,
    ) -> None:
        self.port_name = port_name
        self.max_retries = max_retries
        self.preamble_length = preamble_length
        self.timeout_s = timeout_s
        self.automatic_zero_command = automatic_zero_command
        self.stats = ExchangeStats()

        self._opener = opener
        self._port: SerialPort | None = None
        self._reader: serial.threaded.ReaderThread | None = None
        self._parser = FrameParser(port_name=port_name)
        self._pending: queue.Queue[CommandResult] | None = None
        self._current_address: bytes | None = None
        self._zero_command_executed = False

    @property
    def port(self) -> SerialPort | None:
        """The underlying serial port, None while closed."""
        return self._port

    @property
    def is_open(self) -> bool:
        return self._reader is not None

    @property
    def current_address(self) -> bytes | None:
        """Unique address learned from the last zero command response."""
        return self._current_address

    @property
    def zero_command_executed(self) -> bool:
        return self._zero_command_executed

    # -------------------------------------------------------------------------
    # Port lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> OpenResult:
        """Open the port in receive mode and start delivering inbound bytes."""
        if self._reader is not None:
            logger.warning(f"Cannot open {self.port_name}: session already open")
            return OpenResult.COM_PORT_ALREADY_OPEN

        opener = self._opener or open_hart_serial
        try:
            port = opener(self.port_name)
        except Exception as e:
            result = classify_open_error(e)
            logger.warning(f"Cannot open {self.port_name} ({result.name}): {e}")
            return result

        self._parser.on_frame = self._frame_complete
        reader = serial.threaded.ReaderThread(port, lambda: self._parser)
        reader.start()
        try:
            reader.connect()
        except RuntimeError as e:
            logger.warning(f"Cannot start reader on {self.port_name}: {e}")
            self._parser.on_frame = None
            reader.close()
            return OpenResult.UNKNOWN_ERROR

        self._port = port
        self._reader = reader
        logger.info(f"Opened {self.port_name}")
        return OpenResult.OPENED

    def close(self) -> CloseResult:
        """Stop the reader and release the port.

        Must not be called while send() is running on another thread.
        """
        if self._reader is None:
            logger.warning(f"Cannot close {self.port_name}: port is not open")
            return CloseResult.PORT_NOT_OPEN

        reader = self._reader
        self._parser.on_frame = None
        self._reader = None
        self._port = None
        self._current_address = None
        self._zero_command_executed = False
        reader.close()
        logger.info(f"Closed {self.port_name}")
        return CloseResult.CLOSED

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def send(self, command_number: int, data: bytes = b"") -> CommandResult | None:
        """Send a command and wait for its response.

        With automatic_zero_command set, the first non-zero command of a
        session is preceded by a zero command so the device's unique
        address is known.

        Returns:
            The response (possibly carrying a communication error once
            retries are exhausted), or None if no valid response arrived.

        Raises:
            EncodingError: If the command cannot be framed.
        """
        if (
            self.automatic_zero_command
            and command_number != ZERO_COMMAND
            and not self._zero_command_executed
        ):
            self.send_zero()

        command = Command(
            command_number=command_number,
            data=bytes(data),
            address=self._current_address,
            preamble_length=self.preamble_length,
        )
        return self._execute(command)

    def send_zero(self) -> CommandResult | None:
        """Send the zero command in short frame format and learn the address."""
        return self._execute(zero(self.preamble_length))

    def _execute(self, command: Command) -> CommandResult | None:
        frame = encode(command)
        retries_left = self.max_retries

        while True:
            result: CommandResult | None = None
            try:
                result = self._exchange(frame)
            except ResponseTimeoutError as e:
                self.stats.timeouts += 1
                logger.warning(f"Command {command.command_number}: {e}")
            except TransportError as e:
                self.stats.unexpected_errors += 1
                logger.warning(f"Command {command.command_number}: {e}")
            except Exception as e:
                self.stats.unexpected_errors += 1
                logger.warning(f"Command {command.command_number}: exchange failed: {e}", exc_info=True)
            else:
                if not result.response_code.is_communication_error:
                    return result
                self.stats.communication_errors += 1
                self._log_communication_error(result)

            if retries_left <= 0:
                if result is None:
                    logger.warning(
                        f"Command {command.command_number}: no response after "
                        f"{self.max_retries + 1} attempts"
                    )
                return result
            retries_left -= 1
            logger.debug(f"Command {command.command_number}: retrying ({retries_left} retries left)")

    def _exchange(self, frame: bytes) -> CommandResult:
        """Run one request/response attempt.

        Raises:
            TransportError: If the port is not open.
            ResponseTimeoutError: If no response arrives within timeout_s.
        """
        port = self._port
        if port is None:
            raise TransportError(f"Port {self.port_name} is not open")

        pending: queue.Queue[CommandResult] = queue.Queue(maxsize=1)
        self._parser.reset()
        self._pending = pending
        try:
            self._transmit(port, frame)
            # Anything parsed while RTS was held is our own echo
            self._parser.reset()
            try:
                echoed = pending.get_nowait()
            except queue.Empty:
                pass
            else:
                logger.debug(f"Discarding frame received while transmitting: {echoed!r}")
            try:
                return pending.get(timeout=self.timeout_s)
            except queue.Empty:
                raise ResponseTimeoutError(
                    f"no response from {self.port_name} within {self.timeout_s}s"
                ) from None
        finally:
            self._pending = None

    def _transmit(self, port: SerialPort, frame: bytes) -> None:
        """Write a frame with half-duplex turnaround timing."""
        time.sleep(KEY_UP_DELAY_MS / 1000)
        port.dtr = False
        port.rts = True
        try:
            time.sleep(DRIVER_SETTLE_DELAY_MS / 1000)
            start = time.monotonic()
            logger.debug(f"Data sent to {self.port_name}: {format_bytes(frame)}")
            port.write(frame)
            self.stats.transmitted += 1

            remaining = transmit_hold_ms(len(frame)) / 1000 - (time.monotonic() - start)
            if remaining > 0:
                time.sleep(remaining)
        finally:
            port.rts = False
            port.dtr = True

    def _log_communication_error(self, result: CommandResult) -> None:
        logger.warning(
            f"Communication error on command {result.command_number}. "
            f"First bit of response code byte is set "
            f"(0x{result.response_code.first_byte:02X})."
        )
        faults = result.response_code.faults
        for fault, description in FAULT_DESCRIPTIONS.items():
            if fault in faults:
                logger.warning(description)

    # -------------------------------------------------------------------------
    # Reader thread callbacks
    # -------------------------------------------------------------------------

    def _frame_complete(self, result: CommandResult) -> None:
        """Handle a decoded frame on the reader thread. Must not raise."""
        self.stats.received += 1

        if result.command_number == ZERO_COMMAND:
            address = learn_address(result)
            if address is None:
                logger.warning(
                    f"Zero command response too short for a unique ID: {len(result.data)} bytes"
                )
            else:
                self._current_address = address
                self._zero_command_executed = True
                logger.debug(f"Learned unique address {format_bytes(address)}")

        pending = self._pending
        if pending is None:
            logger.debug(f"Discarding unsolicited response to command {result.command_number}")
            return
        try:
            pending.put_nowait(result)
        except queue.Full:
            logger.debug(f"Discarding extra response to command {result.command_number}")

"""Serial device setup for hartlite.

Contains:
- open_hart_serial: Open a serial port with HART line settings
- list_serial_ports: Enumerate available serial ports
"""

import logging

import serial
import serial.tools.list_ports

from common.protocol import BAUDRATE

logger = logging.getLogger(__name__)

# Read timeout used by the reader thread between cancel_read() checks
READ_TIMEOUT_S = 0.1


def list_serial_ports() -> list[tuple[str, str]]:
    """Return (device, description) for every serial port on the system."""
    return sorted((p.device, p.description) for p in serial.tools.list_ports.comports())


def open_hart_serial(device: str) -> serial.Serial:
    """Open and configure a serial port for a HART modem.

    1200 baud, 8 data bits, odd parity, 1 stop bit. The modem is left in
    receive mode (RTS off, DTR on) before the port is opened, so the lines
    never glitch into transmit. Accepts pyserial URLs such as ``loop://``.

    Raises:
        serial.SerialException: If the port cannot be opened.
    """
    ser = serial.serial_for_url(
        device,
        do_not_open=True,
        baudrate=BAUDRATE,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_ODD,
        stopbits=serial.STOPBITS_ONE,
        xonxoff=False,
        rtscts=False,
        timeout=READ_TIMEOUT_S,
        write_timeout=2.0,
    )
    ser.rts = False
    ser.dtr = True
    ser.open()
    ser.reset_input_buffer()
    logger.debug(
        f"Serial port: baudrate={ser.baudrate}, parity={ser.parity}, "
        f"bytesize={ser.bytesize}, stopbits={ser.stopbits}"
    )
    if "://" not in device:
        description = dict(list_serial_ports()).get(device, "not in port list")
        logger.info(f"HART modem on {device} ({description})")
    return ser

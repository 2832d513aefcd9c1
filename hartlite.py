#!/usr/bin/env python3
"""Send a single HART command from the command line."""

import argparse
import logging
import sys
from enum import IntEnum

from common.device import list_serial_ports
from common.encoding import EncodingError
from common.protocol import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_PREAMBLE_LENGTH,
    DEFAULT_TIMEOUT_S,
    TRACE,
    ZERO_COMMAND,
)
from common.report import PortReport
from common.results import OpenResult
from session.controller import HartSession
from session.report import CommandReport

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Exit codes for the command line tool."""

    SUCCESS = 0  # Response received without communication error
    OPEN_FAILED = 1  # Port could not be opened
    NO_RESPONSE = 2  # Retries exhausted without a valid frame
    COMMUNICATION_ERROR = 3  # Device reported a line fault on every attempt
    INVALID_ARGUMENTS = 4


def _parse_data(text: str) -> bytes:
    """Parse hex data such as '01 02 ff' or '0102ff'."""
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid hex data: {text!r}")


def _command_number(text: str) -> int:
    value = int(text, 0)
    if not 0 <= value <= 0xFF:
        raise argparse.ArgumentTypeError(f"Command number {value} out of range 0-255")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Send a HART command through a HART modem",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --list-ports                    List serial ports
  %(prog)s -d /dev/ttyUSB0                 Read unique identifier (command 0)
  %(prog)s -d /dev/ttyUSB0 -c 1            Read primary variable
  %(prog)s -d COM3 -c 6 --data 05          Write polling address 5
""",
    )
    parser.add_argument(
        "-d", "--device", type=str, help="Serial device path or pyserial URL (e.g., /dev/ttyUSB0)"
    )
    parser.add_argument(
        "-c",
        "--command",
        type=_command_number,
        default=ZERO_COMMAND,
        help="Command number, 0-255 (default: 0)",
    )
    parser.add_argument(
        "--data", type=_parse_data, default=b"", help="Request data as hex (default: none)"
    )
    parser.add_argument(
        "-p",
        "--preambles",
        type=int,
        default=DEFAULT_PREAMBLE_LENGTH,
        help=f"Preamble length (default: {DEFAULT_PREAMBLE_LENGTH})",
    )
    parser.add_argument(
        "-r",
        "--retries",
        type=int,
        default=DEFAULT_MAX_RETRIES,
        help=f"Retries after a failed attempt (default: {DEFAULT_MAX_RETRIES})",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_S,
        help=f"Response timeout in seconds (default: {DEFAULT_TIMEOUT_S})",
    )
    parser.add_argument(
        "--no-auto-zero",
        action="store_true",
        help="Do not send command 0 before the first command",
    )
    parser.add_argument("--list-ports", action="store_true", help="List serial ports and exit")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="-v for debug, -vv for trace logging"
    )
    return parser


def run_command(session: HartSession, command_number: int, data: bytes) -> int:
    """Open the session, send one command and report. Returns exit code."""
    open_result = session.open()
    port_report = PortReport(device=session.port_name, result=open_result)
    port_report.print()
    if open_result != OpenResult.OPENED:
        return ExitCode.OPEN_FAILED

    try:
        if command_number == ZERO_COMMAND:
            result = session.send_zero()
        else:
            result = session.send(command_number, data)
    except EncodingError as e:
        logger.error(f"Cannot encode command: {e}")
        return ExitCode.INVALID_ARGUMENTS
    finally:
        address = session.current_address
        session.close()

    report = CommandReport(
        command_number=command_number,
        result=result,
        stats=session.stats,
        address=address,
    )
    report.print()

    if result is None:
        return ExitCode.NO_RESPONSE
    if not report.success():
        return ExitCode.COMMUNICATION_ERROR
    return ExitCode.SUCCESS


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = {0: logging.INFO, 1: logging.DEBUG}.get(args.verbose, TRACE)
    logging.basicConfig(level=level)

    if args.list_ports:
        for device, description in list_serial_ports():
            print(f"{device}\t{description}")
        return ExitCode.SUCCESS

    if not args.device:
        parser.print_help()
        return ExitCode.INVALID_ARGUMENTS

    if args.command == ZERO_COMMAND and args.data:
        logger.error("Command 0 takes no request data")
        return ExitCode.INVALID_ARGUMENTS

    session = HartSession(
        args.device,
        args.retries,
        preamble_length=args.preambles,
        timeout_s=args.timeout,
        automatic_zero_command=not args.no_auto_zero,
    )
    return run_command(session, args.command, args.data)


if __name__ == "__main__":
    sys.exit(main())

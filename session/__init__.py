"""HART master session package for hartlite.

This package runs the command/response protocol on top of common/:
- Incremental response frame parsing
- Half-duplex transmit timing
- Retries on timeout and communication errors
- Unique address learning from the zero command
"""

from session.controller import HartSession, classify_open_error, learn_address
from session.parser import FrameParser, ParserState, parse_frame
from session.report import CommandReport
from session.stats import ExchangeStats

__all__ = [
    "CommandReport",
    "ExchangeStats",
    "FrameParser",
    "HartSession",
    "ParserState",
    "classify_open_error",
    "learn_address",
    "parse_frame",
]

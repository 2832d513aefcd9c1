"""Command reporting for hartlite.

Contains:
- CommandReport: Report after a command exchange completes
"""

from dataclasses import dataclass

from common.command import FAULT_DESCRIPTIONS, CommandResult
from common.encoding import format_bytes
from common.report import Report
from session.stats import ExchangeStats


@dataclass
class CommandReport(Report):
    """Report after a command exchange completes."""

    command_number: int
    result: CommandResult | None
    stats: ExchangeStats
    address: bytes | None = None

    def print(self) -> None:
        """Print the command report."""
        r = self.result
        s = self.stats

        if r is None:
            print(f"Command {self.command_number}: NO RESPONSE")
        elif r.response_code.is_communication_error:
            print(
                f"Command {self.command_number}: COMMUNICATION ERROR "
                f"(status=0x{r.response_code.first_byte:02X})"
            )
            for fault, description in FAULT_DESCRIPTIONS.items():
                if fault in r.response_code.faults:
                    print(f"  {description}")
        else:
            print(
                f"Command {self.command_number}: SUCCESS "
                f"(response code={r.response_code.first_byte}, "
                f"device status=0x{r.response_code.second_byte:02X})"
            )
            print(f"Data: {format_bytes(r.data) if r.data else '(empty)'}")

        if self.address is not None:
            print(f"Address: {format_bytes(self.address)}")

        print(
            f"Exchanges: {s.transmitted} sent, {s.received} received, "
            f"{s.timeouts} timeouts, {s.communication_errors} communication errors"
        )

    def success(self) -> bool:
        """Return True if a response without communication error arrived."""
        return self.result is not None and not self.result.response_code.is_communication_error

"""Exchange statistics for hartlite.

Contains:
- ExchangeStats: Counters accumulated by a HartSession
"""

from dataclasses import dataclass


@dataclass
class ExchangeStats:
    """Per-session exchange counters.

    Checksum failures are not counted separately; a dropped frame shows up
    as a timeout.
    """

    transmitted: int = 0  # Frames written, including retries
    received: int = 0  # Valid frames decoded by the parser
    timeouts: int = 0
    communication_errors: int = 0
    unexpected_errors: int = 0

    @property
    def failed_attempts(self) -> int:
        return self.timeouts + self.communication_errors + self.unexpected_errors

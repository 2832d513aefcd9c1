"""Reporting abstractions for hartlite.

Contains:
- Report ABC: Base class for all reports
- PortReport: Report after opening a port
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from common.results import OpenResult


class Report(ABC):
    """Abstract base class for command line reports."""

    @abstractmethod
    def print(self) -> None:
        """Print the report to stdout."""
        pass

    @abstractmethod
    def success(self) -> bool:
        """Return True if the report indicates success."""
        pass


@dataclass
class PortReport(Report):
    """Report after trying to open a port."""

    device: str
    result: OpenResult

    def print(self) -> None:
        if self.success():
            print(f"Port: OPENED ({self.device})")
        else:
            print(f"Port: FAILED ({self.device}: {self.result.name})")

    def success(self) -> bool:
        return self.result == OpenResult.OPENED

"""Directory lookup port (abstract interface).

Searches the lodge/organisation directory so an attendee's affiliation can be
filled in. Rows only ever populate attendee fields; they never take part in
the registration's invariants.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class DirectoryRow:
    """One lodge as listed in the directory."""

    grand_lodge_id: str
    lodge_id: str | None = None
    lodge_name: str | None = None
    lodge_number: str | None = None
    grand_lodge_name: str | None = None
    country: str | None = None

    @property
    def display_name(self) -> str:
        if self.lodge_name and self.lodge_number:
            return f"{self.lodge_name} No. {self.lodge_number}"
        return self.lodge_name or self.grand_lodge_name or self.grand_lodge_id


class DirectoryService(ABC):
    """Abstract directory search interface."""

    @abstractmethod
    def search(self, term: str, scope_hints: dict | None = None) -> list[DirectoryRow]:
        """Return rows matching ``term``, narrowed by hints such as ``grand_lodge_id`` or ``country``."""
        ...

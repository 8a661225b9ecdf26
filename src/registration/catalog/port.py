"""Catalog fetch port (abstract interface).

The registration engine fetches a function's sellable tickets and packages
once per registration through this contract and feeds them into the
``CatalogCache``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CatalogResult:
    """Raw catalog entries as returned by the catalog service."""

    tickets: list[dict] = field(default_factory=list)
    packages: list[dict] = field(default_factory=list)
    function: dict | None = None


class CatalogService(ABC):
    """Abstract catalog fetch interface."""

    @abstractmethod
    def fetch_catalog(self, event_id: str) -> CatalogResult:
        """Return the tickets, packages and function details for ``event_id``."""
        ...

"""In-memory catalog service for development and testing.

Serves whatever catalogs were registered with ``add_catalog`` and records
every fetch in ``calls``. Can be configured to fail, to exercise the
orchestrator's handling of an unavailable catalog.
"""

from registration.catalog.port import CatalogResult, CatalogService


class FakeCatalogService(CatalogService):
    """Configurable fake catalog service."""

    def __init__(self) -> None:
        self.catalogs: dict[str, CatalogResult] = {}
        self.should_succeed: bool = True
        self.failure_reason: str = "Catalog service unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Catalog service unavailable") -> None:
        """Configure service behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def add_catalog(
        self,
        event_id: str,
        tickets: list[dict],
        packages: list[dict] | None = None,
        function: dict | None = None,
    ) -> None:
        self.catalogs[event_id] = CatalogResult(tickets=list(tickets), packages=list(packages or []), function=function)

    def fetch_catalog(self, event_id: str) -> CatalogResult:
        self.calls.append({"method": "fetch_catalog", "event_id": event_id})

        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)
        return self.catalogs.get(event_id, CatalogResult())

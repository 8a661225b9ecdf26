"""In-memory directory service for development and testing."""

from registration.directory.port import DirectoryRow, DirectoryService


class FakeDirectoryService(DirectoryService):
    """Matches the search term against lodge names and numbers, case-insensitively."""

    def __init__(self, rows: list[DirectoryRow] | None = None, limit: int = 20) -> None:
        self.rows: list[DirectoryRow] = list(rows or [])
        self.limit = limit
        self.calls: list[dict] = []

    def add_row(self, row: DirectoryRow) -> None:
        self.rows.append(row)

    def search(self, term: str, scope_hints: dict | None = None) -> list[DirectoryRow]:
        scope_hints = scope_hints or {}
        self.calls.append({"method": "search", "term": term, "scope_hints": dict(scope_hints)})

        needle = (term or "").strip().lower()
        matches = []
        for row in self.rows:
            if any(getattr(row, hint, None) != value for hint, value in scope_hints.items()):
                continue
            haystack = " ".join(filter(None, (row.lodge_name, row.lodge_number, row.grand_lodge_name))).lower()
            if needle in haystack:
                matches.append(row)
        return matches[: self.limit]

"""Directory service factory, selected by the DIRECTORY_ADAPTER environment variable."""

import os

from registration.directory.port import DirectoryService

_current_service: DirectoryService | None = None


def get_directory_service() -> DirectoryService:
    """Return the configured directory service (singleton). Uses FakeDirectoryService by default."""
    global _current_service
    if _current_service is None:
        adapter = os.environ.get("DIRECTORY_ADAPTER", "fake")
        if adapter == "fake":
            from registration.directory.fake_adapter import FakeDirectoryService

            _current_service = FakeDirectoryService()
        else:
            raise ValueError(f"Unknown directory adapter: {adapter}")
    return _current_service


def set_directory_service(service: DirectoryService) -> None:
    global _current_service
    _current_service = service


def reset_directory_service() -> None:
    global _current_service
    _current_service = None

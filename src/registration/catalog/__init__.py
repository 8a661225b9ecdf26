"""Catalog service factory.

Provides get_catalog_service() / set_catalog_service() / reset_catalog_service().
The adapter is chosen by the CATALOG_ADAPTER environment variable and
defaults to the in-memory FakeCatalogService.
"""

import os

from registration.catalog.port import CatalogService

_current_service: CatalogService | None = None


def get_catalog_service() -> CatalogService:
    """Return the configured catalog service (singleton)."""
    global _current_service
    if _current_service is None:
        adapter = os.environ.get("CATALOG_ADAPTER", "fake")
        if adapter == "fake":
            from registration.catalog.fake_adapter import FakeCatalogService

            _current_service = FakeCatalogService()
        else:
            raise ValueError(f"Unknown catalog adapter: {adapter}")
    return _current_service


def set_catalog_service(service: CatalogService) -> None:
    """Override the active catalog service (useful for tests)."""
    global _current_service
    _current_service = service


def reset_catalog_service() -> None:
    """Reset to the configured default."""
    global _current_service
    _current_service = None

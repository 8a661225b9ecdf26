"""Tests for the collaborator factories and fake adapters."""

import pytest
from registration.catalog import get_catalog_service, reset_catalog_service, set_catalog_service
from registration.catalog.fake_adapter import FakeCatalogService
from registration.directory import get_directory_service, set_directory_service
from registration.directory.fake_adapter import FakeDirectoryService
from registration.directory.port import DirectoryRow
from registration.drafts import get_draft_store
from registration.drafts.fake_adapter import InMemoryDraftStore
from registration.payment import get_payment_service, reset_payment_service
from registration.payment.fake_adapter import FakePaymentService

LODGES = [
    DirectoryRow(
        grand_lodge_id="gl-nsw",
        lodge_id="lodge-42",
        lodge_name="Lodge Harmony",
        lodge_number="42",
        grand_lodge_name="United Grand Lodge of NSW & ACT",
        country="AU",
    ),
    DirectoryRow(
        grand_lodge_id="gl-nsw",
        lodge_id="lodge-7",
        lodge_name="Lodge Concord",
        lodge_number="7",
        country="AU",
    ),
    DirectoryRow(
        grand_lodge_id="gl-nz",
        lodge_id="lodge-nz-1",
        lodge_name="Lodge Harmony",
        lodge_number="1",
        country="NZ",
    ),
]


class TestFactories:
    def test_defaults_are_fakes(self):
        assert isinstance(get_catalog_service(), FakeCatalogService)
        assert isinstance(get_payment_service(), FakePaymentService)
        assert isinstance(get_directory_service(), FakeDirectoryService)
        assert isinstance(get_draft_store(), InMemoryDraftStore)

    def test_factory_returns_singleton(self):
        assert get_payment_service() is get_payment_service()

    def test_set_overrides(self):
        service = FakeCatalogService()
        set_catalog_service(service)
        assert get_catalog_service() is service

    def test_unknown_adapter_rejected(self, monkeypatch):
        reset_catalog_service()
        monkeypatch.setenv("CATALOG_ADAPTER", "carrier-pigeon")
        with pytest.raises(ValueError):
            get_catalog_service()

    def test_reset_returns_to_default(self):
        first = get_payment_service()
        reset_payment_service()
        assert get_payment_service() is not first


class TestFakeCatalogService:
    def test_fetch_registered_catalog(self, fake_catalog_service):
        result = fake_catalog_service.fetch_catalog("fn-gi-2026")
        assert len(result.tickets) == 4
        assert len(result.packages) == 2
        assert fake_catalog_service.calls == [{"method": "fetch_catalog", "event_id": "fn-gi-2026"}]

    def test_unknown_event_is_empty(self, fake_catalog_service):
        result = fake_catalog_service.fetch_catalog("other")
        assert result.tickets == []

    def test_configured_failure(self, fake_catalog_service):
        fake_catalog_service.configure(should_succeed=False, failure_reason="Timeout")
        with pytest.raises(ConnectionError, match="Timeout"):
            fake_catalog_service.fetch_catalog("fn-gi-2026")


class TestFakePaymentService:
    def test_create_intent(self, fake_payment_service):
        result = fake_payment_service.create_intent(41000, "AUD", "draft_1_abc")
        assert result.success is True
        assert result.client_secret.startswith(result.intent_id)

    def test_same_key_same_intent(self, fake_payment_service):
        first = fake_payment_service.create_intent(41000, "AUD", "draft_1_abc")
        second = fake_payment_service.create_intent(41000, "AUD", "draft_1_abc")
        assert first.intent_id == second.intent_id
        assert len(fake_payment_service.calls) == 2

    def test_changed_amount_new_intent(self, fake_payment_service):
        first = fake_payment_service.create_intent(41000, "AUD", "draft_1_abc")
        second = fake_payment_service.create_intent(45000, "AUD", "draft_1_abc")
        assert first.intent_id != second.intent_id

    def test_configured_failure(self, fake_payment_service):
        fake_payment_service.configure(should_succeed=False)
        result = fake_payment_service.create_intent(41000, "AUD", "draft_1_abc")
        assert result.success is False
        assert result.failure_reason == "Card declined"


class TestFakeDirectoryService:
    def test_search_is_case_insensitive(self):
        service = FakeDirectoryService(LODGES)
        assert len(service.search("harmony")) == 2

    def test_search_by_number(self):
        service = FakeDirectoryService(LODGES)
        assert [row.lodge_id for row in service.search("7")] == ["lodge-7"]

    def test_scope_hints_narrow_results(self):
        service = FakeDirectoryService(LODGES)
        rows = service.search("Harmony", {"country": "NZ"})
        assert [row.lodge_id for row in rows] == ["lodge-nz-1"]

    def test_limit(self):
        service = FakeDirectoryService(LODGES, limit=1)
        assert len(service.search("lodge")) == 1

    def test_display_name(self):
        assert LODGES[0].display_name == "Lodge Harmony No. 42"
        assert DirectoryRow(grand_lodge_id="gl-x", grand_lodge_name="Grand Lodge X").display_name == "Grand Lodge X"

    def test_set_directory_service(self):
        service = FakeDirectoryService(LODGES)
        set_directory_service(service)
        assert get_directory_service().search("Concord")[0].lodge_number == "7"


class TestInMemoryDraftStore:
    def test_save_load_delete(self):
        store = InMemoryDraftStore()
        store.save("draft_1_abc", {"draft_id": "draft_1_abc", "attendees": []})
        assert store.load("draft_1_abc") == {"draft_id": "draft_1_abc", "attendees": []}
        store.delete("draft_1_abc")
        assert store.load("draft_1_abc") is None

    def test_load_returns_copy(self):
        store = InMemoryDraftStore()
        store.save("draft_1_abc", {"attendees": []})
        loaded = store.load("draft_1_abc")
        loaded["attendees"].append("tampered")
        assert store.load("draft_1_abc") == {"attendees": []}

"""Application tests for RegistrationContext: attendees, selections and totals together."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from registration.context import RegistrationContext
from registration.directory.fake_adapter import FakeDirectoryService
from registration.directory.port import DirectoryRow
from registration.ledger.selections import SelectionKind
from registration.order.summary import OrderStatus
from registration.wizard.navigator import Step


class TestLifecycle:
    def test_start_creates_empty_draft(self, context):
        assert context.draft_id.startswith("draft_")
        assert context.list_attendees() == []
        assert context.current_step == Step.REGISTRATION_TYPE

    def test_start_new_registration_discards_everything(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        context.select_package(primary_id, "pkg-full")
        old_draft = context.draft_id

        context.start_new_registration("lodge")

        assert context.draft_id != old_draft
        assert context.registration.registration_type == "lodge"
        assert context.list_attendees() == []
        assert context.ledger.all_selections() == []
        assert context.summary().total_amount == 0.0

    def test_clear_keeps_type_and_catalog(self, context, primary_details):
        context.add_primary(**primary_details)
        context.clear()
        assert context.registration.registration_type == "individuals"
        assert context.catalog.get_package("pkg-full") is not None
        assert context.list_attendees() == []

    def test_load_catalog_from_service(self, fake_catalog_service):
        ctx = RegistrationContext.start("individuals")
        ctx.load_catalog("fn-gi-2026")
        assert ctx.catalog.get_ticket("tkt-banquet").price == 150.0
        assert ctx.summary().function_name == "Grand Installation 2026"

    def test_catalog_failure_propagates(self, fake_catalog_service):
        fake_catalog_service.configure(should_succeed=False)
        ctx = RegistrationContext.start("individuals")
        with pytest.raises(ConnectionError):
            ctx.load_catalog("fn-gi-2026")


class TestAttendeesThroughContext:
    def test_add_partner_twice_returns_existing(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        first = context.add_partner(primary_id, first_name="Jane")
        second = context.add_partner(primary_id, first_name="Janet")
        assert first == second
        assert len(context.list_attendees()) == 2

    def test_update_missing_attendee_is_noop(self, context):
        assert context.update_attendee("missing", first_name="Ghost") is None

    def test_display_order(self, context, primary_details, guest_details, member_details):
        primary_id = context.add_primary(**primary_details)
        guest_id = context.add_guest(**guest_details)
        member_id = context.add_member(**member_details)
        ordered = [str(a.id) for a in context.attendees_in_display_order()]
        assert ordered == [primary_id, member_id, guest_id]

    def test_assign_affiliation(self, context, primary_details, member_details):
        context.add_primary(**primary_details)
        member_id = context.add_member(**member_details)
        row = DirectoryRow(grand_lodge_id="gl-vic", lodge_id="lodge-9", lodge_name="Lodge Unity", lodge_number="9")

        context.assign_affiliation(member_id, row)

        member = context.find_attendee(member_id)
        assert member.grand_lodge_id == "gl-vic"
        assert member.lodge_id == "lodge-9"
        assert member.lodge_name_number == "Lodge Unity No. 9"

    def test_guest_cannot_take_affiliation(self, context, primary_details, guest_details):
        context.add_primary(**primary_details)
        guest_id = context.add_guest(**guest_details)
        with pytest.raises(InvalidOperationError):
            context.assign_affiliation(guest_id, DirectoryRow(grand_lodge_id="gl-vic"))

    def test_search_directory_uses_service(self, context):
        service = FakeDirectoryService([DirectoryRow(grand_lodge_id="gl-nsw", lodge_name="Lodge Harmony")])
        rows = context.search_directory("harm", service=service)
        assert rows[0].lodge_name == "Lodge Harmony"
        assert service.calls[0]["term"] == "harm"


class TestSelectionsThroughContext:
    def test_select_package_mirrors_choice(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        context.select_package(primary_id, "pkg-full")
        attendee = context.find_attendee(primary_id)
        assert attendee.selected_package_id == "pkg-full"
        assert attendee.ticket_ids() == []

    def test_individual_tickets_mirror_choice(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        context.select_individual_ticket(primary_id, "tkt-lunch")
        context.select_individual_ticket(primary_id, "tkt-ceremony")
        attendee = context.find_attendee(primary_id)
        assert attendee.selected_package_id is None
        assert attendee.ticket_ids() == ["tkt-lunch", "tkt-ceremony"]

    def test_removing_last_selection_clears_choice(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        record = context.select_package(primary_id, "pkg-full")
        context.remove_selection(primary_id, record.id, SelectionKind.PACKAGE)
        attendee = context.find_attendee(primary_id)
        assert attendee.selected_package_id is None
        assert attendee.ticket_ids() == []
        assert context.ledger.selections_for(primary_id) is None

    def test_selection_for_unknown_attendee(self, context):
        with pytest.raises(ObjectNotFoundError):
            context.select_package("missing", "pkg-full")

    def test_unknown_package(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        with pytest.raises(ObjectNotFoundError):
            context.select_package(primary_id, "pkg-missing")

    def test_rejected_quantity_leaves_no_page(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        with pytest.raises(ValidationError):
            context.select_package(primary_id, "pkg-full", 0)
        assert context.ledger.selections_for(primary_id) is None
        assert context.ledger.all_selections() == []
        assert context.to_snapshot()["ledger"] == []

    def test_sold_out_ticket_still_selectable(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        record = context.select_individual_ticket(primary_id, "tkt-tour")
        assert record.subtotal == 25.0

    def test_clear_selections(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        context.select_individual_ticket(primary_id, "tkt-lunch")
        assert context.clear_selections(primary_id) is True
        assert context.clear_selections(primary_id) is False
        assert context.summary().total_amount == 0.0


class TestRemovalKeepsLedgerInStep:
    def test_removed_attendees_lose_selections(self, context, primary_details, member_details, guest_details):
        primary_id = context.add_primary(**primary_details)
        member_id = context.add_member(**member_details)
        partner_id = context.add_partner(member_id, first_name="Mary")
        guest_id = context.add_guest(host_id=member_id, **guest_details)
        for attendee_id in (primary_id, member_id, partner_id, guest_id):
            context.select_individual_ticket(attendee_id, "tkt-ceremony")

        removed = context.remove_attendee(member_id)

        assert set(removed) == {member_id, partner_id}
        assert context.ledger.selections_for(member_id) is None
        assert context.ledger.selections_for(partner_id) is None
        summary = context.summary()
        assert summary.total_attendees == 2
        assert summary.subtotal == 100.0

    def test_ledger_failure_does_not_undo_removal(self, context, primary_details, guest_details, monkeypatch):
        context.add_primary(**primary_details)
        guest_id = context.add_guest(**guest_details)
        context.select_individual_ticket(guest_id, "tkt-ceremony")

        def broken(attendee_id):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(context.ledger, "clear_attendee", broken)

        assert context.remove_attendee(guest_id) == [guest_id]
        assert context.find_attendee(guest_id) is None
        assert context.summary().subtotal == 0.0

    def test_primary_removal_is_noop(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        context.select_package(primary_id, "pkg-full")
        assert context.remove_attendee(primary_id) == []
        assert context.summary().subtotal == 180.0


class TestTotalsAfterEveryWrite:
    def test_totals_track_writes(self, context, primary_details, member_details):
        primary_id = context.add_primary(**primary_details)
        member_id = context.add_member(**member_details)

        context.select_package(primary_id, "pkg-full", 2)
        assert context.summary().total_amount == 360.0

        context.select_individual_ticket(member_id, "tkt-lunch")
        assert context.summary().total_amount == 400.0

        context.select_individual_ticket(primary_id, "tkt-banquet")
        summary = context.summary()
        assert summary.total_amount == 190.0
        assert summary.total_tickets == 2
        assert summary.total_packages == 0

    def test_summary_is_stable(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        context.select_package(primary_id, "pkg-full")
        assert context.summary().without_timestamp() == context.summary().without_timestamp()


class TestDebouncedEdits:
    def test_staged_edits_commit_after_quiet_period(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        t0 = datetime.now(UTC)
        context.stage_edit(primary_id, "dietary_requirements", "Veg", at=t0)
        context.stage_edit(primary_id, "dietary_requirements", "Vegan", at=t0 + timedelta(milliseconds=100))

        assert context.flush_edits(now=t0 + timedelta(milliseconds=200)) == []
        assert context.find_attendee(primary_id).dietary_requirements is None

        context.flush_edits(now=t0 + timedelta(milliseconds=400))
        assert context.find_attendee(primary_id).dietary_requirements == "Vegan"

    def test_pending_edits_dropped_on_removal(self, context, primary_details, guest_details):
        context.add_primary(**primary_details)
        guest_id = context.add_guest(**guest_details)
        context.stage_edit(guest_id, "first_name", "Alfred")
        context.remove_attendee(guest_id)
        assert context.edits.has_pending() is False

    def test_next_step_flushes_edits(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        context.stage_edit(primary_id, "special_needs", "Wheelchair access")
        context.next_step()
        assert context.find_attendee(primary_id).special_needs == "Wheelchair access"

    def test_unknown_field_cannot_be_staged(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        context.stage_edit(primary_id, "first_name", "Robert")

        with pytest.raises(ValidationError):
            context.stage_edit(primary_id, "shoe_size", "11")
        context.flush_all_edits()

        assert context.find_attendee(primary_id).first_name == "Robert"
        assert context.edits.pending_for(primary_id) == {}


class TestStatus:
    def test_draft_status(self, context):
        assert context.summary().status == OrderStatus.DRAFT

    def test_unknown_billing_field(self, context):
        with pytest.raises(ValidationError):
            context.update_billing_details(favourite_colour="blue")

    def test_ticket_choice_is_json_array(self, context, primary_details):
        primary_id = context.add_primary(**primary_details)
        context.select_individual_ticket(primary_id, "tkt-lunch")
        assert json.loads(context.find_attendee(primary_id).selected_ticket_ids) == ["tkt-lunch"]

"""RegistrationContext: the single entry point for driving a registration.

Owns the Registration aggregate, the SelectionLedger, the CatalogCache, the
WizardNavigator and the pending edit buffer, and exposes only whole
operations on them. Every operation completes synchronously before the next
one starts; long-running collaborator calls (catalog fetch, payment intent,
directory search) return first and are then applied in one step.

Must be used inside an active domain context::

    registration.init()
    with registration.domain_context():
        ctx = RegistrationContext.start("individuals")
        primary_id = ctx.add_primary(first_name="Ada")
"""

from contextlib import contextmanager
from datetime import UTC, datetime, timedelta

from protean.exceptions import InvalidOperationError, InvalidStateError, ObjectNotFoundError, ValidationError

from registration import snapshot
from registration.attendee.attendee import AFFILIATION_FIELDS, EDITABLE_FIELDS, Registration
from registration.attendee.edits import PendingEditBuffer
from registration.attendee.presentation import display_order
from registration.catalog import get_catalog_service
from registration.catalog.cache import CatalogCache
from registration.directory import get_directory_service
from registration.domain import logger, registration
from registration.drafts import get_draft_store
from registration.ledger.ledger import SelectionLedger
from registration.order.summary import OrderStatus, PaymentStatus, recompute, to_minor_units
from registration.payment import get_payment_service
from registration.shared.errors import PartnerConflictError
from registration.utils.logging import add_context
from registration.wizard.navigator import Step, WizardNavigator
from registration.wizard.validators import validate_billing_details


@contextmanager
def _reported(operation, **context):
    """Log rejected operations before handing the error back to the caller."""
    try:
        yield
    except (ObjectNotFoundError, InvalidOperationError, InvalidStateError) as exc:
        logger.warning("registration_operation_rejected", operation=operation, error=str(exc), **context)
        raise


class RegistrationContext:
    def __init__(self, catalog=None, navigator=None, quiet_period=None):
        if quiet_period is None:
            quiet_period = timedelta(milliseconds=getattr(registration, "EDIT_QUIET_PERIOD_MS", 300))

        self.catalog = catalog or CatalogCache()
        self.registration = Registration.start()
        self.ledger = SelectionLedger(self.catalog, self._attendee_exists)
        self.navigator = navigator or WizardNavigator()
        self.edits = PendingEditBuffer(commit=self.update_attendee, quiet_period=quiet_period)
        self.payment_status = PaymentStatus.UNPAID
        self.client_secret = None

    @classmethod
    def start(cls, registration_type=None, **kwargs):
        ctx = cls(**kwargs)
        ctx.start_new_registration(registration_type)
        return ctx

    # -------------------------------------------------------------------
    # Registration lifecycle
    # -------------------------------------------------------------------
    def start_new_registration(self, registration_type=None):
        """Discard everything but the catalog and begin a new draft."""
        self.edits.discard()
        self.registration = Registration.start(registration_type)
        self.ledger.clear()
        self.navigator.reset()
        self.payment_status = PaymentStatus.UNPAID
        self.client_secret = None

        add_context(draft_id=self.registration.draft_id)
        logger.info(
            "registration_started",
            draft_id=self.registration.draft_id,
            registration_type=registration_type,
        )
        return self.registration.draft_id

    def clear(self):
        """Start over with the same registration type."""
        return self.start_new_registration(self.registration.registration_type)

    def choose_registration_type(self, registration_type):
        self._ensure_editable()
        with _reported("choose_registration_type", registration_type=registration_type):
            self.registration.choose_registration_type(registration_type)

    @property
    def draft_id(self):
        return self.registration.draft_id

    @property
    def is_read_only(self):
        return self.registration.is_confirmed

    def _ensure_editable(self):
        if self.registration.is_confirmed:
            raise InvalidOperationError(
                f"Registration {self.registration.confirmation_number} is confirmed and can no longer be changed"
            )

    # -------------------------------------------------------------------
    # Attendees
    # -------------------------------------------------------------------
    def add_primary(self, **details):
        self._ensure_editable()
        with _reported("add_primary"):
            attendee_id = self.registration.add_primary(**details)
        logger.info("primary_attendee_added", attendee_id=attendee_id)
        return attendee_id

    def add_member(self, **details):
        self._ensure_editable()
        with _reported("add_member"):
            attendee_id = self.registration.add_member(**details)
        logger.info("member_added", attendee_id=attendee_id)
        return attendee_id

    def add_guest(self, host_id=None, **details):
        self._ensure_editable()
        with _reported("add_guest", host_id=host_id):
            attendee_id = self.registration.add_guest(host_id=host_id, **details)
        logger.info("guest_added", attendee_id=attendee_id, host_id=host_id)
        return attendee_id

    def add_partner(self, owner_id, **details):
        """Add a partner for ``owner_id``; returns the existing partner's id if there already is one."""
        self._ensure_editable()
        try:
            with _reported("add_partner", owner_id=owner_id):
                partner_id = self.registration.add_partner(owner_id, **details)
        except PartnerConflictError as exc:
            return exc.existing_partner_id
        logger.info("partner_added", attendee_id=partner_id, owner_id=str(owner_id))
        return partner_id

    def update_attendee(self, attendee_id, **fields):
        self._ensure_editable()
        with _reported("update_attendee", attendee_id=str(attendee_id)):
            return self.registration.update_attendee(attendee_id, **fields)

    def remove_attendee(self, attendee_id):
        """Remove an attendee (and its partner) and clear their selections.

        The removal stands even if clearing the ledger fails; orphaned
        selections are ignored by the order summary.
        """
        self._ensure_editable()
        with _reported("remove_attendee", attendee_id=str(attendee_id)):
            removed = self.registration.remove_attendee(attendee_id)

        for removed_id in removed:
            self.edits.discard(removed_id)
            try:
                self.ledger.clear_attendee(removed_id)
            except Exception:
                logger.exception("ledger_clear_failed", attendee_id=removed_id)
        if removed:
            logger.info("attendee_removed", attendee_id=str(attendee_id), removed_ids=removed)
        return removed

    def list_attendees(self):
        return self.registration.list_attendees()

    def find_attendee(self, attendee_id):
        return self.registration.find_attendee(attendee_id)

    def find_attendees(self, predicate):
        return self.registration.find_attendees(predicate)

    def attendees_in_display_order(self):
        return display_order(self.registration.attendees)

    def _attendee_exists(self, attendee_id):
        return self.registration.find_attendee(attendee_id) is not None

    # -------------------------------------------------------------------
    # Debounced edits
    # -------------------------------------------------------------------
    def stage_edit(self, attendee_id, field, value, at=None):
        self._ensure_editable()
        if field not in EDITABLE_FIELDS:
            raise ValidationError({field: ["Unknown attendee field"]})
        self.edits.stage(attendee_id, field, value, at or datetime.now(UTC))

    def flush_edits(self, now=None):
        return self.edits.flush(now or datetime.now(UTC))

    def flush_all_edits(self):
        return self.edits.flush_all()

    # -------------------------------------------------------------------
    # Catalog and directory
    # -------------------------------------------------------------------
    def load_catalog(self, event_id, service=None):
        service = service or get_catalog_service()
        result = service.fetch_catalog(event_id)
        self.catalog.load(result)
        return self.catalog

    def search_directory(self, term, scope_hints=None, service=None):
        service = service or get_directory_service()
        return service.search(term, scope_hints or {})

    def assign_affiliation(self, attendee_id, row):
        """Copy a directory row's grand lodge and lodge onto a member."""
        self._ensure_editable()
        attendee = self.registration.find_attendee(attendee_id)
        with _reported("assign_affiliation", attendee_id=str(attendee_id)):
            if attendee is None:
                raise ObjectNotFoundError({"attendee_id": [f"Attendee {attendee_id} not found"]})
            if not attendee.is_member:
                raise InvalidOperationError("Only members carry a lodge affiliation")

        values = dict(zip(AFFILIATION_FIELDS, (row.grand_lodge_id, row.lodge_id, row.display_name), strict=True))
        return self.update_attendee(attendee_id, **values)

    # -------------------------------------------------------------------
    # Selections
    # -------------------------------------------------------------------
    def select_package(self, attendee_id, package_id, quantity=1):
        self._ensure_editable()
        with _reported("select_package", attendee_id=str(attendee_id), package_id=str(package_id)):
            record = self.ledger.select_package(attendee_id, package_id, quantity)
        self._sync_ticket_choice(attendee_id)
        return record

    def select_individual_ticket(self, attendee_id, ticket_id, quantity=1):
        self._ensure_editable()
        with _reported("select_individual_ticket", attendee_id=str(attendee_id), ticket_id=str(ticket_id)):
            record = self.ledger.select_individual_ticket(attendee_id, ticket_id, quantity)
        self._sync_ticket_choice(attendee_id)
        return record

    def remove_selection(self, attendee_id, record_id, kind):
        self._ensure_editable()
        with _reported("remove_selection", attendee_id=str(attendee_id), record_id=str(record_id)):
            record = self.ledger.remove_selection(attendee_id, record_id, kind)
        self._sync_ticket_choice(attendee_id)
        return record

    def clear_selections(self, attendee_id):
        self._ensure_editable()
        cleared = self.ledger.clear_attendee(attendee_id)
        self._sync_ticket_choice(attendee_id)
        return cleared

    def _sync_ticket_choice(self, attendee_id):
        """Mirror the ledger onto the attendee: latest package if any, else individual ticket ids."""
        if not self._attendee_exists(attendee_id):
            return
        page = self.ledger.selections_for(attendee_id)
        if page is not None and page.packages:
            self.registration.choose_tickets(attendee_id, package_id=page.packages[-1].package_id)
        else:
            ticket_ids = [t.ticket_id for t in page.individual_tickets()] if page is not None else []
            self.registration.choose_tickets(attendee_id, ticket_ids=ticket_ids)

    # -------------------------------------------------------------------
    # Billing and terms
    # -------------------------------------------------------------------
    def update_billing_details(self, **fields):
        self._ensure_editable()
        self.registration.update_billing_details(**fields)

    def set_agree_to_terms(self, agreed):
        self._ensure_editable()
        self.registration.set_agree_to_terms(agreed)

    # -------------------------------------------------------------------
    # Order summary
    # -------------------------------------------------------------------
    @property
    def order_status(self):
        if self.registration.is_confirmed:
            return OrderStatus.COMPLETED
        if self.client_secret:
            return OrderStatus.PENDING
        return OrderStatus.DRAFT

    def summary(self):
        return recompute(
            self.registration.attendees,
            self.ledger.all_selections(),
            status=self.order_status,
            payment_status=self.payment_status,
            function=self.catalog.function,
            created_at=self.registration.created_at,
        )

    # -------------------------------------------------------------------
    # Wizard navigation
    # -------------------------------------------------------------------
    @property
    def current_step(self):
        return self.navigator.current_step

    def next_step(self):
        self.flush_all_edits()
        step = self.navigator.next(self.registration)
        logger.info("wizard_advanced", step=step.name)
        return step

    def prev_step(self):
        return self.navigator.prev()

    def jump_to(self, step):
        return self.navigator.jump_to(step)

    # -------------------------------------------------------------------
    # Payment and confirmation
    # -------------------------------------------------------------------
    def create_payment_intent(self, service=None):
        """Ask the payment service for an intent covering the order total; returns the client secret."""
        self._ensure_editable()
        self.flush_all_edits()

        errors = validate_billing_details(self.registration)
        if errors:
            raise ValidationError(errors)

        summary = self.summary()
        with _reported("create_payment_intent", total=summary.total_amount):
            if summary.total_amount <= 0:
                raise InvalidOperationError("Nothing to pay for: the order total is zero")
            if len(summary.totals_by_currency) > 1:
                raise InvalidOperationError("An order can only be paid in a single currency")

        service = service or get_payment_service()
        result = service.create_intent(
            amount_minor_units=to_minor_units(summary.total_amount),
            currency=summary.currency or self.catalog.default_currency,
            idempotency_key=self.registration.draft_id,
        )
        if not result.success:
            self.payment_status = PaymentStatus.FAILED
            logger.warning("payment_intent_failed", reason=result.failure_reason)
            raise InvalidOperationError(f"Payment could not be started: {result.failure_reason}")

        self.client_secret = result.client_secret
        self.payment_status = PaymentStatus.UNPAID
        logger.info("payment_intent_created", intent_id=result.intent_id, total=summary.total_amount)
        return result.client_secret

    def confirm(self, confirmation_number):
        """Accept the caller's confirmation number after a successful payment and finish the wizard.

        The number's format belongs to the caller and is not checked here.
        """
        with _reported("confirm", confirmation_number=confirmation_number):
            self._ensure_editable()
            if self.navigator.current_step != Step.PAYMENT:
                raise InvalidOperationError("Confirmation is only possible from the payment step")
            if not self.client_secret:
                raise InvalidOperationError("No successful payment intent to confirm")

        self.flush_all_edits()
        errors = validate_billing_details(self.registration)
        if errors:
            raise ValidationError(errors)

        self.registration.confirm(confirmation_number)
        self.payment_status = PaymentStatus.PAID
        self.navigator.next(self.registration)
        logger.info("registration_confirmed", confirmation_number=confirmation_number)
        return self.navigator.current_step

    # -------------------------------------------------------------------
    # Snapshots and drafts
    # -------------------------------------------------------------------
    def to_snapshot(self):
        if not self.is_read_only:
            self.flush_all_edits()
        data = snapshot.dump_registration(self.registration)
        data.update(
            {
                "version": snapshot.SNAPSHOT_VERSION,
                "ledger": [snapshot.dump_selections(page) for page in self.ledger.all_selections()],
                "catalog": {
                    "tickets": [snapshot.dump_ticket_metadata(t) for t in self.catalog.tickets()],
                    "packages": [snapshot.dump_package_metadata(p) for p in self.catalog.packages()],
                    "function": snapshot.dump_function(self.catalog.function),
                },
                "current_step": int(self.navigator.current_step),
                "highest_step": int(self.navigator.highest_step),
                "payment_status": self.payment_status.value,
                "client_secret": self.client_secret,
            }
        )
        return data

    @classmethod
    def from_snapshot(cls, data, **kwargs):
        """Rebuild a context from ``to_snapshot`` output, tolerating older or newer shapes."""
        ctx = cls(**kwargs)

        catalog = data.get("catalog") or {}
        for raw in catalog.get("tickets") or []:
            try:
                ctx.catalog.put_ticket(snapshot.load_ticket_metadata(raw))
            except (TypeError, ValueError):
                logger.warning("snapshot_catalog_entry_dropped", entry=raw.get("ticket_id"))
        for raw in catalog.get("packages") or []:
            try:
                ctx.catalog.put_package(snapshot.load_package_metadata(raw))
            except (TypeError, ValueError):
                logger.warning("snapshot_catalog_entry_dropped", entry=raw.get("package_id"))
        ctx.catalog.function = snapshot.load_function(catalog.get("function"))

        ctx.registration = snapshot.load_registration(data)
        known_ids = {str(a.id) for a in ctx.registration.attendees}
        pages = [snapshot.load_selections(page, known_ids) for page in data.get("ledger") or []]
        ctx.ledger.restore(page for page in pages if page is not None)

        current_step = _step_or_default(data.get("current_step"))
        highest_step = max(_step_or_default(data.get("highest_step"), current_step), current_step)
        ctx.navigator.current_step = current_step
        ctx.navigator.highest_step = highest_step

        statuses = {s.value for s in PaymentStatus}
        payment_status = data.get("payment_status")
        ctx.payment_status = PaymentStatus(payment_status) if payment_status in statuses else PaymentStatus.UNPAID
        ctx.client_secret = data.get("client_secret")

        add_context(draft_id=ctx.registration.draft_id)
        logger.info("registration_restored", draft_id=ctx.registration.draft_id, attendees=len(known_ids))
        return ctx

    def save_draft(self, store=None):
        store = store or get_draft_store()
        store.save(self.registration.draft_id, self.to_snapshot())
        return self.registration.draft_id

    @classmethod
    def load_draft(cls, draft_id, store=None, **kwargs):
        store = store or get_draft_store()
        data = store.load(draft_id)
        if data is None:
            raise ObjectNotFoundError({"draft_id": [f"Draft {draft_id} not found"]})
        return cls.from_snapshot(data, **kwargs)


def _step_or_default(value, default=Step.REGISTRATION_TYPE):
    try:
        return Step(int(value))
    except (TypeError, ValueError):
        return Step(default)

"""Order summary: derived totals over the attendees and their selections.

``recompute`` is a pure function. It reads the attendee list and the ledger
pages, ignores pages whose attendee no longer exists, and never mutates its
inputs, so it is safe to call after every write.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from registration.attendee.presentation import attendee_labels


class OrderStatus(Enum):
    DRAFT = "draft"
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


@dataclass(frozen=True)
class AttendeeSummary:
    attendee_id: str
    label: str
    display_name: str
    role: str
    is_primary: bool
    ticket_count: int
    package_count: int
    subtotal: float


@dataclass(frozen=True)
class OrderSummary:
    total_attendees: int
    total_tickets: int
    total_packages: int
    subtotal: float
    totals_by_currency: dict[str, float]
    processing_fees: float
    total_amount: float
    currency: str | None
    status: OrderStatus
    payment_status: PaymentStatus
    attendee_summaries: tuple[AttendeeSummary, ...] = ()
    function_id: str | None = None
    function_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def without_timestamp(self):
        """Everything but ``updated_at``, for comparing two recomputations."""
        values = dict(self.__dict__)
        values.pop("updated_at")
        return values


def _money(value):
    return round(value, 2)


def to_minor_units(amount):
    """Convert a currency amount to whole cents, rounding half up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def recompute(
    attendees,
    selections,
    status=OrderStatus.DRAFT,
    payment_status=PaymentStatus.UNPAID,
    function=None,
    created_at=None,
    processing_fees=0.0,
):
    """Build an OrderSummary from the attendee list and the ledger pages.

    ``selections`` is any iterable of AttendeeSelections. Pages for attendees
    missing from ``attendees`` are orphans left by a failed ledger clear and
    are skipped.
    """
    attendees = list(attendees)
    by_attendee = {str(page.attendee_id): page for page in selections}
    labels = attendee_labels(attendees)

    subtotal = 0.0
    totals_by_currency: dict[str, float] = {}
    total_tickets = 0
    total_packages = 0
    summaries = []

    for attendee in attendees:
        page = by_attendee.get(str(attendee.id))
        ticket_count = page.ticket_count() if page is not None else 0
        package_count = len(page.packages) if page is not None else 0
        attendee_subtotal = page.subtotal if page is not None else 0.0

        if page is not None:
            for package in page.packages:
                totals_by_currency[package.currency] = totals_by_currency.get(package.currency, 0.0) + package.subtotal
            for ticket in page.individual_tickets():
                totals_by_currency[ticket.currency] = totals_by_currency.get(ticket.currency, 0.0) + ticket.subtotal

        subtotal += attendee_subtotal
        total_tickets += ticket_count
        total_packages += package_count
        summaries.append(
            AttendeeSummary(
                attendee_id=str(attendee.id),
                label=labels.get(str(attendee.id), ""),
                display_name=attendee.display_name,
                role=attendee.role,
                is_primary=bool(attendee.is_primary),
                ticket_count=ticket_count,
                package_count=package_count,
                subtotal=_money(attendee_subtotal),
            )
        )

    totals_by_currency = {currency: _money(amount) for currency, amount in sorted(totals_by_currency.items())}
    subtotal = _money(subtotal)

    return OrderSummary(
        total_attendees=len(attendees),
        total_tickets=total_tickets,
        total_packages=total_packages,
        subtotal=subtotal,
        totals_by_currency=totals_by_currency,
        processing_fees=_money(processing_fees),
        total_amount=_money(subtotal + processing_fees),
        currency=next(iter(totals_by_currency)) if len(totals_by_currency) == 1 else None,
        status=status,
        payment_status=payment_status,
        attendee_summaries=tuple(summaries),
        function_id=function.function_id if function is not None else None,
        function_name=function.name if function is not None else None,
        created_at=created_at,
        updated_at=datetime.now(UTC),
    )

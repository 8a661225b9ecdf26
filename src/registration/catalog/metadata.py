"""Immutable catalog snapshots for tickets, packages and the function being registered for.

Selection records copy these snapshots at selection time, so a later catalog
refresh never changes the price of something already chosen.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AvailabilityStatus(Enum):
    AVAILABLE = "available"
    LOW_STOCK = "low_stock"
    SOLD_OUT = "sold_out"


def availability_status(available_count, low_stock_threshold=10):
    """Derive availability from a remaining count. ``None`` means unlimited."""
    if available_count is None:
        return AvailabilityStatus.AVAILABLE
    if available_count <= 0:
        return AvailabilityStatus.SOLD_OUT
    if available_count <= low_stock_threshold:
        return AvailabilityStatus.LOW_STOCK
    return AvailabilityStatus.AVAILABLE


@dataclass(frozen=True)
class TicketMetadata:
    """A sellable ticket for one event of the function."""

    ticket_id: str
    name: str
    price: float
    currency: str
    status: AvailabilityStatus = AvailabilityStatus.AVAILABLE
    description: str | None = None
    event_id: str | None = None
    event_title: str | None = None
    function_id: str | None = None
    is_active: bool = True
    available_count: int | None = None
    total_capacity: int | None = None
    captured_at: datetime | None = None

    @property
    def is_unlimited(self) -> bool:
        return self.available_count is None


@dataclass(frozen=True)
class PackageMetadata:
    """A bundle of tickets sold as one priced unit. Embeds a snapshot of every included ticket."""

    package_id: str
    name: str
    price: float
    currency: str
    included_tickets: tuple[TicketMetadata, ...] = ()
    description: str | None = None
    original_price: float | None = None
    discount: float | None = None
    includes_description: str | None = None
    captured_at: datetime | None = None

    @property
    def included_ticket_ids(self) -> tuple[str, ...]:
        return tuple(t.ticket_id for t in self.included_tickets)


@dataclass(frozen=True)
class FunctionMetadata:
    """The function (event series) the registration is for."""

    function_id: str
    name: str
    slug: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    location: str | None = None
    organiser: str | None = None

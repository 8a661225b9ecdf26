import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def registration_bed():
    from registration.domain import registration

    bed = DomainFixture(registration)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(registration_bed):
    with registration_bed.domain_context():
        yield


# ---------------------------------------------------------------------------
# Catalog fixtures
# ---------------------------------------------------------------------------
TICKETS = [
    {
        "ticket_id": "tkt-banquet",
        "name": "Grand Banquet",
        "price": 150.0,
        "event_id": "evt-banquet",
        "event_title": "Grand Banquet",
        "available_count": 120,
    },
    {
        "ticket_id": "tkt-ceremony",
        "name": "Installation Ceremony",
        "price": 50.0,
        "event_id": "evt-ceremony",
        "event_title": "Installation Ceremony",
    },
    {
        "ticket_id": "tkt-lunch",
        "name": "Ladies Lunch",
        "price": 40.0,
        "event_id": "evt-lunch",
        "event_title": "Ladies Lunch",
        "available_count": 4,
    },
    {
        "ticket_id": "tkt-tour",
        "name": "City Tour",
        "price": 25.0,
        "event_id": "evt-tour",
        "available_count": 0,
    },
]

PACKAGES = [
    {
        "package_id": "pkg-full",
        "name": "Full Weekend",
        "price": 180.0,
        "original_price": 200.0,
        "discount": 20.0,
        "includes": ["tkt-banquet", "tkt-ceremony"],
    },
    {
        "package_id": "pkg-social",
        "name": "Social Package",
        "price": 60.0,
        "includes": ["tkt-lunch", "tkt-lunch"],
    },
]

FUNCTION = {
    "function_id": "fn-gi-2026",
    "name": "Grand Installation 2026",
    "slug": "grand-installation-2026",
    "location": "Sydney Masonic Centre",
}


@pytest.fixture()
def catalog():
    from registration.catalog.cache import CatalogCache
    from registration.catalog.port import CatalogResult

    cache = CatalogCache(default_currency="AUD", low_stock_threshold=10)
    cache.load(CatalogResult(tickets=TICKETS, packages=PACKAGES, function=FUNCTION))
    return cache


@pytest.fixture()
def fake_catalog_service():
    from registration.catalog import set_catalog_service
    from registration.catalog.fake_adapter import FakeCatalogService

    service = FakeCatalogService()
    service.add_catalog("fn-gi-2026", tickets=TICKETS, packages=PACKAGES, function=FUNCTION)
    set_catalog_service(service)
    return service


@pytest.fixture()
def fake_payment_service():
    from registration.payment import set_payment_service
    from registration.payment.fake_adapter import FakePaymentService

    service = FakePaymentService()
    set_payment_service(service)
    return service


@pytest.fixture()
def draft_store():
    from registration.drafts import set_draft_store
    from registration.drafts.fake_adapter import InMemoryDraftStore

    store = InMemoryDraftStore()
    set_draft_store(store)
    return store


# ---------------------------------------------------------------------------
# Attendee detail fixtures
# ---------------------------------------------------------------------------
PRIMARY_DETAILS = {
    "title": "W Bro",
    "first_name": "John",
    "last_name": "Smith",
    "email": "john.smith@example.com",
    "phone": "+61 400 111 222",
    "rank": "MM",
    "grand_lodge_id": "gl-nsw",
    "lodge_id": "lodge-42",
    "lodge_name_number": "Lodge Harmony No. 42",
}

MEMBER_DETAILS = {
    "title": "Bro",
    "first_name": "Peter",
    "last_name": "Jones",
    "rank": "EAF",
    "contact_preference": "PrimaryAttendee",
}

GUEST_DETAILS = {
    "title": "Mr",
    "first_name": "Alan",
    "last_name": "Brown",
    "contact_preference": "ProvideLater",
}

BILLING = {
    "first_name": "John",
    "last_name": "Smith",
    "email": "john.smith@example.com",
    "phone": "+61 400 111 222",
    "address_line": "1 George St",
    "city": "Sydney",
    "postcode": "2000",
    "country": "Australia",
}


@pytest.fixture()
def draft():
    """A fresh individuals registration with no attendees."""
    from registration.attendee.attendee import Registration

    return Registration.start("individuals")


@pytest.fixture()
def context(catalog):
    from registration.context import RegistrationContext

    return RegistrationContext.start("individuals", catalog=catalog)


@pytest.fixture()
def primary_details():
    return dict(PRIMARY_DETAILS)


@pytest.fixture()
def member_details():
    return dict(MEMBER_DETAILS)


@pytest.fixture()
def guest_details():
    return dict(GUEST_DETAILS)


@pytest.fixture()
def billing():
    return dict(BILLING)

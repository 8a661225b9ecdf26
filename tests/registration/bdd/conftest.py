"""Shared BDD fixtures and step definitions for the Registration domain."""

import pytest
from pytest_bdd import given, parsers, then
from registration.catalog.cache import CatalogCache
from registration.context import RegistrationContext


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def ids():
    """Scenario attendee names mapped to the ids the registration assigned."""
    return {}


@pytest.fixture()
def error():
    """Container for captured errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a catalog with tickets "{ticket_ids}" priced at {price:d} each'),
    target_fixture="catalog",
)
def catalog_with_tickets(ticket_ids, price):
    cache = CatalogCache(default_currency="AUD")
    for ticket_id in ticket_ids.split(","):
        cache.ingest_ticket({"ticket_id": ticket_id.strip(), "name": ticket_id.strip(), "price": price})
    return cache


@given(parsers.cfparse('a package "{package_id}" containing "{ticket_ids}" priced at {price:d}'))
def package_in_catalog(catalog, package_id, ticket_ids, price):
    includes = [t.strip() for t in ticket_ids.split(",")]
    catalog.ingest_package({"package_id": package_id, "name": package_id, "price": price, "includes": includes})


@given(
    parsers.cfparse('an individuals registration with a primary member "{name}"'),
    target_fixture="context",
)
def registration_with_primary(catalog, ids, name, primary_details):
    ctx = RegistrationContext.start("individuals", catalog=catalog)
    ids[name] = ctx.add_primary(**primary_details)
    return ctx


@given(parsers.cfparse('a member "{name}"'))
def a_member(context, ids, name, member_details):
    ids[name] = context.add_member(**member_details)


@given(parsers.cfparse('a member "{name}" without details'))
def a_bare_member(context, ids, name):
    ids[name] = context.add_member(first_name=name)


@given(parsers.cfparse('a guest "{name}" hosted by "{host}"'))
def a_hosted_guest(context, ids, name, host, guest_details):
    ids[name] = context.add_guest(host_id=ids[host], **guest_details)


@given(parsers.cfparse('a guest "{name}" without details'))
def a_bare_guest(context, ids, name):
    ids[name] = context.add_guest(first_name=name)


@given(parsers.cfparse('a partner "{name}" of "{owner}"'))
def a_partner(context, ids, name, owner):
    ids[name] = context.add_partner(
        ids[owner],
        title="Mrs",
        first_name=name,
        relationship="Wife",
        contact_preference="Mason",
    )


@given(parsers.cfparse('ticket "{ticket_id}" is selected for "{name}"'))
def ticket_selected(context, ids, ticket_id, name):
    context.select_individual_ticket(ids[name], ticket_id)


@given(parsers.cfparse('package "{package_id}" is selected for "{name}"'))
def package_selected(context, ids, package_id, name):
    context.select_package(ids[name], package_id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the registration has {count:d} attendee"))
def registration_has_one_attendee(context, count):
    assert len(context.list_attendees()) == count


@then(parsers.cfparse("the registration has {count:d} attendees"))
def registration_has_n_attendees(context, count):
    assert len(context.list_attendees()) == count

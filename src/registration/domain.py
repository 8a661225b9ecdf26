"""Registration bounded context: attendees, ticket selections and the wizard.

Collects a group of attendees tied together by role and relationship, records
each attendee's ticket and package selections with price snapshots, and derives
a priced order summary ready for payment.
"""

import structlog
from protean.domain import Domain

from registration.shared.identifiers import new_identifier

registration = Domain(name="registration", identity_function=new_identifier)

logger = structlog.get_logger(__name__)

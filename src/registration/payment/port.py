"""Payment intent port (abstract interface).

The engine asks the payment service for an intent covering the order total
in minor currency units and hands the returned client secret to the caller.
Card collection and the gateway protocol live behind this contract.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentIntentResult:
    """Result of a payment intent request."""

    success: bool
    client_secret: str | None = None
    intent_id: str | None = None
    failure_reason: str | None = None


class PaymentIntentService(ABC):
    """Abstract payment intent interface."""

    @abstractmethod
    def create_intent(
        self,
        amount_minor_units: int,
        currency: str,
        idempotency_key: str,
    ) -> PaymentIntentResult:
        """Create a payment intent for ``amount_minor_units`` of ``currency``."""
        ...

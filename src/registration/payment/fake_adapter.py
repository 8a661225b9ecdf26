"""Configurable fake payment intent service for development and testing.

Simulates a payment provider without external calls. Repeated requests with
the same idempotency key return the same intent, as real providers do.
"""

from uuid import uuid4

from registration.payment.port import PaymentIntentResult, PaymentIntentService


class FakePaymentService(PaymentIntentService):
    """Configurable fake payment intent service."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.calls: list[dict] = []
        self._intents: dict[str, PaymentIntentResult] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        """Configure service behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_intent(
        self,
        amount_minor_units: int,
        currency: str,
        idempotency_key: str,
    ) -> PaymentIntentResult:
        call = {
            "method": "create_intent",
            "amount_minor_units": amount_minor_units,
            "currency": currency,
            "idempotency_key": idempotency_key,
        }
        self.calls.append(call)

        if not self.should_succeed:
            return PaymentIntentResult(success=False, failure_reason=self.failure_reason)

        key = f"{idempotency_key}:{amount_minor_units}:{currency}"
        if key not in self._intents:
            intent_id = f"fake_pi_{uuid4().hex[:12]}"
            self._intents[key] = PaymentIntentResult(
                success=True,
                client_secret=f"{intent_id}_secret_{uuid4().hex[:8]}",
                intent_id=intent_id,
            )
        return self._intents[key]

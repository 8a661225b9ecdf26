"""Payment intent service factory.

Provides get_payment_service() / set_payment_service() / reset_payment_service().
The adapter is chosen by the PAYMENT_ADAPTER environment variable and
defaults to FakePaymentService.
"""

import os

from registration.payment.port import PaymentIntentService

_current_service: PaymentIntentService | None = None


def get_payment_service() -> PaymentIntentService:
    """Return the configured payment intent service (singleton)."""
    global _current_service
    if _current_service is None:
        adapter = os.environ.get("PAYMENT_ADAPTER", "fake")
        if adapter == "fake":
            from registration.payment.fake_adapter import FakePaymentService

            _current_service = FakePaymentService()
        else:
            raise ValueError(f"Unknown payment adapter: {adapter}")
    return _current_service


def set_payment_service(service: PaymentIntentService) -> None:
    """Override the active payment intent service (useful for tests)."""
    global _current_service
    _current_service = service


def reset_payment_service() -> None:
    """Reset to the configured default."""
    global _current_service
    _current_service = None

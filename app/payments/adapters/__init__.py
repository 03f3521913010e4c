"""
Payment adapters for external services.

All Stripe API calls go through StripeAdapter to ensure consistent error
handling, timeouts, idempotency, and observability.

Usage:
    from payments.adapters import get_stripe_adapter

    adapter = get_stripe_adapter()
    result = adapter.authorize(
        amount_cents=5000,
        currency="USD",
        manual_capture=True,
        metadata={"paymentId": str(payment.id)},
    )
"""

from payments.adapters.stripe_adapter import (
    AccountLinkResult,
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    RefundResult,
    StripeAdapter,
    TransferResult,
    get_stripe_adapter,
)

__all__ = [
    "AccountLinkResult",
    "IdempotencyKeyGenerator",
    "PaymentIntentResult",
    "RefundResult",
    "StripeAdapter",
    "TransferResult",
    "get_stripe_adapter",
]

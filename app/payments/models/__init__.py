"""
Payment domain models.

This module contains all payment-related models:
- Payment: Deposit tracking the hold lifecycle
- Payout: Transfer of a released payment to the provider
- WebhookEvent: Stripe webhook event tracking for idempotent processing
"""

from payments.models.payment import Payment
from payments.models.payout import Payout
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "Payment",
    "Payout",
    "WebhookEvent",
]

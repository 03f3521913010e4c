"""
Webhook handling for payment events from Stripe.

This module provides the view, the idempotency gate and the handlers
for Stripe webhooks. Events are verified, recorded once, and processed
in a single transaction per event.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.processing import process_webhook_event, record_webhook_event
from payments.webhooks.views import stripe_webhook

__all__ = [
    "dispatch_webhook",
    "process_webhook_event",
    "record_webhook_event",
    "register_handler",
    "stripe_webhook",
]

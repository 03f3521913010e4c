"""
Webhook endpoint views for Stripe.

This module provides the HTTP endpoint for receiving Stripe webhooks.
The view:
1. Verifies the webhook signature over the raw request body
2. Records the WebhookEvent and claims it (idempotency gate)
3. Processes the event synchronously
4. Answers 500 on failure so Stripe redelivers

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import get_stripe_adapter
from payments.exceptions import PaymentConfigurationError, WebhookSignatureError
from payments.webhooks.processing import process_webhook_event, record_webhook_event


logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and process Stripe webhook events.

    The body must reach this view unparsed: the signature covers the exact
    bytes Stripe sent, so this is a plain Django view rather than a DRF
    view with parsers.

    Security:
    - Signature verification prevents spoofed webhooks
    - The signed timestamp must be within STRIPE_WEBHOOK_TOLERANCE_SECONDS
    - Nothing is written before the signature checks out

    Idempotency:
    - WebhookEvent.stripe_event_id is unique
    - Duplicate deliveries return {"received": true, "duplicate": true}
    - A delivery of a previously FAILED event reprocesses it

    Returns:
        JsonResponse with status:
        - 200: Event processed, or duplicate
        - 400: Invalid signature, stale timestamp or malformed payload
        - 500: Stripe not configured, or processing failed

    Example Stripe-Signature header:
        t=1614556800,v1=xxx,v0=yyy
    """
    adapter = get_stripe_adapter()

    try:
        adapter.ensure_configured()
        event = adapter.verify_and_parse_webhook(
            request.body,
            request.headers.get("Stripe-Signature"),
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
        )
    except PaymentConfigurationError as e:
        logger.error("Webhook received but Stripe is not configured")
        return JsonResponse(e.to_dict(), status=500)
    except WebhookSignatureError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error": e.message},
        )
        return JsonResponse(e.to_dict(), status=400)

    logger.info(
        f"Received Stripe webhook: {event['type']}",
        extra={"stripe_event_id": event["id"], "event_type": event["type"]},
    )

    webhook_event, claimed = record_webhook_event(event, request.body)
    if not claimed:
        return JsonResponse({"received": True, "duplicate": True})

    if not process_webhook_event(webhook_event):
        return JsonResponse(
            {
                "received": False,
                "error": "Webhook processing failed",
                "error_code": "WEBHOOK_PROCESSING_FAILED",
            },
            status=500,
        )

    return JsonResponse({"received": True})

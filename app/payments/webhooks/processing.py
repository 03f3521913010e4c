"""
Idempotency gate and processing loop for Stripe webhook events.

Every verified event goes through two steps:

1. record_webhook_event: insert the WebhookEvent row (unique on
   stripe_event_id) in its own savepoint, then claim it with a
   conditional UPDATE to PROCESSING. A delivery whose event is already
   PROCESSED or PROCESSING loses the claim and is a duplicate. A delivery
   of an event left FAILED or RECEIVED by an earlier crash wins the claim
   and reprocesses it, so a handler failure never leaves an event stuck.

2. process_webhook_event: run the handler and mark the row PROCESSED in
   one transaction. On any exception the business effects roll back, the
   row is marked FAILED with retry_count incremented, and the caller
   answers 500 so Stripe redelivers.

The Celery sweep (payments.tasks.retry_failed_webhooks) reprocesses FAILED
rows that Stripe stopped redelivering.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any

from django.db import IntegrityError, transaction

from payments.exceptions import WebhookProcessingError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.webhooks.handlers import dispatch_webhook


logger = logging.getLogger(__name__)


def payload_sha256(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def record_webhook_event(
    event: dict[str, Any],
    raw_payload: bytes,
) -> tuple[WebhookEvent | None, bool]:
    """
    Record a verified event and try to claim it for processing.

    Returns:
        (webhook_event, claimed). When claimed is False the delivery is a
        duplicate and must not reach business logic; webhook_event is the
        existing row.
    """
    stripe_event_id = event["id"]

    try:
        with transaction.atomic():
            WebhookEvent.objects.create(
                stripe_event_id=stripe_event_id,
                event_type=event["type"],
                livemode=bool(event.get("livemode")),
                payload_hash=payload_sha256(raw_payload),
                payload=event,
                status=WebhookEventStatus.RECEIVED,
            )
    except IntegrityError:
        logger.info(
            "Webhook event already recorded",
            extra={"stripe_event_id": stripe_event_id},
        )

    claimed = WebhookEvent.objects.claim(stripe_event_id)
    webhook_event = WebhookEvent.objects.filter(stripe_event_id=stripe_event_id).first()

    if not claimed:
        logger.info(
            "Duplicate webhook delivery",
            extra={
                "stripe_event_id": stripe_event_id,
                "status": webhook_event.status if webhook_event else None,
            },
        )
    return webhook_event, claimed


def process_webhook_event(webhook_event: WebhookEvent) -> bool:
    """
    Dispatch a claimed event and record the outcome.

    Returns:
        True if the event was processed, False if it failed
    """
    log_context = {
        "stripe_event_id": webhook_event.stripe_event_id,
        "event_type": webhook_event.event_type,
    }

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)
            if not result.success:
                raise WebhookProcessingError(result.error or "Webhook handler failed")

            webhook_event.mark_processed()
            webhook_event.save(
                update_fields=["status", "processed_at", "error_message", "updated_at"]
            )
    except Exception as e:
        logger.error(
            f"Webhook processing failed: {type(e).__name__}",
            extra=log_context,
            exc_info=True,
        )
        webhook_event.mark_failed(f"{type(e).__name__}: {e}")
        webhook_event.save(
            update_fields=["status", "error_message", "retry_count", "updated_at"]
        )
        return False

    logger.info("Webhook processed", extra=log_context)
    return True

"""
Celery tasks for payment processing.

This module provides async tasks for:
- Running due provider payouts (celery-beat, every PAYOUT_CRON_MINUTE)
- Processing a recorded Stripe webhook event
- Retrying failed webhook events
- Resetting webhook events stuck in PROCESSING

Usage:
    from payments.tasks import run_due_payouts_task

    # Run a payout batch now
    run_due_payouts_task.delay(limit=50)

    # Reprocess one recorded event
    from payments.tasks import process_webhook_event
    process_webhook_event.delay(str(webhook_event.id))
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings

from core.model_mixins import parse_uuid

from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# Events handled per sweep run
WEBHOOK_RETRY_BATCH_SIZE = 100


# =============================================================================
# Payout Tasks
# =============================================================================


@shared_task
def run_due_payouts_task(limit: int | None = None) -> dict:
    """
    Execute due payouts.

    Scheduled via celery-beat as "run-due-payouts" when CRON_ENABLED.
    Overlapping runs are safe: each payout row is claimed with
    SELECT ... FOR UPDATE SKIP LOCKED.

    Returns:
        Dict with per-status counts and the per-payout results
    """
    from payments.services import PayoutService

    results = PayoutService.run_due_payouts(limit=limit)

    summary = {
        "processed": len(results),
        "paid": sum(1 for r in results if r["status"] == "PAID"),
        "failed": sum(1 for r in results if r["status"] == "FAILED"),
        "results": results,
    }
    logger.info(
        "Payout run finished",
        extra={k: v for k, v in summary.items() if k != "results"},
    )
    return summary


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task
def process_webhook_event(webhook_event_id: str) -> dict:
    """
    Claim and process one recorded webhook event.

    The claim is the same conditional UPDATE the webhook view uses, so a
    redelivery racing this task cannot process the event twice.

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with processing result status
    """
    from payments.webhooks.processing import process_webhook_event as process

    event_uuid = parse_uuid(webhook_event_id)
    webhook_event = None
    if event_uuid is not None:
        webhook_event = WebhookEvent.objects.filter(id=event_uuid).first()
    if webhook_event is None:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if not WebhookEvent.objects.claim(webhook_event.stripe_event_id):
        logger.info(
            "WebhookEvent not claimable, skipping",
            extra={
                "webhook_event_id": str(webhook_event.id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "status": webhook_event.status,
            },
        )
        return {"status": "skipped", "webhook_event_id": str(webhook_event.id)}

    webhook_event.status = WebhookEventStatus.PROCESSING
    processed = process(webhook_event)
    return {
        "status": "processed" if processed else "failed",
        "webhook_event_id": str(webhook_event.id),
        "stripe_event_id": webhook_event.stripe_event_id,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to retry failed webhook events.

    Finds FAILED events below WEBHOOK_MAX_RETRIES and processes them
    again, oldest first.

    Returns:
        Dict with counts of retried and recovered events
    """
    event_ids = list(
        WebhookEvent.objects.retryable(settings.WEBHOOK_MAX_RETRIES).values_list(
            "id", flat=True
        )[:WEBHOOK_RETRY_BATCH_SIZE]
    )

    retried = 0
    recovered = 0
    for event_id in event_ids:
        result = process_webhook_event(str(event_id))
        if result["status"] == "skipped":
            continue
        retried += 1
        if result["status"] == "processed":
            recovered += 1

    if retried:
        logger.info(
            f"Retried {retried} failed webhooks",
            extra={"retried": retried, "recovered": recovered},
        )
    return {"retried": retried, "recovered": recovered}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Periodic task to reset stuck webhooks.

    Finds webhooks that have been in PROCESSING status for longer than
    WEBHOOK_STUCK_THRESHOLD_MINUTES and resets them to FAILED so the
    retry sweep (or a Stripe redelivery) picks them up.

    This handles cases where the worker crashed during processing.

    Returns:
        Dict with count of webhooks reset
    """
    stuck_webhooks = WebhookEvent.objects.stuck(settings.WEBHOOK_STUCK_THRESHOLD_MINUTES)

    reset_count = 0
    for webhook in stuck_webhooks:
        stuck_since = webhook.updated_at
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save(update_fields=["status", "error_message", "retry_count", "updated_at"])
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
                "stuck_since": stuck_since.isoformat(),
            },
        )

    if reset_count > 0:
        logger.info(
            f"Reset {reset_count} stuck webhooks",
            extra={"reset_count": reset_count},
        )

    return {"reset_count": reset_count}

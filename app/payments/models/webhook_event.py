"""
WebhookEvent model for Stripe webhook event tracking.

Stores every authenticated webhook event received from Stripe. The unique
stripe_event_id is the idempotency gate: the row is inserted before any
business logic runs, and a second insert for the same id fails with
IntegrityError, which is how a duplicate delivery is recognised.

Usage:
    from payments.models import WebhookEvent

    try:
        with transaction.atomic():
            event = WebhookEvent.objects.create(
                stripe_event_id="evt_123",
                event_type="payment_intent.succeeded",
                payload=event_payload,
                payload_hash=sha256_hex,
                status=WebhookEventStatus.PROCESSING,
            )
    except IntegrityError:
        # Duplicate delivery
        claimed = WebhookEvent.objects.claim("evt_123")
"""

from __future__ import annotations

from datetime import timedelta

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import WebhookEventStatus

RECLAIMABLE_STATUSES = (WebhookEventStatus.FAILED, WebhookEventStatus.RECEIVED)


class WebhookEventQuerySet(models.QuerySet):
    def claim(self, stripe_event_id: str) -> bool:
        """
        Move an unprocessed event to PROCESSING.

        A single conditional UPDATE, so among concurrent redeliveries of
        the same event exactly one gets True.
        """
        updated = self.filter(
            stripe_event_id=stripe_event_id,
            status__in=RECLAIMABLE_STATUSES,
        ).update(status=WebhookEventStatus.PROCESSING, updated_at=timezone.now())
        return updated == 1

    def retryable(self, max_retries: int):
        return self.filter(
            status=WebhookEventStatus.FAILED,
            retry_count__lt=max_retries,
        ).order_by("received_at")

    def stuck(self, threshold_minutes: int):
        """PROCESSING rows untouched for longer than the threshold."""
        cutoff = timezone.now() - timedelta(minutes=threshold_minutes)
        return self.filter(
            status=WebhookEventStatus.PROCESSING,
            updated_at__lt=cutoff,
        )


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks Stripe webhook events for idempotent processing.

    Processing Flow:
        1. Webhook arrives, verify Stripe signature
        2. Insert WebhookEvent with stripe_event_id (in a savepoint)
        3. If the insert collides and the row is PROCESSED/PROCESSING -> duplicate
        4. If the row is FAILED/RECEIVED -> claim it and reprocess
        5. Route to the handler for the event kind
        6. Set status to PROCESSED or FAILED
        7. If FAILED, the retry sweep picks it up later

    Fields:
        gateway: Payment processor that sent the event
        stripe_event_id: Unique Stripe Event ID (evt_xxx)
        event_type: Type of webhook event
        livemode: Whether the event came from live mode
        received_at: When the first delivery was accepted
        processed_at: When business logic completed
        payload_hash: sha256 hex digest of the raw request body
        payload: Parsed event, kept for the retry sweep
        status: Processing status
        error_message: Error details if processing failed
        retry_count: Number of failed processing attempts
    """

    gateway = models.CharField(
        max_length=20,
        default="STRIPE",
        help_text="Payment processor that sent the event",
    )

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Event ID (evt_xxx)",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Stripe event type (e.g., payment_intent.succeeded)",
    )

    livemode = models.BooleanField(
        default=False,
        help_text="Whether the event was sent from live mode",
    )

    received_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the event was first received",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the event was successfully processed",
    )

    payload_hash = models.CharField(
        max_length=64,
        help_text="SHA-256 hex digest of the raw request body",
    )

    payload = models.JSONField(
        default=dict,
        help_text="Parsed webhook event",
    )

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.RECEIVED,
        db_index=True,
        help_text="Processing status",
    )

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error details if processing failed",
    )

    retry_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of failed processing attempts",
    )

    objects = WebhookEventQuerySet.as_manager()

    class Meta:
        ordering = ["-received_at"]
        indexes = [
            models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.stripe_event_id}, {self.event_type})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def mark_processed(self) -> None:
        """
        Mark event as successfully processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """
        Mark event as failed and count the attempt.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message[:2000]
        self.retry_count += 1

    def get_object(self) -> dict:
        """Return payload.data.object, or an empty dict if absent."""
        try:
            obj = self.payload.get("data", {}).get("object", {})
        except (AttributeError, TypeError):
            return {}
        return obj if isinstance(obj, dict) else {}

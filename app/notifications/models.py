"""
Notification inbox model.

Notifications are in-app messages shown to a user (release of an escrow
hold, a processed refund, a failed payout). Delivery over push/email is
owned by the surrounding system; this model is the inbox it reads from.

Usage:
    from notifications.models import Notification, NotificationType

    Notification.objects.create(
        recipient=provider.user,
        notification_type=NotificationType.PAYMENT_RELEASED,
        title="Escrow released",
        body="Payment ... has been released.",
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class NotificationType(models.TextChoices):
    """Notification keys emitted by the payment engine."""

    PAYMENT_RELEASED = "payment.released", "Payment released"
    PAYMENT_REFUNDED = "payment.refunded", "Payment refunded"
    PAYOUT_FAILED = "payout.failed", "Payout failed"


class Notification(BaseModel):
    """
    A single inbox notification.

    Fields:
        recipient: User who receives the notification
        notification_type: Dotted key (see NotificationType); free text is
            allowed so other apps can add their own keys
        title: Short headline
        body: Message text
        data: JSON context (entity ids) for deep links
        is_read / read_at: Read state
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    notification_type = models.CharField(max_length=64, db_index=True)
    title = models.CharField(max_length=200)
    body = models.TextField(blank=True, default="")
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["recipient", "is_read"], name="notif_recipient_read_idx"),
        ]

    def __str__(self) -> str:
        return f"Notification({self.notification_type} -> {self.recipient_id})"

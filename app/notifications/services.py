"""
Notification services.

NotificationService.notify is the sink the payment engine calls. Like the
audit sink it is best-effort: the notification is created by a Celery task
queued after the current transaction commits, and any failure is logged
rather than raised.

Usage:
    NotificationService.notify(
        recipient=payment.user,
        notification_type=NotificationType.PAYMENT_REFUNDED,
        title="Refund processed",
        body=f"Refund processed for payment {payment.id}.",
        data={"payment_id": str(payment.id)},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.db import transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult
from notifications.models import Notification

if TYPE_CHECKING:
    from authentication.models import User


class NotificationService(BaseService):
    """Create and manage inbox notifications."""

    @classmethod
    def notify(
        cls,
        recipient: User,
        notification_type: str,
        title: str,
        body: str = "",
        data: dict[str, Any] | None = None,
    ) -> None:
        """Queue a notification for delivery once the current transaction commits."""
        payload = {
            "recipient_id": recipient.pk,
            "notification_type": str(notification_type),
            "title": title,
            "body": body,
            "data": data or {},
        }
        transaction.on_commit(lambda: cls._enqueue(payload))

    @classmethod
    def _enqueue(cls, payload: dict[str, Any]) -> None:
        from notifications.tasks import deliver_notification

        try:
            deliver_notification.delay(**payload)
        except Exception:
            cls.get_logger().warning(
                "Failed to queue notification",
                extra={
                    "notification_type": payload["notification_type"],
                    "recipient_id": payload["recipient_id"],
                },
                exc_info=True,
            )

    @classmethod
    def create_notification(
        cls,
        recipient_id: int,
        notification_type: str,
        title: str,
        body: str = "",
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Write the inbox row synchronously. Used by the Celery task."""
        notification = Notification.objects.create(
            recipient_id=recipient_id,
            notification_type=notification_type,
            title=title,
            body=body,
            data=data or {},
        )
        cls.get_logger().debug(
            "Notification created",
            extra={"notification_id": notification.id, "type": notification_type},
        )
        return notification

    @classmethod
    def mark_as_read(
        cls,
        notification: Notification,
        user: User,
    ) -> ServiceResult[Notification]:
        """
        Mark a single notification as read.

        Idempotent: marking an already-read notification succeeds.

        Error codes:
            NOT_OWNER: User doesn't own the notification
        """
        if notification.recipient_id != user.pk:
            cls.get_logger().warning(
                f"User {user.pk} attempted to mark notification {notification.id} "
                f"owned by user {notification.recipient_id}"
            )
            return ServiceResult.failure(
                "Cannot mark notification you don't own",
                error_code="NOT_OWNER",
            )

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=["is_read", "read_at", "updated_at"])

        return ServiceResult.success(notification)

    @classmethod
    def mark_all_as_read(cls, user: User) -> ServiceResult[int]:
        """Mark every unread notification of ``user`` as read in one query."""
        count = Notification.objects.filter(recipient=user, is_read=False).update(
            is_read=True, read_at=timezone.now()
        )
        cls.get_logger().info(f"Marked {count} notifications as read for user {user.pk}")
        return ServiceResult.success(count)

"""
Celery tasks for notification delivery.
"""

from __future__ import annotations

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def deliver_notification(
    recipient_id: int,
    notification_type: str,
    title: str,
    body: str = "",
    data: dict | None = None,
) -> None:
    """Create the inbox notification. Failures are logged and dropped."""
    from notifications.services import NotificationService

    try:
        NotificationService.create_notification(
            recipient_id=recipient_id,
            notification_type=notification_type,
            title=title,
            body=body,
            data=data,
        )
    except Exception:
        logger.error(
            "Failed to deliver notification",
            extra={"recipient_id": recipient_id, "notification_type": notification_type},
            exc_info=True,
        )

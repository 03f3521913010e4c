"""
Celery tasks for the audit log.
"""

from __future__ import annotations

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def record_audit_entry(
    actor_id: int | None,
    entity_type: str,
    entity_id: str,
    action: str,
    metadata: dict | None = None,
) -> None:
    """
    Persist one audit entry.

    Errors are logged, not retried: a missing audit line must not
    trigger a retry storm against the database.
    """
    from audit.services import AuditService

    try:
        AuditService.write(
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            metadata=metadata,
        )
    except Exception:
        logger.error(
            "Failed to write audit entry",
            extra={"action": action, "entity_type": entity_type, "entity_id": entity_id},
            exc_info=True,
        )

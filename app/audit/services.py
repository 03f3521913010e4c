"""
Audit service.

The audit sink is fire-and-forget from the caller's point of view:

    AuditService.record(
        actor=request.user,
        entity_type="Payment",
        entity_id=payment.id,
        action="payment.released",
        metadata={"payout_id": str(payout.id)},
    )

record() queues a Celery task once the surrounding transaction commits.
A failure to queue or to write is logged and swallowed, so auditing can
never roll back or block the change being audited.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.db import transaction

from audit.models import AuditLog
from core.services import BaseService

if TYPE_CHECKING:
    from authentication.models import User


class AuditService(BaseService):
    """Best-effort writer for AuditLog entries."""

    @classmethod
    def record(
        cls,
        actor: User | None,
        entity_type: str,
        entity_id: Any,
        action: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Queue an audit entry to be written after the current transaction commits."""
        actor_id = actor.pk if actor is not None else None
        payload = {
            "actor_id": actor_id,
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "action": action,
            "metadata": metadata or {},
        }
        transaction.on_commit(lambda: cls._enqueue(payload))

    @classmethod
    def _enqueue(cls, payload: dict[str, Any]) -> None:
        from audit.tasks import record_audit_entry

        try:
            record_audit_entry.delay(**payload)
        except Exception:
            cls.get_logger().warning(
                "Failed to queue audit entry",
                extra={"action": payload["action"], "entity_id": payload["entity_id"]},
                exc_info=True,
            )

    @classmethod
    def write(
        cls,
        actor_id: int | None,
        entity_type: str,
        entity_id: str,
        action: str,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Write an entry synchronously. Used by the Celery task."""
        return AuditLog.objects.create(
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            metadata=metadata or {},
        )

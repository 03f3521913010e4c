"""
Audit log model.

AuditLog is an append-only record of who did what to which entity.
Entries are written after the business transaction commits (see
audit.services), so an entry always describes a change that happened.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class AuditLog(BaseModel):
    """
    A single audit entry.

    Fields:
        actor: User who triggered the action (null for webhooks and jobs)
        action: Dotted action name, e.g. "payment.released"
        entity_type: Model name of the affected entity, e.g. "Payment"
        entity_id: Primary key of the affected entity, as text
        metadata: Free-form JSON context
    """

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
    )
    action = models.CharField(max_length=100, db_index=True)
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=64)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["entity_type", "entity_id"], name="audit_entity_idx"),
        ]

    def __str__(self) -> str:
        return f"AuditLog({self.action} {self.entity_type}:{self.entity_id})"

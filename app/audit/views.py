"""
Views for the audit log API.

Endpoints:
    GET /api/v1/audit/logs/ - Latest audit entries (admin only)
        ?entity_type=Payment&entity_id=<id> narrows to one entity
        ?action=payout.failed&since=<iso datetime> narrows by action and time
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework.generics import ListAPIView
from rest_framework.permissions import IsAuthenticated

from audit.filters import AuditLogFilter
from audit.models import AuditLog
from audit.serializers import AuditLogSerializer
from authentication.permissions import IsAdminRole


@extend_schema(
    operation_id="list_audit_logs",
    summary="List audit log entries",
    tags=["Audit"],
)
class AuditLogListView(ListAPIView):
    """Admin listing of audit entries, newest first."""

    permission_classes = [IsAuthenticated, IsAdminRole]
    serializer_class = AuditLogSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = AuditLogFilter

    def get_queryset(self):
        return AuditLog.objects.select_related("actor").order_by("-created_at")

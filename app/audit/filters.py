import django_filters as filters

from audit.models import AuditLog


class AuditLogFilter(filters.FilterSet):
    since = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    until = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = AuditLog
        fields = ["entity_type", "entity_id", "action", "since", "until"]

"""
Payment admin configuration.

Registers Payment, Payout and WebhookEvent with the Django admin. Status
fields are read-only here: state changes go through the service layer
(release, refund, requeue) so they are audited and row-locked.
"""

from django.contrib import admin

from payments.models import Payment, Payout, WebhookEvent

__all__ = [
    "PaymentAdmin",
    "PayoutAdmin",
    "WebhookEventAdmin",
]


def _format_amount(amount_cents: int, currency: str) -> str:
    return f"{amount_cents / 100:.2f} {currency.upper()}"


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Provides visibility into deposits and their escrow state.
    """

    list_display = [
        "id",
        "user",
        "amount_display",
        "status",
        "escrow_hold_until",
        "created_at",
    ]
    list_filter = ["status", "currency", "created_at"]
    search_fields = [
        "id",
        "stripe_payment_intent_id",
        "stripe_charge_id",
        "user__email",
    ]
    readonly_fields = [
        "id",
        "status",
        "stripe_payment_intent_id",
        "stripe_charge_id",
        "captured_at",
        "provider_released_at",
        "refunded_at",
        "failure_reason",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["user", "quotation"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "user", "quotation", "status"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount_cents", "currency"),
            },
        ),
        (
            "Escrow",
            {
                "fields": (
                    "escrow_hold_until",
                    "provider_release_eligible_at",
                    "provider_released_at",
                ),
            },
        ),
        (
            "Stripe Details",
            {
                "fields": (
                    "stripe_payment_intent_id",
                    "stripe_charge_id",
                    "captured_at",
                    "refunded_at",
                ),
            },
        ),
        (
            "Failure Info",
            {
                "fields": ("failure_reason",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.display(description="Amount")
    def amount_display(self, obj: Payment) -> str:
        return _format_amount(obj.amount_cents, obj.currency)

    def has_delete_permission(self, request, obj=None) -> bool:
        """Payments are never deleted."""
        return False

    def has_add_permission(self, request) -> bool:
        """Deposits are created through the API only."""
        return False


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payout.

    Provides visibility into payout status and history. Failed payouts
    are retried with the requeue endpoint.
    """

    list_display = [
        "id",
        "payment",
        "provider",
        "amount_display",
        "status",
        "scheduled_at",
        "paid_at",
    ]
    list_filter = ["status", "currency", "scheduled_at"]
    search_fields = [
        "id",
        "external_ref",
        "payment__id",
        "provider__stripe_account_id",
    ]
    readonly_fields = [
        "id",
        "payment",
        "provider",
        "status",
        "amount_cents",
        "currency",
        "scheduled_at",
        "paid_at",
        "external_ref",
        "error",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "scheduled_at"
    ordering = ["-scheduled_at"]

    @admin.display(description="Amount")
    def amount_display(self, obj: Payout) -> str:
        return _format_amount(obj.amount_cents, obj.currency)

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payouts (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Payouts are only created by releasing a payment."""
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "received_at",
        "processed_at",
    ]
    list_filter = ["status", "event_type", "livemode"]
    search_fields = ["id", "stripe_event_id", "event_type"]
    readonly_fields = [
        "id",
        "gateway",
        "stripe_event_id",
        "event_type",
        "livemode",
        "status",
        "received_at",
        "processed_at",
        "payload_hash",
        "payload",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "received_at"
    ordering = ["-received_at"]

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Disable adding webhook events through admin."""
        return False

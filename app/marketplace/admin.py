"""
Django admin configuration for marketplace models.
"""

from django.contrib import admin

from marketplace.models import ProviderProfile, QuotationRequest


@admin.register(ProviderProfile)
class ProviderProfileAdmin(admin.ModelAdmin):
    list_display = (
        "display_name",
        "user",
        "provider_type",
        "stripe_account_id",
        "stripe_onboarding_status",
        "stripe_payouts_enabled",
    )
    list_filter = ("provider_type", "stripe_onboarding_status", "stripe_payouts_enabled")
    search_fields = ("display_name", "user__email", "stripe_account_id")
    # Mirrored from Stripe webhooks
    readonly_fields = (
        "stripe_onboarding_status",
        "stripe_charges_enabled",
        "stripe_payouts_enabled",
        "stripe_details_submitted",
        "stripe_onboarded_at",
        "created_at",
        "updated_at",
    )


@admin.register(QuotationRequest)
class QuotationRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "provider", "procedure", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("user__email", "provider__display_name", "procedure")
    raw_id_fields = ("user", "provider")

"""
Payments app configuration.

This app provides the payment and payout lifecycle:
- Deposits held in escrow (ledger-only or Stripe manual capture)
- Stripe webhook reconciliation
- Scheduled provider payouts through Stripe Connect
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

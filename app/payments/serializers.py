"""
DRF serializers for payments app.

This module provides serializers for:
- Deposit, capture, release and refund requests
- Payment and payout display
- Stripe Connect responses

Request serializers only check shape (types, presence). Business rules
such as the minimum amount and the hold-day window are enforced by
PaymentService so every entry point applies them the same way.

Usage:
    serializer = DepositRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import Payment, Payout


# =============================================================================
# Request Serializers
# =============================================================================


class DepositRequestSerializer(serializers.Serializer):
    """
    Deposit request body.

    Fields:
        amount_cents: Amount in the smallest currency unit
        currency: ISO 4217 code, defaults to PAYMENTS_DEFAULT_CURRENCY
        hold_days: Escrow hold, defaults to PAYMENTS_DEFAULT_HOLD_DAYS
        quotation_id: Optional quotation the deposit pays for
    """

    amount_cents = serializers.IntegerField()
    currency = serializers.CharField(max_length=3, min_length=3, required=False)
    hold_days = serializers.IntegerField(required=False)
    quotation_id = serializers.UUIDField(required=False, allow_null=True)


class PaymentActionSerializer(serializers.Serializer):
    payment_id = serializers.UUIDField()


class RefundRequestSerializer(PaymentActionSerializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True)


class RunPayoutsSerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=500, required=False)


# =============================================================================
# Response Serializers
# =============================================================================


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            "id",
            "user",
            "quotation",
            "amount_cents",
            "currency",
            "status",
            "escrow_hold_until",
            "provider_release_eligible_at",
            "provider_released_at",
            "stripe_payment_intent_id",
            "captured_at",
            "refunded_at",
            "failure_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class DepositResponseSerializer(serializers.Serializer):
    """
    Deposit response.

    client_secret is only set in STRIPE mode; the client confirms the
    PaymentIntent with it.
    """

    payment = PaymentSerializer()
    client_secret = serializers.CharField(allow_null=True)
    payment_intent_id = serializers.CharField(allow_null=True)


class PayoutSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payout
        fields = [
            "id",
            "provider",
            "payment",
            "amount_cents",
            "currency",
            "status",
            "scheduled_at",
            "paid_at",
            "external_ref",
            "error",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ReleaseResponseSerializer(serializers.Serializer):
    payment = PaymentSerializer()
    payout = PayoutSerializer()


class PayoutRunResultSerializer(serializers.Serializer):
    payoutId = serializers.CharField()
    status = serializers.CharField()
    externalRef = serializers.CharField(required=False)
    error = serializers.CharField(required=False)


class ConnectAccountSerializer(serializers.Serializer):
    stripe_account_id = serializers.CharField()


class AccountLinkSerializer(serializers.Serializer):
    url = serializers.URLField()
    expires_at = serializers.IntegerField(allow_null=True)


class ConnectStatusSerializer(serializers.Serializer):
    stripe_connect_enabled = serializers.BooleanField()
    stripe_account_id = serializers.CharField(allow_null=True)
    onboarding_status = serializers.CharField()
    charges_enabled = serializers.BooleanField()
    payouts_enabled = serializers.BooleanField()
    details_submitted = serializers.BooleanField()
    onboarded_at = serializers.DateTimeField(allow_null=True)

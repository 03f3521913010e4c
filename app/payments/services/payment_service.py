"""
Payment service for the deposit lifecycle.

This module provides PaymentService, the entry point for every operation
that moves a Payment through its state machine from outside the webhook
path: deposit, admin capture, admin release, admin refund.

Two deposit modes are supported (settings.PAYMENTS_MODE):
- MOCK: ledger-only. The Payment is created directly in HELD; no gateway.
- STRIPE: a manual-capture PaymentIntent is created and the Payment starts
  in INITIATED. Webhooks (or an admin capture) move it on to HELD.

Usage:
    from payments.services import PaymentService

    result = PaymentService.initiate_deposit(
        user=request.user,
        amount_cents=200000,
        currency="USD",
        hold_days=7,
        quotation_id=quotation.id,
    )
    if result.success:
        payment = result.data.payment
        client_secret = result.data.client_secret  # None in MOCK mode
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from django_fsm import can_proceed

from audit.services import AuditService
from core.exceptions import BaseApplicationError, PermissionDeniedError
from core.model_mixins import parse_uuid
from core.services import BaseService, ServiceResult
from marketplace.models import QuotationRequest
from notifications.models import NotificationType
from notifications.services import NotificationService

from payments.adapters import IdempotencyKeyGenerator, get_stripe_adapter
from payments.exceptions import (
    InvalidStateTransitionError,
    PaymentConfigurationError,
    PaymentNotFoundError,
    PaymentValidationError,
    StripeError,
)
from payments.models import Payment, Payout
from payments.services.payout_service import PayoutService
from payments.state_machines import PaymentsMode, PaymentStatus

if TYPE_CHECKING:
    from authentication.models import User
    from payments.adapters import StripeAdapter


CURRENCY_PATTERN = re.compile(r"^[A-Za-z]{3}$")

# Listing cap for "my payments"
USER_PAYMENTS_LIMIT = 50


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class DepositResult:
    """
    Outcome of a successful deposit.

    Attributes:
        payment: The created Payment (HELD in MOCK mode, INITIATED in STRIPE mode)
        client_secret: PaymentIntent secret for Stripe.js, None in MOCK mode
        payment_intent_id: Stripe PaymentIntent ID, None in MOCK mode
    """

    payment: Payment
    client_secret: str | None = None
    payment_intent_id: str | None = None


@dataclass
class ReleaseResult:
    payment: Payment
    payout: Payout


# =============================================================================
# Payment Service
# =============================================================================


class PaymentService(BaseService):
    """
    Coordinates Payment state transitions initiated by users and admins.

    Every method returns a ServiceResult. Expected failures carry one of:
        VALIDATION_ERROR, QUOTATION_NOT_FOUND, FORBIDDEN, PAYMENT_NOT_FOUND,
        BAD_STATUS, MISSING_PAYMENT_INTENT, PAYMENTS_MODE_NOT_STRIPE,
        STRIPE_NOT_CONFIGURED, STRIPE_WEBHOOK_NOT_CONFIGURED,
        STRIPE_REFUND_FAILED, PAYMENT_MISSING_PROVIDER, or a Stripe error code.

    Gateway-dependent methods take an optional ``stripe_adapter``; when
    omitted one is built from settings.
    """

    # =========================================================================
    # Deposit
    # =========================================================================

    @classmethod
    def initiate_deposit(
        cls,
        user: User,
        amount_cents: int,
        currency: str | None = None,
        hold_days: int | None = None,
        quotation_id: uuid.UUID | str | None = None,
        stripe_adapter: StripeAdapter | None = None,
    ) -> ServiceResult[DepositResult]:
        """
        Create a deposit Payment.

        Args:
            user: The paying user
            amount_cents: Amount in minor units, at least PAYMENTS_MIN_AMOUNT_CENTS
            currency: 3-letter code, upper-cased (default PAYMENTS_DEFAULT_CURRENCY)
            hold_days: Escrow hold length in days (default PAYMENTS_DEFAULT_HOLD_DAYS)
            quotation_id: Optional quotation the deposit pays for
            stripe_adapter: Gateway to use in STRIPE mode

        Returns:
            ServiceResult[DepositResult]
        """
        try:
            amount_cents, currency, hold_days = cls._validate_deposit(
                amount_cents, currency, hold_days
            )
            quotation = cls._resolve_quotation(user, quotation_id)
        except BaseApplicationError as e:
            return ServiceResult.from_error(e)

        hold_until = timezone.now() + timedelta(days=hold_days)
        mode = settings.PAYMENTS_MODE

        if mode != PaymentsMode.STRIPE:
            payment = Payment.objects.create(
                user=user,
                quotation=quotation,
                amount_cents=amount_cents,
                currency=currency,
                status=PaymentStatus.HELD,
                escrow_hold_until=hold_until,
                provider_release_eligible_at=hold_until,
            )
            AuditService.record(
                actor=user,
                entity_type="Payment",
                entity_id=payment.id,
                action="payment.deposit.created",
                metadata={"amount_cents": amount_cents, "currency": currency, "mode": mode},
            )
            cls.get_logger().info(
                "Ledger deposit created",
                extra={"payment_id": str(payment.id), "amount_cents": amount_cents},
            )
            return ServiceResult.success(DepositResult(payment=payment))

        adapter = stripe_adapter or get_stripe_adapter()
        try:
            adapter.ensure_configured()
        except PaymentConfigurationError as e:
            return ServiceResult.from_error(e)

        payment = Payment.objects.create(
            user=user,
            quotation=quotation,
            amount_cents=amount_cents,
            currency=currency,
            status=PaymentStatus.INITIATED,
            escrow_hold_until=hold_until,
            provider_release_eligible_at=hold_until,
        )

        try:
            intent = adapter.authorize(
                amount_cents=amount_cents,
                currency=currency,
                manual_capture=True,
                metadata={
                    "paymentId": str(payment.id),
                    "quotationId": str(quotation.id) if quotation else "",
                    "userId": str(user.pk),
                },
                idempotency_key=IdempotencyKeyGenerator.generate("authorize", payment.id),
            )
        except StripeError as e:
            # The INITIATED row stays, without an intent, as a record of the attempt
            cls.get_logger().warning(
                "PaymentIntent creation failed",
                extra={"payment_id": str(payment.id), "error_code": e.error_code},
            )
            return ServiceResult.from_error(e)

        Payment.objects.filter(id=payment.id).update(
            stripe_payment_intent_id=intent.id,
            updated_at=timezone.now(),
        )
        payment.stripe_payment_intent_id = intent.id

        AuditService.record(
            actor=user,
            entity_type="Payment",
            entity_id=payment.id,
            action="stripe.payment_intent.created",
            metadata={"stripe_payment_intent_id": intent.id},
        )
        cls.get_logger().info(
            "PaymentIntent created for deposit",
            extra={"payment_id": str(payment.id), "payment_intent_id": intent.id},
        )
        return ServiceResult.success(
            DepositResult(
                payment=payment,
                client_secret=intent.client_secret,
                payment_intent_id=intent.id,
            )
        )

    @classmethod
    def _validate_deposit(
        cls,
        amount_cents,
        currency: str | None,
        hold_days,
    ) -> tuple[int, str, int]:
        min_amount = settings.PAYMENTS_MIN_AMOUNT_CENTS
        min_days = settings.PAYMENTS_MIN_HOLD_DAYS
        max_days = settings.PAYMENTS_MAX_HOLD_DAYS

        if currency is None:
            currency = settings.PAYMENTS_DEFAULT_CURRENCY
        if hold_days is None:
            hold_days = settings.PAYMENTS_DEFAULT_HOLD_DAYS

        errors: dict[str, list[str]] = {}
        if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
            errors["amount_cents"] = ["Must be an integer"]
        elif amount_cents < min_amount:
            errors["amount_cents"] = [f"Must be at least {min_amount}"]
        if not isinstance(currency, str) or not CURRENCY_PATTERN.match(currency):
            errors["currency"] = ["Must be a 3-letter currency code"]
        if isinstance(hold_days, bool) or not isinstance(hold_days, int):
            errors["hold_days"] = ["Must be an integer"]
        elif not min_days <= hold_days <= max_days:
            errors["hold_days"] = [f"Must be between {min_days} and {max_days}"]

        if errors:
            raise PaymentValidationError("Invalid deposit", details=errors)
        return amount_cents, currency.upper(), hold_days

    @classmethod
    def _resolve_quotation(cls, user: User, quotation_id) -> QuotationRequest | None:
        if quotation_id in (None, ""):
            return None

        quotation_uuid = parse_uuid(quotation_id)
        quotation = None
        if quotation_uuid is not None:
            quotation = (
                QuotationRequest.objects.select_related("provider")
                .filter(id=quotation_uuid)
                .first()
            )
        if quotation is None:
            raise PaymentNotFoundError(
                "Quotation not found",
                error_code="QUOTATION_NOT_FOUND",
                details={"quotation_id": str(quotation_id)},
            )
        if not quotation.is_owned_by(user) and not user.is_admin_role:
            raise PermissionDeniedError("You cannot pay for another user's quotation")
        return quotation

    # =========================================================================
    # Capture
    # =========================================================================

    @classmethod
    def capture_payment(
        cls,
        actor: User,
        payment_id: uuid.UUID | str,
        stripe_adapter: StripeAdapter | None = None,
    ) -> ServiceResult[Payment]:
        """
        Capture an authorized PaymentIntent and move the Payment to HELD.

        Only meaningful in STRIPE mode. The status is checked before
        calling Stripe, so a payment that cannot be held is never captured.
        """
        if settings.PAYMENTS_MODE != PaymentsMode.STRIPE:
            return ServiceResult.failure(
                "Capture requires PAYMENTS_MODE=STRIPE",
                error_code="PAYMENTS_MODE_NOT_STRIPE",
            )

        adapter = stripe_adapter or get_stripe_adapter()
        try:
            adapter.ensure_configured()
            payment = cls._get_payment(payment_id)
        except BaseApplicationError as e:
            return ServiceResult.from_error(e)

        if not payment.stripe_payment_intent_id:
            return ServiceResult.failure(
                "Payment has no Stripe PaymentIntent",
                error_code="MISSING_PAYMENT_INTENT",
            )
        if not can_proceed(payment.hold):
            return ServiceResult.from_error(cls._bad_status(payment, "capture"))

        try:
            intent = adapter.capture(
                payment.stripe_payment_intent_id,
                idempotency_key=IdempotencyKeyGenerator.generate("capture", payment.id),
            )
        except StripeError as e:
            return ServiceResult.from_error(e)

        try:
            with transaction.atomic():
                payment = Payment.objects.select_for_update().get(id=payment.id)
                if payment.status != PaymentStatus.HELD:
                    # payment_intent.succeeded may have landed first
                    if not can_proceed(payment.hold):
                        raise cls._bad_status(payment, "capture")
                    payment.hold()
                    payment.save_transition("capture")
                AuditService.record(
                    actor=actor,
                    entity_type="Payment",
                    entity_id=payment.id,
                    action="stripe.payment_intent.captured",
                    metadata={"stripe_payment_intent_id": intent.id},
                )
        except BaseApplicationError as e:
            return ServiceResult.from_error(e)

        cls.get_logger().info(
            "Payment captured",
            extra={"payment_id": str(payment.id), "payment_intent_id": intent.id},
        )
        return ServiceResult.success(payment)

    # =========================================================================
    # Release
    # =========================================================================

    @classmethod
    def release_payment(
        cls,
        actor: User,
        payment_id: uuid.UUID | str,
    ) -> ServiceResult[ReleaseResult]:
        """
        Release a HELD payment and schedule its payout.

        The status change and the payout row are written in one
        transaction: if the payout cannot be scheduled (for example the
        quotation has no provider) the release is rolled back.
        """
        try:
            with transaction.atomic():
                payment = cls._get_payment(payment_id, for_update=True)
                if not can_proceed(payment.release):
                    raise cls._bad_status(payment, "release")

                payment.release()
                payment.save_transition("release")
                payout = PayoutService.schedule_payout(payment)

                AuditService.record(
                    actor=actor,
                    entity_type="Payment",
                    entity_id=payment.id,
                    action="payment.released",
                    metadata={"payout_id": str(payout.id)},
                )
                provider = payment.provider
                NotificationService.notify(
                    recipient=provider.user,
                    notification_type=NotificationType.PAYMENT_RELEASED,
                    title="Escrow released",
                    body=f"Payment {payment.id} has been released (admin approval).",
                    data={"payment_id": str(payment.id), "payout_id": str(payout.id)},
                )
        except BaseApplicationError as e:
            cls.get_logger().warning(
                "Release rejected",
                extra={"payment_id": str(payment_id), "error_code": e.error_code},
            )
            return ServiceResult.from_error(e)

        cls.get_logger().info(
            "Payment released",
            extra={"payment_id": str(payment.id), "payout_id": str(payout.id)},
        )
        return ServiceResult.success(ReleaseResult(payment=payment, payout=payout))

    # =========================================================================
    # Refund
    # =========================================================================

    @classmethod
    def refund_payment(
        cls,
        actor: User,
        payment_id: uuid.UUID | str,
        reason: str | None = None,
        stripe_adapter: StripeAdapter | None = None,
    ) -> ServiceResult[Payment]:
        """
        Refund a HELD or RELEASED payment.

        In STRIPE mode a payment with a PaymentIntent is refunded at Stripe
        first; if Stripe refuses, the local payment is left untouched.
        """
        try:
            payment = cls._get_payment(payment_id)
        except BaseApplicationError as e:
            return ServiceResult.from_error(e)

        if not can_proceed(payment.refund):
            return ServiceResult.from_error(cls._bad_status(payment, "refund"))

        mode = settings.PAYMENTS_MODE
        if mode == PaymentsMode.STRIPE and payment.stripe_payment_intent_id:
            adapter = stripe_adapter or get_stripe_adapter()
            try:
                adapter.ensure_configured(require_webhook_secret=False)
            except PaymentConfigurationError as e:
                return ServiceResult.from_error(e)
            try:
                adapter.refund(
                    payment.stripe_payment_intent_id,
                    reason="requested_by_customer",
                    idempotency_key=IdempotencyKeyGenerator.generate("refund", payment.id),
                )
            except StripeError as e:
                cls.get_logger().warning(
                    "Stripe refund failed",
                    extra={"payment_id": str(payment.id), "stripe_code": e.stripe_code},
                )
                return ServiceResult.failure(e.message, error_code="STRIPE_REFUND_FAILED")

        try:
            with transaction.atomic():
                payment = cls._get_payment(payment.id, for_update=True)
                if payment.status == PaymentStatus.REFUNDED:
                    # charge.refunded webhook got here first
                    return ServiceResult.success(payment)
                if not can_proceed(payment.refund):
                    raise cls._bad_status(payment, "refund")

                payment.refund()
                payment.save_transition("refund")

                AuditService.record(
                    actor=actor,
                    entity_type="Payment",
                    entity_id=payment.id,
                    action="payment.refunded",
                    metadata={"reason": reason, "mode": mode},
                )
                NotificationService.notify(
                    recipient=payment.user,
                    notification_type=NotificationType.PAYMENT_REFUNDED,
                    title="Refund processed",
                    body=reason or f"Refund processed for payment {payment.id}.",
                    data={"payment_id": str(payment.id)},
                )
        except BaseApplicationError as e:
            return ServiceResult.from_error(e)

        cls.get_logger().info("Payment refunded", extra={"payment_id": str(payment.id)})
        return ServiceResult.success(payment)

    # =========================================================================
    # Queries
    # =========================================================================

    @classmethod
    def list_payments_for_user(cls, user: User) -> list[Payment]:
        """The user's latest payments, newest first."""
        return list(Payment.objects.for_user(user).newest()[:USER_PAYMENTS_LIMIT])

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def _get_payment(cls, payment_id, for_update: bool = False) -> Payment:
        payment_uuid = parse_uuid(payment_id)
        payment = None
        if payment_uuid is not None:
            queryset = Payment.objects.select_related("quotation__provider__user", "user")
            if for_update:
                queryset = queryset.select_for_update(of=("self",))
            payment = queryset.filter(id=payment_uuid).first()
        if payment is None:
            raise PaymentNotFoundError(
                "Payment not found",
                details={"payment_id": str(payment_id)},
            )
        return payment

    @staticmethod
    def _bad_status(payment: Payment, action: str) -> InvalidStateTransitionError:
        return InvalidStateTransitionError(
            f"Cannot {action} payment in {payment.status} status",
            details={"current_status": payment.status, "action": action},
        )

"""
Payout service for scheduling and managing provider payouts.

A Payout is derived 1:1 from a RELEASED Payment. Scheduling is idempotent
(the Payout.payment OneToOne column is the guard), execution is done in
bounded batches by payments.workers.PayoutExecutor, and a FAILED payout
only goes back into the queue through an explicit admin requeue.

Usage:
    from payments.services import PayoutService

    # Inside the release transaction
    payout = PayoutService.schedule_payout(payment)

    # From the Celery beat task or the admin trigger
    results = PayoutService.run_due_payouts(limit=50)
    # [{"payoutId": "...", "status": "FAILED", "error": "stripe_connect_disabled"}]
"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from django_fsm import can_proceed

from audit.services import AuditService
from core.exceptions import BaseApplicationError
from core.model_mixins import parse_uuid
from core.services import BaseService, ServiceResult
from marketplace.models import ProviderProfile

from payments.exceptions import (
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentValidationError,
)
from payments.models import Payment, Payout
from payments.state_machines import PaymentStatus, PayoutStatus
from payments.workers.payout_executor import PayoutExecutor

if TYPE_CHECKING:
    from authentication.models import User
    from payments.adapters import StripeAdapter


logger = logging.getLogger(__name__)


# Admin listing cap
ADMIN_PAYOUTS_LIMIT = 200


class PayoutService(BaseService):
    """
    Schedules, runs and requeues payouts.

    Error codes:
        PAYMENT_NOT_FOUND: No payment with that id
        PAYMENT_NOT_RELEASED: Payment is not RELEASED
        PAYMENT_MISSING_PROVIDER: Payment has no quotation, or its quotation has no provider
        PAYOUT_NOT_FOUND: No payout with that id
        BAD_STATUS: Payout cannot be requeued from its current status
        PROFILE_MISSING: Caller has no provider profile
    """

    # =========================================================================
    # Scheduling
    # =========================================================================

    @classmethod
    def schedule_payout(cls, payment: Payment) -> Payout:
        """
        Return the payment's Payout, creating it if needed.

        Safe under concurrent calls: get_or_create relies on the unique
        payment column, so a racing insert resolves to the existing row.

        Raises:
            InvalidStateTransitionError: Payment is not RELEASED
            PaymentValidationError: Payment has no provider to pay
        """
        if payment.status != PaymentStatus.RELEASED:
            raise InvalidStateTransitionError(
                f"Cannot schedule a payout for a payment in {payment.status} status",
                error_code="PAYMENT_NOT_RELEASED",
                details={"payment_id": str(payment.id), "current_status": payment.status},
            )

        provider = payment.provider
        if provider is None:
            raise PaymentValidationError(
                "Payment has no provider to pay out",
                error_code="PAYMENT_MISSING_PROVIDER",
                details={"payment_id": str(payment.id)},
            )

        interval_days = settings.PAYOUT_INTERVAL_DAYS
        payout, created = Payout.objects.get_or_create(
            payment=payment,
            defaults={
                "provider": provider,
                "amount_cents": payment.amount_cents,
                "currency": payment.currency,
                "scheduled_at": timezone.now() + timedelta(days=interval_days),
            },
        )
        if created:
            AuditService.record(
                actor=None,
                entity_type="Payout",
                entity_id=payout.id,
                action="payout.scheduled",
                metadata={
                    "payment_id": str(payment.id),
                    "provider_id": str(provider.id),
                    "scheduled_at": payout.scheduled_at.isoformat(),
                },
            )
            logger.info(
                "Payout scheduled",
                extra={
                    "payout_id": str(payout.id),
                    "payment_id": str(payment.id),
                    "scheduled_at": payout.scheduled_at.isoformat(),
                },
            )
        return payout

    @classmethod
    def schedule_payout_for_payment(
        cls,
        payment_id: uuid.UUID | str,
    ) -> ServiceResult[Payout]:
        """Look up a payment and schedule its payout."""
        payment_uuid = parse_uuid(payment_id)
        payment = None
        if payment_uuid is not None:
            payment = (
                Payment.objects.select_related("quotation__provider")
                .filter(id=payment_uuid)
                .first()
            )
        if payment is None:
            return ServiceResult.failure("Payment not found", error_code="PAYMENT_NOT_FOUND")

        try:
            with transaction.atomic():
                payout = cls.schedule_payout(payment)
        except BaseApplicationError as e:
            return ServiceResult.from_error(e)
        return ServiceResult.success(payout)

    # =========================================================================
    # Execution
    # =========================================================================

    @classmethod
    def run_due_payouts(
        cls,
        limit: int | None = None,
        stripe_adapter: StripeAdapter | None = None,
    ) -> list[dict[str, Any]]:
        """
        Execute up to ``limit`` due payouts.

        See PayoutExecutor for the per-payout outcome rules.
        """
        if limit is None:
            limit = settings.PAYOUT_RUN_BATCH_LIMIT
        return PayoutExecutor(stripe_adapter=stripe_adapter).run(limit=limit)

    @classmethod
    def requeue_payout(
        cls,
        actor: User,
        payout_id: uuid.UUID | str,
    ) -> ServiceResult[Payout]:
        """
        Move a FAILED payout back to PENDING.

        This is the only way a failed payout is retried. scheduled_at is
        kept, so a payout that was already due runs on the next batch.
        """
        payout_uuid = parse_uuid(payout_id)
        try:
            with transaction.atomic():
                payout = None
                if payout_uuid is not None:
                    payout = Payout.objects.select_for_update().filter(id=payout_uuid).first()
                if payout is None:
                    raise PaymentNotFoundError(
                        "Payout not found",
                        error_code="PAYOUT_NOT_FOUND",
                        details={"payout_id": str(payout_id)},
                    )
                if not can_proceed(payout.requeue):
                    raise InvalidStateTransitionError(
                        f"Cannot requeue payout in {payout.status} status",
                        details={"current_status": payout.status, "action": "requeue"},
                    )

                previous_error = payout.error
                payout.requeue()
                payout.save_transition("requeue")

                AuditService.record(
                    actor=actor,
                    entity_type="Payout",
                    entity_id=payout.id,
                    action="payout.requeued",
                    metadata={"previous_error": previous_error},
                )
        except BaseApplicationError as e:
            return ServiceResult.from_error(e)

        cls.get_logger().info("Payout requeued", extra={"payout_id": str(payout.id)})
        return ServiceResult.success(payout)

    # =========================================================================
    # Queries
    # =========================================================================

    @classmethod
    def list_payouts(cls, status: str | None = None) -> list[Payout]:
        queryset = Payout.objects.select_related("provider", "payment").order_by("-scheduled_at")
        if status:
            queryset = queryset.filter(status=status.upper())
        return list(queryset[:ADMIN_PAYOUTS_LIMIT])

    @classmethod
    def list_payouts_for_provider(cls, user: User) -> ServiceResult[list[Payout]]:
        profile = ProviderProfile.objects.filter(user=user).first()
        if profile is None:
            return ServiceResult.failure(
                "Provider profile not found",
                error_code="PROFILE_MISSING",
            )
        payouts = Payout.objects.filter(provider=profile).select_related("payment")
        return ServiceResult.success(list(payouts.order_by("-scheduled_at")[:ADMIN_PAYOUTS_LIMIT]))


def is_valid_payout_status(value: str) -> bool:
    return value.upper() in PayoutStatus.values

"""
Payout executor for processing due payouts.

PayoutExecutor runs one bounded batch: it selects PENDING payouts whose
scheduled_at has passed, oldest first, and settles each one with a
Stripe Connect transfer or marks it FAILED with a diagnostic reason.

Each payout is claimed together with its payment row by SELECT ... FOR
UPDATE SKIP LOCKED, and both statuses are re-checked under the lock.
Overlapping runs (beat plus a manual admin trigger) never process the
same payout twice, and a refund cannot commit between the check and the
transfer. The transfer uses the idempotency key
``payout_transfer:<payout id>``, so a run that crashes after Stripe
accepted the transfer cannot create a second one when the payout is
requeued.

Safe default: when the payment is no longer RELEASED (refunded after
release), Connect is disabled, Stripe is not configured or the provider
has no connected account, the payout is marked FAILED right away. A
transfer is never invented.

Usage:
    from payments.workers import PayoutExecutor

    results = PayoutExecutor().run(limit=50)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from audit.services import AuditService
from notifications.models import NotificationType
from notifications.services import NotificationService

from payments.adapters import IdempotencyKeyGenerator, get_stripe_adapter
from payments.exceptions import StripeError
from payments.models import Payout
from payments.state_machines import PaymentStatus, PayoutStatus

if TYPE_CHECKING:
    from payments.adapters import StripeAdapter

logger = logging.getLogger(__name__)


# =============================================================================
# Failure Reasons
# =============================================================================

REASON_CONNECT_DISABLED = "stripe_connect_disabled"
REASON_STRIPE_NOT_CONFIGURED = "stripe_not_configured"
REASON_MISSING_ACCOUNT = "missing_stripe_connect_account"
REASON_PAYMENT_REFUNDED = "payment_refunded"
REASON_PAYMENT_NOT_RELEASED = "payment_not_released"


class PayoutExecutor:
    """
    Executes due payouts in bounded batches.

    Attributes:
        stripe_adapter: Gateway used for transfers (built from settings if omitted)
    """

    def __init__(self, stripe_adapter: StripeAdapter | None = None):
        self.stripe_adapter = stripe_adapter or get_stripe_adapter()

    def run(self, limit: int = 50) -> list[dict[str, Any]]:
        """
        Process up to ``limit`` due payouts.

        Returns:
            One entry per processed payout:
            {"payoutId", "status", "externalRef"} on success,
            {"payoutId", "status", "error"} on failure.
        """
        now = timezone.now()
        candidate_ids = list(Payout.objects.due(now).values_list("id", flat=True)[:limit])

        logger.info(
            "Starting payout run",
            extra={"candidate_count": len(candidate_ids), "limit": limit},
        )

        results: list[dict[str, Any]] = []
        for payout_id in candidate_ids:
            try:
                outcome = self._process(payout_id, now)
            except Exception:
                logger.error(
                    "Unexpected error processing payout",
                    extra={"payout_id": str(payout_id)},
                    exc_info=True,
                )
                continue
            if outcome is not None:
                results.append(outcome)

        logger.info(
            "Payout run complete",
            extra={
                "processed_count": len(results),
                "paid_count": sum(1 for r in results if r["status"] == PayoutStatus.PAID),
            },
        )
        return results

    def _process(self, payout_id, now) -> dict[str, Any] | None:
        with transaction.atomic():
            payout = (
                Payout.objects.select_for_update(skip_locked=True, of=("self", "payment"))
                .select_related("provider__user", "payment")
                .filter(
                    id=payout_id,
                    status=PayoutStatus.PENDING,
                    scheduled_at__lte=now,
                )
                .first()
            )
            if payout is None:
                # Claimed by a concurrent run, payment locked by a refund, or no longer due
                return None

            reason = self._refusal_reason(payout)
            if reason is not None:
                return self._fail(payout, reason)

            try:
                transfer = self.stripe_adapter.create_transfer(
                    amount_cents=payout.amount_cents,
                    currency=payout.currency,
                    destination=payout.provider.stripe_account_id,
                    metadata={
                        "payoutId": str(payout.id),
                        "paymentId": str(payout.payment_id),
                        "providerId": str(payout.provider_id),
                    },
                    idempotency_key=IdempotencyKeyGenerator.payout_transfer(payout.id),
                )
            except StripeError as e:
                return self._fail(payout, e.message)

            payout.mark_paid(external_ref=transfer.id)
            payout.save_transition("mark_paid")

            AuditService.record(
                actor=None,
                entity_type="Payout",
                entity_id=payout.id,
                action="payout.paid",
                metadata={"external_ref": transfer.id, "payment_id": str(payout.payment_id)},
            )
            logger.info(
                "Payout paid",
                extra={"payout_id": str(payout.id), "transfer_id": transfer.id},
            )
            return {
                "payoutId": str(payout.id),
                "status": payout.status,
                "externalRef": transfer.id,
            }

    def _refusal_reason(self, payout: Payout) -> str | None:
        payment_status = payout.payment.status
        if payment_status == PaymentStatus.REFUNDED:
            return REASON_PAYMENT_REFUNDED
        if payment_status != PaymentStatus.RELEASED:
            return REASON_PAYMENT_NOT_RELEASED
        if not settings.STRIPE_CONNECT_ENABLED:
            return REASON_CONNECT_DISABLED
        if not self.stripe_adapter.is_configured():
            return REASON_STRIPE_NOT_CONFIGURED
        if not payout.provider.has_payout_destination:
            return REASON_MISSING_ACCOUNT
        return None

    def _fail(self, payout: Payout, error: str) -> dict[str, Any]:
        payout.mark_failed(error=error)
        payout.save_transition("mark_failed")

        AuditService.record(
            actor=None,
            entity_type="Payout",
            entity_id=payout.id,
            action="payout.failed",
            metadata={"error": error, "payment_id": str(payout.payment_id)},
        )
        NotificationService.notify(
            recipient=payout.provider.user,
            notification_type=NotificationType.PAYOUT_FAILED,
            title="Payout failed",
            body=f"Payout {payout.id} could not be sent: {error}",
            data={"payout_id": str(payout.id)},
        )
        logger.warning(
            "Payout failed",
            extra={"payout_id": str(payout.id), "error": error},
        )
        return {
            "payoutId": str(payout.id),
            "status": payout.status,
            "error": error,
        }

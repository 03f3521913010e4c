"""
Payout model for provider disbursements.

A Payout is the scheduled transfer of a released Payment to the provider's
Stripe Connect account. There is exactly one Payout per Payment, enforced
by the OneToOne column, which makes scheduling safe to retry.

Usage:
    from payments.models import Payout

    payout, created = Payout.objects.get_or_create(
        payment=payment,
        defaults={
            "provider": provider,
            "amount_cents": payment.amount_cents,
            "currency": payment.currency,
            "scheduled_at": timezone.now() + timedelta(days=7),
        },
    )

    # Executor outcome
    payout.mark_paid(external_ref="tr_123")
    payout.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.models.base import TransitionSaveMixin
from payments.state_machines import PayoutStatus


class PayoutQuerySet(models.QuerySet):
    def due(self, now=None):
        """PENDING payouts whose scheduled time has passed, oldest first."""
        now = now or timezone.now()
        return self.filter(
            status=PayoutStatus.PENDING,
            scheduled_at__lte=now,
        ).order_by("scheduled_at")


class Payout(TransitionSaveMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    Transfer of released funds to a provider.

    State Flow:
        PENDING -> PAID
        PENDING -> FAILED -> PENDING (admin requeue only)

    Fields:
        provider: ProviderProfile receiving the funds
        payment: The released Payment (unique)
        amount_cents / currency: Copied from the payment at scheduling time
        status: Current FSM state
        scheduled_at: Earliest execution time, never moved earlier
        paid_at: When the transfer succeeded
        external_ref: Stripe Transfer ID (tr_xxx)
        error: Diagnostic reason of the last failure
    """

    provider = models.ForeignKey(
        "marketplace.ProviderProfile",
        on_delete=models.PROTECT,
        related_name="payouts",
        help_text="Provider receiving the payout",
    )

    payment = models.OneToOneField(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="payout",
        help_text="Released payment this payout settles",
    )

    amount_cents = models.PositiveBigIntegerField(
        help_text="Payout amount in smallest currency unit",
    )

    currency = models.CharField(
        max_length=3,
        default="USD",
        help_text="ISO 4217 currency code (upper case)",
    )

    status = FSMField(
        default=PayoutStatus.PENDING,
        choices=PayoutStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payout (managed by FSM)",
    )

    scheduled_at = models.DateTimeField(
        db_index=True,
        help_text="When the payout becomes due",
    )

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the transfer succeeded",
    )

    external_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe Transfer ID (tr_xxx)",
    )

    error = models.TextField(
        null=True,
        blank=True,
        help_text="Reason for the last failure",
    )

    objects = PayoutQuerySet.as_manager()

    class Meta:
        ordering = ["-scheduled_at"]
        indexes = [
            models.Index(fields=["status", "scheduled_at"], name="payout_status_sched_idx"),
        ]

    def __str__(self) -> str:
        amount_display = f"{self.amount_cents / 100:.2f} {self.currency}"
        return f"Payout({self.id}, {self.status}, {amount_display})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PayoutStatus.PENDING,
        target=PayoutStatus.PAID,
    )
    def mark_paid(self, external_ref: str):
        """
        Record a successful transfer.

        Transition: PENDING -> PAID
        """
        self.external_ref = external_ref
        self.paid_at = timezone.now()
        self.error = None

    @transition(
        field=status,
        source=PayoutStatus.PENDING,
        target=PayoutStatus.FAILED,
    )
    def mark_failed(self, error: str):
        """
        Record a failed or refused transfer.

        Transition: PENDING -> FAILED
        """
        self.error = error

    @transition(
        field=status,
        source=PayoutStatus.FAILED,
        target=PayoutStatus.PENDING,
    )
    def requeue(self):
        """
        Put a failed payout back in the queue.

        Transition: FAILED -> PENDING

        scheduled_at is left as is, so the payout is picked up by the
        next executor run if it was already due.
        """
        self.error = None

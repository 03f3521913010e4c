"""
Payment model for the deposit lifecycle.

A Payment is the ledger record of money moving from a paying user,
through an escrow-style hold, towards a provider payout. It is never
deleted; terminal payments are kept for audit.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentStatus

    # Ledger-only deposit, created directly in the hold
    payment = Payment.objects.create(
        user=user,
        quotation=quotation,
        amount_cents=200000,
        currency="USD",
        status=PaymentStatus.HELD,
        escrow_hold_until=hold_until,
        provider_release_eligible_at=hold_until,
    )

    # State transitions using django-fsm
    payment.release()  # HELD -> RELEASED
    payment.save_transition("release")  # StaleRecordError if the row moved
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.models.base import TransitionSaveMixin
from payments.state_machines import PaymentStatus


class PaymentQuerySet(models.QuerySet):
    def for_user(self, user):
        return self.filter(user=user)

    def newest(self):
        return self.order_by("-created_at")


class Payment(TransitionSaveMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    Central payment entity tracking a deposit from creation to settlement.

    Uses django-fsm for the status machine. ConcurrentTransitionMixin makes
    every save an UPDATE conditioned on the status the row was loaded with,
    so interleaved admin and webhook transitions cannot overwrite each other;
    the loser gets django_fsm.ConcurrentTransition.

    State Flow (gateway):
        INITIATED -> AUTHORIZED -> HELD -> RELEASED

    State Flow (ledger-only):
        HELD -> RELEASED

    Failure Flow:
        INITIATED/AUTHORIZED -> FAILED

    Refund Flow:
        HELD/RELEASED -> REFUNDED

    Fields:
        user: User who paid the deposit
        quotation: Quotation the deposit is for (links to the provider)
        amount_cents: Amount in the smallest currency unit
        currency: ISO 4217 code, upper case
        status: Current FSM state (protected, change only via transitions)
        escrow_hold_until: End of the hold window chosen at deposit
        provider_release_eligible_at: Earliest time the provider may be paid
        provider_released_at: When an admin released the hold
        stripe_payment_intent_id: Manual-capture PaymentIntent (pi_xxx)
        stripe_charge_id: Charge recorded from charge.succeeded (ch_xxx)
        captured_at / refunded_at: Transition timestamps
        failure_reason: Gateway reason when the payment failed
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="User who made the deposit",
    )

    quotation = models.ForeignKey(
        "marketplace.QuotationRequest",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Quotation this deposit pays for",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount_cents = models.PositiveBigIntegerField(
        help_text="Payment amount in smallest currency unit (e.g., cents)",
    )

    currency = models.CharField(
        max_length=3,
        default="USD",
        help_text="ISO 4217 currency code (upper case)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.INITIATED,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,  # Prevent direct assignment outside transitions
        help_text="Current state of the payment (managed by FSM)",
    )

    # ==========================================================================
    # Hold Window
    # ==========================================================================

    escrow_hold_until = models.DateTimeField(
        null=True,
        blank=True,
        help_text="End of the escrow hold window",
    )

    provider_release_eligible_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Earliest time funds may be released to the provider",
    )

    provider_released_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the hold was released to the provider",
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )

    stripe_charge_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe Charge ID (ch_xxx)",
    )

    # ==========================================================================
    # State Timestamps & Error Info
    # ==========================================================================

    captured_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When funds were captured into the hold",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment was refunded",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Reason reported when the payment failed",
    )

    objects = PaymentQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "created_at"], name="payment_user_created_idx"),
        ]

    def __str__(self) -> str:
        amount_display = f"{self.amount_cents / 100:.2f} {self.currency}"
        return f"Payment({self.id}, {self.status}, {amount_display})"

    @property
    def provider(self):
        """The ProviderProfile that will be paid out, via the quotation."""
        if self.quotation_id is None:
            return None
        return self.quotation.provider

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.INITIATED,
        target=PaymentStatus.AUTHORIZED,
    )
    def authorize(self):
        """
        Funds are reserved on the card and await capture.

        Transition: INITIATED -> AUTHORIZED
        """

    @transition(
        field=status,
        source=[PaymentStatus.INITIATED, PaymentStatus.AUTHORIZED],
        target=PaymentStatus.HELD,
    )
    def hold(self):
        """
        Funds are captured and held for the provider.

        Transition: INITIATED/AUTHORIZED -> HELD

        Triggered by payment_intent.succeeded or by an admin capture.
        """
        self.captured_at = timezone.now()

    @transition(
        field=status,
        source=[PaymentStatus.INITIATED, PaymentStatus.AUTHORIZED],
        target=PaymentStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark the payment as failed.

        Transition: INITIATED/AUTHORIZED -> FAILED
        """
        self.failure_reason = reason

    @transition(
        field=status,
        source=PaymentStatus.HELD,
        target=PaymentStatus.RELEASED,
    )
    def release(self):
        """
        Release the hold towards the provider.

        Transition: HELD -> RELEASED

        The caller must schedule the payout in the same transaction.
        """
        self.provider_released_at = timezone.now()

    @transition(
        field=status,
        source=[PaymentStatus.HELD, PaymentStatus.RELEASED],
        target=PaymentStatus.REFUNDED,
    )
    def refund(self):
        """
        Return the funds to the payer.

        Transition: HELD/RELEASED -> REFUNDED
        """
        self.refunded_at = timezone.now()

"""
State enums for payment models.

This module defines all state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Payment States:
    INITIATED → AUTHORIZED → HELD → RELEASED (happy path, gateway mode)
    HELD → RELEASED (ledger-only mode, created directly as HELD)
    INITIATED/AUTHORIZED → FAILED
    HELD/RELEASED → REFUNDED

Payout States:
    PENDING → PAID
    PENDING → FAILED → PENDING (operator requeue only)

WebhookEvent States:
    RECEIVED → PROCESSING → PROCESSED
    RECEIVED/PROCESSING → FAILED → PROCESSING (redelivery or sweep)
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the Payment lifecycle.

    Terminal states: REFUNDED, FAILED (retained for audit, never deleted)

    State Flow:
        (create, gateway)     → INITIATED
        (create, ledger-only) → HELD
        INITIATED             → AUTHORIZED   gateway: requires_capture
        INITIATED/AUTHORIZED  → HELD         gateway: succeeded, or admin capture
        INITIATED/AUTHORIZED  → FAILED       gateway: payment_failed
        HELD                  → RELEASED     admin release
        HELD/RELEASED         → REFUNDED     admin refund, or charge.refunded
    """

    INITIATED = "INITIATED", "Initiated"
    AUTHORIZED = "AUTHORIZED", "Authorized"
    HELD = "HELD", "Held"
    RELEASED = "RELEASED", "Released"
    REFUNDED = "REFUNDED", "Refunded"
    FAILED = "FAILED", "Failed"


class PayoutStatus(models.TextChoices):
    """
    States for the Payout lifecycle.

    State Flow:
        PENDING → PAID      executor: transfer succeeded
        PENDING → FAILED    executor: transfer failed or provider not payable
        FAILED  → PENDING   explicit admin requeue
    """

    PENDING = "PENDING", "Pending"
    PAID = "PAID", "Paid"
    FAILED = "FAILED", "Failed"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    RECEIVED is written by the idempotency gate before any business logic
    runs. A row left RECEIVED or FAILED is reclaimable by a redelivery of
    the same event id or by the retry sweep.

    State Flow:
        RECEIVED → PROCESSING → PROCESSED
        PROCESSING → FAILED → PROCESSING (retry)
    """

    RECEIVED = "RECEIVED", "Received"
    PROCESSING = "PROCESSING", "Processing"
    PROCESSED = "PROCESSED", "Processed"
    FAILED = "FAILED", "Failed"


class WebhookEventKind(models.TextChoices):
    """
    The closed set of gateway event types the engine acts on.

    Anything outside this set is recorded and acknowledged as a no-op.
    """

    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_CAPTURABLE = "payment_intent.amount_capturable_updated"
    PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
    CHARGE_SUCCEEDED = "charge.succeeded"
    CHARGE_REFUNDED = "charge.refunded"
    ACCOUNT_UPDATED = "account.updated"


class PaymentsMode(models.TextChoices):
    """
    How deposits are backed.

    MOCK: ledger-only, deposits are HELD immediately, no gateway calls
    STRIPE: PaymentIntents with manual capture, reconciled by webhooks
    """

    MOCK = "MOCK", "Ledger only"
    STRIPE = "STRIPE", "Stripe"

"""
Payment services for coordinating payment operations.

This module provides:
- PaymentService: Deposit, capture, release and refund of payments
- PayoutService: Schedules, runs and requeues provider payouts
- ConnectService: Stripe Connect onboarding for providers

Usage:
    from payments.services import PaymentService

    result = PaymentService.initiate_deposit(
        user=request.user,
        amount_cents=200000,
        currency="USD",
    )

    # Release escrow and schedule the payout
    result = PaymentService.release_payment(admin, payment_id)
    payout = result.data.payout

    # Run due payouts (normally from celery-beat)
    from payments.services import PayoutService

    results = PayoutService.run_due_payouts(limit=50)
"""

from payments.services.connect_service import ConnectService
from payments.services.payment_service import (
    DepositResult,
    PaymentService,
    ReleaseResult,
)
from payments.services.payout_service import PayoutService

__all__ = [
    "ConnectService",
    "DepositResult",
    "PaymentService",
    "PayoutService",
    "ReleaseResult",
]

"""
Tests for PayoutExecutor.

Tests cover:
- Safe-default refusals (Connect disabled, Stripe not configured,
  provider without a connected account)
- Payouts whose payment was refunded after release
- Successful transfers and their idempotency key
- Gateway errors
- Batch limit, ordering and skipping of rows that are not due
- Audit entries and provider notifications for failures
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from audit.models import AuditLog
from notifications.models import Notification, NotificationType
from payments.exceptions import StripeInsufficientFundsError, StripeInvalidAccountError
from payments.models import Payment, Payout
from payments.services import PaymentService, PayoutService
from payments.state_machines import PaymentStatus, PayoutStatus, WebhookEventKind
from payments.tests.factories import PaymentFactory, PayoutFactory, WebhookEventFactory, stripe_event
from payments.webhooks.handlers import dispatch_webhook
from payments.workers import PayoutExecutor
from payments.workers.payout_executor import (
    REASON_CONNECT_DISABLED,
    REASON_MISSING_ACCOUNT,
    REASON_PAYMENT_NOT_RELEASED,
    REASON_PAYMENT_REFUNDED,
    REASON_STRIPE_NOT_CONFIGURED,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def executor(stripe_mode, fake_stripe):
    return PayoutExecutor(stripe_adapter=fake_stripe)


@pytest.fixture
def unpayable_payout(db, unonboarded_provider):
    payment = PaymentFactory(
        released=True,
        quotation__provider=unonboarded_provider,
    )
    return PayoutFactory(payment=payment, due=True)


# =============================================================================
# Safe Defaults
# =============================================================================


@pytest.mark.django_db
class TestPayoutRefusals:
    """A payout that cannot be paid is marked FAILED, never invented."""

    def test_connect_disabled(self, executor, stripe_mode, due_payout, fake_stripe):
        stripe_mode.STRIPE_CONNECT_ENABLED = False

        results = executor.run()

        assert results == [
            {"payoutId": str(due_payout.id), "status": PayoutStatus.FAILED, "error": REASON_CONNECT_DISABLED}
        ]
        assert Payout.objects.get(id=due_payout.id).error == REASON_CONNECT_DISABLED
        fake_stripe.create_transfer.assert_not_called()

    def test_stripe_not_configured(self, executor, due_payout, fake_stripe):
        fake_stripe.is_configured.return_value = False

        results = executor.run()

        assert results[0]["error"] == REASON_STRIPE_NOT_CONFIGURED
        fake_stripe.create_transfer.assert_not_called()

    def test_provider_without_account(self, executor, unpayable_payout, fake_stripe):
        results = executor.run()

        assert results[0]["error"] == REASON_MISSING_ACCOUNT
        assert Payout.objects.get(id=unpayable_payout.id).status == PayoutStatus.FAILED
        fake_stripe.create_transfer.assert_not_called()

    def test_failed_payout_is_not_retried(self, executor, unpayable_payout):
        executor.run()

        assert executor.run() == []
        assert Payout.objects.get(id=unpayable_payout.id).status == PayoutStatus.FAILED

    def test_failure_is_audited_and_notified(
        self, executor, unpayable_payout, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            executor.run()

        entry = AuditLog.objects.get(action="payout.failed")
        assert entry.actor is None
        assert entry.entity_id == str(unpayable_payout.id)
        notification = Notification.objects.get(recipient=unpayable_payout.provider.user)
        assert notification.notification_type == NotificationType.PAYOUT_FAILED


@pytest.mark.django_db
class TestRefundedPayments:
    """A payout never transfers money for a payment that was refunded after release."""

    def test_admin_refund_before_run(self, executor, admin_user, due_payout, fake_stripe):
        result = PaymentService.refund_payment(admin_user, due_payout.payment_id)
        assert result.success

        results = executor.run()

        assert results == [
            {"payoutId": str(due_payout.id), "status": PayoutStatus.FAILED, "error": REASON_PAYMENT_REFUNDED}
        ]
        assert Payout.objects.get(id=due_payout.id).status == PayoutStatus.FAILED
        fake_stripe.create_transfer.assert_not_called()

    def test_charge_refunded_webhook_before_run(self, executor, due_payout, fake_stripe):
        event_type = WebhookEventKind.CHARGE_REFUNDED
        event = WebhookEventFactory(
            event_type=event_type,
            payload=stripe_event(
                event_type,
                {"id": "ch_refunded", "metadata": {"paymentId": str(due_payout.payment_id)}},
            ),
        )
        assert dispatch_webhook(event).success
        assert Payment.objects.get(id=due_payout.payment_id).status == PaymentStatus.REFUNDED

        results = executor.run()

        assert results[0]["error"] == REASON_PAYMENT_REFUNDED
        assert Payout.objects.get(id=due_payout.id).error == REASON_PAYMENT_REFUNDED
        fake_stripe.create_transfer.assert_not_called()

    def test_payment_not_released(self, executor, held_payment, fake_stripe):
        payout = PayoutFactory(payment=held_payment, due=True)

        results = executor.run()

        assert results[0]["error"] == REASON_PAYMENT_NOT_RELEASED
        assert Payout.objects.get(id=payout.id).status == PayoutStatus.FAILED
        fake_stripe.create_transfer.assert_not_called()

    def test_requeued_payout_of_refunded_payment_fails_again(self, executor, admin_user, due_payout):
        PaymentService.refund_payment(admin_user, due_payout.payment_id)
        executor.run()
        PayoutService.requeue_payout(admin_user, due_payout.id)

        results = executor.run()

        assert results[0]["error"] == REASON_PAYMENT_REFUNDED
        assert Payout.objects.get(id=due_payout.id).status == PayoutStatus.FAILED


# =============================================================================
# Transfers
# =============================================================================


@pytest.mark.django_db
class TestPayoutTransfers:
    def test_successful_transfer(self, executor, due_payout, fake_stripe, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            results = executor.run()

        assert results == [
            {"payoutId": str(due_payout.id), "status": PayoutStatus.PAID, "externalRef": "tr_test_123"}
        ]
        payout = Payout.objects.get(id=due_payout.id)
        assert payout.status == PayoutStatus.PAID
        assert payout.external_ref == "tr_test_123"
        assert payout.paid_at is not None

        kwargs = fake_stripe.create_transfer.call_args.kwargs
        assert kwargs["amount_cents"] == due_payout.amount_cents
        assert kwargs["currency"] == due_payout.currency
        assert kwargs["destination"] == "acct_provider_1"
        assert kwargs["idempotency_key"] == f"payout_transfer:{due_payout.id}"
        assert kwargs["metadata"]["payoutId"] == str(due_payout.id)
        assert AuditLog.objects.filter(action="payout.paid").exists()

    @pytest.mark.parametrize(
        "error",
        [
            StripeInvalidAccountError("No such destination: acct_provider_1"),
            StripeInsufficientFundsError("Insufficient platform balance"),
        ],
    )
    def test_gateway_error_marks_failed(self, executor, due_payout, fake_stripe, error):
        fake_stripe.create_transfer.side_effect = error

        results = executor.run()

        assert results[0]["status"] == PayoutStatus.FAILED
        assert results[0]["error"] == error.message
        assert Payout.objects.get(id=due_payout.id).error == error.message

    def test_unexpected_error_skips_payout(self, executor, due_payout, fake_stripe):
        fake_stripe.create_transfer.side_effect = RuntimeError("boom")

        results = executor.run()

        assert results == []
        assert Payout.objects.get(id=due_payout.id).status == PayoutStatus.PENDING


# =============================================================================
# Batching
# =============================================================================


@pytest.mark.django_db
class TestPayoutBatching:
    def _payout(self, provider, scheduled_at, **kwargs):
        payment = PaymentFactory(released=True, quotation__provider=provider)
        return PayoutFactory(payment=payment, scheduled_at=scheduled_at, **kwargs)

    def test_only_due_pending_payouts_run(self, executor, provider_profile, fake_stripe):
        now = timezone.now()
        due = self._payout(provider_profile, now - timedelta(minutes=1))
        self._payout(provider_profile, now + timedelta(hours=1))
        self._payout(provider_profile, now - timedelta(days=1), status=PayoutStatus.FAILED)
        self._payout(provider_profile, now - timedelta(days=1), status=PayoutStatus.PAID)

        results = executor.run()

        assert [r["payoutId"] for r in results] == [str(due.id)]
        assert fake_stripe.create_transfer.call_count == 1

    def test_limit_takes_oldest_first(self, executor, provider_profile):
        now = timezone.now()
        oldest = self._payout(provider_profile, now - timedelta(days=3))
        middle = self._payout(provider_profile, now - timedelta(days=2))
        newest = self._payout(provider_profile, now - timedelta(days=1))

        results = executor.run(limit=2)

        assert [r["payoutId"] for r in results] == [str(oldest.id), str(middle.id)]
        assert Payout.objects.get(id=newest.id).status == PayoutStatus.PENDING

    def test_nothing_due(self, executor, fake_stripe):
        assert executor.run() == []
        fake_stripe.create_transfer.assert_not_called()

    def test_mixed_batch(self, executor, provider_profile, unonboarded_provider):
        now = timezone.now()
        paid = self._payout(provider_profile, now - timedelta(hours=2))
        refused = self._payout(unonboarded_provider, now - timedelta(hours=1))

        results = {r["payoutId"]: r for r in executor.run()}

        assert results[str(paid.id)]["status"] == PayoutStatus.PAID
        assert results[str(refused.id)]["error"] == REASON_MISSING_ACCOUNT

    def test_default_adapter_is_built_from_settings(self, stripe_mode, due_payout):
        stripe_mode.STRIPE_SECRET_KEY = ""

        results = PayoutExecutor().run()

        assert results[0]["error"] == REASON_STRIPE_NOT_CONFIGURED

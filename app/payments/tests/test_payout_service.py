"""
Tests for PayoutService.

Tests cover:
- Idempotent payout scheduling from a released payment, including
  concurrent schedulers
- Admin requeue of failed payouts
- Admin and provider listings
- run_due_payouts delegation to the executor
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import timedelta
from unittest.mock import patch
from uuid import uuid4

import pytest
from django.db import connection
from django.utils import timezone
from freezegun import freeze_time

from audit.models import AuditLog
from payments.exceptions import InvalidStateTransitionError, PaymentValidationError
from payments.models import Payout
from payments.services import PayoutService
from payments.services.payout_service import is_valid_payout_status
from payments.state_machines import PaymentStatus, PayoutStatus
from payments.tests.factories import PaymentFactory, PayoutFactory, ProviderProfileFactory


# =============================================================================
# Scheduling
# =============================================================================


@pytest.mark.django_db
class TestSchedulePayout:
    @freeze_time("2026-05-01 10:00:00")
    def test_creates_pending_payout(self, settings, released_payment):
        settings.PAYOUT_INTERVAL_DAYS = 3

        payout = PayoutService.schedule_payout(released_payment)

        assert payout.status == PayoutStatus.PENDING
        assert payout.provider == released_payment.quotation.provider
        assert payout.amount_cents == released_payment.amount_cents
        assert payout.scheduled_at == timezone.now() + timedelta(days=3)

    def test_is_idempotent(self, released_payment):
        first = PayoutService.schedule_payout(released_payment)

        with freeze_time(timezone.now() + timedelta(days=2)):
            second = PayoutService.schedule_payout(released_payment)

        assert first == second
        assert second.scheduled_at == first.scheduled_at
        assert Payout.objects.count() == 1

    def test_scheduling_is_audited_once(self, released_payment, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            payout = PayoutService.schedule_payout(released_payment)
            PayoutService.schedule_payout(released_payment)

        entry = AuditLog.objects.get(action="payout.scheduled")
        assert entry.actor is None
        assert entry.entity_type == "Payout"
        assert entry.entity_id == str(payout.id)
        assert entry.metadata == {
            "payment_id": str(released_payment.id),
            "provider_id": str(released_payment.quotation.provider.id),
            "scheduled_at": payout.scheduled_at.isoformat(),
        }

    def test_requires_released_payment(self, held_payment):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            PayoutService.schedule_payout(held_payment)

        assert exc_info.value.error_code == "PAYMENT_NOT_RELEASED"

    def test_requires_provider(self):
        payment = PaymentFactory(quotation=None, status=PaymentStatus.RELEASED)

        with pytest.raises(PaymentValidationError) as exc_info:
            PayoutService.schedule_payout(payment)

        assert exc_info.value.error_code == "PAYMENT_MISSING_PROVIDER"

    def test_schedule_for_payment_id(self, released_payment):
        result = PayoutService.schedule_payout_for_payment(str(released_payment.id))

        assert result.success
        assert result.data.payment_id == released_payment.id

    def test_schedule_for_unknown_payment(self):
        result = PayoutService.schedule_payout_for_payment(uuid4())

        assert result.error_code == "PAYMENT_NOT_FOUND"

    def test_schedule_for_held_payment(self, held_payment):
        result = PayoutService.schedule_payout_for_payment(held_payment.id)

        assert result.error_code == "PAYMENT_NOT_RELEASED"


@pytest.mark.django_db(transaction=True)
@pytest.mark.skipif(connection.vendor != "postgresql", reason="needs concurrent database writers")
class TestSchedulePayoutConcurrent:
    """Concurrent schedulers for one payment create a single payout."""

    def test_concurrent_schedule_creates_one_payout(self, released_payment):
        payment_id = released_payment.id

        def schedule():
            try:
                return PayoutService.schedule_payout_for_payment(payment_id)
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [executor.submit(schedule) for _ in range(8)]
            results = [future.result() for future in as_completed(futures)]

        assert all(result.success for result in results)
        assert len({result.data.id for result in results}) == 1
        assert Payout.objects.filter(payment_id=payment_id).count() == 1
        assert AuditLog.objects.filter(action="payout.scheduled").count() == 1


# =============================================================================
# Requeue
# =============================================================================


@pytest.mark.django_db
class TestRequeuePayout:
    def test_failed_payout_goes_back_to_pending(self, admin_user, django_capture_on_commit_callbacks):
        payout = PayoutFactory(status=PayoutStatus.FAILED, error="stripe_connect_disabled")

        with django_capture_on_commit_callbacks(execute=True):
            result = PayoutService.requeue_payout(admin_user, payout.id)

        assert result.success
        payout = Payout.objects.get(id=payout.id)
        assert payout.status == PayoutStatus.PENDING
        assert payout.error is None
        entry = AuditLog.objects.get(action="payout.requeued")
        assert entry.metadata == {"previous_error": "stripe_connect_disabled"}

    @pytest.mark.parametrize("status", [PayoutStatus.PENDING, PayoutStatus.PAID])
    def test_only_failed_payouts_requeue(self, admin_user, status):
        payout = PayoutFactory(status=status)

        result = PayoutService.requeue_payout(admin_user, payout.id)

        assert result.error_code == "BAD_STATUS"
        assert Payout.objects.get(id=payout.id).status == status

    def test_unknown_payout(self, admin_user):
        result = PayoutService.requeue_payout(admin_user, "nope")

        assert result.error_code == "PAYOUT_NOT_FOUND"


# =============================================================================
# Execution
# =============================================================================


@pytest.mark.django_db
class TestRunDuePayouts:
    def test_uses_configured_batch_limit(self, settings, fake_stripe):
        settings.PAYOUT_RUN_BATCH_LIMIT = 7

        with patch("payments.services.payout_service.PayoutExecutor") as executor_cls:
            executor_cls.return_value.run.return_value = []
            PayoutService.run_due_payouts(stripe_adapter=fake_stripe)

        executor_cls.assert_called_once_with(stripe_adapter=fake_stripe)
        executor_cls.return_value.run.assert_called_once_with(limit=7)

    def test_explicit_limit_wins(self, fake_stripe):
        with patch("payments.services.payout_service.PayoutExecutor") as executor_cls:
            executor_cls.return_value.run.return_value = []
            PayoutService.run_due_payouts(limit=3, stripe_adapter=fake_stripe)

        executor_cls.return_value.run.assert_called_once_with(limit=3)


# =============================================================================
# Queries
# =============================================================================


@pytest.mark.django_db
class TestPayoutListings:
    def test_admin_listing_newest_scheduled_first(self):
        now = timezone.now()
        older = PayoutFactory(scheduled_at=now - timedelta(days=2))
        newer = PayoutFactory(scheduled_at=now + timedelta(days=2))

        assert PayoutService.list_payouts() == [newer, older]

    def test_admin_listing_filters_by_status(self):
        failed = PayoutFactory(status=PayoutStatus.FAILED)
        PayoutFactory()

        assert PayoutService.list_payouts(status="failed") == [failed]

    def test_provider_sees_only_own_payouts(self, provider_user, released_payment):
        own = PayoutFactory(payment=released_payment)
        PayoutFactory()

        result = PayoutService.list_payouts_for_provider(provider_user)

        assert result.data == [own]

    def test_provider_without_profile(self, user):
        result = PayoutService.list_payouts_for_provider(user)

        assert result.error_code == "PROFILE_MISSING"

    def test_provider_with_no_payouts(self):
        profile = ProviderProfileFactory()

        assert PayoutService.list_payouts_for_provider(profile.user).data == []

    @pytest.mark.parametrize(
        "value,expected",
        [("PENDING", True), ("paid", True), ("Failed", True), ("CANCELLED", False), ("", False)],
    )
    def test_is_valid_payout_status(self, value, expected):
        assert is_valid_payout_status(value) is expected

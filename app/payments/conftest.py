"""
Pytest fixtures for payment tests.

This module provides fixtures for the actors of a deposit (paying user,
provider, admin), payments in each lifecycle state, a fake Stripe
gateway and settings presets for the two payment modes.

Fixtures here are visible to every test package under payments/
(adapters/tests, webhooks/tests, workers/tests).

Usage:
    def test_release_schedules_payout(admin_user, held_payment):
        result = PaymentService.release_payment(admin_user, held_payment.id)
        assert result.data.payout.status == PayoutStatus.PENDING
"""

import hashlib
import hmac
import json
import time
from unittest.mock import MagicMock, patch

import pytest
from rest_framework.test import APIClient

from authentication.models import UserRole
from payments.adapters import (
    AccountLinkResult,
    PaymentIntentResult,
    RefundResult,
    StripeAdapter,
    TransferResult,
)
from payments.tests.factories import (
    PaymentFactory,
    PayoutFactory,
    ProviderProfileFactory,
    QuotationRequestFactory,
    UserFactory,
)

TEST_STRIPE_SECRET_KEY = "sk_test_engine"
TEST_WEBHOOK_SECRET = "whsec_test_engine"


# =============================================================================
# Settings Presets
# =============================================================================


@pytest.fixture
def mock_mode(settings):
    """Ledger-only deposits, Stripe switched off."""
    settings.PAYMENTS_MODE = "MOCK"
    settings.STRIPE_SECRET_KEY = ""
    settings.STRIPE_WEBHOOK_SECRET = ""
    settings.STRIPE_CONNECT_ENABLED = False
    return settings


@pytest.fixture
def stripe_mode(settings):
    """Stripe-backed deposits with Connect payouts enabled."""
    settings.PAYMENTS_MODE = "STRIPE"
    settings.STRIPE_SECRET_KEY = TEST_STRIPE_SECRET_KEY
    settings.STRIPE_WEBHOOK_SECRET = TEST_WEBHOOK_SECRET
    settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS = 300
    settings.STRIPE_CONNECT_ENABLED = True
    settings.PAYOUT_INTERVAL_DAYS = 7
    return settings


# =============================================================================
# Actor Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Paying user."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def admin_user(db):
    return UserFactory(role=UserRole.ADMIN, is_staff=True)


@pytest.fixture
def provider_profile(db):
    """Provider with a Stripe Connect account ready for transfers."""
    return ProviderProfileFactory(
        stripe_account_id="acct_provider_1",
        stripe_charges_enabled=True,
        stripe_payouts_enabled=True,
        stripe_details_submitted=True,
    )


@pytest.fixture
def provider_user(provider_profile):
    return provider_profile.user


@pytest.fixture
def unonboarded_provider(db):
    """Provider that never created a Connect account."""
    return ProviderProfileFactory()


@pytest.fixture
def quotation(db, user, provider_profile):
    return QuotationRequestFactory(user=user, provider=provider_profile)


# =============================================================================
# Payment Fixtures
# =============================================================================


@pytest.fixture
def initiated_payment(db, user, quotation):
    """Stripe-mode deposit waiting for the gateway."""
    return PaymentFactory(user=user, quotation=quotation, stripe_payment_intent_id="pi_initiated")


@pytest.fixture
def authorized_payment(db, user, quotation):
    return PaymentFactory(
        user=user,
        quotation=quotation,
        status="AUTHORIZED",
        stripe_payment_intent_id="pi_authorized",
    )


@pytest.fixture
def held_payment(db, user, quotation):
    """Ledger deposit in escrow, linked to an onboarded provider."""
    return PaymentFactory(user=user, quotation=quotation, held=True)


@pytest.fixture
def held_stripe_payment(db, user, quotation):
    return PaymentFactory(
        user=user,
        quotation=quotation,
        held=True,
        stripe_payment_intent_id="pi_held",
    )


@pytest.fixture
def released_payment(db, user, quotation):
    return PaymentFactory(user=user, quotation=quotation, released=True)


@pytest.fixture
def due_payout(db, released_payment):
    """PENDING payout whose scheduled time has passed."""
    return PayoutFactory(payment=released_payment, due=True)


# =============================================================================
# Stripe Fixtures
# =============================================================================


@pytest.fixture
def fake_stripe():
    """
    A configured StripeAdapter double.

    Every gateway call succeeds with a plausible result; tests override
    return_value or side_effect where they need a failure.
    """
    adapter = MagicMock(spec=StripeAdapter)
    adapter.is_configured.return_value = True
    adapter.ensure_configured.return_value = None
    adapter.authorize.return_value = PaymentIntentResult(
        id="pi_test_123",
        status="requires_payment_method",
        amount_cents=200000,
        currency="usd",
        client_secret="pi_test_123_secret_abc",
    )
    adapter.capture.return_value = PaymentIntentResult(
        id="pi_test_123",
        status="succeeded",
        amount_cents=200000,
        currency="usd",
    )
    adapter.refund.return_value = RefundResult(
        id="re_test_123",
        amount_cents=200000,
        currency="usd",
        status="succeeded",
        payment_intent_id="pi_test_123",
    )
    adapter.create_transfer.return_value = TransferResult(
        id="tr_test_123",
        amount_cents=200000,
        currency="usd",
        destination_account="acct_provider_1",
    )
    adapter.create_connected_account.return_value = "acct_new_123"
    adapter.create_account_link.return_value = AccountLinkResult(
        url="https://connect.stripe.com/setup/e/acct_new_123/abc",
        expires_at=1900000000,
    )
    return adapter


@pytest.fixture
def patched_stripe(fake_stripe):
    """Make every get_stripe_adapter() call site return ``fake_stripe``."""
    targets = [
        "payments.services.payment_service.get_stripe_adapter",
        "payments.services.connect_service.get_stripe_adapter",
        "payments.workers.payout_executor.get_stripe_adapter",
    ]
    patchers = [patch(target, return_value=fake_stripe) for target in targets]
    for patcher in patchers:
        patcher.start()
    yield fake_stripe
    for patcher in patchers:
        patcher.stop()


def sign_payload(payload: str, secret: str = TEST_WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode()
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def signed_webhook():
    """
    Factory returning (body, headers) for a signed webhook delivery.

    Usage:
        body, headers = signed_webhook(event)
        client.post(url, data=body, content_type="application/json", **headers)
    """

    def _build(event: dict, secret: str = TEST_WEBHOOK_SECRET, timestamp: int | None = None):
        body = json.dumps(event)
        return body, {"HTTP_STRIPE_SIGNATURE": sign_payload(body, secret, timestamp)}

    return _build


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def user_client(api_client, user):
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def provider_client(provider_user):
    client = APIClient()
    client.force_authenticate(user=provider_user)
    return client

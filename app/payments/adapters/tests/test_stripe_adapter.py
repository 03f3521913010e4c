"""
Tests for the Stripe adapter.

SDK entry points are patched on the stripe module; no request leaves the
process. Webhook signatures are computed for real.

Tests cover:
- Configuration checks
- Parameters sent to each SDK call and the results built from them
- Translation of Stripe exceptions into domain exceptions
- Webhook signature verification
- Idempotency keys
"""

import json
import time
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from payments.adapters import (
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    StripeAdapter,
    get_stripe_adapter,
)
from payments.conftest import sign_payload
from payments.exceptions import (
    PaymentConfigurationError,
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInsufficientFundsError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
    WebhookSignatureError,
)

SECRET_KEY = "sk_test_adapter"
WEBHOOK_SECRET = "whsec_adapter"


@pytest.fixture
def adapter():
    return StripeAdapter(secret_key=SECRET_KEY, webhook_secret=WEBHOOK_SECRET, timeout_seconds=5)


def fake_intent(**overrides):
    values = {
        "id": "pi_123",
        "status": "requires_payment_method",
        "amount": 200000,
        "currency": "usd",
        "client_secret": "pi_123_secret",
        "metadata": {"paymentId": "abc"},
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def card_error(decline_code: str):
    return stripe.CardError(
        "Your card was declined.",
        "card",
        "card_declined",
        json_body={
            "error": {
                "type": "card_error",
                "code": "card_declined",
                "decline_code": decline_code,
                "message": "Your card was declined.",
            }
        },
    )


# =============================================================================
# Configuration
# =============================================================================


class TestConfiguration:
    def test_configured_with_secret_key(self, adapter):
        assert adapter.is_configured()

    def test_blank_key_is_not_configured(self):
        assert not StripeAdapter(secret_key="").is_configured()

    def test_ensure_configured_names_missing_key(self):
        with pytest.raises(PaymentConfigurationError) as exc_info:
            StripeAdapter(webhook_secret=WEBHOOK_SECRET).ensure_configured()

        assert exc_info.value.error_code == "STRIPE_NOT_CONFIGURED"

    def test_ensure_configured_names_missing_webhook_secret(self):
        with pytest.raises(PaymentConfigurationError) as exc_info:
            StripeAdapter(secret_key=SECRET_KEY).ensure_configured()

        assert exc_info.value.error_code == "STRIPE_WEBHOOK_NOT_CONFIGURED"

    def test_webhook_secret_optional_when_not_required(self):
        StripeAdapter(secret_key=SECRET_KEY).ensure_configured(require_webhook_secret=False)

    def test_calls_refused_without_key(self):
        with patch.object(stripe.PaymentIntent, "create") as create:
            with pytest.raises(PaymentConfigurationError):
                StripeAdapter().authorize(amount_cents=5000, currency="USD")

        create.assert_not_called()

    def test_get_stripe_adapter_reads_settings(self, settings):
        settings.STRIPE_SECRET_KEY = "sk_from_settings"
        settings.STRIPE_WEBHOOK_SECRET = "whsec_from_settings"
        settings.STRIPE_API_TIMEOUT_SECONDS = 3

        adapter = get_stripe_adapter()

        assert adapter.secret_key == "sk_from_settings"
        assert adapter.webhook_secret == "whsec_from_settings"
        assert adapter.timeout_seconds == 3


# =============================================================================
# SDK Calls
# =============================================================================


class TestPaymentIntents:
    def test_authorize_creates_manual_capture_intent(self, adapter):
        with patch.object(stripe.PaymentIntent, "create", return_value=fake_intent()) as create:
            result = adapter.authorize(
                amount_cents=200000,
                currency="USD",
                metadata={"paymentId": "abc"},
                idempotency_key="authorize:abc:1:deadbeef",
            )

        create.assert_called_once_with(
            api_key=SECRET_KEY,
            amount=200000,
            currency="usd",
            capture_method="manual",
            automatic_payment_methods={"enabled": True},
            metadata={"paymentId": "abc"},
            idempotency_key="authorize:abc:1:deadbeef",
        )
        assert result == PaymentIntentResult(
            id="pi_123",
            status="requires_payment_method",
            amount_cents=200000,
            currency="usd",
            client_secret="pi_123_secret",
            metadata={"paymentId": "abc"},
        )

    def test_authorize_automatic_capture(self, adapter):
        with patch.object(stripe.PaymentIntent, "create", return_value=fake_intent()) as create:
            adapter.authorize(amount_cents=5000, currency="eur", manual_capture=False)

        kwargs = create.call_args.kwargs
        assert kwargs["capture_method"] == "automatic"
        assert "idempotency_key" not in kwargs

    def test_capture(self, adapter):
        with patch.object(
            stripe.PaymentIntent, "capture", return_value=fake_intent(status="succeeded")
        ) as capture:
            result = adapter.capture("pi_123", idempotency_key="capture:abc:1:00")

        capture.assert_called_once_with(
            api_key=SECRET_KEY, intent="pi_123", idempotency_key="capture:abc:1:00"
        )
        assert result.status == "succeeded"


class TestRefundsAndTransfers:
    def test_refund(self, adapter):
        refund = SimpleNamespace(id="re_1", amount=200000, currency="usd", status="succeeded")
        with patch.object(stripe.Refund, "create", return_value=refund) as create:
            result = adapter.refund("pi_123", idempotency_key="refund:abc:1:00")

        create.assert_called_once_with(
            api_key=SECRET_KEY,
            payment_intent="pi_123",
            reason="requested_by_customer",
            idempotency_key="refund:abc:1:00",
        )
        assert result.id == "re_1"
        assert result.payment_intent_id == "pi_123"

    def test_create_transfer(self, adapter):
        transfer = SimpleNamespace(
            id="tr_1",
            amount=150000,
            currency="usd",
            destination="acct_1",
            metadata={"payoutId": "p1"},
        )
        with patch.object(stripe.Transfer, "create", return_value=transfer) as create:
            result = adapter.create_transfer(
                amount_cents=150000,
                currency="USD",
                destination="acct_1",
                metadata={"payoutId": "p1"},
                idempotency_key="payout_transfer:p1",
            )

        kwargs = create.call_args.kwargs
        assert kwargs["destination"] == "acct_1"
        assert kwargs["currency"] == "usd"
        assert kwargs["idempotency_key"] == "payout_transfer:p1"
        assert result.id == "tr_1"
        assert result.destination_account == "acct_1"


class TestConnectOnboarding:
    def test_create_express_account(self, adapter):
        with patch.object(stripe.Account, "create", return_value=SimpleNamespace(id="acct_9")) as create:
            account_id = adapter.create_connected_account(
                country="tr", email=None, business_name="Clinic"
            )

        assert account_id == "acct_9"
        kwargs = create.call_args.kwargs
        assert kwargs["type"] == "express"
        assert kwargs["country"] == "TR"
        assert kwargs["capabilities"]["transfers"] == {"requested": True}
        assert "email" not in kwargs

    def test_account_link(self, adapter):
        link = SimpleNamespace(url="https://connect.stripe.com/setup/x", expires_at=1900000000)
        with patch.object(stripe.AccountLink, "create", return_value=link) as create:
            result = adapter.create_account_link(
                "acct_9", refresh_url="https://app/refresh", return_url="https://app/return"
            )

        create.assert_called_once_with(
            api_key=SECRET_KEY,
            account="acct_9",
            refresh_url="https://app/refresh",
            return_url="https://app/return",
            type="account_onboarding",
        )
        assert result.url == "https://connect.stripe.com/setup/x"
        assert result.expires_at == 1900000000


# =============================================================================
# Error Translation
# =============================================================================


class TestErrorTranslation:
    @pytest.mark.parametrize(
        "stripe_error, expected",
        [
            (card_error("generic_decline"), StripeCardDeclinedError),
            (card_error("insufficient_funds"), StripeInsufficientFundsError),
            (
                stripe.InvalidRequestError("No such destination: acct_x", "destination", code="resource_missing"),
                StripeInvalidAccountError,
            ),
            (
                stripe.InvalidRequestError("Insufficient balance", None, code="balance_insufficient"),
                StripeInsufficientFundsError,
            ),
            (stripe.InvalidRequestError("Invalid currency", "currency"), StripeInvalidRequestError),
            (stripe.RateLimitError("Too many requests"), StripeRateLimitError),
            (stripe.APIConnectionError("Request timeout after 5s"), StripeTimeoutError),
            (stripe.APIConnectionError("Connection refused"), StripeAPIUnavailableError),
            (stripe.AuthenticationError("Invalid API Key"), StripeInvalidRequestError),
            (stripe.APIError("Server error"), StripeAPIUnavailableError),
            (RuntimeError("boom"), StripeAPIUnavailableError),
        ],
    )
    def test_translation(self, adapter, stripe_error, expected):
        with patch.object(stripe.PaymentIntent, "create", side_effect=stripe_error):
            with pytest.raises(expected) as exc_info:
                adapter.authorize(amount_cents=5000, currency="USD")

        assert exc_info.value.__cause__ is stripe_error

    def test_decline_code_is_kept(self, adapter):
        with patch.object(stripe.PaymentIntent, "create", side_effect=card_error("insufficient_funds")):
            with pytest.raises(StripeInsufficientFundsError) as exc_info:
                adapter.authorize(amount_cents=5000, currency="USD")

        error = exc_info.value
        assert error.error_code == "INSUFFICIENT_FUNDS"
        assert error.decline_code == "insufficient_funds"
        assert error.message == "Your card was declined."

    def test_transport_errors_are_retryable(self, adapter):
        with patch.object(stripe.Transfer, "create", side_effect=stripe.RateLimitError("slow down")):
            with pytest.raises(StripeRateLimitError) as exc_info:
                adapter.create_transfer(amount_cents=100, currency="usd", destination="acct_1")

        assert exc_info.value.is_retryable
        assert exc_info.value.error_code == "STRIPE_RATE_LIMITED"


# =============================================================================
# Webhook Verification
# =============================================================================


class TestWebhookVerification:
    event = {"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": {}}}

    def test_valid_signature(self, adapter):
        body = json.dumps(self.event)

        parsed = adapter.verify_and_parse_webhook(body.encode(), sign_payload(body, WEBHOOK_SECRET))

        assert parsed == self.event

    def test_wrong_secret(self, adapter):
        body = json.dumps(self.event)

        with pytest.raises(WebhookSignatureError) as exc_info:
            adapter.verify_and_parse_webhook(body.encode(), sign_payload(body, "whsec_other"))

        assert exc_info.value.error_code == "INVALID_SIGNATURE"

    def test_stale_timestamp(self, adapter):
        body = json.dumps(self.event)
        header = sign_payload(body, WEBHOOK_SECRET, timestamp=int(time.time()) - 301)

        with pytest.raises(WebhookSignatureError):
            adapter.verify_and_parse_webhook(body.encode(), header, tolerance=300)

    def test_missing_header(self, adapter):
        with pytest.raises(WebhookSignatureError):
            adapter.verify_and_parse_webhook(b"{}", None)

    def test_missing_secret(self):
        with pytest.raises(PaymentConfigurationError) as exc_info:
            StripeAdapter(secret_key=SECRET_KEY).verify_and_parse_webhook(b"{}", "t=1,v1=x")

        assert exc_info.value.error_code == "STRIPE_WEBHOOK_NOT_CONFIGURED"

    def test_explicit_secret_overrides_adapter_secret(self):
        body = json.dumps(self.event)

        parsed = StripeAdapter(secret_key=SECRET_KEY).verify_and_parse_webhook(
            body.encode(), sign_payload(body, "whsec_explicit"), secret="whsec_explicit"
        )

        assert parsed["id"] == "evt_1"

    def test_event_without_type(self, adapter):
        body = json.dumps({"id": "evt_1"})

        with pytest.raises(WebhookSignatureError):
            adapter.verify_and_parse_webhook(body.encode(), sign_payload(body, WEBHOOK_SECRET))


# =============================================================================
# Idempotency Keys
# =============================================================================


class TestIdempotencyKeyGenerator:
    def test_format(self, settings):
        settings.SECRET_KEY = "test-secret"

        key = IdempotencyKeyGenerator.generate("authorize", "abc")

        operation, entity, attempt, short_hash = key.split(":")
        assert (operation, entity, attempt) == ("authorize", "abc", "1")
        assert len(short_hash) == 8

    def test_deterministic_per_attempt(self):
        first = IdempotencyKeyGenerator.generate("refund", "abc")

        assert IdempotencyKeyGenerator.generate("refund", "abc") == first
        assert IdempotencyKeyGenerator.generate("refund", "abc", attempt=2) != first

    def test_payout_transfer_key_is_stable(self):
        assert IdempotencyKeyGenerator.payout_transfer("p1") == "payout_transfer:p1"

"""
Tests for the Stripe webhook endpoint.

Signatures are real: each request is signed with HMAC-SHA256 over
"<timestamp>.<body>" exactly as Stripe does, and verified by the Stripe
SDK inside the view.

Tests cover:
- Configuration errors answered with 500
- Missing, tampered, foreign and stale signatures answered with 400
- Processing a verified event
- Duplicate deliveries and reclaiming failed events
"""

import json
import time
from unittest.mock import patch

import pytest
from django.urls import reverse

from audit.models import AuditLog
from payments.models import Payment, WebhookEvent
from payments.state_machines import PaymentStatus, WebhookEventStatus
from payments.conftest import sign_payload
from payments.tests.factories import stripe_event

WEBHOOK_URL = reverse("payments:stripe_webhook")


@pytest.fixture
def succeeded_event(initiated_payment):
    return stripe_event(
        "payment_intent.succeeded",
        {
            "id": "pi_initiated",
            "object": "payment_intent",
            "status": "succeeded",
            "metadata": {"paymentId": str(initiated_payment.id)},
        },
        event_id="evt_123",
    )


def post_webhook(client, body: str, headers: dict):
    return client.post(WEBHOOK_URL, data=body, content_type="application/json", **headers)


# =============================================================================
# Configuration
# =============================================================================


@pytest.mark.django_db
class TestWebhookConfiguration:
    def test_missing_webhook_secret(self, client, stripe_mode, signed_webhook, succeeded_event):
        stripe_mode.STRIPE_WEBHOOK_SECRET = ""
        body, headers = signed_webhook(succeeded_event)

        response = post_webhook(client, body, headers)

        assert response.status_code == 500
        assert response.json()["error_code"] == "STRIPE_WEBHOOK_NOT_CONFIGURED"
        assert not WebhookEvent.objects.exists()

    def test_missing_secret_key(self, client, stripe_mode, signed_webhook, succeeded_event):
        stripe_mode.STRIPE_SECRET_KEY = ""
        body, headers = signed_webhook(succeeded_event)

        response = post_webhook(client, body, headers)

        assert response.status_code == 500
        assert response.json()["error_code"] == "STRIPE_NOT_CONFIGURED"

    def test_get_not_allowed(self, client, stripe_mode):
        assert client.get(WEBHOOK_URL).status_code == 405


# =============================================================================
# Signature Verification
# =============================================================================


@pytest.mark.django_db
class TestWebhookSignature:
    """Nothing is recorded unless the signature verifies."""

    def test_missing_signature(self, client, stripe_mode, succeeded_event):
        response = post_webhook(client, json.dumps(succeeded_event), {})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_SIGNATURE"
        assert not WebhookEvent.objects.exists()

    def test_tampered_body(self, client, stripe_mode, signed_webhook, succeeded_event):
        body, headers = signed_webhook(succeeded_event)
        tampered = body.replace("succeeded", "canceled")

        response = post_webhook(client, tampered, headers)

        assert response.status_code == 400
        assert not WebhookEvent.objects.exists()

    def test_signed_with_another_secret(self, client, stripe_mode, signed_webhook, succeeded_event):
        body, headers = signed_webhook(succeeded_event, secret="whsec_attacker")

        response = post_webhook(client, body, headers)

        assert response.status_code == 400

    def test_replayed_outside_tolerance(self, client, stripe_mode, signed_webhook, succeeded_event):
        body, headers = signed_webhook(succeeded_event, timestamp=int(time.time()) - 600)

        response = post_webhook(client, body, headers)

        assert response.status_code == 400
        assert not WebhookEvent.objects.exists()

    def test_garbage_header(self, client, stripe_mode, succeeded_event):
        response = post_webhook(
            client, json.dumps(succeeded_event), {"HTTP_STRIPE_SIGNATURE": "not-a-signature"}
        )

        assert response.status_code == 400

    def test_signed_but_not_json(self, client, stripe_mode, signed_webhook):
        body = "this is not json"
        response = post_webhook(client, body, {"HTTP_STRIPE_SIGNATURE": sign_payload(body)})

        assert response.status_code == 400

    def test_signed_event_without_id(self, client, stripe_mode, signed_webhook):
        body, headers = signed_webhook({"type": "payment_intent.succeeded", "data": {"object": {}}})

        response = post_webhook(client, body, headers)

        assert response.status_code == 400


# =============================================================================
# Processing and Idempotency
# =============================================================================


@pytest.mark.django_db
class TestWebhookProcessing:
    def test_verified_event_is_processed(self, client, stripe_mode, signed_webhook, succeeded_event, initiated_payment):
        body, headers = signed_webhook(succeeded_event)

        response = post_webhook(client, body, headers)

        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert Payment.objects.get(id=initiated_payment.id).status == PaymentStatus.HELD
        webhook_event = WebhookEvent.objects.get(stripe_event_id="evt_123")
        assert webhook_event.status == WebhookEventStatus.PROCESSED
        assert webhook_event.event_type == "payment_intent.succeeded"

    def test_duplicate_delivery_is_acknowledged_once(
        self, client, stripe_mode, signed_webhook, succeeded_event, django_capture_on_commit_callbacks
    ):
        body, headers = signed_webhook(succeeded_event)

        with django_capture_on_commit_callbacks(execute=True):
            first = post_webhook(client, body, headers)
            second = post_webhook(client, body, headers)

        assert first.json() == {"received": True}
        assert second.status_code == 200
        assert second.json() == {"received": True, "duplicate": True}
        assert WebhookEvent.objects.count() == 1
        assert AuditLog.objects.filter(action="stripe.webhook.payment_intent.succeeded").count() == 1

    def test_unknown_event_type_is_acknowledged(self, client, stripe_mode, signed_webhook):
        body, headers = signed_webhook(stripe_event("customer.created", {"id": "cus_1"}))

        response = post_webhook(client, body, headers)

        assert response.status_code == 200
        assert WebhookEvent.objects.get().status == WebhookEventStatus.PROCESSED

    def test_processing_failure_then_redelivery(
        self, client, stripe_mode, signed_webhook, succeeded_event, initiated_payment
    ):
        body, headers = signed_webhook(succeeded_event)

        with patch(
            "payments.webhooks.processing.dispatch_webhook",
            side_effect=RuntimeError("database hiccup"),
        ):
            failed = post_webhook(client, body, headers)

        assert failed.status_code == 500
        assert failed.json()["error_code"] == "WEBHOOK_PROCESSING_FAILED"
        assert WebhookEvent.objects.get().status == WebhookEventStatus.FAILED

        retried = post_webhook(client, body, headers)

        assert retried.status_code == 200
        assert retried.json() == {"received": True}
        webhook_event = WebhookEvent.objects.get()
        assert webhook_event.status == WebhookEventStatus.PROCESSED
        assert webhook_event.retry_count == 1
        assert Payment.objects.get(id=initiated_payment.id).status == PaymentStatus.HELD

"""
Stripe API adapter for payment operations.

This module provides the StripeAdapter class which encapsulates all
Stripe API interactions. All Stripe calls should go through this
adapter to ensure consistent error handling, timeouts, idempotency,
and observability.

Features:
- Bounded timeout on every API call
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Idempotency support for safe retries by the caller
- No automatic retries (STRIPE_MAX_RETRIES defaults to 0)

The adapter is an instance built from settings by get_stripe_adapter()
and passed to the services that need it, so tests can hand in a fake and
"is Stripe configured?" is a question asked of the adapter rather than of
module-level state.

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_WEBHOOK_TOLERANCE_SECONDS: Allowed webhook clock skew (default: 300)
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: Network retries inside the SDK (default: 0)

Usage:
    from payments.adapters import get_stripe_adapter

    adapter = get_stripe_adapter()
    if adapter.is_configured():
        result = adapter.authorize(
            amount_cents=200000,
            currency="USD",
            manual_capture=True,
            metadata={"paymentId": str(payment.id)},
            idempotency_key=IdempotencyKeyGenerator.generate("authorize", payment.id),
        )
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

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

if TYPE_CHECKING:
    from typing import NoReturn


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class PaymentIntentResult:
    """
    Result from Stripe PaymentIntent operations.

    Attributes:
        id: PaymentIntent ID (pi_xxx)
        status: Current status (requires_capture, succeeded, etc.)
        amount_cents: Amount in cents
        currency: Currency code
        client_secret: Secret for client-side confirmation
        metadata: Attached metadata
    """

    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class TransferResult:
    """
    Result from Stripe Transfer operations.

    Attributes:
        id: Transfer ID (tr_xxx)
        amount_cents: Amount transferred in cents
        currency: Currency code
        destination_account: Destination Stripe account ID
    """

    id: str
    amount_cents: int
    currency: str
    destination_account: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class RefundResult:
    id: str
    amount_cents: int
    currency: str
    status: str
    payment_intent_id: str


@dataclass
class AccountLinkResult:
    url: str
    expires_at: int | None = None


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The hash component ties the key to this deployment's SECRET_KEY, while
    the structured format aids debugging and correlation.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="authorize",
            entity_id=payment.id,
        )
        # Result: "authorize:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"

    @staticmethod
    def payout_transfer(payout_id: uuid.UUID | str) -> str:
        """Stable key for a payout's transfer, shared by every executor run."""
        return f"payout_transfer:{payout_id}"


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    Holds only configuration (keys, timeout), so one instance can be shared
    by concurrent requests and Celery workers.

    Usage:
        adapter = StripeAdapter(secret_key="sk_test_...")
        intent = adapter.capture(payment.stripe_payment_intent_id)
    """

    def __init__(
        self,
        secret_key: str | None = None,
        webhook_secret: str | None = None,
        timeout_seconds: int = 10,
        max_retries: int = 0,
    ):
        self.secret_key = secret_key or None
        self.webhook_secret = webhook_secret or None
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries

    # =========================================================================
    # Configuration
    # =========================================================================

    def is_configured(self) -> bool:
        """True when a secret key is set and API calls can be made."""
        return bool(self.secret_key)

    def ensure_configured(self, require_webhook_secret: bool = True) -> None:
        """
        Raise PaymentConfigurationError naming the missing credential.

        Payments created through Stripe are reconciled by webhooks, so
        operations that create or move them also need the signing secret.
        """
        if not self.secret_key:
            raise PaymentConfigurationError(
                "Stripe is not configured. Set STRIPE_SECRET_KEY.",
                error_code="STRIPE_NOT_CONFIGURED",
            )
        if require_webhook_secret and not self.webhook_secret:
            raise PaymentConfigurationError(
                "Stripe webhook is not configured. Set STRIPE_WEBHOOK_SECRET.",
                error_code="STRIPE_WEBHOOK_NOT_CONFIGURED",
            )

    def _configure_stripe(self) -> None:
        """Apply timeout and retry policy to the SDK's HTTP client."""
        self.ensure_configured(require_webhook_secret=False)
        stripe.default_http_client = stripe.RequestsClient(timeout=self.timeout_seconds)
        stripe.max_network_retries = self.max_retries

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def _call(self, operation: str, log_context: dict[str, Any], func, **params):
        """
        Run one Stripe SDK call with timing logs and error translation.

        The API key is passed per request, never stored on the stripe module.
        """
        self._configure_stripe()
        logger = self.get_logger()
        log_context = {"operation": operation, **log_context}

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            response = func(api_key=self.secret_key, **params)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "stripe_object_id": getattr(response, "id", None),
                "duration_ms": duration_ms,
            },
        )
        return response

    # =========================================================================
    # PaymentIntents
    # =========================================================================

    def authorize(
        self,
        amount_cents: int,
        currency: str,
        manual_capture: bool = True,
        metadata: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> PaymentIntentResult:
        """
        Create a PaymentIntent.

        With manual_capture the card is only authorized; funds move when
        capture() is called or Stripe reports the intent succeeded.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError: Stripe service unavailable
            StripeTimeoutError: Request timed out
        """
        params: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency.lower(),
            "capture_method": "manual" if manual_capture else "automatic",
            "automatic_payment_methods": {"enabled": True},
            "metadata": metadata or {},
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        intent = self._call(
            "authorize",
            {
                "amount_cents": amount_cents,
                "currency": currency,
                "idempotency_key": idempotency_key,
            },
            stripe.PaymentIntent.create,
            **params,
        )
        return self._intent_result(intent)

    def capture(
        self,
        payment_intent_id: str,
        idempotency_key: str | None = None,
    ) -> PaymentIntentResult:
        """Capture a PaymentIntent previously created with manual capture."""
        params: dict[str, Any] = {}
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        intent = self._call(
            "capture",
            {"payment_intent_id": payment_intent_id},
            stripe.PaymentIntent.capture,
            intent=payment_intent_id,
            **params,
        )
        return self._intent_result(intent)

    @staticmethod
    def _intent_result(intent) -> PaymentIntentResult:
        return PaymentIntentResult(
            id=intent.id,
            status=intent.status,
            amount_cents=intent.amount,
            currency=intent.currency,
            client_secret=getattr(intent, "client_secret", None),
            metadata=dict(intent.metadata or {}),
        )

    # =========================================================================
    # Refunds & Transfers
    # =========================================================================

    def refund(
        self,
        payment_intent_id: str,
        reason: str = "requested_by_customer",
        idempotency_key: str | None = None,
    ) -> RefundResult:
        """
        Refund a PaymentIntent in full.

        For an uncaptured intent Stripe releases the authorization instead.
        """
        params: dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "reason": reason,
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        refund = self._call(
            "refund",
            {"payment_intent_id": payment_intent_id, "reason": reason},
            stripe.Refund.create,
            **params,
        )
        return RefundResult(
            id=refund.id,
            amount_cents=refund.amount,
            currency=refund.currency,
            status=refund.status,
            payment_intent_id=payment_intent_id,
        )

    def create_transfer(
        self,
        amount_cents: int,
        currency: str,
        destination: str,
        metadata: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> TransferResult:
        """
        Create a transfer to a connected Stripe account.

        Raises:
            StripeInvalidAccountError: Invalid destination account
            StripeInsufficientFundsError: Insufficient platform balance
        """
        params: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency.lower(),
            "destination": destination,
            "metadata": metadata or {},
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        transfer = self._call(
            "create_transfer",
            {
                "amount_cents": amount_cents,
                "destination_account": destination,
                "idempotency_key": idempotency_key,
            },
            stripe.Transfer.create,
            **params,
        )
        return TransferResult(
            id=transfer.id,
            amount_cents=transfer.amount,
            currency=transfer.currency,
            destination_account=transfer.destination,
            metadata=dict(transfer.metadata or {}),
        )

    # =========================================================================
    # Connect Onboarding
    # =========================================================================

    def create_connected_account(
        self,
        country: str,
        email: str | None,
        business_name: str,
        metadata: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> str:
        """Create an Express account and return its id (acct_xxx)."""
        params: dict[str, Any] = {
            "type": "express",
            "country": country.upper(),
            "capabilities": {
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            "business_profile": {"name": business_name},
            "metadata": metadata or {},
        }
        if email:
            params["email"] = email
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        account = self._call(
            "create_connected_account",
            {"country": country},
            stripe.Account.create,
            **params,
        )
        return account.id

    def create_account_link(
        self,
        account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> AccountLinkResult:
        link = self._call(
            "create_account_link",
            {"stripe_account_id": account_id},
            stripe.AccountLink.create,
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
        )
        return AccountLinkResult(url=link.url, expires_at=getattr(link, "expires_at", None))

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_and_parse_webhook(
        self,
        payload: bytes,
        signature_header: str | None,
        secret: str | None = None,
        tolerance: int = 300,
    ) -> dict[str, Any]:
        """
        Verify a Stripe webhook signature and parse the event.

        The signature covers the exact bytes Stripe sent, so ``payload``
        must be the raw request body, never a re-serialized dict.

        Returns:
            Parsed event dict

        Raises:
            PaymentConfigurationError: No signing secret available
            WebhookSignatureError: Bad signature, stale timestamp or invalid JSON
        """
        secret = secret or self.webhook_secret
        if not secret:
            raise PaymentConfigurationError(
                "Stripe webhook is not configured. Set STRIPE_WEBHOOK_SECRET.",
                error_code="STRIPE_WEBHOOK_NOT_CONFIGURED",
            )
        if not signature_header:
            raise WebhookSignatureError("Missing Stripe-Signature header")

        try:
            text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
            stripe.WebhookSignature.verify_header(text, signature_header, secret, tolerance)
            event = json.loads(text)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(
                "Invalid webhook signature",
                details={"reason": e.user_message or str(e)},
            ) from e
        except (UnicodeDecodeError, ValueError) as e:
            raise WebhookSignatureError("Invalid webhook payload") from e

        if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
            raise WebhookSignatureError("Invalid webhook payload")
        return event

    # =========================================================================
    # Error Handling
    # =========================================================================

    @staticmethod
    def _decline_code(error: stripe.CardError) -> str | None:
        """The decline code lives in the error body, not on the exception."""
        body = error.json_body if isinstance(error.json_body, dict) else {}
        error_body = body.get("error")
        if isinstance(error_body, dict):
            return error_body.get("decline_code")
        return None

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> NoReturn:
        """
        Translate Stripe exceptions to domain exceptions.

        Card and request errors keep Stripe's message, which is safe to show
        to API clients. Transport errors get a generic message.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInsufficientFundsError: Insufficient funds
            StripeInvalidAccountError: Invalid Connect account
            StripeInvalidRequestError: Invalid request parameters
            StripeRateLimitError: Rate limited
            StripeTimeoutError: Request timed out
            StripeAPIUnavailableError: API unavailable
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = cls._decline_code(error)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )

            if decline_code == "insufficient_funds":
                raise StripeInsufficientFundsError(
                    str(error.user_message or error),
                    stripe_code=error.code,
                    decline_code=decline_code,
                ) from error

            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            ) from error

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            message = str(error.user_message or error)

            if error.code == "balance_insufficient":
                raise StripeInsufficientFundsError(message, stripe_code=error.code) from error
            if getattr(error, "param", None) == "destination" or "account" in message.lower():
                raise StripeInvalidAccountError(message, stripe_code=error.code) from error

            raise StripeInvalidRequestError(message, stripe_code=error.code) from error

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        if isinstance(error, stripe.APIConnectionError):
            if "timeout" in str(error).lower():
                logger.error("Stripe request timed out", extra=log_context)
                raise StripeTimeoutError(
                    "Stripe did not respond in time. Please retry.",
                    stripe_code="timeout",
                ) from error

            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        if isinstance(error, (stripe.AuthenticationError, stripe.PermissionError)):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        if isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise StripeAPIUnavailableError(
            "Unexpected Stripe error. Please retry.",
            stripe_code="unknown_error",
        ) from error


def get_stripe_adapter() -> StripeAdapter:
    """Build a StripeAdapter from Django settings."""
    return StripeAdapter(
        secret_key=getattr(settings, "STRIPE_SECRET_KEY", None),
        webhook_secret=getattr(settings, "STRIPE_WEBHOOK_SECRET", None),
        timeout_seconds=getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10),
        max_retries=getattr(settings, "STRIPE_MAX_RETRIES", 0),
    )

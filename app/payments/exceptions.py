"""
Payment-specific exceptions for payment operations.

This module provides a hierarchy of exceptions for payment operations,
covering payment domain errors, lifecycle/concurrency errors, gateway
configuration errors, and Stripe-specific errors.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Payment/payout lookup failures (NotFoundError)
    ├── PaymentValidationError - Deposit input failures
    └── PaymentProcessingError - Gateway-side failures
        └── StripeError - Base for all Stripe errors (ExternalServiceError)
            ├── StripeCardDeclinedError - Card declined (permanent)
            ├── StripeInsufficientFundsError - Insufficient funds (permanent)
            ├── StripeInvalidAccountError - Invalid Connect account (permanent)
            ├── StripeInvalidRequestError - Invalid request params (permanent)
            ├── StripeRateLimitError - Rate limited (transient)
            ├── StripeAPIUnavailableError - API unavailable (transient)
            └── StripeTimeoutError - Request timeout (transient)

    PaymentConfigurationError - Gateway or Connect not set up (ConfigurationError)
    WebhookSignatureError - Unverifiable webhook payload (ValidationError)
    WebhookProcessingError - Handler reported failure (PaymentError)
    InvalidStateTransitionError - Transition not allowed (ConflictError)
    StaleRecordError - Row changed between read and write (ConflictError)

Usage:
    from payments.exceptions import InvalidStateTransitionError

    raise InvalidStateTransitionError(
        "Cannot release payment in INITIATED status",
        details={"current_status": "INITIATED", "action": "release"},
    )

Note:
    The engine never retries gateway calls itself. is_retryable only tells
    the operator (or a Celery retry policy in the surrounding system)
    whether trying again could help.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConfigurationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Errors
# =============================================================================


class PaymentError(BaseApplicationError):
    """Base exception for payment domain errors."""

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError, NotFoundError):
    """
    Raised when a payment or payout cannot be found.

    Example:
        raise PaymentNotFoundError(
            f"Payment {payment_id} not found",
            details={"payment_id": str(payment_id)},
        )
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class PaymentValidationError(PaymentError, ValidationError):
    """Raised when deposit parameters fail validation."""

    default_error_code: str = "VALIDATION_ERROR"


class PaymentProcessingError(PaymentError):
    """Raised when the payment gateway rejects or fails an operation."""

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


# =============================================================================
# Stripe Errors
# =============================================================================


class StripeError(PaymentProcessingError, ExternalServiceError):
    """
    Base exception for all Stripe-related errors.

    Attributes:
        stripe_code: Stripe's internal error code
        decline_code: Card decline code (if applicable)
        is_retryable: Whether trying again later could succeed

    The message is Stripe's own message where it is safe to show
    (card errors, invalid requests); transport errors get a generic one.
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# -----------------------------------------------------------------------------
# Permanent Errors
# -----------------------------------------------------------------------------


class StripeCardDeclinedError(StripeError):
    default_error_code: str = "CARD_DECLINED"


class StripeInsufficientFundsError(StripeError):
    """Card has insufficient funds, or the platform balance cannot cover a transfer."""

    default_error_code: str = "INSUFFICIENT_FUNDS"


class StripeInvalidAccountError(StripeError):
    """The Connect destination account is missing, restricted or deleted."""

    default_error_code: str = "INVALID_STRIPE_ACCOUNT"


class StripeInvalidRequestError(StripeError):
    """Invalid parameters, unknown object, or authentication failure."""

    default_error_code: str = "INVALID_STRIPE_REQUEST"


# -----------------------------------------------------------------------------
# Transient Errors
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """Stripe returned a 5xx or could not be reached."""

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    The call exceeded STRIPE_API_TIMEOUT_SECONDS.

    The outcome on Stripe's side is unknown; it is reconciled later by
    the synchronous retry with the same idempotency key or by a webhook.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Configuration and Webhook Errors
# =============================================================================


class PaymentConfigurationError(ConfigurationError):
    """
    Raised when an operation needs Stripe (or Stripe Connect) and it is not set up.

    Error codes:
        STRIPE_NOT_CONFIGURED: STRIPE_SECRET_KEY missing
        STRIPE_WEBHOOK_NOT_CONFIGURED: STRIPE_WEBHOOK_SECRET missing
        STRIPE_CONNECT_DISABLED: STRIPE_CONNECT_ENABLED is false
        PAYMENTS_MODE_NOT_STRIPE: PAYMENTS_MODE is not STRIPE
    """

    default_error_code: str = "STRIPE_NOT_CONFIGURED"


class WebhookProcessingError(PaymentError):
    """
    Raised when a webhook handler reports a failure.

    Raised inside the dispatch transaction so the event's effects roll
    back and the event is marked FAILED for the retry sweep.
    """

    default_error_code: str = "WEBHOOK_PROCESSING_FAILED"


class WebhookSignatureError(ValidationError):
    """
    Raised when a webhook cannot be authenticated.

    Covers a bad signature, a timestamp outside the tolerance window and
    a payload that is not valid JSON. Always answered with HTTP 400
    before any row is written.
    """

    default_error_code: str = "INVALID_SIGNATURE"


# =============================================================================
# Lifecycle and Concurrency Errors
# =============================================================================


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state transition is not allowed from the current state.

    Example:
        if not can_proceed(payment.release):
            raise InvalidStateTransitionError(
                f"Cannot release payment in {payment.status} status",
                details={"current_status": payment.status, "action": "release"},
            )
    """

    default_error_code: str = "BAD_STATUS"


class StaleRecordError(ConflictError):
    """
    Raised when a row's status changed between read and conditional write.

    django-fsm's ConcurrentTransitionMixin filters the UPDATE on the status
    the instance was loaded with; zero rows updated means another request
    moved the row first. Treated as a bad-state conflict by callers.
    """

    default_error_code: str = "STALE_RECORD"

"""
Webhook event handlers for Stripe events.

This module provides a handler registry keyed by WebhookEventKind, the
closed set of event types the engine acts on, and one handler per kind.
Types outside that set reach the explicit default handler, which records
nothing and succeeds.

Handlers only apply a transition that is legal from the payment's current
status. Stripe does not guarantee delivery order, so an event that would
move a payment backwards (payment_intent.succeeded arriving after a
refund, say) is logged and skipped rather than failed.

Payments are found through ``data.object.metadata.paymentId``, which the
deposit flow puts on every PaymentIntent. A missing or unknown id is
skipped.

Usage:
    from payments.webhooks.handlers import dispatch_webhook

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from django.utils import timezone

from django_fsm import can_proceed

from audit.services import AuditService
from core.model_mixins import parse_uuid
from core.services import ServiceResult
from marketplace.models import ProviderProfile

from payments.models import Payment, WebhookEvent
from payments.state_machines import (
    PaymentStatus,
    WebhookEventKind,
    map_intent_status,
)

if TYPE_CHECKING:
    from typing import Any


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


WebhookHandler = Callable[[WebhookEvent], ServiceResult]

# Maps each known event kind to its handler
WEBHOOK_HANDLERS: dict[WebhookEventKind, WebhookHandler] = {}


def register_handler(kind: WebhookEventKind) -> Callable:
    """
    Decorator to register the handler for one event kind.

    Usage:
        @register_handler(WebhookEventKind.CHARGE_SUCCEEDED)
        def handle_charge_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
            ...
    """

    def decorator(func: WebhookHandler) -> WebhookHandler:
        WEBHOOK_HANDLERS[kind] = func
        return func

    return decorator


def handle_unknown_event(webhook_event: WebhookEvent) -> ServiceResult:
    """Default arm: acknowledge event types the engine does not act on."""
    logger.info(
        f"No handler for event type: {webhook_event.event_type}",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return ServiceResult.success(None)


def resolve_handler(event_type: str) -> WebhookHandler:
    if event_type not in WebhookEventKind.values:
        return handle_unknown_event
    return WEBHOOK_HANDLERS.get(WebhookEventKind(event_type), handle_unknown_event)


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the handler for its kind.

    The caller owns the transaction: an exception raised by a handler
    propagates so every effect of the event is rolled back.
    """
    handler = resolve_handler(webhook_event.event_type)
    logger.info(
        f"Dispatching {webhook_event.event_type}",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "handler": handler.__name__,
        },
    )
    return handler(webhook_event)


# =============================================================================
# Helpers
# =============================================================================


# Transition method to reach each status a webhook may request
TRANSITION_FOR_STATUS = {
    PaymentStatus.AUTHORIZED: "authorize",
    PaymentStatus.HELD: "hold",
    PaymentStatus.FAILED: "fail",
    PaymentStatus.REFUNDED: "refund",
}


def _payment_for_event(webhook_event: WebhookEvent) -> Payment | None:
    """Locked Payment referenced by metadata.paymentId, or None."""
    metadata = webhook_event.get_object().get("metadata") or {}
    payment_id = parse_uuid(metadata.get("paymentId"))
    if payment_id is None:
        logger.info(
            "Webhook has no usable paymentId, skipping",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return None

    payment = Payment.objects.select_for_update().filter(id=payment_id).first()
    if payment is None:
        logger.warning(
            "Payment not found for webhook, skipping",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "payment_id": str(payment_id),
            },
        )
    return payment


def apply_payment_status(
    payment: Payment,
    target: str,
    webhook_event: WebhookEvent,
    **transition_kwargs: Any,
) -> bool:
    """
    Move ``payment`` to ``target`` if the state machine allows it.

    Returns:
        True if a transition was applied, False if it was a no-op or skipped
    """
    if payment.status == target:
        return False

    method_name = TRANSITION_FOR_STATUS.get(target)
    if method_name is None:
        # INITIATED: nothing to move towards
        return False

    transition_method = getattr(payment, method_name)
    if not can_proceed(transition_method):
        logger.warning(
            "Ignoring out-of-order webhook transition",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "payment_id": str(payment.id),
                "current_status": payment.status,
                "target_status": target,
            },
        )
        return False

    transition_method(**transition_kwargs)
    payment.save_transition(method_name)
    return True


# =============================================================================
# Payment Intent Handlers
# =============================================================================


@register_handler(WebhookEventKind.PAYMENT_INTENT_SUCCEEDED)
@register_handler(WebhookEventKind.PAYMENT_INTENT_CAPTURABLE)
def handle_payment_intent_status(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Reconcile a PaymentIntent status change.

    succeeded -> HELD, requires_capture -> AUTHORIZED, anything else is
    treated as INITIATED (no move).
    """
    intent = webhook_event.get_object()
    payment = _payment_for_event(webhook_event)
    if payment is None:
        return ServiceResult.success(None)

    _remember_intent_id(payment, intent.get("id"))
    target = map_intent_status(intent.get("status"))
    applied = apply_payment_status(payment, target, webhook_event)

    AuditService.record(
        actor=None,
        entity_type="Payment",
        entity_id=payment.id,
        action=f"stripe.webhook.{webhook_event.event_type}",
        metadata={
            "stripe_payment_intent_id": intent.get("id"),
            "stripe_status": intent.get("status"),
            "applied": applied,
        },
    )
    return ServiceResult.success(payment)


@register_handler(WebhookEventKind.PAYMENT_INTENT_FAILED)
def handle_payment_intent_failed(webhook_event: WebhookEvent) -> ServiceResult:
    intent = webhook_event.get_object()
    payment = _payment_for_event(webhook_event)
    if payment is None:
        return ServiceResult.success(None)

    _remember_intent_id(payment, intent.get("id"))
    last_error = intent.get("last_payment_error") or {}
    reason = last_error.get("message") or last_error.get("code") or "payment_failed"
    applied = apply_payment_status(payment, PaymentStatus.FAILED, webhook_event, reason=reason)

    AuditService.record(
        actor=None,
        entity_type="Payment",
        entity_id=payment.id,
        action=f"stripe.webhook.{webhook_event.event_type}",
        metadata={
            "stripe_payment_intent_id": intent.get("id"),
            "reason": reason,
            "applied": applied,
        },
    )
    return ServiceResult.success(payment)


def _remember_intent_id(payment: Payment, intent_id: str | None) -> None:
    """Store the PaymentIntent id if the deposit flow did not get to it."""
    if not intent_id or payment.stripe_payment_intent_id:
        return
    Payment.objects.filter(id=payment.id, stripe_payment_intent_id__isnull=True).update(
        stripe_payment_intent_id=intent_id,
        updated_at=timezone.now(),
    )
    payment.stripe_payment_intent_id = intent_id


# =============================================================================
# Charge Handlers
# =============================================================================


@register_handler(WebhookEventKind.CHARGE_SUCCEEDED)
def handle_charge_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
    """Record the charge id. Status is left to the payment_intent events."""
    charge = webhook_event.get_object()
    payment = _payment_for_event(webhook_event)
    if payment is None or not charge.get("id"):
        return ServiceResult.success(None)

    Payment.objects.filter(id=payment.id).update(
        stripe_charge_id=charge["id"],
        updated_at=timezone.now(),
    )
    return ServiceResult.success(payment)


@register_handler(WebhookEventKind.CHARGE_REFUNDED)
def handle_charge_refunded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Mirror a refund made at Stripe.

    Legal from HELD and RELEASED. A payment already REFUNDED (the admin
    refund path got there first) is a no-op.
    """
    charge = webhook_event.get_object()
    payment = _payment_for_event(webhook_event)
    if payment is None:
        return ServiceResult.success(None)

    applied = apply_payment_status(payment, PaymentStatus.REFUNDED, webhook_event)
    if applied:
        AuditService.record(
            actor=None,
            entity_type="Payment",
            entity_id=payment.id,
            action="stripe.webhook.charge.refunded",
            metadata={"stripe_charge_id": charge.get("id")},
        )
    return ServiceResult.success(payment)


# =============================================================================
# Connect Handlers
# =============================================================================


@register_handler(WebhookEventKind.ACCOUNT_UPDATED)
def handle_account_updated(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Mirror a connected account's onboarding state onto the provider profile.

    Accounts not linked to any provider are ignored.
    """
    account = webhook_event.get_object()
    account_id = account.get("id")
    if not account_id:
        logger.warning(
            "account.updated without account id",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    profile = (
        ProviderProfile.objects.select_for_update()
        .filter(stripe_account_id=account_id)
        .first()
    )
    if profile is None:
        logger.info(
            "No provider for connected account, skipping",
            extra={"stripe_account_id": account_id},
        )
        return ServiceResult.success(None)

    charges_enabled = bool(account.get("charges_enabled"))
    payouts_enabled = bool(account.get("payouts_enabled"))
    details_submitted = bool(account.get("details_submitted"))
    update_fields = profile.apply_account_update(
        charges_enabled=charges_enabled,
        payouts_enabled=payouts_enabled,
        details_submitted=details_submitted,
        now=timezone.now(),
    )
    profile.save(update_fields=update_fields)

    AuditService.record(
        actor=None,
        entity_type="ProviderProfile",
        entity_id=profile.id,
        action="stripe.connect.account.updated",
        metadata={
            "charges_enabled": charges_enabled,
            "payouts_enabled": payouts_enabled,
            "details_submitted": details_submitted,
        },
    )
    logger.info(
        "Provider Connect status updated",
        extra={"provider_id": str(profile.id), "stripe_account_id": account_id},
    )
    return ServiceResult.success(profile)

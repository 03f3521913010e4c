"""
State machine enums and helpers for payment models.

This module defines the state enums used by payment models with django-fsm,
plus the pure gateway-status mapping used by webhook reconciliation.
"""

from payments.state_machines.mapping import INTENT_STATUS_MAP, map_intent_status
from payments.state_machines.states import (
    PaymentsMode,
    PaymentStatus,
    PayoutStatus,
    WebhookEventKind,
    WebhookEventStatus,
)

__all__ = [
    "INTENT_STATUS_MAP",
    "PaymentsMode",
    "PaymentStatus",
    "PayoutStatus",
    "WebhookEventKind",
    "WebhookEventStatus",
    "map_intent_status",
]

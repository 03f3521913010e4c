"""
Pure mapping from gateway PaymentIntent sub-status to local Payment status.

Kept free of ORM access so it can be unit tested on its own; the webhook
handlers decide whether the mapped status is a legal transition.
"""

from __future__ import annotations

from payments.state_machines.states import PaymentStatus

INTENT_STATUS_MAP: dict[str, str] = {
    "succeeded": PaymentStatus.HELD,
    "requires_capture": PaymentStatus.AUTHORIZED,
    "processing": PaymentStatus.INITIATED,
}


def map_intent_status(intent_status: str | None) -> str:
    """
    Map a Stripe PaymentIntent status to a PaymentStatus value.

    Unknown or missing statuses fall back to INITIATED, which never moves
    a payment forward.
    """
    return INTENT_STATUS_MAP.get(intent_status or "", PaymentStatus.INITIATED)

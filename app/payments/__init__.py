"""
Payments app: deposits, escrow holds, releases, refunds and provider payouts.

This app handles:
- Deposits, either ledger-only (MOCK) or backed by a manual-capture
  Stripe PaymentIntent (STRIPE)
- Admin capture, release and refund of held funds
- Payout scheduling and batch execution over Stripe Connect transfers
- Stripe webhook verification, idempotent recording and reconciliation
- Provider onboarding to Stripe Connect

Related apps:
    - marketplace: ProviderProfile (payout destination) and QuotationRequest
    - audit: AuditLog entries for every state change
    - notifications: Inbox messages for releases, refunds and failed payouts

Usage:
    from payments.services import PaymentService

    result = PaymentService.initiate_deposit(user, amount_cents=200000)
    result = PaymentService.release_payment(admin, result.data.payment.id)
"""

"""
URL configuration for the payments app.

Routes:
    - POST /deposit/ - Create a deposit
    - POST /capture/ - Capture an authorized deposit (admin)
    - POST /release/ - Release escrow and schedule payout (admin)
    - POST /refund/ - Refund a deposit (admin)
    - GET /me/ - Current user's payments
    - GET /admin/payouts/ - List payouts (admin)
    - POST /admin/payouts/run/ - Run due payouts (admin)
    - POST /admin/payouts/<id>/requeue/ - Requeue a failed payout (admin)
    - GET /provider/payouts/ - Current provider's payouts
    - POST /connect/account/ - Create Stripe Connect account (provider)
    - POST /connect/account-link/ - Onboarding link (provider)
    - GET /connect/status/ - Connect status (provider)
    - POST /webhooks/stripe/ - Stripe webhook endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import stripe_webhook

app_name = "payments"

urlpatterns = [
    # Payments
    path("deposit/", views.DepositView.as_view(), name="deposit"),
    path("capture/", views.CapturePaymentView.as_view(), name="capture"),
    path("release/", views.ReleasePaymentView.as_view(), name="release"),
    path("refund/", views.RefundPaymentView.as_view(), name="refund"),
    path("me/", views.MyPaymentsView.as_view(), name="my_payments"),
    # Payouts
    path("admin/payouts/", views.AdminPayoutListView.as_view(), name="admin_payout_list"),
    path("admin/payouts/run/", views.RunDuePayoutsView.as_view(), name="admin_payout_run"),
    path(
        "admin/payouts/<uuid:payout_id>/requeue/",
        views.RequeuePayoutView.as_view(),
        name="admin_payout_requeue",
    ),
    path("provider/payouts/", views.ProviderPayoutListView.as_view(), name="provider_payout_list"),
    # Stripe Connect
    path("connect/account/", views.ConnectAccountView.as_view(), name="connect_account"),
    path("connect/account-link/", views.ConnectAccountLinkView.as_view(), name="connect_account_link"),
    path("connect/status/", views.ConnectStatusView.as_view(), name="connect_status"),
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
]

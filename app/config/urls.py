"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints
        token/                     - Obtain JWT pair
        token/refresh/             - Refresh JWT
    /api/v1/payments/              - Payment endpoints
        deposit/                   - Create a deposit (POST)
        capture/                   - Capture an authorized deposit (POST, admin)
        release/                   - Release escrow, schedule payout (POST, admin)
        refund/                    - Refund a deposit (POST, admin)
        me/                        - Current user's payments (GET)
        admin/payouts/             - List payouts (GET, admin)
        admin/payouts/run/         - Run due payouts (POST, admin)
        admin/payouts/{id}/requeue/ - Requeue a failed payout (POST, admin)
        provider/payouts/          - Current provider's payouts (GET)
        connect/account/           - Create Stripe Connect account (POST, provider)
        connect/account-link/      - Stripe onboarding link (POST, provider)
        connect/status/            - Stripe Connect status (GET, provider)
        webhooks/stripe/           - Stripe webhook endpoint (POST)
    /api/v1/audit/                 - Audit endpoints
        logs/                      - Audit log listing (GET, admin)
    /api/v1/notifications/         - Notification inbox
        {id}/read/                 - Mark notification as read
        read-all/                  - Mark all notifications as read

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/", include("authentication.urls")),
    # Notifications
    path("notifications/", include("notifications.urls")),
    # Payments
    path("payments/", include("payments.urls")),
    # Audit
    path("audit/", include("audit.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Medical Tourism Payments Admin"
admin.site.site_title = "Payments Admin"
admin.site.index_title = "Payments, payouts and providers"

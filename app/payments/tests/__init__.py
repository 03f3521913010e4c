"""
Tests for payments app.

This package contains test modules for:
- test_models.py: Payment, Payout and WebhookEvent transitions and queries
- test_mapping.py: Gateway intent status mapping
- test_payment_service.py: Deposit, capture, release, refund
- test_payout_service.py: Scheduling, requeue and listings
- test_connect_service.py: Stripe Connect onboarding
- test_views.py: API endpoint tests
- test_tasks.py: Celery tasks
- test_integration.py: End-to-end payment journeys

Usage:
    pytest payments/tests/
    pytest payments/tests/test_payment_service.py
"""

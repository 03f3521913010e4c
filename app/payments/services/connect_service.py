"""
Stripe Connect onboarding for providers.

A provider needs an Express connected account before any payout can be
transferred to it. Onboarding is two calls from the provider's side:
create (or fetch) the account, then ask for a hosted onboarding link.
Stripe reports progress through account.updated webhooks, which update
the same ProviderProfile fields that connect_status reads.

Usage:
    from payments.services import ConnectService

    result = ConnectService.create_connect_account(request.user)
    result = ConnectService.create_account_link(request.user)
    redirect(result.data.url)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction

from audit.services import AuditService
from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult
from marketplace.models import OnboardingStatus, ProviderProfile

from payments.adapters import IdempotencyKeyGenerator, get_stripe_adapter
from payments.state_machines import PaymentsMode

if TYPE_CHECKING:
    from authentication.models import User
    from payments.adapters import AccountLinkResult, StripeAdapter


class ConnectService(BaseService):
    """
    Provider-facing Stripe Connect operations.

    Error codes:
        STRIPE_CONNECT_DISABLED: STRIPE_CONNECT_ENABLED is off
        PAYMENTS_MODE_NOT_STRIPE: Payments run in ledger-only mode
        STRIPE_NOT_CONFIGURED: Stripe keys are missing
        PROFILE_MISSING: Caller has no provider profile
        MISSING_STRIPE_ACCOUNT: Onboarding link requested before the account exists
    """

    @classmethod
    def _preconditions(cls, adapter: StripeAdapter) -> ServiceResult | None:
        if not settings.STRIPE_CONNECT_ENABLED:
            return ServiceResult.failure(
                "Stripe Connect is disabled",
                error_code="STRIPE_CONNECT_DISABLED",
            )
        if settings.PAYMENTS_MODE != PaymentsMode.STRIPE:
            return ServiceResult.failure(
                "Payments are not running in Stripe mode",
                error_code="PAYMENTS_MODE_NOT_STRIPE",
            )
        try:
            adapter.ensure_configured()
        except BaseApplicationError as e:
            return ServiceResult.from_error(e)
        return None

    @classmethod
    def create_connect_account(
        cls,
        user: User,
        stripe_adapter: StripeAdapter | None = None,
    ) -> ServiceResult[str]:
        """
        Return the provider's connected account id, creating the account once.

        Calling again after the account exists returns the stored id
        without touching Stripe.
        """
        adapter = stripe_adapter or get_stripe_adapter()
        failed = cls._preconditions(adapter)
        if failed is not None:
            return failed

        profile = ProviderProfile.objects.filter(user=user).first()
        if profile is None:
            return ServiceResult.failure(
                "Provider profile not found",
                error_code="PROFILE_MISSING",
            )
        if profile.stripe_account_id:
            return ServiceResult.success(profile.stripe_account_id)

        country = profile.country_code or settings.STRIPE_CONNECT_DEFAULT_COUNTRY
        try:
            account_id = adapter.create_connected_account(
                country=country,
                email=user.email,
                business_name=profile.display_name,
                metadata={"providerId": str(profile.id), "userId": str(user.pk)},
                idempotency_key=IdempotencyKeyGenerator.generate("connect_account", profile.id),
            )
        except BaseApplicationError as e:
            return ServiceResult.from_error(e)

        with transaction.atomic():
            # Another request may have stored an account in the meantime
            locked = ProviderProfile.objects.select_for_update().get(id=profile.id)
            if locked.stripe_account_id:
                return ServiceResult.success(locked.stripe_account_id)
            locked.stripe_account_id = account_id
            locked.stripe_onboarding_status = OnboardingStatus.PENDING
            locked.save(update_fields=["stripe_account_id", "stripe_onboarding_status", "updated_at"])

            AuditService.record(
                actor=user,
                entity_type="ProviderProfile",
                entity_id=profile.id,
                action="stripe.connect.account.created",
                metadata={"stripe_account_id": account_id},
            )

        cls.get_logger().info(
            "Connected account created",
            extra={"provider_id": str(profile.id), "stripe_account_id": account_id},
        )
        return ServiceResult.success(account_id)

    @classmethod
    def create_account_link(
        cls,
        user: User,
        stripe_adapter: StripeAdapter | None = None,
    ) -> ServiceResult[AccountLinkResult]:
        """Hosted onboarding link for the provider's connected account."""
        adapter = stripe_adapter or get_stripe_adapter()
        failed = cls._preconditions(adapter)
        if failed is not None:
            return failed

        profile = ProviderProfile.objects.filter(user=user).first()
        if profile is None or not profile.stripe_account_id:
            return ServiceResult.failure(
                "Create a Stripe account first",
                error_code="MISSING_STRIPE_ACCOUNT",
            )

        try:
            link = adapter.create_account_link(
                account_id=profile.stripe_account_id,
                refresh_url=settings.STRIPE_CONNECT_REFRESH_URL,
                return_url=settings.STRIPE_CONNECT_RETURN_URL,
            )
        except BaseApplicationError as e:
            return ServiceResult.from_error(e)

        AuditService.record(
            actor=user,
            entity_type="ProviderProfile",
            entity_id=profile.id,
            action="stripe.connect.onboarding_link.created",
            metadata={"stripe_account_id": profile.stripe_account_id},
        )
        return ServiceResult.success(link)

    @classmethod
    def connect_status(cls, user: User) -> ServiceResult[dict[str, Any]]:
        profile = ProviderProfile.objects.filter(user=user).first()
        if profile is None:
            return ServiceResult.failure(
                "Provider profile not found",
                error_code="PROFILE_MISSING",
            )
        return ServiceResult.success(
            {
                "stripe_connect_enabled": settings.STRIPE_CONNECT_ENABLED,
                "stripe_account_id": profile.stripe_account_id,
                "onboarding_status": profile.stripe_onboarding_status,
                "charges_enabled": profile.stripe_charges_enabled,
                "payouts_enabled": profile.stripe_payouts_enabled,
                "details_submitted": profile.stripe_details_submitted,
                "onboarded_at": profile.stripe_onboarded_at,
            }
        )

"""
Marketplace models consumed by the payment engine.

This module defines:
- ProviderProfile: A provider (clinic, hotel, ...) and its Stripe Connect
  onboarding state
- QuotationRequest: A user's price request to a provider; deposits may be
  linked to one, which is how a payment finds the provider it pays out to

Only the fields the payment engine reads or writes live here; listing,
search and verification workflows belong to the surrounding system.

Usage:
    from marketplace.models import ProviderProfile, QuotationRequest

    provider = ProviderProfile.objects.create(
        user=clinic_user,
        display_name="Bright Smile Dental",
        country_code="TR",
    )
    quotation = QuotationRequest.objects.create(
        user=patient, provider=provider, procedure="Dental implants"
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class ProviderType(models.TextChoices):
    HOTEL = "HOTEL", "Hotel"
    CLINIC = "CLINIC", "Clinic"
    TOUR = "TOUR", "Tour"
    TRANSPORT = "TRANSPORT", "Transport"


class OnboardingStatus(models.TextChoices):
    """
    Stripe Connect onboarding states for a provider.

    State Flow:
        NOT_STARTED -> PENDING -> SUBMITTED

    PENDING: account exists but the provider has not finished the form
    SUBMITTED: Stripe reports details_submitted=True
    """

    NOT_STARTED = "NOT_STARTED", "Not Started"
    PENDING = "PENDING", "Pending"
    SUBMITTED = "SUBMITTED", "Submitted"


class QuotationStatus(models.TextChoices):
    OPEN = "OPEN", "Open"
    IN_REVIEW = "IN_REVIEW", "In Review"
    RESPONDED = "RESPONDED", "Responded"
    ACCEPTED = "ACCEPTED", "Accepted"
    DECLINED = "DECLINED", "Declined"
    EXPIRED = "EXPIRED", "Expired"
    CANCELLED = "CANCELLED", "Cancelled"


class ProviderProfile(UUIDPrimaryKeyMixin, BaseModel):
    """
    Provider profile with Stripe Connect payout destination.

    Fields:
        user: OneToOne link to the provider's User
        provider_type: Kind of provider
        display_name: Public name, also sent to Stripe as business name
        country_code: ISO country used when creating the Connect account
        stripe_account_id: Connected account (acct_xxx), null until created
        stripe_onboarding_status: See OnboardingStatus
        stripe_charges_enabled / stripe_payouts_enabled /
        stripe_details_submitted: Capability flags mirrored from
            account.updated webhooks
        stripe_onboarded_at: First time details_submitted became true

    Note:
        The user field uses PROTECT; payouts reference this profile and
        must stay resolvable.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="provider_profile",
    )
    provider_type = models.CharField(
        max_length=16,
        choices=ProviderType.choices,
        default=ProviderType.CLINIC,
    )
    display_name = models.CharField(max_length=200)
    country_code = models.CharField(max_length=2, blank=True, default="")

    stripe_account_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Stripe Connect account ID (acct_xxx)",
    )
    stripe_onboarding_status = models.CharField(
        max_length=20,
        choices=OnboardingStatus.choices,
        default=OnboardingStatus.NOT_STARTED,
        db_index=True,
    )
    stripe_charges_enabled = models.BooleanField(default=False)
    stripe_payouts_enabled = models.BooleanField(default=False)
    stripe_details_submitted = models.BooleanField(default=False)
    stripe_onboarded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Provider Profile"
        verbose_name_plural = "Provider Profiles"

    def __str__(self) -> str:
        return f"ProviderProfile({self.display_name})"

    @property
    def has_payout_destination(self) -> bool:
        """True once a Connect account exists to transfer funds into."""
        return bool(self.stripe_account_id)

    def apply_account_update(
        self,
        charges_enabled: bool,
        payouts_enabled: bool,
        details_submitted: bool,
        now,
    ) -> list[str]:
        """
        Mirror a Stripe account snapshot onto this profile.

        stripe_onboarded_at is stamped only the first time details are
        submitted and is never cleared afterwards.

        Returns:
            Names of the fields that were changed, for save(update_fields=...)
        """
        self.stripe_charges_enabled = charges_enabled
        self.stripe_payouts_enabled = payouts_enabled
        self.stripe_details_submitted = details_submitted
        self.stripe_onboarding_status = (
            OnboardingStatus.SUBMITTED if details_submitted else OnboardingStatus.PENDING
        )
        fields = [
            "stripe_charges_enabled",
            "stripe_payouts_enabled",
            "stripe_details_submitted",
            "stripe_onboarding_status",
            "updated_at",
        ]
        if details_submitted and self.stripe_onboarded_at is None:
            self.stripe_onboarded_at = now
            fields.append("stripe_onboarded_at")
        return fields


class QuotationRequest(UUIDPrimaryKeyMixin, BaseModel):
    """
    A user's request for a price quotation from a provider.

    Fields:
        user: Requesting user (the only non-admin allowed to pay against it)
        provider: Provider asked for the quote, and the payout recipient
        procedure: Free-text procedure name
        status: See QuotationStatus
        notes: Optional notes from the user
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="quotation_requests",
    )
    provider = models.ForeignKey(
        ProviderProfile,
        on_delete=models.PROTECT,
        related_name="quotation_requests",
    )
    procedure = models.CharField(max_length=200)
    status = models.CharField(
        max_length=16,
        choices=QuotationStatus.choices,
        default=QuotationStatus.OPEN,
        db_index=True,
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Quotation Request"
        verbose_name_plural = "Quotation Requests"

    def __str__(self) -> str:
        return f"QuotationRequest({self.id}, {self.status})"

    def is_owned_by(self, user) -> bool:
        return self.user_id == user.pk

"""
Factory Boy factories for marketplace models.

Usage:
    from marketplace.tests.factories import (
        ProviderProfileFactory,
        QuotationRequestFactory,
    )

    provider = ProviderProfileFactory(stripe_account_id="acct_123")
    quotation = QuotationRequestFactory(user=patient, provider=provider)
"""

import factory

from authentication.models import UserRole
from authentication.tests.factories import UserFactory
from marketplace.models import ProviderProfile, QuotationRequest


class ProviderProfileFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating ProviderProfile instances.

    Default has no Stripe Connect account. Use the ``onboarded`` trait for
    a provider that can receive transfers.
    """

    class Meta:
        model = ProviderProfile

    user = factory.SubFactory(UserFactory, role=UserRole.PROVIDER)
    display_name = factory.Sequence(lambda n: f"Clinic {n}")
    country_code = "TR"

    class Params:
        onboarded = factory.Trait(
            stripe_account_id=factory.Sequence(lambda n: f"acct_test_{n}"),
            stripe_charges_enabled=True,
            stripe_payouts_enabled=True,
            stripe_details_submitted=True,
        )


class QuotationRequestFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = QuotationRequest

    user = factory.SubFactory(UserFactory)
    provider = factory.SubFactory(ProviderProfileFactory)
    procedure = "Dental implants"

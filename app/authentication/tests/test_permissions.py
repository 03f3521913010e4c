"""
Tests for the role-based DRF permission classes.
"""

import pytest
from django.contrib.auth.models import AnonymousUser
from rest_framework.test import APIRequestFactory

from authentication.permissions import IsAdminRole, IsProviderRole
from authentication.tests.factories import UserFactory


def request_as(user):
    request = APIRequestFactory().get("/")
    request.user = user
    return request


@pytest.mark.django_db
class TestRolePermissions:
    @pytest.mark.parametrize(
        "permission_class, traits, allowed",
        [
            (IsAdminRole, {"admin": True}, True),
            (IsAdminRole, {"provider": True}, False),
            (IsAdminRole, {}, False),
            (IsProviderRole, {"provider": True}, True),
            (IsProviderRole, {"admin": True}, False),
            (IsProviderRole, {}, False),
        ],
    )
    def test_role_required(self, permission_class, traits, allowed):
        request = request_as(UserFactory(**traits))

        assert permission_class().has_permission(request, view=None) is allowed

    def test_staff_flag_alone_is_not_admin(self):
        request = request_as(UserFactory(is_staff=True))

        assert not IsAdminRole().has_permission(request, view=None)

    @pytest.mark.parametrize("permission_class", [IsAdminRole, IsProviderRole])
    def test_anonymous_denied(self, permission_class):
        assert not permission_class().has_permission(request_as(AnonymousUser()), view=None)

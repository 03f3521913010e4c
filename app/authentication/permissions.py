"""
DRF permission classes keyed on the marketplace role.

Usage:
    class ReleasePaymentView(APIView):
        permission_classes = [IsAuthenticated, IsAdminRole]
"""

from rest_framework.permissions import BasePermission

from authentication.models import UserRole


class HasRole(BasePermission):
    """Allow access only to authenticated users holding ``required_role``."""

    required_role: str = ""
    message = "You do not have the required role for this action."

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user
            and user.is_authenticated
            and getattr(user, "role", None) == self.required_role
        )


class IsAdminRole(HasRole):
    required_role = UserRole.ADMIN


class IsProviderRole(HasRole):
    required_role = UserRole.PROVIDER

"""
URL configuration for the authentication app.

Routes:
    - POST /token/ - Obtain a JWT access/refresh pair (email + password)
    - POST /token/refresh/ - Rotate the refresh token

All routes are prefixed with /api/v1/auth/ when included in the main URLconf.
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

app_name = "authentication"

urlpatterns = [
    path("token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
]

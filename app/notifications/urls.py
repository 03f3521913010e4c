"""
URL configuration for the notifications app.

All routes are prefixed with /api/v1/notifications/ when included in the
main URLconf.
"""

from rest_framework.routers import DefaultRouter

from notifications.views import NotificationViewSet

router = DefaultRouter()
router.register(r"", NotificationViewSet, basename="notification")

app_name = "notifications"
urlpatterns = router.urls

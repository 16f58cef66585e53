from django.contrib import admin
from django.urls import include, path
from drf_yasg import openapi
from drf_yasg.views import get_schema_view
from rest_framework import permissions
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from apps.payments.views import GatewayWebhookView

schema_view = get_schema_view(
    openapi.Info(title="Course Payments API", default_version="v1"),
    public=True,
    permission_classes=[permissions.AllowAny],
)

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("api/auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("api/checkout/", include("apps.enrollments.urls")),
    # Provider callbacks, authenticated by signature instead of JWT
    path("api/webhooks/<str:provider>/", GatewayWebhookView.as_view(), name="gateway-webhook"),
    path("api/payments/", include("apps.payments.urls")),
    path("api/coupons/", include("apps.coupons.urls")),
    path("api/revenue-splits/", include("apps.revenue.urls")),
    path("api/docs/", schema_view.with_ui("swagger", cache_timeout=0), name="api-docs"),
]

"""
URL configuration - Trafikskola Backend

API-Routen:
- /admin/            Django Admin (Jazzmin)
- /api/token/        SimpleJWT login / refresh
- /api/              Payments, credits and invoices (see the app urls modules)
"""

from django.contrib import admin
from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("api/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("api/", include("core.payments.urls")),
    path("api/", include("core.credits.urls")),
    path("api/", include("core.invoices.urls")),
]

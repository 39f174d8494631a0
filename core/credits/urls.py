"""
Credit URLs - Trafikskola Backend

API Endpoints:
- /api/admin/users/<id>/credits/ - Admin: list / grant / remove
- /api/credits/                  - Eigenes Guthaben
"""

from django.urls import path

from .views import AdminUserCreditsView, MyCreditsView

app_name = 'credits'

urlpatterns = [
    path('admin/users/<int:user_id>/credits/', AdminUserCreditsView.as_view(), name='admin-user-credits'),
    path('credits/', MyCreditsView.as_view(), name='my-credits'),
]

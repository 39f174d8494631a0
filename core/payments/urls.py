"""
Payment URLs - Trafikskola Backend

API Endpoints:
- /api/admin/payments/decision/                    - Admin: confirm / deny / remind
- /api/admin/payments/action-links/                - Admin: signed links for emails
- /api/admin/bookings/bulk-delete-with-credits/    - Admin: bulk cancellation
- /api/payments/email-action/                      - Public: emailed action links
"""

from django.urls import path

from .views import (
    ActionLinksView,
    BulkDeleteWithCreditsView,
    EmailActionView,
    PaymentDecisionView,
)

app_name = 'payments'

urlpatterns = [
    path('admin/payments/decision/', PaymentDecisionView.as_view(), name='payment-decision'),
    path('admin/payments/action-links/', ActionLinksView.as_view(), name='action-links'),
    path(
        'admin/bookings/bulk-delete-with-credits/',
        BulkDeleteWithCreditsView.as_view(),
        name='bulk-delete-with-credits',
    ),
    path('payments/email-action/', EmailActionView.as_view(), name='email-action'),
]

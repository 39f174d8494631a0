"""
Invoice URLs - Trafikskola Backend

API Endpoints:
- /api/admin/invoices/                  - Admin: Rechnung erstellen
- /api/invoices/<id>/pay-with-credits/  - Rechnung mit Guthaben bezahlen
"""

from django.urls import path

from .views import AdminInvoiceCreateView, PayInvoiceWithCreditsView

app_name = 'invoices'

urlpatterns = [
    path('admin/invoices/', AdminInvoiceCreateView.as_view(), name='admin-invoice-create'),
    path(
        'invoices/<int:invoice_id>/pay-with-credits/',
        PayInvoiceWithCreditsView.as_view(),
        name='pay-with-credits',
    ),
]

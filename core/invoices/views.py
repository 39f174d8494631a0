"""
Invoice Views - Trafikskola Backend

API Endpoints:
- POST /api/admin/invoices/                   - Rechnung für eine Ressource erstellen
  Body: {"id": "...", "type": "booking|handledar|order"}
  201 bei neuer Rechnung, 200 wenn sie bereits existiert
- POST /api/invoices/<id>/pay-with-credits/   - Eigene Rechnung mit Guthaben bezahlen
  Body: {"creditId": <lesson type id>}

Author: Trafikskola Development Team
Version: 1.0.0
"""

from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.invoices.serializers import (
    CreateInvoiceSerializer,
    InvoiceSerializer,
    PayWithCreditsSerializer,
)
from core.invoices.services import get_invoice_sequencer
from core.payments.exceptions import PaymentCoreException
from core.payments.mixins import PaymentErrorResponseMixin


class AdminInvoiceCreateView(PaymentErrorResponseMixin, APIView):
    permission_classes = [IsAdminUser]

    def post(self, request):
        serializer = CreateInvoiceSerializer(data=request.data)
        if not serializer.is_valid():
            return self._validation_error_response(serializer)
        data = serializer.validated_data

        try:
            invoice, created = get_invoice_sequencer().create_invoice_for_resource(
                data["type"], data["id"]
            )
        except PaymentCoreException as e:
            return self._exception_response(e)

        return Response(
            {"created": created, "invoice": InvoiceSerializer(invoice).data},
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class PayInvoiceWithCreditsView(PaymentErrorResponseMixin, APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, invoice_id):
        serializer = PayWithCreditsSerializer(data=request.data)
        if not serializer.is_valid():
            return self._validation_error_response(serializer)

        try:
            invoice = get_invoice_sequencer().pay_invoice_with_credits(
                invoice_id, request.user, serializer.validated_data["creditId"]
            )
        except PaymentCoreException as e:
            return self._exception_response(e)

        return Response(
            {
                "success": True,
                "message": "Betalning med krediter lyckades",
                "invoice": InvoiceSerializer(invoice).data,
            }
        )

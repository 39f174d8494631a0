"""
Invoice Serializers - Trafikskola Backend
"""

from rest_framework import serializers

from core.invoices.models import Invoice, InvoiceItem
from core.payments.serializers import ResourceKindField


class InvoiceItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceItem
        fields = ["id", "description", "quantity", "unit_price", "total_price"]
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    """
    Serializer für Invoice Model inkl. Rechnungspositionen
    """
    items = InvoiceItemSerializer(many=True, read_only=True)

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoice_number",
            "type",
            "user",
            "booking",
            "handledar_booking",
            "package_purchase",
            "customer_name",
            "customer_email",
            "amount",
            "currency",
            "status",
            "payment_method",
            "issued_at",
            "due_date",
            "paid_at",
            "items",
        ]
        read_only_fields = fields


class CreateInvoiceSerializer(serializers.Serializer):
    id = serializers.CharField()
    type = ResourceKindField()


class PayWithCreditsSerializer(serializers.Serializer):
    creditId = serializers.IntegerField(
        error_messages={"required": "Kredit-ID krävs", "invalid": "Kredit-ID krävs"}
    )

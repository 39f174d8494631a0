"""
Payment Serializers - Trafikskola Backend

Validierung der Request-Daten für die Zahlungs-Endpunkte.
"""

from rest_framework import serializers

from core.payments.kinds import Decision, ResourceKind


class ResourceKindField(serializers.CharField):
    """Accepts lesson/handledar/package and the aliases regular/booking/order."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        try:
            return ResourceKind.parse(value)
        except ValueError:
            raise serializers.ValidationError("Ogiltig typ") from None


class DecisionField(serializers.CharField):
    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        try:
            return Decision.parse(value)
        except ValueError:
            raise serializers.ValidationError("Ogiltigt beslut") from None


class PaymentDecisionSerializer(serializers.Serializer):
    id = serializers.CharField()
    type = ResourceKindField()
    decision = DecisionField(required=False, default=Decision.CONFIRM)
    payment_method = serializers.CharField(required=False, allow_blank=True, default="")


class ActionLinkRequestSerializer(serializers.Serializer):
    id = serializers.CharField()
    type = ResourceKindField()


class EmailActionSerializer(serializers.Serializer):
    token = serializers.CharField(error_messages={"required": "Token saknas", "blank": "Token saknas"})
    decision = DecisionField(required=False, allow_blank=True, default=None)


class BulkDeleteSerializer(serializers.Serializer):
    bookingIds = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=False,
        error_messages={"required": "Boknings-ID:n saknas", "empty": "Boknings-ID:n saknas"},
    )
    reimburseCredits = serializers.BooleanField(required=False, default=True)
    sendEmails = serializers.BooleanField(required=False, default=True)

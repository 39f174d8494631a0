"""
Credit Serializers - Trafikskola Backend

Serializers für Guthaben-Anzeige und die Admin-Gutschrift.
Feldnamen im camelCase, wie sie das Dashboard erwartet.
"""

from rest_framework import serializers

from core.credits.models import CreditRecord
from core.credits.targets import build_target


class CreditRecordSerializer(serializers.ModelSerializer):
    """
    Serializer für CreditRecord Model
    """
    creditType = serializers.CharField(source="credit_type", read_only=True)
    lessonTypeId = serializers.IntegerField(source="lesson_type_id", read_only=True)
    lessonTypeName = serializers.CharField(source="lesson_type.name", read_only=True, default=None)
    handledarSessionId = serializers.IntegerField(source="handledar_session_id", read_only=True)
    handledarSessionTitle = serializers.CharField(
        source="handledar_session.title", read_only=True, default=None
    )
    creditsRemaining = serializers.IntegerField(source="credits_remaining", read_only=True)
    creditsTotal = serializers.IntegerField(source="credits_total", read_only=True)
    packageId = serializers.IntegerField(source="package_id", read_only=True)
    packageName = serializers.CharField(source="package.name", read_only=True, default=None)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = CreditRecord
        fields = [
            "id",
            "creditType",
            "lessonTypeId",
            "lessonTypeName",
            "handledarSessionId",
            "handledarSessionTitle",
            "creditsRemaining",
            "creditsTotal",
            "packageId",
            "packageName",
            "createdAt",
            "updatedAt",
        ]


class GrantCreditsSerializer(serializers.Serializer):
    lessonTypeId = serializers.IntegerField(required=False, allow_null=True)
    handledarSessionId = serializers.IntegerField(required=False, allow_null=True)
    creditType = serializers.CharField(required=False, allow_blank=True)
    amount = serializers.IntegerField(
        min_value=1,
        error_messages={
            "required": "Ogiltig lektionstyp eller antal",
            "min_value": "Ogiltig lektionstyp eller antal",
        },
    )

    def validate(self, attrs):
        """
        Validiere dass die Felder genau ein Guthaben-Ziel beschreiben
        """
        try:
            attrs["target"] = build_target(
                attrs.get("creditType") or None,
                attrs.get("lessonTypeId"),
                attrs.get("handledarSessionId"),
            )
        except ValueError as e:
            raise serializers.ValidationError(str(e)) from e
        return attrs


class RemoveCreditsSerializer(serializers.Serializer):
    creditsId = serializers.IntegerField(error_messages={"required": "Kredit-ID krävs"})
    amount = serializers.IntegerField(min_value=1, required=False, default=1)
    all = serializers.BooleanField(required=False, default=False)

"""
Credit Views - Trafikskola Backend

API Endpoints:
- GET    /api/admin/users/<id>/credits/   - Guthaben eines Benutzers (Admin)
- POST   /api/admin/users/<id>/credits/   - Guthaben gutschreiben (Admin)
- DELETE /api/admin/users/<id>/credits/   - Guthaben abziehen oder löschen (Admin)
         ?creditsId=..&amount=..&all=true
- GET    /api/credits/                    - Eigenes Guthaben
         ?lessonTypeId=..&handledarSessionId=..&creditType=..

Author: Trafikskola Development Team
Version: 1.0.0
"""

import logging

from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.bookings.models import HandledarSession, LessonType
from core.credits.ledger import CreditLedger
from core.credits.serializers import (
    CreditRecordSerializer,
    GrantCreditsSerializer,
    RemoveCreditsSerializer,
)
from core.credits.targets import HandledarCredit, LessonCredit
from core.payments.exceptions import PaymentCoreException
from core.payments.mixins import PaymentErrorResponseMixin

logger = logging.getLogger(__name__)


class AdminUserCreditsView(PaymentErrorResponseMixin, APIView):
    """
    Admin-Verwaltung des Guthabens eines einzelnen Benutzers
    """

    permission_classes = [IsAdminUser]

    def get_user(self, user_id):
        return get_object_or_404(get_user_model(), pk=user_id)

    def get(self, request, user_id):
        user = self.get_user(user_id)
        credits = CreditLedger().list_for_user(user)
        return Response({"credits": CreditRecordSerializer(credits, many=True).data})

    def post(self, request, user_id):
        user = self.get_user(user_id)
        serializer = GrantCreditsSerializer(data=request.data)
        if not serializer.is_valid():
            return self._validation_error_response(serializer)

        target = serializer.validated_data["target"]
        if isinstance(target, LessonCredit) and not LessonType.objects.filter(
            pk=target.lesson_type_id
        ).exists():
            return self._create_error_response(
                "Lektionstypen finns inte", status.HTTP_404_NOT_FOUND, "LessonTypeNotFound"
            )
        if (
            isinstance(target, HandledarCredit)
            and not target.is_generic
            and not HandledarSession.objects.filter(pk=target.handledar_session_id).exists()
        ):
            return self._create_error_response(
                "Handledarsessionen finns inte", status.HTTP_404_NOT_FOUND, "SessionNotFound"
            )

        try:
            record = CreditLedger().grant(user, target, serializer.validated_data["amount"])
        except PaymentCoreException as e:
            return self._exception_response(e)

        logger.info(
            f"Admin {request.user.pk} granted {serializer.validated_data['amount']} "
            f"credit(s) to user {user.pk}"
        )
        return Response(
            {
                "message": "Krediter tillagda",
                "credits": CreditRecordSerializer(record).data,
            },
            status=status.HTTP_200_OK,
        )

    def delete(self, request, user_id):
        user = self.get_user(user_id)
        serializer = RemoveCreditsSerializer(data=request.query_params)
        if not serializer.is_valid():
            return self._validation_error_response(serializer)
        data = serializer.validated_data
        ledger = CreditLedger()

        if data["all"]:
            if not ledger.remove_all(data["creditsId"], user):
                return self._create_error_response(
                    "Krediter hittades inte", status.HTTP_404_NOT_FOUND, "NoSuchCredit"
                )
            return Response({"message": "Alla krediter borttagna"})

        try:
            record = ledger.deduct_from_record(data["creditsId"], user, data["amount"])
        except PaymentCoreException as e:
            return self._exception_response(e)

        return Response(
            {
                "message": "Krediter borttagna",
                "credits": CreditRecordSerializer(record).data,
            }
        )


class MyCreditsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        params = request.query_params
        credits = CreditLedger().list_for_user(request.user, params.get("creditType") or None)

        lesson_type_id = params.get("lessonTypeId")
        if lesson_type_id and lesson_type_id.isdigit():
            credits = credits.filter(lesson_type_id=lesson_type_id)
        handledar_session_id = params.get("handledarSessionId")
        if handledar_session_id and handledar_session_id.isdigit():
            credits = credits.filter(handledar_session_id=handledar_session_id)

        total = sum(c.credits_remaining for c in credits)
        return Response(
            {
                "credits": CreditRecordSerializer(credits, many=True).data,
                "totalRemaining": total,
            }
        )

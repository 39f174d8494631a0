"""
Payment Views (core.payments)
=============================

REST endpoints for payment reconciliation.

Endpoints
---------

1. PaymentDecisionView
   - URL: /api/admin/payments/decision/
   - Method: POST
   - Body: {"id": "...", "type": "booking|handledar|order", "decision": "confirm|deny|remind"}
   - Auth: Staff
   - Purpose: Admin confirms, denies or reminds a Swish payment.

2. EmailActionView
   - URL: /api/payments/email-action/
   - Methods: GET ?token=... (preview), POST {"token", "decision"?} (apply)
   - Auth: None, the signed token is the capability
   - Purpose: Backs the moderation page opened from the admin's email.

3. ActionLinksView
   - URL: /api/admin/payments/action-links/
   - Method: POST
   - Body: {"id": "...", "type": "..."}
   - Auth: Staff
   - Purpose: Signed confirm/deny links for the verification email.

4. BulkDeleteWithCreditsView
   - URL: /api/admin/bookings/bulk-delete-with-credits/
   - Method: DELETE
   - Body: {"bookingIds": [...], "reimburseCredits": true, "sendEmails": true}
   - Auth: Staff
   - Purpose: Delete lesson bookings, give credits back, notify customers.

Author: Trafikskola Development Team
Version: 1.0.0
"""

import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from core.payments.bulk_cancellation import BulkCancellationOrchestrator
from core.payments.exceptions import PaymentCoreException
from core.payments.mixins import PaymentErrorResponseMixin
from core.payments.serializers import (
    ActionLinkRequestSerializer,
    BulkDeleteSerializer,
    EmailActionSerializer,
    PaymentDecisionSerializer,
)
from core.payments.state_machine import PaymentStateMachine

logger = logging.getLogger(__name__)


class PaymentDecisionView(PaymentErrorResponseMixin, APIView):
    permission_classes = [IsAdminUser]

    def post(self, request):
        serializer = PaymentDecisionSerializer(data=request.data)
        if not serializer.is_valid():
            return self._validation_error_response(serializer)
        data = serializer.validated_data

        try:
            result = PaymentStateMachine().apply(
                data["type"],
                data["id"],
                data["decision"],
                payment_method=data["payment_method"] or None,
            )
        except PaymentCoreException as e:
            return self._exception_response(e)

        logger.info(
            f"User {request.user.pk} applied {result.decision} to "
            f"{result.resource_kind} {result.resource_id}"
        )
        return Response({"success": True, **result.to_dict()}, status=status.HTTP_200_OK)


class EmailActionView(PaymentErrorResponseMixin, APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        token = request.query_params.get("token")
        if not token:
            return self._create_error_response("Token saknas", error_code="InvalidToken")

        try:
            preview = PaymentStateMachine().describe_token(token)
        except PaymentCoreException as e:
            return self._exception_response(e)
        return Response(preview, status=status.HTTP_200_OK)

    def post(self, request):
        serializer = EmailActionSerializer(data=request.data)
        if not serializer.is_valid():
            return self._validation_error_response(serializer)
        data = serializer.validated_data

        try:
            result = PaymentStateMachine().apply_token(data["token"], data.get("decision") or None)
        except PaymentCoreException as e:
            return self._exception_response(e)
        return Response({"success": True, **result.to_dict()}, status=status.HTTP_200_OK)


class ActionLinksView(PaymentErrorResponseMixin, APIView):
    permission_classes = [IsAdminUser]

    def post(self, request):
        serializer = ActionLinkRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return self._validation_error_response(serializer)
        data = serializer.validated_data

        try:
            links = PaymentStateMachine().build_action_links(data["type"], data["id"])
        except PaymentCoreException as e:
            return self._exception_response(e)
        return Response(links, status=status.HTTP_200_OK)


class BulkDeleteWithCreditsView(PaymentErrorResponseMixin, APIView):
    permission_classes = [IsAdminUser]

    def delete(self, request):
        serializer = BulkDeleteSerializer(data=request.data)
        if not serializer.is_valid():
            return self._validation_error_response(serializer)
        data = serializer.validated_data

        try:
            result = BulkCancellationOrchestrator().cancel(
                data["bookingIds"],
                reimburse_credits=data["reimburseCredits"],
                send_notifications=data["sendEmails"],
                operator=request.user,
            )
        except PaymentCoreException as e:
            return self._exception_response(e)

        return Response(
            {
                "success": True,
                "message": f"{result.total_deleted} bokningar raderade",
                **result.to_dict(),
            },
            status=status.HTTP_200_OK,
        )

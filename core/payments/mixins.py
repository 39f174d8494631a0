"""
View mixins shared by the payment, credit and invoice endpoints.
"""

import logging
from typing import Any, Dict, Optional

from rest_framework import status
from rest_framework.response import Response

from core.payments.exceptions import PaymentCoreException

logger = logging.getLogger(__name__)


class PaymentErrorResponseMixin:
    """Uniform JSON error bodies: {"error", "error_code", "status_code", ...details}."""

    def _create_error_response(
        self,
        error_message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Response:
        body = {
            "error": error_message,
            "error_code": error_code or "BadRequest",
            "status_code": status_code,
        }
        if details:
            body.update(details)
        return Response(body, status=status_code)

    def _exception_response(self, exc: PaymentCoreException) -> Response:
        if exc.status_code >= 500:
            logger.error(f"{exc.__class__.__name__}: {exc.message}")
        return self._create_error_response(
            error_message=exc.message,
            status_code=exc.status_code,
            error_code=exc.error_code,
            details=exc.details,
        )

    def _validation_error_response(self, serializer) -> Response:
        errors = serializer.errors
        first = next(iter(errors.values()), ["Ogiltig begäran"])
        if isinstance(first, dict):
            first = next(iter(first.values()), ["Ogiltig begäran"])
        message = str(first[0]) if isinstance(first, list) and first else str(first)
        return self._create_error_response(
            error_message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="ValidationError",
            details={"fields": errors},
        )

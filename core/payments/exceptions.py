"""
Payment Core Exceptions

Exception hierarchy for the payment reconciliation and credit ledger core.
Every domain error carries an HTTP status code and a stable error code so
the REST layer can translate it without knowing the concrete class.

Hierarchy:
- PaymentCoreException
    - InvalidToken
    - ResourceNotFound
    - InvalidDecision
    - InsufficientCredits
    - NoSuchCredit
    - InvalidCreditAmount
    - InvoiceAlreadyPaid
    - DuplicateInvoice
    - NotificationFailed
    - OperationTimedOut
- SigningKeyMissing (ImproperlyConfigured, startup only)

Author: Trafikskola Development Team
Version: 1.0.0
"""

from typing import Optional, Dict, Any

from django.core.exceptions import ImproperlyConfigured


class PaymentCoreException(Exception):
    """
    Base exception class for all payment core errors.

    Attributes:
        message (str): Human-readable error message (shown to operators)
        status_code (Optional[int]): HTTP status code used by the REST layer
        error_code (Optional[str]): Stable machine-readable identifier
        details (Optional[Dict[str, Any]]): Additional error details
    """

    default_message = "Ett fel uppstod"
    default_status_code = 400
    default_error_code = "PaymentError"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.status_code = status_code or self.default_status_code
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "message": self.message,
            "status_code": self.status_code,
            "error_code": self.error_code,
            "details": self.details,
            "exception_type": self.__class__.__name__,
        }


class InvalidToken(PaymentCoreException):
    """
    Raised for every action token that cannot be used.

    Bad signatures, unparsable payloads, foreign token kinds, expired or
    already consumed tokens all end up here with the same message, so a
    caller cannot tell them apart.
    """

    default_message = "Ogiltig token"
    default_error_code = "InvalidToken"


class ResourceNotFound(PaymentCoreException):
    """
    Raised when a payable resource does not exist.

    The message depends on the resource kind: bookings (lesson and
    handledar) report "Bokning saknas", package purchases "Order saknas".
    """

    default_status_code = 404
    default_error_code = "ResourceNotFound"

    def __init__(self, kind, resource_id=None, message: Optional[str] = None) -> None:
        self.kind = kind
        self.resource_id = resource_id
        kind_value = getattr(kind, "value", kind)
        if message is None:
            message = "Order saknas" if kind_value == "package" else "Bokning saknas"
        super().__init__(message, details={"kind": kind_value})


class InvalidDecision(PaymentCoreException):
    default_message = "Ogiltigt beslut"
    default_error_code = "InvalidDecision"


class InsufficientCredits(PaymentCoreException):
    """Raised when a deduction would drive a balance below zero."""

    default_message = "Otillräckligt antal krediter"
    default_error_code = "InsufficientCredits"

    def __init__(self, available: int, requested: int, message: Optional[str] = None) -> None:
        self.available = available
        self.requested = requested
        super().__init__(
            message,
            details={"available": available, "requested": requested},
        )


class NoSuchCredit(PaymentCoreException):
    default_message = "Krediter hittades inte"
    default_status_code = 404
    default_error_code = "NoSuchCredit"


class InvalidCreditAmount(PaymentCoreException):
    default_message = "Antal krediter måste vara större än noll"
    default_error_code = "InvalidCreditAmount"


class InvoiceAlreadyPaid(PaymentCoreException):
    default_message = "Fakturan är redan betald"
    default_error_code = "InvoiceAlreadyPaid"


class DuplicateInvoice(PaymentCoreException):
    """
    Signals that an invoice already exists for a resource/user pair.

    Never reaches API callers: the invoice service answers with the
    existing invoice instead.
    """

    default_message = "Faktura finns redan"
    default_status_code = 200
    default_error_code = "DuplicateInvoice"

    def __init__(self, invoice, message: Optional[str] = None) -> None:
        self.invoice = invoice
        super().__init__(message, details={"invoice_id": getattr(invoice, "pk", None)})


class NotificationFailed(PaymentCoreException):
    """Raised inside the notifier only. Always caught and logged there."""

    default_message = "Meddelandet kunde inte levereras"
    default_status_code = 502
    default_error_code = "NotificationFailed"


class OperationTimedOut(PaymentCoreException):
    default_message = "Åtgärden tog för lång tid"
    default_status_code = 408
    default_error_code = "OperationTimedOut"


class SigningKeyMissing(ImproperlyConfigured):
    """The action token signing key is not configured."""

    def __init__(self, message: str = "PAYMENT_ACTION_SECRET is not configured") -> None:
        super().__init__(message)

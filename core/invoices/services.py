"""
Invoice Service - Trafikskola Backend

Rechnungsnummern und Rechnungserstellung.

Rechnungsnummern haben das Format YYYYMM#### (z. B. 2025030042). Der Zähler
pro Periode liegt in InvoiceSequence und wird innerhalb der Transaktion des
Aufrufers gesperrt, damit parallele Aufrufe nie dieselbe Nummer vergeben.
Nach 9999 Rechnungen im Monat wird die Nummer einfach breiter
(YYYYMM10000).

Author: Trafikskola Development Team
Version: 1.0.0
"""

import logging
from datetime import timedelta
from typing import Optional, Tuple

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from core.bookings.models import PaymentStatus
from core.credits.ledger import CreditLedger
from core.credits.targets import LessonCredit
from core.invoices.models import (
    Invoice,
    InvoiceItem,
    InvoiceSequence,
    InvoiceStatus,
    InvoiceType,
)
from core.payments.exceptions import (
    DuplicateInvoice,
    InvoiceAlreadyPaid,
    ResourceNotFound,
)
from core.payments.kinds import ResourceKind
from core.payments.resources import adapter_for, load_resource, wrap

logger = logging.getLogger(__name__)

PERIOD_FORMAT = "%Y%m"
COUNTER_DIGITS = 4
MAX_NUMBER_ATTEMPTS = 3

INVOICE_TYPES = {
    ResourceKind.LESSON: InvoiceType.BOOKING,
    ResourceKind.HANDLEDAR: InvoiceType.HANDLEDAR,
    ResourceKind.PACKAGE: InvoiceType.PACKAGE,
}


def format_invoice_number(period: str, value: int) -> str:
    return f"{period}{value:0{COUNTER_DIGITS}d}"


def parse_counter(invoice_number: str, period: str) -> Optional[int]:
    suffix = invoice_number[len(period):]
    if not invoice_number.startswith(period) or not suffix.isdigit():
        return None
    return int(suffix)


class InvoiceSequencer:
    def _highest_existing(self, period: str) -> int:
        numbers = Invoice.objects.filter(invoice_number__startswith=period).values_list(
            "invoice_number", flat=True
        )
        counters = [c for c in (parse_counter(n, period) for n in numbers) if c is not None]
        return max(counters, default=0)

    def next_invoice_number(self, now=None) -> str:
        """
        Reserve the next invoice number of the current period.

        The sequence row stays locked until the caller's transaction ends,
        so call this inside the transaction that inserts the invoice.
        """
        period = timezone.localtime(now).strftime(PERIOD_FORMAT)

        with transaction.atomic():
            sequence = InvoiceSequence.objects.select_for_update().filter(period=period).first()
            if sequence is None:
                try:
                    with transaction.atomic():
                        sequence = InvoiceSequence.objects.create(
                            period=period, last_value=self._highest_existing(period)
                        )
                except IntegrityError:
                    sequence = InvoiceSequence.objects.select_for_update().get(period=period)

            sequence.last_value += 1
            sequence.save(update_fields=["last_value", "updated_at"])

        number = format_invoice_number(period, sequence.last_value)
        logger.info(f"Reserved invoice number {number}")
        return number

    def _existing_invoice(self, resource, user) -> None:
        invoice = Invoice.objects.filter(user=user, **resource.invoice_filter()).first()
        if invoice is not None:
            raise DuplicateInvoice(invoice)

    def create_invoice_for_resource(self, kind, resource_id) -> Tuple[Invoice, bool]:
        """
        Create the invoice of a payable resource.

        Returns ``(invoice, created)``. If the resource already has an
        invoice for its owner, that invoice is returned unchanged.
        """
        kind = ResourceKind.parse(kind)
        try:
            with transaction.atomic():
                resource = load_resource(kind, resource_id, for_update=True)
                user = resource.owner
                self._existing_invoice(resource, user)

                contact = resource.owner_contact()
                issued_at = timezone.now()
                due_days = getattr(settings, "INVOICE_DUE_DAYS", 30)

                for attempt in range(MAX_NUMBER_ATTEMPTS):
                    number = self.next_invoice_number(issued_at)
                    try:
                        with transaction.atomic():
                            invoice = Invoice.objects.create(
                                invoice_number=number,
                                type=INVOICE_TYPES[kind],
                                user=user,
                                customer_name=contact.name if contact else "",
                                customer_email=contact.email if contact else "",
                                amount=resource.amount,
                                currency=getattr(settings, "INVOICE_CURRENCY", "SEK"),
                                issued_at=issued_at,
                                due_date=issued_at + timedelta(days=due_days),
                                **resource.invoice_filter(),
                            )
                        break
                    except IntegrityError:
                        self._existing_invoice(resource, user)
                        logger.warning(
                            f"Invoice number {number} already taken "
                            f"(attempt {attempt + 1}/{MAX_NUMBER_ATTEMPTS})"
                        )
                else:
                    raise IntegrityError(f"Could not allocate an invoice number for {kind.value} {resource_id}")

                InvoiceItem.objects.create(
                    invoice=invoice,
                    description=resource.display_name,
                    quantity=1,
                    unit_price=resource.amount,
                )
        except DuplicateInvoice as e:
            logger.info(
                f"Invoice {e.invoice.invoice_number} already exists for {kind.value} {resource_id}"
            )
            return e.invoice, False

        logger.info(f"Created invoice {invoice.invoice_number} for {kind.value} {resource_id}")
        return invoice, True

    def mark_paid_for_resource(self, kind, resource_id, payment_method: str = "") -> int:
        """Mark the open invoices of a resource as paid. Returns the number updated."""
        lookup = adapter_for(kind).invoice_lookup(resource_id)
        updated = (
            Invoice.objects.filter(**lookup)
            .exclude(status=InvoiceStatus.PAID)
            .update(
                status=InvoiceStatus.PAID,
                payment_method=payment_method,
                paid_at=timezone.now(),
                updated_at=timezone.now(),
            )
        )
        if updated:
            logger.info(f"Marked {updated} invoice(s) of {ResourceKind.parse(kind).value} {resource_id} as paid")
        return updated

    def pay_invoice_with_credits(self, invoice_id, user, lesson_type_id, ledger=None) -> Invoice:
        """
        Pay an invoice with one lesson credit.

        Deducts the credit, marks the invoice paid (payment method ``credit``)
        and marks the linked booking or package purchase paid, all in one
        transaction.
        """
        ledger = ledger or CreditLedger()

        with transaction.atomic():
            invoice = (
                Invoice.objects.select_for_update(of=("self",))
                .select_related("booking", "handledar_booking", "package_purchase")
                .filter(pk=invoice_id, user=user)
                .first()
            )
            if invoice is None:
                raise ResourceNotFound("invoice", invoice_id, message="Faktura hittades inte")
            if invoice.is_paid:
                raise InvoiceAlreadyPaid()

            record = ledger.deduct(user, LessonCredit(int(lesson_type_id)), 1)

            now = timezone.now()
            invoice.status = InvoiceStatus.PAID
            invoice.payment_method = "credit"
            invoice.paid_at = now
            invoice.save(update_fields=["status", "payment_method", "paid_at", "updated_at"])

            linked = invoice.booking or invoice.handledar_booking or invoice.package_purchase
            if linked is not None:
                wrap(linked).set_payment_status(PaymentStatus.PAID, payment_method="credit")

        logger.info(
            f"Invoice {invoice.invoice_number} paid with credit record {record.pk} by user {user.pk}"
        )
        return invoice


def get_invoice_sequencer() -> InvoiceSequencer:
    return InvoiceSequencer()

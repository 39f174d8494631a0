import datetime
import threading
from decimal import Decimal

from django.db import connection
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from core.bookings.models import Booking, PaymentStatus
from core.credits.ledger import CreditLedger
from core.credits.targets import LessonCredit
from core.invoices.models import Invoice, InvoiceItem, InvoiceSequence, InvoiceStatus, InvoiceType
from core.invoices.services import InvoiceSequencer, format_invoice_number, parse_counter
from core.payments.exceptions import InvoiceAlreadyPaid, NoSuchCredit, ResourceNotFound
from core.payments.kinds import ResourceKind
from core.payments.tests import helpers

MARCH = datetime.datetime(2025, 3, 15, 12, 0, tzinfo=datetime.timezone.utc)


def make_invoice(number, **extra):
    now = timezone.now()
    return Invoice.objects.create(
        invoice_number=number, issued_at=now, due_date=now + datetime.timedelta(days=30), **extra
    )


class InvoiceNumberTests(TestCase):
    def setUp(self):
        self.sequencer = InvoiceSequencer()

    def test_format_and_parse(self):
        self.assertEqual(format_invoice_number("202503", 42), "2025030042")
        self.assertEqual(format_invoice_number("202503", 12345), "20250312345")
        self.assertEqual(parse_counter("2025030042", "202503"), 42)
        self.assertIsNone(parse_counter("2025020042", "202503"))
        self.assertIsNone(parse_counter("202503ABCD", "202503"))

    def test_numbers_are_sequential_per_period(self):
        numbers = [self.sequencer.next_invoice_number(MARCH) for _ in range(3)]

        self.assertEqual(numbers, ["2025030001", "2025030002", "2025030003"])
        self.assertEqual(
            self.sequencer.next_invoice_number(MARCH + datetime.timedelta(days=31)), "2025040001"
        )

    def test_counter_continues_after_existing_invoices(self):
        make_invoice("2025030041")
        make_invoice("2025020099")

        self.assertEqual(self.sequencer.next_invoice_number(MARCH), "2025030042")

    def test_number_widens_after_9999(self):
        InvoiceSequence.objects.create(period="202503", last_value=9999)

        self.assertEqual(self.sequencer.next_invoice_number(MARCH), "20250310000")


@skipUnlessDBFeature("has_select_for_update")
class ConcurrentInvoiceNumberTests(TransactionTestCase):
    workers = 8

    def test_parallel_reservations_get_distinct_numbers(self):
        numbers, errors = [], []
        barrier = threading.Barrier(self.workers)

        def reserve():
            try:
                barrier.wait()
                numbers.append(InvoiceSequencer().next_invoice_number(MARCH))
            except Exception as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=reserve) for _ in range(self.workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(set(numbers)), self.workers)
        self.assertEqual(InvoiceSequence.objects.get(period="202503").last_value, self.workers)


class InvoiceCreationTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = helpers.make_user(first_name="Erik", last_name="Elev")
        cls.lesson_type = helpers.make_lesson_type()

    def setUp(self):
        self.sequencer = InvoiceSequencer()

    def test_create_invoice_for_booking(self):
        booking = helpers.make_booking(self.user, self.lesson_type)

        invoice, created = self.sequencer.create_invoice_for_resource("booking", booking.pk)

        self.assertTrue(created)
        self.assertRegex(invoice.invoice_number, r"^\d{6}0001$")
        self.assertEqual(invoice.type, InvoiceType.BOOKING)
        self.assertEqual(invoice.booking_id, booking.pk)
        self.assertEqual(invoice.user, self.user)
        self.assertEqual(invoice.customer_email, "elev@example.com")
        self.assertEqual(invoice.amount, Decimal("650.00"))
        self.assertEqual(invoice.status, InvoiceStatus.PENDING)
        item = invoice.items.get()
        self.assertEqual(item.total_price, Decimal("650.00"))

    def test_second_call_returns_existing_invoice(self):
        booking = helpers.make_booking(self.user, self.lesson_type)

        first, _ = self.sequencer.create_invoice_for_resource(ResourceKind.LESSON, booking.pk)
        second, created = self.sequencer.create_invoice_for_resource(ResourceKind.LESSON, booking.pk)

        self.assertFalse(created)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Invoice.objects.count(), 1)
        self.assertEqual(InvoiceSequence.objects.get().last_value, 1)

    def test_invoices_get_distinct_numbers(self):
        purchase = helpers.make_package_purchase(self.user, [])
        handledar = helpers.make_handledar_booking(student=self.user)

        a, _ = self.sequencer.create_invoice_for_resource("order", purchase.pk)
        b, _ = self.sequencer.create_invoice_for_resource("handledar", handledar.pk)

        self.assertNotEqual(a.invoice_number, b.invoice_number)
        self.assertEqual(a.type, InvoiceType.PACKAGE)
        self.assertEqual(b.type, InvoiceType.HANDLEDAR)

    def test_guest_booking_invoice_uses_guest_contact(self):
        booking = helpers.make_booking(guest_email="gast@example.com", guest_name="Gäst", is_guest_booking=True)

        invoice, created = self.sequencer.create_invoice_for_resource("booking", booking.pk)

        self.assertTrue(created)
        self.assertIsNone(invoice.user)
        self.assertEqual(invoice.customer_email, "gast@example.com")

    def test_missing_resource(self):
        with self.assertRaises(ResourceNotFound):
            self.sequencer.create_invoice_for_resource("order", "00000000-0000-0000-0000-000000000000")
        self.assertFalse(InvoiceSequence.objects.exists())

    def test_item_total_is_quantity_times_unit_price(self):
        invoice = make_invoice("2025030001")

        item = InvoiceItem.objects.create(invoice=invoice, description="Körlektion", quantity=3, unit_price=Decimal("650.00"))

        self.assertEqual(item.total_price, Decimal("1950.00"))

    def test_mark_paid_for_resource(self):
        booking = helpers.make_booking(self.user, self.lesson_type)
        invoice, _ = self.sequencer.create_invoice_for_resource("booking", booking.pk)

        self.assertEqual(self.sequencer.mark_paid_for_resource("booking", booking.pk, "swish"), 1)
        self.assertEqual(self.sequencer.mark_paid_for_resource("booking", booking.pk, "swish"), 0)

        invoice.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.PAID)
        self.assertIsNotNone(invoice.paid_at)


class PayWithCreditsTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = helpers.make_user()
        cls.other = helpers.make_user("annan", "annan@example.com")
        cls.lesson_type = helpers.make_lesson_type()

    def setUp(self):
        self.sequencer = InvoiceSequencer()
        self.ledger = CreditLedger()
        self.booking = helpers.make_booking(self.user, self.lesson_type)
        self.invoice, _ = self.sequencer.create_invoice_for_resource("booking", self.booking.pk)
        self.target = LessonCredit(self.lesson_type.pk)

    def test_pays_invoice_and_booking(self):
        self.ledger.grant(self.user, self.target, 2)

        invoice = self.sequencer.pay_invoice_with_credits(self.invoice.pk, self.user, self.lesson_type.pk)

        self.assertEqual(invoice.status, InvoiceStatus.PAID)
        self.assertEqual(invoice.payment_method, "credit")
        booking = Booking.objects.get(pk=self.booking.pk)
        self.assertEqual(booking.payment_status, PaymentStatus.PAID)
        self.assertEqual(booking.payment_method, "credit")
        self.assertEqual(self.ledger.balance(self.user, self.target), 1)

    def test_paid_invoice_cannot_be_paid_again(self):
        self.ledger.grant(self.user, self.target, 2)
        self.sequencer.pay_invoice_with_credits(self.invoice.pk, self.user, self.lesson_type.pk)

        with self.assertRaises(InvoiceAlreadyPaid):
            self.sequencer.pay_invoice_with_credits(self.invoice.pk, self.user, self.lesson_type.pk)
        self.assertEqual(self.ledger.balance(self.user, self.target), 1)

    def test_without_credits_nothing_changes(self):
        with self.assertRaises(NoSuchCredit):
            self.sequencer.pay_invoice_with_credits(self.invoice.pk, self.user, self.lesson_type.pk)

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.PENDING)

    def test_foreign_invoice_is_not_found(self):
        self.ledger.grant(self.other, self.target, 1)

        with self.assertRaises(ResourceNotFound) as ctx:
            self.sequencer.pay_invoice_with_credits(self.invoice.pk, self.other, self.lesson_type.pk)
        self.assertEqual(ctx.exception.message, "Faktura hittades inte")


class InvoiceViewTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = helpers.make_user("admin", "admin@example.com", is_staff=True)
        cls.user = helpers.make_user()
        cls.lesson_type = helpers.make_lesson_type()

    def setUp(self):
        self.client = APIClient()
        self.booking = helpers.make_booking(self.user, self.lesson_type)

    def test_admin_creates_invoice_once(self):
        self.client.force_authenticate(user=self.admin)
        url = reverse("invoices:admin-invoice-create")
        payload = {"id": str(self.booking.pk), "type": "booking"}

        first = self.client.post(url, payload, format="json")
        second = self.client.post(url, payload, format="json")

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertTrue(first.data["created"])
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(second.data["invoice"]["id"], first.data["invoice"]["id"])
        self.assertEqual(len(first.data["invoice"]["items"]), 1)

    def test_pay_with_credits_endpoint(self):
        invoice, _ = InvoiceSequencer().create_invoice_for_resource("booking", self.booking.pk)
        CreditLedger().grant(self.user, LessonCredit(self.lesson_type.pk), 1)
        self.client.force_authenticate(user=self.user)
        url = reverse("invoices:pay-with-credits", args=[invoice.pk])

        missing = self.client.post(url, {}, format="json")
        paid = self.client.post(url, {"creditId": self.lesson_type.pk}, format="json")
        again = self.client.post(url, {"creditId": self.lesson_type.pk}, format="json")

        self.assertEqual(missing.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(missing.data["error"], "Kredit-ID krävs")
        self.assertEqual(paid.status_code, status.HTTP_200_OK)
        self.assertEqual(paid.data["message"], "Betalning med krediter lyckades")
        self.assertEqual(again.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(again.data["error"], "Fakturan är redan betald")

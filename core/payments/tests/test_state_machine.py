import datetime
from unittest import mock

from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone

from core.bookings.models import (
    Booking,
    BookingStatus,
    PackageContent,
    PackagePurchase,
    PaymentStatus,
)
from core.credits.ledger import CreditLedger
from core.credits.models import CreditRecord
from core.credits.targets import HandledarCredit, LessonCredit
from core.invoices.models import InvoiceStatus
from core.invoices.services import InvoiceSequencer
from core.payments.exceptions import (
    InvalidDecision,
    InvalidToken,
    OperationTimedOut,
    ResourceNotFound,
)
from core.payments.kinds import Decision, ResourceKind
from core.payments.state_machine import PaymentStateMachine
from core.payments.tests import helpers
from core.payments.tokens import ActionTokenCodec, CacheReplayGuard

LESSON = PackageContent.ContentType.LESSON
HANDLEDAR = PackageContent.ContentType.HANDLEDAR
TEXT = PackageContent.ContentType.TEXT


class PaymentStateMachineTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = helpers.make_user(first_name="Erik", last_name="Elev")
        cls.lesson_type = helpers.make_lesson_type()

    def setUp(self):
        self.notifier = helpers.RecordingNotifier()
        self.codec = ActionTokenCodec(helpers.SECRET)
        self.machine = PaymentStateMachine(notifier=self.notifier, codec=self.codec)
        self.ledger = CreditLedger()

    def make_purchase(self):
        return helpers.make_package_purchase(
            self.user,
            [
                (LESSON, self.lesson_type, None, 5),
                (HANDLEDAR, None, None, 1),
                (TEXT, None, None, 0),
            ],
        )

    def test_package_confirmation_grants_one_record_per_line(self):
        purchase = self.make_purchase()

        result = self.machine.apply(ResourceKind.PACKAGE, purchase.pk, Decision.CONFIRM)

        purchase.refresh_from_db()
        self.assertEqual(purchase.payment_status, PaymentStatus.PAID)
        self.assertEqual(purchase.status, BookingStatus.CONFIRMED)
        self.assertIsNotNone(purchase.paid_at)
        self.assertEqual(result.credits_granted, 6)
        self.assertEqual(CreditRecord.objects.filter(user=self.user).count(), 2)
        self.assertEqual(self.ledger.balance(self.user, LessonCredit(self.lesson_type.pk)), 5)
        self.assertEqual(self.ledger.balance(self.user, HandledarCredit()), 1)
        self.assertEqual(
            CreditRecord.objects.get(user=self.user, credit_type="lesson").package_id,
            purchase.package_id,
        )

    def test_confirming_twice_grants_credits_once(self):
        purchase = self.make_purchase()

        self.machine.apply("order", purchase.pk, "confirm")
        second = self.machine.apply("order", purchase.pk, "confirm")

        self.assertTrue(second.already_applied)
        self.assertEqual(second.credits_granted, 0)
        self.assertEqual(second.previous_status, PaymentStatus.PAID)
        record = CreditRecord.objects.get(user=self.user, credit_type="lesson")
        self.assertEqual(record.credits_remaining, 5)
        self.assertEqual(record.credits_total, 5)

    def test_confirmation_notifies_owner_twice(self):
        purchase = self.make_purchase()

        result = self.machine.apply(ResourceKind.PACKAGE, purchase.pk, Decision.CONFIRM)

        self.assertEqual(self.notifier.kinds(), ["payment_confirmed", "booking_confirmed"])
        self.assertEqual(result.notifications_sent, 2)
        self.assertEqual(self.notifier.delivered[0].to, "elev@example.com")

    def test_notification_failure_does_not_undo_confirmation(self):
        notifier = helpers.RecordingNotifier(fail_for={"elev@example.com"})
        machine = PaymentStateMachine(notifier=notifier, codec=self.codec)
        booking = helpers.make_booking(self.user, self.lesson_type)

        result = machine.apply(ResourceKind.LESSON, booking.pk, Decision.CONFIRM)

        booking.refresh_from_db()
        self.assertEqual(booking.payment_status, PaymentStatus.PAID)
        self.assertEqual(result.notifications_attempted, 2)
        self.assertEqual(result.notifications_sent, 0)

    def test_raising_notifier_is_contained(self):
        notifier = mock.Mock()
        notifier.send.side_effect = RuntimeError("smtp down")
        machine = PaymentStateMachine(notifier=notifier, codec=self.codec)
        booking = helpers.make_booking(self.user, self.lesson_type)

        result = machine.apply(ResourceKind.LESSON, booking.pk, Decision.CONFIRM)

        self.assertEqual(result.payment_status, PaymentStatus.PAID)
        self.assertEqual(result.notifications_sent, 0)

    def test_deny_sets_failed_and_cancelled_for_every_kind(self):
        resources = [
            (ResourceKind.LESSON, helpers.make_booking(self.user, self.lesson_type)),
            (ResourceKind.HANDLEDAR, helpers.make_handledar_booking(student=self.user)),
            (ResourceKind.PACKAGE, self.make_purchase()),
        ]
        for kind, obj in resources:
            self.machine.apply(kind, obj.pk, Decision.DENY)
            obj.refresh_from_db()
            self.assertEqual(obj.payment_status, PaymentStatus.FAILED)
            self.assertEqual(obj.status, BookingStatus.CANCELLED)

        self.assertFalse(CreditRecord.objects.exists())
        self.assertEqual(self.notifier.delivered, [])

    def test_remind_without_contact_is_a_silent_no_op(self):
        booking = helpers.make_booking(is_guest_booking=True, guest_name="Gäst")

        result = self.machine.apply(ResourceKind.LESSON, booking.pk, Decision.REMIND)

        booking.refresh_from_db()
        self.assertEqual(result.notifications_sent, 0)
        self.assertEqual(result.notifications_attempted, 0)
        self.assertEqual(booking.payment_status, PaymentStatus.PENDING)
        self.assertEqual(booking.status, BookingStatus.PENDING)

    @override_settings(FRONTEND_URL="https://trafikskola.example")
    def test_remind_guest_uses_guest_email(self):
        booking = helpers.make_booking(guest_email="gast@example.com", guest_name="Gäst", is_guest_booking=True)

        result = self.machine.apply(ResourceKind.LESSON, booking.pk, Decision.REMIND)

        self.assertEqual(result.notifications_sent, 1)
        reminder = self.notifier.delivered[0]
        self.assertEqual(reminder.to, "gast@example.com")
        self.assertEqual(reminder.kind, "lesson_payment_reminder")
        self.assertIn(f"https://trafikskola.example/booking/payment/{booking.pk}", reminder.body)

    def test_remind_handledar_prefers_student_then_supervisor(self):
        with_student = helpers.make_handledar_booking(student=self.user)
        without_student = helpers.make_handledar_booking()

        self.machine.apply(ResourceKind.HANDLEDAR, with_student.pk, Decision.REMIND)
        self.machine.apply(ResourceKind.HANDLEDAR, without_student.pk, Decision.REMIND)

        self.assertEqual([n.to for n in self.notifier.delivered], ["elev@example.com", "anna@example.com"])

    def test_missing_resources_report_kind_specific_messages(self):
        missing = "00000000-0000-0000-0000-000000000000"
        for kind, message in (
            (ResourceKind.LESSON, "Bokning saknas"),
            (ResourceKind.HANDLEDAR, "Bokning saknas"),
            (ResourceKind.PACKAGE, "Order saknas"),
        ):
            with self.assertRaises(ResourceNotFound) as ctx:
                self.machine.apply(kind, missing, Decision.CONFIRM)
            self.assertEqual(ctx.exception.message, message)
            self.assertEqual(ctx.exception.status_code, 404)

    def test_malformed_id_is_not_found(self):
        with self.assertRaises(ResourceNotFound):
            self.machine.apply(ResourceKind.LESSON, "not-a-uuid", Decision.CONFIRM)

    def test_unknown_decision_or_kind(self):
        booking = helpers.make_booking(self.user, self.lesson_type)
        with self.assertRaises(InvalidDecision):
            self.machine.apply(ResourceKind.LESSON, booking.pk, "refund")
        with self.assertRaises(InvalidDecision):
            self.machine.apply("voucher", booking.pk, Decision.CONFIRM)

    def test_confirmation_marks_existing_invoice_paid(self):
        booking = helpers.make_booking(self.user, self.lesson_type)
        invoice, _ = InvoiceSequencer().create_invoice_for_resource(ResourceKind.LESSON, booking.pk)

        self.machine.apply(ResourceKind.LESSON, booking.pk, Decision.CONFIRM)

        invoice.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.PAID)
        self.assertEqual(invoice.payment_method, "swish")

    def test_passed_deadline_rolls_back(self):
        purchase = self.make_purchase()
        deadline = timezone.now() - datetime.timedelta(seconds=1)

        with self.assertRaises(OperationTimedOut):
            self.machine.apply(ResourceKind.PACKAGE, purchase.pk, Decision.CONFIRM, deadline=deadline)

        purchase.refresh_from_db()
        self.assertEqual(purchase.payment_status, PaymentStatus.PENDING)
        self.assertFalse(CreditRecord.objects.exists())
        self.assertEqual(self.notifier.delivered, [])

    def test_ledger_failure_rolls_back_status(self):
        purchase = self.make_purchase()
        ledger = mock.Mock(wraps=CreditLedger())
        ledger.grant.side_effect = [mock.DEFAULT, RuntimeError("db gone")]
        machine = PaymentStateMachine(ledger=ledger, notifier=self.notifier, codec=self.codec)

        with self.assertRaises(RuntimeError):
            machine.apply(ResourceKind.PACKAGE, purchase.pk, Decision.CONFIRM)

        self.assertEqual(
            PackagePurchase.objects.get(pk=purchase.pk).payment_status, PaymentStatus.PENDING
        )
        self.assertFalse(CreditRecord.objects.exists())


class ActionTokenFlowTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = helpers.make_user()
        cls.lesson_type = helpers.make_lesson_type()

    def setUp(self):
        self.notifier = helpers.RecordingNotifier()
        self.codec = ActionTokenCodec(helpers.SECRET)
        self.machine = PaymentStateMachine(notifier=self.notifier, codec=self.codec)
        self.booking = helpers.make_booking(self.user, self.lesson_type)

    def test_token_without_decision_confirms(self):
        token = self.codec.encode(ResourceKind.LESSON, self.booking.pk)

        result = self.machine.apply_token(token)

        self.assertEqual(result.decision, "confirm")
        self.assertEqual(Booking.objects.get(pk=self.booking.pk).payment_status, PaymentStatus.PAID)

    def test_suggested_decision_is_used(self):
        token = self.codec.encode(ResourceKind.LESSON, self.booking.pk, Decision.DENY)

        result = self.machine.apply_token(token)

        self.assertEqual(result.payment_status, PaymentStatus.FAILED)

    def test_explicit_decision_wins(self):
        token = self.codec.encode(ResourceKind.LESSON, self.booking.pk, Decision.DENY)

        result = self.machine.apply_token(token, "confirm")

        self.assertEqual(result.payment_status, PaymentStatus.PAID)

    def test_invalid_token_changes_nothing(self):
        token = ActionTokenCodec("other").encode(ResourceKind.LESSON, self.booking.pk)

        with self.assertRaises(InvalidToken):
            self.machine.apply_token(token)

        self.assertEqual(Booking.objects.get(pk=self.booking.pk).payment_status, PaymentStatus.PENDING)

    def test_failed_apply_keeps_single_use_token_valid(self):
        cache.clear()
        codec = ActionTokenCodec(helpers.SECRET, replay_guard=CacheReplayGuard())
        machine = PaymentStateMachine(notifier=self.notifier, codec=codec)
        purchase = helpers.make_package_purchase(self.user, [(LESSON, self.lesson_type, None, 5)])
        token = codec.encode(ResourceKind.PACKAGE, purchase.pk, Decision.CONFIRM)

        with mock.patch.object(machine.ledger, "grant", side_effect=RuntimeError("db gone")):
            with self.assertRaises(RuntimeError):
                machine.apply_token(token)

        self.assertEqual(
            PackagePurchase.objects.get(pk=purchase.pk).payment_status, PaymentStatus.PENDING
        )

        result = machine.apply_token(token)

        self.assertEqual(result.payment_status, PaymentStatus.PAID)
        self.assertEqual(machine.ledger.balance(self.user, LessonCredit(self.lesson_type.pk)), 5)
        with self.assertRaises(InvalidToken):
            machine.apply_token(token)

    def test_missing_resource_releases_single_use_token(self):
        cache.clear()
        guard = CacheReplayGuard()
        machine = PaymentStateMachine(
            notifier=self.notifier, codec=ActionTokenCodec(helpers.SECRET, replay_guard=guard)
        )
        token = machine.codec.encode(ResourceKind.PACKAGE, "00000000-0000-0000-0000-000000000000")

        for _ in range(2):
            with self.assertRaises(ResourceNotFound):
                machine.apply_token(token)

        self.assertTrue(guard.claim(token))

    def test_describe_token(self):
        token = self.codec.encode(ResourceKind.LESSON, self.booking.pk, Decision.CONFIRM)

        preview = self.machine.describe_token(token)

        self.assertEqual(preview["type"], "regular")
        self.assertEqual(preview["suggestedDecision"], "confirm")
        self.assertEqual(preview["item"]["id"], str(self.booking.pk))
        self.assertEqual(preview["item"]["customerEmail"], "elev@example.com")
        self.assertEqual(Booking.objects.get(pk=self.booking.pk).payment_status, PaymentStatus.PENDING)

    @override_settings(FRONTEND_URL="https://trafikskola.example/")
    def test_build_action_links(self):
        links = self.machine.build_action_links("booking", self.booking.pk)

        self.assertTrue(links["confirm"].startswith("https://trafikskola.example/betalning/swish/moderera?token="))
        token = links["deny"].split("token=", 1)[1]
        action = self.codec.decode(token)
        self.assertEqual(action.suggested_decision, Decision.DENY)
        self.assertEqual(action.resource_id, str(self.booking.pk))

    def test_build_action_links_for_missing_order(self):
        with self.assertRaises(ResourceNotFound) as ctx:
            self.machine.build_action_links("order", "00000000-0000-0000-0000-000000000000")
        self.assertEqual(ctx.exception.message, "Order saknas")

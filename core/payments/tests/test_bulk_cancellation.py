import datetime
import uuid
from unittest import mock

from django.test import TestCase
from django.utils import timezone

from core.bookings.models import Booking
from core.credits.ledger import CreditLedger
from core.credits.models import CreditRecord
from core.credits.targets import LessonCredit
from core.payments.bulk_cancellation import BulkCancellationOrchestrator
from core.payments.exceptions import OperationTimedOut, ResourceNotFound
from core.payments.tests import helpers


class BulkCancellationTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.alice = helpers.make_user("alice", "alice@example.com", first_name="Alice")
        cls.bob = helpers.make_user("bob", "bob@example.com", first_name="Bob")
        cls.admin = helpers.make_user("admin", "admin@example.com", is_staff=True)
        cls.lesson_type = helpers.make_lesson_type()

    def setUp(self):
        self.notifier = helpers.RecordingNotifier()
        self.ledger = CreditLedger()
        self.orchestrator = BulkCancellationOrchestrator(ledger=self.ledger, notifier=self.notifier)

    def test_single_booking_is_reimbursed_and_deleted(self):
        booking = helpers.make_booking(self.alice, self.lesson_type)

        result = self.orchestrator.cancel([booking.pk])

        self.assertFalse(Booking.objects.filter(pk=booking.pk).exists())
        record = CreditRecord.objects.get(user=self.alice, lesson_type=self.lesson_type)
        self.assertEqual(record.credits_remaining, 1)
        self.assertEqual(record.credits_total, 1)
        self.assertEqual(result.total_deleted, 1)
        self.assertEqual(result.credits_reimbursed, 1)
        self.assertEqual(result.per_user, {self.alice.pk: 1})
        self.assertEqual(self.notifier.kinds(), ["bookings_cancelled"])

    def test_reimbursement_adds_to_existing_record(self):
        self.ledger.grant(self.alice, LessonCredit(self.lesson_type.pk), 3)
        bookings = [helpers.make_booking(self.alice, self.lesson_type) for _ in range(2)]

        self.orchestrator.cancel([b.pk for b in bookings])

        record = CreditRecord.objects.get(user=self.alice, lesson_type=self.lesson_type)
        self.assertEqual(record.credits_remaining, 5)
        self.assertEqual(record.credits_total, 5)

    def test_bookings_without_lesson_type_are_not_reimbursed(self):
        booking = helpers.make_booking(self.alice)

        result = self.orchestrator.cancel([booking.pk])

        self.assertEqual(result.credits_reimbursed, 0)
        self.assertFalse(CreditRecord.objects.exists())

    def test_reimbursement_can_be_disabled(self):
        booking = helpers.make_booking(self.alice, self.lesson_type)

        result = self.orchestrator.cancel([booking.pk], reimburse_credits=False)

        self.assertEqual(result.total_deleted, 1)
        self.assertFalse(CreditRecord.objects.exists())

    def test_users_and_guests_are_grouped(self):
        ids = [
            helpers.make_booking(self.alice, self.lesson_type).pk,
            helpers.make_booking(self.bob, self.lesson_type).pk,
            helpers.make_booking(self.alice, self.lesson_type).pk,
            helpers.make_booking(is_guest_booking=True, guest_email="gast@example.com", guest_name="G").pk,
            helpers.make_booking(is_guest_booking=True, guest_email="gast@example.com", guest_name="G").pk,
            helpers.make_booking(is_guest_booking=True, guest_name="Utan mejl").pk,
        ]

        result = self.orchestrator.cancel(ids)

        self.assertEqual(result.total_deleted, 6)
        self.assertEqual(result.per_user, {self.alice.pk: 2, self.bob.pk: 1})
        self.assertEqual(result.guest_deleted, 3)
        self.assertEqual(result.credits_reimbursed, 3)
        self.assertEqual(result.guest_emails, ["gast@example.com"])
        self.assertEqual(
            sorted(n.to for n in self.notifier.delivered),
            ["alice@example.com", "bob@example.com", "gast@example.com"],
        )
        self.assertFalse(Booking.objects.exists())

    def test_failure_for_one_user_rolls_back_everything(self):
        first = helpers.make_booking(self.alice, self.lesson_type)
        second = helpers.make_booking(self.bob, self.lesson_type)
        real_reimburse = self.ledger.reimburse

        def reimburse(user, lesson_type_id):
            if user == self.bob.pk:
                raise RuntimeError("ledger unavailable")
            return real_reimburse(user, lesson_type_id)

        with mock.patch.object(self.ledger, "reimburse", side_effect=reimburse):
            with self.assertRaises(RuntimeError):
                self.orchestrator.cancel([first.pk, second.pk])

        self.assertEqual(Booking.objects.count(), 2)
        self.assertFalse(CreditRecord.objects.exists())
        self.assertEqual(self.notifier.delivered, [])

    def test_passed_deadline_rolls_back(self):
        booking = helpers.make_booking(self.alice, self.lesson_type)

        with self.assertRaises(OperationTimedOut):
            self.orchestrator.cancel(
                [booking.pk], deadline=timezone.now() - datetime.timedelta(seconds=1)
            )

        self.assertTrue(Booking.objects.filter(pk=booking.pk).exists())
        self.assertFalse(CreditRecord.objects.exists())

    def test_notification_failures_are_counted(self):
        notifier = helpers.RecordingNotifier(fail_for={"bob@example.com"})
        orchestrator = BulkCancellationOrchestrator(ledger=self.ledger, notifier=notifier)
        ids = [
            helpers.make_booking(self.alice, self.lesson_type).pk,
            helpers.make_booking(self.bob, self.lesson_type).pk,
        ]

        result = orchestrator.cancel(ids)

        self.assertEqual(result.total_deleted, 2)
        self.assertEqual(result.notifications_attempted, 2)
        self.assertEqual(result.notifications_failed, 1)
        self.assertEqual(result.to_dict()["notificationsFailed"], 1)

    def test_notifications_can_be_disabled(self):
        booking = helpers.make_booking(self.alice, self.lesson_type)

        result = self.orchestrator.cancel([booking.pk], send_notifications=False)

        self.assertEqual(result.notifications_attempted, 0)
        self.assertEqual(self.notifier.delivered, [])

    def test_operator_receives_summary(self):
        booking = helpers.make_booking(self.alice, self.lesson_type)

        self.orchestrator.cancel([booking.pk], operator=self.admin)

        summary = self.notifier.delivered[-1]
        self.assertEqual(summary.kind, "bulk_cancellation_summary")
        self.assertEqual(summary.to, "admin@example.com")
        self.assertIn("Krediter återbetalade: 1", summary.body)

    def test_unknown_ids_raise_not_found(self):
        with self.assertRaises(ResourceNotFound) as ctx:
            self.orchestrator.cancel([uuid.uuid4()])
        self.assertEqual(ctx.exception.message, "Inga bokningar hittades att radera")

    def test_unknown_ids_are_ignored_when_others_exist(self):
        booking = helpers.make_booking(self.alice, self.lesson_type)

        result = self.orchestrator.cancel([booking.pk, uuid.uuid4()])

        self.assertEqual(result.total_deleted, 1)

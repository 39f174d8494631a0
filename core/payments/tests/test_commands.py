from datetime import timedelta
from io import StringIO

from django.core import mail
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from core.bookings.models import Booking, HandledarBooking, PaymentStatus
from core.payments.tests import helpers


@override_settings(PAYMENT_ACTION_SECRET=helpers.SECRET, NOTIFICATION_RETRY_DELAY=0)
class SendPaymentRemindersCommandTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.student = helpers.make_user()
        cls.lesson_type = helpers.make_lesson_type()

    def age(self, obj, hours):
        type(obj).objects.filter(pk=obj.pk).update(created_at=timezone.now() - timedelta(hours=hours))

    def run_command(self, *args):
        out = StringIO()
        call_command("send_payment_reminders", *args, stdout=out)
        return out.getvalue()

    def test_reminds_old_pending_bookings_once(self):
        old = helpers.make_booking(self.student, self.lesson_type)
        fresh = helpers.make_booking(self.student, self.lesson_type)
        handledar = helpers.make_handledar_booking()
        self.age(old, 6)
        self.age(handledar, 6)

        output = self.run_command("--hours", "5")

        self.assertIn("Påminnelser skickade: 2", output)
        self.assertEqual(sorted(m.to[0] for m in mail.outbox), ["anna@example.com", "elev@example.com"])
        self.assertTrue(Booking.objects.get(pk=old.pk).reminder_sent)
        self.assertFalse(Booking.objects.get(pk=fresh.pk).reminder_sent)
        self.assertTrue(HandledarBooking.objects.get(pk=handledar.pk).reminder_sent)

        mail.outbox = []
        self.run_command("--hours", "5")
        self.assertEqual(mail.outbox, [])

    def test_paid_and_contactless_bookings_are_skipped(self):
        paid = helpers.make_booking(self.student, self.lesson_type, payment_status=PaymentStatus.PAID)
        guest = helpers.make_booking(is_guest_booking=True, guest_name="Gäst")
        self.age(paid, 24)
        self.age(guest, 24)

        output = self.run_command()

        self.assertIn("Påminnelser skickade: 0", output)
        self.assertEqual(mail.outbox, [])
        self.assertFalse(Booking.objects.get(pk=guest.pk).reminder_sent)

    def test_dry_run_sends_nothing(self):
        booking = helpers.make_booking(self.student, self.lesson_type)
        self.age(booking, 24)

        output = self.run_command("--dry-run")

        self.assertIn(f"[dry-run] lesson {booking.pk}", output)
        self.assertEqual(mail.outbox, [])
        self.assertFalse(Booking.objects.get(pk=booking.pk).reminder_sent)

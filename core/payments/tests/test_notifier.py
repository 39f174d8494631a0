from unittest import mock

from django.core import mail
from django.test import SimpleTestCase, override_settings

from core.payments.exceptions import NotificationFailed
from core.payments.notifier import EmailNotifier, Notification, retry_on_failure


class RetryOnFailureTests(SimpleTestCase):
    @mock.patch("core.payments.notifier.sleep")
    def test_retries_until_success(self, sleep):
        calls = []

        @retry_on_failure(max_retries=2, base_delay=0.5)
        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise NotificationFailed("temporary")
            return "ok"

        self.assertEqual(flaky(), "ok")
        self.assertEqual(len(calls), 3)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [0.5, 1.0])

    @mock.patch("core.payments.notifier.sleep")
    def test_gives_up_after_max_retries(self, sleep):
        @retry_on_failure(max_retries=1, base_delay=0)
        def broken():
            raise NotificationFailed("down")

        with self.assertRaises(NotificationFailed):
            broken()
        self.assertEqual(sleep.call_count, 1)

    def test_other_errors_are_not_retried(self):
        calls = []

        @retry_on_failure(max_retries=3, base_delay=0)
        def wrong():
            calls.append(1)
            raise KeyError("x")

        with self.assertRaises(KeyError):
            wrong()
        self.assertEqual(len(calls), 1)


@override_settings(EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend")
class EmailNotifierTests(SimpleTestCase):
    def setUp(self):
        self.notifier = EmailNotifier(max_retries=1, retry_delay=0, max_workers=3, from_email="kassa@example.com")

    def test_send_delivers_mail(self):
        sent = self.notifier.send("elev@example.com", "Hej", "Text", "payment_confirmed")

        self.assertTrue(sent)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["elev@example.com"])
        self.assertEqual(mail.outbox[0].from_email, "kassa@example.com")

    def test_send_without_recipient_returns_false(self):
        self.assertFalse(self.notifier.send("", "Hej", "Text", "payment_confirmed"))
        self.assertEqual(mail.outbox, [])

    @mock.patch("core.payments.notifier.send_mail", side_effect=OSError("connection refused"))
    def test_send_returns_false_after_retries(self, send_mail):
        sent = self.notifier.send("elev@example.com", "Hej", "Text", "payment_confirmed")

        self.assertFalse(sent)
        self.assertEqual(send_mail.call_count, 2)

    @mock.patch("core.payments.notifier.send_mail", side_effect=[OSError("timeout"), 1])
    def test_send_recovers_on_retry(self, send_mail):
        self.assertTrue(self.notifier.send("elev@example.com", "Hej", "Text", "payment_confirmed"))

    def test_send_many_keeps_input_order(self):
        notifications = [
            Notification(to=address, subject="Avbokad", body="Text", kind="bookings_cancelled")
            for address in ("a@example.com", "", "c@example.com", "d@example.com")
        ]

        results = self.notifier.send_many(notifications)

        self.assertEqual(results, [True, False, True, True])
        self.assertEqual(
            sorted(m.to[0] for m in mail.outbox), ["a@example.com", "c@example.com", "d@example.com"]
        )

    def test_send_many_with_nothing_to_send(self):
        self.assertEqual(self.notifier.send_many([]), [])

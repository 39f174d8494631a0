import threading
from unittest import mock

from django.db import IntegrityError, connection, transaction
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from core.credits.ledger import CreditLedger
from core.credits.models import CreditRecord
from core.credits.targets import (
    CreditType,
    HandledarCredit,
    LessonCredit,
    build_target,
    target_of,
)
from core.payments.exceptions import (
    InsufficientCredits,
    InvalidCreditAmount,
    NoSuchCredit,
)
from core.payments.tests import helpers

"""
    Tests für das Guthabenbuch (Credit Ledger) und die Guthaben-Endpunkte.
"""


class CreditTargetTests(TestCase):
    def test_build_target(self):
        self.assertEqual(build_target(None, 3, None), LessonCredit(3))
        self.assertEqual(build_target("lesson", "3", None), LessonCredit(3))
        self.assertEqual(build_target("handledar", None, None), HandledarCredit())
        self.assertEqual(build_target(None, None, 7), HandledarCredit(7))

    def test_build_target_rejects_ambiguous_input(self):
        for args in ((None, None, None), ("voucher", 1, None), (None, 1, 2), ("handledar", 1, None)):
            with self.assertRaises(ValueError):
                build_target(*args)


class CreditLedgerTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = helpers.make_user()
        cls.other = helpers.make_user("annan", "annan@example.com")
        cls.lesson_type = helpers.make_lesson_type()
        cls.session = helpers.make_session()

    def setUp(self):
        self.ledger = CreditLedger()
        self.lesson = LessonCredit(self.lesson_type.pk)

    def test_grant_creates_then_increments(self):
        first = self.ledger.grant(self.user, self.lesson, 2)
        second = self.ledger.grant(self.user, self.lesson, 3)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(second.credits_remaining, 5)
        self.assertEqual(second.credits_total, 5)
        self.assertEqual(target_of(second), self.lesson)

    def test_deduct_only_touches_remaining(self):
        self.ledger.grant(self.user, self.lesson, 5)

        record = self.ledger.deduct(self.user, self.lesson, 2)

        self.assertEqual(record.credits_remaining, 3)
        self.assertEqual(record.credits_total, 5)

    def test_balance_never_exceeds_total(self):
        self.ledger.grant(self.user, self.lesson, 4)
        self.ledger.deduct(self.user, self.lesson, 1)
        self.ledger.grant(self.user, self.lesson, 1)
        self.ledger.deduct(self.user, self.lesson, 4)

        record = CreditRecord.objects.get(user=self.user)
        self.assertEqual(record.credits_remaining, 1)
        self.assertEqual(record.credits_total, 5)
        self.assertLessEqual(record.credits_remaining, record.credits_total)

    def test_insufficient_credits_change_nothing(self):
        self.ledger.grant(self.user, self.lesson, 1)

        with self.assertRaises(InsufficientCredits) as ctx:
            self.ledger.deduct(self.user, self.lesson, 2)

        self.assertEqual(ctx.exception.details["available"], 1)
        self.assertEqual(self.ledger.balance(self.user, self.lesson), 1)

    def test_deduct_without_record(self):
        with self.assertRaises(NoSuchCredit):
            self.ledger.deduct(self.user, self.lesson)

    def test_amount_must_be_positive(self):
        for amount in (0, -1, True, "2"):
            with self.assertRaises(InvalidCreditAmount):
                self.ledger.grant(self.user, self.lesson, amount)
        with self.assertRaises(InvalidCreditAmount):
            self.ledger.deduct(self.user, self.lesson, 0)
        self.assertFalse(CreditRecord.objects.exists())

    def test_generic_and_session_handledar_credits_are_separate(self):
        self.ledger.grant(self.user, HandledarCredit(), 1)
        self.ledger.grant(self.user, HandledarCredit(self.session.pk), 2)

        self.assertEqual(CreditRecord.objects.filter(user=self.user).count(), 2)
        self.assertEqual(self.ledger.balance(self.user, HandledarCredit()), 1)
        self.assertEqual(self.ledger.balance(self.user, HandledarCredit(self.session.pk)), 2)

    def test_balances_are_per_user(self):
        self.ledger.grant(self.user, self.lesson, 2)

        self.assertEqual(self.ledger.balance(self.other, self.lesson), 0)
        with self.assertRaises(NoSuchCredit):
            self.ledger.deduct(self.other, self.lesson)

    def test_deduct_from_record_requires_ownership(self):
        record = self.ledger.grant(self.user, self.lesson, 2)

        with self.assertRaises(NoSuchCredit):
            self.ledger.deduct_from_record(record.pk, self.other)

        self.assertEqual(self.ledger.deduct_from_record(record.pk, self.user).credits_remaining, 1)

    def test_remove_all(self):
        record = self.ledger.grant(self.user, self.lesson, 2)

        self.assertFalse(self.ledger.remove_all(record.pk, self.other))
        self.assertTrue(self.ledger.remove_all(record.pk, self.user))
        self.assertFalse(self.ledger.remove_all(record.pk, self.user))
        self.assertFalse(CreditRecord.objects.exists())

    def test_reimburse_grants_one_lesson_credit(self):
        record = self.ledger.reimburse(self.user.pk, self.lesson_type.pk)

        self.assertEqual(record.credit_type, CreditType.LESSON)
        self.assertEqual((record.credits_remaining, record.credits_total), (1, 1))

    def test_lost_insert_race_falls_back_to_increment(self):
        self.ledger.grant(self.user, self.lesson, 2)
        real_locked = CreditLedger._locked
        calls = []

        def locked(ledger, user_id, target):
            calls.append(target)
            if len(calls) == 1:
                return None
            return real_locked(ledger, user_id, target)

        with mock.patch.object(CreditLedger, "_locked", autospec=True, side_effect=locked):
            record = self.ledger.grant(self.user, self.lesson, 3)

        self.assertEqual(len(calls), 2)
        self.assertEqual(record.credits_remaining, 5)
        self.assertEqual(CreditRecord.objects.filter(user=self.user).count(), 1)

    def test_database_rejects_duplicate_identity(self):
        self.ledger.grant(self.user, self.lesson, 1)

        with self.assertRaises(IntegrityError), transaction.atomic():
            CreditRecord.objects.create(
                user=self.user, credits_remaining=1, credits_total=1, **self.lesson.create_kwargs()
            )

    def test_database_rejects_negative_balance(self):
        record = self.ledger.grant(self.user, self.lesson, 1)

        with self.assertRaises(IntegrityError), transaction.atomic():
            CreditRecord.objects.filter(pk=record.pk).update(credits_remaining=-1)


@skipUnlessDBFeature("has_select_for_update")
class ConcurrentGrantTests(TransactionTestCase):
    workers = 8

    def setUp(self):
        self.user = helpers.make_user()
        self.lesson = LessonCredit(helpers.make_lesson_type().pk)

    def test_parallel_grants_on_one_target_all_count(self):
        amounts = list(range(1, self.workers + 1))
        errors = []
        barrier = threading.Barrier(self.workers)

        def grant(amount):
            try:
                barrier.wait()
                CreditLedger().grant(self.user.pk, self.lesson, amount)
            except Exception as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=grant, args=(amount,)) for amount in amounts]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        record = CreditRecord.objects.get(user=self.user)
        self.assertEqual(record.credits_remaining, sum(amounts))
        self.assertEqual(record.credits_total, sum(amounts))


class AdminUserCreditsViewTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = helpers.make_user("admin", "admin@example.com", is_staff=True)
        cls.user = helpers.make_user()
        cls.lesson_type = helpers.make_lesson_type()

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=self.admin)
        self.url = reverse("credits:admin-user-credits", args=[self.user.pk])

    def test_grant_and_list(self):
        response = self.client.post(self.url, {"lessonTypeId": self.lesson_type.pk, "amount": 3}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Krediter tillagda")
        self.assertEqual(response.data["credits"]["creditsRemaining"], 3)

        listing = self.client.get(self.url)
        self.assertEqual(len(listing.data["credits"]), 1)
        self.assertEqual(listing.data["credits"][0]["lessonTypeName"], "B-körkort")

    def test_grant_generic_handledar_credit(self):
        response = self.client.post(self.url, {"creditType": "handledar", "amount": 1}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["credits"]["creditType"], "handledar")
        self.assertIsNone(response.data["credits"]["handledarSessionId"])

    def test_grant_rejects_invalid_amount_and_unknown_lesson_type(self):
        invalid = self.client.post(self.url, {"lessonTypeId": self.lesson_type.pk, "amount": 0}, format="json")
        unknown = self.client.post(self.url, {"lessonTypeId": 9999, "amount": 1}, format="json")

        self.assertEqual(invalid.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(invalid.data["error"], "Ogiltig lektionstyp eller antal")
        self.assertEqual(unknown.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(CreditRecord.objects.exists())

    def test_remove_some_then_all(self):
        record = CreditLedger().grant(self.user, LessonCredit(self.lesson_type.pk), 3)

        partial = self.client.delete(f"{self.url}?creditsId={record.pk}&amount=2")
        too_many = self.client.delete(f"{self.url}?creditsId={record.pk}&amount=2")
        everything = self.client.delete(f"{self.url}?creditsId={record.pk}&all=true")
        missing = self.client.delete(f"{self.url}?creditsId={record.pk}&all=true")

        self.assertEqual(partial.status_code, status.HTTP_200_OK)
        self.assertEqual(partial.data["credits"]["creditsRemaining"], 1)
        self.assertEqual(too_many.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(too_many.data["error_code"], "InsufficientCredits")
        self.assertEqual(everything.status_code, status.HTTP_200_OK)
        self.assertEqual(missing.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(missing.data["error"], "Krediter hittades inte")

    def test_requires_staff(self):
        self.client.force_authenticate(user=self.user)

        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_403_FORBIDDEN)


class MyCreditsViewTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = helpers.make_user()
        cls.lesson_type = helpers.make_lesson_type()
        cls.other_type = helpers.make_lesson_type("Riskettan")
        ledger = CreditLedger()
        ledger.grant(cls.user, LessonCredit(cls.lesson_type.pk), 2)
        ledger.grant(cls.user, LessonCredit(cls.other_type.pk), 1)
        ledger.grant(cls.user, HandledarCredit(), 1)

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)
        self.url = reverse("credits:my-credits")

    def test_lists_own_credits(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data["credits"]), 3)
        self.assertEqual(response.data["totalRemaining"], 4)

    def test_filters(self):
        by_type = self.client.get(self.url, {"creditType": "handledar"})
        by_lesson = self.client.get(self.url, {"lessonTypeId": self.lesson_type.pk})

        self.assertEqual(by_type.data["totalRemaining"], 1)
        self.assertEqual(by_lesson.data["totalRemaining"], 2)

    def test_requires_login(self):
        self.client.force_authenticate(user=None)

        response = self.client.get(self.url)

        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

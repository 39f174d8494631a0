"""
Credit Ledger - Trafikskola Backend

Owns every mutation of CreditRecord balances. All operations run inside a
transaction and lock the affected row with SELECT ... FOR UPDATE before the
read-modify-write, so concurrent grants and deductions on the same identity
tuple are serialized.

Operations:
- grant(user, target, amount): +amount on credits_remaining and credits_total
- reimburse(user, lesson_type_id): grant of one lesson credit
- deduct(user, target, amount): -amount on credits_remaining only
- deduct_from_record(record_id, user, amount): same, addressed by row id
- remove_all(record_id, user): delete the row (ownership required)
- balance(user, target) / list_for_user(user, credit_type)

Author: Trafikskola Development Team
Version: 1.0.0
"""

import logging
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.credits.models import CreditRecord
from core.credits.targets import CreditTarget, LessonCredit
from core.payments.exceptions import (
    InsufficientCredits,
    InvalidCreditAmount,
    NoSuchCredit,
)

logger = logging.getLogger(__name__)


def _user_id(user):
    return getattr(user, "pk", user)


class CreditLedger:
    """
    Per-user prepaid credit balances.

    Calls are idempotent per call, not per logical event: granting twice
    for the same webhook doubles the balance. Deduplication is up to the
    caller (see PaymentStateMachine).
    """

    def _locked(self, user_id, target: CreditTarget) -> Optional[CreditRecord]:
        return (
            CreditRecord.objects.select_for_update()
            .filter(user_id=user_id, **target.lookup())
            .first()
        )

    @staticmethod
    def _check_amount(amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InvalidCreditAmount(details={"amount": amount})

    def grant(self, user, target: CreditTarget, amount: int, package=None) -> CreditRecord:
        """
        Add ``amount`` credits for ``target``.

        Existing rows are locked and incremented with F() expressions. If no
        row exists one is inserted; an insert that loses the race against a
        concurrent first grant falls back to the increment.
        """
        self._check_amount(amount)
        user_id = _user_id(user)

        with transaction.atomic():
            record = self._locked(user_id, target)
            if record is None:
                try:
                    with transaction.atomic():
                        record = CreditRecord.objects.create(
                            user_id=user_id,
                            credits_remaining=amount,
                            credits_total=amount,
                            package=package,
                            **target.create_kwargs(),
                        )
                    logger.info(
                        f"Created credit record {record.pk} for user {user_id}: "
                        f"{target} +{amount}"
                    )
                    return record
                except IntegrityError:
                    logger.warning(
                        f"Concurrent first grant for user {user_id} ({target}), retrying as update"
                    )
                    record = self._locked(user_id, target)
                    if record is None:
                        raise

            CreditRecord.objects.filter(pk=record.pk).update(
                credits_remaining=F("credits_remaining") + amount,
                credits_total=F("credits_total") + amount,
                updated_at=timezone.now(),
            )
            record.refresh_from_db()

        logger.info(
            f"Granted {amount} credit(s) to user {user_id} ({target}), "
            f"remaining={record.credits_remaining}"
        )
        return record

    def reimburse(self, user, lesson_type_id) -> CreditRecord:
        """Give one lesson credit back for an administratively cancelled lesson."""
        return self.grant(user, LessonCredit(lesson_type_id), 1)

    def _deduct_locked(self, record: CreditRecord, amount: int) -> CreditRecord:
        if record.credits_remaining - amount < 0:
            raise InsufficientCredits(available=record.credits_remaining, requested=amount)

        CreditRecord.objects.filter(pk=record.pk).update(
            credits_remaining=F("credits_remaining") - amount,
            updated_at=timezone.now(),
        )
        record.refresh_from_db()
        logger.info(
            f"Deducted {amount} credit(s) from record {record.pk} "
            f"(user {record.user_id}), remaining={record.credits_remaining}"
        )
        return record

    def deduct(self, user, target: CreditTarget, amount: int = 1) -> CreditRecord:
        """
        Remove ``amount`` credits for ``target``.

        Raises:
            NoSuchCredit: the user has no record for the target
            InsufficientCredits: the balance would go negative (nothing changes)
        """
        self._check_amount(amount)
        user_id = _user_id(user)

        with transaction.atomic():
            record = self._locked(user_id, target)
            if record is None:
                raise NoSuchCredit(details={"user_id": user_id})
            return self._deduct_locked(record, amount)

    def deduct_from_record(self, record_id, user, amount: int = 1) -> CreditRecord:
        self._check_amount(amount)
        user_id = _user_id(user)

        with transaction.atomic():
            record = (
                CreditRecord.objects.select_for_update()
                .filter(pk=record_id, user_id=user_id)
                .first()
            )
            if record is None:
                raise NoSuchCredit(details={"credit_id": record_id})
            return self._deduct_locked(record, amount)

    def remove_all(self, record_id, user) -> bool:
        """
        Delete a credit record outright.

        Returns False ("not found") when the record does not exist or
        belongs to another user.
        """
        user_id = _user_id(user)
        deleted, _ = CreditRecord.objects.filter(pk=record_id, user_id=user_id).delete()
        if deleted:
            logger.info(f"Removed credit record {record_id} of user {user_id}")
        else:
            logger.warning(f"Credit record {record_id} not found for user {user_id}")
        return bool(deleted)

    def balance(self, user, target: CreditTarget) -> int:
        record = CreditRecord.objects.filter(user_id=_user_id(user), **target.lookup()).first()
        return record.credits_remaining if record else 0

    def list_for_user(self, user, credit_type: Optional[str] = None):
        queryset = CreditRecord.objects.filter(user_id=_user_id(user)).select_related(
            "lesson_type", "handledar_session", "package"
        )
        if credit_type:
            queryset = queryset.filter(credit_type=credit_type)
        return queryset

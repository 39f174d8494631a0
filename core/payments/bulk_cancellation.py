"""
Bulk Cancellation

Administrative bulk deletion of lesson bookings with optional credit
reimbursement.

1. Load the bookings with owner data in one query (ResourceNotFound if none).
2. Split them into registered users (grouped by user, first-seen order)
   and guest bookings.
3. In one transaction: per user, reimburse one lesson credit per booking
   that has a lesson type, then delete that user's bookings; then delete
   all guest bookings.
4. After commit: notify every affected user and every distinct guest email
   on a bounded thread pool, then send a summary to the operator.
   Notification failures are logged and counted, never raised.

Author: Trafikskola Development Team
Version: 1.0.0
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from django.db import transaction
from django.utils import timezone

from core.bookings.models import Booking
from core.credits.ledger import CreditLedger
from core.payments.exceptions import ResourceNotFound
from core.payments.kinds import ResourceKind
from core.payments.notifier import Notification, get_notifier
from core.payments.state_machine import check_deadline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingSnapshot:
    """Booking data captured before deletion, used for notifications."""

    id: str
    user_id: Optional[int]
    lesson_type_id: Optional[int]
    scheduled_date: str
    start_time: str
    end_time: str
    status: str
    payment_status: str
    guest_name: str
    guest_email: str
    user_name: str
    user_email: str

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingSnapshot":
        user = booking.user
        return cls(
            id=str(booking.pk),
            user_id=booking.user_id,
            lesson_type_id=booking.lesson_type_id,
            scheduled_date=str(booking.scheduled_date),
            start_time=f"{booking.start_time:%H:%M}",
            end_time=f"{booking.end_time:%H:%M}",
            status=booking.status,
            payment_status=booking.payment_status,
            guest_name=booking.guest_name,
            guest_email=booking.guest_email,
            user_name=(user.get_full_name() or user.get_username()) if user else "",
            user_email=user.email if user else "",
        )

    @property
    def line(self) -> str:
        return (
            f"- {self.scheduled_date} {self.start_time}-{self.end_time} "
            f"(Status: {self.status}, Betalning: {self.payment_status})"
        )


@dataclass
class UserDeletionSummary:
    user_id: int
    bookings_deleted: int
    credits_reimbursed: int
    user_email: str
    user_name: str


@dataclass
class BulkCancellationResult:
    total_deleted: int = 0
    per_user: Dict[int, int] = field(default_factory=dict)
    guest_deleted: int = 0
    credits_reimbursed: int = 0
    notifications_attempted: int = 0
    notifications_failed: int = 0
    user_summaries: List[UserDeletionSummary] = field(default_factory=list)
    guest_emails: List[str] = field(default_factory=list)

    @property
    def users_affected(self) -> int:
        return len(self.per_user)

    def to_dict(self) -> dict:
        return {
            "totalDeleted": self.total_deleted,
            "usersAffected": self.users_affected,
            "perUser": {str(k): v for k, v in self.per_user.items()},
            "guestBookingsDeleted": self.guest_deleted,
            "creditsReimbursed": self.credits_reimbursed,
            "notificationsAttempted": self.notifications_attempted,
            "notificationsFailed": self.notifications_failed,
        }


class BulkCancellationOrchestrator:
    def __init__(self, ledger=None, notifier=None):
        self.ledger = ledger or CreditLedger()
        self.notifier = notifier or get_notifier()

    def cancel(
        self,
        booking_ids: Sequence,
        reimburse_credits: bool = True,
        send_notifications: bool = True,
        operator=None,
        deadline: Optional[datetime] = None,
    ) -> BulkCancellationResult:
        bookings = list(
            Booking.objects.select_related("user").filter(pk__in=list(booking_ids))
        )
        if not bookings:
            raise ResourceNotFound(ResourceKind.LESSON, message="Inga bokningar hittades att radera")

        snapshots = [BookingSnapshot.from_booking(b) for b in bookings]
        by_user: "OrderedDict[int, List[BookingSnapshot]]" = OrderedDict()
        guests: List[BookingSnapshot] = []
        for booking, snapshot in zip(bookings, snapshots):
            if booking.user_id and not booking.is_guest_booking:
                by_user.setdefault(booking.user_id, []).append(snapshot)
            else:
                guests.append(snapshot)

        result = BulkCancellationResult()

        with transaction.atomic():
            for user_id, user_bookings in by_user.items():
                reimbursed = 0
                if reimburse_credits:
                    for snapshot in user_bookings:
                        if snapshot.lesson_type_id:
                            self.ledger.reimburse(user_id, snapshot.lesson_type_id)
                            reimbursed += 1

                Booking.objects.filter(pk__in=[s.id for s in user_bookings]).delete()

                result.per_user[user_id] = len(user_bookings)
                result.credits_reimbursed += reimbursed
                result.user_summaries.append(
                    UserDeletionSummary(
                        user_id=user_id,
                        bookings_deleted=len(user_bookings),
                        credits_reimbursed=reimbursed,
                        user_email=user_bookings[0].user_email,
                        user_name=user_bookings[0].user_name,
                    )
                )

            if guests:
                Booking.objects.filter(pk__in=[s.id for s in guests]).delete()
                result.guest_deleted = len(guests)
                result.guest_emails = list(
                    OrderedDict.fromkeys(s.guest_email for s in guests if s.guest_email)
                )

            result.total_deleted = sum(result.per_user.values()) + result.guest_deleted
            check_deadline(deadline)

        logger.info(
            f"Bulk cancellation deleted {result.total_deleted} booking(s) "
            f"({result.users_affected} user(s), {result.guest_deleted} guest), "
            f"reimbursed {result.credits_reimbursed} credit(s)"
        )

        if send_notifications:
            self._notify_customers(result, by_user, guests)
        if operator is not None:
            self._notify_operator(result, snapshots, operator)
        return result

    def _deliver(self, notifications: List[Notification], result: BulkCancellationResult) -> None:
        if not notifications:
            return
        result.notifications_attempted += len(notifications)
        try:
            outcomes = self.notifier.send_many(notifications)
        except Exception:
            logger.exception("Notification fan-out failed")
            outcomes = [False] * len(notifications)
        failed = sum(1 for ok in outcomes if not ok)
        result.notifications_failed += failed
        if failed:
            logger.warning(f"{failed} of {len(notifications)} cancellation notification(s) failed")

    def _notify_customers(self, result, by_user, guests) -> None:
        notifications = []
        for summary in result.user_summaries:
            if not summary.user_email:
                continue
            lines = "\n".join(s.line for s in by_user[summary.user_id])
            credits = (
                f"\n{summary.credits_reimbursed} kredit(er) har återbetalats till ditt konto.\n"
                if summary.credits_reimbursed
                else ""
            )
            notifications.append(
                Notification(
                    to=summary.user_email,
                    subject="Dina bokningar har avbokats",
                    body=(
                        f"Hej {summary.user_name},\n\n"
                        f"Följande bokningar har avbokats av administratören:\n{lines}\n"
                        f"{credits}\nDu kan boka nya tider på vår hemsida.\n"
                    ),
                    kind="bookings_cancelled",
                    related_user_id=summary.user_id,
                )
            )

        for email in result.guest_emails:
            lines = "\n".join(s.line for s in guests if s.guest_email == email)
            notifications.append(
                Notification(
                    to=email,
                    subject="Din bokning har avbokats",
                    body=(
                        f"Följande bokning har avbokats av administratören:\n{lines}\n\n"
                        "Du kan boka nya tider på vår hemsida.\n"
                    ),
                    kind="guest_booking_cancelled",
                )
            )

        self._deliver(notifications, result)

    def _notify_operator(self, result, snapshots, operator) -> None:
        email = getattr(operator, "email", "")
        if not email:
            return
        lines = "\n".join(
            f"{s.line} {s.user_name if s.user_id else f'Gäst: {s.guest_name}'}"
            for s in snapshots
        )
        name = operator.get_full_name() or operator.get_username()
        self._deliver(
            [
                Notification(
                    to=email,
                    subject="Bokningar raderade av administratör",
                    body=(
                        f"Du har raderat {result.total_deleted} bokningar:\n{lines}\n\n"
                        f"Raderad av: {name}\n"
                        f"Datum: {timezone.localdate():%Y-%m-%d}\n"
                        f"Krediter återbetalade: {result.credits_reimbursed}\n"
                    ),
                    kind="bulk_cancellation_summary",
                    related_user_id=operator.pk,
                )
            ],
            result,
        )

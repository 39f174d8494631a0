import datetime
from decimal import Decimal

from django.contrib.auth.models import User

from core.bookings.models import (
    Booking,
    HandledarBooking,
    HandledarSession,
    LessonType,
    Package,
    PackageContent,
    PackagePurchase,
)
from core.payments.exceptions import NotificationFailed
from core.payments.notifier import EmailNotifier

SECRET = "test-signing-secret"


class RecordingNotifier(EmailNotifier):
    """EmailNotifier that records deliveries instead of sending mail."""

    def __init__(self, fail_for=(), **kwargs):
        kwargs.setdefault("max_retries", 0)
        kwargs.setdefault("retry_delay", 0)
        kwargs.setdefault("from_email", "test@example.com")
        super().__init__(**kwargs)
        self.fail_for = set(fail_for)
        self.delivered = []

    def deliver(self, notification):
        if notification.to in self.fail_for:
            raise NotificationFailed(f"bounce {notification.to}")
        self.delivered.append(notification)

    def kinds(self):
        return [n.kind for n in self.delivered]


def make_user(username="elev", email="elev@example.com", **extra):
    return User.objects.create_user(
        username=username, email=email, password="testPassword", **extra
    )


def make_lesson_type(name="B-körkort", price="650.00"):
    return LessonType.objects.create(name=name, price=Decimal(price))


def make_booking(user=None, lesson_type=None, **extra):
    fields = {
        "scheduled_date": datetime.date(2025, 3, 14),
        "start_time": datetime.time(10, 0),
        "end_time": datetime.time(10, 45),
        "total_price": Decimal("650.00"),
    }
    fields.update(extra)
    return Booking.objects.create(user=user, lesson_type=lesson_type, **fields)


def make_session(title="Handledarkurs", price="300.00"):
    return HandledarSession.objects.create(
        title=title,
        date=datetime.date(2025, 4, 2),
        start_time=datetime.time(18, 0),
        end_time=datetime.time(21, 0),
        price_per_participant=Decimal(price),
    )


def make_handledar_booking(session=None, student=None, **extra):
    fields = {
        "supervisor_name": "Anna Handledare",
        "supervisor_email": "anna@example.com",
        "price": Decimal("300.00"),
    }
    fields.update(extra)
    return HandledarBooking.objects.create(
        session=session or make_session(), student=student, **fields
    )


def make_package_purchase(user, lines, name="Paket 5", price="3000.00"):
    """
    lines: iterable of (content_type, lesson_type, handledar_session, credits)
    """
    package = Package.objects.create(name=name, price=Decimal(price))
    for order, (content_type, lesson_type, session, credits) in enumerate(lines):
        PackageContent.objects.create(
            package=package,
            content_type=content_type,
            lesson_type=lesson_type,
            handledar_session=session,
            credits=credits,
            sort_order=order,
        )
    return PackagePurchase.objects.create(user=user, package=package, price_paid=Decimal(price))

"""
Payable Resources

One adapter per payable resource kind (lesson booking, handledar booking,
package purchase) behind a common surface, so the payment state machine,
the invoice service and the REST layer can treat them alike:

- load(resource_id, for_update)      -> adapter (ResourceNotFound otherwise)
- payment_status / set_payment_status(...)
- owner / owner_contact()
- display_name / amount
- payment_url()                      -> public payment page
- credit_lines()                     -> [(CreditTarget, quantity), ...]
- invoice_filter()                   -> lookup of the Invoice FK
- describe()                         -> dict for preview pages

Author: Trafikskola Development Team
Version: 1.0.0
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone

from core.bookings.models import (
    Booking,
    BookingStatus,
    HandledarBooking,
    PackageContent,
    PackagePurchase,
    PaymentStatus,
)
from core.credits.targets import CreditTarget, HandledarCredit, LessonCredit
from core.payments.exceptions import ResourceNotFound
from core.payments.kinds import ResourceKind

BOOKING_STATUS_FOR_PAYMENT = {
    PaymentStatus.PAID: BookingStatus.CONFIRMED,
    PaymentStatus.FAILED: BookingStatus.CANCELLED,
}


@dataclass(frozen=True)
class Contact:
    email: str
    name: str = ""
    user_id: Optional[int] = None


def _user_name(user) -> str:
    return user.get_full_name() or user.get_username()


class PayableResource:
    kind: ResourceKind = None
    model = None
    related = ()
    price_field = ""
    invoice_field = ""
    payment_path = ""

    def __init__(self, instance):
        self.instance = instance

    @classmethod
    def load(cls, resource_id, for_update: bool = False) -> "PayableResource":
        queryset = cls.model.objects.select_related(*cls.related)
        if for_update:
            queryset = queryset.select_for_update(of=("self",))
        try:
            return cls(queryset.get(pk=resource_id))
        except (cls.model.DoesNotExist, ValidationError, ValueError):
            raise ResourceNotFound(cls.kind, resource_id) from None

    @property
    def pk(self):
        return self.instance.pk

    @property
    def payment_status(self) -> str:
        return self.instance.payment_status

    @property
    def status(self) -> str:
        return self.instance.status

    def set_payment_status(self, payment_status, payment_method: Optional[str] = None) -> None:
        """Set payment and booking status in lockstep and save."""
        instance = self.instance
        instance.payment_status = payment_status
        fields = ["payment_status", "updated_at"]

        booking_status = BOOKING_STATUS_FOR_PAYMENT.get(payment_status)
        if booking_status is not None:
            instance.status = booking_status
            fields.append("status")
        if payment_method:
            instance.payment_method = payment_method
            fields.append("payment_method")

        fields.extend(self._extra_status_fields(payment_status))
        instance.save(update_fields=fields)

    def _extra_status_fields(self, payment_status) -> List[str]:
        return []

    @property
    def owner(self):
        return None

    def owner_contact(self) -> Optional[Contact]:
        user = self.owner
        if user is not None and user.email:
            return Contact(user.email, _user_name(user), user.pk)
        return None

    @property
    def display_name(self) -> str:
        return str(self.instance)

    @property
    def amount(self) -> Decimal:
        return getattr(self.instance, self.price_field) or Decimal("0")

    def payment_url(self) -> str:
        """Public page where the customer can pay."""
        base = getattr(settings, "FRONTEND_URL", "").rstrip("/")
        return f"{base}{self.payment_path.format(id=self.pk)}"

    def credit_lines(self) -> List[Tuple[CreditTarget, int]]:
        return []

    @classmethod
    def invoice_lookup(cls, resource_id) -> dict:
        return {cls.invoice_field: resource_id}

    def invoice_filter(self) -> dict:
        return self.invoice_lookup(self.pk)

    def describe(self) -> dict:
        contact = self.owner_contact()
        return {
            "id": str(self.pk),
            "kind": self.kind.value,
            "name": self.display_name,
            "amount": str(self.amount),
            "paymentStatus": self.payment_status,
            "status": self.status,
            "customerName": contact.name if contact else "",
            "customerEmail": contact.email if contact else "",
        }


class LessonResource(PayableResource):
    kind = ResourceKind.LESSON
    model = Booking
    related = ("user", "lesson_type")
    price_field = "total_price"
    invoice_field = "booking_id"
    payment_path = "/booking/payment/{id}"

    @property
    def owner(self):
        return self.instance.user

    def owner_contact(self) -> Optional[Contact]:
        contact = super().owner_contact()
        if contact is not None:
            return contact
        booking = self.instance
        if booking.guest_email:
            return Contact(booking.guest_email, booking.guest_name)
        return None

    @property
    def display_name(self) -> str:
        booking = self.instance
        lesson = booking.lesson_type.name if booking.lesson_type_id else "Körlektion"
        return f"{lesson} {booking.scheduled_date} {booking.start_time:%H:%M}"


class HandledarResource(PayableResource):
    kind = ResourceKind.HANDLEDAR
    model = HandledarBooking
    related = ("student", "session")
    price_field = "price"
    invoice_field = "handledar_booking_id"
    payment_path = "/handledar/payment/{id}"

    @property
    def owner(self):
        return self.instance.student

    def owner_contact(self) -> Optional[Contact]:
        contact = super().owner_contact()
        if contact is not None:
            return contact
        booking = self.instance
        if booking.supervisor_email:
            return Contact(booking.supervisor_email, booking.supervisor_name)
        return None

    @property
    def display_name(self) -> str:
        session = self.instance.session
        return f"Handledarutbildning: {session.title} {session.date}"


class PackageResource(PayableResource):
    kind = ResourceKind.PACKAGE
    model = PackagePurchase
    related = ("user", "package")
    price_field = "price_paid"
    invoice_field = "package_purchase_id"
    payment_path = "/cart?type=package&id={id}"

    @property
    def owner(self):
        return self.instance.user

    def _extra_status_fields(self, payment_status) -> List[str]:
        if payment_status == PaymentStatus.PAID:
            self.instance.paid_at = timezone.now()
            return ["paid_at"]
        return []

    @property
    def display_name(self) -> str:
        return self.instance.package.name

    def credit_lines(self) -> List[Tuple[CreditTarget, int]]:
        """
        Credits granted by the package, one entry per content line.

        Lines without credits and free text lines grant nothing.
        """
        lines = []
        for content in self.instance.package.contents.all():
            if not content.credits or content.credits <= 0:
                continue
            if content.lesson_type_id:
                lines.append((LessonCredit(content.lesson_type_id), content.credits))
            elif (
                content.content_type == PackageContent.ContentType.HANDLEDAR
                or content.handledar_session_id
            ):
                lines.append((HandledarCredit(content.handledar_session_id), content.credits))
        return lines


ADAPTERS = {
    ResourceKind.LESSON: LessonResource,
    ResourceKind.HANDLEDAR: HandledarResource,
    ResourceKind.PACKAGE: PackageResource,
}


def adapter_for(kind) -> type:
    return ADAPTERS[ResourceKind.parse(kind)]


def load_resource(kind, resource_id, for_update: bool = False) -> PayableResource:
    return adapter_for(kind).load(resource_id, for_update=for_update)


def wrap(instance) -> PayableResource:
    """Wrap an already loaded model instance."""
    for adapter in ADAPTERS.values():
        if isinstance(instance, adapter.model):
            return adapter(instance)
    raise TypeError(f"{type(instance).__name__} is not a payable resource")

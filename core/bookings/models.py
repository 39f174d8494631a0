"""
Booking Models - Trafikskola Backend

Resource Store für alle bezahlbaren Ressourcen der Fahrschule:

- LessonType / Booking: Einzelne Fahrstunden (registrierte Schüler oder Gäste)
- HandledarSession / HandledarBooking: Handledarutbildning (Begleitertheorie)
- Package / PackageContent / PackagePurchase: Lektionspakete mit Guthaben

Alle bezahlbaren Ressourcen teilen dieselben Zustandsfelder:
`payment_status` (pending / paid / failed) und den davon unabhängigen
Buchungsstatus `status` (pending / confirmed / cancelled).

Author: Trafikskola Development Team
Version: 1.0.0
"""

import uuid

from django.conf import settings
from django.db import models


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Väntar"
    PAID = "paid", "Betald"
    FAILED = "failed", "Misslyckad"


class BookingStatus(models.TextChoices):
    PENDING = "pending", "Väntar"
    CONFIRMED = "confirmed", "Bekräftad"
    CANCELLED = "cancelled", "Avbokad"


class LessonType(models.Model):
    """Fahrstundentyp (z. B. B-körkort, Riskettan, Taxi)."""

    name = models.CharField(max_length=100, verbose_name="Namn")
    description = models.TextField(blank=True, default="", verbose_name="Beskrivning")
    price = models.DecimalField(
        max_digits=10, decimal_places=2, default=0, verbose_name="Pris"
    )
    duration_minutes = models.PositiveIntegerField(default=45)
    is_active = models.BooleanField(default=True, verbose_name="Aktiv")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Lektionstyp"
        verbose_name_plural = "Lektionstyper"
        ordering = ["name"]

    def __str__(self):
        return self.name


class Booking(models.Model):
    """
    Einzelne Fahrstunde.

    Gastbuchungen haben keinen `user`, tragen aber Kontaktfelder
    (`guest_name`, `guest_email`, `guest_phone`).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="lesson_bookings",
    )
    lesson_type = models.ForeignKey(
        LessonType,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="bookings",
    )
    scheduled_date = models.DateField(verbose_name="Datum")
    start_time = models.TimeField(verbose_name="Starttid")
    end_time = models.TimeField(verbose_name="Sluttid")
    total_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    status = models.CharField(
        max_length=20, choices=BookingStatus.choices, default=BookingStatus.PENDING
    )
    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING
    )
    payment_method = models.CharField(max_length=50, blank=True, default="")
    swish_uuid = models.CharField(max_length=255, blank=True, default="")
    is_guest_booking = models.BooleanField(default=False)
    guest_name = models.CharField(max_length=255, blank=True, default="")
    guest_email = models.EmailField(blank=True, default="")
    guest_phone = models.CharField(max_length=50, blank=True, default="")
    reminder_sent = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Bokning"
        verbose_name_plural = "Bokningar"
        ordering = ["-scheduled_date", "-start_time"]
        indexes = [
            models.Index(fields=["user", "scheduled_date"], name="bookings_bo_user_id_5b1f0e_idx"),
            models.Index(fields=["payment_status", "created_at"], name="bookings_bo_payment_8c2d4a_idx"),
        ]

    def __str__(self):
        who = self.user.get_full_name() if self.user_id else f"Gäst: {self.guest_name}"
        return f"{self.scheduled_date} {self.start_time:%H:%M} – {who}"

    @property
    def is_guest(self):
        return self.user_id is None or self.is_guest_booking


class HandledarSession(models.Model):
    """Handledarutbildning - Gruppensitzung für Begleitpersonen."""

    title = models.CharField(max_length=255, verbose_name="Titel")
    date = models.DateField(verbose_name="Datum")
    start_time = models.TimeField()
    end_time = models.TimeField()
    price_per_participant = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    max_participants = models.PositiveIntegerField(default=20)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Handledarsession"
        verbose_name_plural = "Handledarsessioner"
        ordering = ["date", "start_time"]

    def __str__(self):
        return f"{self.title} ({self.date})"


class HandledarBooking(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    session = models.ForeignKey(
        HandledarSession, on_delete=models.CASCADE, related_name="bookings"
    )
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="handledar_bookings",
    )
    supervisor_name = models.CharField(max_length=255)
    supervisor_email = models.EmailField(blank=True, default="")
    supervisor_phone = models.CharField(max_length=50, blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    status = models.CharField(
        max_length=20, choices=BookingStatus.choices, default=BookingStatus.PENDING
    )
    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING
    )
    payment_method = models.CharField(max_length=50, blank=True, default="")
    swish_uuid = models.CharField(max_length=255, blank=True, default="")
    reminder_sent = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Handledarbokning"
        verbose_name_plural = "Handledarbokningar"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.supervisor_name} – {self.session}"


class Package(models.Model):
    name = models.CharField(max_length=255, verbose_name="Namn")
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Paket"
        verbose_name_plural = "Paket"
        ordering = ["name"]

    def __str__(self):
        return self.name


class PackageContent(models.Model):
    """
    Inhaltszeile eines Pakets.

    Jede Zeile gewährt beim Kauf `credits` Guthaben für eine Lektionstyp
    (content_type=lesson) oder eine Handledarsession (content_type=handledar,
    ohne Session = allgemeines Handledar-Guthaben). Textzeilen gewähren nichts.
    """

    class ContentType(models.TextChoices):
        LESSON = "lesson", "Lektion"
        HANDLEDAR = "handledar", "Handledar"
        TEXT = "text", "Fritext"

    package = models.ForeignKey(Package, on_delete=models.CASCADE, related_name="contents")
    content_type = models.CharField(
        max_length=20, choices=ContentType.choices, default=ContentType.LESSON
    )
    lesson_type = models.ForeignKey(
        LessonType, null=True, blank=True, on_delete=models.CASCADE
    )
    handledar_session = models.ForeignKey(
        HandledarSession, null=True, blank=True, on_delete=models.CASCADE
    )
    credits = models.PositiveIntegerField(default=0)
    free_text = models.TextField(blank=True, default="")
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Paketinnehåll"
        verbose_name_plural = "Paketinnehåll"
        ordering = ["sort_order", "id"]

    def __str__(self):
        target = self.lesson_type or self.handledar_session or self.free_text
        return f"{self.package.name}: {self.credits} × {target}"


class PackagePurchase(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="package_purchases"
    )
    package = models.ForeignKey(Package, on_delete=models.PROTECT, related_name="purchases")
    price_paid = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    status = models.CharField(
        max_length=20, choices=BookingStatus.choices, default=BookingStatus.PENDING
    )
    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING
    )
    payment_method = models.CharField(max_length=50, blank=True, default="")
    payment_reference = models.CharField(max_length=255, blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)
    purchase_date = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Paketköp"
        verbose_name_plural = "Paketköp"
        ordering = ["-purchase_date"]

    def __str__(self):
        return f"{self.package.name} – {self.user}"

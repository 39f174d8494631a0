"""
Invoice Models - Trafikskola Backend

- Invoice: Rechnung mit eindeutiger Rechnungsnummer (YYYYMM####)
- InvoiceItem: Rechnungsposition, Zeilensumme wird beim Speichern berechnet
- InvoiceSequence: Zählerstand pro Periode (YYYYMM), wird beim Nummerieren
  mit SELECT ... FOR UPDATE gesperrt

Pro Ressource und Benutzer existiert höchstens eine Rechnung.

Author: Trafikskola Development Team
Version: 1.0.0
"""

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.bookings.models import Booking, HandledarBooking, PackagePurchase


class InvoiceStatus(models.TextChoices):
    PENDING = "pending", "Obetald"
    PAID = "paid", "Betald"
    OVERDUE = "overdue", "Förfallen"
    CANCELLED = "cancelled", "Makulerad"
    ERROR = "error", "Fel"


class InvoiceType(models.TextChoices):
    BOOKING = "booking", "Körlektion"
    HANDLEDAR = "handledar", "Handledarutbildning"
    PACKAGE = "package", "Paket"
    CUSTOM = "custom", "Övrigt"


class InvoiceSequence(models.Model):
    period = models.CharField(max_length=6, unique=True, verbose_name="Period (YYYYMM)")
    last_value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Fakturaserie"
        verbose_name_plural = "Fakturaserier"
        ordering = ["-period"]

    def __str__(self):
        return f"{self.period}: {self.last_value}"


class Invoice(models.Model):
    invoice_number = models.CharField(max_length=20, unique=True, verbose_name="Fakturanummer")
    type = models.CharField(max_length=20, choices=InvoiceType.choices, default=InvoiceType.BOOKING)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="invoices",
    )
    booking = models.ForeignKey(
        Booking, null=True, blank=True, on_delete=models.SET_NULL, related_name="invoices"
    )
    handledar_booking = models.ForeignKey(
        HandledarBooking, null=True, blank=True, on_delete=models.SET_NULL, related_name="invoices"
    )
    package_purchase = models.ForeignKey(
        PackagePurchase, null=True, blank=True, on_delete=models.SET_NULL, related_name="invoices"
    )
    customer_name = models.CharField(max_length=255, blank=True, default="")
    customer_email = models.EmailField(blank=True, default="")
    amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    currency = models.CharField(max_length=3, default="SEK")
    status = models.CharField(
        max_length=20, choices=InvoiceStatus.choices, default=InvoiceStatus.PENDING
    )
    payment_method = models.CharField(max_length=50, blank=True, default="")
    issued_at = models.DateTimeField()
    due_date = models.DateTimeField()
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Faktura"
        verbose_name_plural = "Fakturor"
        ordering = ["-issued_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["booking", "user"],
                condition=Q(booking__isnull=False),
                name="unique_invoice_per_booking_user",
            ),
            models.UniqueConstraint(
                fields=["handledar_booking", "user"],
                condition=Q(handledar_booking__isnull=False),
                name="unique_invoice_per_handledar_booking_user",
            ),
            models.UniqueConstraint(
                fields=["package_purchase", "user"],
                condition=Q(package_purchase__isnull=False),
                name="unique_invoice_per_package_purchase_user",
            ),
        ]

    def __str__(self):
        return f"Faktura {self.invoice_number}"

    @property
    def is_paid(self):
        return self.status == InvoiceStatus.PAID


class InvoiceItem(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="items")
    description = models.CharField(max_length=500)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    sort_order = models.IntegerField(default=0)

    class Meta:
        verbose_name = "Fakturarad"
        verbose_name_plural = "Fakturarader"
        ordering = ["sort_order", "id"]

    def __str__(self):
        return f"{self.description} ({self.quantity} × {self.unit_price})"

    def save(self, *args, **kwargs):
        self.total_price = self.quantity * self.unit_price
        super().save(*args, **kwargs)

"""
Bookings Admin - Trafikskola Backend

Django Admin-Konfiguration für den Resource Store. Zahlungen werden über
die Admin-Aktionen "Betalning bekräftad" / "Ingen betalning mottagen"
bestätigt oder abgelehnt; beide laufen durch den PaymentStateMachine, damit
Krediten und Rechnungen genauso behandelt werden wie über die API.

Author: Trafikskola Development Team
Version: 1.0.0
"""

from django.contrib import admin, messages

from core.payments.exceptions import PaymentCoreException
from core.payments.kinds import Decision, ResourceKind
from core.payments.state_machine import PaymentStateMachine

from .models import (
    Booking,
    HandledarBooking,
    HandledarSession,
    LessonType,
    Package,
    PackageContent,
    PackagePurchase,
)


def _apply_to_queryset(modeladmin, request, queryset, kind, decision):
    machine = PaymentStateMachine()
    applied = 0
    for obj in queryset:
        try:
            machine.apply(kind, obj.pk, decision)
            applied += 1
        except PaymentCoreException as e:
            modeladmin.message_user(request, f"{obj}: {e.message}", level=messages.ERROR)
    if applied:
        modeladmin.message_user(request, f"{applied} objekt uppdaterade ({decision.value}).")


class PaymentActionsMixin:
    resource_kind = None
    actions = ["confirm_payment", "deny_payment"]

    @admin.action(description="Betalning bekräftad")
    def confirm_payment(self, request, queryset):
        _apply_to_queryset(self, request, queryset, self.resource_kind, Decision.CONFIRM)

    @admin.action(description="Ingen betalning mottagen")
    def deny_payment(self, request, queryset):
        _apply_to_queryset(self, request, queryset, self.resource_kind, Decision.DENY)


@admin.register(LessonType)
class LessonTypeAdmin(admin.ModelAdmin):
    list_display = ["name", "price", "duration_minutes", "is_active"]
    list_filter = ["is_active"]
    search_fields = ["name", "description"]
    readonly_fields = ["created_at", "updated_at"]


@admin.register(Booking)
class BookingAdmin(PaymentActionsMixin, admin.ModelAdmin):
    resource_kind = ResourceKind.LESSON
    list_display = [
        "scheduled_date",
        "start_time",
        "user",
        "guest_name",
        "lesson_type",
        "status",
        "payment_status",
    ]
    list_filter = ["status", "payment_status", "is_guest_booking", "lesson_type"]
    search_fields = ["user__email", "user__first_name", "user__last_name", "guest_name", "guest_email"]
    readonly_fields = ["id", "created_at", "updated_at"]
    date_hierarchy = "scheduled_date"

    fieldsets = (
        ("Bokning", {"fields": ("id", "user", "lesson_type", "scheduled_date", "start_time", "end_time")}),
        ("Betalning", {"fields": ("total_price", "status", "payment_status", "payment_method", "swish_uuid")}),
        (
            "Gäst",
            {
                "fields": ("is_guest_booking", "guest_name", "guest_email", "guest_phone"),
                "classes": ("collapse",),
            },
        ),
        (
            "Zeitstempel",
            {
                "fields": ("reminder_sent", "created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )


@admin.register(HandledarSession)
class HandledarSessionAdmin(admin.ModelAdmin):
    list_display = ["title", "date", "start_time", "price_per_participant", "max_participants", "is_active"]
    list_filter = ["is_active", "date"]
    search_fields = ["title"]


@admin.register(HandledarBooking)
class HandledarBookingAdmin(PaymentActionsMixin, admin.ModelAdmin):
    resource_kind = ResourceKind.HANDLEDAR
    list_display = ["supervisor_name", "session", "student", "status", "payment_status"]
    list_filter = ["status", "payment_status"]
    search_fields = ["supervisor_name", "supervisor_email", "student__email"]
    readonly_fields = ["id", "created_at", "updated_at"]


class PackageContentInline(admin.TabularInline):
    model = PackageContent
    extra = 0
    fields = ["content_type", "lesson_type", "handledar_session", "credits", "free_text", "sort_order"]


@admin.register(Package)
class PackageAdmin(admin.ModelAdmin):
    list_display = ["name", "price", "is_active"]
    list_filter = ["is_active"]
    search_fields = ["name"]
    inlines = [PackageContentInline]


@admin.register(PackagePurchase)
class PackagePurchaseAdmin(PaymentActionsMixin, admin.ModelAdmin):
    resource_kind = ResourceKind.PACKAGE
    list_display = ["package", "user", "price_paid", "payment_status", "paid_at", "purchase_date"]
    list_filter = ["payment_status", "package"]
    search_fields = ["user__email", "package__name", "payment_reference"]
    readonly_fields = ["id", "paid_at", "purchase_date", "updated_at"]

"""
Invoices Admin - Trafikskola Backend

Rechnungen werden nie gelöscht; Nummer und Beträge sind schreibgeschützt.
"""

from django.contrib import admin

from .models import Invoice, InvoiceItem, InvoiceSequence


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    readonly_fields = ["total_price"]


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ["invoice_number", "type", "user", "amount", "status", "issued_at", "due_date"]
    list_filter = ["status", "type", "issued_at"]
    search_fields = ["invoice_number", "customer_name", "customer_email", "user__email"]
    readonly_fields = ["invoice_number", "amount", "issued_at", "created_at", "updated_at"]
    inlines = [InvoiceItemInline]

    fieldsets = (
        ("Faktura", {"fields": ("invoice_number", "type", "user", "customer_name", "customer_email")}),
        ("Underlag", {"fields": ("booking", "handledar_booking", "package_purchase")}),
        ("Betalning", {"fields": ("amount", "currency", "status", "payment_method", "paid_at")}),
        (
            "Zeitstempel",
            {
                "fields": ("issued_at", "due_date", "created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(InvoiceSequence)
class InvoiceSequenceAdmin(admin.ModelAdmin):
    list_display = ["period", "last_value", "updated_at"]
    readonly_fields = ["period", "last_value", "updated_at"]

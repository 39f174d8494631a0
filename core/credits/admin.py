from django.contrib import admin

from .models import CreditRecord


@admin.register(CreditRecord)
class CreditRecordAdmin(admin.ModelAdmin):
    list_display = [
        "user",
        "credit_type",
        "lesson_type",
        "handledar_session",
        "credits_remaining",
        "credits_total",
        "updated_at",
    ]
    list_filter = ["credit_type", "lesson_type"]
    search_fields = ["user__email", "user__first_name", "user__last_name"]
    # Saldo nur über den CreditLedger ändern
    readonly_fields = ["credits_remaining", "credits_total", "created_at", "updated_at"]

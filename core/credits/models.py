"""
Credit Models - Trafikskola Backend

CreditRecord speichert das Guthaben eines Benutzers für genau ein Ziel:

- credit_type=lesson, lesson_type gesetzt: Lektionskrediten
- credit_type=handledar, handledar_session gesetzt: Krediten für eine Session
- credit_type=handledar, ohne Session: allgemeine Handledar-Krediten

Die Identität (user, credit_type, Ziel) ist durch partielle Unique-Constraints
abgesichert, `credits_remaining` darf nie negativ werden.

Author: Trafikskola Development Team
Version: 1.0.0
"""

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.bookings.models import HandledarSession, LessonType, Package
from core.credits.targets import CreditType, target_of


class CreditRecord(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="credit_records"
    )
    credit_type = models.CharField(
        max_length=20, choices=CreditType.choices, default=CreditType.LESSON,
        verbose_name="Kredittyp",
    )
    lesson_type = models.ForeignKey(
        LessonType, null=True, blank=True, on_delete=models.CASCADE, related_name="credit_records"
    )
    handledar_session = models.ForeignKey(
        HandledarSession,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="credit_records",
    )
    credits_remaining = models.IntegerField(default=0, verbose_name="Kvar")
    credits_total = models.IntegerField(default=0, verbose_name="Totalt")
    package = models.ForeignKey(
        Package, null=True, blank=True, on_delete=models.SET_NULL, related_name="credit_records"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "user_credits"
        verbose_name = "Kredit"
        verbose_name_plural = "Krediter"
        ordering = ["user", "credit_type", "-updated_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "lesson_type"],
                condition=Q(credit_type="lesson"),
                name="unique_lesson_credit_per_user",
            ),
            models.UniqueConstraint(
                fields=["user", "handledar_session"],
                condition=Q(credit_type="handledar", handledar_session__isnull=False),
                name="unique_session_credit_per_user",
            ),
            models.UniqueConstraint(
                fields=["user"],
                condition=Q(credit_type="handledar", handledar_session__isnull=True),
                name="unique_generic_handledar_credit_per_user",
            ),
            models.CheckConstraint(
                condition=Q(credits_remaining__gte=0),
                name="credits_remaining_non_negative",
            ),
            models.CheckConstraint(
                condition=(
                    Q(credit_type="lesson", lesson_type__isnull=False, handledar_session__isnull=True)
                    | Q(credit_type="handledar", lesson_type__isnull=True)
                ),
                name="credit_target_matches_type",
            ),
        ]

    def __str__(self):
        target = self.lesson_type or self.handledar_session or "Handledar (allmän)"
        return f"{self.user} – {target}: {self.credits_remaining}/{self.credits_total}"

    @property
    def target(self):
        return target_of(self)

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CreditRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "credit_type",
                    models.CharField(
                        choices=[("lesson", "Lektion"), ("handledar", "Handledar")],
                        default="lesson",
                        max_length=20,
                        verbose_name="Kredittyp",
                    ),
                ),
                ("credits_remaining", models.IntegerField(default=0, verbose_name="Kvar")),
                ("credits_total", models.IntegerField(default=0, verbose_name="Totalt")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "handledar_session",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="credit_records",
                        to="bookings.handledarsession",
                    ),
                ),
                (
                    "lesson_type",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="credit_records",
                        to="bookings.lessontype",
                    ),
                ),
                (
                    "package",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="credit_records",
                        to="bookings.package",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="credit_records",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Kredit",
                "verbose_name_plural": "Krediter",
                "db_table": "user_credits",
                "ordering": ["user", "credit_type", "-updated_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("credit_type", "lesson")),
                        fields=("user", "lesson_type"),
                        name="unique_lesson_credit_per_user",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("credit_type", "handledar"), ("handledar_session__isnull", False)),
                        fields=("user", "handledar_session"),
                        name="unique_session_credit_per_user",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("credit_type", "handledar"), ("handledar_session__isnull", True)),
                        fields=("user",),
                        name="unique_generic_handledar_credit_per_user",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("credits_remaining__gte", 0)),
                        name="credits_remaining_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(
                                ("credit_type", "lesson"),
                                ("handledar_session__isnull", True),
                                ("lesson_type__isnull", False),
                            ),
                            models.Q(("credit_type", "handledar"), ("lesson_type__isnull", True)),
                            _connector="OR",
                        ),
                        name="credit_target_matches_type",
                    ),
                ],
            },
        ),
    ]

import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


PAYMENT_STATUS_CHOICES = [("pending", "Väntar"), ("paid", "Betald"), ("failed", "Misslyckad")]
BOOKING_STATUS_CHOICES = [
    ("pending", "Väntar"),
    ("confirmed", "Bekräftad"),
    ("cancelled", "Avbokad"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="LessonType",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, verbose_name="Namn")),
                ("description", models.TextField(blank=True, default="", verbose_name="Beskrivning")),
                ("price", models.DecimalField(decimal_places=2, default=0, max_digits=10, verbose_name="Pris")),
                ("duration_minutes", models.PositiveIntegerField(default=45)),
                ("is_active", models.BooleanField(default=True, verbose_name="Aktiv")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Lektionstyp",
                "verbose_name_plural": "Lektionstyper",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="HandledarSession",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=255, verbose_name="Titel")),
                ("date", models.DateField(verbose_name="Datum")),
                ("start_time", models.TimeField()),
                ("end_time", models.TimeField()),
                ("price_per_participant", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("max_participants", models.PositiveIntegerField(default=20)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Handledarsession",
                "verbose_name_plural": "Handledarsessioner",
                "ordering": ["date", "start_time"],
            },
        ),
        migrations.CreateModel(
            name="Package",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255, verbose_name="Namn")),
                ("description", models.TextField(blank=True, default="")),
                ("price", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Paket",
                "verbose_name_plural": "Paket",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("scheduled_date", models.DateField(verbose_name="Datum")),
                ("start_time", models.TimeField(verbose_name="Starttid")),
                ("end_time", models.TimeField(verbose_name="Sluttid")),
                ("total_price", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("status", models.CharField(choices=BOOKING_STATUS_CHOICES, default="pending", max_length=20)),
                ("payment_status", models.CharField(choices=PAYMENT_STATUS_CHOICES, default="pending", max_length=20)),
                ("payment_method", models.CharField(blank=True, default="", max_length=50)),
                ("swish_uuid", models.CharField(blank=True, default="", max_length=255)),
                ("is_guest_booking", models.BooleanField(default=False)),
                ("guest_name", models.CharField(blank=True, default="", max_length=255)),
                ("guest_email", models.EmailField(blank=True, default="", max_length=254)),
                ("guest_phone", models.CharField(blank=True, default="", max_length=50)),
                ("reminder_sent", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "lesson_type",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="bookings",
                        to="bookings.lessontype",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="lesson_bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Bokning",
                "verbose_name_plural": "Bokningar",
                "ordering": ["-scheduled_date", "-start_time"],
                "indexes": [
                    models.Index(fields=["user", "scheduled_date"], name="bookings_bo_user_id_5b1f0e_idx"),
                    models.Index(fields=["payment_status", "created_at"], name="bookings_bo_payment_8c2d4a_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="HandledarBooking",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("supervisor_name", models.CharField(max_length=255)),
                ("supervisor_email", models.EmailField(blank=True, default="", max_length=254)),
                ("supervisor_phone", models.CharField(blank=True, default="", max_length=50)),
                ("price", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("status", models.CharField(choices=BOOKING_STATUS_CHOICES, default="pending", max_length=20)),
                ("payment_status", models.CharField(choices=PAYMENT_STATUS_CHOICES, default="pending", max_length=20)),
                ("payment_method", models.CharField(blank=True, default="", max_length=50)),
                ("swish_uuid", models.CharField(blank=True, default="", max_length=255)),
                ("reminder_sent", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bookings",
                        to="bookings.handledarsession",
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="handledar_bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Handledarbokning",
                "verbose_name_plural": "Handledarbokningar",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="PackageContent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "content_type",
                    models.CharField(
                        choices=[("lesson", "Lektion"), ("handledar", "Handledar"), ("text", "Fritext")],
                        default="lesson",
                        max_length=20,
                    ),
                ),
                ("credits", models.PositiveIntegerField(default=0)),
                ("free_text", models.TextField(blank=True, default="")),
                ("sort_order", models.IntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "handledar_session",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        to="bookings.handledarsession",
                    ),
                ),
                (
                    "lesson_type",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        to="bookings.lessontype",
                    ),
                ),
                (
                    "package",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="contents",
                        to="bookings.package",
                    ),
                ),
            ],
            options={
                "verbose_name": "Paketinnehåll",
                "verbose_name_plural": "Paketinnehåll",
                "ordering": ["sort_order", "id"],
            },
        ),
        migrations.CreateModel(
            name="PackagePurchase",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("price_paid", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("status", models.CharField(choices=BOOKING_STATUS_CHOICES, default="pending", max_length=20)),
                ("payment_status", models.CharField(choices=PAYMENT_STATUS_CHOICES, default="pending", max_length=20)),
                ("payment_method", models.CharField(blank=True, default="", max_length=50)),
                ("payment_reference", models.CharField(blank=True, default="", max_length=255)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("purchase_date", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "package",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="purchases",
                        to="bookings.package",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="package_purchases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Paketköp",
                "verbose_name_plural": "Paketköp",
                "ordering": ["-purchase_date"],
            },
        ),
    ]

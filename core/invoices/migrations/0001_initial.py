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
            name="InvoiceSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("period", models.CharField(max_length=6, unique=True, verbose_name="Period (YYYYMM)")),
                ("last_value", models.PositiveIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Fakturaserie",
                "verbose_name_plural": "Fakturaserier",
                "ordering": ["-period"],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=20, unique=True, verbose_name="Fakturanummer")),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("booking", "Körlektion"),
                            ("handledar", "Handledarutbildning"),
                            ("package", "Paket"),
                            ("custom", "Övrigt"),
                        ],
                        default="booking",
                        max_length=20,
                    ),
                ),
                ("customer_name", models.CharField(blank=True, default="", max_length=255)),
                ("customer_email", models.EmailField(blank=True, default="", max_length=254)),
                ("amount", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("currency", models.CharField(default="SEK", max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Obetald"),
                            ("paid", "Betald"),
                            ("overdue", "Förfallen"),
                            ("cancelled", "Makulerad"),
                            ("error", "Fel"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("payment_method", models.CharField(blank=True, default="", max_length=50)),
                ("issued_at", models.DateTimeField()),
                ("due_date", models.DateTimeField()),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "booking",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="invoices",
                        to="bookings.booking",
                    ),
                ),
                (
                    "handledar_booking",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="invoices",
                        to="bookings.handledarbooking",
                    ),
                ),
                (
                    "package_purchase",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="invoices",
                        to="bookings.packagepurchase",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="invoices",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Faktura",
                "verbose_name_plural": "Fakturor",
                "ordering": ["-issued_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("booking__isnull", False)),
                        fields=("booking", "user"),
                        name="unique_invoice_per_booking_user",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("handledar_booking__isnull", False)),
                        fields=("handledar_booking", "user"),
                        name="unique_invoice_per_handledar_booking_user",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("package_purchase__isnull", False)),
                        fields=("package_purchase", "user"),
                        name="unique_invoice_per_package_purchase_user",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.CharField(max_length=500)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("unit_price", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("total_price", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("sort_order", models.IntegerField(default=0)),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="invoices.invoice",
                    ),
                ),
            ],
            options={
                "verbose_name": "Fakturarad",
                "verbose_name_plural": "Fakturarader",
                "ordering": ["sort_order", "id"],
            },
        ),
    ]

"""
Send Payment Reminders Management Command - Trafikskola Backend

Dieses Management Command erinnert Kunden an offene Zahlungen.

Ausgewählt werden Fahrstunden und Handledar-Buchungen, deren Zahlung noch
aussteht (payment_status=pending), die älter als N Stunden sind und für die
noch keine Erinnerung verschickt wurde. Für jede Buchung läuft die
Entscheidung "remind" des PaymentStateMachine; wurde eine Nachricht
verschickt, wird reminder_sent gesetzt.

Aufruf:
    python manage.py send_payment_reminders [--hours 5] [--dry-run]

Author: Trafikskola Development Team
Version: 1.0.0
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from core.bookings.models import Booking, HandledarBooking, PaymentStatus
from core.payments.exceptions import PaymentCoreException
from core.payments.kinds import Decision, ResourceKind
from core.payments.state_machine import PaymentStateMachine

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Skickar betalningspåminnelser för obetalda bokningar äldre än N timmar."

    def add_arguments(self, parser):
        parser.add_argument(
            "--hours",
            type=int,
            default=getattr(settings, "PAYMENT_REMINDER_AFTER_HOURS", 5),
            help="Minimales Alter der Buchung in Stunden",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Nur anzeigen, keine Nachrichten verschicken",
        )

    def handle(self, *args, **options):
        cutoff = timezone.now() - timedelta(hours=options["hours"])
        dry_run = options["dry_run"]

        candidates = [
            (ResourceKind.LESSON, Booking),
            (ResourceKind.HANDLEDAR, HandledarBooking),
        ]

        self.stdout.write(
            f"Suche offene Zahlungen, erstellt vor {cutoff.strftime('%Y-%m-%d %H:%M:%S')}..."
        )

        machine = None if dry_run else PaymentStateMachine()
        sent = skipped = failed = 0

        for kind, model in candidates:
            pending = model.objects.filter(
                payment_status=PaymentStatus.PENDING,
                reminder_sent=False,
                created_at__lt=cutoff,
            ).order_by("created_at")

            for obj in pending:
                if dry_run:
                    self.stdout.write(f"[dry-run] {kind.value} {obj.pk}")
                    continue
                try:
                    result = machine.apply(kind, obj.pk, Decision.REMIND)
                except PaymentCoreException as e:
                    failed += 1
                    logger.error(f"Reminder for {kind.value} {obj.pk} failed: {e.message}")
                    continue

                if result.notifications_sent:
                    model.objects.filter(pk=obj.pk).update(reminder_sent=True)
                    sent += 1
                else:
                    skipped += 1

        self.stdout.write(
            self.style.SUCCESS(
                f"Påminnelser skickade: {sent}, utan kontakt/misslyckade: {skipped}, fel: {failed}"
            )
        )

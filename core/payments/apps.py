"""
Payments App Configuration - Trafikskola Backend

Die App payments bündelt den Zahlungsabgleich: Action-Token, Zahlungs-
Zustandsautomat, Massenstornierung mit Gutschriften und Benachrichtigungen.

Beim Start wird geprüft, dass der Signaturschlüssel für Zahlungslinks
(PAYMENT_ACTION_SECRET) gesetzt ist. Fehlt er, startet der Prozess nicht.

Author: Trafikskola Development Team
Version: 1.0.0
"""

from django.apps import AppConfig
from django.conf import settings


class PaymentsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core.payments'
    label = 'payments'
    verbose_name = 'Betalningar'

    def ready(self):
        from core.payments.exceptions import SigningKeyMissing

        if not getattr(settings, "PAYMENT_ACTION_SECRET", ""):
            raise SigningKeyMissing()

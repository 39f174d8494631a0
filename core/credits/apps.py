"""
Credits App Configuration - Trafikskola Backend

Die App credits führt das Guthabenbuch (Credit Ledger): vorausbezahlte
Lektions- und Handledar-Krediten pro Benutzer.

Author: Trafikskola Development Team
Version: 1.0.0
"""

from django.apps import AppConfig


class CreditsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core.credits'
    label = 'credits'
    verbose_name = 'Krediter'

"""
Invoices App Configuration - Trafikskola Backend

Die App invoices erstellt Rechnungen mit fortlaufenden Rechnungsnummern
(Format YYYYMM####) für bezahlbare Ressourcen.

Author: Trafikskola Development Team
Version: 1.0.0
"""

from django.apps import AppConfig


class InvoicesConfig(AppConfig):
    """
    Django AppConfig für das Invoices Modul.
    """
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core.invoices'
    label = 'invoices'
    verbose_name = 'Fakturor'

"""
Bookings App Configuration - Trafikskola Backend

Die App bookings enthält den Resource Store: Lektionstypen, Fahrstunden,
Handledarsessionen und Lektionspakete samt Käufen.

Author: Trafikskola Development Team
Version: 1.0.0
"""

from django.apps import AppConfig


class BookingsConfig(AppConfig):
    """
    Django AppConfig für das Bookings Modul.
    """
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core.bookings'
    label = 'bookings'
    verbose_name = 'Bokningar'

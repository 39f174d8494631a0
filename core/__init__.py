"""
Core Package - Trafikskola Backend

Struktur:
- bookings: Resource Store (Lektionen, Handledar, Pakete)
- credits: Credit Ledger (Guthaben pro Schüler)
- invoices: Invoice Sequencer (Rechnungsnummern, Rechnungen)
- payments: Zahlungsabgleich (Action Tokens, State Machine, Sammelstornierung)

Author: Trafikskola Development Team
Version: 1.0.0
"""

"""
Helpdesk SLA Service
====================

Ticket SLA tracking for a helpdesk: priority-based policies, due-date
calculation, breach evaluation, and compliance reporting.
"""

__version__ = "1.0.0"

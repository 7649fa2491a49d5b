"""
SLA Domain Layer
================

Domain layer for SLA tracking.

Contains:
- Entities: SLAPolicy, TicketSLA, SLAMetrics
- Value Objects: SLADueDates, BreachStatus
- Domain Services: SLACalculator (pure due-date and breach rules)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk.sla.domain.entities import (
    SLAPolicy,
    SLADueDates,
    BreachStatus,
    TicketSLA,
    SLAMetrics,
    is_terminal_status,
)
from helpdesk.sla.domain.value_objects import SLACalculator, ensure_utc

__all__ = [
    # Entities
    "SLAPolicy",
    "TicketSLA",
    "SLAMetrics",
    # Value Objects & Services
    "SLADueDates",
    "BreachStatus",
    "SLACalculator",
    "ensure_utc",
    "is_terminal_status",
]

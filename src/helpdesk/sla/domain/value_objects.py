"""
SLA Value Objects
==================

Stateless SLA calculations.

Every function here is pure: inputs in, values out. Reading tickets and
persisting results is the job of the application services.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from helpdesk.sla.domain.entities import (
    BreachStatus, SLADueDates, SLAPolicy, TicketSLA
)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (as returned by SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Deadlines are wall-clock hours added to the creation instant; there is
    no business-hours calendar, so a deadline may fall on a weekend.
    """

    @staticmethod
    def calculate_due_dates(created_at: datetime, policy: SLAPolicy) -> SLADueDates:
        """
        Derive absolute due timestamps for a ticket.

        Args:
            created_at: Persisted ticket creation time
            policy: Active policy for the ticket's priority

        Returns:
            SLADueDates with the policy id and both deadlines
        """
        created_at = ensure_utc(created_at)
        return SLADueDates(
            policy_id=policy.id,
            response_due=created_at + timedelta(hours=policy.response_time_hours),
            resolution_due=created_at + timedelta(hours=policy.resolution_time_hours),
        )

    @staticmethod
    def is_past_due(due: Optional[datetime], now: datetime) -> bool:
        """True when a deadline exists and ``now`` is strictly after it."""
        due = ensure_utc(due)
        return due is not None and ensure_utc(now) > due

    @staticmethod
    def evaluate_breaches(ticket: TicketSLA, now: datetime) -> BreachStatus:
        """
        Decide both breach flags for a ticket at ``now``.

        Response breach is sticky: once set it is never cleared.
        Resolution breach is recomputed on every call and is forced to
        False for resolved/closed tickets, even if it was set before.
        """
        response_breached = bool(ticket.response_breached) or SLACalculator.is_past_due(
            ticket.response_due, now
        )

        if ticket.is_terminal:
            resolution_breached = False
        else:
            resolution_breached = SLACalculator.is_past_due(ticket.resolution_due, now)

        return BreachStatus(
            response_breached=response_breached,
            resolution_breached=resolution_breached,
        )

    @staticmethod
    def remaining_seconds(due: Optional[datetime], now: datetime) -> Optional[float]:
        """Seconds until ``due``, floored at zero; None without a deadline."""
        due = ensure_utc(due)
        if due is None:
            return None
        return max(0.0, (due - ensure_utc(now)).total_seconds())

    @staticmethod
    def elapsed_seconds(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
        if start is None or end is None:
            return None
        return (ensure_utc(end) - ensure_utc(start)).total_seconds()

    @staticmethod
    def breach_rate(breached: int, total: int) -> float:
        """Percentage of ``total`` that breached; 0.0 when there are no tickets."""
        if total <= 0:
            return 0.0
        return round(breached / total * 100, 2)

    @staticmethod
    def compliance_rate(breached: int, total: int) -> float:
        """Percentage of ``total`` that did not breach; 100.0 when there are no tickets."""
        if total <= 0:
            return 100.0
        return round((total - breached) / total * 100, 2)

"""
SLA Domain Entities
====================

Pure Python domain entities for SLA tracking.

These entities carry the state the SLA module reasons about and are free of
infrastructure concerns. The ticket's SLA state is exactly the four stored
fields (due dates, first response, breach flags) plus the ticket status;
display state is always derived from them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from helpdesk.config import SLAState, TERMINAL_STATUSES


def is_terminal_status(status: Optional[str]) -> bool:
    """Resolved/closed tickets stop resolution tracking."""
    return (status or "").lower() in TERMINAL_STATUSES


@dataclass
class SLAPolicy:
    """
    Response and resolution targets for one ticket priority.

    At most one active policy exists per priority.
    """

    id: Optional[int]
    name: str
    priority: str
    response_time_hours: int
    resolution_time_hours: int
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.response_time_hours <= 0 or self.resolution_time_hours <= 0:
            raise ValueError("SLA hours must be positive")


@dataclass(frozen=True)
class SLADueDates:
    """Output of the SLA calculator for one ticket."""
    policy_id: int
    response_due: datetime
    resolution_due: datetime


@dataclass(frozen=True)
class BreachStatus:
    """Result of a breach evaluation."""
    response_breached: bool
    resolution_breached: bool

    @property
    def any_breached(self) -> bool:
        return self.response_breached or self.resolution_breached

    def to_dict(self) -> dict:
        return {
            "response_breached": self.response_breached,
            "resolution_breached": self.resolution_breached,
        }


@dataclass
class TicketSLA:
    """
    The SLA-relevant slice of a ticket.

    Read from the ticket row; only the ``sla_*`` values are ever written back.
    """

    ticket_id: int
    priority: str
    status: str
    created_at: datetime
    policy_id: Optional[int] = None
    response_due: Optional[datetime] = None
    resolution_due: Optional[datetime] = None
    first_response_at: Optional[datetime] = None
    response_breached: bool = False
    resolution_breached: bool = False

    @property
    def is_terminal(self) -> bool:
        return is_terminal_status(self.status)

    @property
    def has_sla(self) -> bool:
        return self.policy_id is not None

    @property
    def breach_status(self) -> BreachStatus:
        return BreachStatus(
            response_breached=bool(self.response_breached),
            resolution_breached=bool(self.resolution_breached),
        )

    @property
    def state(self) -> str:
        """Display state derived from the stored fields."""
        if not self.has_sla:
            return SLAState.NO_SLA
        if self.response_breached or self.resolution_breached:
            return SLAState.BREACHED
        if self.is_terminal:
            return SLAState.MET
        if self.first_response_at is not None:
            return SLAState.RESPONDED
        return SLAState.PENDING


@dataclass
class SLAMetrics:
    """
    Per-ticket SLA metrics for API responses.

    Remaining times are floored at zero and are None when the ticket has
    no deadline of that kind.
    """

    ticket_id: int
    status: str
    policy_id: Optional[int]
    policy_name: Optional[str]
    response_time_hours: Optional[int]
    resolution_time_hours: Optional[int]
    response_due: Optional[datetime]
    resolution_due: Optional[datetime]
    first_response_at: Optional[datetime]
    response_breached: bool
    resolution_breached: bool
    response_time_remaining_seconds: Optional[float]
    resolution_time_remaining_seconds: Optional[float]
    response_time_used_seconds: Optional[float]
    sla_state: str

    is_any_breached: bool = field(init=False)

    def __post_init__(self):
        self.is_any_breached = self.response_breached or self.resolution_breached

"""
SLA Application DTOs
=====================

Data Transfer Objects for the SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from helpdesk.config import MAX_SLA_HOURS


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["Critical", "High", "Medium", "Low"]
GroupByStr = Literal["department", "agent"]
SLAStateStr = Literal["no_sla", "pending", "responded", "met", "breached"]


# ========== Request DTOs ==========

class PolicyCreateRequest(BaseModel):
    """Request model for creating an SLA policy."""
    name: str = Field(..., min_length=1, max_length=100, description="Policy name")
    priority: PriorityStr = Field(..., description="Ticket priority the policy applies to")
    response_time_hours: int = Field(
        ..., gt=0, le=MAX_SLA_HOURS, description="Hours allowed until first response"
    )
    resolution_time_hours: int = Field(
        ..., gt=0, le=MAX_SLA_HOURS, description="Hours allowed until resolution"
    )
    is_active: bool = Field(default=True, description="Whether the policy is in effect")


class PolicyUpdateRequest(BaseModel):
    """
    Partial update of an SLA policy.

    Only fields present in the payload are applied. Priority cannot be
    changed and unknown fields are ignored. Hours must be JSON integers.
    """
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    response_time_hours: Optional[int] = Field(None, gt=0, le=MAX_SLA_HOURS, strict=True)
    resolution_time_hours: Optional[int] = Field(None, gt=0, le=MAX_SLA_HOURS, strict=True)
    is_active: Optional[bool] = None


# ========== Response DTOs ==========

class PolicyResponse(BaseModel):
    """Response model for an SLA policy."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    priority: PriorityStr
    response_time_hours: int
    resolution_time_hours: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PolicyCreatedResponse(BaseModel):
    success: bool = True
    policy_id: int


class BreachStatusResponse(BaseModel):
    """Breach flags after evaluation."""
    ticket_id: int
    response_breached: bool
    resolution_breached: bool


class BreachSweepResponse(BaseModel):
    """Summary of a bulk breach sweep."""
    success: bool = True
    checked_tickets: int
    breached_tickets: int


class TicketSLAMetricsResponse(BaseModel):
    """SLA metrics for one ticket."""
    model_config = ConfigDict(from_attributes=True)

    ticket_id: int
    status: str
    policy_id: Optional[int] = None
    policy_name: Optional[str] = None
    response_time_hours: Optional[int] = None
    resolution_time_hours: Optional[int] = None
    response_due: Optional[datetime] = None
    resolution_due: Optional[datetime] = None
    first_response_at: Optional[datetime] = None
    response_breached: bool
    resolution_breached: bool
    response_time_remaining_seconds: Optional[float] = Field(
        None, description="Seconds until the response deadline (0 once passed)"
    )
    resolution_time_remaining_seconds: Optional[float] = Field(
        None, description="Seconds until the resolution deadline (0 once passed)"
    )
    response_time_used_seconds: Optional[float] = Field(
        None, description="Seconds from creation to first response"
    )
    sla_state: SLAStateStr
    is_any_breached: bool


class DashboardStatsResponse(BaseModel):
    """Breach statistics across tickets."""
    total_tickets: int
    response_breached: int
    resolution_breached: int
    resolved_tickets: int
    response_breach_rate: float = Field(..., description="Percentage of tickets with a response breach")
    resolution_breach_rate: float = Field(..., description="Percentage of tickets with a resolution breach")
    avg_response_time_seconds: int = Field(..., description="Mean time to first response (0 when none)")


class AtRiskTicketResponse(BaseModel):
    """A non-terminal ticket with a deadline inside the warning window."""
    id: int
    title: str
    priority: str
    status: str
    created_at: datetime
    sla_response_due: Optional[datetime] = None
    sla_resolution_due: Optional[datetime] = None
    sla_first_response_at: Optional[datetime] = None
    agent_name: Optional[str] = None
    department_name: Optional[str] = None
    response_at_risk: bool
    resolution_at_risk: bool


class ComplianceRowResponse(BaseModel):
    """Compliance figures for one department or agent."""
    group_id: Optional[int] = None
    group_name: Optional[str] = None
    total_tickets: int
    response_breached: int
    resolution_breached: int
    resolved: int
    avg_response_time_hours: Optional[float] = None
    response_compliance_rate: float
    resolution_compliance_rate: float


class TrendPointResponse(BaseModel):
    """Breach counts for tickets created on one day."""
    day: date
    total_tickets: int
    response_breached: int
    resolution_breached: int


class SLADashboardResponse(BaseModel):
    """Stats, at-risk list and department compliance in one payload."""
    stats: DashboardStatsResponse
    at_risk: List[AtRiskTicketResponse]
    compliance: List[ComplianceRowResponse]


# ========== Read Models (internal) ==========

@dataclass
class TicketReportRow:
    """
    One ticket as read by the reporting queries.

    Joined with its department and assignee so that reports need no
    further lookups.
    """
    ticket_id: int
    title: str
    priority: str
    status: str
    created_at: datetime
    response_due: Optional[datetime]
    resolution_due: Optional[datetime]
    first_response_at: Optional[datetime]
    response_breached: bool
    resolution_breached: bool
    department_id: Optional[int] = None
    department_name: Optional[str] = None
    agent_id: Optional[int] = None
    agent_name: Optional[str] = None


@dataclass
class BreachCounts:
    """Ticket and breach totals, for all tickets or for one group."""
    total_tickets: int
    response_breached: int
    resolution_breached: int
    resolved: int
    group_id: Optional[int] = None
    group_name: Optional[str] = None


@dataclass
class ResponseTimeRow:
    """Creation and first-response times of one responded ticket."""
    created_at: datetime
    first_response_at: datetime
    department_id: Optional[int] = None
    agent_id: Optional[int] = None

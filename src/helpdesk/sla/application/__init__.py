"""
SLA Application Layer
======================

Application layer for SLA tracking.

Contains:
- Services: policy store, tracking hooks/breach evaluation, reporting
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from helpdesk.sla.application.dto import (
    PolicyCreateRequest,
    PolicyResponse,
    PolicyCreatedResponse,
    BreachStatusResponse,
    BreachSweepResponse,
    TicketSLAMetricsResponse,
    DashboardStatsResponse,
    AtRiskTicketResponse,
    ComplianceRowResponse,
    TrendPointResponse,
    SLADashboardResponse,
    TicketReportRow,
    BreachCounts,
    ResponseTimeRow,
    PolicyUpdateRequest,
)
from helpdesk.sla.application.services import (
    SLAPolicyService,
    SLATrackingService,
    SLAReportingService,
    ISLAPolicyRepository,
    ITicketSLARepository,
    ISLAReportRepository,
    Clock,
)

__all__ = [
    # DTOs
    "PolicyCreateRequest",
    "PolicyResponse",
    "PolicyCreatedResponse",
    "BreachStatusResponse",
    "BreachSweepResponse",
    "TicketSLAMetricsResponse",
    "DashboardStatsResponse",
    "AtRiskTicketResponse",
    "ComplianceRowResponse",
    "TrendPointResponse",
    "SLADashboardResponse",
    "TicketReportRow",
    "BreachCounts",
    "ResponseTimeRow",
    "PolicyUpdateRequest",
    # Services
    "SLAPolicyService",
    "SLATrackingService",
    "SLAReportingService",
    "Clock",
    # Repository Interfaces
    "ISLAPolicyRepository",
    "ITicketSLARepository",
    "ISLAReportRepository",
]

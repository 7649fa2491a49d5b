"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA policies, ticket metrics and reports.

Controllers are thin - they delegate to application services. Application
exceptions are translated to HTTP responses by the handlers registered in
``helpdesk.main``.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import settings
from helpdesk.infrastructure.database import get_session
from helpdesk.sla.application import (
    AtRiskTicketResponse,
    BreachStatusResponse,
    BreachSweepResponse,
    ComplianceRowResponse,
    DashboardStatsResponse,
    PolicyCreateRequest,
    PolicyCreatedResponse,
    PolicyResponse,
    PolicyUpdateRequest,
    SLADashboardResponse,
    SLAPolicyService,
    SLAReportingService,
    SLATrackingService,
    TicketSLAMetricsResponse,
    TrendPointResponse,
)
from helpdesk.sla.infrastructure import (
    SQLAlchemyPolicyRepository,
    SQLAlchemyReportRepository,
    SQLAlchemyTicketSLARepository,
)
from helpdesk.shared.infrastructure.audit import AuditLogger
from helpdesk.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA"])


# ========== Dependencies ==========

async def get_policy_service(
    session: AsyncSession = Depends(get_session)
) -> SLAPolicyService:
    return SLAPolicyService(SQLAlchemyPolicyRepository(session), AuditLogger(session))


async def get_tracking_service(
    session: AsyncSession = Depends(get_session)
) -> SLATrackingService:
    return SLATrackingService(
        SQLAlchemyPolicyRepository(session),
        SQLAlchemyTicketSLARepository(session)
    )


async def get_reporting_service(
    session: AsyncSession = Depends(get_session)
) -> SLAReportingService:
    return SLAReportingService(SQLAlchemyReportRepository(session))


# ========== Policies ==========

@router.get(
    "/policies",
    response_model=List[PolicyResponse],
    summary="List SLA policies",
    description="All policies, ordered Critical, High, Medium, Low."
)
async def list_policies(service: SLAPolicyService = Depends(get_policy_service)):
    policies = await service.list_policies()
    return [PolicyResponse.model_validate(p) for p in policies]


@router.get("/policies/priority/{priority}", response_model=PolicyResponse, summary="Get active policy for a priority")
async def get_policy_by_priority(
    priority: str,
    service: SLAPolicyService = Depends(get_policy_service)
):
    return PolicyResponse.model_validate(await service.get_policy_by_priority(priority))


@router.get("/policies/{policy_id}", response_model=PolicyResponse, summary="Get SLA policy")
async def get_policy(
    policy_id: int,
    service: SLAPolicyService = Depends(get_policy_service)
):
    return PolicyResponse.model_validate(await service.get_policy(policy_id))


@router.post(
    "/policies",
    response_model=PolicyCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create SLA policy",
    description="""
    Create a policy for a priority.

    Fails with **409** if an active policy already exists for that priority.
    """,
    responses={409: {"description": "Priority already has an active SLA policy"}}
)
async def create_policy(
    request: PolicyCreateRequest,
    actor_id: Optional[int] = Header(None, alias="X-User-ID"),
    service: SLAPolicyService = Depends(get_policy_service)
):
    policy_id = await service.create_policy(request, actor_id=actor_id)
    return PolicyCreatedResponse(policy_id=policy_id)


@router.patch(
    "/policies/{policy_id}",
    response_model=PolicyResponse,
    summary="Update SLA policy",
    description="""
    Partial update. Accepted fields: `name`, `response_time_hours`,
    `resolution_time_hours`, `is_active`. Other fields are ignored.
    Hours must be integers between 1 and 8760.

    Changing hours does not move deadlines of existing tickets.
    """
)
async def update_policy(
    policy_id: int,
    updates: PolicyUpdateRequest,
    actor_id: Optional[int] = Header(None, alias="X-User-ID"),
    service: SLAPolicyService = Depends(get_policy_service)
):
    policy = await service.update_policy(policy_id, updates, actor_id=actor_id)
    return PolicyResponse.model_validate(policy)


# ========== Ticket SLA ==========

@router.get(
    "/tickets/{ticket_id}",
    response_model=TicketSLAMetricsResponse,
    summary="Get ticket SLA metrics",
    description="Re-evaluates breach flags, then returns deadlines, remaining time and state.",
    responses={404: {"description": "Ticket not found"}}
)
async def get_ticket_sla(
    ticket_id: int,
    service: SLATrackingService = Depends(get_tracking_service)
):
    metrics = await service.get_ticket_sla_metrics(ticket_id, refresh=True)
    if metrics is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Ticket {ticket_id} not found"
        )
    return TicketSLAMetricsResponse.model_validate(metrics)


@router.post(
    "/tickets/{ticket_id}/check-breaches",
    response_model=BreachStatusResponse,
    summary="Evaluate breaches for one ticket"
)
async def check_ticket_breaches(
    ticket_id: int,
    service: SLATrackingService = Depends(get_tracking_service)
):
    result = await service.check_breaches(ticket_id)
    return BreachStatusResponse(ticket_id=ticket_id, **result.to_dict())


@router.post(
    "/check-breaches",
    response_model=BreachSweepResponse,
    summary="Evaluate breaches for all open tickets"
)
async def check_all_breaches(
    actor_id: Optional[int] = Header(None, alias="X-User-ID"),
    session: AsyncSession = Depends(get_session),
    service: SLATrackingService = Depends(get_tracking_service)
):
    with log_latency(logger, "breach_sweep"):
        summary = await service.check_all_breaches()

    await AuditLogger(session).record(
        "SLA Breach Sweep", "ticket", None, details=summary, user_id=actor_id
    )
    return BreachSweepResponse(**summary)


# ========== Reports ==========

@router.get("/dashboard-stats", response_model=DashboardStatsResponse, summary="SLA statistics")
async def get_dashboard_stats(
    department_id: Optional[int] = Query(None, description="Restrict to one department"),
    service: SLAReportingService = Depends(get_reporting_service)
):
    return await service.get_dashboard_stats(department_id=department_id)


@router.get(
    "/at-risk",
    response_model=List[AtRiskTicketResponse],
    summary="Tickets close to an SLA deadline",
    description="Open tickets with a deadline inside the warning window, Critical first, soonest deadline first."
)
async def get_at_risk_tickets(
    hours_warning: int = Query(settings.sla_at_risk_hours, ge=0, description="Warning window in hours"),
    service: SLAReportingService = Depends(get_reporting_service)
):
    return await service.get_tickets_at_risk(hours_warning)


@router.get("/compliance-report", response_model=List[ComplianceRowResponse], summary="SLA compliance per group")
async def get_compliance_report(
    group_by: str = Query("department", description="department or agent"),
    period_days: int = Query(settings.sla_report_period_days, ge=1, description="Trailing period of ticket creation"),
    service: SLAReportingService = Depends(get_reporting_service)
):
    return await service.get_compliance_report(group_by=group_by, period_days=period_days)


@router.get("/trend", response_model=List[TrendPointResponse], summary="Daily breach counts")
async def get_breach_trend(
    days: int = Query(30, ge=1, le=365, description="Number of days, ending today"),
    service: SLAReportingService = Depends(get_reporting_service)
):
    return await service.get_breach_trend(days)


@router.get("/dashboard", response_model=SLADashboardResponse, summary="SLA dashboard")
async def get_dashboard(service: SLAReportingService = Depends(get_reporting_service)):
    return SLADashboardResponse(
        stats=await service.get_dashboard_stats(),
        at_risk=await service.get_tickets_at_risk(settings.sla_at_risk_hours),
        compliance=await service.get_compliance_report(
            group_by="department", period_days=settings.sla_report_period_days
        ),
    )


# Export router for inclusion in main app
sla_router = router

"""
Ticket Controllers (API Routes)
================================

FastAPI routes for the ticket operations that drive SLA tracking.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.infrastructure.database import get_session
from helpdesk.sla.application import SLATrackingService
from helpdesk.sla.infrastructure import (
    SQLAlchemyPolicyRepository,
    SQLAlchemyTicketSLARepository,
)
from helpdesk.tickets.application import (
    MessageCreateRequest,
    MessageResponse,
    StatusUpdateRequest,
    TicketCreateRequest,
    TicketResponse,
    TicketService,
)
from helpdesk.tickets.infrastructure import SQLAlchemyTicketRepository

router = APIRouter(prefix="/tickets", tags=["Tickets"])


TICKET_REQUEST_EXAMPLE = {
    "title": "VPN drops every few minutes",
    "description": "Since this morning the VPN client disconnects repeatedly.",
    "priority": "High",
    "department_id": 1,
    "created_by": 3
}


async def get_ticket_service(
    session: AsyncSession = Depends(get_session)
) -> TicketService:
    sla_tracking = SLATrackingService(
        SQLAlchemyPolicyRepository(session),
        SQLAlchemyTicketSLARepository(session)
    )
    return TicketService(SQLAlchemyTicketRepository(session), sla_tracking)


@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create ticket",
    description="Creates the ticket and attaches SLA deadlines from the active policy for its priority, if any.",
    openapi_extra={
        "requestBody": {"content": {"application/json": {"example": TICKET_REQUEST_EXAMPLE}}}
    }
)
async def create_ticket(
    request: TicketCreateRequest,
    service: TicketService = Depends(get_ticket_service)
):
    return TicketResponse.model_validate(await service.create_ticket(request))


@router.get("/{ticket_id}", response_model=TicketResponse, summary="Get ticket")
async def get_ticket(
    ticket_id: int,
    service: TicketService = Depends(get_ticket_service)
):
    return TicketResponse.model_validate(await service.get_ticket(ticket_id))


@router.post(
    "/{ticket_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add message",
    description="The first message by an agent or admin is recorded as the SLA first response."
)
async def add_message(
    ticket_id: int,
    request: MessageCreateRequest,
    service: TicketService = Depends(get_ticket_service)
):
    message, recorded = await service.add_message(ticket_id, request.author_id, request.body)
    response = MessageResponse.model_validate(message)
    response.first_response_recorded = recorded
    return response


@router.patch(
    "/{ticket_id}/status",
    response_model=TicketResponse,
    summary="Change ticket status",
    description="Re-evaluates SLA breach flags after the change."
)
async def update_status(
    ticket_id: int,
    request: StatusUpdateRequest,
    service: TicketService = Depends(get_ticket_service)
):
    return TicketResponse.model_validate(await service.update_status(ticket_id, request.status))


# Export router for inclusion in main app
tickets_router = router

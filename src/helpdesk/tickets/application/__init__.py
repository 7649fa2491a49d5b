"""
Tickets Application Layer
==========================

Ticket service and DTOs.
"""

from helpdesk.tickets.application.dto import (
    MessageCreateRequest,
    MessageResponse,
    StatusUpdateRequest,
    TicketCreateRequest,
    TicketResponse,
)
from helpdesk.tickets.application.services import ITicketRepository, TicketService

__all__ = [
    "MessageCreateRequest",
    "MessageResponse",
    "StatusUpdateRequest",
    "TicketCreateRequest",
    "TicketResponse",
    "ITicketRepository",
    "TicketService",
]

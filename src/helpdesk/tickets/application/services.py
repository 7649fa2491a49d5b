"""
Ticket Application Services
============================

Ticket operations and the points where they call into SLA tracking.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional, Tuple

from helpdesk.config import RESPONDER_ROLES, VALID_STATUSES
from helpdesk.core import ResourceNotFoundException, ValidationException
from helpdesk.infrastructure.database import utc_now
from helpdesk.sla.application import Clock, SLATrackingService
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.application.dto import TicketCreateRequest

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def get(self, ticket_id: int) -> Optional[Any]:
        """Get ticket by ID."""

    @abstractmethod
    async def create(
        self,
        title: str,
        description: str,
        priority: str,
        created_at: datetime,
        department_id: Optional[int] = None,
        created_by: Optional[int] = None,
        assigned_to: Optional[int] = None
    ) -> Any:
        """Insert a ticket; the returned row has its id assigned."""

    @abstractmethod
    async def set_status(self, ticket: Any, status: str) -> Any:
        """Change ticket status."""

    @abstractmethod
    async def add_message(self, ticket_id: int, author_id: int, body: str, created_at: datetime) -> Any:
        """Insert a message."""

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[Any]:
        """Get user by ID."""


# ========== Application Services ==========

class TicketService:
    """
    Ticket create, message and status operations.

    Each operation persists its own change first and then runs the SLA
    hook, so the ticket change stands even when SLA tracking fails.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        sla_tracking: SLATrackingService,
        clock: Clock = utc_now
    ):
        self._ticket_repo = ticket_repository
        self._sla = sla_tracking
        self._clock = clock

    async def get_ticket(self, ticket_id: int) -> Any:
        ticket = await self._ticket_repo.get(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def create_ticket(self, request: TicketCreateRequest) -> Any:
        ticket = await self._ticket_repo.create(
            title=request.title,
            description=request.description,
            priority=request.priority,
            created_at=self._clock(),
            department_id=request.department_id,
            created_by=request.created_by,
            assigned_to=request.assigned_to,
        )
        logger.info(
            "Ticket created",
            extra={"ticket_id": ticket.id, "priority": ticket.priority}
        )

        await self._sla.initialize_sla(ticket.id, ticket.priority)
        return await self.get_ticket(ticket.id)

    async def add_message(self, ticket_id: int, author_id: int, body: str) -> Tuple[Any, bool]:
        """
        Add a message to a ticket.

        Messages from agents and admins count as a response for SLA
        purposes; only the first one is recorded.

        Returns:
            (message, whether this message recorded the first response)
        """
        await self.get_ticket(ticket_id)
        author = await self._ticket_repo.get_user(author_id)
        if author is None:
            raise ResourceNotFoundException("User", author_id)

        message = await self._ticket_repo.add_message(ticket_id, author_id, body, self._clock())

        recorded = False
        if author.role in RESPONDER_ROLES:
            recorded = await self._sla.record_first_response(ticket_id)
        return message, recorded

    async def update_status(self, ticket_id: int, status: str) -> Any:
        normalized = (status or "").strip().lower()
        if normalized not in VALID_STATUSES:
            raise ValidationException(
                f"status must be one of {VALID_STATUSES}", {"status": status}
            )

        ticket = await self.get_ticket(ticket_id)
        previous = ticket.status
        await self._ticket_repo.set_status(ticket, normalized)
        logger.info(
            "Ticket status changed",
            extra={"ticket_id": ticket_id, "from": previous, "to": normalized}
        )

        await self._sla.check_and_update_breaches(ticket_id)
        return await self.get_ticket(ticket_id)

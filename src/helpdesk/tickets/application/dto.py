"""
Ticket Application DTOs
=======================

Request and response models for the ticket endpoints.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from helpdesk.sla.application.dto import PriorityStr


class TicketCreateRequest(BaseModel):
    """Request model for filing a ticket."""
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(default="", max_length=10000)
    priority: PriorityStr = Field(default="Medium")
    department_id: Optional[int] = None
    created_by: Optional[int] = None
    assigned_to: Optional[int] = None


class MessageCreateRequest(BaseModel):
    """Request model for adding a message to a ticket."""
    author_id: int
    body: str = Field(..., min_length=1)


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., description="open, in_progress, pending, resolved or closed")


class TicketResponse(BaseModel):
    """Ticket with its SLA columns."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    priority: str
    status: str
    department_id: Optional[int] = None
    created_by: Optional[int] = None
    assigned_to: Optional[int] = None
    created_at: datetime
    sla_policy_id: Optional[int] = None
    sla_response_due: Optional[datetime] = None
    sla_resolution_due: Optional[datetime] = None
    sla_first_response_at: Optional[datetime] = None
    sla_response_breached: bool = False
    sla_resolution_breached: bool = False


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    author_id: int
    body: str
    created_at: datetime
    first_response_recorded: bool = False

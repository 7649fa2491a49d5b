"""
Tickets Infrastructure Layer
=============================

ORM models and repository for tickets, messages, users and departments.
"""

from helpdesk.tickets.infrastructure.models import (
    DepartmentModel,
    TicketMessageModel,
    TicketModel,
    UserModel,
)
from helpdesk.tickets.infrastructure.repositories import SQLAlchemyTicketRepository

__all__ = [
    "DepartmentModel",
    "TicketMessageModel",
    "TicketModel",
    "UserModel",
    "SQLAlchemyTicketRepository",
]

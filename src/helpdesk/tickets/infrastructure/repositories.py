"""
Ticket Repository
=================

SQLAlchemy data access for tickets and their messages.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.infrastructure.database import store_errors
from helpdesk.tickets.application.services import ITicketRepository
from helpdesk.tickets.infrastructure.models import (
    TicketMessageModel, TicketModel, UserModel
)


class SQLAlchemyTicketRepository(ITicketRepository):
    """SQLAlchemy implementation of ticket repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, ticket_id: int) -> Optional[Any]:
        # SLA columns are written with UPDATE statements; reload them
        stmt = (
            select(TicketModel)
            .where(TicketModel.id == ticket_id)
            .execution_options(populate_existing=True)
        )
        with store_errors("load ticket"):
            result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

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
        model = TicketModel(
            title=title,
            description=description,
            priority=priority,
            created_at=created_at,
            department_id=department_id,
            created_by=created_by,
            assigned_to=assigned_to,
        )
        self._session.add(model)

        # Flush so the id and creation time exist before the SLA hook runs
        with store_errors("create ticket"):
            await self._session.flush()
        return model

    async def set_status(self, ticket: Any, status: str) -> Any:
        ticket.status = status
        with store_errors("update ticket status"):
            await self._session.flush()
        return ticket

    async def add_message(self, ticket_id: int, author_id: int, body: str, created_at: datetime) -> Any:
        model = TicketMessageModel(
            ticket_id=ticket_id,
            author_id=author_id,
            body=body,
            created_at=created_at,
        )
        self._session.add(model)
        with store_errors("add ticket message"):
            await self._session.flush()
        return model

    async def get_user(self, user_id: int) -> Optional[Any]:
        stmt = select(UserModel).where(UserModel.id == user_id)
        with store_errors("load user"):
            result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

"""
SLA Infrastructure Repositories
=================================

Concrete implementations of the SLA repository interfaces using SQLAlchemy.

This layer contains the data access logic - how policies and the SLA
columns of tickets are stored and retrieved.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from helpdesk.config import PRIORITY_RANK, TERMINAL_STATUSES, ReportGrouping
from helpdesk.core import ConflictException
from helpdesk.infrastructure.database import store_errors
from helpdesk.sla.application import (
    BreachCounts, ISLAPolicyRepository, ISLAReportRepository, ITicketSLARepository,
    ResponseTimeRow, TicketReportRow
)
from helpdesk.sla.domain import BreachStatus, SLADueDates, SLAPolicy, TicketSLA
from helpdesk.sla.infrastructure.models import SLAPolicyModel
from helpdesk.tickets.infrastructure.models import (
    DepartmentModel, TicketModel, UserModel
)


class SQLAlchemyPolicyRepository(ISLAPolicyRepository):
    """
    SQLAlchemy implementation of the policy store.

    The partial unique index on active priorities backs the one-active-
    policy-per-priority rule.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_domain(model: SLAPolicyModel) -> SLAPolicy:
        return SLAPolicy(
            id=model.id,
            name=model.name,
            priority=model.priority,
            response_time_hours=model.response_time_hours,
            resolution_time_hours=model.resolution_time_hours,
            is_active=bool(model.is_active),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def _get_model(self, policy_id: int) -> Optional[SLAPolicyModel]:
        stmt = select(SLAPolicyModel).where(SLAPolicyModel.id == policy_id)
        with store_errors("load SLA policy"):
            result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(self) -> List[SLAPolicy]:
        """All policies ordered Critical, High, Medium, Low."""
        rank = case(PRIORITY_RANK, value=SLAPolicyModel.priority, else_=len(PRIORITY_RANK) + 1)
        stmt = select(SLAPolicyModel).order_by(rank, SLAPolicyModel.id)
        with store_errors("list SLA policies"):
            result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def get_by_id(self, policy_id: int) -> Optional[SLAPolicy]:
        model = await self._get_model(policy_id)
        return self._to_domain(model) if model else None

    async def get_active_by_priority(self, priority: str) -> Optional[SLAPolicy]:
        stmt = (
            select(SLAPolicyModel)
            .where(SLAPolicyModel.priority == priority)
            .where(SLAPolicyModel.is_active.is_(True))
        )
        with store_errors("load active SLA policy"):
            result = await self._session.execute(stmt)
        model = result.scalars().first()
        return self._to_domain(model) if model else None

    async def create(self, policy: SLAPolicy) -> SLAPolicy:
        model = SLAPolicyModel(
            name=policy.name,
            priority=policy.priority,
            response_time_hours=policy.response_time_hours,
            resolution_time_hours=policy.resolution_time_hours,
            is_active=policy.is_active,
        )
        self._session.add(model)

        try:
            with store_errors("create SLA policy"):
                await self._session.flush()
        except IntegrityError as e:
            await self._session.rollback()
            raise ConflictException(
                "SLA policy",
                f"priority '{policy.priority}' already has an active policy",
                {"priority": policy.priority}
            ) from e

        return self._to_domain(model)

    async def update(self, policy_id: int, fields: Dict[str, Any]) -> Optional[SLAPolicy]:
        model = await self._get_model(policy_id)
        if model is None:
            return None

        for key, value in fields.items():
            setattr(model, key, value)

        try:
            with store_errors("update SLA policy"):
                await self._session.flush()
        except IntegrityError as e:
            await self._session.rollback()
            raise ConflictException(
                "SLA policy",
                f"priority '{model.priority}' already has an active policy",
                {"policy_id": policy_id}
            ) from e

        return self._to_domain(model)


class SQLAlchemyTicketSLARepository(ITicketSLARepository):
    """
    Reads and writes the ``sla_*`` columns of the tickets table.

    Every write is a single-row UPDATE; no other ticket column is touched.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, ticket_id: int) -> Optional[TicketSLA]:
        stmt = (
            select(TicketModel)
            .where(TicketModel.id == ticket_id)
            .execution_options(populate_existing=True)
        )
        with store_errors("load ticket SLA"):
            result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None

        return TicketSLA(
            ticket_id=model.id,
            priority=model.priority,
            status=model.status,
            created_at=model.created_at,
            policy_id=model.sla_policy_id,
            response_due=model.sla_response_due,
            resolution_due=model.sla_resolution_due,
            first_response_at=model.sla_first_response_at,
            response_breached=bool(model.sla_response_breached),
            resolution_breached=bool(model.sla_resolution_breached),
        )

    async def set_due_dates(self, ticket_id: int, due_dates: SLADueDates) -> None:
        stmt = (
            update(TicketModel)
            .where(TicketModel.id == ticket_id)
            .values(
                sla_policy_id=due_dates.policy_id,
                sla_response_due=due_dates.response_due,
                sla_resolution_due=due_dates.resolution_due,
            )
        )
        with store_errors("initialize ticket SLA"):
            await self._session.execute(stmt)

    async def record_first_response(
        self,
        ticket_id: int,
        responded_at: datetime,
        response_breached: bool
    ) -> bool:
        # The IS NULL guard makes the write happen at most once per ticket
        stmt = (
            update(TicketModel)
            .where(TicketModel.id == ticket_id)
            .where(TicketModel.sla_first_response_at.is_(None))
            .values(
                sla_first_response_at=responded_at,
                sla_response_breached=response_breached,
            )
        )
        with store_errors("record first response"):
            result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def save_breaches(self, ticket_id: int, status: BreachStatus) -> None:
        stmt = (
            update(TicketModel)
            .where(TicketModel.id == ticket_id)
            .values(
                sla_response_breached=status.response_breached,
                sla_resolution_breached=status.resolution_breached,
            )
        )
        with store_errors("save breach flags"):
            await self._session.execute(stmt)

    async def list_open_ticket_ids(self) -> List[int]:
        stmt = (
            select(TicketModel.id)
            .where(TicketModel.status.not_in(TERMINAL_STATUSES))
            .order_by(TicketModel.id)
        )
        with store_errors("list open tickets"):
            result = await self._session.execute(stmt)
        return list(result.scalars().all())

    def savepoint(self):
        return self._session.begin_nested()


def _count_where(condition):
    """SUM over a 0/1 CASE; zero rather than NULL on an empty set."""
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


class SQLAlchemyReportRepository(ISLAReportRepository):
    """
    Reporting reads.

    Totals and breach counts are computed with COUNT/SUM in the database.
    Row reads select only the columns a report uses.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _count_columns():
        return (
            func.count(TicketModel.id).label("total_tickets"),
            _count_where(TicketModel.sla_response_breached.is_(True)).label("response_breached"),
            _count_where(TicketModel.sla_resolution_breached.is_(True)).label("resolution_breached"),
            _count_where(func.lower(TicketModel.status).in_(TERMINAL_STATUSES)).label("resolved"),
        )

    @staticmethod
    def _to_counts(row, group_id=None, group_name=None) -> BreachCounts:
        return BreachCounts(
            total_tickets=int(row.total_tickets or 0),
            response_breached=int(row.response_breached or 0),
            resolution_breached=int(row.resolution_breached or 0),
            resolved=int(row.resolved or 0),
            group_id=group_id,
            group_name=group_name,
        )

    async def count_breaches(self, department_id: Optional[int] = None) -> BreachCounts:
        stmt = select(*self._count_columns())
        if department_id is not None:
            stmt = stmt.where(TicketModel.department_id == department_id)

        with store_errors("count breaches"):
            result = await self._session.execute(stmt)
        return self._to_counts(result.one())

    async def count_breaches_by_group(
        self,
        group_by: str,
        created_since: Optional[datetime] = None
    ) -> List[BreachCounts]:
        if group_by == ReportGrouping.AGENT:
            agent = aliased(UserModel)
            key, name = TicketModel.assigned_to, agent.name
            # Inner join drops unassigned tickets
            stmt = (
                select(key.label("group_id"), name.label("group_name"), *self._count_columns())
                .select_from(TicketModel)
                .join(agent, TicketModel.assigned_to == agent.id)
            )
        else:
            key, name = TicketModel.department_id, DepartmentModel.name
            stmt = (
                select(key.label("group_id"), name.label("group_name"), *self._count_columns())
                .select_from(TicketModel)
                .outerjoin(DepartmentModel, TicketModel.department_id == DepartmentModel.id)
            )

        if created_since is not None:
            stmt = stmt.where(TicketModel.created_at >= created_since)
        stmt = stmt.group_by(key, name).order_by(key)

        with store_errors("count breaches by group"):
            result = await self._session.execute(stmt)
        return [
            self._to_counts(row, group_id=row.group_id, group_name=row.group_name)
            for row in result.all()
        ]

    async def list_response_times(
        self,
        department_id: Optional[int] = None,
        created_since: Optional[datetime] = None
    ) -> List[ResponseTimeRow]:
        stmt = (
            select(
                TicketModel.created_at,
                TicketModel.sla_first_response_at,
                TicketModel.department_id,
                TicketModel.assigned_to,
            )
            .where(TicketModel.sla_first_response_at.is_not(None))
        )
        if department_id is not None:
            stmt = stmt.where(TicketModel.department_id == department_id)
        if created_since is not None:
            stmt = stmt.where(TicketModel.created_at >= created_since)

        with store_errors("load response times"):
            result = await self._session.execute(stmt)
        return [
            ResponseTimeRow(
                created_at=row.created_at,
                first_response_at=row.sla_first_response_at,
                department_id=row.department_id,
                agent_id=row.assigned_to,
            )
            for row in result.all()
        ]

    async def list_rows(
        self,
        created_since: Optional[datetime] = None,
        open_only: bool = False,
        due_before: Optional[datetime] = None
    ) -> List[TicketReportRow]:
        agent = aliased(UserModel)

        stmt = (
            select(
                TicketModel.id,
                TicketModel.title,
                TicketModel.priority,
                TicketModel.status,
                TicketModel.created_at,
                TicketModel.sla_response_due,
                TicketModel.sla_resolution_due,
                TicketModel.sla_first_response_at,
                TicketModel.sla_response_breached,
                TicketModel.sla_resolution_breached,
                TicketModel.department_id,
                DepartmentModel.name.label("department_name"),
                agent.id.label("agent_id"),
                agent.name.label("agent_name"),
            )
            .outerjoin(DepartmentModel, TicketModel.department_id == DepartmentModel.id)
            .outerjoin(agent, TicketModel.assigned_to == agent.id)
        )

        if created_since is not None:
            stmt = stmt.where(TicketModel.created_at >= created_since)
        if open_only:
            stmt = stmt.where(TicketModel.status.not_in(TERMINAL_STATUSES))
        if due_before is not None:
            stmt = stmt.where(or_(
                TicketModel.sla_response_due < due_before,
                TicketModel.sla_resolution_due < due_before,
            ))

        stmt = stmt.order_by(TicketModel.id)

        with store_errors("load report rows"):
            result = await self._session.execute(stmt)

        return [
            TicketReportRow(
                ticket_id=row.id,
                title=row.title,
                priority=row.priority,
                status=row.status,
                created_at=row.created_at,
                response_due=row.sla_response_due,
                resolution_due=row.sla_resolution_due,
                first_response_at=row.sla_first_response_at,
                response_breached=bool(row.sla_response_breached),
                resolution_breached=bool(row.sla_resolution_breached),
                department_id=row.department_id,
                department_name=row.department_name,
                agent_id=row.agent_id,
                agent_name=row.agent_name,
            )
            for row in result.all()
        ]

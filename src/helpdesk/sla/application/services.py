"""
SLA Application Services
=========================

Application services orchestrate the SLA rules and coordinate between
domain objects and repositories.

- SLAPolicyService: policy store (one active policy per priority)
- SLATrackingService: calculator, breach evaluator and ticket lifecycle hooks
- SLAReportingService: dashboard statistics, at-risk list, compliance report
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from helpdesk.config import (
    PRIORITY_RANK, VALID_GROUPINGS, VALID_PRIORITIES, ReportGrouping
)
from helpdesk.core import (
    ConflictException, ResourceNotFoundException, ValidationException
)
from helpdesk.infrastructure.database import utc_now
from helpdesk.sla.application.dto import (
    AtRiskTicketResponse,
    ComplianceRowResponse,
    DashboardStatsResponse,
    BreachCounts,
    PolicyCreateRequest,
    PolicyUpdateRequest,
    ResponseTimeRow,
    TicketReportRow,
    TrendPointResponse,
)
from helpdesk.sla.domain import (
    BreachStatus, SLACalculator, SLADueDates, SLAMetrics, SLAPolicy,
    ensure_utc, is_terminal_status
)
from helpdesk.shared.infrastructure.audit import AuditLogger
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]


# ========== Repository Interfaces (Dependency Inversion) ==========

class ISLAPolicyRepository(ABC):
    """Interface for SLA policy data access."""

    @abstractmethod
    async def list_all(self) -> List[SLAPolicy]:
        """All policies, Critical first."""

    @abstractmethod
    async def get_by_id(self, policy_id: int) -> Optional[SLAPolicy]:
        """Get policy by ID."""

    @abstractmethod
    async def get_active_by_priority(self, priority: str) -> Optional[SLAPolicy]:
        """Get the active policy for a priority."""

    @abstractmethod
    async def create(self, policy: SLAPolicy) -> SLAPolicy:
        """Insert a policy. Raises ConflictException on a duplicate active priority."""

    @abstractmethod
    async def update(self, policy_id: int, fields: Dict[str, Any]) -> Optional[SLAPolicy]:
        """Apply a partial update. Returns None when the policy does not exist."""


class ITicketSLARepository(ABC):
    """Interface for the SLA columns of the ticket table."""

    @abstractmethod
    async def get(self, ticket_id: int) -> Optional[Any]:
        """Load the SLA slice of a ticket (TicketSLA) or None."""

    @abstractmethod
    async def set_due_dates(self, ticket_id: int, due_dates: SLADueDates) -> None:
        """Persist policy id and both deadlines."""

    @abstractmethod
    async def record_first_response(
        self,
        ticket_id: int,
        responded_at: datetime,
        response_breached: bool
    ) -> bool:
        """Set first response only where it is still NULL. Returns True if a row changed."""

    @abstractmethod
    async def save_breaches(self, ticket_id: int, status: BreachStatus) -> None:
        """Persist both breach flags."""

    @abstractmethod
    async def list_open_ticket_ids(self) -> List[int]:
        """IDs of tickets not in a terminal status."""

    @abstractmethod
    def savepoint(self) -> AsyncContextManager[Any]:
        """
        Scope for hook writes.

        A database error inside the block rolls back only the block's own
        statements and leaves the surrounding ticket transaction usable.
        """


class ISLAReportRepository(ABC):
    """
    Interface for reporting reads.

    Counts are aggregated by the store. Only per-ticket response times
    are returned row by row.
    """

    @abstractmethod
    async def count_breaches(self, department_id: Optional[int] = None) -> BreachCounts:
        """Ticket, breach and resolved totals, optionally for one department."""

    @abstractmethod
    async def count_breaches_by_group(
        self,
        group_by: str,
        created_since: Optional[datetime] = None
    ) -> List[BreachCounts]:
        """Totals per department or per assigned agent."""

    @abstractmethod
    async def list_response_times(
        self,
        department_id: Optional[int] = None,
        created_since: Optional[datetime] = None
    ) -> List[ResponseTimeRow]:
        """Creation and first-response times of responded tickets."""

    @abstractmethod
    async def list_rows(
        self,
        created_since: Optional[datetime] = None,
        open_only: bool = False,
        due_before: Optional[datetime] = None
    ) -> List[TicketReportRow]:
        """Ticket rows joined with department and assignee."""


# ========== Application Services ==========

class SLAPolicyService:
    """
    Policy store operations.

    Invariant: at most one active policy per priority. The repository's
    unique index enforces it; the service checks first so the common case
    fails cleanly without a write.
    """

    def __init__(
        self,
        policy_repository: ISLAPolicyRepository,
        audit_logger: Optional[AuditLogger] = None
    ):
        self._policy_repo = policy_repository
        self._audit = audit_logger

    async def list_policies(self) -> List[SLAPolicy]:
        return await self._policy_repo.list_all()

    async def get_policy(self, policy_id: int) -> SLAPolicy:
        policy = await self._policy_repo.get_by_id(policy_id)
        if policy is None:
            raise ResourceNotFoundException("SLA policy", policy_id)
        return policy

    async def get_policy_by_priority(self, priority: str) -> SLAPolicy:
        policy = await self._policy_repo.get_active_by_priority(priority)
        if policy is None:
            raise ResourceNotFoundException(
                f"Active SLA policy for priority '{priority}'"
            )
        return policy

    async def create_policy(
        self,
        data: Union[PolicyCreateRequest, Dict[str, Any]],
        actor_id: Optional[int] = None
    ) -> int:
        """
        Create a policy.

        Returns:
            The new policy id

        Raises:
            ValidationException: missing or invalid fields
            ConflictException: an active policy already exists for the priority
        """
        if not isinstance(data, PolicyCreateRequest):
            try:
                data = PolicyCreateRequest.model_validate(data)
            except ValidationError as e:
                raise ValidationException(
                    "Invalid SLA policy",
                    {"errors": e.errors(include_url=False, include_context=False)}
                ) from e

        if data.is_active and await self._policy_repo.get_active_by_priority(data.priority):
            raise ConflictException(
                "SLA policy",
                f"priority '{data.priority}' already has an active policy",
                {"priority": data.priority}
            )

        policy = await self._policy_repo.create(SLAPolicy(
            id=None,
            name=data.name,
            priority=data.priority,
            response_time_hours=data.response_time_hours,
            resolution_time_hours=data.resolution_time_hours,
            is_active=data.is_active,
        ))

        logger.info(
            "SLA policy created",
            extra={"policy_id": policy.id, "priority": policy.priority}
        )
        if self._audit:
            await self._audit.record(
                "SLA Policy Created", "sla_policy", policy.id,
                details={
                    "priority": policy.priority,
                    "response_time_hours": policy.response_time_hours,
                    "resolution_time_hours": policy.resolution_time_hours,
                },
                user_id=actor_id,
            )
        return policy.id

    async def update_policy(
        self,
        policy_id: int,
        updates: Union[PolicyUpdateRequest, Dict[str, Any]],
        actor_id: Optional[int] = None
    ) -> SLAPolicy:
        """
        Apply a partial update.

        Only name, response_time_hours, resolution_time_hours and is_active
        are applied; unrecognized keys are ignored.

        Raises:
            ValidationException: a recognized field has an invalid value
            ConflictException: activating would give the priority two active policies
        """
        if not isinstance(updates, PolicyUpdateRequest):
            try:
                updates = PolicyUpdateRequest.model_validate(updates)
            except ValidationError as e:
                raise ValidationException(
                    "Invalid SLA policy update",
                    {"errors": e.errors(include_url=False, include_context=False)}
                ) from e

        existing = await self.get_policy(policy_id)
        changes = updates.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return existing

        if changes.get("is_active") and not existing.is_active:
            active = await self._policy_repo.get_active_by_priority(existing.priority)
            if active is not None and active.id != policy_id:
                raise ConflictException(
                    "SLA policy",
                    f"priority '{existing.priority}' already has an active policy",
                    {"priority": existing.priority, "active_policy_id": active.id}
                )

        policy = await self._policy_repo.update(policy_id, changes)
        if policy is None:
            raise ResourceNotFoundException("SLA policy", policy_id)

        logger.info(
            "SLA policy updated",
            extra={"policy_id": policy_id, "fields": sorted(changes)}
        )
        if self._audit:
            await self._audit.record(
                "SLA Policy Updated", "sla_policy", policy_id,
                details={"changes": changes}, user_id=actor_id,
            )
        return policy


class SLATrackingService:
    """
    Per-ticket SLA tracking.

    The three lifecycle hooks (initialize_sla, record_first_response,
    check_and_update_breaches) are best-effort: failures are logged and
    never propagate into the ticket operation that triggered them. Each
    hook writes inside a savepoint so a failed statement cannot poison the
    caller's transaction.
    """

    def __init__(
        self,
        policy_repository: ISLAPolicyRepository,
        ticket_repository: ITicketSLARepository,
        clock: Clock = utc_now
    ):
        self._policy_repo = policy_repository
        self._ticket_repo = ticket_repository
        self._clock = clock

    async def calculate_sla_dates(self, ticket_id: int, priority: str) -> SLADueDates:
        """
        Compute due dates from the ticket's persisted creation time.

        Raises:
            ResourceNotFoundException: unknown ticket or no active policy
        """
        ticket = await self._ticket_repo.get(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

        policy = await self._policy_repo.get_active_by_priority(priority)
        if policy is None:
            raise ResourceNotFoundException(
                f"Active SLA policy for priority '{priority}'"
            )

        return SLACalculator.calculate_due_dates(ticket.created_at, policy)

    async def initialize_sla(self, ticket_id: int, priority: str) -> Optional[SLADueDates]:
        """Attach policy and deadlines to a newly created ticket. Never raises."""
        try:
            async with self._ticket_repo.savepoint():
                due_dates = await self.calculate_sla_dates(ticket_id, priority)
                await self._ticket_repo.set_due_dates(ticket_id, due_dates)
        except ResourceNotFoundException as e:
            logger.warning(
                "SLA not initialized",
                extra={"ticket_id": ticket_id, "priority": priority, "error": e.message}
            )
            return None
        except Exception as e:
            logger.error(
                "Error initializing SLA",
                extra={"ticket_id": ticket_id, "priority": priority, "error": str(e)}
            )
            return None

        logger.info(
            "SLA initialized",
            extra={
                "ticket_id": ticket_id,
                "policy_id": due_dates.policy_id,
                "response_due": due_dates.response_due.isoformat(),
                "resolution_due": due_dates.resolution_due.isoformat()
            }
        )
        return due_dates

    async def record_first_response(self, ticket_id: int) -> bool:
        """
        Record the first agent response and whether it was late.

        Only the first successful call writes; later calls leave the stored
        timestamp untouched. Never raises.

        Returns:
            True if this call recorded the response
        """
        try:
            async with self._ticket_repo.savepoint():
                ticket = await self._ticket_repo.get(ticket_id)
                if ticket is None or ticket.first_response_at is not None:
                    return False

                now = self._clock()
                late = bool(ticket.response_breached) or SLACalculator.is_past_due(
                    ticket.response_due, now
                )
                recorded = await self._ticket_repo.record_first_response(ticket_id, now, late)
        except Exception as e:
            logger.error(
                "Error recording first response",
                extra={"ticket_id": ticket_id, "error": str(e)}
            )
            return False

        if recorded:
            logger.info(
                "First response recorded",
                extra={"ticket_id": ticket_id, "response_breached": late}
            )
        return recorded

    async def check_breaches(self, ticket_id: int) -> BreachStatus:
        """
        Evaluate and persist breach flags for one ticket.

        Writes only when a flag changed.

        Raises:
            ResourceNotFoundException: unknown ticket
        """
        ticket = await self._ticket_repo.get(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

        status = SLACalculator.evaluate_breaches(ticket, self._clock())

        if status != ticket.breach_status:
            await self._ticket_repo.save_breaches(ticket_id, status)
            logger.info(
                "SLA breach flags changed",
                extra={"ticket_id": ticket_id, **status.to_dict()}
            )
        return status

    async def check_and_update_breaches(self, ticket_id: int) -> BreachStatus:
        """Hook variant of check_breaches. Never raises."""
        try:
            async with self._ticket_repo.savepoint():
                return await self.check_breaches(ticket_id)
        except Exception as e:
            logger.error(
                "Error checking breaches",
                extra={"ticket_id": ticket_id, "error": str(e)}
            )
            return BreachStatus(response_breached=False, resolution_breached=False)

    async def check_all_breaches(self) -> Dict[str, int]:
        """
        Sweep every non-terminal ticket through the breach evaluator.

        Tickets are independent; order does not matter and re-running the
        sweep is safe.
        """
        ticket_ids = await self._ticket_repo.list_open_ticket_ids()

        checked = 0
        breached = 0
        for ticket_id in ticket_ids:
            try:
                status = await self.check_breaches(ticket_id)
            except ResourceNotFoundException:
                # Deleted between listing and evaluation
                continue
            checked += 1
            if status.any_breached:
                breached += 1

        logger.info(
            "Breach sweep complete",
            extra={"checked_tickets": checked, "breached_tickets": breached}
        )
        return {"checked_tickets": checked, "breached_tickets": breached}

    async def get_ticket_sla_metrics(
        self,
        ticket_id: int,
        refresh: bool = False
    ) -> Optional[SLAMetrics]:
        """
        SLA metrics for a ticket, or None if it does not exist.

        Args:
            ticket_id: Ticket ID
            refresh: Run the breach evaluator before reading
        """
        if refresh:
            try:
                await self.check_breaches(ticket_id)
            except ResourceNotFoundException:
                return None

        ticket = await self._ticket_repo.get(ticket_id)
        if ticket is None:
            return None

        policy = None
        if ticket.policy_id is not None:
            policy = await self._policy_repo.get_by_id(ticket.policy_id)

        now = self._clock()
        return SLAMetrics(
            ticket_id=ticket.ticket_id,
            status=ticket.status,
            policy_id=ticket.policy_id,
            policy_name=policy.name if policy else None,
            response_time_hours=policy.response_time_hours if policy else None,
            resolution_time_hours=policy.resolution_time_hours if policy else None,
            response_due=ensure_utc(ticket.response_due),
            resolution_due=ensure_utc(ticket.resolution_due),
            first_response_at=ensure_utc(ticket.first_response_at),
            response_breached=bool(ticket.response_breached),
            resolution_breached=bool(ticket.resolution_breached),
            response_time_remaining_seconds=SLACalculator.remaining_seconds(ticket.response_due, now),
            resolution_time_remaining_seconds=SLACalculator.remaining_seconds(ticket.resolution_due, now),
            response_time_used_seconds=SLACalculator.elapsed_seconds(
                ticket.created_at, ticket.first_response_at
            ),
            sla_state=ticket.state,
        )


class SLAReportingService:
    """
    Read-only aggregation over the persisted breach flags.

    Rates are zero-guarded: breach rates are 0 and compliance rates are
    100 when a group has no tickets.
    """

    def __init__(
        self,
        report_repository: ISLAReportRepository,
        clock: Clock = utc_now
    ):
        self._report_repo = report_repository
        self._clock = clock

    async def get_dashboard_stats(self, department_id: Optional[int] = None) -> DashboardStatsResponse:
        counts = await self._report_repo.count_breaches(department_id=department_id)
        response_times = [
            SLACalculator.elapsed_seconds(r.created_at, r.first_response_at)
            for r in await self._report_repo.list_response_times(department_id=department_id)
        ]
        avg_response = round(sum(response_times) / len(response_times)) if response_times else 0

        total = counts.total_tickets
        return DashboardStatsResponse(
            total_tickets=total,
            response_breached=counts.response_breached,
            resolution_breached=counts.resolution_breached,
            resolved_tickets=counts.resolved,
            response_breach_rate=SLACalculator.breach_rate(counts.response_breached, total),
            resolution_breach_rate=SLACalculator.breach_rate(counts.resolution_breached, total),
            avg_response_time_seconds=avg_response,
        )

    async def get_tickets_at_risk(self, hours_warning: int = 2) -> List[AtRiskTicketResponse]:
        """
        Non-terminal tickets with a deadline before now + ``hours_warning``.

        Sorted by priority (Critical first), then by the sooner deadline.
        """
        if hours_warning < 0:
            raise ValidationException("hours_warning must not be negative")

        warning_time = ensure_utc(self._clock()) + timedelta(hours=hours_warning)
        rows = await self._report_repo.list_rows(open_only=True, due_before=warning_time)

        results = []
        for row in rows:
            response_due = ensure_utc(row.response_due)
            resolution_due = ensure_utc(row.resolution_due)
            results.append((row, AtRiskTicketResponse(
                id=row.ticket_id,
                title=row.title,
                priority=row.priority,
                status=row.status,
                created_at=ensure_utc(row.created_at),
                sla_response_due=response_due,
                sla_resolution_due=resolution_due,
                sla_first_response_at=ensure_utc(row.first_response_at),
                agent_name=row.agent_name,
                department_name=row.department_name,
                response_at_risk=(
                    response_due is not None
                    and response_due < warning_time
                    and row.first_response_at is None
                ),
                resolution_at_risk=(
                    resolution_due is not None
                    and resolution_due < warning_time
                    and not is_terminal_status(row.status)
                ),
            )))

        def sort_key(item):
            row, _ = item
            dues = [d for d in (ensure_utc(row.response_due), ensure_utc(row.resolution_due)) if d]
            soonest = min(dues) if dues else datetime.max.replace(tzinfo=timezone.utc)
            return (PRIORITY_RANK.get(row.priority, len(VALID_PRIORITIES) + 1), soonest)

        results.sort(key=sort_key)
        return [response for _, response in results]

    async def get_compliance_report(
        self,
        group_by: str = ReportGrouping.DEPARTMENT,
        period_days: int = 30
    ) -> List[ComplianceRowResponse]:
        """
        Compliance per department or agent over tickets created in the
        trailing ``period_days``.

        Agent grouping skips unassigned tickets; department grouping keeps
        tickets without a department under a null group. Rows are ordered
        by response breaches, most first.
        """
        if group_by not in VALID_GROUPINGS:
            raise ValidationException(
                f"group_by must be one of {VALID_GROUPINGS}", {"group_by": group_by}
            )
        if period_days < 1:
            raise ValidationException("period_days must be at least 1")

        by_agent = group_by == ReportGrouping.AGENT
        since = ensure_utc(self._clock()) - timedelta(days=period_days)
        groups = await self._report_repo.count_breaches_by_group(group_by, created_since=since)

        response_hours: Dict[Optional[int], List[float]] = defaultdict(list)
        for r in await self._report_repo.list_response_times(created_since=since):
            key = r.agent_id if by_agent else r.department_id
            response_hours[key].append(
                SLACalculator.elapsed_seconds(r.created_at, r.first_response_at) / 3600
            )

        report = []
        for group in groups:
            hours = response_hours.get(group.group_id)
            total = group.total_tickets
            report.append(ComplianceRowResponse(
                group_id=group.group_id,
                group_name=group.group_name,
                total_tickets=total,
                response_breached=group.response_breached,
                resolution_breached=group.resolution_breached,
                resolved=group.resolved,
                avg_response_time_hours=round(sum(hours) / len(hours), 2) if hours else None,
                response_compliance_rate=SLACalculator.compliance_rate(group.response_breached, total),
                resolution_compliance_rate=SLACalculator.compliance_rate(group.resolution_breached, total),
            ))

        report.sort(key=lambda r: r.response_breached, reverse=True)
        return report

    async def get_breach_trend(self, days: int = 30) -> List[TrendPointResponse]:
        """Daily breach counts by ticket creation day, oldest first, gaps filled with zeros."""
        if days < 1:
            raise ValidationException("days must be at least 1")

        today = ensure_utc(self._clock()).date()
        first_day = today - timedelta(days=days - 1)
        since = datetime.combine(first_day, time.min, tzinfo=timezone.utc)
        rows = await self._report_repo.list_rows(created_since=since)

        buckets: Dict[date, List[int]] = {
            first_day + timedelta(days=i): [0, 0, 0] for i in range(days)
        }
        for row in rows:
            day = ensure_utc(row.created_at).date()
            if day not in buckets:
                continue
            bucket = buckets[day]
            bucket[0] += 1
            bucket[1] += int(bool(row.response_breached))
            bucket[2] += int(bool(row.resolution_breached))

        return [
            TrendPointResponse(
                day=day,
                total_tickets=counts[0],
                response_breached=counts[1],
                resolution_breached=counts[2],
            )
            for day, counts in sorted(buckets.items())
        ]

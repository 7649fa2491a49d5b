"""
Shared fixtures.

Every test that touches the database gets a fresh SQLite file under
``tmp_path``. Services share one frozen clock so deadlines are
deterministic.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from helpdesk.infrastructure.database import (
    close_database, create_tables, get_session_context, init_database
)
from helpdesk.shared.infrastructure.audit import AuditLogger
from helpdesk.sla.application import (
    SLAPolicyService, SLAReportingService, SLATrackingService
)
from helpdesk.sla.infrastructure import (
    SQLAlchemyPolicyRepository,
    SQLAlchemyReportRepository,
    SQLAlchemyTicketSLARepository,
)
from helpdesk.sla.infrastructure.external import DEFAULT_POLICIES
from helpdesk.tickets.application import TicketService
from helpdesk.tickets.infrastructure import (
    DepartmentModel, SQLAlchemyTicketRepository, TicketModel, UserModel
)

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(T0)


@pytest_asyncio.fixture
async def database(tmp_path):
    init_database(f"sqlite+aiosqlite:///{tmp_path / 'helpdesk.db'}")
    await create_tables()
    yield
    await close_database()


@pytest_asyncio.fixture
async def session(database):
    async with get_session_context() as session:
        yield session


@pytest.fixture
def audit(session):
    return AuditLogger(session)


@pytest.fixture
def policy_service(session, audit):
    return SLAPolicyService(SQLAlchemyPolicyRepository(session), audit)


@pytest.fixture
def tracking(session, clock):
    return SLATrackingService(
        SQLAlchemyPolicyRepository(session),
        SQLAlchemyTicketSLARepository(session),
        clock=clock
    )


@pytest.fixture
def reporting(session, clock):
    return SLAReportingService(SQLAlchemyReportRepository(session), clock=clock)


@pytest.fixture
def ticket_service(session, tracking, clock):
    return TicketService(SQLAlchemyTicketRepository(session), tracking, clock=clock)


@pytest_asyncio.fixture
async def default_policies(policy_service):
    """Critical 1/4, High 4/24, Medium 8/48, Low 24/72; returns {priority: id}."""
    ids = {}
    for entry in DEFAULT_POLICIES:
        ids[entry["priority"]] = await policy_service.create_policy(dict(entry))
    return ids


@pytest_asyncio.fixture
async def people(session):
    """Two departments, two agents and a customer."""
    network = DepartmentModel(name="Network")
    billing = DepartmentModel(name="Billing")
    alice = UserModel(name="Alice Agent", email="alice@example.com", role="agent")
    bob = UserModel(name="Bob Agent", email="bob@example.com", role="agent")
    carol = UserModel(name="Carol Customer", email="carol@example.com", role="customer")
    session.add_all([network, billing, alice, bob, carol])
    await session.flush()
    return {
        "network": network.id,
        "billing": billing.id,
        "alice": alice.id,
        "bob": bob.id,
        "carol": carol.id,
    }


@pytest.fixture
def add_ticket(session, clock):
    """
    Insert a ticket row directly with explicit SLA columns.

    Deadlines default to the Critical policy offsets from ``created_at``.
    """

    async def _add(
        priority="Critical",
        status="open",
        created_at=None,
        response_hours=1,
        resolution_hours=4,
        **columns
    ):
        created_at = created_at or clock()
        values = dict(
            title=columns.pop("title", f"{priority} ticket"),
            description="",
            priority=priority,
            status=status,
            created_at=created_at,
            sla_response_due=created_at + timedelta(hours=response_hours),
            sla_resolution_due=created_at + timedelta(hours=resolution_hours),
        )
        values.update(columns)
        ticket = TicketModel(**values)
        session.add(ticket)
        await session.flush()
        return ticket.id

    return _add

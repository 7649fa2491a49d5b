"""Background breach sweep and the scheduler that drives it."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select

from helpdesk.infrastructure.database import get_session_context, utc_now
from helpdesk.main import sla_sweep_job
from helpdesk.shared.infrastructure.audit import AuditLogModel
from helpdesk.sla.infrastructure import SLAScheduler
from helpdesk.tickets.infrastructure import TicketModel


async def add_overdue_ticket():
    created = utc_now() - timedelta(hours=2)
    async with get_session_context() as session:
        ticket = TicketModel(
            title="Overdue", description="", priority="Critical", status="open",
            created_at=created,
            sla_response_due=created + timedelta(hours=1),
            sla_resolution_due=created + timedelta(hours=4),
        )
        session.add(ticket)
        await session.flush()
        return ticket.id


async def sweep_entries():
    async with get_session_context() as session:
        result = await session.execute(
            select(AuditLogModel).where(AuditLogModel.action == "SLA Breach Sweep")
        )
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_sweep_job_persists_flags_and_audits(database):
    ticket_id = await add_overdue_ticket()

    await sla_sweep_job()

    async with get_session_context() as session:
        stored = await session.get(TicketModel, ticket_id)
    entries = await sweep_entries()

    assert stored.sla_response_breached is True
    assert stored.sla_resolution_breached is False
    assert len(entries) == 1
    assert entries[0].entity_type == "ticket"
    assert entries[0].user_id is None
    assert entries[0].details == {"checked_tickets": 1, "breached_tickets": 1}


@pytest.mark.asyncio
async def test_sweep_job_with_no_open_tickets(database):
    await sla_sweep_job()

    entries = await sweep_entries()
    assert entries[0].details == {"checked_tickets": 0, "breached_tickets": 0}


@pytest.mark.asyncio
async def test_start_is_idempotent_and_stop_resets():
    scheduler = SLAScheduler(interval_seconds=3600)

    async def job():
        pass

    assert scheduler.is_running is False

    await scheduler.start(job)
    await scheduler.start(job)
    assert scheduler.is_running is True
    assert [j.id for j in scheduler._scheduler.get_jobs()] == ["sla_breach_sweep"]

    await scheduler.stop()
    assert scheduler.is_running is False

    await scheduler.stop()
    assert scheduler.is_running is False


@pytest.mark.asyncio
async def test_scheduler_runs_the_sweep(database):
    ticket_id = await add_overdue_ticket()
    scheduler = SLAScheduler(interval_seconds=1)

    await scheduler.start(sla_sweep_job)
    try:
        entries = []
        for _ in range(50):
            await asyncio.sleep(0.1)
            entries = await sweep_entries()
            if entries:
                break
    finally:
        await scheduler.stop()

    async with get_session_context() as session:
        stored = await session.get(TicketModel, ticket_id)

    assert entries, "sweep did not run"
    assert stored.sla_response_breached is True

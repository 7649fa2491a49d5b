"""Lifecycle hooks and breach evaluation against the ticket table."""

from datetime import timedelta

import pytest

from helpdesk.core import ResourceNotFoundException
from helpdesk.sla.domain import BreachStatus, ensure_utc
from helpdesk.tickets.application import TicketCreateRequest

from conftest import T0


async def new_ticket(ticket_service, priority="Critical"):
    ticket = await ticket_service.create_ticket(
        TicketCreateRequest(title="Mail server down", priority=priority)
    )
    return ticket.id


@pytest.mark.asyncio
async def test_critical_scenario_end_to_end(ticket_service, tracking, clock, default_policies):
    ticket_id = await new_ticket(ticket_service)
    ticket = await ticket_service.get_ticket(ticket_id)
    assert ensure_utc(ticket.sla_response_due) == T0 + timedelta(hours=1)
    assert ensure_utc(ticket.sla_resolution_due) == T0 + timedelta(hours=4)
    assert ticket.sla_policy_id == default_policies["Critical"]

    clock.advance(hours=2)
    assert await tracking.check_breaches(ticket_id) == BreachStatus(True, False)

    clock.advance(hours=3)
    assert await tracking.check_breaches(ticket_id) == BreachStatus(True, True)

    await ticket_service.update_status(ticket_id, "Resolved")
    assert await tracking.check_breaches(ticket_id) == BreachStatus(True, False)

    stored = await ticket_service.get_ticket(ticket_id)
    assert stored.sla_response_breached is True
    assert stored.sla_resolution_breached is False


@pytest.mark.asyncio
async def test_calculate_dates_uses_persisted_creation_time(tracking, add_ticket, default_policies):
    created = T0 - timedelta(days=2)
    ticket_id = await add_ticket("High", created_at=created)

    due = await tracking.calculate_sla_dates(ticket_id, "High")

    assert due.policy_id == default_policies["High"]
    assert due.response_due == created + timedelta(hours=4)
    assert due.resolution_due == created + timedelta(hours=24)


@pytest.mark.asyncio
async def test_calculate_dates_for_unknown_ticket(tracking, default_policies):
    with pytest.raises(ResourceNotFoundException):
        await tracking.calculate_sla_dates(404, "Critical")


@pytest.mark.asyncio
async def test_initialize_is_idempotent(tracking, add_ticket, default_policies):
    ticket_id = await add_ticket("Medium", sla_response_due=None, sla_resolution_due=None)

    first = await tracking.initialize_sla(ticket_id, "Medium")
    second = await tracking.initialize_sla(ticket_id, "Medium")

    assert first == second
    assert first.response_due == T0 + timedelta(hours=8)


@pytest.mark.asyncio
async def test_initialize_without_policy_is_silent(ticket_service, tracking):
    ticket_id = await new_ticket(ticket_service, priority="Low")

    assert await tracking.initialize_sla(ticket_id, "Low") is None
    ticket = await ticket_service.get_ticket(ticket_id)
    assert ticket.sla_policy_id is None
    assert ticket.sla_response_due is None


@pytest.mark.asyncio
async def test_initialize_unknown_ticket_is_silent(tracking, default_policies):
    assert await tracking.initialize_sla(12345, "Critical") is None


@pytest.mark.asyncio
async def test_first_response_recorded_once(tracking, ticket_service, clock, default_policies):
    ticket_id = await new_ticket(ticket_service)

    clock.advance(minutes=20)
    assert await tracking.record_first_response(ticket_id) is True
    clock.advance(hours=3)
    assert await tracking.record_first_response(ticket_id) is False
    assert await tracking.record_first_response(ticket_id) is False

    ticket = await ticket_service.get_ticket(ticket_id)
    assert ensure_utc(ticket.sla_first_response_at) == T0 + timedelta(minutes=20)
    assert ticket.sla_response_breached is False


@pytest.mark.asyncio
async def test_late_first_response_is_flagged(tracking, ticket_service, clock, default_policies):
    ticket_id = await new_ticket(ticket_service)

    clock.advance(minutes=90)
    assert await tracking.record_first_response(ticket_id) is True

    ticket = await ticket_service.get_ticket(ticket_id)
    assert ticket.sla_response_breached is True


@pytest.mark.asyncio
async def test_response_breach_survives_later_response(tracking, ticket_service, clock, default_policies):
    ticket_id = await new_ticket(ticket_service)
    clock.advance(hours=2)
    await tracking.check_breaches(ticket_id)

    await tracking.record_first_response(ticket_id)
    status = await tracking.check_breaches(ticket_id)

    assert status.response_breached is True


@pytest.mark.asyncio
async def test_check_breaches_unknown_ticket(tracking):
    with pytest.raises(ResourceNotFoundException):
        await tracking.check_breaches(999)


@pytest.mark.asyncio
async def test_hook_variant_swallows_missing_ticket(tracking):
    assert await tracking.check_and_update_breaches(999) == BreachStatus(False, False)


@pytest.mark.asyncio
async def test_unchanged_flags_are_not_rewritten(tracking, add_ticket, clock, monkeypatch):
    ticket_id = await add_ticket("Critical")
    writes = []
    real_save = tracking._ticket_repo.save_breaches

    async def counting_save(ticket_id, status):
        writes.append(status)
        await real_save(ticket_id, status)

    monkeypatch.setattr(tracking._ticket_repo, "save_breaches", counting_save)

    await tracking.check_breaches(ticket_id)
    clock.advance(hours=2)
    await tracking.check_breaches(ticket_id)
    await tracking.check_breaches(ticket_id)

    assert writes == [BreachStatus(True, False)]


@pytest.mark.asyncio
async def test_policy_change_does_not_move_existing_deadlines(
    ticket_service, policy_service, default_policies
):
    ticket_id = await new_ticket(ticket_service)
    await policy_service.update_policy(default_policies["Critical"], {"response_time_hours": 3})

    ticket = await ticket_service.get_ticket(ticket_id)

    assert ensure_utc(ticket.sla_response_due) == T0 + timedelta(hours=1)


@pytest.mark.asyncio
async def test_sweep_counts_open_tickets_only(tracking, add_ticket, clock):
    await add_ticket("Critical")
    await add_ticket("High", response_hours=4, resolution_hours=24)
    await add_ticket("Critical", status="closed")
    await add_ticket("Low", sla_response_due=None, sla_resolution_due=None)

    clock.advance(hours=2)
    summary = await tracking.check_all_breaches()

    assert summary == {"checked_tickets": 3, "breached_tickets": 1}
    assert await tracking.check_all_breaches() == summary


@pytest.mark.asyncio
async def test_metrics_refresh_and_derived_fields(tracking, ticket_service, clock, default_policies):
    ticket_id = await new_ticket(ticket_service)
    clock.advance(minutes=30)
    await tracking.record_first_response(ticket_id)
    clock.advance(minutes=15)

    metrics = await tracking.get_ticket_sla_metrics(ticket_id, refresh=True)

    assert metrics.policy_name == "Critical Priority SLA"
    assert metrics.response_time_hours == 1
    assert metrics.response_time_used_seconds == 1800.0
    assert metrics.response_time_remaining_seconds == 900.0
    assert metrics.resolution_time_remaining_seconds == 3.25 * 3600
    assert metrics.response_breached is False
    assert metrics.sla_state == "responded"
    assert metrics.is_any_breached is False


@pytest.mark.asyncio
async def test_metrics_for_unknown_ticket(tracking):
    assert await tracking.get_ticket_sla_metrics(31337) is None
    assert await tracking.get_ticket_sla_metrics(31337, refresh=True) is None


@pytest.mark.asyncio
async def test_response_flag_follows_deadline_even_after_reply(
    tracking, ticket_service, clock, default_policies
):
    """
    The evaluator compares the response deadline with the clock only; an
    on-time first response does not stop the flag from being set once the
    deadline passes. Pinned so any change to this rule is deliberate.
    """
    ticket_id = await new_ticket(ticket_service)
    clock.advance(minutes=10)
    await tracking.record_first_response(ticket_id)

    clock.advance(hours=1)
    status = await tracking.check_breaches(ticket_id)
    metrics = await tracking.get_ticket_sla_metrics(ticket_id)

    assert status.response_breached is True
    assert metrics.response_time_remaining_seconds == 0.0
    assert metrics.sla_state == "breached"

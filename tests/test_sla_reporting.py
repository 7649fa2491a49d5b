"""Dashboard statistics, at-risk list, compliance report and trend."""

from datetime import timedelta

import pytest

from helpdesk.core import ValidationException

from conftest import T0


@pytest.mark.asyncio
async def test_stats_with_no_tickets(reporting, database):
    stats = await reporting.get_dashboard_stats()

    assert stats.total_tickets == 0
    assert stats.response_breach_rate == 0.0
    assert stats.resolution_breach_rate == 0.0
    assert stats.avg_response_time_seconds == 0


@pytest.mark.asyncio
async def test_stats_counts_and_department_filter(reporting, add_ticket, people):
    network, billing = people["network"], people["billing"]
    await add_ticket(department_id=network, sla_first_response_at=T0 + timedelta(minutes=30))
    await add_ticket(department_id=network, sla_first_response_at=T0 + timedelta(minutes=90),
                     sla_response_breached=True, sla_resolution_breached=True)
    await add_ticket(department_id=network, status="resolved")
    await add_ticket(department_id=billing, sla_response_breached=True)

    stats = await reporting.get_dashboard_stats()
    assert stats.total_tickets == 4
    assert stats.response_breached == 2
    assert stats.resolution_breached == 1
    assert stats.resolved_tickets == 1
    assert stats.response_breach_rate == 50.0
    assert stats.resolution_breach_rate == 25.0
    assert stats.avg_response_time_seconds == 3600

    network_stats = await reporting.get_dashboard_stats(department_id=network)
    assert network_stats.total_tickets == 3
    assert network_stats.response_breach_rate == 33.33


@pytest.mark.asyncio
async def test_ticket_due_in_ninety_minutes_is_at_risk(reporting, add_ticket):
    ticket_id = await add_ticket(
        "High",
        sla_response_due=T0 + timedelta(minutes=90),
        sla_resolution_due=T0 + timedelta(hours=20),
    )

    at_risk = await reporting.get_tickets_at_risk(2)

    assert [t.id for t in at_risk] == [ticket_id]
    assert at_risk[0].response_at_risk is True
    assert at_risk[0].resolution_at_risk is False


@pytest.mark.asyncio
async def test_at_risk_ordering_and_exclusions(reporting, add_ticket, people):
    low_soon = await add_ticket("Low", created_at=T0 - timedelta(minutes=50))
    critical_later = await add_ticket("Critical", created_at=T0 - timedelta(minutes=5))
    critical_sooner = await add_ticket("Critical", created_at=T0 - timedelta(minutes=20),
                                       assigned_to=people["alice"])
    await add_ticket("Critical", status="closed", created_at=T0 - timedelta(minutes=50))
    await add_ticket("Medium", response_hours=8, resolution_hours=48)

    at_risk = await reporting.get_tickets_at_risk(2)

    assert [t.id for t in at_risk] == [critical_sooner, critical_later, low_soon]
    assert at_risk[0].agent_name == "Alice Agent"


@pytest.mark.asyncio
async def test_responded_ticket_is_not_response_at_risk(reporting, add_ticket):
    await add_ticket("Critical", sla_first_response_at=T0)

    at_risk = await reporting.get_tickets_at_risk(2)

    assert at_risk[0].response_at_risk is False


@pytest.mark.asyncio
async def test_at_risk_rejects_negative_window(reporting):
    with pytest.raises(ValidationException):
        await reporting.get_tickets_at_risk(-1)


@pytest.mark.asyncio
async def test_compliance_by_department(reporting, add_ticket, people):
    network, billing = people["network"], people["billing"]
    await add_ticket(department_id=billing)
    await add_ticket(department_id=network, sla_first_response_at=T0 + timedelta(minutes=30))
    await add_ticket(department_id=network, sla_first_response_at=T0 + timedelta(minutes=90),
                     sla_response_breached=True)
    await add_ticket(department_id=network, status="closed")
    # Outside the 30 day period
    await add_ticket(department_id=billing, created_at=T0 - timedelta(days=40),
                     sla_response_breached=True)

    report = await reporting.get_compliance_report("department", 30)

    assert [row.group_name for row in report] == ["Network", "Billing"]
    network_row = report[0]
    assert network_row.total_tickets == 3
    assert network_row.response_breached == 1
    assert network_row.resolved == 1
    assert network_row.avg_response_time_hours == 1.0
    assert network_row.response_compliance_rate == 66.67
    assert network_row.resolution_compliance_rate == 100.0
    assert report[1].avg_response_time_hours is None


@pytest.mark.asyncio
async def test_compliance_by_agent_skips_unassigned(reporting, add_ticket, people):
    await add_ticket(assigned_to=people["alice"], sla_resolution_breached=True)
    await add_ticket(assigned_to=people["bob"])
    await add_ticket(assigned_to=people["bob"])
    await add_ticket()

    report = await reporting.get_compliance_report(group_by="agent")

    by_name = {row.group_name: row for row in report}
    assert set(by_name) == {"Alice Agent", "Bob Agent"}
    assert by_name["Alice Agent"].resolution_compliance_rate == 0.0
    assert by_name["Bob Agent"].total_tickets == 2


@pytest.mark.asyncio
async def test_stats_and_compliance_are_counted_by_the_store(reporting, add_ticket, people, monkeypatch):
    network = people["network"]
    await add_ticket(department_id=network, assigned_to=people["alice"],
                     sla_first_response_at=T0 + timedelta(hours=2), sla_response_breached=True)
    await add_ticket(department_id=network, assigned_to=people["alice"], status="Resolved")
    await add_ticket(department_id=None, sla_resolution_breached=True)

    async def no_row_reads(*args, **kwargs):
        raise AssertionError("ticket rows should not be loaded")

    monkeypatch.setattr(reporting._report_repo, "list_rows", no_row_reads)

    stats = await reporting.get_dashboard_stats()
    assert (stats.total_tickets, stats.response_breached, stats.resolution_breached) == (3, 1, 1)
    assert stats.resolved_tickets == 1
    assert stats.avg_response_time_seconds == 7200

    by_department = {row.group_id: row for row in await reporting.get_compliance_report("department")}
    assert set(by_department) == {network, None}
    assert by_department[network].avg_response_time_hours == 2.0
    assert by_department[None].resolution_breached == 1

    by_agent = await reporting.get_compliance_report("agent")
    assert [(row.group_name, row.total_tickets, row.resolved) for row in by_agent] == [
        ("Alice Agent", 2, 1)
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [
    {"group_by": "priority"},
    {"period_days": 0},
])
async def test_compliance_rejects_bad_arguments(reporting, kwargs):
    with pytest.raises(ValidationException):
        await reporting.get_compliance_report(**kwargs)


@pytest.mark.asyncio
async def test_breach_trend_fills_missing_days(reporting, add_ticket):
    await add_ticket(sla_response_breached=True)
    await add_ticket()
    await add_ticket(created_at=T0 - timedelta(days=2), sla_resolution_breached=True)
    await add_ticket(created_at=T0 - timedelta(days=5))

    trend = await reporting.get_breach_trend(days=3)

    assert [p.day for p in trend] == [
        (T0 - timedelta(days=2)).date(), (T0 - timedelta(days=1)).date(), T0.date()
    ]
    assert [p.total_tickets for p in trend] == [1, 0, 2]
    assert [p.response_breached for p in trend] == [0, 0, 1]
    assert [p.resolution_breached for p in trend] == [1, 0, 0]

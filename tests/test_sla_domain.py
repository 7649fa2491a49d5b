"""SLA calculator and breach rules, no database involved."""

from datetime import datetime, timedelta, timezone

import pytest

from helpdesk.sla.domain import (
    BreachStatus, SLACalculator, SLAPolicy, TicketSLA, ensure_utc,
    is_terminal_status
)

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)
CRITICAL = SLAPolicy(
    id=1, name="Critical Priority SLA", priority="Critical",
    response_time_hours=1, resolution_time_hours=4
)


def critical_ticket(**overrides) -> TicketSLA:
    due = SLACalculator.calculate_due_dates(T0, CRITICAL)
    values = dict(
        ticket_id=10,
        priority="Critical",
        status="open",
        created_at=T0,
        policy_id=due.policy_id,
        response_due=due.response_due,
        resolution_due=due.resolution_due,
    )
    values.update(overrides)
    return TicketSLA(**values)


class TestDueDates:

    def test_wall_clock_hours_from_creation(self):
        due = SLACalculator.calculate_due_dates(T0, CRITICAL)

        assert due.policy_id == 1
        assert due.response_due == T0 + timedelta(hours=1)
        assert due.resolution_due == T0 + timedelta(hours=4)

    def test_deadline_can_fall_on_weekend(self):
        friday_evening = datetime(2024, 3, 8, 22, 0, tzinfo=timezone.utc)
        policy = SLAPolicy(id=2, name="High", priority="High",
                           response_time_hours=4, resolution_time_hours=24)

        due = SLACalculator.calculate_due_dates(friday_evening, policy)

        assert due.response_due.weekday() == 5
        assert due.resolution_due == datetime(2024, 3, 9, 22, 0, tzinfo=timezone.utc)

    def test_naive_creation_time_is_treated_as_utc(self):
        due = SLACalculator.calculate_due_dates(T0.replace(tzinfo=None), CRITICAL)
        assert due.response_due == T0 + timedelta(hours=1)

    def test_policy_rejects_non_positive_hours(self):
        with pytest.raises(ValueError):
            SLAPolicy(id=None, name="Bad", priority="Low",
                      response_time_hours=0, resolution_time_hours=4)


class TestBreachEvaluation:

    def test_critical_ticket_progression(self):
        ticket = critical_ticket()

        at_two_hours = SLACalculator.evaluate_breaches(ticket, T0 + timedelta(hours=2))
        assert at_two_hours == BreachStatus(response_breached=True, resolution_breached=False)

        ticket.response_breached = at_two_hours.response_breached
        at_five_hours = SLACalculator.evaluate_breaches(ticket, T0 + timedelta(hours=5))
        assert at_five_hours == BreachStatus(response_breached=True, resolution_breached=True)

        ticket.resolution_breached = True
        ticket.status = "Resolved"
        after_resolve = SLACalculator.evaluate_breaches(ticket, T0 + timedelta(hours=5))
        assert after_resolve == BreachStatus(response_breached=True, resolution_breached=False)

    def test_deadline_instant_itself_is_not_a_breach(self):
        ticket = critical_ticket()
        result = SLACalculator.evaluate_breaches(ticket, T0 + timedelta(hours=1))
        assert result.response_breached is False

    def test_response_breach_is_sticky(self):
        # Flag already set although "now" is before the deadline
        ticket = critical_ticket(response_breached=True)
        result = SLACalculator.evaluate_breaches(ticket, T0)
        assert result.response_breached is True

    def test_stored_resolution_breach_clears_when_ticket_closes(self):
        """
        Open question: a late resolution stops counting as breached once the
        ticket is resolved or closed. Current behaviour clears the flag; this
        test pins it so a change is a deliberate decision.
        """
        ticket = critical_ticket(status="closed", resolution_breached=True)
        result = SLACalculator.evaluate_breaches(ticket, T0 + timedelta(days=3))
        assert result.resolution_breached is False

    def test_no_deadlines_never_breach(self):
        ticket = TicketSLA(ticket_id=1, priority="Low", status="open", created_at=T0)
        result = SLACalculator.evaluate_breaches(ticket, T0 + timedelta(days=30))
        assert result == BreachStatus(False, False)
        assert ticket.state == "no_sla"


class TestDerivedState:

    @pytest.mark.parametrize("overrides,expected", [
        ({}, "pending"),
        ({"first_response_at": T0 + timedelta(minutes=5)}, "responded"),
        ({"status": "resolved"}, "met"),
        ({"response_breached": True, "status": "closed"}, "breached"),
        ({"policy_id": None}, "no_sla"),
    ])
    def test_state_from_stored_fields(self, overrides, expected):
        assert critical_ticket(**overrides).state == expected

    def test_terminal_status_is_case_insensitive(self):
        assert is_terminal_status("Closed")
        assert is_terminal_status("resolved")
        assert not is_terminal_status("in_progress")
        assert not is_terminal_status(None)


class TestRates:

    def test_zero_tickets(self):
        assert SLACalculator.breach_rate(0, 0) == 0.0
        assert SLACalculator.compliance_rate(0, 0) == 100.0

    def test_rates_round_to_two_places(self):
        assert SLACalculator.breach_rate(1, 3) == 33.33
        assert SLACalculator.compliance_rate(1, 3) == 66.67

    def test_remaining_seconds_floor_at_zero(self):
        due = T0 + timedelta(hours=1)
        assert SLACalculator.remaining_seconds(due, T0) == 3600.0
        assert SLACalculator.remaining_seconds(due, T0 + timedelta(hours=2)) == 0.0
        assert SLACalculator.remaining_seconds(None, T0) is None

    def test_ensure_utc_converts_other_zones(self):
        plus_two = timezone(timedelta(hours=2))
        assert ensure_utc(datetime(2024, 3, 4, 11, 0, tzinfo=plus_two)) == T0

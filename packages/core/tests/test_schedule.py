"""Tests for pay schedule projections."""

from datetime import date

import pytest

from budgetmate_core.models import Frequency, IncomeSource
from budgetmate_core.schedule import (
    PaySchedule,
    Urgency,
    advance_pay_date,
    next_due_date,
    pays_until_due,
    primary_pay_cycle,
    primary_pay_schedule,
)

TODAY = date(2026, 1, 1)


@pytest.fixture
def fortnightly() -> PaySchedule:
    """Paid every two weeks, next on Monday 5 January."""
    return PaySchedule(next_pay_date=date(2026, 1, 5), frequency=Frequency.FORTNIGHTLY)


class TestPrimaryPayCycle:
    """Test suite for primary_pay_cycle."""

    def test_first_active_source(self):
        sources = [
            IncomeSource(id="A", frequency="weekly", is_active=False),
            IncomeSource(id="B", frequency="monthly"),
        ]
        assert primary_pay_cycle(sources) == Frequency.MONTHLY

    def test_no_sources_defaults_to_fortnightly(self):
        assert primary_pay_cycle([]) == Frequency.FORTNIGHTLY

    def test_custom_weeks_source_maps_to_fortnightly(self):
        assert primary_pay_cycle([IncomeSource(id="A", frequency="custom_weeks")]) == Frequency.FORTNIGHTLY


class TestPrimaryPaySchedule:
    """Test suite for primary_pay_schedule."""

    def test_advances_past_dates(self):
        sources = [IncomeSource(id="A", frequency="fortnightly", next_pay_date="2026-01-01")]
        schedule = primary_pay_schedule(sources, today=date(2026, 1, 20))
        assert schedule == PaySchedule(next_pay_date=date(2026, 1, 29), frequency=Frequency.FORTNIGHTLY)

    def test_monthly_clamps_to_month_end(self):
        sources = [IncomeSource(id="A", frequency="monthly", next_pay_date="2026-01-31")]
        schedule = primary_pay_schedule(sources, today=date(2026, 2, 10))
        assert schedule.next_pay_date == date(2026, 2, 28)

    def test_skips_sources_without_dates(self):
        sources = [
            IncomeSource(id="A", frequency="weekly"),
            IncomeSource(id="B", frequency="monthly", next_pay_date="2026-01-15"),
        ]
        schedule = primary_pay_schedule(sources, today=TODAY)
        assert schedule.frequency == Frequency.MONTHLY
        assert schedule.next_pay_date == date(2026, 1, 15)

    def test_none_without_dates(self):
        assert primary_pay_schedule([IncomeSource(id="A")], today=TODAY) is None


class TestAdvancePayDate:
    """Test suite for advance_pay_date."""

    def test_day_based(self):
        assert advance_pay_date(TODAY, Frequency.WEEKLY) == date(2026, 1, 8)
        assert advance_pay_date(TODAY, Frequency.TWICE_MONTHLY) == date(2026, 1, 16)

    def test_month_based(self):
        assert advance_pay_date(date(2026, 11, 30), Frequency.QUARTERLY) == date(2027, 2, 28)
        assert advance_pay_date(TODAY, Frequency.ANNUAL) == date(2027, 1, 1)


class TestNextDueDate:
    """Test suite for next_due_date."""

    def test_later_this_month(self):
        assert next_due_date(15, today=date(2026, 1, 10)) == date(2026, 1, 15)

    def test_today_counts(self):
        assert next_due_date(10, today=date(2026, 1, 10)) == date(2026, 1, 10)

    def test_rolls_to_next_month(self):
        assert next_due_date(5, today=date(2026, 1, 10)) == date(2026, 2, 5)

    def test_rolls_over_year_end(self):
        assert next_due_date(1, today=date(2026, 12, 2)) == date(2027, 1, 1)

    def test_short_month_clamps(self):
        assert next_due_date(31, today=date(2026, 2, 1)) == date(2026, 2, 28)

    def test_date_uses_day_of_month(self):
        assert next_due_date(date(2025, 3, 20), today=date(2026, 1, 25)) == date(2026, 2, 20)

    def test_none(self):
        assert next_due_date(None, today=TODAY) is None


class TestPaysUntilDue:
    """Test suite for pays_until_due."""

    def test_due_before_next_pay(self, fortnightly):
        result = pays_until_due(date(2026, 1, 4), fortnightly, is_funded=False, today=TODAY)
        assert result.pays == 0
        assert result.urgency == Urgency.HIGH
        assert result.display_text == "Due now!"

    def test_overdue(self, fortnightly):
        result = pays_until_due(date(2025, 12, 30), fortnightly, is_funded=False, today=TODAY)
        assert result.pays == -1
        assert result.urgency == Urgency.OVERDUE
        assert result.days_until_due == -2

    def test_one_pay(self, fortnightly):
        result = pays_until_due(date(2026, 1, 10), fortnightly, is_funded=False, today=TODAY)
        assert result.pays == 1
        assert result.display_text == "1 pay!"

    def test_two_pays_medium(self, fortnightly):
        result = pays_until_due(date(2026, 1, 25), fortnightly, is_funded=False, today=TODAY)
        assert result.pays == 2
        assert result.urgency == Urgency.MEDIUM

    def test_four_pays_low(self, fortnightly):
        result = pays_until_due(date(2026, 3, 1), fortnightly, is_funded=False, today=TODAY)
        assert result.pays == 4
        assert result.urgency == Urgency.LOW
        assert result.display_text == "4 pays"

    def test_far_off_has_no_urgency(self, fortnightly):
        result = pays_until_due(date(2026, 4, 1), fortnightly, is_funded=False, today=TODAY)
        assert result.pays == 7
        assert result.urgency == Urgency.NONE

    def test_funded_never_urgent(self, fortnightly):
        result = pays_until_due(date(2026, 1, 4), fortnightly, is_funded=True, today=TODAY)
        assert result.urgency == Urgency.NONE
        assert result.display_text == "Due soon"

    def test_funded_plural(self, fortnightly):
        result = pays_until_due(date(2026, 1, 25), fortnightly, is_funded=True, today=TODAY)
        assert result.display_text == "2 pays"

    def test_stale_schedule_is_advanced(self):
        schedule = PaySchedule(next_pay_date=date(2025, 12, 8), frequency=Frequency.FORTNIGHTLY)
        # advanced to 2026-01-05
        result = pays_until_due(date(2026, 1, 4), schedule, is_funded=False, today=TODAY)
        assert result.pays == 0

"""Tests for envelope and income source coercion."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from budgetmate_core.models import (
    Envelope,
    EnvelopeSubtype,
    Frequency,
    IncomeSource,
    Priority,
    parse_frequency,
)


class TestEnvelopeCoercion:
    """Bad envelope input becomes a safe default instead of failing."""

    def test_defaults(self):
        envelope = Envelope(id="e1")
        assert envelope.name == ""
        assert envelope.subtype == EnvelopeSubtype.BILL
        assert envelope.priority == Priority.DISCRETIONARY
        assert envelope.frequency == Frequency.MONTHLY
        assert envelope.target_amount == Decimal("0")
        assert envelope.income_allocations == {}

    @pytest.mark.parametrize("raw", [-5, "-12.50", "abc", None, float("nan"), float("inf"), True])
    def test_bad_target_becomes_zero(self, raw):
        assert Envelope(id="e1", target_amount=raw).target_amount == Decimal("0")

    def test_target_rounded_half_up(self):
        assert Envelope(id="e1", target_amount="10.005").target_amount == Decimal("10.01")
        assert Envelope(id="e1", target_amount=19.994).target_amount == Decimal("19.99")

    def test_target_accepts_currency_text(self):
        assert Envelope(id="e1", target_amount="$1,250.5").target_amount == Decimal("1250.50")

    def test_unknown_enums_fall_back(self):
        envelope = Envelope(id="e1", subtype="mystery", priority="urgent", frequency="lunar")
        assert envelope.subtype == EnvelopeSubtype.BILL
        assert envelope.priority == Priority.DISCRETIONARY
        assert envelope.frequency == Frequency.MONTHLY

    def test_enum_text_is_case_insensitive(self):
        envelope = Envelope(id="e1", subtype="Savings", priority=" ESSENTIAL ")
        assert envelope.subtype == EnvelopeSubtype.SAVINGS
        assert envelope.priority == Priority.ESSENTIAL

    def test_negative_balance_kept(self):
        """Overspent envelopes may carry a negative balance."""
        assert Envelope(id="e1", current_balance="-20.456").current_balance == Decimal("-20.46")

    @pytest.mark.parametrize("raw,expected", [(0, None), (-3, None), ("x", None), ("4", 4), (6, 6)])
    def test_custom_weeks(self, raw, expected):
        assert Envelope(id="e1", custom_weeks=raw).custom_weeks == expected

    def test_due_date_forms(self):
        assert Envelope(id="e1", due_date="2026-03-15").due_date == date(2026, 3, 15)
        assert Envelope(id="e1", due_date=datetime(2026, 3, 15, 9, 30)).due_date == date(2026, 3, 15)
        assert Envelope(id="e1", due_date=45).due_date == 31
        assert Envelope(id="e1", due_date="0").due_date == 1
        assert Envelope(id="e1", due_date="soon").due_date is None

    def test_allocations_coerced(self):
        envelope = Envelope(id="e1", income_allocations={"A": "12.345", "B": -4, 7: "bad"})
        assert envelope.income_allocations == {
            "A": Decimal("12.35"),
            "B": Decimal("0"),
            "7": Decimal("0"),
        }
        assert envelope.allocated_total == Decimal("12.35")

    def test_non_dict_allocations(self):
        assert Envelope(id="e1", income_allocations=["A"]).income_allocations == {}


class TestEnvelopeProperties:
    """Test suite for derived envelope flags."""

    def test_tracking_subtype(self):
        envelope = Envelope(id="e1", subtype="tracking")
        assert envelope.is_tracking
        assert envelope.excluded_from_waterfall

    def test_spending_excluded_but_not_tracking(self):
        envelope = Envelope(id="e1", subtype="spending")
        assert not envelope.is_tracking
        assert envelope.excluded_from_waterfall

    def test_archived_excluded(self):
        assert Envelope(id="e1", archived=True).excluded_from_waterfall

    def test_bill_included(self):
        assert not Envelope(id="e1").excluded_from_waterfall

    def test_priority_rank(self):
        ranked = sorted(Priority, key=lambda p: p.rank)
        assert ranked == [Priority.ESSENTIAL, Priority.IMPORTANT, Priority.DISCRETIONARY]


class TestIncomeSource:
    """Test suite for IncomeSource coercion."""

    def test_missing_frequency_is_fortnightly(self):
        assert IncomeSource(id="A").frequency == Frequency.FORTNIGHTLY
        assert IncomeSource(id="A", frequency="").frequency == Frequency.FORTNIGHTLY

    def test_unknown_frequency_is_monthly(self):
        assert IncomeSource(id="A", frequency="whenever").frequency == Frequency.MONTHLY

    def test_wire_aliases(self):
        assert IncomeSource(id="A", frequency="bi-weekly").frequency == Frequency.FORTNIGHTLY
        assert IncomeSource(id="A", frequency="semi_monthly").frequency == Frequency.TWICE_MONTHLY

    def test_negative_amount(self):
        assert IncomeSource(id="A", amount=-100).amount == Decimal("0")

    def test_next_pay_date(self):
        assert IncomeSource(id="A", next_pay_date="2026-02-06T00:00:00Z").next_pay_date == date(2026, 2, 6)
        assert IncomeSource(id="A", next_pay_date=15).next_pay_date is None


class TestParseFrequency:
    """Test suite for parse_frequency."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("weekly", Frequency.WEEKLY),
            ("Fortnightly", Frequency.FORTNIGHTLY),
            ("twice monthly", Frequency.TWICE_MONTHLY),
            ("6-monthly", Frequency.SEMI_ANNUAL),
            ("yearly", Frequency.ANNUAL),
            ("every_n_weeks", Frequency.CUSTOM_WEEKS),
            (Frequency.QUARTERLY, Frequency.QUARTERLY),
        ],
    )
    def test_known(self, raw, expected):
        assert parse_frequency(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "  ", "lunar", 12])
    def test_unknown(self, raw):
        assert parse_frequency(raw) is None

"""Pay schedule projections.

The pay schedule is derived, never stored: it is the cadence of the primary
(first active) income source. It drives the default pay cycle used by the
allocator and the "pays until due" urgency shown next to bills.
"""

from calendar import monthrange
from datetime import date, timedelta
from enum import Enum
from typing import Optional, Sequence, Union

from pydantic import BaseModel

from .models import Frequency, IncomeSource

DEFAULT_PAY_CYCLE = Frequency.FORTNIGHTLY

_DAYS_BETWEEN_PAYS = {
    Frequency.WEEKLY: 7,
    Frequency.FORTNIGHTLY: 14,
    Frequency.TWICE_MONTHLY: 15,
    Frequency.MONTHLY: 30,
    Frequency.QUARTERLY: 91,
    Frequency.SEMI_ANNUAL: 182,
    Frequency.ANNUAL: 365,
}

_MONTHS_BETWEEN_PAYS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.SEMI_ANNUAL: 6,
    Frequency.ANNUAL: 12,
}


class Urgency(str, Enum):
    """How pressing an unfunded bill is."""

    OVERDUE = "overdue"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class PaySchedule(BaseModel):
    """Next pay date and cadence of the primary income source."""

    next_pay_date: date
    frequency: Frequency


class PaysUntilDue(BaseModel):
    """Bill urgency measured in paychecks rather than days.

    Attributes:
        pays: Pays until due; 0 means due on or before the next pay, -1 overdue
        days_until_due: Raw calendar days for reference
        urgency: Urgency level (always NONE for funded envelopes)
        display_text: Short label for display
    """

    pays: int
    days_until_due: int
    urgency: Urgency
    display_text: str


def _add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, monthrange(year, month)[1])
    return date(year, month, day)


def advance_pay_date(value: date, frequency: Frequency) -> date:
    """Move a pay date forward by one pay."""
    if frequency in _MONTHS_BETWEEN_PAYS:
        return _add_months(value, _MONTHS_BETWEEN_PAYS[frequency])
    return value + timedelta(days=_DAYS_BETWEEN_PAYS.get(frequency, 14))


def primary_pay_cycle(income_sources: Sequence[IncomeSource]) -> Frequency:
    """Pay cycle of the first active income source (fortnightly if none)."""
    for source in income_sources:
        if source.is_active:
            if source.frequency == Frequency.CUSTOM_WEEKS:
                return DEFAULT_PAY_CYCLE
            return source.frequency
    return DEFAULT_PAY_CYCLE


def primary_pay_schedule(
    income_sources: Sequence[IncomeSource],
    today: Optional[date] = None,
) -> Optional[PaySchedule]:
    """Get the pay schedule implied by the primary income source.

    The primary source is the first active source with a next pay date. Its
    stored date is advanced one pay at a time until it is not in the past.

    Returns:
        PaySchedule, or None when no active source has a next pay date
    """
    today = today or date.today()
    for source in income_sources:
        if not source.is_active or source.next_pay_date is None:
            continue
        frequency = source.frequency
        if frequency == Frequency.CUSTOM_WEEKS:
            frequency = DEFAULT_PAY_CYCLE
        next_pay = source.next_pay_date
        while next_pay < today:
            next_pay = advance_pay_date(next_pay, frequency)
        return PaySchedule(next_pay_date=next_pay, frequency=frequency)
    return None


def next_due_date(due: Union[date, int, None], today: Optional[date] = None) -> Optional[date]:
    """Next occurrence of a due day-of-month.

    A calendar date contributes only its day of month. If that day has already
    passed this month, next month's occurrence is returned; days beyond the end
    of a short month land on its last day.
    """
    if due is None:
        return None
    today = today or date.today()
    day = due.day if isinstance(due, date) else max(1, min(31, int(due)))

    if today.day <= day:
        year, month = today.year, today.month
    else:
        rolled = _add_months(today.replace(day=1), 1)
        year, month = rolled.year, rolled.month
    return date(year, month, min(day, monthrange(year, month)[1]))


def pays_until_due(
    due_date: date,
    schedule: PaySchedule,
    is_funded: bool,
    today: Optional[date] = None,
) -> PaysUntilDue:
    """Count how many pays land before a bill is due.

    Args:
        due_date: When the bill is due
        schedule: The primary pay schedule
        is_funded: Whether the envelope is already fully funded
        today: Reference date (defaults to today)

    Returns:
        PaysUntilDue with urgency only for unfunded envelopes
    """
    today = today or date.today()
    next_pay = schedule.next_pay_date
    while next_pay < today:
        next_pay = advance_pay_date(next_pay, schedule.frequency)

    days_until_due = (due_date - today).days
    days_until_next_pay = (next_pay - today).days
    days_between_pays = _DAYS_BETWEEN_PAYS.get(schedule.frequency, 14)

    if days_until_due < 0:
        pays = -1
    elif days_until_due <= days_until_next_pay:
        pays = 0
    else:
        pays = 1 + (days_until_due - days_until_next_pay) // days_between_pays

    if is_funded:
        urgency = Urgency.NONE
        if pays < 0:
            text = "Overdue"
        elif pays == 0:
            text = "Due soon"
        else:
            text = f"{pays} pay{'s' if pays != 1 else ''}"
    elif pays < 0:
        urgency, text = Urgency.OVERDUE, "Overdue!"
    elif pays == 0:
        urgency, text = Urgency.HIGH, "Due now!"
    elif pays == 1:
        urgency, text = Urgency.HIGH, "1 pay!"
    elif pays == 2:
        urgency, text = Urgency.MEDIUM, "2 pays"
    elif pays <= 4:
        urgency, text = Urgency.LOW, f"{pays} pays"
    else:
        urgency, text = Urgency.NONE, f"{pays} pays"

    return PaysUntilDue(
        pays=pays,
        days_until_due=days_until_due,
        urgency=urgency,
        display_text=text,
    )


__all__ = [
    "DEFAULT_PAY_CYCLE",
    "Urgency",
    "PaySchedule",
    "PaysUntilDue",
    "advance_pay_date",
    "primary_pay_cycle",
    "primary_pay_schedule",
    "next_due_date",
    "pays_until_due",
]

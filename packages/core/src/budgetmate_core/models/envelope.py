"""Envelope and income source models.

Envelopes are named budget buckets funded on every pay from one or more
income sources. Both models coerce bad input to safe defaults instead of
rejecting it, so an editing surface built on them always stays renderable:

- negative or unparsable money becomes 0
- an unknown subtype becomes ``bill``
- an unknown priority becomes ``discretionary``
- an unknown frequency becomes ``monthly``
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator

from ..money import ZERO, coerce_money, round_money, sum_money


class EnvelopeSubtype(str, Enum):
    """What kind of bucket an envelope is."""

    BILL = "bill"
    SPENDING = "spending"
    SAVINGS = "savings"
    GOAL = "goal"
    TRACKING = "tracking"
    DEBT = "debt"


class Priority(str, Enum):
    """Funding priority used to order the waterfall."""

    ESSENTIAL = "essential"
    IMPORTANT = "important"
    DISCRETIONARY = "discretionary"

    @property
    def rank(self) -> int:
        """Sort rank: essential first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.ESSENTIAL: 0,
    Priority.IMPORTANT: 1,
    Priority.DISCRETIONARY: 2,
}


class Frequency(str, Enum):
    """Billing frequency of an envelope or pay cycle of an income source."""

    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"
    TWICE_MONTHLY = "twice_monthly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi_annual"
    ANNUAL = "annual"
    CUSTOM_WEEKS = "custom_weeks"  # every N weeks, N stored separately


_FREQUENCY_ALIASES = {
    "bi_weekly": Frequency.FORTNIGHTLY,
    "biweekly": Frequency.FORTNIGHTLY,
    "semi_monthly": Frequency.TWICE_MONTHLY,
    "6_monthly": Frequency.SEMI_ANNUAL,
    "semi_annually": Frequency.SEMI_ANNUAL,
    "semiannual": Frequency.SEMI_ANNUAL,
    "annually": Frequency.ANNUAL,
    "yearly": Frequency.ANNUAL,
    "every_n_weeks": Frequency.CUSTOM_WEEKS,
}


def parse_frequency(value: Any) -> Optional[Frequency]:
    """Read a frequency from user or wire input.

    Returns None when the value is missing or not recognised; callers pick
    their own default.
    """
    if isinstance(value, Frequency):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    if not key:
        return None
    try:
        return Frequency(key)
    except ValueError:
        return _FREQUENCY_ALIASES.get(key)


def _coerce_enum(enum_cls, value: Any, default):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            return default
    return default


def _coerce_day_or_date(value: Any) -> Optional[Union[date, int]]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, int):
        return max(1, min(31, value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
        try:
            return max(1, min(31, int(text)))
        except ValueError:
            return None
    return None


class Envelope(BaseModel):
    """A named budget bucket.

    ``income_allocations`` is the envelope's AllocationMap: the per-pay
    amount drawn from each income source, keyed by income source id.
    """

    id: str = Field(description="Stable unique id")
    name: str = Field(default="", description="Display name")
    icon: Optional[str] = Field(default=None, description="Emoji or icon key")
    subtype: EnvelopeSubtype = Field(default=EnvelopeSubtype.BILL)
    target_amount: Decimal = Field(
        default=ZERO,
        description="Amount due per billing period, in cents precision",
    )
    frequency: Frequency = Field(
        default=Frequency.MONTHLY,
        description="How often the target amount falls due",
    )
    custom_weeks: Optional[int] = Field(
        default=None,
        description="N for an every-N-weeks frequency",
    )
    due_date: Optional[Union[date, int]] = Field(
        default=None,
        description="Calendar due date or day of month (1-31)",
    )
    priority: Priority = Field(default=Priority.DISCRETIONARY)
    current_balance: Decimal = Field(default=ZERO)
    notes: Optional[str] = None
    is_tracking_only: bool = False
    archived: bool = False
    income_allocations: dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("target_amount", mode="before")
    @classmethod
    def coerce_target_amount(cls, v):
        """Negative or unparsable targets become 0."""
        return coerce_money(v)

    @field_validator("current_balance", mode="before")
    @classmethod
    def coerce_current_balance(cls, v):
        """Balances may be negative (overspent) but are always cents."""
        return round_money(v)

    @field_validator("subtype", mode="before")
    @classmethod
    def coerce_subtype(cls, v):
        return _coerce_enum(EnvelopeSubtype, v, EnvelopeSubtype.BILL)

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, v):
        return _coerce_enum(Priority, v, Priority.DISCRETIONARY)

    @field_validator("frequency", mode="before")
    @classmethod
    def coerce_frequency(cls, v):
        return parse_frequency(v) or Frequency.MONTHLY

    @field_validator("custom_weeks", mode="before")
    @classmethod
    def coerce_custom_weeks(cls, v):
        """Drop week counts below 1."""
        if v is None or isinstance(v, bool):
            return None
        try:
            weeks = int(v)
        except (TypeError, ValueError):
            return None
        return weeks if weeks >= 1 else None

    @field_validator("due_date", mode="before")
    @classmethod
    def coerce_due_date(cls, v):
        return _coerce_day_or_date(v)

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, v):
        return "" if v is None else str(v)

    @field_validator("income_allocations", mode="before")
    @classmethod
    def coerce_allocations(cls, v):
        if not isinstance(v, dict):
            return {}
        return {str(source_id): coerce_money(amount) for source_id, amount in v.items()}

    @property
    def is_tracking(self) -> bool:
        """True for tracking envelopes, which never get a per-pay contribution."""
        return self.subtype == EnvelopeSubtype.TRACKING or self.is_tracking_only

    @property
    def excluded_from_waterfall(self) -> bool:
        """Tracking, spending and archived envelopes are not funded by the waterfall."""
        return self.is_tracking or self.subtype == EnvelopeSubtype.SPENDING or self.archived

    @property
    def allocated_total(self) -> Decimal:
        """Sum of this envelope's allocation map."""
        return sum_money(self.income_allocations.values())


class IncomeSource(BaseModel):
    """A recurring inflow. Only active sources take part in allocation."""

    id: str
    name: str = ""
    amount: Decimal = Field(
        default=ZERO,
        description="Amount received per occurrence",
    )
    frequency: Frequency = Field(
        default=Frequency.FORTNIGHTLY,
        description="Pay cycle of this source",
    )
    next_pay_date: Optional[date] = None
    is_active: bool = True

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return coerce_money(v)

    @field_validator("frequency", mode="before")
    @classmethod
    def coerce_frequency(cls, v):
        """Missing pay cycles default to fortnightly, unknown ones to monthly."""
        if v is None or v == "":
            return Frequency.FORTNIGHTLY
        return parse_frequency(v) or Frequency.MONTHLY

    @field_validator("next_pay_date", mode="before")
    @classmethod
    def coerce_next_pay_date(cls, v):
        parsed = _coerce_day_or_date(v)
        return parsed if isinstance(parsed, date) else None

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, v):
        return "" if v is None else str(v)


__all__ = [
    "EnvelopeSubtype",
    "Priority",
    "Frequency",
    "parse_frequency",
    "Envelope",
    "IncomeSource",
]

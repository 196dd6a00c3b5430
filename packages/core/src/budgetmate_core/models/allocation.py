"""Allocation results, funding labels and validation warnings."""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..money import ZERO

AllocationMap = dict[str, Decimal]
"""Income source id -> per-pay amount drawn from that source."""


class FundingLabel(str, Enum):
    """Coarse "funded by" classification of an allocation map."""

    NONE = "none"
    PRIMARY = "primary"
    SECONDARY = "secondary"
    SPLIT = "split"


class WarningCode(str, Enum):
    """Machine-readable warning codes emitted by the validator."""

    ESSENTIAL_UNDERFUNDED = "essential_underfunded"
    INCOME_OVER_ALLOCATED = "income_over_allocated"


class BudgetWarning(BaseModel):
    """An advisory allocation problem. Warnings never block a save.

    Attributes:
        code: What kind of problem this is
        message: Human-readable description naming the envelope or source
        envelope_id: Envelope concerned (underfunding warnings)
        income_source_id: Income source concerned (over-allocation warnings)
        amount: Shortfall for an envelope, excess for an income source
    """

    code: WarningCode
    message: str
    envelope_id: Optional[str] = None
    income_source_id: Optional[str] = None
    amount: Decimal = Field(default=ZERO, ge=0)


class IncomeUsage(BaseModel):
    """How much of one income source's per-pay amount is committed."""

    income_source_id: str
    name: str
    amount: Decimal
    allocated: Decimal
    remaining: Decimal
    percent_used: Decimal

    @property
    def is_over_allocated(self) -> bool:
        return self.allocated > self.amount


__all__ = [
    "AllocationMap",
    "FundingLabel",
    "WarningCode",
    "BudgetWarning",
    "IncomeUsage",
]

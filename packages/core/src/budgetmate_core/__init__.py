"""Budget Mate Core - envelope allocation engine."""

__version__ = "0.1.0"

from .allocator import WaterfallAllocator, allocate
from .classifier import allocation_for_label, classify
from .frequency import annual_amount, envelope_per_pay, per_pay
from .models import (
    AllocationMap,
    BudgetWarning,
    Envelope,
    EnvelopeSubtype,
    Frequency,
    FundingLabel,
    IncomeSource,
    Priority,
)
from .validator import summarize_income_usage, validate

__all__ = [
    "WaterfallAllocator",
    "allocate",
    "classify",
    "allocation_for_label",
    "per_pay",
    "annual_amount",
    "envelope_per_pay",
    "validate",
    "summarize_income_usage",
    "AllocationMap",
    "BudgetWarning",
    "Envelope",
    "EnvelopeSubtype",
    "Frequency",
    "FundingLabel",
    "IncomeSource",
    "Priority",
]

"""Data models for budgetmate-core.

This package provides the records the allocation engine works on:
- Envelopes and income sources (envelope.py)
- Allocation maps, funding labels and validation warnings (allocation.py)
"""

from budgetmate_core.models.allocation import (
    AllocationMap,
    BudgetWarning,
    FundingLabel,
    IncomeUsage,
    WarningCode,
)
from budgetmate_core.models.envelope import (
    Envelope,
    EnvelopeSubtype,
    Frequency,
    IncomeSource,
    Priority,
    parse_frequency,
)

__all__ = [
    # Enumerations
    "EnvelopeSubtype",
    "Priority",
    "Frequency",
    "FundingLabel",
    "WarningCode",
    # Helpers
    "parse_frequency",
    # Records
    "Envelope",
    "IncomeSource",
    "AllocationMap",
    "BudgetWarning",
    "IncomeUsage",
]

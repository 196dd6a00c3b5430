"""Funded-by classification of allocation maps.

The label is positional: the first income source in the list is "primary",
any other single source is "secondary".
"""

from decimal import Decimal
from typing import Any, Mapping, Sequence

from .models import AllocationMap, FundingLabel, IncomeSource
from .money import ZERO, coerce_money, round_money, to_decimal


def classify(
    allocation_map: Mapping[str, Any],
    income_sources: Sequence[IncomeSource],
) -> FundingLabel:
    """Derive the funded-by label of an allocation map.

    Returns:
        NONE if nothing is allocated, SPLIT if more than one source has a
        positive amount, otherwise PRIMARY when the single funding source is
        the first in ``income_sources`` and SECONDARY for any other source
    """
    funded = [source_id for source_id, amount in allocation_map.items() if to_decimal(amount) > ZERO]

    if not funded:
        return FundingLabel.NONE
    if len(funded) > 1:
        return FundingLabel.SPLIT

    if income_sources and income_sources[0].id == funded[0]:
        return FundingLabel.PRIMARY
    return FundingLabel.SECONDARY


def allocation_for_label(
    label: Any,
    per_pay_amount: Any,
    income_sources: Sequence[IncomeSource],
) -> AllocationMap:
    """Build the allocation map for a funded-by choice made by the user.

    - primary: the whole per-pay amount from the first source
    - secondary: the whole per-pay amount from the second source
    - split: half from each of the first two sources; the second share takes
      the odd cent so the halves add up exactly

    A label whose sources do not exist, or NONE, yields an empty map.
    """
    try:
        label = FundingLabel(label)
    except ValueError:
        return {}

    amount = coerce_money(per_pay_amount)

    if label == FundingLabel.PRIMARY and len(income_sources) >= 1:
        return {income_sources[0].id: amount}
    if label == FundingLabel.SECONDARY and len(income_sources) >= 2:
        return {income_sources[1].id: amount}
    if label == FundingLabel.SPLIT and len(income_sources) >= 2:
        first_half = round_money(amount / Decimal(2))
        return {
            income_sources[0].id: first_half,
            income_sources[1].id: amount - first_half,
        }
    return {}


__all__ = ["classify", "allocation_for_label"]

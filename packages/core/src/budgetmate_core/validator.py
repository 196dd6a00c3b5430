"""Allocation invariant checks.

Two problems are reported, both advisory:

1. An essential envelope whose allocations fall more than one cent short of
   its per-pay contribution.
2. An income source whose allocations, summed across all envelopes, exceed
   its per-pay amount.

Nothing here blocks a save or corrects the data; callers decide whether to
surface the warnings before navigation.
"""

from decimal import Decimal
from typing import Any, Optional, Sequence

import structlog

from .frequency import envelope_per_pay
from .models import BudgetWarning, Envelope, IncomeSource, IncomeUsage, Priority, WarningCode
from .money import TOLERANCE, ZERO, round_money, sum_money
from .schedule import primary_pay_cycle

logger = structlog.get_logger()


def _allocated_from(envelopes: Sequence[Envelope], source_id: str) -> Decimal:
    return sum_money(
        envelope.income_allocations.get(source_id, ZERO)
        for envelope in envelopes
        if not envelope.archived
    )


def summarize_income_usage(
    envelopes: Sequence[Envelope],
    income_sources: Sequence[IncomeSource],
) -> list[IncomeUsage]:
    """Get allocated, remaining and percent-used figures per active source."""
    usage = []
    for source in income_sources:
        if not source.is_active:
            continue
        allocated = _allocated_from(envelopes, source.id)
        if source.amount > ZERO:
            percent = round_money(allocated / source.amount * 100)
        else:
            percent = ZERO
        usage.append(
            IncomeUsage(
                income_source_id=source.id,
                name=source.name,
                amount=source.amount,
                allocated=allocated,
                remaining=source.amount - allocated,
                percent_used=percent,
            )
        )
    return usage


def validate(
    envelopes: Sequence[Envelope],
    income_sources: Sequence[IncomeSource],
    *,
    pay_cycle: Optional[Any] = None,
) -> list[BudgetWarning]:
    """Scan envelopes and income sources for allocation problems.

    Args:
        envelopes: Envelopes with their current allocation maps
        income_sources: Income sources in priority order
        pay_cycle: Pay cycle for per-pay contributions; defaults to the
            cadence of the first active income source

    Returns:
        Underfunding warnings in envelope order, then over-allocation
        warnings in income source order
    """
    pay_cycle = pay_cycle or primary_pay_cycle(income_sources)
    warnings: list[BudgetWarning] = []

    for envelope in envelopes:
        if envelope.archived or envelope.is_tracking or envelope.priority != Priority.ESSENTIAL:
            continue
        required = envelope_per_pay(envelope, pay_cycle)
        if required <= ZERO:
            continue
        allocated = envelope.allocated_total
        if allocated < required - TOLERANCE:
            shortfall = required - allocated
            warnings.append(
                BudgetWarning(
                    code=WarningCode.ESSENTIAL_UNDERFUNDED,
                    message=f"Essential envelope '{envelope.name}' is underfunded by ${shortfall:.2f}",
                    envelope_id=envelope.id,
                    amount=shortfall,
                )
            )

    for usage in summarize_income_usage(envelopes, income_sources):
        if usage.is_over_allocated:
            excess = usage.allocated - usage.amount
            warnings.append(
                BudgetWarning(
                    code=WarningCode.INCOME_OVER_ALLOCATED,
                    message=f"Income source '{usage.name}' is over-allocated by ${excess:.2f}",
                    income_source_id=usage.income_source_id,
                    amount=excess,
                )
            )

    if warnings:
        logger.debug("allocation_warnings", count=len(warnings))
    return warnings


__all__ = ["validate", "summarize_income_usage"]

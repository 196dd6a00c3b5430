"""Waterfall allocation of income sources across envelopes.

Envelopes are funded greedily in priority order (essential, important,
discretionary; ties keep their original order). Each envelope walks the
income sources in list order and takes what it still needs from each until
it is covered or the sources run dry. Under-funding is a legitimate outcome,
not an error: the validator reports it.

The policy is deliberately simple and deterministic. List position of an
income source is both its allocation order here and its primary/secondary
label in the funding classifier; keep the two consistent.
"""

from decimal import Decimal
from typing import Any, Optional, Sequence

import structlog

from .frequency import envelope_per_pay
from .models import AllocationMap, Envelope, IncomeSource
from .money import TOLERANCE, ZERO
from .schedule import primary_pay_cycle

logger = structlog.get_logger()


class WaterfallAllocator:
    """
    Distribute income capacity across envelopes by priority.

    The allocator is pure: it reads envelopes and income sources and
    returns new allocation maps. It never mutates its inputs.
    """

    def __init__(self, pay_cycle: Any = None, tolerance: Decimal = TOLERANCE):
        """
        Initialize the allocator.

        Args:
            pay_cycle: Pay cycle used to compute per-pay contributions. When
                omitted, the pay cycle of the first active income source is used.
            tolerance: Amounts at or below this are treated as zero
        """
        self.pay_cycle = pay_cycle
        self.tolerance = tolerance

    def _log_step(self, step: str, **context: Any) -> None:
        logger.debug("allocation_step", step=step, **context)

    def _candidates(
        self,
        envelopes: Sequence[Envelope],
        pay_cycle: Any,
    ) -> list[tuple[Envelope, Decimal]]:
        """Envelopes that take part in the waterfall, in funding order."""
        candidates = []
        for envelope in envelopes:
            if envelope.excluded_from_waterfall:
                continue
            required = envelope_per_pay(envelope, pay_cycle)
            if required <= ZERO:
                continue
            candidates.append((envelope, required))

        # sorted() is stable, so equal priorities keep their given order
        return sorted(candidates, key=lambda item: item[0].priority.rank)

    def allocate(
        self,
        envelopes: Sequence[Envelope],
        income_sources: Sequence[IncomeSource],
    ) -> dict[str, AllocationMap]:
        """
        Compute a per-envelope, per-source allocation.

        Args:
            envelopes: Envelopes in display order
            income_sources: Income sources in priority order (first = primary)

        Returns:
            Allocation map for every envelope that takes part in the waterfall,
            keyed by envelope id in funding order. Envelopes that could not be
            funded at all map to an empty allocation.
        """
        sources = [source for source in income_sources if source.is_active]
        pay_cycle = self.pay_cycle or primary_pay_cycle(sources)
        remaining = [source.amount for source in sources]
        result: dict[str, AllocationMap] = {}

        for envelope, per_pay_amount in self._candidates(envelopes, pay_cycle):
            required = per_pay_amount
            allocation: AllocationMap = {}

            for index, source in enumerate(sources):
                if required <= self.tolerance:
                    break
                if remaining[index] <= self.tolerance:
                    continue
                amount = min(required, remaining[index])
                required -= amount
                remaining[index] -= amount
                if amount > self.tolerance:
                    allocation[source.id] = amount

            result[envelope.id] = allocation
            self._log_step(
                step="envelope_funded",
                envelope_id=envelope.id,
                priority=envelope.priority.value,
                per_pay=str(per_pay_amount),
                shortfall=str(max(required, ZERO)),
                sources=len(allocation),
            )

        logger.debug(
            "waterfall_complete",
            envelopes=len(result),
            sources=len(sources),
            pay_cycle=str(getattr(pay_cycle, "value", pay_cycle)),
        )
        return result


def allocate(
    envelopes: Sequence[Envelope],
    income_sources: Sequence[IncomeSource],
    *,
    pay_cycle: Optional[Any] = None,
) -> dict[str, AllocationMap]:
    """Run the waterfall with default settings. See WaterfallAllocator.allocate."""
    return WaterfallAllocator(pay_cycle=pay_cycle).allocate(envelopes, income_sources)


__all__ = ["WaterfallAllocator", "allocate"]

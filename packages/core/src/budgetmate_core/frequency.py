"""Frequency normalization for envelope targets and income.

Converts a target amount expressed in any billing frequency into the
contribution needed on each pay, by way of an annual equivalent:

    per_pay = target * occurrences(billing) / occurrences(pay_cycle)

Arithmetic stays unrounded until the final result, which is rounded to
cents once. An unrecognised frequency falls back to monthly instead of
failing, so the editing surface keeps rendering; a missing frequency (or a
zero target, or a tracking envelope) yields 0.
"""

from decimal import Decimal
from typing import Any, Optional

import structlog

from .models import Envelope, EnvelopeSubtype, Frequency, parse_frequency
from .money import ZERO, coerce_money, round_money

logger = structlog.get_logger()


# =============================================================================
# OCCURRENCES PER YEAR
# =============================================================================

OCCURRENCES_PER_YEAR = {
    Frequency.WEEKLY: Decimal("52"),
    Frequency.FORTNIGHTLY: Decimal("26"),
    Frequency.TWICE_MONTHLY: Decimal("24"),
    Frequency.MONTHLY: Decimal("12"),
    Frequency.QUARTERLY: Decimal("4"),
    Frequency.SEMI_ANNUAL: Decimal("2"),
    Frequency.ANNUAL: Decimal("1"),
}

WEEKS_PER_YEAR = Decimal("52")

DEFAULT_FREQUENCY = Frequency.MONTHLY


def _is_missing(frequency: Any) -> bool:
    return frequency is None or (isinstance(frequency, str) and not frequency.strip())


def occurrences_per_year(frequency: Any, custom_weeks: Optional[int] = None) -> Decimal:
    """Get how many times per year a frequency occurs.

    Args:
        frequency: A Frequency or frequency string (aliases accepted)
        custom_weeks: N for "every N weeks"

    Returns:
        Occurrences per year; 52/N for every-N-weeks. Unknown frequencies,
        and every-N-weeks without a usable N, count as monthly.
    """
    parsed = parse_frequency(frequency)

    if parsed == Frequency.CUSTOM_WEEKS:
        if custom_weeks is not None and custom_weeks >= 1:
            return WEEKS_PER_YEAR / Decimal(custom_weeks)
        logger.debug("custom_weeks_missing_defaulted", custom_weeks=custom_weeks)
        return OCCURRENCES_PER_YEAR[DEFAULT_FREQUENCY]

    if parsed is None:
        logger.debug("unknown_frequency_defaulted", frequency=str(frequency))
        return OCCURRENCES_PER_YEAR[DEFAULT_FREQUENCY]

    return OCCURRENCES_PER_YEAR[parsed]


# =============================================================================
# NORMALIZATION
# =============================================================================


def annual_amount(
    target_amount: Any,
    billing_frequency: Any,
    *,
    custom_weeks: Optional[int] = None,
) -> Decimal:
    """Annual equivalent of a target amount.

    Args:
        target_amount: Amount due per billing period
        billing_frequency: How often the amount falls due
        custom_weeks: N for an every-N-weeks billing frequency

    Returns:
        Annual amount rounded to cents, or 0 when the target is 0 or the
        frequency is missing
    """
    target = coerce_money(target_amount)
    if target == ZERO or _is_missing(billing_frequency):
        return ZERO
    return round_money(target * occurrences_per_year(billing_frequency, custom_weeks))


def per_pay(
    target_amount: Any,
    billing_frequency: Any,
    pay_cycle: Any,
    *,
    custom_weeks: Optional[int] = None,
    subtype: Any = None,
) -> Decimal:
    """Contribution needed on each pay to meet a target.

    Example:
        An annual $1,000 bill on a fortnightly pay cycle needs
        1000 * 1 / 26 = $38.46 per pay.

    Args:
        target_amount: Amount due per billing period
        billing_frequency: How often the amount falls due
        pay_cycle: How often the user is paid
        custom_weeks: N for an every-N-weeks billing frequency
        subtype: Envelope subtype; tracking envelopes always get 0

    Returns:
        Per-pay amount rounded to cents
    """
    if subtype == EnvelopeSubtype.TRACKING:
        return ZERO

    target = coerce_money(target_amount)
    if target == ZERO or _is_missing(billing_frequency) or _is_missing(pay_cycle):
        return ZERO

    yearly = target * occurrences_per_year(billing_frequency, custom_weeks)
    return round_money(yearly / occurrences_per_year(pay_cycle))


def envelope_per_pay(envelope: Envelope, pay_cycle: Any) -> Decimal:
    """Per-pay contribution for an envelope on the given pay cycle."""
    if envelope.is_tracking:
        return ZERO
    return per_pay(
        envelope.target_amount,
        envelope.frequency,
        pay_cycle,
        custom_weeks=envelope.custom_weeks,
        subtype=envelope.subtype,
    )


def envelope_annual_amount(envelope: Envelope) -> Decimal:
    """Annual equivalent of an envelope's target."""
    return annual_amount(
        envelope.target_amount,
        envelope.frequency,
        custom_weeks=envelope.custom_weeks,
    )


def normalize_to_pay_cycle(amount: Any, source_frequency: Any, pay_cycle: Any) -> Decimal:
    """Convert an income amount from its own cadence to the user's pay cycle.

    The allocator and validator take each source's amount as entered per
    pay and never call this. It is for callers that collect income on a
    different cadence (a monthly side job beside a fortnightly salary) and
    want to enter the per-pay equivalent.

    Example:
        $3,000 monthly income on a fortnightly pay cycle is
        3000 * 12 / 26 = $1,384.62 per pay.
    """
    value = coerce_money(amount)
    if value == ZERO:
        return ZERO
    yearly = value * occurrences_per_year(source_frequency)
    return round_money(yearly / occurrences_per_year(pay_cycle))


__all__ = [
    "OCCURRENCES_PER_YEAR",
    "DEFAULT_FREQUENCY",
    "occurrences_per_year",
    "annual_amount",
    "per_pay",
    "envelope_per_pay",
    "envelope_annual_amount",
    "normalize_to_pay_cycle",
]

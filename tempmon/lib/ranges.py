"""Range classification for temperature readings."""

from decimal import Decimal

from tempmon.lib.config import Breach


def in_range(value: Decimal, min_bound: Decimal, max_bound: Decimal) -> bool:
    """Check if a value lies within [min_bound, max_bound], both inclusive.

    With min_bound > max_bound no value is ever in range.
    """
    return min_bound <= value <= max_bound


def breach(
    value: Decimal, min_bound: Decimal, max_bound: Decimal
) -> Breach | None:
    """Classify which side of the range a value is on, or None if in range."""
    if in_range(value, min_bound, max_bound):
        return None
    if value < min_bound:
        return Breach.LOW
    return Breach.HIGH

"""
Token unit conversion and display helpers.

Amounts live on-chain as integers of base units; humans read them as
decimal tokens. ``parse_units`` / ``format_units`` convert between the two
with exact Decimal arithmetic (no float rounding).
"""

from decimal import Decimal, InvalidOperation
from typing import Union

DEFAULT_DECIMALS = 18


def parse_units(value: Union[str, int, Decimal], decimals: int = DEFAULT_DECIMALS) -> int:
    """
    Convert a decimal token amount to base units.

    parse_units("1.5") -> 1500000000000000000

    Raises:
        ValueError: on malformed input, negative values, or more
            fractional digits than ``decimals`` allows
    """
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")

    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Amount must be a non-negative number, got {value!r}")

    scaled = amount.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {value} has more than {decimals} decimal places")
    return int(scaled)


def format_units(amount: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """
    Convert base units to a decimal string without trailing zeros.

    format_units(1500000000000000000) -> "1.5"
    """
    whole, fraction = divmod(amount, 10**decimals)
    if fraction == 0:
        return str(whole)
    digits = str(fraction).rjust(decimals, "0").rstrip("0")
    return f"{whole}.{digits}"


def format_time_remaining(seconds: int) -> str:
    """Format a countdown as HH:MM:SS; non-positive values render as zero."""
    if seconds <= 0:
        return "00:00:00"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"

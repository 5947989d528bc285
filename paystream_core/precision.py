"""
Precision constants and helpers for Paystream.

The ledger counts XRP in drops, its smallest indivisible unit:

    1 XRP = 1,000,000 drops

Everything inside Paystream works in integer drops.  Human-scale decimal
amounts (config files, CLI flags) are converted once, at the boundary,
with :func:`xrp_to_drops`.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

# Number of decimal places an XRP amount can carry.
XRP_DECIMALS: int = 6

# Smallest representable unit: 1 drop = 0.000001 XRP.
DROPS_PER_XRP: int = 10 ** XRP_DECIMALS  # 1_000_000

# Format string for display.
AMOUNT_FMT: str = f":.{XRP_DECIMALS}f"  # ":.6f"


def xrp_to_drops(value: float | int | str | Decimal) -> int:
    """Convert a decimal XRP amount to integer drops.

    Goes through ``Decimal(str(value))`` so ``0.1`` means one tenth and not
    the nearest binary double.

    >>> xrp_to_drops(1)
    1000000
    >>> xrp_to_drops("0.000001")
    1

    Raises ``ValueError`` for negative, non-finite or non-numeric input and
    for amounts finer than one drop.
    """
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Not a number: {value!r}")
    if not dec.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    if dec < 0:
        raise ValueError(f"Amount must be non-negative: {value!r}")
    drops = dec * DROPS_PER_XRP
    if drops != drops.to_integral_value():
        raise ValueError(f"Amount {value!r} has more than {XRP_DECIMALS} decimal places")
    return int(drops)


def drops_to_xrp(drops: int) -> Decimal:
    """Convert an integer drop count to an exact XRP ``Decimal``."""
    return Decimal(int(drops)) / DROPS_PER_XRP


def format_amount(drops: int, currency: str = "XRP") -> str:
    """Return a human-readable string with 6 decimal places."""
    return f"{drops_to_xrp(drops):.{XRP_DECIMALS}f} {currency}"

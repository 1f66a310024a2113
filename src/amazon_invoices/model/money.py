from __future__ import annotations

"""Money comparison helpers shared by the model and services."""

from amazon_invoices.config import AMOUNT_TOLERANCE

# Absorbs binary float noise only (50.00 - 49.99 == 0.010000000000005).
_FLOAT_NOISE = 1e-9


def amounts_differ(a: float, b: float, tolerance: float = AMOUNT_TOLERANCE) -> bool:
    """True when two amounts differ by more than the tolerance.

    Sub-cent differences count: 100.00 against 99.986 is a mismatch.
    """
    return abs(a - b) > tolerance + _FLOAT_NOISE


__all__ = ["amounts_differ"]

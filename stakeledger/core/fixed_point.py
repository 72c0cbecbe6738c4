"""Fixed-point helpers for reward rates.

Every function is stateless and operates on plain Python ints.

Rates are reward-token units per deposited-token unit per tick, scaled by
``PRECISION``. Division is Python's `//` (floor), applied once at the end of a
computation so that intermediate products stay exact.
"""

from __future__ import annotations

PRECISION: int = 10**36


def _require_int(value: int, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    return value


def rate_from_fraction(numerator: int, denominator: int) -> int:
    """Rate of ``numerator / denominator`` reward units per token per tick.

    ``rate_from_fraction(1, 1000) == PRECISION // 1000`` (i.e. ``0.001e36``).
    """
    _require_int(numerator, name="numerator")
    _require_int(denominator, name="denominator")
    if numerator < 0:
        raise ValueError(f"numerator must be non-negative: {numerator}")
    if denominator <= 0:
        raise ValueError(f"denominator must be positive: {denominator}")
    return (PRECISION * numerator) // denominator


def to_token_units(token_ticks: int, rate: int, precision: int = PRECISION) -> int:
    """Convert an exact token-tick integral into reward units: ``floor(token_ticks * rate / precision)``."""
    _require_int(token_ticks, name="token_ticks")
    _require_int(rate, name="rate")
    _require_int(precision, name="precision")
    if token_ticks < 0:
        raise ValueError(f"token_ticks must be non-negative: {token_ticks}")
    if rate < 0:
        raise ValueError(f"rate must be non-negative: {rate}")
    if precision <= 0:
        raise ValueError(f"precision must be positive: {precision}")
    return (token_ticks * rate) // precision

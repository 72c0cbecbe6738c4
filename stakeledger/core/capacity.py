"""
Deposit capacity kernels (deterministic, integer-only).

Two independent limits may apply to a token:
- an absolute cap on the total deposited across all accounts, and
- a proportional cap on an account's deposit relative to what the same account
  holds of an anchor token.

All functions here are pure; the ledger supplies the balances.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import CapacityExceeded

LIMIT_REACHED = "Limit reached"
CAPPED_TOKEN = "Not allowed to deposit specified amount of capped token"


@dataclass(frozen=True)
class ProportionalRule:
    """`deposited(token) <= deposited(anchor_token) * self_multiplier // anchor_multiplier`."""

    anchor_token: str
    anchor_multiplier: int
    self_multiplier: int

    def __post_init__(self) -> None:
        if not isinstance(self.anchor_token, str) or not self.anchor_token:
            raise ValueError("anchor_token must be a non-empty string")
        for name, v in (
            ("anchor_multiplier", self.anchor_multiplier),
            ("self_multiplier", self.self_multiplier),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v <= 0:
                raise ValueError(f"{name} must be positive: {v}")


def proportional_allowance(anchor_deposit: int, rule: ProportionalRule) -> int:
    return (anchor_deposit * rule.self_multiplier) // rule.anchor_multiplier


def proportional_headroom(anchor_deposit: int, own_deposit: int, rule: ProportionalRule) -> int:
    """Remaining amount an account may add before hitting its proportional cap."""
    return max(0, proportional_allowance(anchor_deposit, rule) - own_deposit)


def global_headroom(total: int, global_limit: int) -> int:
    return max(0, global_limit - total)


def max_deposit(
    *,
    total: int,
    global_limit: Optional[int],
    rule: Optional[ProportionalRule],
    anchor_deposit: int,
    own_deposit: int,
) -> Optional[int]:
    """
    Largest amount that would pass `check_deposit`.

    Returns None when neither limit applies to the token.
    """
    candidates = []
    if global_limit is not None:
        candidates.append(global_headroom(total, global_limit))
    if rule is not None:
        candidates.append(proportional_headroom(anchor_deposit, own_deposit, rule))
    if not candidates:
        return None
    return min(candidates)


def check_deposit(
    requested: int,
    *,
    total: int,
    global_limit: Optional[int],
    rule: Optional[ProportionalRule],
    anchor_deposit: int,
    own_deposit: int,
) -> None:
    """
    Validate a deposit of `requested` against both limits.

    Raises:
        CapacityExceeded: If the absolute or the proportional limit would be exceeded
    """
    if global_limit is not None and total + requested > global_limit:
        raise CapacityExceeded(LIMIT_REACHED)
    if rule is not None and requested > proportional_headroom(anchor_deposit, own_deposit, rule):
        raise CapacityExceeded(CAPPED_TOKEN)

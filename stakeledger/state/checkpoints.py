"""
Append-only balance checkpoint log for one (token, account) pair.

A checkpoint records the balance held from its tick onward. The balance at any
tick `t` is the balance of the last checkpoint with `tick <= t`, or 0 before the
first one. Lookups use binary search over the tick column.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import List, Tuple

Tick = int
Amount = int


@dataclass(frozen=True)
class Checkpoint:
    tick: Tick
    balance: Amount


class CheckpointLog:
    """
    Ordered log of balance changes.

    Notes:
    - Ticks are strictly increasing. A second change within the same tick
      overwrites the balance of the last checkpoint.
    - Balances are always non-negative.
    """

    def __init__(self) -> None:
        self._ticks: List[Tick] = []
        self._balances: List[Amount] = []

    def __len__(self) -> int:
        return len(self._ticks)

    def latest(self) -> Amount:
        """Balance after the most recent checkpoint. Returns 0 if the log is empty."""
        return self._balances[-1] if self._balances else 0

    def record(self, tick: Tick, balance: Amount) -> None:
        """
        Record `balance` as held from `tick` onward.

        Raises:
            ValueError: If balance is negative or tick precedes the last checkpoint
        """
        if tick < 0:
            raise ValueError(f"tick must be non-negative: {tick}")
        if balance < 0:
            raise ValueError(f"Balance cannot be negative: {balance}")
        if self._ticks:
            last = self._ticks[-1]
            if tick < last:
                raise ValueError(f"Checkpoint tick {tick} precedes last checkpoint {last}")
            if tick == last:
                self._balances[-1] = balance
                return
        self._ticks.append(tick)
        self._balances.append(balance)

    def balance_at(self, tick: Tick) -> Amount:
        """Balance held at `tick` (0 before the first checkpoint)."""
        idx = bisect_right(self._ticks, tick) - 1
        return self._balances[idx] if idx >= 0 else 0

    def token_ticks(self, from_tick: Tick, to_tick: Tick) -> int:
        """
        Exact integral of the balance over `[from_tick, to_tick)` in token-ticks.

        Only checkpoints inside the window are visited; the starting balance is
        found by binary search.
        """
        if from_tick < 0 or to_tick < 0:
            raise ValueError(f"ticks must be non-negative: ({from_tick}, {to_tick})")
        if to_tick <= from_tick:
            return 0

        idx = bisect_right(self._ticks, from_tick)
        balance = self._balances[idx - 1] if idx > 0 else 0
        cursor = from_tick
        acc = 0
        n = len(self._ticks)
        while idx < n and self._ticks[idx] < to_tick:
            acc += balance * (self._ticks[idx] - cursor)
            cursor = self._ticks[idx]
            balance = self._balances[idx]
            idx += 1
        acc += balance * (to_tick - cursor)
        return acc

    def entries(self) -> Tuple[Checkpoint, ...]:
        return tuple(Checkpoint(t, b) for t, b in zip(self._ticks, self._balances))

    def copy(self) -> "CheckpointLog":
        out = CheckpointLog()
        out._ticks = list(self._ticks)
        out._balances = list(self._balances)
        return out

    def __repr__(self) -> str:
        return f"CheckpointLog({len(self._ticks)} entries, latest={self.latest()})"

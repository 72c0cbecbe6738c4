"""
Logical clock collaborator.

The core only reads the current tick. `ManualClock` is the deterministic clock
used by tests and the scenario runner; it never moves backwards.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    def now(self) -> int: ...


class ManualClock:
    def __init__(self, tick: int = 0) -> None:
        if not isinstance(tick, int) or isinstance(tick, bool) or tick < 0:
            raise ValueError(f"tick must be a non-negative int: {tick!r}")
        self._tick = tick

    def now(self) -> int:
        return self._tick

    def advance(self, ticks: int = 1) -> int:
        if not isinstance(ticks, int) or isinstance(ticks, bool) or ticks < 0:
            raise ValueError(f"ticks must be a non-negative int: {ticks!r}")
        self._tick += ticks
        return self._tick

    def advance_to(self, tick: int) -> int:
        if not isinstance(tick, int) or isinstance(tick, bool):
            raise TypeError("tick must be an int")
        if tick < self._tick:
            raise ValueError(f"clock cannot move backwards: {tick} < {self._tick}")
        self._tick = tick
        return self._tick

    def __repr__(self) -> str:
        return f"ManualClock(tick={self._tick})"

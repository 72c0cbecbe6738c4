"""
Collaborators at the edge of the core: tokens, the tick clock and event logging.

The scenario runner lives in `stakeledger.integration.scenario` and is imported explicitly.
"""

from .clock import Clock, ManualClock
from .events import log_event
from .token import InMemoryToken, InsufficientAllowance, InsufficientFunds, TokenError, TokenLike

__all__ = [
    "Clock",
    "ManualClock",
    "log_event",
    "InMemoryToken",
    "InsufficientAllowance",
    "InsufficientFunds",
    "TokenError",
    "TokenLike",
]

"""Exception types for the deposit ledger and the reward program.

Every failure aborts the whole operation; callers distinguish failures by
exception class. Argument-domain problems (non-positive amounts, negative ticks)
raise plain ``ValueError`` instead.
"""

from __future__ import annotations


class StakingError(Exception):
    """Base class for all ledger/program rejections."""

    default_reason = "rejected"

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or self.default_reason
        super().__init__(self.reason)

    @property
    def kind(self) -> str:
        return type(self).__name__


class Unauthorized(StakingError):
    """Caller is not the administrator (or not the trustee)."""

    default_reason = "caller is not authorized"


class CapacityExceeded(StakingError):
    """An absolute or proportional deposit limit would be violated."""

    default_reason = "capacity exceeded"


class TransferFailed(StakingError):
    """The token collaborator rejected a transfer."""

    default_reason = "token transfer failed"


class InsufficientBalance(StakingError):
    """Debit of more than the deposited balance."""

    default_reason = "insufficient deposited balance"


class LifecycleError(StakingError):
    """Program lifecycle precondition violated."""


class ProgramNotActive(LifecycleError):
    default_reason = "program is not active"


class ProgramAlreadyStarted(LifecycleError):
    default_reason = "program already started"


class ProgramNotEnded(ProgramNotActive):
    """Harvest attempted before the program end."""

    default_reason = "program has not ended"


class NothingToWithdraw(StakingError):
    default_reason = "nothing to withdraw"


class NothingToHarvest(StakingError):
    default_reason = "nothing to harvest"


class OutstandingSettlement(StakingError):
    """Direct ledger withdrawal refused while program reward is unsettled."""

    default_reason = "unsettled program reward; withdraw through the program"

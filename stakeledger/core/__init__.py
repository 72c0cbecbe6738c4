"""
Core staking algorithms
"""

from .capacity import ProportionalRule, check_deposit, max_deposit
from .errors import (
    CapacityExceeded,
    InsufficientBalance,
    LifecycleError,
    NothingToHarvest,
    NothingToWithdraw,
    OutstandingSettlement,
    ProgramAlreadyStarted,
    ProgramNotActive,
    ProgramNotEnded,
    StakingError,
    TransferFailed,
    Unauthorized,
)
from .fixed_point import PRECISION, rate_from_fraction, to_token_units
from .ledger import DepositLedger, SettlementGuard
from .program import Pool, ProgramStatus, RewardProgram, WithdrawResult

__all__ = [
    "ProportionalRule",
    "check_deposit",
    "max_deposit",
    "CapacityExceeded",
    "InsufficientBalance",
    "LifecycleError",
    "NothingToHarvest",
    "NothingToWithdraw",
    "OutstandingSettlement",
    "ProgramAlreadyStarted",
    "ProgramNotActive",
    "ProgramNotEnded",
    "StakingError",
    "TransferFailed",
    "Unauthorized",
    "PRECISION",
    "rate_from_fraction",
    "to_token_units",
    "DepositLedger",
    "SettlementGuard",
    "Pool",
    "ProgramStatus",
    "RewardProgram",
    "WithdrawResult",
]

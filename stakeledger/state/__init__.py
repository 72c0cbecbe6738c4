"""
State tables for stakeledger
"""

from .balances import AllowanceTable, BalanceTable
from .checkpoints import Checkpoint, CheckpointLog

__all__ = [
    "AllowanceTable",
    "BalanceTable",
    "Checkpoint",
    "CheckpointLog",
]

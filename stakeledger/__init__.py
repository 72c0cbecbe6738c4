"""
stakeledger: checkpointed deposit ledger with a multi-pool reward program.
"""

__version__ = "0.1.0"

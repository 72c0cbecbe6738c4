"""Shared builders for ledger/program tests."""

from __future__ import annotations

import pytest

from stakeledger.config import LedgerConfig, ProgramConfig
from stakeledger.core import DepositLedger, RewardProgram, rate_from_fraction
from stakeledger.integration import InMemoryToken, ManualClock

OWNER = "owner"
ALICE = "alice"
BOB = "bob"
CARL = "carl"


def make_token(address: str, mint: dict[str, int] | None = None, cls=InMemoryToken) -> InMemoryToken:
    token = cls(address, name=address, symbol=address.upper())
    for account, amount in (mint or {}).items():
        token.mint(account, amount)
    return token


def make_ledger(clock: ManualClock) -> DepositLedger:
    return DepositLedger(LedgerConfig(admin=OWNER), clock)


def deposit(ledger: DepositLedger, token: InMemoryToken, account: str, amount: int) -> int:
    token.approve(account, ledger.address, token.allowance(account, ledger.address) + amount)
    return ledger.deposit(token, account, amount)


def make_program(
    clock: ManualClock,
    ledger: DepositLedger,
    reward_token: InMemoryToken,
    *,
    start: int = 100,
    length: int = 1000,
    soft_lock: int = 600,
    allowance: int = 10_000,
) -> RewardProgram:
    program = RewardProgram(
        ProgramConfig(admin=OWNER, start_tick=start, end_tick=start + length, soft_lock_tick=start + soft_lock),
        ledger,
        reward_token,
        clock,
    )
    ledger.set_trustee(program.address, caller=OWNER)
    ledger.set_settlement_guard(program, caller=OWNER)
    reward_token.approve(OWNER, program.address, allowance)
    return program


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(1)


@pytest.fixture
def ledger(clock: ManualClock) -> DepositLedger:
    return make_ledger(clock)


RATE_1_PER_1000 = rate_from_fraction(1, 1000)
RATE_4_PER_1000 = rate_from_fraction(2, 500)


class RejectingToken(InMemoryToken):
    """Token whose outgoing `transfer` returns False while `rejecting` is set."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.rejecting = False

    def transfer(self, sender, to, amount):
        if self.rejecting:
            return False
        return super().transfer(sender, to, amount)

"""
Multi-pool reward program over a bounded tick range.

Each pool pays a fixed-point reward rate per deposited token per tick for one
token held in the deposit ledger. Accrual is computed from the ledger's
checkpoint history, so the program keeps only one settlement tick per
(account, pool), plus the reward settled but not yet paid (owed) per account.

Lifecycle:
- UNSTARTED  (now < start_tick): pools may be added.
- ACTIVE     (start_tick <= now < end_tick): end may be extended or cut short.
- ENDED      (now >= end_tick): rewards are frozen and may be harvested.
  A program ended by `terminate()` reports TERMINATED unless it was extended
  again before the cut-off.

Soft lock: while soft_lock_tick <= now < end_tick, `withdraw` still returns the
principal but the reward settled by that call is forfeited.

Reward payouts are drawn from the administrator's reward-token allowance to
the program. Principal is returned before the reward is paid, and each
external transfer is its own unit: a failure keeps what already went through.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Dict, Iterator, List, Mapping, Tuple

from ..config import ProgramConfig
from ..integration.clock import Clock
from ..integration.events import log_event
from ..integration.token import TokenError, TokenLike
from .errors import (
    NothingToHarvest,
    NothingToWithdraw,
    ProgramAlreadyStarted,
    ProgramNotActive,
    ProgramNotEnded,
    TransferFailed,
    Unauthorized,
)
from .ledger import DepositLedger

log = logging.getLogger("stakeledger.program")

Account = str


@unique
class ProgramStatus(Enum):
    UNSTARTED = "unstarted"
    ACTIVE = "active"
    ENDED = "ended"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class Pool:
    token: str
    reward_rate: int


@dataclass(frozen=True)
class WithdrawResult:
    reward: int
    forfeited: int
    principal: Mapping[str, int]


@dataclass
class ProgramState:
    end_tick: int
    pools: List[Pool] = field(default_factory=list)
    settled: Dict[Tuple[Account, int], int] = field(default_factory=dict)
    owed: Dict[Account, int] = field(default_factory=dict)
    paid_out: int = 0
    forfeited: int = 0
    terminated: bool = False

    def copy(self) -> "ProgramState":
        return ProgramState(
            end_tick=self.end_tick,
            pools=list(self.pools),
            settled=dict(self.settled),
            owed=dict(self.owed),
            paid_out=self.paid_out,
            forfeited=self.forfeited,
            terminated=self.terminated,
        )


class RewardProgram:
    def __init__(
        self,
        config: ProgramConfig,
        ledger: DepositLedger,
        reward_token: TokenLike,
        clock: Clock,
    ) -> None:
        self.config = config
        self.ledger = ledger
        self.reward_token = reward_token
        self._clock = clock
        self._state = ProgramState(end_tick=config.end_tick)

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    @property
    def address(self) -> Account:
        return self.config.address

    @property
    def admin(self) -> Account:
        return self.config.admin

    @property
    def start_tick(self) -> int:
        return self.config.start_tick

    @property
    def end_tick(self) -> int:
        return self._state.end_tick

    @property
    def soft_lock_tick(self) -> int:
        return self.config.soft_lock_tick

    @property
    def paid_out(self) -> int:
        return self._state.paid_out

    @property
    def forfeited(self) -> int:
        return self._state.forfeited

    @property
    def status(self) -> ProgramStatus:
        now = self._clock.now()
        if now < self.start_tick:
            return ProgramStatus.UNSTARTED
        if now < self._state.end_tick:
            return ProgramStatus.ACTIVE
        return ProgramStatus.TERMINATED if self._state.terminated else ProgramStatus.ENDED

    def in_soft_lock(self) -> bool:
        now = self._clock.now()
        return self.soft_lock_tick <= now < self._state.end_tick

    def pool_length(self) -> int:
        return len(self._state.pools)

    def pool_info(self, index: int) -> Pool:
        if not 0 <= index < len(self._state.pools):
            raise IndexError(f"no pool at index {index}")
        return self._state.pools[index]

    def last_settled(self, account: Account, index: int) -> int:
        self.pool_info(index)
        return max(self._state.settled.get((account, index), self.start_tick), self.start_tick)

    def _accrual_end(self) -> int:
        return min(self._clock.now(), self._state.end_tick)

    def _pool_pending(self, account: Account, index: int, pool: Pool) -> int:
        return self.ledger.calc_reward(
            pool.token,
            account,
            pool.reward_rate,
            self.last_settled(account, index),
            self._accrual_end(),
        )

    def owed(self, account: Account) -> int:
        """Reward settled by an earlier withdraw but not paid out yet."""
        return self._state.owed.get(account, 0)

    def pending(self, account: Account) -> int:
        """Reward payable to `account`: owed reward plus accrual since the last settlement."""
        accrued = sum(self._pool_pending(account, i, pool) for i, pool in enumerate(self._state.pools))
        return self.owed(account) + accrued

    def outstanding_reward(self, account: Account) -> int:
        return self.pending(account)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Restore program and ledger state if the enclosed block raises."""
        snapshot = self._state.copy()
        try:
            with self.ledger.atomic():
                yield
        except BaseException:
            self._state = snapshot
            raise

    def _require_admin(self, caller: Account) -> None:
        if caller != self.config.admin:
            log.debug("unauthorized admin call by %s", caller)
            raise Unauthorized(f"{caller} is not the program administrator")

    def _require_active(self) -> int:
        now = self._clock.now()
        if not (self.start_tick <= now < self._state.end_tick):
            raise ProgramNotActive(f"tick {now} outside [{self.start_tick}, {self._state.end_tick})")
        return now

    def _settle(self, account: Account, to_tick: int) -> int:
        """Advance every pool settlement for `account` to `to_tick`; return the reward settled."""
        reward = 0
        for i, pool in enumerate(self._state.pools):
            reward += self._pool_pending(account, i, pool)
            key = (account, i)
            self._state.settled[key] = max(self._state.settled.get(key, self.start_tick), to_tick)
        return reward

    def _pay(self, account: Account, amount: int) -> None:
        try:
            ok = self.reward_token.transfer_from(self.address, self.admin, account, amount)
        except TokenError as exc:
            raise TransferFailed(f"reward payout: {exc}") from exc
        if not ok:
            raise TransferFailed("reward payout: rejected by token")

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def add_pool(self, token: TokenLike | str, reward_rate: int, *, caller: Account) -> int:
        """Add a pool paying `reward_rate` (scaled by PRECISION) per token per tick. Returns its index."""
        self._require_admin(caller)
        now = self._clock.now()
        if now >= self.start_tick:
            raise ProgramAlreadyStarted(f"program started at tick {self.start_tick}")
        if not isinstance(reward_rate, int) or isinstance(reward_rate, bool) or reward_rate <= 0:
            raise ValueError(f"reward_rate must be a positive int: {reward_rate!r}")
        addr = token if isinstance(token, str) else token.address
        if any(p.token == addr for p in self._state.pools):
            raise ValueError(f"token {addr} already has a pool")
        self._state.pools.append(Pool(token=addr, reward_rate=reward_rate))
        log_event(log, "program.pool_added", token=addr, reward_rate=reward_rate, index=len(self._state.pools) - 1)
        return len(self._state.pools) - 1

    def extend(self, extra_ticks: int, *, caller: Account) -> int:
        self._require_admin(caller)
        if not isinstance(extra_ticks, int) or isinstance(extra_ticks, bool) or extra_ticks <= 0:
            raise ValueError(f"extra_ticks must be a positive int: {extra_ticks!r}")
        self._require_active()
        self._state.end_tick += extra_ticks
        self._state.terminated = False
        log_event(log, "program.extended", end_tick=self._state.end_tick)
        return self._state.end_tick

    def terminate(self, *, caller: Account) -> int:
        """End the program at the next tick."""
        self._require_admin(caller)
        now = self._require_active()
        self._state.end_tick = now + 1
        self._state.terminated = True
        log_event(log, "program.terminated", end_tick=self._state.end_tick, tick=now)
        return self._state.end_tick

    # ------------------------------------------------------------------
    # Participant operations
    # ------------------------------------------------------------------

    def withdraw(self, account: Account, *, forfeit: bool = False) -> WithdrawResult:
        """
        Settle reward, return the account's principal in every pool, then pay the reward.

        Settled reward is held as owed until it is paid, so a failed principal
        return or payout keeps it for the next call. Reward is forfeited inside
        the soft-lock window. With `forfeit=True` all of the account's reward,
        including anything owed, is forfeited and only principal moves; this
        is the exit when the payout cannot be made.

        Raises:
            NothingToWithdraw: If the account holds nothing and is owed nothing
            Unauthorized: If the program is not the ledger's trustee
            TransferFailed: If a principal return or the payout fails
        """
        pools = list(self._state.pools)
        holds = any(self.ledger.deposited(p.token, account) for p in pools)
        if not holds and not self.owed(account):
            raise NothingToWithdraw(f"{account} holds nothing in any pool")
        if holds and self.ledger.trustee != self.address:
            raise Unauthorized(f"{self.address} is not the ledger trustee")

        now = self._clock.now()
        settled = self._settle(account, self._accrual_end())
        lost = settled if self.in_soft_lock() else 0
        if forfeit:
            lost = settled + self._state.owed.pop(account, 0)
        self._state.forfeited += lost
        if settled > lost:
            self._state.owed[account] = self.owed(account) + settled - lost

        principal: Dict[str, int] = {}
        for pool in pools:
            # Re-read: a token callback may already have moved this balance.
            held = self.ledger.deposited(pool.token, account)
            if held:
                self.ledger.trustee_debit(pool.token, account, held, caller=self.address)
                principal[pool.token] = held

        payout = self._state.owed.get(account, 0)
        if payout:
            with self.atomic():
                del self._state.owed[account]
                self._state.paid_out += payout
                self._pay(account, payout)

        log_event(
            log,
            "program.withdraw",
            account=account,
            reward=payout,
            forfeited=lost,
            principal=principal,
            tick=now,
        )
        return WithdrawResult(reward=payout, forfeited=lost, principal=principal)

    def harvest(self, account: Account) -> int:
        """
        Pay out the reward accrued up to the end of the program; principal stays deposited.

        Raises:
            ProgramNotEnded: If the program is still running
            NothingToHarvest: If nothing has accrued since the last settlement
        """
        now = self._clock.now()
        if now < self._state.end_tick:
            raise ProgramNotEnded(f"program ends at tick {self._state.end_tick}")
        reward = self.pending(account)
        if reward == 0:
            raise NothingToHarvest(f"{account} has no pending reward")

        with self.atomic():
            self._settle(account, self._state.end_tick)
            self._state.owed.pop(account, None)
            self._state.paid_out += reward
            self._pay(account, reward)

        log_event(log, "program.harvest", account=account, reward=reward, tick=now)
        return reward

    def __repr__(self) -> str:
        return (
            f"RewardProgram({self.address!r}, pools={len(self._state.pools)}, "
            f"ticks=[{self.start_tick}, {self._state.end_tick}))"
        )

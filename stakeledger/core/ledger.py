"""
Checkpointed deposit ledger.

Holds deposited tokens in custody and records, per (token, account), every
balance change as a checkpoint so that rewards can later be computed from how
long a balance was held. Capacity limits are enforced on deposit and one
trustee (normally the reward program) may debit any account's deposit on the
account's behalf.

Mutating operations run inside `atomic()`, which restores the ledger state if
anything raises. Each atomic unit makes at most one external token call, after
its internal state is committed, so a rollback never undoes bookkeeping for a
transfer that went through.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Protocol, Tuple

from ..config import LedgerConfig
from ..integration.clock import Clock
from ..integration.events import log_event
from ..integration.token import TokenError, TokenLike
from ..state.checkpoints import Checkpoint, CheckpointLog
from . import capacity
from .capacity import ProportionalRule
from .errors import (
    CapacityExceeded,
    InsufficientBalance,
    NothingToWithdraw,
    OutstandingSettlement,
    TransferFailed,
    Unauthorized,
)
from .fixed_point import PRECISION, to_token_units

log = logging.getLogger("stakeledger.ledger")

Account = str
TokenAddress = str


class SettlementGuard(Protocol):
    """Reports reward that would be lost if principal left the ledger directly."""

    def outstanding_reward(self, account: Account) -> int: ...


@dataclass
class LedgerState:
    """Mutable ledger state; snapshotted by `DepositLedger.atomic()`."""

    checkpoints: Dict[Tuple[TokenAddress, Account], CheckpointLog] = field(default_factory=dict)
    totals: Dict[TokenAddress, int] = field(default_factory=dict)
    rules: Dict[TokenAddress, ProportionalRule] = field(default_factory=dict)
    limits: Dict[TokenAddress, int] = field(default_factory=dict)
    trustee: Optional[Account] = None
    guard: Optional[SettlementGuard] = None

    def copy(self) -> "LedgerState":
        return LedgerState(
            checkpoints={k: v.copy() for k, v in self.checkpoints.items()},
            totals=dict(self.totals),
            rules=dict(self.rules),
            limits=dict(self.limits),
            trustee=self.trustee,
            guard=self.guard,
        )


def _token_address(token: TokenLike | str) -> TokenAddress:
    return token if isinstance(token, str) else token.address


def _require_positive(amount: int, *, name: str = "amount") -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise TypeError(f"{name} must be an int")
    if amount <= 0:
        raise ValueError(f"{name} must be positive: {amount}")


class DepositLedger:
    def __init__(self, config: LedgerConfig, clock: Clock) -> None:
        self.config = config
        self._clock = clock
        self._state = LedgerState()
        # Token objects seen so far; only grows, so it is not part of snapshots.
        self._tokens: Dict[TokenAddress, TokenLike] = {}

    @property
    def address(self) -> Account:
        return self.config.address

    @property
    def admin(self) -> Account:
        return self.config.admin

    # ------------------------------------------------------------------
    # Atomicity
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Restore the ledger state if the enclosed block raises."""
        snapshot = self._state.copy()
        try:
            yield
        except BaseException:
            self._state = snapshot
            raise

    def _require_admin(self, caller: Account) -> None:
        if caller != self.config.admin:
            log.debug("unauthorized admin call by %s", caller)
            raise Unauthorized(f"{caller} is not the ledger administrator")

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    def deposited(self, token: TokenLike | str, account: Account) -> int:
        cps = self._state.checkpoints.get((_token_address(token), account))
        return cps.latest() if cps is not None else 0

    def total(self, token: TokenLike | str) -> int:
        return self._state.totals.get(_token_address(token), 0)

    def checkpoints(self, token: TokenLike | str, account: Account) -> Tuple[Checkpoint, ...]:
        cps = self._state.checkpoints.get((_token_address(token), account))
        return cps.entries() if cps is not None else ()

    def balance_at(self, token: TokenLike | str, account: Account, tick: int) -> int:
        cps = self._state.checkpoints.get((_token_address(token), account))
        return cps.balance_at(tick) if cps is not None else 0

    @property
    def trustee(self) -> Optional[Account]:
        return self._state.trustee

    def capacity_rule(self, token: TokenLike | str) -> Optional[ProportionalRule]:
        return self._state.rules.get(_token_address(token))

    def global_limit(self, token: TokenLike | str) -> Optional[int]:
        return self._state.limits.get(_token_address(token))

    def max_deposit(self, token: TokenLike | str, account: Account) -> Optional[int]:
        """Headroom left for `account` in `token`; None when the token is uncapped."""
        addr = _token_address(token)
        rule = self._state.rules.get(addr)
        return capacity.max_deposit(
            total=self.total(addr),
            global_limit=self._state.limits.get(addr),
            rule=rule,
            anchor_deposit=self.deposited(rule.anchor_token, account) if rule else 0,
            own_deposit=self.deposited(addr, account),
        )

    def calc_reward(
        self,
        token: TokenLike | str,
        account: Account,
        rate: int,
        from_tick: int,
        to_tick: int,
        *,
        precision: int = PRECISION,
    ) -> int:
        """
        Reward earned by `account` for holding `token` over `[from_tick, to_tick)`.

        The balance integral is summed exactly in token-ticks and divided by
        `precision` once. Returns 0 for an empty window or an unknown account.
        """
        if from_tick < 0 or to_tick < 0:
            raise ValueError(f"ticks must be non-negative: ({from_tick}, {to_tick})")
        cps = self._state.checkpoints.get((_token_address(token), account))
        if cps is None or to_tick <= from_tick:
            return 0
        return to_token_units(cps.token_ticks(from_tick, to_tick), rate, precision)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def set_trustee(self, trustee: Optional[Account], *, caller: Account) -> None:
        self._require_admin(caller)
        self._state.trustee = trustee
        log_event(log, "ledger.trustee_set", trustee=trustee)

    def set_settlement_guard(self, guard: Optional[SettlementGuard], *, caller: Account) -> None:
        self._require_admin(caller)
        self._state.guard = guard

    def set_capacity_rule(
        self,
        anchor_token: TokenLike | str,
        anchor_multiplier: int,
        token: TokenLike | str,
        self_multiplier: int,
        *,
        caller: Account,
    ) -> ProportionalRule:
        """Cap `token` per account at `deposited(anchor_token) * self_multiplier // anchor_multiplier`."""
        self._require_admin(caller)
        anchor = _token_address(anchor_token)
        addr = _token_address(token)
        if anchor == addr:
            raise ValueError("a token cannot be capped against itself")
        rule = ProportionalRule(anchor, anchor_multiplier, self_multiplier)
        self._state.rules[addr] = rule
        log_event(
            log,
            "ledger.cap_set",
            token=addr,
            anchor_token=anchor,
            anchor_multiplier=anchor_multiplier,
            self_multiplier=self_multiplier,
        )
        return rule

    def set_global_limit(self, token: TokenLike | str, limit: Optional[int], *, caller: Account) -> None:
        """Limit the total deposited amount of `token`; None removes the limit."""
        self._require_admin(caller)
        if limit is not None:
            if not isinstance(limit, int) or isinstance(limit, bool) or limit < 0:
                raise ValueError(f"limit must be a non-negative int: {limit!r}")
        addr = _token_address(token)
        if limit is None:
            self._state.limits.pop(addr, None)
        else:
            self._state.limits[addr] = limit
        log_event(log, "ledger.limit_set", token=addr, limit=limit)

    # ------------------------------------------------------------------
    # Deposits and withdrawals
    # ------------------------------------------------------------------

    def _record(self, addr: TokenAddress, account: Account, balance: int) -> None:
        key = (addr, account)
        cps = self._state.checkpoints.get(key)
        if cps is None:
            cps = CheckpointLog()
            self._state.checkpoints[key] = cps
        cps.record(self._clock.now(), balance)

    def _call_token(self, what: str, fn, *args) -> None:
        try:
            ok = fn(*args)
        except TokenError as exc:
            raise TransferFailed(f"{what}: {exc}") from exc
        if not ok:
            raise TransferFailed(f"{what}: rejected by token")

    def deposit(self, token: TokenLike, account: Account, amount: int) -> int:
        """
        Move `amount` of `token` from `account` into custody.

        Returns the account's new deposited balance.

        Raises:
            CapacityExceeded: If a limit would be exceeded
            TransferFailed: If the token rejects the transfer (allowance/balance)
        """
        _require_positive(amount)
        addr = token.address
        with self.atomic():
            rule = self._state.rules.get(addr)
            previous = self.deposited(addr, account)
            try:
                capacity.check_deposit(
                    amount,
                    total=self.total(addr),
                    global_limit=self._state.limits.get(addr),
                    rule=rule,
                    anchor_deposit=self.deposited(rule.anchor_token, account) if rule else 0,
                    own_deposit=previous,
                )
            except CapacityExceeded:
                log.debug("deposit of %s %s by %s rejected by capacity", amount, addr, account)
                raise

            self._tokens.setdefault(addr, token)
            self._record(addr, account, previous + amount)
            self._state.totals[addr] = self.total(addr) + amount

            self._call_token("deposit", token.transfer_from, self.address, account, self.address, amount)

        log_event(
            log,
            "ledger.deposit",
            token=addr,
            account=account,
            amount=amount,
            balance=previous + amount,
            tick=self._clock.now(),
        )
        return previous + amount

    def withdraw_all(self, account: Account) -> Dict[TokenAddress, int]:
        """
        Return every deposited token to `account` without touching rewards.

        Each token is its own unit: if a later token's transfer fails, the
        tokens already returned stay withdrawn and the failing one stays
        deposited.

        Raises:
            OutstandingSettlement: If the settlement guard reports unsettled reward
            NothingToWithdraw: If the account holds nothing
            TransferFailed: If a token rejects the return of its balance
        """
        guard = self._state.guard
        if guard is not None and guard.outstanding_reward(account) > 0:
            raise OutstandingSettlement()

        held = {
            addr: cps.latest()
            for (addr, acct), cps in sorted(self._state.checkpoints.items())
            if acct == account and cps.latest() > 0
        }
        if not held:
            raise NothingToWithdraw(f"{account} has no deposits")

        for addr, amount in held.items():
            with self.atomic():
                self._record(addr, account, 0)
                self._state.totals[addr] = self.total(addr) - amount
                token = self._tokens[addr]
                self._call_token("withdraw", token.transfer, self.address, account, amount)
            log_event(log, "ledger.withdraw", token=addr, account=account, amount=amount, tick=self._clock.now())

        return held

    def trustee_debit(
        self,
        token: TokenLike | str,
        account: Account,
        amount: int,
        recipient: Optional[Account] = None,
        *,
        caller: Account,
    ) -> int:
        """
        Debit `amount` from `account`'s deposit and send it to `recipient` (default: the account).

        Only the configured trustee may call this. Returns the remaining balance.

        Raises:
            Unauthorized: If caller is not the trustee
            InsufficientBalance: If amount exceeds the deposited balance
        """
        if self._state.trustee is None or caller != self._state.trustee:
            log.debug("trustee debit by non-trustee %s", caller)
            raise Unauthorized(f"{caller} is not the trustee")
        _require_positive(amount)
        addr = _token_address(token)
        held = self.deposited(addr, account)
        if amount > held:
            raise InsufficientBalance(f"debit {amount} exceeds deposit {held} of {addr}")

        to = recipient if recipient is not None else account
        with self.atomic():
            self._record(addr, account, held - amount)
            self._state.totals[addr] = self.total(addr) - amount
            token_obj = self._tokens[addr]
            self._call_token("trustee debit", token_obj.transfer, self.address, to, amount)

        log_event(
            log,
            "ledger.trustee_debit",
            token=addr,
            account=account,
            recipient=to,
            amount=amount,
            tick=self._clock.now(),
        )
        return held - amount

    def __repr__(self) -> str:
        return f"DepositLedger({self.address!r}, {len(self._state.checkpoints)} checkpoint logs)"

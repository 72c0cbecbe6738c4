"""
Fungible-token collaborator.

The ledger and the program only depend on `TokenLike`. `InMemoryToken` is an
ERC20-style implementation (mint/approve/transfer/transfer_from) used by tests,
the scenario runner and local simulations. Each call is atomic: a rejected
transfer leaves balances and allowances untouched.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

from ..state.balances import Account, AllowanceTable, Amount, BalanceTable
from .events import log_event

log = logging.getLogger("stakeledger.token")


class TokenError(Exception):
    """Raised by a token when it rejects a transfer."""


class InsufficientFunds(TokenError):
    pass


class InsufficientAllowance(TokenError):
    pass


@runtime_checkable
class TokenLike(Protocol):
    address: str

    def transfer(self, sender: Account, to: Account, amount: Amount) -> bool: ...

    def transfer_from(self, spender: Account, owner: Account, to: Account, amount: Amount) -> bool: ...

    def balance_of(self, account: Account) -> Amount: ...


def _require_amount(amount: Amount) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise TypeError("amount must be an int")
    if amount < 0:
        raise ValueError(f"amount must be non-negative: {amount}")


class InMemoryToken:
    """ERC20-style token held entirely in memory."""

    def __init__(
        self,
        address: str,
        name: str = "",
        symbol: str = "",
        decimals: int = 0,
        supply: Amount = 0,
        owner: Optional[Account] = None,
    ) -> None:
        if not isinstance(address, str) or not address:
            raise ValueError("address must be a non-empty string")
        self.address = address
        self.name = name or address
        self.symbol = symbol or address.upper()
        self.decimals = decimals
        self._balances = BalanceTable()
        self._allowances = AllowanceTable()
        if supply:
            if owner is None:
                raise ValueError("initial supply requires an owner")
            self.mint(owner, supply)

    def balance_of(self, account: Account) -> Amount:
        return self._balances.get(account)

    def total_supply(self) -> Amount:
        return self._balances.total()

    def allowance(self, owner: Account, spender: Account) -> Amount:
        return self._allowances.get(owner, spender)

    def mint(self, to: Account, amount: Amount) -> None:
        _require_amount(amount)
        self._balances.add(to, amount)
        log_event(log, "token.mint", token=self.address, to=to, amount=amount)

    def approve(self, owner: Account, spender: Account, amount: Amount) -> bool:
        _require_amount(amount)
        self._allowances.set(owner, spender, amount)
        return True

    def transfer(self, sender: Account, to: Account, amount: Amount) -> bool:
        _require_amount(amount)
        self._move(sender, to, amount)
        return True

    def transfer_from(self, spender: Account, owner: Account, to: Account, amount: Amount) -> bool:
        _require_amount(amount)
        allowed = self._allowances.get(owner, spender)
        if amount > allowed:
            raise InsufficientAllowance(
                f"{self.symbol}: allowance {allowed} < {amount} for spender {spender}"
            )
        self._move(owner, to, amount)
        self._allowances.set(owner, spender, allowed - amount)
        return True

    def _move(self, sender: Account, to: Account, amount: Amount) -> None:
        held = self._balances.get(sender)
        if amount > held:
            raise InsufficientFunds(f"{self.symbol}: balance {held} < {amount} for {sender}")
        self._balances.subtract(sender, amount)
        self._balances.add(to, amount)

    def __repr__(self) -> str:
        return f"InMemoryToken({self.address!r}, symbol={self.symbol!r})"

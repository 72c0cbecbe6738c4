"""
Sparse balance and allowance tables for token bookkeeping.

Implements BalanceTable[Account] -> Amount and AllowanceTable[(Owner, Spender)] -> Amount.
"""

from typing import Dict, Tuple


# Type aliases
Account = str  # opaque account address
Amount = int  # Non-negative integer (arbitrary precision)


class BalanceTable:
    """
    Balance table mapping account -> amount.

    Note: zero balances are dropped to keep the table sparse. Callers that need a
    stable order should sort keys explicitly.
    """

    def __init__(self):
        """Initialize empty balance table."""
        self._balances: Dict[Account, Amount] = {}

    def get(self, account: Account) -> Amount:
        """Get balance for account. Returns 0 if not found."""
        return self._balances.get(account, 0)

    def set(self, account: Account, amount: Amount) -> None:
        """
        Set balance for account.

        Raises:
            ValueError: If amount is negative
        """
        if amount < 0:
            raise ValueError(f"Balance cannot be negative: {amount}")
        if amount == 0:
            self._balances.pop(account, None)
        else:
            self._balances[account] = amount

    def add(self, account: Account, delta: int) -> None:
        """
        Add delta to balance (delta may be negative).

        Raises:
            ValueError: If resulting balance would be negative
        """
        current = self.get(account)
        new_balance = current + delta
        if new_balance < 0:
            raise ValueError(
                f"Insufficient balance: {current} + {delta} = {new_balance} < 0"
            )
        self.set(account, new_balance)

    def subtract(self, account: Account, delta: Amount) -> None:
        """Subtract a non-negative amount from a balance."""
        if delta < 0:
            raise ValueError(f"Delta must be non-negative: {delta}")
        self.add(account, -delta)

    def total(self) -> Amount:
        return sum(self._balances.values())

    def get_all_balances(self) -> Dict[Account, Amount]:
        """Return all non-zero balances."""
        return dict(self._balances)

    def __repr__(self) -> str:
        return f"BalanceTable({len(self._balances)} entries)"


class AllowanceTable:
    """Allowance table mapping (owner, spender) -> amount."""

    def __init__(self) -> None:
        self._allowances: Dict[Tuple[Account, Account], Amount] = {}

    def get(self, owner: Account, spender: Account) -> Amount:
        return self._allowances.get((owner, spender), 0)

    def set(self, owner: Account, spender: Account, amount: Amount) -> None:
        if amount < 0:
            raise ValueError(f"Allowance cannot be negative: {amount}")
        if amount == 0:
            self._allowances.pop((owner, spender), None)
        else:
            self._allowances[(owner, spender)] = amount

    def __repr__(self) -> str:
        return f"AllowanceTable({len(self._allowances)} entries)"

"""Tests for stakeledger/state/balances.py."""

import pytest

from stakeledger.state import AllowanceTable, BalanceTable


class TestBalanceTable:
    def test_add_and_subtract(self):
        table = BalanceTable()
        table.add("alice", 10)
        table.subtract("alice", 4)
        assert table.get("alice") == 6
        assert table.total() == 6

    def test_zero_balances_are_dropped(self):
        table = BalanceTable()
        table.set("alice", 5)
        table.set("alice", 0)
        assert table.get_all_balances() == {}

    def test_overdraw_rejected(self):
        table = BalanceTable()
        table.add("alice", 1)
        with pytest.raises(ValueError):
            table.subtract("alice", 2)
        assert table.get("alice") == 1

    def test_negative_delta_rejected_by_subtract(self):
        with pytest.raises(ValueError):
            BalanceTable().subtract("alice", -1)


class TestAllowanceTable:
    def test_set_get(self):
        table = AllowanceTable()
        table.set("alice", "ledger", 30)
        assert table.get("alice", "ledger") == 30
        assert table.get("ledger", "alice") == 0

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            AllowanceTable().set("alice", "ledger", -5)

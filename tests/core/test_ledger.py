"""Tests for stakeledger/core/ledger.py.

The walkthrough classes replay a full deposit/cap/limit/withdraw session with
three accounts and two tokens.
"""

import pytest

from stakeledger.core import (
    CapacityExceeded,
    InsufficientBalance,
    NothingToWithdraw,
    OutstandingSettlement,
    TransferFailed,
    Unauthorized,
)
from stakeledger.core.capacity import CAPPED_TOKEN, LIMIT_REACHED
from stakeledger.integration import ManualClock
from stakeledger.state import Checkpoint

from conftest import ALICE, BOB, CARL, OWNER, RejectingToken, deposit, make_ledger, make_token

DEPOSIT_TICK = 10


def _session():
    """Ledger after the initial deposits of the walkthrough."""
    clock = ManualClock(1)
    ledger = make_ledger(clock)
    t1 = make_token("t1", {ALICE: 5000, BOB: 500, CARL: 2000})
    t2 = make_token("t2", {ALICE: 1500, BOB: 800})
    clock.advance_to(DEPOSIT_TICK)
    deposit(ledger, t1, ALICE, 1500)
    deposit(ledger, t2, ALICE, 1000)
    deposit(ledger, t1, BOB, 500)
    deposit(ledger, t2, BOB, 100)
    deposit(ledger, t1, CARL, 1000)
    return clock, ledger, t1, t2


# ---------------------------------------------------------------------------
# deposits
# ---------------------------------------------------------------------------

class TestReceivesDeposits:
    def test_deposits_of_alice(self):
        _, ledger, t1, t2 = _session()
        assert t1.balance_of(ALICE) == 3500
        assert ledger.deposited(t1, ALICE) == 1500
        assert t2.balance_of(ALICE) == 500
        assert ledger.deposited(t2, ALICE) == 1000

    def test_deposits_of_bob(self):
        _, ledger, t1, t2 = _session()
        assert t1.balance_of(BOB) == 0
        assert ledger.deposited(t1, BOB) == 500
        assert t2.balance_of(BOB) == 700
        assert ledger.deposited(t2, BOB) == 100

    def test_deposits_of_carl(self):
        _, ledger, t1, t2 = _session()
        assert t1.balance_of(CARL) == 1000
        assert ledger.deposited(t1, CARL) == 1000
        assert ledger.deposited(t2, CARL) == 0

    def test_totals(self):
        _, ledger, t1, t2 = _session()
        assert ledger.total(t1) == 3000
        assert ledger.total("t2") == 1100

    def test_ledger_holds_the_deposits(self):
        _, ledger, t1, t2 = _session()
        assert t1.balance_of(ledger.address) == 3000
        assert t2.balance_of(ledger.address) == 1100

    def test_checkpoint_recorded(self):
        _, ledger, t1, _ = _session()
        assert ledger.checkpoints(t1, ALICE) == (Checkpoint(DEPOSIT_TICK, 1500),)

    def test_second_deposit_same_tick_updates_checkpoint(self):
        _, ledger, t1, _ = _session()
        deposit(ledger, t1, ALICE, 100)
        assert ledger.checkpoints(t1, ALICE) == (Checkpoint(DEPOSIT_TICK, 1600),)

    def test_non_positive_amount(self):
        _, ledger, t1, _ = _session()
        with pytest.raises(ValueError):
            ledger.deposit(t1, ALICE, 0)

    def test_transfer_failure_rolls_back(self):
        clock, ledger, t1, _ = _session()
        clock.advance(5)
        # no allowance granted
        with pytest.raises(TransferFailed):
            ledger.deposit(t1, ALICE, 100)
        assert ledger.deposited(t1, ALICE) == 1500
        assert ledger.total(t1) == 3000
        assert len(ledger.checkpoints(t1, ALICE)) == 1
        assert t1.balance_of(ALICE) == 3500

    def test_insufficient_funds_is_transfer_failure(self):
        _, ledger, t1, _ = _session()
        t1.approve(BOB, ledger.address, 1)
        with pytest.raises(TransferFailed):
            ledger.deposit(t1, BOB, 1)


# ---------------------------------------------------------------------------
# proportional cap
# ---------------------------------------------------------------------------

class TestCappedToken:
    def _capped(self):
        clock, ledger, t1, t2 = _session()
        ledger.set_capacity_rule(t1, 20, t2, 10, caller=OWNER)
        return clock, ledger, t1, t2

    def test_max_deposits(self):
        _, ledger, _, t2 = self._capped()
        assert ledger.max_deposit(t2, ALICE) == 0
        assert ledger.max_deposit(t2, BOB) == 150
        assert ledger.max_deposit(t2, CARL) == 500

    def test_uncapped_token_has_no_max(self):
        _, ledger, t1, _ = self._capped()
        assert ledger.max_deposit(t1, ALICE) is None

    def test_alice_cannot_deposit_more(self):
        _, ledger, _, t2 = self._capped()
        with pytest.raises(CapacityExceeded) as exc:
            deposit(ledger, t2, ALICE, 100)
        assert exc.value.reason == CAPPED_TOKEN
        assert exc.value.kind == "CapacityExceeded"
        assert ledger.deposited(t2, ALICE) == 1000
        assert t2.balance_of(ALICE) == 500

    def test_bob_cannot_exceed_max(self):
        _, ledger, _, t2 = self._capped()
        with pytest.raises(CapacityExceeded):
            deposit(ledger, t2, BOB, 250)

    def test_bob_can_deposit_below_max(self):
        _, ledger, _, t2 = self._capped()
        deposit(ledger, t2, BOB, 100)
        assert t2.balance_of(BOB) == 600
        assert ledger.deposited(t2, BOB) == 200

    def test_only_admin_can_cap(self):
        _, ledger, t1, t2 = _session()
        with pytest.raises(Unauthorized):
            ledger.set_capacity_rule(t1, 20, t2, 10, caller=ALICE)
        assert ledger.capacity_rule(t2) is None

    def test_cannot_cap_against_itself(self):
        _, ledger, t1, _ = _session()
        with pytest.raises(ValueError):
            ledger.set_capacity_rule(t1, 1, t1, 1, caller=OWNER)


# ---------------------------------------------------------------------------
# reward integral
# ---------------------------------------------------------------------------

class TestCalcReward:
    def test_full_window_after_deposit(self):
        _, ledger, t1, _ = _session()
        assert ledger.calc_reward(t1, ALICE, 3, 1000, 2000, precision=1) == 1000 * 1500 * 3

    def test_window_starting_before_deposit(self):
        _, ledger, t1, _ = _session()
        assert ledger.calc_reward(t1, ALICE, 3, 0, 1000, precision=1) == (1000 - DEPOSIT_TICK) * 1500 * 3

    def test_fixed_point_rate(self):
        _, ledger, t1, _ = _session()
        assert ledger.calc_reward(t1, ALICE, 10**33, 100, 1100) == 1500

    def test_empty_and_inverted_windows(self):
        _, ledger, t1, _ = _session()
        assert ledger.calc_reward(t1, ALICE, 3, 500, 500) == 0
        assert ledger.calc_reward(t1, ALICE, 3, 600, 500) == 0

    def test_unknown_account(self):
        _, ledger, t1, _ = _session()
        assert ledger.calc_reward(t1, "nobody", 3, 0, 1000) == 0

    def test_follows_balance_changes(self):
        clock, ledger, t1, _ = _session()
        clock.advance_to(20)
        t1.mint(BOB, 500)
        deposit(ledger, t1, BOB, 500)
        # bob: 500 over [10,20), 1000 over [20,30)
        assert ledger.calc_reward(t1, BOB, 1, 0, 30, precision=1) == 500 * 10 + 1000 * 10

    def test_balance_at(self):
        _, ledger, t1, _ = _session()
        assert ledger.balance_at(t1, ALICE, DEPOSIT_TICK - 1) == 0
        assert ledger.balance_at(t1, ALICE, DEPOSIT_TICK) == 1500


# ---------------------------------------------------------------------------
# global limit
# ---------------------------------------------------------------------------

class TestGlobalLimit:
    def _limited(self):
        clock, ledger, t1, t2 = _session()
        ledger.set_global_limit(t1, 3500, caller=OWNER)
        return clock, ledger, t1, t2

    def test_rejects_over_limit(self):
        _, ledger, t1, _ = self._limited()
        with pytest.raises(CapacityExceeded) as exc:
            deposit(ledger, t1, ALICE, 1000)
        assert exc.value.reason == LIMIT_REACHED
        assert ledger.total(t1) == 3000

    def test_accepts_up_to_limit(self):
        _, ledger, t1, _ = self._limited()
        deposit(ledger, t1, ALICE, 500)
        assert t1.balance_of(ALICE) == 3000
        assert ledger.deposited(t1, ALICE) == 2000
        assert ledger.max_deposit(t1, BOB) == 0

    def test_limit_can_be_removed(self):
        _, ledger, t1, _ = self._limited()
        ledger.set_global_limit(t1, None, caller=OWNER)
        assert ledger.global_limit(t1) is None
        deposit(ledger, t1, ALICE, 1000)

    def test_only_admin(self):
        _, ledger, t1, _ = _session()
        with pytest.raises(Unauthorized):
            ledger.set_global_limit(t1, 1, caller=BOB)


# ---------------------------------------------------------------------------
# withdrawals
# ---------------------------------------------------------------------------

class TestWithdrawAll:
    def test_alice_gets_everything_back(self):
        clock, ledger, t1, t2 = _session()
        clock.advance_to(50)
        returned = ledger.withdraw_all(ALICE)
        assert returned == {"t1": 1500, "t2": 1000}
        assert t1.balance_of(ALICE) == 5000
        assert t2.balance_of(ALICE) == 1500
        assert ledger.deposited(t1, ALICE) == 0
        assert ledger.deposited(t2, ALICE) == 0
        assert ledger.total(t1) == 1500
        assert ledger.checkpoints(t1, ALICE)[-1] == Checkpoint(50, 0)

    def test_history_survives_withdrawal(self):
        clock, ledger, t1, _ = _session()
        clock.advance_to(50)
        ledger.withdraw_all(ALICE)
        assert ledger.calc_reward(t1, ALICE, 1, 0, 100, precision=1) == 1500 * (50 - DEPOSIT_TICK)

    def test_nothing_to_withdraw(self):
        _, ledger, _, _ = _session()
        with pytest.raises(NothingToWithdraw):
            ledger.withdraw_all("nobody")

    def test_failed_return_keeps_tokens_already_returned(self):
        clock = ManualClock(1)
        ledger = make_ledger(clock)
        good = make_token("good", {ALICE: 1000, BOB: 1000})
        zbad = make_token("zbad", {ALICE: 10}, cls=RejectingToken)
        deposit(ledger, good, ALICE, 1000)
        deposit(ledger, good, BOB, 1000)
        deposit(ledger, zbad, ALICE, 10)
        clock.advance_to(5)

        zbad.rejecting = True
        with pytest.raises(TransferFailed):
            ledger.withdraw_all(ALICE)
        assert good.balance_of(ALICE) == 1000
        assert ledger.deposited(good, ALICE) == 0
        assert ledger.total(good) == good.balance_of(ledger.address) == 1000
        assert ledger.deposited(zbad, ALICE) == 10
        assert ledger.total(zbad) == zbad.balance_of(ledger.address) == 10

        zbad.rejecting = False
        assert ledger.withdraw_all(ALICE) == {"zbad": 10}
        assert zbad.balance_of(ALICE) == 10
        assert ledger.deposited(good, BOB) == 1000

    def test_refused_while_settlement_outstanding(self):
        _, ledger, t1, _ = _session()

        class Guard:
            def outstanding_reward(self, account):
                return 7 if account == ALICE else 0

        ledger.set_settlement_guard(Guard(), caller=OWNER)
        with pytest.raises(OutstandingSettlement):
            ledger.withdraw_all(ALICE)
        assert ledger.deposited(t1, ALICE) == 1500
        assert ledger.withdraw_all(BOB) == {"t1": 500, "t2": 100}


# ---------------------------------------------------------------------------
# trustee
# ---------------------------------------------------------------------------

class TestTrusteeDebit:
    def test_requires_trustee(self):
        _, ledger, t1, _ = _session()
        with pytest.raises(Unauthorized):
            ledger.trustee_debit(t1, ALICE, 100, caller="staking")
        ledger.set_trustee("staking", caller=OWNER)
        with pytest.raises(Unauthorized):
            ledger.trustee_debit(t1, ALICE, 100, caller=BOB)

    def test_only_admin_sets_trustee(self):
        _, ledger, _, _ = _session()
        with pytest.raises(Unauthorized):
            ledger.set_trustee(ALICE, caller=ALICE)
        assert ledger.trustee is None

    def test_trustee_can_be_replaced(self):
        _, ledger, t1, _ = _session()
        ledger.set_trustee("staking", caller=OWNER)
        ledger.set_trustee("staking-v2", caller=OWNER)
        with pytest.raises(Unauthorized):
            ledger.trustee_debit(t1, ALICE, 1, caller="staking")
        assert ledger.trustee_debit(t1, ALICE, 1, caller="staking-v2") == 1499

    def test_debit_to_account(self):
        clock, ledger, t1, _ = _session()
        ledger.set_trustee("staking", caller=OWNER)
        clock.advance_to(40)
        remaining = ledger.trustee_debit(t1, ALICE, 600, caller="staking")
        assert remaining == 900
        assert ledger.deposited(t1, ALICE) == 900
        assert ledger.total(t1) == 2400
        assert t1.balance_of(ALICE) == 3500 + 600

    def test_debit_to_recipient(self):
        _, ledger, t1, _ = _session()
        ledger.set_trustee("staking", caller=OWNER)
        ledger.trustee_debit(t1, ALICE, 500, recipient=CARL, caller="staking")
        assert t1.balance_of(CARL) == 1000 + 500
        assert t1.balance_of(ALICE) == 3500

    def test_cannot_debit_more_than_held(self):
        _, ledger, t1, _ = _session()
        ledger.set_trustee("staking", caller=OWNER)
        with pytest.raises(InsufficientBalance):
            ledger.trustee_debit(t1, ALICE, 1501, caller="staking")
        assert ledger.deposited(t1, ALICE) == 1500

"""Property tests for the deposit ledger (hypothesis)."""

from hypothesis import given, settings, strategies as st

from stakeledger.core import CapacityExceeded
from stakeledger.integration import ManualClock

from conftest import ALICE, BOB, CARL, OWNER, deposit, make_ledger, make_token

ACCOUNTS = [ALICE, BOB, CARL]

# (tick gap, account index, amount)
deposit_steps = st.lists(
    st.tuples(st.integers(0, 50), st.integers(0, 2), st.integers(1, 400)),
    min_size=1,
    max_size=20,
)


def _fresh(limit=None):
    clock = ManualClock(0)
    ledger = make_ledger(clock)
    token = make_token("t", {a: 10_000 for a in ACCOUNTS})
    if limit is not None:
        ledger.set_global_limit(token, limit, caller=OWNER)
    return clock, ledger, token


@settings(max_examples=60, deadline=None)
@given(steps=deposit_steps, limit=st.integers(0, 3000))
def test_total_never_exceeds_limit_and_matches_deposits(steps, limit):
    clock, ledger, token = _fresh(limit)
    for gap, who, amount in steps:
        clock.advance(gap)
        try:
            deposit(ledger, token, ACCOUNTS[who], amount)
        except CapacityExceeded:
            pass
        assert ledger.total(token) <= limit
        assert ledger.total(token) == sum(ledger.deposited(token, a) for a in ACCOUNTS)
        assert token.balance_of(ledger.address) == ledger.total(token)


@settings(max_examples=60, deadline=None)
@given(
    steps=deposit_steps,
    cuts=st.lists(st.integers(0, 1200), min_size=3, max_size=3),
    rate=st.integers(1, 7),
)
def test_reward_is_additive_over_adjacent_windows(steps, cuts, rate):
    clock, ledger, token = _fresh()
    for gap, who, amount in steps:
        clock.advance(gap)
        deposit(ledger, token, ACCOUNTS[who], amount)
    a, b, c = sorted(cuts)
    for account in ACCOUNTS:
        whole = ledger.calc_reward(token, account, rate, a, c, precision=1)
        split = ledger.calc_reward(token, account, rate, a, b, precision=1) + ledger.calc_reward(
            token, account, rate, b, c, precision=1
        )
        assert whole == split
        assert ledger.calc_reward(token, account, rate, b, b, precision=1) == 0


@settings(max_examples=60, deadline=None)
@given(steps=deposit_steps, gap=st.integers(0, 100))
def test_withdraw_all_restores_token_balances(steps, gap):
    clock, ledger, token = _fresh()
    for step_gap, who, amount in steps:
        clock.advance(step_gap)
        deposit(ledger, token, ACCOUNTS[who], amount)
    clock.advance(gap)
    for account in ACCOUNTS:
        if ledger.deposited(token, account):
            ledger.withdraw_all(account)
        assert token.balance_of(account) == 10_000
        assert ledger.deposited(token, account) == 0
    assert ledger.total(token) == 0
    assert token.balance_of(ledger.address) == 0

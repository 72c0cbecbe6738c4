"""
Scenario runner: wire a deployment and replay a scripted sequence of steps.

This is an imperative-shell wrapper around the core:
- `build_deployment()` creates tokens, the clock, the ledger and (optionally)
  the reward program from a `DeploymentConfig`, installs the program as the
  ledger trustee and settlement guard, and funds the reward allowance.
- `run_scenario()` applies steps in order. A rejected step is recorded with its
  error kind and does not stop the run, mirroring how independent calls behave.
  A malformed step raises `ScenarioError`.

Step format (one mapping per step)::

    {"op": "advance_to", "tick": 110}
    {"op": "approve", "token": "t1", "owner": "alice", "amount": 1500}
    {"op": "deposit", "token": "t1", "account": "alice", "amount": 1500}
    {"op": "pending", "account": "alice"}
    {"op": "withdraw", "account": "alice"}
    {"op": "withdraw", "account": "alice", "forfeit": true}
    {"op": "withdraw_all", "account": "alice"}
    {"op": "harvest", "account": "bob"}
    {"op": "extend", "ticks": 500}
    {"op": "terminate"}
    {"op": "balance", "token": "t1", "account": "alice"}
    {"op": "max_deposit", "token": "t2", "account": "bob"}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..config import DeploymentConfig
from ..core.errors import StakingError
from ..core.fixed_point import rate_from_fraction
from ..core.ledger import DepositLedger
from ..core.program import RewardProgram
from .clock import ManualClock
from .events import log_event
from .token import InMemoryToken, TokenError

log = logging.getLogger("stakeledger.scenario")


class ScenarioError(ValueError):
    """A step is malformed (unknown op, missing field, bad value)."""


@dataclass
class Deployment:
    config: DeploymentConfig
    clock: ManualClock
    tokens: Dict[str, InMemoryToken]
    ledger: DepositLedger
    program: Optional[RewardProgram] = None

    def token(self, address: str) -> InMemoryToken:
        try:
            return self.tokens[address]
        except KeyError:
            raise KeyError(f"unknown token {address!r}") from None


@dataclass(frozen=True)
class StepOutcome:
    index: int
    op: str
    tick: int
    ok: bool
    result: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"index": self.index, "op": self.op, "tick": self.tick, "ok": self.ok}
        if self.ok:
            out["result"] = self.result
        else:
            out["error"] = self.error
            out["error_kind"] = self.error_kind
        return out


@dataclass
class ScenarioReport:
    steps: List[StepOutcome] = field(default_factory=list)
    paid_out: int = 0
    forfeited: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "steps": [s.to_dict() for s in self.steps],
            "paid_out": self.paid_out,
            "forfeited": self.forfeited,
        }


def build_deployment(config: DeploymentConfig) -> Deployment:
    clock = ManualClock(config.start_clock)
    tokens: Dict[str, InMemoryToken] = {}
    for t in config.tokens:
        token = InMemoryToken(t.address, t.name, t.symbol, t.decimals, t.supply, t.owner)
        for account, amount in sorted(t.mint.items()):
            token.mint(account, amount)
        tokens[t.address] = token

    ledger = DepositLedger(config.ledger, clock)
    admin = config.ledger.admin
    for cap in config.caps:
        ledger.set_capacity_rule(
            cap.anchor_token, cap.anchor_multiplier, cap.token, cap.self_multiplier, caller=admin
        )
    for lim in config.limits:
        ledger.set_global_limit(lim.token, lim.limit, caller=admin)

    program: Optional[RewardProgram] = None
    if config.program is not None:
        if config.reward_token is None:
            raise ValueError("a program requires a reward token")
        program = RewardProgram(config.program, ledger, tokens[config.reward_token], clock)
        for pool in config.pools:
            program.add_pool(
                pool.token,
                rate_from_fraction(pool.reward_numerator, pool.reward_denominator),
                caller=config.program.admin,
            )
        ledger.set_trustee(program.address, caller=admin)
        ledger.set_settlement_guard(program, caller=admin)
        if config.reward_allowance:
            tokens[config.reward_token].approve(config.program.admin, program.address, config.reward_allowance)

    log_event(
        log,
        "scenario.deployed",
        tokens=sorted(tokens),
        pools=len(config.pools),
        program=program.address if program else None,
    )
    return Deployment(config=config, clock=clock, tokens=tokens, ledger=ledger, program=program)


def _require_program(dep: Deployment) -> RewardProgram:
    if dep.program is None:
        raise ValueError("deployment has no reward program")
    return dep.program


def _apply_step(dep: Deployment, step: Mapping[str, Any]) -> Any:
    op = step.get("op")
    if op == "advance_to":
        return dep.clock.advance_to(int(step["tick"]))
    if op == "advance":
        return dep.clock.advance(int(step.get("ticks", 1)))
    if op == "mint":
        dep.token(step["token"]).mint(step["account"], int(step["amount"]))
        return None
    if op == "approve":
        spender = step.get("spender", dep.ledger.address)
        return dep.token(step["token"]).approve(step["owner"], spender, int(step["amount"]))
    if op == "deposit":
        return dep.ledger.deposit(dep.token(step["token"]), step["account"], int(step["amount"]))
    if op == "withdraw_all":
        return dep.ledger.withdraw_all(step["account"])
    if op == "balance":
        return dep.token(step["token"]).balance_of(step["account"])
    if op == "deposited":
        return dep.ledger.deposited(step["token"], step["account"])
    if op == "max_deposit":
        return dep.ledger.max_deposit(step["token"], step["account"])
    if op == "pending":
        return _require_program(dep).pending(step["account"])
    if op == "withdraw":
        res = _require_program(dep).withdraw(step["account"], forfeit=bool(step.get("forfeit", False)))
        return {"reward": res.reward, "forfeited": res.forfeited, "principal": dict(res.principal)}
    if op == "harvest":
        return _require_program(dep).harvest(step["account"])
    if op == "extend":
        program = _require_program(dep)
        return program.extend(int(step["ticks"]), caller=step.get("caller", program.admin))
    if op == "terminate":
        program = _require_program(dep)
        return program.terminate(caller=step.get("caller", program.admin))
    raise ValueError(f"unknown op: {op!r}")


def run_scenario(dep: Deployment, steps: Sequence[Mapping[str, Any]]) -> ScenarioReport:
    report = ScenarioReport()
    for i, step in enumerate(steps):
        op = str(step.get("op"))
        try:
            result = _apply_step(dep, step)
        except (StakingError, TokenError) as exc:
            log.debug("step %d (%s) rejected: %s", i, op, exc)
            report.steps.append(
                StepOutcome(i, op, dep.clock.now(), ok=False, error=str(exc), error_kind=type(exc).__name__)
            )
            continue
        except (ValueError, KeyError, TypeError) as exc:
            raise ScenarioError(f"step {i} ({op}): {exc}") from exc
        report.steps.append(StepOutcome(i, op, dep.clock.now(), ok=True, result=result))

    if dep.program is not None:
        report.paid_out = dep.program.paid_out
        report.forfeited = dep.program.forfeited
    return report

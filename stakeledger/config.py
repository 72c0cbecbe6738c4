"""
Deployment configuration.

Frozen dataclasses describe the ledger, the reward program and their initial
setup. `load_deployment()` reads the same structure from YAML and validates it
fail-closed, raising `ConfigError` on the first problem.

Example::

    ledger:
      admin: owner
    program:
      admin: owner
      start_tick: 100
      end_offset: 1000
      soft_lock_offset: 600
      reward_token: erc20
      reward_allowance: 10000
    tokens:
      - {address: erc20, supply: 1000000, owner: owner}
      - {address: t1, mint: {alice: 5000}}
    pools:
      - {token: t1, reward_numerator: 1, reward_denominator: 1000}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml


class ConfigError(ValueError):
    """Raised when a deployment description is malformed."""


@dataclass(frozen=True)
class LedgerConfig:
    admin: str
    address: str = "deposit-ledger"


@dataclass(frozen=True)
class ProgramConfig:
    admin: str
    start_tick: int
    end_tick: int
    soft_lock_tick: int
    address: str = "reward-program"

    def __post_init__(self) -> None:
        for name, v in (
            ("start_tick", self.start_tick),
            ("end_tick", self.end_tick),
            ("soft_lock_tick", self.soft_lock_tick),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")
        if self.start_tick >= self.end_tick:
            raise ValueError(f"start_tick must precede end_tick: {self.start_tick} >= {self.end_tick}")
        if not (self.start_tick <= self.soft_lock_tick <= self.end_tick):
            raise ValueError(
                f"soft_lock_tick must lie in [start_tick, end_tick]: {self.soft_lock_tick}"
            )


@dataclass(frozen=True)
class TokenConfig:
    address: str
    name: str = ""
    symbol: str = ""
    decimals: int = 0
    supply: int = 0
    owner: Optional[str] = None
    mint: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class PoolConfig:
    token: str
    reward_numerator: int
    reward_denominator: int = 1


@dataclass(frozen=True)
class CapConfig:
    anchor_token: str
    anchor_multiplier: int
    token: str
    self_multiplier: int


@dataclass(frozen=True)
class LimitConfig:
    token: str
    limit: int


@dataclass(frozen=True)
class DeploymentConfig:
    ledger: LedgerConfig
    program: Optional[ProgramConfig] = None
    reward_token: Optional[str] = None
    reward_allowance: int = 0
    start_clock: int = 0
    tokens: tuple[TokenConfig, ...] = ()
    pools: tuple[PoolConfig, ...] = ()
    caps: tuple[CapConfig, ...] = ()
    limits: tuple[LimitConfig, ...] = ()


def _require_mapping(obj: Any, *, name: str) -> Mapping[str, Any]:
    if not isinstance(obj, Mapping):
        raise ConfigError(f"{name} must be an object")
    return obj


def _require_list(obj: Any, *, name: str) -> list[Any]:
    if obj is None:
        return []
    if not isinstance(obj, list):
        raise ConfigError(f"{name} must be a list")
    return obj


def _require_str(obj: Any, *, name: str) -> str:
    if not isinstance(obj, str) or not obj.strip():
        raise ConfigError(f"{name} must be a non-empty string")
    return obj.strip()


def _require_int(obj: Any, *, name: str, minimum: int = 0) -> int:
    if not isinstance(obj, int) or isinstance(obj, bool):
        raise ConfigError(f"{name} must be an integer")
    if obj < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {obj}")
    return obj


def _parse_program(obj: Mapping[str, Any], *, default_admin: str) -> ProgramConfig:
    admin = _require_str(obj.get("admin", default_admin), name="program.admin")
    start = _require_int(obj.get("start_tick"), name="program.start_tick")
    if "end_tick" in obj:
        end = _require_int(obj["end_tick"], name="program.end_tick")
    else:
        end = start + _require_int(obj.get("end_offset"), name="program.end_offset", minimum=1)
    if "soft_lock_tick" in obj:
        soft = _require_int(obj["soft_lock_tick"], name="program.soft_lock_tick")
    elif "soft_lock_offset" in obj:
        soft = start + _require_int(obj["soft_lock_offset"], name="program.soft_lock_offset")
    else:
        soft = end
    kwargs: dict[str, Any] = {}
    if "address" in obj:
        kwargs["address"] = _require_str(obj["address"], name="program.address")
    try:
        return ProgramConfig(admin=admin, start_tick=start, end_tick=end, soft_lock_tick=soft, **kwargs)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"program: {exc}") from exc


def _parse_token(i: int, obj: Any) -> TokenConfig:
    obj = _require_mapping(obj, name=f"tokens[{i}]")
    mint_raw = _require_mapping(obj.get("mint") or {}, name=f"tokens[{i}].mint")
    mint = {
        _require_str(k, name=f"tokens[{i}].mint key"): _require_int(v, name=f"tokens[{i}].mint[{k}]")
        for k, v in mint_raw.items()
    }
    supply = _require_int(obj.get("supply", 0), name=f"tokens[{i}].supply")
    owner = obj.get("owner")
    if supply and owner is None:
        raise ConfigError(f"tokens[{i}].owner is required with a supply")
    return TokenConfig(
        address=_require_str(obj.get("address"), name=f"tokens[{i}].address"),
        name=str(obj.get("name", "")),
        symbol=str(obj.get("symbol", "")),
        decimals=_require_int(obj.get("decimals", 0), name=f"tokens[{i}].decimals"),
        supply=supply,
        owner=_require_str(owner, name=f"tokens[{i}].owner") if owner is not None else None,
        mint=mint,
    )


def parse_deployment(raw: Any) -> DeploymentConfig:
    obj = _require_mapping(raw, name="deployment")
    ledger_obj = _require_mapping(obj.get("ledger"), name="ledger")
    ledger_admin = _require_str(ledger_obj.get("admin"), name="ledger.admin")
    ledger = LedgerConfig(
        admin=ledger_admin,
        address=_require_str(ledger_obj.get("address", "deposit-ledger"), name="ledger.address"),
    )

    program: Optional[ProgramConfig] = None
    reward_token: Optional[str] = None
    reward_allowance = 0
    if obj.get("program") is not None:
        program_obj = _require_mapping(obj["program"], name="program")
        program = _parse_program(program_obj, default_admin=ledger_admin)
        reward_token = _require_str(program_obj.get("reward_token"), name="program.reward_token")
        reward_allowance = _require_int(program_obj.get("reward_allowance", 0), name="program.reward_allowance")

    tokens = tuple(_parse_token(i, t) for i, t in enumerate(_require_list(obj.get("tokens"), name="tokens")))
    known = {t.address for t in tokens}
    if len(known) != len(tokens):
        raise ConfigError("duplicate token address")

    def _known_token(value: Any, *, name: str) -> str:
        addr = _require_str(value, name=name)
        if addr not in known:
            raise ConfigError(f"{name} references unknown token {addr!r}")
        return addr

    if reward_token is not None:
        _known_token(reward_token, name="program.reward_token")

    pools = []
    for i, p in enumerate(_require_list(obj.get("pools"), name="pools")):
        p = _require_mapping(p, name=f"pools[{i}]")
        pools.append(
            PoolConfig(
                token=_known_token(p.get("token"), name=f"pools[{i}].token"),
                reward_numerator=_require_int(p.get("reward_numerator"), name=f"pools[{i}].reward_numerator", minimum=1),
                reward_denominator=_require_int(
                    p.get("reward_denominator", 1), name=f"pools[{i}].reward_denominator", minimum=1
                ),
            )
        )
    if pools and program is None:
        raise ConfigError("pools require a program section")

    caps = []
    for i, c in enumerate(_require_list(obj.get("caps"), name="caps")):
        c = _require_mapping(c, name=f"caps[{i}]")
        caps.append(
            CapConfig(
                anchor_token=_known_token(c.get("anchor_token"), name=f"caps[{i}].anchor_token"),
                anchor_multiplier=_require_int(c.get("anchor_multiplier"), name=f"caps[{i}].anchor_multiplier", minimum=1),
                token=_known_token(c.get("token"), name=f"caps[{i}].token"),
                self_multiplier=_require_int(c.get("self_multiplier"), name=f"caps[{i}].self_multiplier", minimum=1),
            )
        )

    limits = []
    for i, lim in enumerate(_require_list(obj.get("limits"), name="limits")):
        lim = _require_mapping(lim, name=f"limits[{i}]")
        limits.append(
            LimitConfig(
                token=_known_token(lim.get("token"), name=f"limits[{i}].token"),
                limit=_require_int(lim.get("limit"), name=f"limits[{i}].limit"),
            )
        )

    return DeploymentConfig(
        ledger=ledger,
        program=program,
        reward_token=reward_token,
        reward_allowance=reward_allowance,
        start_clock=_require_int(obj.get("start_clock", 0), name="start_clock"),
        tokens=tokens,
        pools=tuple(pools),
        caps=tuple(caps),
        limits=tuple(limits),
    )


def load_deployment(path: Path | str) -> DeploymentConfig:
    """Load and validate a deployment from a YAML file."""
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML: {exc}") from exc
    return parse_deployment(raw)

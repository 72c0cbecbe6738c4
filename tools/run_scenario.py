#!/usr/bin/env python3
"""
Replay a staking scenario (deployment + steps) from YAML and print a JSON report.

Usage:
    python tools/run_scenario.py scenarios/staking_walkthrough.yaml
    python tools/run_scenario.py scenario.yaml --out report.json --log-level INFO
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Mapping

import yaml

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stakeledger.config import ConfigError, parse_deployment
from stakeledger.integration.scenario import build_deployment, run_scenario


def load_scenario(path: Path) -> tuple[Any, list[Mapping[str, Any]]]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: scenario must be an object")
    steps = raw.get("steps") or []
    if not isinstance(steps, list) or not all(isinstance(s, dict) for s in steps):
        raise ConfigError(f"{path}: steps must be a list of objects")
    return parse_deployment(raw.get("deployment")), steps


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Replay a deposit/reward scenario and report the outcome of each step")
    ap.add_argument("scenario", type=str, help="scenario YAML (deployment + steps)")
    ap.add_argument("--out", type=str, default="", help="write the JSON report here instead of stdout")
    ap.add_argument("--log-level", type=str, default="WARNING")
    ap.add_argument("--strict", action="store_true", help="exit non-zero if any step was rejected")
    args = ap.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING), format="%(name)s %(message)s")

    try:
        config, steps = load_scenario(Path(args.scenario))
    except (OSError, ConfigError, yaml.YAMLError) as exc:
        print(f"[run-scenario] FAIL: {exc}", file=sys.stderr)
        return 2

    try:
        report = run_scenario(build_deployment(config), steps)
    except ValueError as exc:
        # ScenarioError or a deployment the core refuses to wire
        print(f"[run-scenario] FAIL: {exc}", file=sys.stderr)
        return 2
    text = json.dumps(report.to_dict(), indent=2, sort_keys=True)
    if args.out:
        Path(args.out).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)

    if args.strict and any(not s.ok for s in report.steps):
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python3
"""
estimate.py
===========

Estimate the next difficulty adjustment from a file of recent blocks.

The file is JSON or YAML holding either an array of block entries or an object
with a "blocks" array:

    [{"height": 1244400, "timestamp": 1700000000, "difficulty": 101.3}, ...]

Examples
--------
# 1) Mainnet LWMA estimate, evaluated "now":
python -m retarget.cli.estimate --file ./blocks.json

# 2) Testnet, evaluated at a fixed time, with a custom profile file:
python -m retarget.cli.estimate --file ./blocks.yaml --network testnet \
  --params ./networks.yaml --now 1700001500

# 3) ASERT estimate, keep the indexer's previous retarget, write JSON:
python -m retarget.cli.estimate --file ./blocks.json --algorithm asert \
  --previous-policy passthrough --previous-retarget 1.25 --json-out out.json

Exit codes: 0 report printed, 1 file holds no blocks, 2 invalid input/config.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

import yaml

from .. import config as rconfig
from .. import logging as rlog
from ..cache import InMemoryBlockCache
from ..errors import EstimatorError, InvalidSampleError
from ..service import DifficultyAdjustmentService
from ..types import BlockSample

log = rlog.get_logger("retarget.cli.estimate")


def load_blocks(path: str | Path) -> List[BlockSample]:
    """Read block entries from a JSON/YAML file."""
    text = Path(path).expanduser().read_text(encoding="utf-8")
    raw: Any = yaml.safe_load(text)
    if isinstance(raw, dict):
        raw = raw.get("blocks")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise InvalidSampleError("block file must hold an array or an object with a 'blocks' array")
    return [BlockSample.from_mapping(entry) for entry in raw]


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="retarget-estimate", description="Difficulty adjustment estimate")
    ap.add_argument("--file", type=str, required=True, help="JSON/YAML file with recent blocks")
    ap.add_argument("--config", type=str, help="TOML/JSON/YAML config file")
    ap.add_argument("--network", type=str, help="mainnet | testnet (default: mainnet)")
    ap.add_argument("--algorithm", type=str, help="lwma | asert | trailing (default: lwma)")
    ap.add_argument("--previous-policy", type=str, help="estimate | passthrough (default: estimate)")
    ap.add_argument("--params", type=str, help="network profile file (YAML/JSON)")
    ap.add_argument("--now", type=int, help="evaluate at this unix time in seconds (default: wall clock)")
    ap.add_argument("--height", type=int, help="current chain height (default: newest block)")
    ap.add_argument("--previous-retarget", type=float, default=0.0, help="previous retarget %% (default: 0)")
    ap.add_argument("--previous-time-ms", type=int, default=0, help="previous retarget time, unix ms (default: 0)")
    ap.add_argument("--log-level", type=str, help="DEBUG | INFO | WARNING | ERROR")
    ap.add_argument("--json-out", type=str, help="also write the report JSON to this path")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = rconfig.load(
            args.config,
            network=args.network,
            algorithm=args.algorithm,
            previous_policy=args.previous_policy,
            params_file=args.params,
            log={"level": args.log_level} if args.log_level else None,
        )
        rlog.configure(json=cfg.log.json, level=cfg.log.level)
        blocks = load_blocks(args.file)
        params = cfg.estimator_params()
        cache = InMemoryBlockCache(capacity=max(params.window_size + 1, 3), blocks=blocks)
    except EstimatorError as e:
        print(f"[error] {e.message}", file=sys.stderr)
        return 2
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        print(f"[error] cannot read {args.file}: {e}", file=sys.stderr)
        return 2

    if args.height is not None:
        cache.set_current_height(args.height)
    cache.set_retarget(args.previous_time_ms, args.previous_retarget)

    service = DifficultyAdjustmentService(
        cache, params, algorithm=cfg.algorithm, previous_policy=cfg.previous_policy
    )
    with rlog.trace_scope():
        rlog.bind(component="cli", network=cfg.network.value, algorithm=cfg.algorithm.value)
        report = service.compute_adjustment_report(args.now)
        if report is None:
            log.warning("no blocks in input", extra={"file": args.file})
            print("[error] no blocks in input", file=sys.stderr)
            return 1
        log.info("report ready", extra={"samples": len(cache)})

    out = report.to_dict()
    print(json.dumps(out, indent=2))
    if args.json_out:
        with open(args.json_out, "w", encoding="utf-8") as f:
            json.dump(out, f, indent=2)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

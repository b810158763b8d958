"""
Retarget: difficulty-adjustment estimation

This package estimates the next per-block difficulty change of a chain from
a short window of recent block headers:
- linearly weighted moving average (v1 before / v2 from an activation height)
- exponential schedule (ASERT) and a plain trailing average
- testnet overdue-block time offset
- report assembly in the established API shape
The estimation path is deterministic and pure; `service`, `rpc_mount` and
`cli` add the block cache, HTTP and command-line surfaces.

Re-exports:
    __version__
    errors, types, params, window, estimators, testnet, report, cache,
    config, service
"""

# Re-export key submodules for ergonomic imports
from . import (cache, config, errors, estimators, params, report, service,
               testnet, types, window)
from .report import calc_difficulty_adjustment
from .version import __version__

__all__ = [
    "__version__",
    "calc_difficulty_adjustment",
    # submodules
    "errors",
    "types",
    "params",
    "window",
    "estimators",
    "testnet",
    "report",
    "cache",
    "config",
    "service",
]

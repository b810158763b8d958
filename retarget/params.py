"""
Estimator parameters & network profiles.

Every constant the estimator depends on is carried in a single frozen
`EstimatorParams` value, so network-specific behaviour (activation heights,
overdue-block rules) is data rather than branches inside the algorithms.

Built-in profiles
-----------------
               target  window  ceiling  v2 activation  halflife  overdue rule
    mainnet    150 s   45      6·T      1_244_300      3600 s    off
    testnet    150 s   45      6·T      200            3600 s    on (1200 s)

Profile files
-------------
`load_params_file` reads YAML (or JSON, which YAML accepts) with one section per
network. Keys override the built-in profile; unknown keys are ignored to allow
forward-compatible rollout. Example:

    mainnet:
      target_spacing_s: 150
      window_size: 45
      lwma_v2_activation_height: 1244300
    testnet:
      lwma_v2_activation_height: 200
      overdue_block_ceiling_s: 1200
      allow_overdue_blocks: true

This module is pure (no I/O beyond the explicit file loader).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

import yaml

from .errors import ConfigError, ParamsError
from .types import Network

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

BLOCK_SECONDS_TARGET = 150
LWMA_WINDOW = 45
SOLVE_TIME_CEILING_FACTOR = 6
LWMA_V2_ACTIVATION_HEIGHT = 1_244_300
LWMA_V2_ACTIVATION_HEIGHT_TESTNET = 200
LWMA_V1_BOUNDS: Tuple[float, float] = (-90.0, 100.0)    # max 10x adjustment
LWMA_V2_BOUNDS: Tuple[float, float] = (-66.67, 200.0)   # max 3x adjustment
ASERT_HALFLIFE_S = 3600
TESTNET_MAX_BLOCK_SECONDS = 1200


@dataclass(frozen=True)
class EstimatorParams:
    """
    Parameters controlling window selection, solve-time clamping and every
    estimator strategy.

    Attributes
    ----------
    network : Network
        Network the profile belongs to.
    target_spacing_s : float
        Nominal target block interval T (seconds).
    window_size : int
        Averaging window N (pairs of blocks).
    solve_time_ceiling_factor : float
        Solve times are clamped into [1, factor·T].
    lwma_v2_activation_height : int
        First height at which LWMA v2 replaces v1.
    lwma_v1_bounds, lwma_v2_bounds : (float, float)
        Inclusive (low, high) percentage caps for each LWMA version.
    asert_halflife_s : float
        Exponential estimator half-life (seconds).
    overdue_block_ceiling_s : float
        Ceiling used by the overdue-block time offset.
    allow_overdue_blocks : bool
        Whether the overdue-block time offset applies. Test network only.
    """

    network: Network = Network.MAINNET
    target_spacing_s: float = BLOCK_SECONDS_TARGET
    window_size: int = LWMA_WINDOW
    solve_time_ceiling_factor: float = SOLVE_TIME_CEILING_FACTOR
    lwma_v2_activation_height: int = LWMA_V2_ACTIVATION_HEIGHT
    lwma_v1_bounds: Tuple[float, float] = LWMA_V1_BOUNDS
    lwma_v2_bounds: Tuple[float, float] = LWMA_V2_BOUNDS
    asert_halflife_s: float = ASERT_HALFLIFE_S
    overdue_block_ceiling_s: float = TESTNET_MAX_BLOCK_SECONDS
    allow_overdue_blocks: bool = False

    def __post_init__(self) -> None:
        _require_positive("target_spacing_s", self.target_spacing_s)
        _require_positive("asert_halflife_s", self.asert_halflife_s)
        _require_positive("overdue_block_ceiling_s", self.overdue_block_ceiling_s)
        if int(self.window_size) < 2:
            raise ParamsError.out_of_range(field="window_size", value=self.window_size, expected=">= 2")
        if not math.isfinite(self.solve_time_ceiling_factor) or self.solve_time_ceiling_factor * self.target_spacing_s < 1:
            raise ParamsError.out_of_range(
                field="solve_time_ceiling_factor",
                value=self.solve_time_ceiling_factor,
                expected="factor * target_spacing_s >= 1",
            )
        if int(self.lwma_v2_activation_height) < 0:
            raise ParamsError.out_of_range(
                field="lwma_v2_activation_height", value=self.lwma_v2_activation_height, expected=">= 0"
            )
        for name in ("lwma_v1_bounds", "lwma_v2_bounds"):
            lo, hi = getattr(self, name)
            if not (lo < 0.0 < hi):
                raise ParamsError.out_of_range(field=name, value=(lo, hi), expected="low < 0 < high")
        if self.allow_overdue_blocks and Network.parse(self.network) is not Network.TESTNET:
            raise ParamsError(
                "overdue blocks are only allowed on the test network",
                field="allow_overdue_blocks",
                value=True,
                network=Network.parse(self.network).value,
            )

    @property
    def max_solve_time_s(self) -> float:
        return self.solve_time_ceiling_factor * self.target_spacing_s

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            v = getattr(self, f.name)
            if isinstance(v, Network):
                v = v.value
            elif isinstance(v, tuple):
                v = list(v)
            out[f.name] = v
        return out


def _require_positive(name: str, value: float) -> None:
    if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
        raise ParamsError.out_of_range(field=name, value=value, expected="> 0")


# ---------------------------------------------------------------------------
# Built-in profiles
# ---------------------------------------------------------------------------

MAINNET_PARAMS = EstimatorParams(network=Network.MAINNET)

TESTNET_PARAMS = EstimatorParams(
    network=Network.TESTNET,
    lwma_v2_activation_height=LWMA_V2_ACTIVATION_HEIGHT_TESTNET,
    allow_overdue_blocks=True,
)

_PROFILES: Dict[Network, EstimatorParams] = {
    Network.MAINNET: MAINNET_PARAMS,
    Network.TESTNET: TESTNET_PARAMS,
}


def params_for(network: Network | str) -> EstimatorParams:
    """Return the built-in profile for a network."""
    return _PROFILES[Network.parse(network)]


# ---------------------------------------------------------------------------
# Overrides & file loading
# ---------------------------------------------------------------------------

_FIELD_NAMES = frozenset(f.name for f in fields(EstimatorParams)) - {"network"}


def _coerce_field(name: str, value: Any) -> Any:
    if name in ("lwma_v1_bounds", "lwma_v2_bounds"):
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise ParamsError(f"{name} must be a [low, high] pair", field=name, value=value)
        return (float(value[0]), float(value[1]))
    if name in ("window_size", "lwma_v2_activation_height"):
        return int(value)
    if name == "allow_overdue_blocks":
        return bool(value)
    return float(value)


def with_overrides(base: EstimatorParams, overrides: Mapping[str, Any]) -> EstimatorParams:
    """
    Return `base` with the recognised keys of `overrides` applied.
    Unknown keys are ignored.
    """
    changes: Dict[str, Any] = {}
    for k, v in overrides.items():
        if k not in _FIELD_NAMES:
            continue
        try:
            changes[k] = _coerce_field(k, v)
        except (TypeError, ValueError) as e:
            raise ParamsError(f"invalid value for {k}", field=k, value=v, network=base.network.value) from e
    return replace(base, **changes) if changes else base


def load_params_file(path: str | Path) -> Dict[Network, EstimatorParams]:
    """
    Load per-network profiles from a YAML/JSON file.

    Networks absent from the file keep their built-in profile.
    """
    p = Path(path).expanduser()
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ParamsError("cannot read params file", path=str(p)) from e
    except (UnicodeDecodeError, yaml.YAMLError) as e:
        raise ParamsError("params file is not valid YAML/JSON", path=str(p)) from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ParamsError("params file must contain a mapping of network sections", path=str(p))

    out: Dict[Network, EstimatorParams] = dict(_PROFILES)
    for key, section in raw.items():
        try:
            network = Network.parse(key)
        except ConfigError as e:
            raise ParamsError("unknown network section", path=str(p), context={"section": key}) from e
        if section is None:
            continue
        if not isinstance(section, dict):
            raise ParamsError("network section must be a mapping", path=str(p), network=network.value)
        out[network] = with_overrides(_PROFILES[network], section)
    return out


def resolve_params(network: Network | str, params_file: str | Path | None = None) -> EstimatorParams:
    """Profile for `network`, taken from `params_file` when one is given."""
    net = Network.parse(network)
    if params_file is None:
        return params_for(net)
    return load_params_file(params_file)[net]


__all__ = [
    "EstimatorParams",
    "MAINNET_PARAMS",
    "TESTNET_PARAMS",
    "params_for",
    "with_overrides",
    "load_params_file",
    "resolve_params",
    "BLOCK_SECONDS_TARGET",
    "LWMA_WINDOW",
    "LWMA_V2_ACTIVATION_HEIGHT",
    "LWMA_V2_ACTIVATION_HEIGHT_TESTNET",
    "ASERT_HALFLIFE_S",
    "TESTNET_MAX_BLOCK_SECONDS",
]

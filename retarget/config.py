"""
Estimator configuration loader.

Layered config with clear precedence:
    1) Explicit overrides passed to `load()` (highest)
    2) Environment variables (RETARGET_*)
    3) Config file (TOML, JSON or YAML)
    4) Built-in defaults (lowest)

Recognised keys (file sections or flat keys):

    network            mainnet | testnet           RETARGET_NETWORK
    algorithm          lwma | asert | trailing     RETARGET_ALGORITHM
    previous_policy    estimate | passthrough      RETARGET_PREVIOUS_POLICY
    params_file        path to a profile file      RETARGET_PARAMS_FILE
    log.level          DEBUG .. CRITICAL           RETARGET_LOG_LEVEL
    log.format         json | text                 RETARGET_LOG_FORMAT

The resulting `Config` is a typed dataclass; `Config.estimator_params()`
resolves the active network profile.
"""

from __future__ import annotations

import json
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError
from .params import EstimatorParams, resolve_params
from .types import Algorithm, Network, PreviousRetargetPolicy

_LOG_FORMATS = ("json", "text")


def _expand(p: str | Path) -> Path:
    return Path(p).expanduser().resolve()


@dataclass
class LogConfig:
    level: str = "INFO"
    format: Optional[str] = None  # None → decided by TTY detection

    def validate(self) -> None:
        if self.format is not None and self.format not in _LOG_FORMATS:
            raise ConfigError.unknown_choice(key="log.format", value=self.format, choices=_LOG_FORMATS)

    @property
    def json(self) -> Optional[bool]:
        return None if self.format is None else self.format == "json"


@dataclass
class Config:
    network: Network = Network.MAINNET
    algorithm: Algorithm = Algorithm.LWMA
    previous_policy: PreviousRetargetPolicy = PreviousRetargetPolicy.ESTIMATE
    params_file: Optional[Path] = None
    log: LogConfig = field(default_factory=LogConfig)

    def estimator_params(self) -> EstimatorParams:
        return resolve_params(self.network, self.params_file)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["network"] = self.network.value
        d["algorithm"] = self.algorithm.value
        d["previous_policy"] = self.previous_policy.value
        d["params_file"] = str(self.params_file) if self.params_file else None
        return d


# ------------------------------
# File loader (TOML / JSON / YAML)
# ------------------------------

def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError("config file not found", path=str(path))
    suffix = path.suffix.lower()
    try:
        with path.open("rb") as f:
            if suffix in {".toml", ".tml"}:
                data = tomllib.load(f)
            elif suffix == ".json":
                data = json.load(f)
            elif suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(f) or {}
            else:
                raise ConfigError(f"Unsupported config format: {suffix}. Use .toml, .json or .yaml", path=str(path))
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, UnicodeDecodeError, yaml.YAMLError) as e:
        raise ConfigError("config file is malformed", path=str(path)) from e
    if not isinstance(data, dict):
        raise ConfigError("config file must contain a mapping", path=str(path))
    return data


def _merge_dict(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """Nested dict merge: values in b override a."""
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge_dict(out[k], v)
        else:
            out[k] = v
    return out


def _from_env() -> Dict[str, Any]:
    env: Dict[str, Any] = {}
    if "RETARGET_NETWORK" in os.environ:
        env["network"] = os.environ["RETARGET_NETWORK"]
    if "RETARGET_ALGORITHM" in os.environ:
        env["algorithm"] = os.environ["RETARGET_ALGORITHM"]
    if "RETARGET_PREVIOUS_POLICY" in os.environ:
        env["previous_policy"] = os.environ["RETARGET_PREVIOUS_POLICY"]
    if os.environ.get("RETARGET_PARAMS_FILE"):
        env["params_file"] = os.environ["RETARGET_PARAMS_FILE"]
    log: Dict[str, Any] = {}
    if "RETARGET_LOG_LEVEL" in os.environ:
        log["level"] = os.environ["RETARGET_LOG_LEVEL"]
    if "RETARGET_LOG_FORMAT" in os.environ:
        log["format"] = os.environ["RETARGET_LOG_FORMAT"]
    if log:
        env["log"] = log
    return env


# ------------------------------
# Main loader
# ------------------------------

def load(config_file: Optional[str | Path] = None, **overrides: Any) -> Config:
    """
    Load the estimator configuration.

    Precedence: overrides > env > file > defaults.

    Parameters
    ----------
    config_file : str | Path | None
        Optional TOML, JSON or YAML file with the keys listed in the module
        docstring.
    overrides : Any
        Keyword overrides, e.g. load(network="testnet", log={"level": "DEBUG"}).
        None values are ignored so CLI flags can be passed straight through.
    """
    defaults = Config()
    base: Dict[str, Any] = {
        "network": defaults.network.value,
        "algorithm": defaults.algorithm.value,
        "previous_policy": defaults.previous_policy.value,
        "params_file": None,
        "log": asdict(defaults.log),
    }

    if config_file:
        base = _merge_dict(base, _load_file(_expand(config_file)))

    base = _merge_dict(base, _from_env())

    if overrides:
        base = _merge_dict(base, {k: v for k, v in overrides.items() if v is not None})

    log_raw = base.get("log") or {}
    if not isinstance(log_raw, dict):
        raise ConfigError("log section must be a mapping", key="log", value=log_raw)
    fmt = log_raw.get("format")
    log_cfg = LogConfig(
        level=str(log_raw.get("level", "INFO")).upper(),
        format=str(fmt).strip().lower() if fmt else None,
    )
    log_cfg.validate()

    params_file = base.get("params_file")
    return Config(
        network=Network.parse(base["network"]),
        algorithm=Algorithm.parse(base["algorithm"]),
        previous_policy=PreviousRetargetPolicy.parse(base["previous_policy"]),
        params_file=_expand(params_file) if params_file else None,
        log=log_cfg,
    )


__all__ = ["Config", "LogConfig", "load"]

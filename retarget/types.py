"""
Estimator value types and canonical identifiers.

This module defines:
- Enumerations for network identity, estimator algorithm and the
  previous-retarget reporting policy.
- The immutable records that flow through the pipeline:
  BlockSample → EstimationResult → AdjustmentReport.

Units
-----
Timestamps are carried in two explicit units and never mixed:

- Seconds       : block timestamps and "now" (integer seconds since epoch).
- Millis        : report timestamps and durations (integer milliseconds).

Difficulty change is a signed percentage (``+12.5`` means 12.5% harder).

These names are imported throughout retarget/*. Keep this module import-light.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, NewType, Tuple

from .errors import ConfigError, InvalidSampleError

Height = NewType("Height", int)  # block height
Seconds = NewType("Seconds", int)  # unix seconds
Millis = NewType("Millis", int)  # unix milliseconds

MS_PER_SECOND: int = 1_000


# -------------------------
# Enumerations
# -------------------------


class _ChoiceEnum(str, Enum):
    """String enum with tolerant, case-insensitive parsing."""

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {}

    @classmethod
    def choices(cls) -> Tuple[str, ...]:
        return tuple(m.value for m in cls)

    @classmethod
    def parse(cls, value: Any) -> Any:
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        key = cls._aliases().get(key, key)
        for member in cls:
            if member.value == key:
                return member
        raise ConfigError.unknown_choice(
            key=cls.__name__.lower(), value=value, choices=cls.choices()
        )


class Network(_ChoiceEnum):
    """Network identity. Only the test network permits overdue blocks."""

    MAINNET = "mainnet"
    TESTNET = "testnet"

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {"main": "mainnet", "test": "testnet"}


class Algorithm(_ChoiceEnum):
    """
    Estimator family deployed by the chain.

    LWMA     : linearly weighted moving average, v1 before / v2 from the
               activation height.
    ASERT    : exponentially scheduled retarget over the mean solve time.
    TRAILING : plain trailing average of solve times.
    """

    LWMA = "lwma"
    ASERT = "asert"
    TRAILING = "trailing"

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {"wma": "lwma", "exponential": "asert", "average": "trailing", "sma": "trailing"}


class PreviousRetargetPolicy(_ChoiceEnum):
    """
    What a report carries in ``previous_retarget_percent``.

    ESTIMATE    : the freshly computed change (the chain retargets every
                  block, so the last retarget is the current estimate).
    PASSTHROUGH : the value supplied by the block cache, unchanged.
    """

    ESTIMATE = "estimate"
    PASSTHROUGH = "passthrough"


# -------------------------
# Records
# -------------------------


@dataclass(frozen=True)
class BlockSample:
    """
    Snapshot of one block header as seen by the estimator.

    Attributes
    ----------
    height : Height
        Block height (>= 0).
    timestamp_s : Seconds
        Header timestamp in unix seconds. Not validated; non-monotonic
        values are absorbed by the solve-time clamp.
    difficulty : float
        Positive difficulty of the block.
    """

    height: Height
    timestamp_s: Seconds
    difficulty: float

    def __post_init__(self) -> None:
        if int(self.height) < 0:
            raise InvalidSampleError("block height must be >= 0", height=self.height)
        d = float(self.difficulty)
        if not math.isfinite(d) or d <= 0.0:
            raise InvalidSampleError(
                "block difficulty must be positive and finite",
                height=self.height,
                difficulty=self.difficulty,
            )

    @classmethod
    def from_mapping(cls, m: Dict[str, Any]) -> "BlockSample":
        """
        Build a sample from a loose dict. Accepts ``timestamp`` or
        ``timestamp_s`` for the header time.
        """
        if not isinstance(m, dict):
            raise InvalidSampleError("block entry must be a mapping", context={"type": type(m).__name__})
        ts = m.get("timestamp_s", m.get("timestamp"))
        if ts is None or "height" not in m or "difficulty" not in m:
            raise InvalidSampleError(
                "block entry requires height, timestamp and difficulty",
                context={"keys": sorted(str(k) for k in m.keys())},
            )
        try:
            height, timestamp_s, difficulty = int(m["height"]), int(ts), float(m["difficulty"])
        except (TypeError, ValueError) as e:
            raise InvalidSampleError("block entry has a non-numeric field", height=m.get("height"), cause=e) from e
        return cls(height=Height(height), timestamp_s=Seconds(timestamp_s), difficulty=difficulty)


@dataclass(frozen=True)
class EstimationResult:
    """Output of one estimator strategy."""

    difficulty_change_percent: float
    reference_solve_time_s: float
    estimator: str = "neutral"


def neutral_result(target_spacing_s: float) -> EstimationResult:
    """The universal 'not enough data' estimate: no change, on-target spacing."""
    return EstimationResult(
        difficulty_change_percent=0.0,
        reference_solve_time_s=float(target_spacing_s),
        estimator="neutral",
    )


@dataclass(frozen=True)
class ChainContext:
    """Externally supplied chain facts needed to assemble a report."""

    previous_retarget_percent: float
    previous_retarget_timestamp_ms: Millis
    current_height: Height
    now_s: Seconds
    network: Network
    latest_block_timestamp_s: Seconds


@dataclass(frozen=True)
class AdjustmentReport:
    """
    Externally visible difficulty-adjustment report.

    For per-block retargeting chains ``progress_percent`` is always 100,
    ``remaining_blocks`` and ``expected_blocks_in_period`` are always 1 and
    ``next_retarget_height`` is always ``current_height + 1``.
    """

    progress_percent: float
    difficulty_change_percent: float
    estimated_retarget_timestamp_ms: Millis
    remaining_blocks: int
    remaining_time_ms: Millis
    previous_retarget_percent: float
    previous_retarget_timestamp_ms: Millis
    next_retarget_height: Height
    average_block_time_ms: Millis
    testnet_time_offset_ms: Millis
    expected_blocks_in_period: int

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape with the camelCase keys API clients expect."""
        return {
            "progressPercent": self.progress_percent,
            "difficultyChange": self.difficulty_change_percent,
            "estimatedRetargetDate": self.estimated_retarget_timestamp_ms,
            "remainingBlocks": self.remaining_blocks,
            "remainingTime": self.remaining_time_ms,
            "previousRetarget": self.previous_retarget_percent,
            "previousTime": self.previous_retarget_timestamp_ms,
            "nextRetargetHeight": self.next_retarget_height,
            "timeAvg": self.average_block_time_ms,
            "timeOffset": self.testnet_time_offset_ms,
            "expectedBlocks": self.expected_blocks_in_period,
        }


__all__ = [
    "Height",
    "Seconds",
    "Millis",
    "MS_PER_SECOND",
    "Network",
    "Algorithm",
    "PreviousRetargetPolicy",
    "BlockSample",
    "EstimationResult",
    "neutral_result",
    "ChainContext",
    "AdjustmentReport",
]

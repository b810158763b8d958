"""
Averaging-window selection & solve-time normalisation
=====================================================

Small, deterministic utilities used by retarget.estimators:

- Window selection: order an arbitrary collection of block samples newest
  first and keep the N pairs (N + 1 samples) the estimators average over.
- Solve times: per-pair header time differences clamped into [1, k·T] so that
  a single out-of-order, duplicated or wildly late timestamp can never produce
  a zero, negative or unbounded interval.
- Weights: the linear weights 1..n used by the weighted moving averages.

Nothing here raises for malformed timestamps; "not enough blocks" is signalled
by `select_window` returning None.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import ParamsError
from .types import BlockSample

# A window needs at least this many pairs for any estimator to run.
MIN_BLOCKS_AVAILABLE = 2


@dataclass(frozen=True)
class Window:
    """
    Newest-first run of block samples.

    Attributes
    ----------
    samples : tuple[BlockSample, ...]
        ``blocks_available + 1`` samples, strictly the newest by height. The
        last entry is the boundary sample needed for the oldest solve time.
    """

    samples: Tuple[BlockSample, ...]

    @property
    def blocks_available(self) -> int:
        return len(self.samples) - 1

    @property
    def tip(self) -> BlockSample:
        """Newest sample (the block the estimate is relative to)."""
        return self.samples[0]

    @property
    def start(self) -> BlockSample:
        """Oldest sample kept: the window-start reference block."""
        return self.samples[self.blocks_available]


def sort_newest_first(samples: Iterable[BlockSample]) -> List[BlockSample]:
    """Stable sort by descending height; ties keep their input order."""
    return sorted(samples, key=lambda s: s.height, reverse=True)


def select_window(samples: Iterable[BlockSample], capacity: int) -> Optional[Window]:
    """
    Select the averaging window from an unordered collection.

    blocks_available = min(len(samples) - 1, capacity)

    Returns None when fewer than MIN_BLOCKS_AVAILABLE pairs exist; that is a
    valid neutral outcome, not an error.
    """
    if capacity < 1:
        raise ParamsError.out_of_range(field="capacity", value=capacity, expected=">= 1")
    ordered = sort_newest_first(samples)
    blocks_available = min(len(ordered) - 1, int(capacity))
    if blocks_available < MIN_BLOCKS_AVAILABLE:
        return None
    return Window(samples=tuple(ordered[: blocks_available + 1]))


# ----------------------------- Solve-time utilities ---------------------------

def clamp_solve_time(raw_seconds: float, target_spacing_s: float, ceiling_factor: float) -> float:
    """
    Clamp one inter-block interval into [1, ceiling_factor · T].

    Non-monotonic timestamps (raw <= 0) become 1 second.
    """
    hi = ceiling_factor * target_spacing_s
    if raw_seconds < 1:
        return 1.0
    if raw_seconds > hi:
        return float(hi)
    return float(raw_seconds)


def solve_times(window: Window, target_spacing_s: float, ceiling_factor: float) -> List[float]:
    """
    Clamped solve times for every adjacent pair, newest first.

    Element i is ``samples[i].timestamp_s - samples[i + 1].timestamp_s``
    after clamping. The list has ``window.blocks_available`` entries.
    """
    s = window.samples
    return [
        clamp_solve_time(s[i].timestamp_s - s[i + 1].timestamp_s, target_spacing_s, ceiling_factor)
        for i in range(window.blocks_available)
    ]


def linear_weights(count: int) -> List[int]:
    """
    Weights aligned with `solve_times` (newest first): newest gets `count`,
    oldest gets 1. Their sum is the triangular number count·(count+1)/2.
    """
    return [count - i for i in range(count)]


def weighted_sum(values: Sequence[float], weights: Sequence[int]) -> Tuple[float, int]:
    """Return (Σ value·weight, Σ weight)."""
    total = 0.0
    wsum = 0
    for v, w in zip(values, weights):
        total += v * w
        wsum += w
    return total, wsum


__all__ = [
    "MIN_BLOCKS_AVAILABLE",
    "Window",
    "sort_newest_first",
    "select_window",
    "clamp_solve_time",
    "solve_times",
    "linear_weights",
    "weighted_sum",
]

"""
Difficulty-change estimators
============================

Interchangeable strategies that predict the next block's difficulty change
from a window of recent blocks. All of them share window selection and the
solve-time clamp (retarget.window) and differ only in how they average:

LWMA v1  (linearly weighted moving average)
    avg    = Σ(st_i · w_i) / Σ w_i          w = 1 (oldest) .. n (newest)
    change = (T / avg - 1) · 100            clamped to [-90, 100]

LWMA v2  (window-start reference)
    ratio      = Σ(st_i · w_i) / (Σ w_i · T)
    projected  = D_start / ratio
    change     = (projected - D_tip) / D_tip · 100   clamped to [-66.67, 200]
    Needs n >= 3, otherwise the v1 formula applies. Chosen over v1 from the
    network's activation height onwards.

ASERT  (exponential schedule)
    avg    = Σ st_i / n
    change = (2^((T - avg) / halflife) - 1) · 100    no cap

Trailing average
    avg    = Σ st_i / n
    change = (T / avg - 1) · 100            no cap

Every strategy returns the neutral estimate {0, T} when fewer than two pairs
are available or a weight sum / count is not positive.

All functions are deterministic and side-effect free.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Tuple, runtime_checkable

from .params import EstimatorParams
from .types import Algorithm, BlockSample, EstimationResult, neutral_result
from .window import (MIN_BLOCKS_AVAILABLE, Window, linear_weights,
                     select_window, solve_times, weighted_sum)

# LWMA v2 needs one extra pair beyond the common minimum.
LWMA_V2_MIN_BLOCKS = 3


def _clamp(value: float, bounds: Tuple[float, float]) -> float:
    lo, hi = bounds
    if value > hi:
        return hi
    if value < lo:
        return lo
    return value


@runtime_checkable
class Estimator(Protocol):
    """Strategy interface: one window in, one estimate out."""

    name: str

    def estimate(self, window: Optional[Window]) -> EstimationResult: ...


def _usable(window: Optional[Window]) -> bool:
    return window is not None and window.blocks_available >= MIN_BLOCKS_AVAILABLE


# ---------------------------------------------------------------------------
# Linearly weighted moving average
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WeightedAverageV1:
    """LWMA v1: previous-block reference, max 10x adjustment."""

    params: EstimatorParams
    name: str = "lwma-v1"

    def _weighted(self, window: Window) -> Tuple[float, int]:
        p = self.params
        st = solve_times(window, p.target_spacing_s, p.solve_time_ceiling_factor)
        return weighted_sum(st, linear_weights(len(st)))

    def _v1_change(self, weighted_avg: float) -> float:
        change = (self.params.target_spacing_s / weighted_avg - 1.0) * 100.0
        return _clamp(change, self.params.lwma_v1_bounds)

    def estimate(self, window: Optional[Window]) -> EstimationResult:
        if not _usable(window):
            return neutral_result(self.params.target_spacing_s)
        total, wsum = self._weighted(window)
        if wsum <= 0:
            return neutral_result(self.params.target_spacing_s)
        avg = total / wsum
        return EstimationResult(self._v1_change(avg), avg, self.name)


@dataclass(frozen=True)
class WeightedAverageV2(WeightedAverageV1):
    """LWMA v2: window-start difficulty reference, max 3x adjustment."""

    name: str = "lwma-v2"

    def estimate(self, window: Optional[Window]) -> EstimationResult:
        if not _usable(window):
            return neutral_result(self.params.target_spacing_s)
        total, wsum = self._weighted(window)
        if wsum <= 0:
            return neutral_result(self.params.target_spacing_s)
        avg = total / wsum

        if window.blocks_available < LWMA_V2_MIN_BLOCKS:
            return EstimationResult(self._v1_change(avg), avg, "lwma-v1")

        ratio = total / (wsum * self.params.target_spacing_s)
        current = window.tip.difficulty
        projected = window.start.difficulty / ratio
        change = (projected - current) / current * 100.0
        return EstimationResult(_clamp(change, self.params.lwma_v2_bounds), avg, self.name)


@dataclass(frozen=True)
class WeightedAverage:
    """
    LWMA with the height-activated v1 → v2 switchover. The height compared
    against the activation threshold is the window tip's.
    """

    params: EstimatorParams
    name: str = "lwma"

    def version_for(self, height: int) -> Estimator:
        if height >= self.params.lwma_v2_activation_height:
            return WeightedAverageV2(self.params)
        return WeightedAverageV1(self.params)

    def estimate(self, window: Optional[Window]) -> EstimationResult:
        if not _usable(window):
            return neutral_result(self.params.target_spacing_s)
        return self.version_for(window.tip.height).estimate(window)


# ---------------------------------------------------------------------------
# Unweighted estimators
# ---------------------------------------------------------------------------

def _mean_solve_time(window: Window, params: EstimatorParams) -> Optional[float]:
    st = solve_times(window, params.target_spacing_s, params.solve_time_ceiling_factor)
    if not st:
        return None
    return sum(st) / len(st)


@dataclass(frozen=True)
class ExponentialSchedule:
    """ASERT-style estimate over the arithmetic mean of clamped solve times."""

    params: EstimatorParams
    name: str = "asert"

    def estimate(self, window: Optional[Window]) -> EstimationResult:
        if not _usable(window):
            return neutral_result(self.params.target_spacing_s)
        avg = _mean_solve_time(window, self.params)
        if avg is None:
            return neutral_result(self.params.target_spacing_s)
        exponent = (self.params.target_spacing_s - avg) / self.params.asert_halflife_s
        change = (2.0 ** exponent - 1.0) * 100.0
        return EstimationResult(change, avg, self.name)


@dataclass(frozen=True)
class TrailingAverage:
    """Plain trailing average; no weighting and no cap."""

    params: EstimatorParams
    name: str = "trailing"

    def estimate(self, window: Optional[Window]) -> EstimationResult:
        if not _usable(window):
            return neutral_result(self.params.target_spacing_s)
        avg = _mean_solve_time(window, self.params)
        if avg is None:
            return neutral_result(self.params.target_spacing_s)
        change = (self.params.target_spacing_s / avg - 1.0) * 100.0
        return EstimationResult(change, avg, self.name)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def select_estimator(algorithm: Algorithm | str, height: int, params: EstimatorParams) -> Estimator:
    """
    Pure selection of the concrete strategy for a chain tip.

    For LWMA this resolves the v1/v2 version from `height` and the network
    profile's activation height.
    """
    algo = Algorithm.parse(algorithm)
    if algo is Algorithm.LWMA:
        return WeightedAverage(params).version_for(height)
    if algo is Algorithm.ASERT:
        return ExponentialSchedule(params)
    return TrailingAverage(params)


def estimate_samples(
    samples: Iterable[BlockSample],
    params: EstimatorParams,
    algorithm: Algorithm | str = Algorithm.LWMA,
) -> EstimationResult:
    """
    Window selection → strategy selection → estimate.

    Returns the neutral estimate when the samples hold fewer than three
    blocks.
    """
    window = select_window(samples, params.window_size)
    if window is None:
        return neutral_result(params.target_spacing_s)
    return select_estimator(algorithm, window.tip.height, params).estimate(window)


__all__ = [
    "Estimator",
    "WeightedAverageV1",
    "WeightedAverageV2",
    "WeightedAverage",
    "ExponentialSchedule",
    "TrailingAverage",
    "select_estimator",
    "estimate_samples",
    "LWMA_V2_MIN_BLOCKS",
]

"""
Difficulty-adjustment service.

Glue between a `BlockCache` and the pure estimator: one atomic read of the
cache (its `snapshot()` when it has one), one report. Returns None while the
cache holds no blocks yet.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .cache import BlockCache, CacheSnapshot
from .config import Config
from .params import EstimatorParams
from .report import calc_difficulty_adjustment
from .types import (AdjustmentReport, Algorithm, ChainContext,
                    PreviousRetargetPolicy, Seconds)

log = logging.getLogger(__name__)


class DifficultyAdjustmentService:
    """
    Parameters
    ----------
    cache : BlockCache
        Source of recent blocks and retarget history.
    params : EstimatorParams
        Active network profile.
    algorithm : Algorithm
        Estimator family the chain uses.
    previous_policy : PreviousRetargetPolicy
        What reports carry as the previous retarget.
    clock : callable
        Returns the current unix time in (float) seconds.
    """

    def __init__(
        self,
        cache: BlockCache,
        params: EstimatorParams,
        *,
        algorithm: Algorithm | str = Algorithm.LWMA,
        previous_policy: PreviousRetargetPolicy | str = PreviousRetargetPolicy.ESTIMATE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cache = cache
        self._params = params
        self._algorithm = Algorithm.parse(algorithm)
        self._policy = PreviousRetargetPolicy.parse(previous_policy)
        self._clock = clock

    @classmethod
    def from_config(cls, cache: BlockCache, cfg: Config, **kwargs) -> "DifficultyAdjustmentService":
        return cls(
            cache,
            cfg.estimator_params(),
            algorithm=cfg.algorithm,
            previous_policy=cfg.previous_policy,
            **kwargs,
        )

    @property
    def params(self) -> EstimatorParams:
        return self._params

    @property
    def algorithm(self) -> Algorithm:
        return self._algorithm

    def _read_cache(self) -> CacheSnapshot:
        """All four cache values; one lock acquisition when the cache offers `snapshot()`."""
        snapshot = getattr(self._cache, "snapshot", None)
        if callable(snapshot):
            return snapshot()
        return CacheSnapshot(
            blocks=tuple(self._cache.get_recent_blocks()),
            current_height=self._cache.get_current_height(),
            last_retarget_timestamp_ms=self._cache.get_last_retarget_timestamp_ms(),
            previous_retarget_percent=self._cache.get_previous_retarget_percent(),
        )

    def compute_adjustment_report(self, now_s: Optional[Seconds] = None) -> Optional[AdjustmentReport]:
        snap = self._read_cache()
        blocks = snap.blocks
        if not blocks:
            log.debug("no chain data yet; difficulty adjustment unavailable")
            return None

        latest = max(blocks, key=lambda b: b.height)
        now = Seconds(int(now_s) if now_s is not None else int(self._clock()))
        context = ChainContext(
            previous_retarget_percent=snap.previous_retarget_percent,
            previous_retarget_timestamp_ms=snap.last_retarget_timestamp_ms,
            current_height=snap.current_height,
            now_s=now,
            network=self._params.network,
            latest_block_timestamp_s=latest.timestamp_s,
        )
        report = calc_difficulty_adjustment(
            blocks, context, self._params, self._algorithm, self._policy
        )
        log.debug(
            "difficulty adjustment estimated",
            extra={
                "network": self._params.network.value,
                "algorithm": self._algorithm.value,
                "height": context.current_height,
                "samples": len(blocks),
                "change_pct": round(report.difficulty_change_percent, 4),
                "time_avg_ms": report.average_block_time_ms,
            },
        )
        return report


__all__ = ["DifficultyAdjustmentService"]

"""
Block-cache boundary and an in-memory reference cache.

The estimator reads chain data through the narrow `BlockCache` protocol. The
indexer that owns the real cache implements it; `InMemoryBlockCache` is a
small thread-safe implementation for tests, tools and embedding.

Snapshot semantics
------------------
`get_recent_blocks()` must be one atomic, point-in-time read. The in-memory
cache holds its samples in an immutable tuple swapped under a lock, so a
reader can never observe a window that mixes pre- and post-reorg samples.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Sequence, Tuple, runtime_checkable

from .errors import ParamsError
from .params import LWMA_WINDOW
from .types import BlockSample, Height, Millis

log = logging.getLogger(__name__)


@runtime_checkable
class BlockCache(Protocol):
    """What the estimator needs from the block indexer."""

    def get_recent_blocks(self) -> Sequence[BlockSample]: ...

    def get_current_height(self) -> Height: ...

    def get_last_retarget_timestamp_ms(self) -> Millis: ...

    def get_previous_retarget_percent(self) -> float: ...


@dataclass(frozen=True)
class CacheSnapshot:
    """All four cache values read under one lock acquisition."""

    blocks: Tuple[BlockSample, ...]
    current_height: Height
    last_retarget_timestamp_ms: Millis
    previous_retarget_percent: float


class InMemoryBlockCache:
    """
    Bounded cache of the newest block samples, ascending by height.

    Parameters
    ----------
    capacity : int
        Maximum number of samples kept (newest by height). Defaults to one
        full averaging window plus its boundary block.
    """

    def __init__(self, capacity: int = LWMA_WINDOW + 1, blocks: Iterable[BlockSample] = ()) -> None:
        if capacity < 3:
            raise ParamsError.out_of_range(field="capacity", value=capacity, expected=">= 3")
        self._capacity = int(capacity)
        self._lock = threading.RLock()
        self._blocks: Tuple[BlockSample, ...] = ()
        self._height: Optional[int] = None
        self._retarget_ts_ms = 0
        self._previous_retarget = 0.0
        for b in blocks:
            self.add_block(b)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._blocks)

    # --------------------------- writers ---------------------------

    def add_block(self, sample: BlockSample) -> None:
        """
        Insert a sample. A sample at an already-cached height replaces it
        (tip reorg). Only the `capacity` newest samples are kept.
        """
        with self._lock:
            by_height = {b.height: b for b in self._blocks}
            if sample.height in by_height and by_height[sample.height] != sample:
                log.debug("replacing cached block", extra={"height": sample.height})
            by_height[sample.height] = sample
            ordered = sorted(by_height.values(), key=lambda b: b.height)
            self._blocks = tuple(ordered[-self._capacity:])

    def rollback(self, height: int) -> int:
        """Drop every sample above `height`. Returns how many were removed."""
        with self._lock:
            kept = tuple(b for b in self._blocks if b.height <= height)
            removed = len(self._blocks) - len(kept)
            self._blocks = kept
            if self._height is not None and self._height > height:
                self._height = height
        if removed:
            log.debug("rolled back cached blocks", extra={"to_height": height, "removed": removed})
        return removed

    def set_current_height(self, height: int) -> None:
        with self._lock:
            self._height = int(height)

    def set_retarget(self, timestamp_ms: int, percent: float) -> None:
        """Record the last difficulty retarget (time in ms, change in %)."""
        with self._lock:
            self._retarget_ts_ms = int(timestamp_ms)
            self._previous_retarget = float(percent)

    # --------------------------- readers ---------------------------

    def get_recent_blocks(self) -> Tuple[BlockSample, ...]:
        return self._blocks

    def get_current_height(self) -> Height:
        with self._lock:
            if self._height is not None:
                return Height(self._height)
            return self._blocks[-1].height if self._blocks else Height(0)

    def get_last_retarget_timestamp_ms(self) -> Millis:
        return Millis(self._retarget_ts_ms)

    def get_previous_retarget_percent(self) -> float:
        return self._previous_retarget

    def snapshot(self) -> CacheSnapshot:
        with self._lock:
            return CacheSnapshot(
                blocks=self._blocks,
                current_height=self.get_current_height(),
                last_retarget_timestamp_ms=self._retarget_ts_ms,
                previous_retarget_percent=self._previous_retarget,
            )


__all__ = ["BlockCache", "CacheSnapshot", "InMemoryBlockCache"]

"""
Shared helpers for retarget tests.

Tests import these directly:

    from retarget.tests import make_blocks, make_context
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from retarget.types import BlockSample, ChainContext, Network

BASE_TS = 1_700_000_000


def make_blocks(
    count: int,
    spacing: int = 150,
    *,
    start_height: int = 1_244_400,
    base_ts: int = BASE_TS,
    difficulty: float = 100.0,
) -> List[BlockSample]:
    """`count` ascending blocks at a constant spacing and difficulty."""
    return [
        BlockSample(height=start_height + i, timestamp_s=base_ts + i * spacing, difficulty=difficulty)
        for i in range(count)
    ]


def blocks_from_gaps(
    gaps: Sequence[int],
    *,
    start_height: int = 1_244_400,
    base_ts: int = BASE_TS,
    difficulties: Optional[Iterable[float]] = None,
) -> List[BlockSample]:
    """Ascending blocks whose consecutive timestamp gaps are `gaps` (oldest first)."""
    ts = [base_ts]
    for g in gaps:
        ts.append(ts[-1] + g)
    diffs = list(difficulties) if difficulties is not None else [100.0] * len(ts)
    return [
        BlockSample(height=start_height + i, timestamp_s=t, difficulty=d)
        for i, (t, d) in enumerate(zip(ts, diffs))
    ]


def make_context(
    blocks: Sequence[BlockSample],
    *,
    now_s: Optional[int] = None,
    network: Network = Network.MAINNET,
    previous_retarget_percent: float = 0.0,
    previous_retarget_timestamp_ms: int = 0,
) -> ChainContext:
    """Context anchored at the newest block; `now` defaults to its timestamp."""
    latest = max(blocks, key=lambda b: b.height)
    return ChainContext(
        previous_retarget_percent=previous_retarget_percent,
        previous_retarget_timestamp_ms=previous_retarget_timestamp_ms,
        current_height=latest.height,
        now_s=latest.timestamp_s if now_s is None else now_s,
        network=network,
        latest_block_timestamp_s=latest.timestamp_s,
    )

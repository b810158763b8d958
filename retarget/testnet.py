"""
Overdue-block time offset.

Test networks allow a minimum-difficulty block once the tip is older than a
ceiling (1200 s by default). When the next block is already overdue the
report carries a negative offset so clients can show the countdown relative to
that rule. Main networks never apply it: the offset is always 0 there.
"""

from __future__ import annotations

from typing import Tuple

from .params import EstimatorParams
from .types import MS_PER_SECOND, Millis, Network, Seconds


def apply_time_offset(
    reference_solve_time_s: float,
    now_s: Seconds,
    latest_block_timestamp_s: Seconds,
    network: Network,
    params: EstimatorParams,
) -> Tuple[float, Millis]:
    """
    Returns ``(reference_solve_time_s, time_offset_ms)``.

    Only on the test network, and only when its profile allows overdue blocks:

    1. reference is clamped down to the ceiling;
    2. since = now - latest block timestamp;
    3. since + reference > ceiling  =>  offset = -min(since, ceiling) · 1000.
    """
    if Network.parse(network) is not Network.TESTNET or not params.allow_overdue_blocks:
        return reference_solve_time_s, Millis(0)

    ceiling = params.overdue_block_ceiling_s
    reference = min(reference_solve_time_s, ceiling)
    since = now_s - latest_block_timestamp_s
    offset_ms = 0
    if since + reference > ceiling:
        offset_ms = -int(min(since, ceiling) * MS_PER_SECOND)
    return reference, Millis(offset_ms)


__all__ = ["apply_time_offset"]

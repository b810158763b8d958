"""
Difficulty-adjustment report assembly.

`assemble_report` turns one estimate plus the chain context into the
externally visible `AdjustmentReport`. `calc_difficulty_adjustment` is the full
pure pipeline: samples → estimate → overdue-block offset → report.

Per-block retargeting fixes four report fields:

    progress_percent          = 100
    remaining_blocks          = 1
    expected_blocks_in_period = 1
    next_retarget_height      = current_height + 1

`previous_retarget_percent` follows the configured PreviousRetargetPolicy.
"""

from __future__ import annotations

import math
from typing import Sequence

from .estimators import estimate_samples
from .params import EstimatorParams
from .testnet import apply_time_offset
from .types import (MS_PER_SECOND, AdjustmentReport, Algorithm, BlockSample,
                    ChainContext, EstimationResult, Height, Millis,
                    PreviousRetargetPolicy, neutral_result)

PROGRESS_PERCENT = 100.0
BLOCKS_PER_RETARGET = 1
# Fewer known blocks than this always yield the neutral estimate.
MIN_SAMPLES_FOR_ESTIMATE = 3


def assemble_report(
    result: EstimationResult,
    context: ChainContext,
    params: EstimatorParams,
    policy: PreviousRetargetPolicy | str = PreviousRetargetPolicy.ESTIMATE,
) -> AdjustmentReport:
    reference_s, offset_ms = apply_time_offset(
        result.reference_solve_time_s,
        context.now_s,
        context.latest_block_timestamp_s,
        context.network,
        params,
    )
    time_avg_ms = Millis(int(math.floor(reference_s * MS_PER_SECOND)))

    if PreviousRetargetPolicy.parse(policy) is PreviousRetargetPolicy.ESTIMATE:
        previous = result.difficulty_change_percent
    else:
        previous = context.previous_retarget_percent

    return AdjustmentReport(
        progress_percent=PROGRESS_PERCENT,
        difficulty_change_percent=result.difficulty_change_percent,
        estimated_retarget_timestamp_ms=Millis(context.now_s * MS_PER_SECOND + time_avg_ms),
        remaining_blocks=BLOCKS_PER_RETARGET,
        remaining_time_ms=time_avg_ms,
        previous_retarget_percent=previous,
        previous_retarget_timestamp_ms=context.previous_retarget_timestamp_ms,
        next_retarget_height=Height(context.current_height + 1),
        average_block_time_ms=time_avg_ms,
        testnet_time_offset_ms=offset_ms,
        expected_blocks_in_period=BLOCKS_PER_RETARGET,
    )


def calc_difficulty_adjustment(
    samples: Sequence[BlockSample],
    context: ChainContext,
    params: EstimatorParams,
    algorithm: Algorithm | str = Algorithm.LWMA,
    policy: PreviousRetargetPolicy | str = PreviousRetargetPolicy.ESTIMATE,
) -> AdjustmentReport:
    """End-to-end report for an explicit sample snapshot."""
    if len(samples) >= MIN_SAMPLES_FOR_ESTIMATE:
        result = estimate_samples(samples, params, algorithm)
    else:
        result = neutral_result(params.target_spacing_s)
    return assemble_report(result, context, params, policy)


__all__ = [
    "assemble_report",
    "calc_difficulty_adjustment",
    "PROGRESS_PERCENT",
    "BLOCKS_PER_RETARGET",
    "MIN_SAMPLES_FOR_ESTIMATE",
]

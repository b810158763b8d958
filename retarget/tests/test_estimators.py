from __future__ import annotations

import math
import random
from dataclasses import replace

import pytest

from retarget.estimators import (ExponentialSchedule, TrailingAverage,
                                 WeightedAverage, WeightedAverageV1,
                                 WeightedAverageV2, estimate_samples,
                                 select_estimator)
from retarget.params import MAINNET_PARAMS, TESTNET_PARAMS
from retarget.tests import blocks_from_gaps, make_blocks
from retarget.types import Algorithm
from retarget.window import Window, select_window

P = MAINNET_PARAMS
ALL_ALGORITHMS = (Algorithm.LWMA, Algorithm.ASERT, Algorithm.TRAILING)

PRE_ACTIVATION = 1_244_200
POST_ACTIVATION = 1_244_400


# ---- neutral default ---------------------------------------------------------

@pytest.mark.parametrize("algo", ALL_ALGORITHMS)
@pytest.mark.parametrize("count", [0, 1, 2])
def test_too_few_blocks_is_neutral(algo, count):
    res = estimate_samples(make_blocks(count, 100), P, algo)
    assert res.difficulty_change_percent == 0.0
    assert res.reference_solve_time_s == 150.0
    assert res.estimator == "neutral"

@pytest.mark.parametrize(
    "est",
    [WeightedAverageV1(P), WeightedAverageV2(P), WeightedAverage(P), ExponentialSchedule(P), TrailingAverage(P)],
)
def test_single_pair_window_is_neutral(est):
    blocks = make_blocks(2, 100)
    window = Window(samples=tuple(reversed(blocks)))
    for w in (None, window):
        res = est.estimate(w)
        assert res.difficulty_change_percent == 0.0
        assert res.reference_solve_time_s == 150.0


# ---- weighted average behaviour ----------------------------------------------

def test_slow_blocks_lower_difficulty():
    res = estimate_samples(make_blocks(10, 200), P)
    assert res.difficulty_change_percent < 0
    assert 190 <= res.reference_solve_time_s <= 210

def test_fast_blocks_raise_difficulty():
    res = estimate_samples(make_blocks(10, 100), P)
    assert res.difficulty_change_percent > 0
    assert 90 <= res.reference_solve_time_s <= 110

@pytest.mark.parametrize("algo", ALL_ALGORITHMS)
@pytest.mark.parametrize("start_height", [PRE_ACTIVATION, POST_ACTIVATION])
def test_on_target_spacing_is_near_zero(algo, start_height):
    res = estimate_samples(make_blocks(10, 150, start_height=start_height), P, algo)
    assert abs(res.difficulty_change_percent) < 1
    assert res.reference_solve_time_s == pytest.approx(150.0)

def test_steady_180s_spacing_average():
    res = estimate_samples(make_blocks(20, 180), P)
    assert 175 < res.reference_solve_time_s < 185

def test_equal_and_late_timestamps_stay_finite():
    blocks = blocks_from_gaps([0, 1500, 150])
    res = estimate_samples(blocks, P)
    assert math.isfinite(res.difficulty_change_percent)
    assert 0 < res.reference_solve_time_s <= 900
    # newest first: 150 (w=3), 1500→900 (w=2), 0→1 (w=1)
    assert res.reference_solve_time_s == pytest.approx((150 * 3 + 900 * 2 + 1 * 1) / 6)

def test_newer_blocks_weigh_more():
    blocks = blocks_from_gaps([300, 300, 100, 100, 100])
    res = estimate_samples(blocks, P)
    # unweighted mean is 180; the fast recent blocks pull the average down
    assert res.reference_solve_time_s < 180
    assert res.reference_solve_time_s == pytest.approx(2100 / 15)

def test_window_of_fifty_blocks_uses_newest_pairs():
    blocks = make_blocks(50, 150)
    res = estimate_samples(blocks, P)
    assert abs(res.difficulty_change_percent) < 1


# ---- LWMA versions -----------------------------------------------------------

def _rising(start_height: int, spacing: int, count: int = 10):
    return blocks_from_gaps(
        [spacing] * (count - 1),
        start_height=start_height,
        difficulties=[100.0 + i * 10 for i in range(count)],
    )

def test_v2_lower_cap():
    res = estimate_samples(_rising(POST_ACTIVATION, 900), P)
    assert res.estimator == "lwma-v2"
    assert res.difficulty_change_percent == pytest.approx(-66.67)

def test_v2_upper_cap():
    res = estimate_samples(_rising(POST_ACTIVATION, 1), P)
    assert res.difficulty_change_percent == pytest.approx(200.0)

def test_v2_uses_window_start_difficulty():
    blocks = blocks_from_gaps([150] * 4, start_height=POST_ACTIVATION, difficulties=[100, 110, 120, 130, 140])
    res = estimate_samples(blocks, P)
    # on-target spacing projects the window-start difficulty forward
    assert res.difficulty_change_percent == pytest.approx((100 - 140) / 140 * 100)

def test_v1_before_activation():
    res = estimate_samples(_rising(PRE_ACTIVATION, 900), P)
    assert res.estimator == "lwma-v1"
    assert res.difficulty_change_percent == pytest.approx((150 / 900 - 1) * 100)

def test_v1_upper_cap():
    res = estimate_samples(make_blocks(10, 1, start_height=PRE_ACTIVATION), P)
    assert res.difficulty_change_percent == 100.0

def test_v1_lower_cap_with_raised_ceiling():
    params = replace(P, solve_time_ceiling_factor=20)
    res = estimate_samples(make_blocks(10, 3000, start_height=PRE_ACTIVATION), params)
    assert res.difficulty_change_percent == -90.0

def test_version_follows_tip_height():
    p = P.lwma_v2_activation_height
    straddling = make_blocks(10, 150, start_height=p - 9)
    assert select_window(straddling, 45).tip.height == p
    assert estimate_samples(straddling, P).estimator == "lwma-v2"
    before = make_blocks(10, 150, start_height=p - 10)
    assert estimate_samples(before, P).estimator == "lwma-v1"

def test_v2_falls_back_to_v1_with_two_pairs():
    blocks = blocks_from_gaps([100, 100], start_height=POST_ACTIVATION, difficulties=[100, 200, 300])
    res = estimate_samples(blocks, P)
    assert res.estimator == "lwma-v1"
    assert res.difficulty_change_percent == pytest.approx(50.0)

def test_testnet_activates_early():
    res = estimate_samples(make_blocks(10, 150, start_height=250), TESTNET_PARAMS)
    assert res.estimator == "lwma-v2"
    res = estimate_samples(make_blocks(10, 150, start_height=100), TESTNET_PARAMS)
    assert res.estimator == "lwma-v1"
    assert estimate_samples(make_blocks(10, 150, start_height=250), P).estimator == "lwma-v1"

def test_select_estimator_types():
    assert isinstance(select_estimator("lwma", PRE_ACTIVATION, P), WeightedAverageV1)
    assert isinstance(select_estimator("lwma", POST_ACTIVATION, P), WeightedAverageV2)
    assert isinstance(select_estimator("asert", 0, P), ExponentialSchedule)
    assert isinstance(select_estimator(Algorithm.TRAILING, 0, P), TrailingAverage)
    assert isinstance(WeightedAverage(P).version_for(POST_ACTIVATION), WeightedAverageV2)


# ---- ASERT & trailing --------------------------------------------------------

def test_asert_one_halflife_over_target_halves():
    params = replace(P, solve_time_ceiling_factor=30)
    res = estimate_samples(make_blocks(10, 3750), params, Algorithm.ASERT)
    assert res.reference_solve_time_s == pytest.approx(3750)
    assert res.difficulty_change_percent == pytest.approx(-50.0)

def test_asert_short_halflife_halves_within_default_clamp():
    params = replace(P, asert_halflife_s=600)
    res = estimate_samples(make_blocks(10, 750), params, Algorithm.ASERT)
    assert res.difficulty_change_percent == pytest.approx(-50.0)

def test_asert_default_clamp_limits_slow_chain():
    res = estimate_samples(make_blocks(10, 3750), P, Algorithm.ASERT)
    assert res.reference_solve_time_s == pytest.approx(900)
    assert res.difficulty_change_percent == pytest.approx((2 ** (-750 / 3600) - 1) * 100)

def test_asert_fast_chain_bounded_by_clamp():
    res = estimate_samples(make_blocks(10, 0), P, Algorithm.ASERT)
    assert res.difficulty_change_percent == pytest.approx((2 ** (149 / 3600) - 1) * 100)

def test_trailing_average_is_unweighted_and_uncapped():
    blocks = blocks_from_gaps([300, 300, 100, 100, 100])
    res = estimate_samples(blocks, P, Algorithm.TRAILING)
    assert res.reference_solve_time_s == pytest.approx(180)
    assert res.difficulty_change_percent == pytest.approx((150 / 180 - 1) * 100)
    fast = estimate_samples(make_blocks(10, 1), P, Algorithm.TRAILING)
    assert fast.difficulty_change_percent == pytest.approx(14_900.0)


# ---- properties --------------------------------------------------------------

def _random_blocks(rng: random.Random, count: int, start_height: int, lo: int, hi: int):
    return blocks_from_gaps(
        [rng.randint(lo, hi) for _ in range(count - 1)],
        start_height=start_height,
        difficulties=[rng.uniform(1.0, 1_000.0) for _ in range(count)],
    )

@pytest.mark.parametrize("seed", range(20))
def test_lwma_outputs_stay_within_bounds(seed):
    rng = random.Random(seed)
    v1 = estimate_samples(_random_blocks(rng, 30, PRE_ACTIVATION, -200, 3000), P)
    assert -90.0 <= v1.difficulty_change_percent <= 100.0
    v2 = estimate_samples(_random_blocks(rng, 30, POST_ACTIVATION, -200, 3000), P)
    assert -66.67 <= v2.difficulty_change_percent <= 200.0

@pytest.mark.parametrize("algo", ALL_ALGORITHMS)
@pytest.mark.parametrize("start_height", [PRE_ACTIVATION, POST_ACTIVATION])
def test_slower_blocks_strictly_lower_change(algo, start_height):
    rng = random.Random(11)
    gaps = [rng.randint(110, 290) for _ in range(20)]
    diffs = [rng.uniform(90.0, 110.0) for _ in range(21)]
    base = estimate_samples(blocks_from_gaps(gaps, start_height=start_height, difficulties=diffs), P, algo)
    slower = estimate_samples(
        blocks_from_gaps([g + 10 for g in gaps], start_height=start_height, difficulties=diffs), P, algo
    )
    assert slower.reference_solve_time_s > base.reference_solve_time_s
    assert slower.difficulty_change_percent < base.difficulty_change_percent

@pytest.mark.parametrize("algo", ALL_ALGORITHMS)
def test_extra_history_does_not_change_result(algo):
    rng = random.Random(3)
    blocks = _random_blocks(rng, 80, POST_ACTIVATION, 20, 600)
    newest = blocks[-(P.window_size + 1):]
    assert estimate_samples(blocks, P, algo) == estimate_samples(newest, P, algo)
    shuffled = list(blocks)
    rng.shuffle(shuffled)
    assert estimate_samples(shuffled, P, algo) == estimate_samples(newest, P, algo)

from __future__ import annotations

from datetime import timedelta

import pytest

from volume_expander.calculators.capacity import plan_capacity
from volume_expander.models.resources import AutoscalePolicy, MetricsSample
from volume_expander.utils.units import MAX_QUANTITY


def _policy(threshold=80, growth=25, ceiling=MAX_QUANTITY):
    return AutoscalePolicy(
        polling_interval=timedelta(seconds=30),
        growth_percent=growth,
        threshold_percent=threshold,
        ceiling_bytes=ceiling,
    )


def _sample(used, capacity):
    return MetricsSample(available=True, used_bytes=used, capacity_bytes=capacity)


def test_grows_by_percent_when_over_threshold():
    assert plan_capacity(_sample(850, 1000), _policy(), 1000) == 1250


def test_growth_is_capped_at_ceiling():
    assert plan_capacity(_sample(850, 1000), _policy(ceiling=1100), 1000) == 1100


def test_ceiling_equal_to_grown_uses_ceiling():
    assert plan_capacity(_sample(850, 1000), _policy(ceiling=1250), 1000) == 1250


def test_threshold_is_exclusive():
    assert plan_capacity(_sample(800, 1000), _policy(), 1000) is None
    assert plan_capacity(_sample(801, 1000), _policy(), 1000) == 1250


def test_below_threshold_does_nothing():
    assert plan_capacity(_sample(100, 1000), _policy(), 1000) is None


def test_unavailable_sample_does_nothing():
    assert plan_capacity(MetricsSample.unavailable(), _policy(), 1000) is None


def test_zero_capacity_does_not_divide():
    assert plan_capacity(_sample(850, 0), _policy(), 1000) is None


def test_never_shrinks_or_repeats_growth():
    # an earlier growth already asked for more than this pass would
    assert plan_capacity(_sample(850, 1000), _policy(), 1250) is None
    assert plan_capacity(_sample(850, 1000), _policy(), 2000) is None
    # ceiling below the current request
    assert plan_capacity(_sample(850, 1000), _policy(ceiling=900), 1000) is None


def test_integer_arithmetic_multiplies_before_dividing():
    # 999 * 101 // 100 == 1008, dividing first would give 999
    assert plan_capacity(_sample(990, 999), _policy(growth=1), 999) == 1008


def test_large_volumes_stay_exact():
    ti = 2**40
    assert plan_capacity(_sample(ti - 1, ti), _policy(growth=10), ti) == ti * 110 // 100


@pytest.mark.parametrize("growth", [1, 5, 25, 100, 300])
@pytest.mark.parametrize("requested", [0, 500, 1000, 1300, 5000])
@pytest.mark.parametrize("ceiling", [900, 1100, 3000, MAX_QUANTITY])
def test_candidate_bounded_by_request_and_ceiling(growth, requested, ceiling):
    result = plan_capacity(_sample(990, 1000), _policy(growth=growth, ceiling=ceiling), requested)
    if result is not None:
        assert result > requested
        assert result <= ceiling

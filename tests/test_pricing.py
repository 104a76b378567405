import random

import pytest

from services.pricing import calculate_cost
from utils.errors import ValidationError

_rng = random.Random(20260601)
DURATION_PAIRS = [tuple(sorted(_rng.sample(range(30, 1441), 2))) for _ in range(25)]
POWER_PAIRS = [tuple(sorted((round(_rng.uniform(0, 350), 1), round(_rng.uniform(0, 350), 1)))) for _ in range(25)]


def test_one_hour_on_50kw_port():
    # 2.50 * 1h + 50kW * 0.10 * 1h
    assert calculate_cost(60, 50) == 7.50


def test_half_hour_is_half_price():
    assert calculate_cost(30, 50) == 3.75


def test_missing_power_rating_charges_base_rate_only():
    assert calculate_cost(120, None) == 5.00


def test_custom_rates():
    assert calculate_cost(90, 22, base_rate_per_hour=4.0, power_multiplier=0.2) == pytest.approx(12.6)


def test_zero_duration_is_free():
    assert calculate_cost(0, 150) == 0.0


@pytest.mark.parametrize("duration, power", [(-1, 50), (60, -5), (None, 50)])
def test_rejects_negative_inputs(duration, power):
    with pytest.raises(ValidationError):
        calculate_cost(duration, power)


@pytest.mark.parametrize("shorter, longer", DURATION_PAIRS)
def test_cost_non_decreasing_in_duration(shorter, longer):
    assert calculate_cost(shorter, 50) <= calculate_cost(longer, 50)


@pytest.mark.parametrize("weaker, stronger", POWER_PAIRS)
def test_cost_non_decreasing_in_power(weaker, stronger):
    assert calculate_cost(90, weaker) <= calculate_cost(90, stronger)


def test_cost_never_negative():
    for minutes in (0, 30, 61, 1440):
        for power in (0, 7.4, 50, 350):
            assert calculate_cost(minutes, power) >= 0

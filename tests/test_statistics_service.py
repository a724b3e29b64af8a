import math

import pytest

from perfaudit.services.statistics_service import mean_std


def test_mean_and_population_stddev():
    mean, std = mean_std([90, 92, 88])
    assert mean == 90.0
    assert std == pytest.approx(math.sqrt(8 / 3))
    assert round(std, 2) == 1.63


def test_single_value_has_zero_stddev():
    assert mean_std([42.5]) == (42.5, 0.0)


def test_identical_values_have_zero_stddev():
    _, std = mean_std([0.1, 0.1, 0.1])
    assert std == pytest.approx(0.0, abs=1e-12)


@pytest.mark.parametrize("values", [[1, 2, 3, 4], [0.01, 0.2, 0.05], [-5, 5], [1e6, 1e6 + 1]])
def test_mean_matches_arithmetic_mean_and_stddev_is_non_negative(values):
    mean, std = mean_std(values)
    assert mean == pytest.approx(sum(values) / len(values))
    assert std >= 0


def test_empty_sequence_is_rejected():
    with pytest.raises(ValueError):
        mean_std([])

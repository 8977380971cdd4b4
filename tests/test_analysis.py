import math

import numpy as np
import pytest

from surfgrowth import PagedSeries
from surfgrowth.analysis import (
    RegressionResult,
    RunningAverage,
    average_beta,
    fit_alpha,
    fit_beta,
    regress,
    regress_arrays,
    saturated_ln_width_avg,
    scaled_width_coordinates,
)


def series_of(values, page_size=8):
    s = PagedSeries(page_size=page_size)
    for v in values:
        s.append(float(v))
    return s


def test_regress_exact_line():
    fit = regress(lambda x: x, lambda x: 2 * x + 1, 0, 10, 1)
    assert fit.m == pytest.approx(2.0, abs=1e-9)
    assert fit.b == pytest.approx(1.0, abs=1e-9)
    assert fit.r_squared == pytest.approx(1.0, abs=1e-9)
    assert fit.samples == 11


def test_regress_includes_right_endpoint_with_fractional_step():
    fit = regress(lambda x: x, lambda x: -x, 0.0, 1.0, 0.1)
    assert fit.samples == 11
    assert fit.slope == pytest.approx(-1.0)


def test_regress_skips_infinite_pairs():
    f = lambda x: float("-inf") if x == 0 else x
    fit = regress(f, lambda x: 3 * x - 2, 0, 9, 1)
    assert fit.samples == 9
    assert fit.slope == pytest.approx(3.0)
    assert fit.intercept == pytest.approx(-2.0)


def test_regress_degenerate_cases_are_nan():
    flat = regress(lambda x: 4.0, lambda x: x, 0, 5, 1)
    assert math.isnan(flat.slope)

    empty = regress(lambda x: float("inf"), lambda x: x, 0, 5, 1)
    assert empty.samples == 0
    assert math.isnan(empty.slope) and math.isnan(empty.intercept)


def test_regress_propagates_nan():
    fit = regress(lambda x: x, lambda x: float("nan") if x == 3 else x, 0, 5, 1)
    assert math.isnan(fit.slope)


def test_result_is_immutable_and_callable():
    fit = RegressionResult(2.0, 1.0, 1.0)
    assert fit(3.0) == 7.0
    with pytest.raises(AttributeError):
        fit.slope = 5.0


def test_regress_arrays_matches_scipy_style_fit():
    rng = np.random.default_rng(0)
    x = np.linspace(0, 5, 200)
    y = 0.7 * x + 0.3 + rng.normal(scale=0.01, size=x.size)
    fit = regress_arrays(x, y)
    slope, intercept = np.polyfit(x, y, 1)
    assert fit.slope == pytest.approx(slope, rel=1e-9)
    assert fit.intercept == pytest.approx(intercept, rel=1e-9)
    assert 0.99 < fit.r_squared <= 1.0


def test_fit_beta_on_power_law():
    widths = [0.0] + [t ** 0.5 for t in range(1, 1001)]
    series = series_of(widths, page_size=64)
    fit = fit_beta(series, 0, 1000)
    assert fit.slope == pytest.approx(0.5, abs=1e-9)
    assert fit.r_squared == pytest.approx(1.0, abs=1e-9)
    # t = 0 gives ln 0 on both axes and is skipped
    assert fit.samples == 1000


def test_fit_beta_without_crossover():
    assert fit_beta(series_of([1, 2, 3]), 0, 0) is None


def test_fit_beta_clamps_window_to_series():
    series = series_of([0.0] + [t ** 0.25 for t in range(1, 50)])
    fit = fit_beta(series, 1, 10_000)
    assert fit.slope == pytest.approx(0.25, abs=1e-9)


def test_saturated_ln_width_avg():
    series = series_of([1, 1, 2, 4])
    assert saturated_ln_width_avg(series, 2) == pytest.approx(math.log(3.0))
    assert saturated_ln_width_avg(series, 0, 2) == pytest.approx(0.0)
    assert math.isnan(saturated_ln_width_avg(series, 4))


def test_fit_alpha():
    lengths = [16, 32, 64, 128]
    lnw = [0.5 * math.log(L) + 0.1 for L in lengths]
    fit = fit_alpha(lengths, lnw)
    assert fit.slope == pytest.approx(0.5, abs=1e-9)
    assert fit.intercept == pytest.approx(0.1, abs=1e-9)
    with pytest.raises(ValueError):
        fit_alpha([16], [])


def test_running_average_is_a_value():
    start = RunningAverage()
    avg = start.add(1.0).add(2.0).add(3.0)
    assert avg.value == pytest.approx(2.0)
    assert avg.samples == 3
    assert start == RunningAverage(0.0, 0)


def test_average_beta():
    assert average_beta([0.2, 0.3, 0.4]) == pytest.approx(0.3)
    assert math.isnan(average_beta([]))


def test_scaled_width_coordinates():
    x, y = scaled_width_coordinates([16, 64], [2.0, 4.0], L=4, alpha=0.5, z=2.0)
    assert np.allclose(x, [1.0, 4.0])
    assert np.allclose(y, [1.0, 2.0])

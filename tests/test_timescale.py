import pytest

from surfgrowth import (
    DefaultTimeScale,
    HeightAveragedTimeScale,
    LogarithmicTimeScale,
    make_time_scale,
)


def test_default_measures_every_step():
    ts = DefaultTimeScale(period=5)
    assert all(ts.should_measure(t) for t in range(20))
    assert [t for t in range(20) if ts.should_average(t)] == [0, 5, 10, 15]
    assert ts.scaled_time(123) == 123


def test_height_averaged_measures_on_new_floor():
    h = {"avg": 0.5}
    ts = HeightAveragedTimeScale()
    ts.bind(lambda: h["avg"])

    ts.on_step(0)
    assert ts.last_floor == 0
    assert not ts.should_measure(1)

    h["avg"] = 0.99
    assert not ts.should_measure(1)

    h["avg"] = 1.2
    assert ts.should_measure(1)
    # no state change without on_step
    assert ts.should_measure(1)
    assert ts.should_average(1)

    ts.on_step(1)
    assert ts.scaled_time(2) == 1
    assert not ts.should_measure(2)
    assert not ts.should_measure(2)

    h["avg"] = 3.01
    assert ts.should_measure(2)


def test_height_averaged_requires_binding():
    ts = HeightAveragedTimeScale()
    with pytest.raises(RuntimeError):
        ts.should_measure(0)


def test_logarithmic_buckets():
    ts = LogarithmicTimeScale(scale_factor=1.0)
    averaged = []
    for t in range(1, 1001):
        ts.on_step(t - 1)
        assert ts.should_measure(t)
        if ts.should_average(t):
            averaged.append(t)
    assert averaged == [1, 3, 8, 21, 55, 149, 404]
    assert ts.scaled_time(77) == 77


def test_logarithmic_ignores_step_zero():
    ts = LogarithmicTimeScale(scale_factor=0.5)
    ts.on_step(-1)
    assert not ts.should_average(0)
    ts.on_step(0)
    assert ts.should_average(1)


def test_reset_restores_sentinel():
    ts = LogarithmicTimeScale(scale_factor=1.0)
    ts.on_step(100)
    assert not ts.should_average(101)
    ts.reset()
    assert ts.should_average(101)


def test_factory():
    assert isinstance(make_time_scale("default", period=3), DefaultTimeScale)
    assert isinstance(make_time_scale("height_averaged"), HeightAveragedTimeScale)
    log = make_time_scale("Logarithmic", scale_factor=0.25)
    assert isinstance(log, LogarithmicTimeScale) and log.scale_factor == 0.25
    with pytest.raises(ValueError):
        make_time_scale("quadratic")


@pytest.mark.parametrize("bad", [0, -2])
def test_invalid_arguments(bad):
    with pytest.raises(ValueError):
        DefaultTimeScale(period=bad)
    with pytest.raises(ValueError):
        LogarithmicTimeScale(scale_factor=bad)

import math

import pytest

from surfgrowth import TrialConfig, TrialContext, analyze_trial, run_trial
from surfgrowth.trials import WidthAverages, build_engine


def test_from_mapping_splits_parameters():
    config = TrialConfig.from_mapping(
        {"model": "random", "L": 64, "dH": 128, "max_steps": 500, "seed": 3}
    )
    assert config.model == "random"
    assert config.max_steps == 500
    assert config.seed == 3
    assert config.params["L"] == 64.0
    assert config.params["dH"] == 128.0
    # unspecified geometry falls back to the defaults
    assert config.params["H"] == 524288


def test_build_engine_uses_configured_policy():
    config = TrialConfig(
        params={"L": 8, "H": 256, "dH": 32},
        time_scale="log",
        scale_factor=0.5,
        max_steps=100,
    )
    engine = build_engine(config)
    assert engine.time_scale.name == "logarithmic"
    assert engine.time == -1


def test_trial_halts_near_height_bound():
    config = TrialConfig(
        params={"L": 16, "H": 64, "dH": 64}, model="ballistic", max_steps=10_000, seed=1
    )
    context = TrialContext()
    outcome = run_trial(config, context)
    assert outcome.stop_reason == "height"
    assert outcome.engine.average_height > 0.9 * 64
    assert outcome.engine.time < 10_000


def test_trial_stops_at_max_steps_and_averages():
    config = TrialConfig(
        params={"L": 16, "H": 1024, "dH": 128}, average_period=10, max_steps=100, seed=2
    )
    context = TrialContext()
    outcome = run_trial(config, context)
    assert outcome.stop_reason == "max_steps"
    assert outcome.engine.time == 99
    assert len(context.averages) == 10
    ts, ws = context.averages.as_arrays()
    assert list(ts) == list(range(0, 100, 10))
    assert all(context.averages.values[t].samples == 1 for t in ts)


def test_on_display_frequency():
    seen = []
    config = TrialConfig(
        params={"L": 8, "H": 1024, "dH": 64}, max_steps=50, steps_per_display=10, seed=0
    )
    run_trial(config, TrialContext(), on_display=lambda e: seen.append(e.time))
    assert seen == [9, 19, 29, 39, 49]


def test_model_ids_are_sequential():
    context = TrialContext(remaining_trials=2)
    config = TrialConfig(params={"L": 8, "H": 256, "dH": 32}, max_steps=10, seed=0)
    assert run_trial(config, context).model_id == 0
    assert run_trial(config, context).model_id == 1


def test_width_averages_accumulate():
    avgs = WidthAverages()
    avgs.update(5, 1.0)
    avgs.update(5, 3.0)
    avgs.update(7, 4.0)
    assert avgs.values[5].value == pytest.approx(2.0)
    assert avgs.values[5].samples == 2
    assert len(avgs) == 2


def test_two_lengths_give_alpha():
    context = TrialContext(remaining_trials=2)
    results = []
    for L, seed in ((16, 10), (32, 11)):
        config = TrialConfig(
            params={"L": L, "H": 4096, "dH": 256}, max_steps=2000, seed=seed
        )
        outcome = run_trial(config, context)
        results.append(analyze_trial(outcome, context, t_0=1, t_x1=100, t_x2=1000))

    first, second = results
    assert math.isnan(first.alpha)
    assert math.isfinite(first.beta) and math.isfinite(first.lnw_avg)
    assert first.beta_avg == pytest.approx(first.beta)

    assert context.done
    assert math.isfinite(second.alpha)
    assert second.R2 == pytest.approx(1.0)
    assert second.beta_avg == pytest.approx((first.beta + second.beta) / 2)
    assert second.L == 32 and second.t == 1999


def test_analyze_without_crossover_leaves_beta_nan():
    context = TrialContext()
    config = TrialConfig(params={"L": 8, "H": 512, "dH": 64}, max_steps=200, seed=4)
    stats = analyze_trial(run_trial(config, context), context)
    assert math.isnan(stats.beta)
    assert math.isfinite(stats.w)


def test_page_size_without_step_cap():
    config = TrialConfig(params={"L": 64, "H": 1 << 20, "dH": 256}, page_size=4096)
    assert build_engine(config).series.page_size == 4096

    config.max_steps = 500
    assert build_engine(config).series.page_size == 500

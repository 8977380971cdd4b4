"""
Trial orchestration.

Runs a configured engine until it nears its height bound, keeps running
averages of the width per scaled time, and turns finished runs into
:class:`~surfgrowth.utils.RunStatistics`. State that spans several runs
(model ids, finished runs for beta_avg and alpha) lives in an explicit
:class:`TrialContext`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np

from . import analysis
from .engine import DepositionEngine
from .models import make_model
from .paged_series import PageStore
from .timescale import make_time_scale
from .utils import RunStatistics

logger = logging.getLogger(__name__)


@dataclass
class TrialConfig:
    """Everything needed to run one deposition trial."""

    params: Dict[str, float] = field(default_factory=DepositionEngine.default_parameters)
    model: str = "ballistic"
    time_scale: str = "default"
    average_period: int = 1
    scale_factor: float = 1.0
    max_steps: Optional[int] = None
    halt_fraction: float = 0.9
    page_size: int = 1 << 20
    steps_per_display: int = 0
    seed: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TrialConfig":
        """Build from a flat dict, e.g. loaded by ``utils.load_params``."""
        data = dict(data)
        params = DepositionEngine.default_parameters()
        params.update(data.pop("params", {}))
        for key in list(data):
            if key not in cls.__dataclass_fields__:
                params[key] = float(data.pop(key))
        return cls(params=params, **data)


@dataclass
class WidthAverages:
    """Running mean width at each scaled time, across trials."""

    values: Dict[int, analysis.RunningAverage] = field(default_factory=dict)

    def update(self, t: int, w: float) -> None:
        self.values[t] = self.values.get(t, analysis.RunningAverage()).add(w)

    def __len__(self) -> int:
        return len(self.values)

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        ts = np.array(sorted(self.values), dtype=np.int64)
        ws = np.array([self.values[t].value for t in ts], dtype=np.float64)
        return ts, ws


@dataclass
class TrialOutcome:
    model_id: int
    engine: DepositionEngine
    stop_reason: str


@dataclass
class TrialContext:
    """Cross-trial bookkeeping for one batch of runs."""

    remaining_trials: int = 1
    next_model_id: int = 0
    averages: WidthAverages = field(default_factory=WidthAverages)
    completed: List[RunStatistics] = field(default_factory=list)

    def new_model_id(self) -> int:
        model_id = self.next_model_id
        self.next_model_id += 1
        return model_id

    def finish(self, stats: RunStatistics) -> None:
        self.completed.append(stats)
        self.remaining_trials = max(0, self.remaining_trials - 1)

    @property
    def done(self) -> bool:
        return self.remaining_trials <= 0

    def beta_avg(self) -> float:
        return analysis.average_beta(s.beta for s in self.completed)

    def alpha(self) -> analysis.RegressionResult:
        lengths = [s.L for s in self.completed]
        lnw = [s.lnw_avg for s in self.completed]
        return analysis.fit_alpha(lengths, lnw)


def build_engine(config: TrialConfig, *, store: Optional[PageStore] = None) -> DepositionEngine:
    time_scale = make_time_scale(
        config.time_scale,
        period=config.average_period,
        scale_factor=config.scale_factor,
    )
    engine = DepositionEngine(
        make_model(config.model), time_scale, seed=config.seed, store=store
    )
    capacity = config.page_size if config.max_steps is None else config.max_steps
    engine.init(config.params, capacity=capacity)
    return engine


def run_trial(
    config: TrialConfig,
    context: TrialContext,
    *,
    store: Optional[PageStore] = None,
    on_display: Optional[Callable[[DepositionEngine], None]] = None,
) -> TrialOutcome:
    """
    Step an engine until it nears ``halt_fraction * H`` or ``max_steps``.

    Widths are folded into ``context.averages`` whenever the time scale
    asks for it.
    """
    engine = build_engine(config, store=store)
    model_id = context.new_model_id()
    logger.info("trial %d: %s L=%d H=%d", model_id, config.model, engine.L, engine.H)

    stop_reason = "max_steps"
    steps = 0
    while config.max_steps is None or steps < config.max_steps:
        if engine.near_capacity(config.halt_fraction):
            stop_reason = "height"
            break
        engine.step()
        steps += 1

        if engine.should_average():
            context.averages.update(engine.scaled_time(), engine.width())
        if on_display is not None and config.steps_per_display > 0:
            if steps % config.steps_per_display == 0:
                on_display(engine)

    engine.stop()
    logger.info(
        "trial %d stopped (%s) at t=%d, h_avg=%.1f",
        model_id, stop_reason, engine.time, engine.average_height,
    )
    return TrialOutcome(model_id=model_id, engine=engine, stop_reason=stop_reason)


def analyze_trial(
    outcome: TrialOutcome,
    context: TrialContext,
    t_0: int = 0,
    t_x1: int = 0,
    t_x2: int = 0,
) -> RunStatistics:
    """
    Fit beta over ``[t_0, t_x1]`` and the saturated width from ``t_x2``,
    record the run in ``context`` and refresh beta_avg and alpha.
    """
    engine = outcome.engine
    series = engine.series

    beta_fit = analysis.fit_beta(series, t_0, t_x1)
    stats = RunStatistics(
        L=engine.L,
        t=int(engine.time),
        h_avg=float(engine.average_height),
        w=series.get(len(series) - 1) if len(series) else float("nan"),
        t_0=int(t_0),
        t_x1=int(t_x1),
        t_x2=int(t_x2),
        beta=beta_fit.slope if beta_fit is not None else float("nan"),
        lnw_avg=analysis.saturated_ln_width_avg(series, t_x2),
    )
    context.finish(stats)

    stats.beta_avg = context.beta_avg()
    alpha_fit = context.alpha()
    stats.alpha = alpha_fit.slope
    stats.R2 = alpha_fit.r_squared
    return stats


__all__ = [
    "TrialConfig",
    "TrialContext",
    "TrialOutcome",
    "WidthAverages",
    "build_engine",
    "run_trial",
    "analyze_trial",
]

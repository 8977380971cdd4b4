"""
Large-system deposition engine.

The engine owns the rolling lattice, the column heights and the width
series, and advances them one particle at a time. Where a particle lands
is delegated to an injected placement rule; when the width is sampled is
delegated to a time-scale policy.

Per step:
    1. policy.on_step(time); time += 1
    2. (x, y) = rule.deposit(lattice, rng)
    3. lattice.recycle(y)
    4. lattice.occupy(x, y); height[x] = y
    5. refresh average/min/max height
    6. if policy.should_measure(time): series.append(width)

The engine never stops itself when the surface approaches ``H``. The
caller is expected to poll :meth:`DepositionEngine.near_capacity` before
each step and stop the run.
"""

from __future__ import annotations

import enum
import logging
from typing import Callable, Dict, Mapping, Optional, Tuple

import numpy as np

from .errors import MissingParameterError
from .lattice import RollingLattice
from .models import PlacementRule
from .paged_series import MAX_PAGE_SIZE, PagedSeries, PageStore
from .timescale import DefaultTimeScale, TimeScale

logger = logging.getLogger(__name__)

REQUIRED_PARAMETERS = ("L", "H", "dH")

DEFAULT_PARAMETERS: Dict[str, float] = {
    "L": 256,
    "H": 524_288,
    "dH": 2048,
}


class EngineState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    RUNNING = "running"
    STOPPED = "stopped"


class DepositionEngine:
    """
    Drives one deposition run.

    Parameters
    ----------
    rule:
        Placement rule, an object with ``deposit(lattice, rng)`` or a
        callable with that signature.
    time_scale:
        Width sampling policy. Defaults to measuring every step.
    seed:
        Seed for the engine's ``numpy.random.Generator``.
    store:
        Page store for the width series. ``None`` keeps pages in memory.
    """

    def __init__(
        self,
        rule: PlacementRule | Callable[[RollingLattice, np.random.Generator], Tuple[int, int]],
        time_scale: Optional[TimeScale] = None,
        *,
        seed: Optional[int] = None,
        store: Optional[PageStore] = None,
    ) -> None:
        self.rule = rule
        self._deposit = getattr(rule, "deposit", rule)
        self.time_scale = time_scale or DefaultTimeScale()
        self.time_scale.bind(lambda: self.average_height)
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.store = store

        self.state = EngineState.UNINITIALIZED
        self._parameters: Dict[str, float] = {}

        self.L = 0
        self.H = 0
        self.dH = 0
        self.lattice: Optional[RollingLattice] = None
        self.series: Optional[PagedSeries] = None

        self.time = -1
        self.average_height = 0.0
        self.min_height = 0
        self.max_height = 0

    @staticmethod
    def default_parameters() -> Dict[str, float]:
        return dict(DEFAULT_PARAMETERS)

    # ------------------------------------------------------------ lifecycle
    def init(self, params: Mapping[str, float], capacity: Optional[int] = None) -> None:
        """
        Allocate lattice and width series for a new run.

        ``capacity`` sizes the resident page of the width series; it
        defaults to ``L * H``, capped at ``MAX_PAGE_SIZE``.
        """
        if self.state not in (EngineState.UNINITIALIZED, EngineState.STOPPED):
            raise RuntimeError(
                f"init() requires an uninitialized or stopped engine (state={self.state.value})"
            )
        for key in REQUIRED_PARAMETERS:
            if key not in params:
                raise MissingParameterError(key)

        if self.series is not None:
            self.series.close()

        self._parameters = {k: float(v) for k, v in params.items()}
        self.L = int(params["L"])
        self.H = int(params["H"])
        self.dH = int(params["dH"])
        self.lattice = RollingLattice(self.L, self.H, self.dH)

        if capacity is None:
            capacity = self.L * self.H
        page_size = int(max(1, min(capacity, MAX_PAGE_SIZE)))
        self.series = PagedSeries(page_size=page_size, store=self.store)

        self.time_scale.reset()
        self.time = -1  # first step() runs at t = 0
        self.average_height = 0.0
        self.min_height = 0
        self.max_height = 0
        self.state = EngineState.INITIALIZED
        logger.debug(
            "init L=%d H=%d dH=%d page_size=%d time_scale=%r",
            self.L, self.H, self.dH, page_size, self.time_scale,
        )

    def stop(self) -> None:
        if self.state in (EngineState.INITIALIZED, EngineState.RUNNING):
            self.state = EngineState.STOPPED
            if self.series is not None:
                self.series.flush()
            logger.debug("stopped at t=%d, h_avg=%.2f", self.time, self.average_height)

    def clear_memory(self) -> None:
        """Release lattice and series; the engine must be init()-ed again."""
        if self.series is not None:
            self.series.close()
        self.lattice = None
        self.series = None
        self.state = EngineState.UNINITIALIZED

    # ----------------------------------------------------------------- step
    def step(self) -> None:
        if self.state not in (EngineState.INITIALIZED, EngineState.RUNNING):
            raise RuntimeError(f"step() requires an initialized engine (state={self.state.value})")
        self.state = EngineState.RUNNING
        lattice = self.lattice

        self.time_scale.on_step(self.time)
        self.time += 1

        x, y = self._deposit(lattice, self.rng)

        lattice.recycle(y)
        lattice.occupy(x, y)
        lattice.height[x] = y

        self.average_height, self.min_height, self.max_height = lattice.stats()

        if self.time_scale.should_measure(self.time):
            self.series.append(self.width())

    def run(self, n_steps: int) -> None:
        for _ in range(n_steps):
            self.step()

    # ---------------------------------------------------------- observables
    @property
    def height(self) -> np.ndarray:
        return self.lattice.height

    @property
    def parameters(self) -> Dict[str, float]:
        return dict(self._parameters)

    def get_parameter(self, name: str) -> float:
        try:
            return self._parameters[name]
        except KeyError:
            raise MissingParameterError(name) from None

    def width(self) -> float:
        """Instantaneous surface width (RMS height deviation)."""
        return self.lattice.width(self.average_height)

    def get_width(self, t: int) -> float:
        return self.series.get(t)

    def scaled_time(self) -> int:
        return self.time_scale.scaled_time(self.time)

    def should_average(self, t: Optional[int] = None) -> bool:
        return self.time_scale.should_average(self.time if t is None else t)

    def near_capacity(self, fraction: float = 0.9) -> bool:
        """True once the mean height passes ``fraction * H``."""
        return self.average_height > fraction * self.H

    def register_paging_callbacks(self, on_started=None, on_completed=None) -> None:
        self.series.register_callbacks(on_started, on_completed)

    def snapshot(self) -> Dict[str, float]:
        return {
            "L": self.L,
            "H": self.H,
            "dH": self.dH,
            "t": self.time,
            "h_avg": self.average_height,
            "h_min": self.min_height,
            "h_max": self.max_height,
            "w": self.width() if self.lattice is not None else float("nan"),
            "samples": len(self.series) if self.series is not None else 0,
        }


__all__ = [
    "DEFAULT_PARAMETERS",
    "REQUIRED_PARAMETERS",
    "DepositionEngine",
    "EngineState",
]

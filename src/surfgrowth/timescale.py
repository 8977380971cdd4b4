"""
Time-scale policies.

A policy decides, per deposition step, whether the surface width is
recorded and whether running averages are updated, and defines what the
"time" axis of the recorded series means:

- DefaultTimeScale: every step, time = particles deposited.
- HeightAveragedTimeScale: one sample per unit rise of the mean height.
- LogarithmicTimeScale: every step is recorded, averages are taken on
  geometrically spaced buckets of ln(t).

The engine calls ``on_step(t)`` before each deposit and
``should_measure(t)`` after it.
"""

from __future__ import annotations

import math
from typing import Callable, Optional

# Below every bucket/floor a real step can produce.
SENTINEL = -(2**62)


class TimeScale:
    """Base policy: record every step, never average."""

    name = "base"

    def bind(self, height_source: Callable[[], float]) -> None:
        """Give the policy read access to the current average height."""

    def should_measure(self, t: int) -> bool:
        return True

    def on_step(self, t: int) -> None:
        pass

    def scaled_time(self, t: int) -> int:
        return t

    def should_average(self, t: int) -> bool:
        return False

    def reset(self) -> None:
        pass


class DefaultTimeScale(TimeScale):
    """Measure every step; average every ``period`` steps."""

    name = "default"

    def __init__(self, period: int = 1) -> None:
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")
        self.period = int(period)

    def should_average(self, t: int) -> bool:
        return t % self.period == 0

    def __repr__(self) -> str:
        return f"DefaultTimeScale(period={self.period})"


class HeightAveragedTimeScale(TimeScale):
    """
    Sample whenever floor(average height) increases.

    Long transients collapse to one sample per layer instead of one per
    particle. Scaled time is the last recorded height floor.
    """

    name = "height-averaged"

    def __init__(self) -> None:
        self._height_source: Optional[Callable[[], float]] = None
        self.last_floor = SENTINEL

    def bind(self, height_source: Callable[[], float]) -> None:
        self._height_source = height_source

    def _floor(self) -> int:
        if self._height_source is None:
            raise RuntimeError("HeightAveragedTimeScale used before bind()")
        return math.floor(self._height_source())

    def should_measure(self, t: int) -> bool:
        return self._floor() > self.last_floor

    def on_step(self, t: int) -> None:
        self.last_floor = self._floor()

    def scaled_time(self, t: int) -> int:
        return self.last_floor

    def should_average(self, t: int) -> bool:
        return self.should_measure(t)

    def reset(self) -> None:
        self.last_floor = SENTINEL

    def __repr__(self) -> str:
        return "HeightAveragedTimeScale()"


class LogarithmicTimeScale(TimeScale):
    """Measure every step; average once per bucket of ln(t) / scale_factor."""

    name = "logarithmic"

    def __init__(self, scale_factor: float) -> None:
        if scale_factor <= 0:
            raise ValueError(f"scale_factor must be positive, got {scale_factor}")
        self.scale_factor = float(scale_factor)
        self.last_bucket = SENTINEL

    def bucket(self, t: int) -> int:
        """Bucket index of step ``t``; steps before t=1 have none."""
        if t < 1:
            return SENTINEL
        return math.floor(math.log(t) / self.scale_factor)

    def on_step(self, t: int) -> None:
        b = self.bucket(t)
        if b != SENTINEL:
            self.last_bucket = b

    def should_average(self, t: int) -> bool:
        return self.bucket(t) > self.last_bucket

    def reset(self) -> None:
        self.last_bucket = SENTINEL

    def __repr__(self) -> str:
        return f"LogarithmicTimeScale(scale_factor={self.scale_factor})"


def make_time_scale(
    name: str = "default",
    *,
    period: int = 1,
    scale_factor: float = 1.0,
) -> TimeScale:
    """Build a policy from its config name."""
    key = name.strip().lower().replace("_", "-")
    if key == "default":
        return DefaultTimeScale(period)
    if key in {"height-averaged", "h-avg", "havg"}:
        return HeightAveragedTimeScale()
    if key in {"logarithmic", "log"}:
        return LogarithmicTimeScale(scale_factor)
    raise ValueError(f"Unknown time scale: {name}")


__all__ = [
    "TimeScale",
    "DefaultTimeScale",
    "HeightAveragedTimeScale",
    "LogarithmicTimeScale",
    "make_time_scale",
]

"""
Scaling analysis of surface width.

The width obeys the Family-Vicsek relation

    w(L, t) ~ L^alpha * f(t / L^z),   f(u) ~ u^beta (u << 1),  f(u) = const (u >> 1)

so that, before and after the crossover time t_x ~ L^z,

    ln w = beta * ln t + C     (t << t_x)
    ln w = alpha * ln L + C    (t >> t_x).

Both exponents come from an ordinary least-squares fit of one scalar
function against another, see :func:`regress`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Tuple

import numpy as np

from .paged_series import PagedSeries

Function = Callable[[float], float]


@dataclass(frozen=True)
class RegressionResult:
    """Least-squares line g = slope * f + intercept."""

    slope: float
    intercept: float
    r_squared: float
    samples: int = 0

    @property
    def m(self) -> float:
        return self.slope

    @property
    def b(self) -> float:
        return self.intercept

    def __call__(self, x):
        return self.slope * x + self.intercept


@dataclass(frozen=True)
class RunningAverage:
    """Mean of ``samples`` values. ``add`` returns a new instance."""

    value: float = 0.0
    samples: int = 0

    def add(self, x: float) -> "RunningAverage":
        n = self.samples + 1
        return RunningAverage((self.value * self.samples + x) / n, n)


def _sample_points(x1: float, x2: float, dx: float) -> np.ndarray:
    if dx <= 0:
        raise ValueError(f"dx must be positive, got {dx}")
    if x2 < x1:
        return np.empty(0, dtype=np.float64)
    # small tolerance so x2 itself is included despite rounding in (x2-x1)/dx
    n = int(math.floor((x2 - x1) / dx + 1e-9)) + 1
    return x1 + dx * np.arange(n, dtype=np.float64)


def regress(f: Function, g: Function, x1: float, x2: float, dx: float = 1.0) -> RegressionResult:
    """
    Fit g(x) against f(x) for x = x1, x1 + dx, ... <= x2.

    Pairs where either value is infinite are skipped (ln 0 from a zero
    width, for instance). NaN is not skipped and propagates. With no
    usable samples, or no spread in f, the slope comes out NaN or inf.
    """
    fs = []
    gs = []
    for x in _sample_points(x1, x2, dx):
        f_x = f(float(x))
        g_x = g(float(x))
        if math.isinf(f_x) or math.isinf(g_x):
            continue
        fs.append(f_x)
        gs.append(g_x)
    return regress_arrays(np.asarray(fs, dtype=np.float64), np.asarray(gs, dtype=np.float64))


def regress_arrays(f: np.ndarray, g: np.ndarray) -> RegressionResult:
    """Moment-formula least squares on paired arrays (infinite pairs dropped)."""
    f = np.asarray(f, dtype=np.float64)
    g = np.asarray(g, dtype=np.float64)
    keep = ~(np.isinf(f) | np.isinf(g))
    f = f[keep]
    g = g[keep]
    n = f.size

    with np.errstate(divide="ignore", invalid="ignore"):
        if n == 0:
            zero = np.float64(0.0)
            f_avg = g_avg = fg_avg = f2_avg = g2_avg = zero
        else:
            f_avg = f.mean()
            g_avg = g.mean()
            fg_avg = (f * g).mean()
            f2_avg = (f * f).mean()
            g2_avg = (g * g).mean()

        cov = fg_avg - f_avg * g_avg
        var_f = f2_avg - f_avg * f_avg
        var_g = g2_avg - g_avg * g_avg
        m = cov / var_f
        b = g_avg - m * f_avg
        r2 = (cov * cov) / (var_f * var_g)

    return RegressionResult(float(m), float(b), float(r2), int(n))


def _log(x: float) -> float:
    # ln 0 -> -inf rather than an exception, so regress() can skip it
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.log(np.float64(x)))


def log_width(series: PagedSeries) -> Function:
    """ln w(t) read from a width series."""
    return lambda x: _log(series.get(int(x)))


def log_time() -> Function:
    """ln t on integer steps."""
    return lambda x: _log(int(x))


def fit_beta(series: PagedSeries, t_0: int, t_x: int) -> Optional[RegressionResult]:
    """
    Growth exponent from ln w vs ln t over ``[t_0, t_x]``.

    Returns None when no crossover time was given (``t_x <= 0``).
    """
    if t_x <= 0:
        return None
    t_x = min(int(t_x), len(series) - 1)
    return regress(log_time(), log_width(series), t_0, t_x, 1)


def saturated_ln_width_avg(series: PagedSeries, t_x: int, t_end: Optional[int] = None) -> float:
    """ln of the mean width over the saturated regime ``[t_x, t_end)``."""
    t_end = len(series) if t_end is None else min(t_end, len(series))
    values = series.to_array(int(t_x), int(t_end))
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.log(values.mean())) if values.size else float("nan")


def fit_alpha(lengths: Sequence[int], lnw_avgs: Sequence[float]) -> RegressionResult:
    """Roughness exponent from saturated ln w vs ln L across runs."""
    if len(lengths) != len(lnw_avgs):
        raise ValueError("lengths and lnw_avgs must have the same size")
    ln_l = [math.log(L) for L in lengths]
    points = list(lnw_avgs)
    return regress(
        lambda x: ln_l[int(x)],
        lambda x: points[int(x)],
        0,
        len(points) - 1,
        1,
    )


def average_beta(betas: Iterable[float]) -> float:
    avg = RunningAverage()
    for beta in betas:
        avg = avg.add(beta)
    return avg.value if avg.samples else float("nan")


def scaled_width_coordinates(
    t: np.ndarray, w: np.ndarray, L: int, alpha: float, z: float = 2.0
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Family-Vicsek collapse: (t / L^z, w / L^alpha).

    Curves for different L fall on one another when alpha and z are right.
    """
    t = np.asarray(t, dtype=np.float64)
    w = np.asarray(w, dtype=np.float64)
    return t / float(L) ** z, w / float(L) ** alpha


__all__ = [
    "RegressionResult",
    "RunningAverage",
    "regress",
    "regress_arrays",
    "log_width",
    "log_time",
    "fit_beta",
    "saturated_ln_width_avg",
    "fit_alpha",
    "average_beta",
    "scaled_width_coordinates",
]

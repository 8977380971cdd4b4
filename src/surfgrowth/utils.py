# src/surfgrowth/utils.py
from __future__ import annotations

import json
import os
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover
    tomllib = None  # type: ignore


@dataclass
class RunResult:
    """Common container for deposition run outputs."""

    height: Optional[np.ndarray] = None
    widths: Optional[np.ndarray] = None
    window: Optional[np.ndarray] = None
    meta: Optional[Dict[str, Any]] = None

    def ensure_meta(self) -> Dict[str, Any]:
        if self.meta is None:
            self.meta = {}
        return self.meta


@dataclass
class RunStatistics:
    """Per-run statistics handed to the reporting layer."""

    L: int
    t: int
    h_avg: float
    w: float
    t_0: int = 0
    t_x1: int = 0
    t_x2: int = 0
    beta: float = float("nan")
    beta_avg: float = float("nan")
    lnw_avg: float = float("nan")
    alpha: float = float("nan")
    R2: float = float("nan")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def now_str() -> str:
    return time.strftime("%Y%m%d-%H%M%S")


def result_from_engine(engine, *, include_window: bool = True) -> RunResult:
    """Snapshot an engine's heights, width series and parameters."""
    meta: Dict[str, Any] = dict(engine.parameters)
    meta.update(
        {
            "model": getattr(engine.rule, "name", type(engine.rule).__name__),
            "time_scale": getattr(engine.time_scale, "name", "?"),
            "seed": engine.seed,
            "t": int(engine.time),
            "h_avg": float(engine.average_height),
        }
    )
    return RunResult(
        height=np.array(engine.height, copy=True),
        widths=engine.series.to_array(),
        window=engine.lattice.window() if include_window else None,
        meta=meta,
    )


def save_run_result(
    path: str | os.PathLike[str], result: RunResult, *, overwrite: bool = True
) -> None:
    """Serialize a RunResult to a compressed .npz."""
    out_dir = Path(path).parent
    out_dir.mkdir(parents=True, exist_ok=True)
    out: Dict[str, Any] = {}
    if result.height is not None:
        out["height"] = np.asarray(result.height, dtype=np.int64)
    if result.widths is not None:
        out["widths"] = np.asarray(result.widths, dtype=np.float64)
    if result.window is not None:
        out["window"] = np.asarray(result.window).astype("uint8")
    out["meta"] = json.dumps(result.meta or {})

    if not overwrite and Path(path).exists():
        raise FileExistsError(f"{path} already exists")
    np.savez_compressed(path, **out)


def load_run_result(path: str | os.PathLike[str]) -> RunResult:
    """Load a .npz written by :func:`save_run_result`."""
    with np.load(path, allow_pickle=False) as data:
        height = data["height"].astype(np.int64) if "height" in data else None
        widths = data["widths"].astype(np.float64) if "widths" in data else None
        window = data["window"].astype(bool) if "window" in data else None
        meta = json.loads(str(data["meta"])) if "meta" in data else {}
    return RunResult(height=height, widths=widths, window=window, meta=meta)


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load simulation parameters from JSON or TOML.
    """
    path = str(path)
    with open(path, "rb") as fh:
        data = fh.read()
    suffix = Path(path).suffix.lower()
    if suffix in {".json", ""}:
        return json.loads(data.decode("utf-8"))
    if suffix in {".toml", ".tml"}:
        if tomllib is None:
            raise RuntimeError("tomllib is unavailable; cannot parse TOML files")
        return tomllib.loads(data.decode("utf-8"))
    raise ValueError(f"Unsupported parameter file format: {suffix}")

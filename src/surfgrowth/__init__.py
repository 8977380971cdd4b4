"""
Surface Growth Simulation Library - Large-System Deposition Core

This package provides:
- DepositionEngine: step-by-step deposition on a rolling bit-packed lattice
- BallisticDeposition / RandomDeposition: reference placement rules
- PagedSeries: width history paged out to an external store
- Time scales: default, height-averaged and logarithmic sampling
- analysis: least-squares fits for the growth and roughness exponents
"""

from .engine import DepositionEngine, EngineState
from .errors import MissingParameterError, OutOfRangeError, SurfGrowthError
from .lattice import RollingLattice
from .models import BallisticDeposition, RandomDeposition
from .paged_series import MemoryPageStore, NpyPageStore, PagedSeries, SqlitePageStore
from .timescale import (
    DefaultTimeScale,
    HeightAveragedTimeScale,
    LogarithmicTimeScale,
    make_time_scale,
)
from .trials import TrialConfig, TrialContext, analyze_trial, run_trial
from . import analysis, utils

__all__ = [
    # Engine
    "DepositionEngine",
    "EngineState",
    "RollingLattice",
    # Placement rules
    "BallisticDeposition",
    "RandomDeposition",
    # Width storage
    "PagedSeries",
    "MemoryPageStore",
    "NpyPageStore",
    "SqlitePageStore",
    # Time scales
    "DefaultTimeScale",
    "HeightAveragedTimeScale",
    "LogarithmicTimeScale",
    "make_time_scale",
    # Trials
    "TrialConfig",
    "TrialContext",
    "run_trial",
    "analyze_trial",
    # Errors
    "SurfGrowthError",
    "OutOfRangeError",
    "MissingParameterError",
    # Utilities
    "analysis",
    "utils",
]

"""
Placement rules.

A placement rule picks where the next particle lands. It reads the
lattice (``is_top``, ``filled``, ``local_max_height``, ``height``) but
never writes to it; the engine applies the result.

Any object with ``deposit(lattice, rng) -> (x, y)``, or a plain callable
with the same signature, can drive a :class:`~surfgrowth.engine.DepositionEngine`.
"""

from __future__ import annotations

from typing import Protocol, Tuple

import numpy as np

from .lattice import RollingLattice


class PlacementRule(Protocol):
    def deposit(
        self, lattice: RollingLattice, rng: np.random.Generator
    ) -> Tuple[int, int]: ...


class BallisticDeposition:
    """
    Ballistic deposition: the particle falls down a random column and
    sticks to the first particle it touches, either below it or beside it.
    """

    name = "ballistic"

    def deposit(
        self, lattice: RollingLattice, rng: np.random.Generator
    ) -> Tuple[int, int]:
        col = int(rng.integers(lattice.L))
        h = lattice.local_max_height(col - 1, col + 1)
        if lattice.is_top(col, h) and lattice.is_valid(col, h + 1):
            return col, h + 1
        return col, h


class RandomDeposition:
    """Random deposition: particles stack on their own column only."""

    name = "random"

    def deposit(
        self, lattice: RollingLattice, rng: np.random.Generator
    ) -> Tuple[int, int]:
        col = int(rng.integers(lattice.L))
        h = int(lattice.height[col])
        if lattice.filled[col]:
            return col, h + 1
        return col, h


MODELS = {
    "ballistic": BallisticDeposition,
    "random": RandomDeposition,
}


def make_model(name: str) -> PlacementRule:
    try:
        return MODELS[name.strip().lower()]()
    except KeyError:
        raise ValueError(f"Unknown model: {name}") from None


__all__ = [
    "PlacementRule",
    "BallisticDeposition",
    "RandomDeposition",
    "MODELS",
    "make_model",
]

"""
Rolling bit-packed lattice for large deposition systems.

A surface of logical size ``L x H`` is stored in a physical slot of only
``dH`` rows. Row ``y`` lives at physical row ``y % dH``; as the growth
front climbs, the half of the slot it is about to re-enter is zeroed by
:meth:`RollingLattice.recycle`. Memory therefore scales with ``L * dH``
bits rather than ``L * H``.

Bits are packed eight columns to a byte, MSB first.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numba import njit

from .errors import OutOfRangeError

###############################################################################
# Bit-array kernels
###############################################################################


@njit(cache=True)
def _get_bit(bits: np.ndarray, row: int, x: int) -> int:
    """Return 1 if column ``x`` of physical ``row`` is set."""
    byte_val = bits[row, x >> 3]
    # MSB is column 0 of the byte
    return (byte_val >> (7 - (x & 7))) & 1


@njit(cache=True)
def _set_bit(bits: np.ndarray, row: int, x: int) -> None:
    mask = np.uint8(1 << (7 - (x & 7)))
    bits[row, x >> 3] |= mask


@njit(cache=True)
def _clear_rows(bits: np.ndarray, lo: int, hi: int) -> None:
    """Zero physical rows ``[lo, hi)``."""
    for row in range(lo, hi):
        for b in range(bits.shape[1]):
            bits[row, b] = 0


@njit(cache=True)
def _range_max(height: np.ndarray, lo: int, hi: int) -> int:
    best = height[lo]
    for i in range(lo + 1, hi + 1):
        if height[i] > best:
            best = height[i]
    return best


@njit(cache=True)
def height_stats(height: np.ndarray) -> Tuple[float, int, int]:
    """
    Single pass over the column heights.

    Returns (average, minimum, maximum).
    """
    total = 0
    lo = height[0]
    hi = height[0]
    for i in range(height.shape[0]):
        h = height[i]
        total += h
        if h < lo:
            lo = h
        if h > hi:
            hi = h
    return total / height.shape[0], lo, hi


@njit(cache=True)
def surface_width(height: np.ndarray, average: float) -> float:
    """RMS deviation of the column heights from ``average``."""
    acc = 0.0
    for i in range(height.shape[0]):
        d = height[i] - average
        acc += d * d
    return np.sqrt(acc / height.shape[0])


###############################################################################
# Lattice
###############################################################################


class RollingLattice:
    """
    Occupancy grid of width ``L`` addressed modulo ``dH`` rows.

    Also carries ``height``, the logical top row of each column, and
    ``filled``, whether a column holds any particle. Only the deposition
    engine writes to ``height``; placement rules read both.

    Recycling may clear the bits under the top of a lagging column; test
    column tops with :meth:`is_top`.
    """

    def __init__(self, L: int, H: int, dH: int) -> None:
        if L <= 0:
            raise ValueError(f"L must be positive, got {L}")
        if dH <= 0 or dH > H:
            raise ValueError(f"dH must satisfy 0 < dH <= H, got dH={dH}, H={H}")
        if dH % 2:
            raise ValueError(f"dH must be even so the slot splits in halves, got {dH}")

        self.L = int(L)
        self.H = int(H)
        self.dH = int(dH)
        self.half = self.dH // 2

        self.bits = np.zeros((self.dH, (self.L + 7) // 8), dtype=np.uint8)
        self.height = np.zeros(self.L, dtype=np.int64)
        self.filled = np.zeros(self.L, dtype=np.bool_)

        self.bottom_cleared = False
        self.top_cleared = False

    # ------------------------------------------------------------------ bits
    def _check(self, x: int, y: int) -> None:
        if x < 0 or x >= self.L:
            raise OutOfRangeError(f"column {x} outside [0, {self.L})")
        if y < 0:
            raise OutOfRangeError(f"row {y} is negative")

    def is_occupied(self, x: int, y: int) -> bool:
        self._check(x, y)
        return bool(_get_bit(self.bits, y % self.dH, x))

    def occupy(self, x: int, y: int) -> None:
        """
        Mark ``(x, y)`` occupied.

        ``y >= H`` is not rejected here: running past the logical height is
        a stopping condition for the caller, not a lattice fault.
        """
        self._check(x, y)
        _set_bit(self.bits, y % self.dH, x)
        self.filled[x] = True

    def is_valid(self, x: int, y: int) -> bool:
        return 0 <= x < self.L and 0 <= y < self.H

    def is_top(self, x: int, y: int) -> bool:
        """True if column ``x`` holds a particle and its top is row ``y``."""
        return bool(self.filled[x]) and int(self.height[x]) == y

    # ------------------------------------------------------------ recycling
    def recycle(self, new_max_y: int) -> None:
        """
        Clear the half of the slot the growth front is entering.

        Called once per deposit with the row just chosen. Entering row 0 of
        the slot clears the bottom half; entering row ``dH/2`` clears the
        top half. The flags make each clear fire once per crossing.
        """
        if new_max_y < 0:
            raise OutOfRangeError(f"row {new_max_y} is negative")
        if not self.bottom_cleared and new_max_y % self.dH == 0:
            _clear_rows(self.bits, 0, self.half)
            self.bottom_cleared = True
            self.top_cleared = False
        elif (
            not self.top_cleared
            and new_max_y % self.half == 0
            and new_max_y % self.dH != 0
        ):
            _clear_rows(self.bits, self.half, self.dH)
            self.top_cleared = True
            self.bottom_cleared = False

    # -------------------------------------------------------------- heights
    def local_max_height(self, lo: int, hi: int) -> int:
        """
        Largest column height over ``[lo, hi]``, clamped to the lattice.

        Returns -1 for an empty range.
        """
        if hi < lo:
            return -1
        lo = max(0, lo)
        hi = min(self.L - 1, hi)
        if hi < lo:
            return -1
        return int(_range_max(self.height, lo, hi))

    def stats(self) -> Tuple[float, int, int]:
        avg, lo, hi = height_stats(self.height)
        return float(avg), int(lo), int(hi)

    def width(self, average: float) -> float:
        return float(surface_width(self.height, average))

    # ------------------------------------------------------------- utilities
    def window(self) -> np.ndarray:
        """Unpacked ``(dH, L)`` boolean copy of the physical slot."""
        return np.unpackbits(self.bits, axis=1)[:, : self.L].astype(bool)

    def reset(self) -> None:
        self.bits.fill(0)
        self.height.fill(0)
        self.filled.fill(False)
        self.bottom_cleared = False
        self.top_cleared = False


__all__ = ["RollingLattice", "height_stats", "surface_width"]

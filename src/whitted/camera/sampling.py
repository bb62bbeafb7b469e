"""Sub-pixel sampling strategies.

A strategy is a fixed list of (ox, oy) offsets inside the unit pixel square.
The renderer traces one ray per offset for every pixel and averages the
results, so a ``Grid(n)`` render costs n * n times a ``Single`` render.

Example:
    >>> from src.whitted.camera.sampling import Grid
    >>> Grid(2).offsets()
    [(0.25, 0.25), (0.25, 0.75), (0.75, 0.25), (0.75, 0.75)]
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import taichi as ti

# Largest grid resolution per axis
MAX_GRID = 16
MAX_SAMPLES = MAX_GRID * MAX_GRID


@dataclass(frozen=True)
class Single:
    """One ray through the pixel centre."""

    def offsets(self) -> list[tuple[float, float]]:
        return [(0.5, 0.5)]


@dataclass(frozen=True)
class Grid:
    """Regular n x n grid of rays through cell centres.

    Attributes:
        n: Samples per axis.

    Raises:
        ValueError: If n is outside [1, MAX_GRID].
    """

    n: int

    def __post_init__(self) -> None:
        if not 1 <= self.n <= MAX_GRID:
            raise ValueError(f"Grid size must be in [1, {MAX_GRID}], got {self.n}")

    def offsets(self) -> list[tuple[float, float]]:
        step = 1.0 / self.n
        return [((i + 0.5) * step, (j + 0.5) * step) for i in range(self.n) for j in range(self.n)]


Sampling = Single | Grid

sample_offset = ti.Vector.field(2, dtype=ti.f32, shape=MAX_SAMPLES)


def upload_offsets(sampling: Sampling) -> int:
    """Upload a strategy's offsets and return how many there are."""
    offsets = sampling.offsets()
    data = np.zeros((MAX_SAMPLES, 2), dtype=np.float32)
    data[: len(offsets)] = offsets
    sample_offset.from_numpy(data)
    return len(offsets)

"""Rendered image buffer."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt


@dataclass
class Canvas:
    """A rendered image in linear, unclamped RGB.

    Attributes:
        pixels: Array of shape (height, width, 3), float32, row 0 at the top.
    """

    pixels: npt.NDArray[np.float32]

    @classmethod
    def blank(cls, width: int, height: int) -> Canvas:
        return cls(np.zeros((height, width, 3), dtype=np.float32))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def pixel_at(self, x: int, y: int) -> tuple[float, float, float]:
        """Colour of pixel column x, row y."""
        r, g, b = self.pixels[y, x]
        return (float(r), float(g), float(b))

"""
Height field value type and bilinear sampling.

A height field is a dense float32 grid of elevations in meters. Row 0 is the
northern edge of the raster it was decoded from and column 0 the western edge.
"""

from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np

ArrayLike = Union[float, np.ndarray]


@dataclass(frozen=True, eq=False)
class HeightField:
    """Elevation grid of shape (height, width) in meters."""

    values: np.ndarray

    def __post_init__(self):
        values = np.asarray(self.values, dtype=np.float32)
        if values.ndim != 2 or values.size == 0:
            raise ValueError(f"Height field must be a non-empty 2D array, got shape {values.shape}")
        if np.isnan(values).any():
            raise ValueError("Height field contains NaN values")
        object.__setattr__(self, "values", values)

    @property
    def width(self) -> int:
        return self.values.shape[1]

    @property
    def height(self) -> int:
        return self.values.shape[0]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.values.shape

    def min_max(self) -> Tuple[float, float]:
        """Minimum and maximum elevation."""
        return float(self.values.min()), float(self.values.max())

    def flat(self) -> np.ndarray:
        """Row-major 1D view of the elevations."""
        return self.values.reshape(-1)

    def sample_bilinear(self, u: ArrayLike, v: ArrayLike) -> ArrayLike:
        """
        Sample elevations at normalized raster coordinates.

        (u, v) in [0, 1] map to raster coordinates (u * (W - 1), v * (H - 1)),
        with v = 0 on the first (northern) row. The four surrounding pixels are
        interpolated along x first, then along y.

        Args:
            u: Horizontal coordinate(s), 0 = west edge, 1 = east edge
            v: Vertical coordinate(s), 0 = north edge, 1 = south edge

        Returns:
            float or numpy.ndarray: Interpolated elevation(s) in meters
        """
        scalar = np.ndim(u) == 0 and np.ndim(v) == 0
        width, height = self.width, self.height

        x = np.asarray(u, dtype=np.float64) * (width - 1)
        y = np.asarray(v, dtype=np.float64) * (height - 1)

        x0 = np.clip(np.floor(x), 0, width - 1).astype(np.intp)
        y0 = np.clip(np.floor(y), 0, height - 1).astype(np.intp)
        x1 = np.minimum(x0 + 1, width - 1)
        y1 = np.minimum(y0 + 1, height - 1)

        fx = x - x0
        fy = y - y0

        grid = self.values
        h00 = grid[y0, x0].astype(np.float64)
        h10 = grid[y0, x1].astype(np.float64)
        h01 = grid[y1, x0].astype(np.float64)
        h11 = grid[y1, x1].astype(np.float64)

        h0 = h00 * (1 - fx) + h10 * fx
        h1 = h01 * (1 - fx) + h11 * fx
        result = h0 * (1 - fy) + h1 * fy

        if scalar:
            return float(result)
        return result

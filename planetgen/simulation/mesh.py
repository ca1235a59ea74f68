"""
Planet Generator - Mesh Arrays
Vectorized view of the tile mesh shared by the climate simulators.
"""

from dataclasses import dataclass
from typing import List

import numpy as np

from planetgen.config import WATER_SURFACE_TYPES
from planetgen.models.tile import Tile
from planetgen.utils.spatial import (
    lat_lon_to_unit,
    max_slope,
    neighbor_directions,
    neighbor_matrix,
)


@dataclass
class MeshArrays:
    """Geometry and neighbor layout of a tile list as numpy arrays."""

    lat: np.ndarray
    lon: np.ndarray
    points: np.ndarray
    indices: np.ndarray
    """(N, 6) neighbor ids, padded with the tile's own id"""

    mask: np.ndarray
    """(N, 6) True where ``indices`` holds a real neighbor"""

    dir_east: np.ndarray
    dir_north: np.ndarray

    @classmethod
    def from_tiles(cls, tiles: List[Tile]) -> "MeshArrays":
        lat = np.array([t.lat for t in tiles], dtype=np.float64)
        lon = np.array([t.lon for t in tiles], dtype=np.float64)
        points = lat_lon_to_unit(lat, lon)
        indices, mask = neighbor_matrix([t.neighbors for t in tiles])
        dir_east, dir_north = neighbor_directions(points, lat, lon, indices)
        dir_east = np.where(mask, dir_east, 0.0)
        dir_north = np.where(mask, dir_north, 0.0)
        return cls(lat, lon, points, indices, mask, dir_east, dir_north)

    @property
    def size(self) -> int:
        return len(self.lat)

    @property
    def neighbor_count(self) -> np.ndarray:
        return self.mask.sum(axis=1)

    def neighbor_mean(self, values: np.ndarray) -> np.ndarray:
        """Mean over real neighbors; tiles without neighbors get their own value."""
        gathered = np.where(self.mask, values[self.indices], 0.0).sum(axis=1)
        count = self.neighbor_count
        return np.where(count > 0, gathered / np.maximum(count, 1), values)

    def gradient(self, values: np.ndarray) -> np.ndarray:
        """
        Direction of increase of a scalar field in the local tangent plane.

        Returns:
            (N, 2) east/north components, in value units per neighbor hop
        """
        diff = np.where(self.mask, values[self.indices] - values[:, None], 0.0)
        count = np.maximum(self.neighbor_count, 1)
        gx = (diff * self.dir_east).sum(axis=1) / count
        gy = (diff * self.dir_north).sum(axis=1) / count
        return np.column_stack((gx, gy))

    def slope(self, elevation: np.ndarray) -> np.ndarray:
        return max_slope(elevation, self.indices, self.mask).astype(np.float64)


def tile_arrays(tiles: List[Tile]):
    """Elevation, temperature, pressure and water-surface mask as arrays."""
    elevation = np.array([t.elevation for t in tiles], dtype=np.float64)
    temperature = np.array([t.temperature for t in tiles], dtype=np.float64)
    pressure = np.array([t.pressure for t in tiles], dtype=np.float64)
    water = np.array([t.surface_type in WATER_SURFACE_TYPES for t in tiles], dtype=bool)
    return elevation, temperature, pressure, water

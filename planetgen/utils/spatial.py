"""
Planet Generator - Spatial Utilities
Spherical geometry and neighbor-graph helpers for the tile mesh.
"""

from typing import List, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree


def lat_lon_to_unit(lat: np.ndarray, lon: np.ndarray) -> np.ndarray:
    """
    Convert latitude/longitude in degrees to unit vectors.

    Returns:
        (N, 3) array
    """
    lat_r = np.radians(np.asarray(lat, dtype=np.float64))
    lon_r = np.radians(np.asarray(lon, dtype=np.float64))
    cos_lat = np.cos(lat_r)
    return np.column_stack((cos_lat * np.cos(lon_r), cos_lat * np.sin(lon_r), np.sin(lat_r)))


def unit_to_lat_lon(points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Inverse of lat_lon_to_unit; input need not be normalized."""
    points = np.asarray(points, dtype=np.float64)
    norm = np.linalg.norm(points, axis=1)
    z = np.clip(points[:, 2] / norm, -1.0, 1.0)
    lat = np.degrees(np.arcsin(z))
    lon = np.degrees(np.arctan2(points[:, 1], points[:, 0]))
    return lat, lon


def angular_distance_deg(lat1, lon1, lat2, lon2):
    """Great-circle distance in degrees (haversine). Works on scalars and arrays."""
    lat1_r, lat2_r = np.radians(lat1), np.radians(lat2)
    d_lat = lat2_r - lat1_r
    d_lon = np.radians(np.asarray(lon2) - np.asarray(lon1))
    a = np.sin(d_lat / 2) ** 2 + np.cos(lat1_r) * np.cos(lat2_r) * np.sin(d_lon / 2) ** 2
    return np.degrees(2.0 * np.arctan2(np.sqrt(a), np.sqrt(np.maximum(0.0, 1.0 - a))))


def k_nearest(points: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    k nearest other points for every point.

    Args:
        points: (N, 3) coordinates
        k: Number of neighbors per point

    Returns:
        (distances, indices), both (N, k), nearest first
    """
    tree = cKDTree(points)
    distances, indices = tree.query(points, k=k + 1)
    # Column 0 is the point itself
    return distances[:, 1:], indices[:, 1:]


def neighbor_matrix(neighbors: Sequence[Sequence[int]], width: int = 6) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pack ragged neighbor lists into a padded index matrix.

    Padding slots point at the tile itself and are False in the mask, so
    gathers stay in bounds and masked reductions ignore them.

    Returns:
        (indices, mask), both (N, width)
    """
    n = len(neighbors)
    indices = np.repeat(np.arange(n)[:, None], width, axis=1)
    mask = np.zeros((n, width), dtype=bool)
    for i, nbrs in enumerate(neighbors):
        count = min(len(nbrs), width)
        indices[i, :count] = nbrs[:count]
        mask[i, :count] = True
    return indices, mask


def local_frames(lat: np.ndarray, lon: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Unit east and north tangent vectors at each point, (N, 3) each."""
    lat_r = np.radians(lat)
    lon_r = np.radians(lon)
    east = np.column_stack((-np.sin(lon_r), np.cos(lon_r), np.zeros_like(lon_r)))
    north = np.column_stack((
        -np.sin(lat_r) * np.cos(lon_r),
        -np.sin(lat_r) * np.sin(lon_r),
        np.cos(lat_r),
    ))
    return east, north


def neighbor_directions(points: np.ndarray, lat: np.ndarray, lon: np.ndarray,
                        indices: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Direction from each tile to each of its neighbors in the local tangent plane.

    Returns:
        (dir_east, dir_north), both (N, width), unit length (0 for padding)
    """
    east, north = local_frames(lat, lon)
    delta = points[indices] - points[:, None, :]
    dx = np.einsum("nkc,nc->nk", delta, east)
    dy = np.einsum("nkc,nc->nk", delta, north)
    length = np.hypot(dx, dy)
    safe = np.where(length > 1e-12, length, 1.0)
    return np.where(length > 1e-12, dx / safe, 0.0), np.where(length > 1e-12, dy / safe, 0.0)


def max_slope(elevation: np.ndarray, indices: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Largest absolute elevation difference to any neighbor."""
    diff = np.abs(elevation[indices] - elevation[:, None])
    return np.where(mask, diff, 0).max(axis=1)


def percentile_sorted(sorted_values: List[float], p: float) -> float:
    """Nearest-rank percentile of an already sorted list (0 when empty)."""
    if not sorted_values:
        return 0
    idx = int(round((len(sorted_values) - 1) * p))
    idx = max(0, min(len(sorted_values) - 1, idx))
    return sorted_values[idx]

"""
Planet Generator - Climate Sampler
Derives the annual summary fields (extremes, averages, gusts, sunny days)
from the fields the climate and wind models left on the tiles.
"""

from typing import List, Tuple

import numpy as np

from planetgen.config import LIQUID_WATER_TYPES, SurfaceType, PlanetConfig
from planetgen.models.tile import Tile
from planetgen.simulation.mesh import MeshArrays

# The sampler counts steam seas as open water, unlike the liquid-water predicate
_EVAPORATING_SURFACES = LIQUID_WATER_TYPES | {SurfaceType.STEAM_SEA}

DAYS_PER_YEAR = 365


def _clamp(values, low, high):
    return np.clip(values, low, high)


def orographic_factors(
    mesh: MeshArrays,
    elevation: np.ndarray,
    wind_x: np.ndarray,
    wind_y: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Relief seen along the wind direction.

    Returns:
        (windward, leeward, shadow), each clamped to 0..1.5. ``windward`` is
        rising ground downwind, ``leeward`` rising ground upwind and
        ``shadow`` the tallest upwind barrier within two hops.
    """
    magnitude = np.hypot(wind_x, wind_y)
    moving = magnitude > 1e-6
    safe = np.where(moving, magnitude, 1.0)
    wx = np.where(moving, wind_x / safe, 0.0)
    wy = np.where(moving, wind_y / safe, 0.0)

    dot = wx[:, None] * mesh.dir_east + wy[:, None] * mesh.dir_north
    diff = elevation[mesh.indices] - elevation[:, None]
    rising = mesh.mask & (diff > 0)

    windward = np.where(rising & (dot > 0.2), diff / 10.0, 0.0).max(axis=1)
    upwind = mesh.mask & (dot < -0.2)
    leeward = np.where(rising & upwind, diff / 10.0, 0.0).max(axis=1)

    # Second hop: upwind neighbors of upwind neighbors, measured against this tile
    second = mesh.indices[mesh.indices]                      # (N, 6, 6)
    second_mask = mesh.mask[mesh.indices] & upwind[:, :, None]
    second_dot = (
        wx[:, None, None] * mesh.dir_east[mesh.indices]
        + wy[:, None, None] * mesh.dir_north[mesh.indices]
    )
    second_diff = elevation[second] - elevation[:, None, None]
    second_hit = second_mask & (second_dot < -0.2) & (second_diff > 0)
    decay = 1.0 / (1.0 + 0.5)
    shadow_far = np.where(second_hit, second_diff / 10.0 * decay, 0.0).max(axis=(1, 2))
    shadow = np.maximum(leeward, shadow_far)

    windward = np.where(moving, windward, 0.0)
    leeward = np.where(moving, leeward, 0.0)
    shadow = np.where(moving, shadow, 0.0)
    return _clamp(windward, 0.0, 1.5), _clamp(leeward, 0.0, 1.5), _clamp(shadow, 0.0, 1.5)


class ClimateSampler:
    """Fills temp_min/max, wind_avg/max, precip_avg, evap_avg and sunny_days."""

    @staticmethod
    def sample(tiles: List[Tile], planet: PlanetConfig) -> None:
        if not tiles:
            return
        mesh = MeshArrays.from_tiles(tiles)
        elevation = np.array([t.elevation for t in tiles], dtype=np.float64)
        temperature = np.array([t.temperature for t in tiles], dtype=np.float64)
        wind_x = np.array([t.wind_x for t in tiles], dtype=np.float64)
        wind_y = np.array([t.wind_y for t in tiles], dtype=np.float64)

        wind_max = _estimate_wind_max(mesh, elevation, temperature, wind_x, wind_y)
        windward, leeward, shadow = orographic_factors(mesh, elevation, wind_x, wind_y)

        for i, t in enumerate(tiles):
            # Keep a diurnal range left by the wind model; otherwise a single value
            t.temp_min = float(t.temperature) if t.temp_min is None else min(t.temp_min, t.temperature)
            t.temp_max = float(t.temperature) if t.temp_max is None else max(t.temp_max, t.temperature)
            t.wind_avg = t.wind_magnitude
            t.wind_max = float(wind_max[i])

            precip = _derive_precip(t, windward[i], leeward[i], shadow[i])
            t.precip_avg = precip
            if t.evap_avg is None:
                t.evap_avg = _estimate_evap(t, planet)
            t.sunny_days = estimate_sunny_days(precip)


def estimate_sunny_days(precip: float) -> int:
    """Clear days per year from a 0..100 precipitation index."""
    moist = max(0.0, min(100.0, precip))
    return max(0, min(DAYS_PER_YEAR, int(round(DAYS_PER_YEAR * (1.0 - moist / 100.0)))))


def _estimate_wind_max(mesh, elevation, temperature, wind_x, wind_y) -> np.ndarray:
    mean = np.hypot(wind_x, wind_y)
    count = np.maximum(mesh.neighbor_count, 1)

    dvx = wind_x[:, None] - wind_x[mesh.indices]
    dvy = wind_y[:, None] - wind_y[mesh.indices]
    shear = np.where(mesh.mask, np.hypot(dvx, dvy), 0.0).sum(axis=1) / count
    thermal = np.where(mesh.mask, np.abs(temperature[:, None] - temperature[mesh.indices]), 0.0).sum(axis=1) / count
    slope = mesh.slope(elevation)

    gust = (
        1.30
        + 0.30 * _clamp(shear / 12.0, 0.0, 1.0)
        + 0.20 * _clamp(slope / 10.0, 0.0, 1.0)
        + 0.15 * _clamp(thermal / 18.0, 0.0, 1.0)
    )
    gust = _clamp(gust, 1.15, 2.20)
    return np.where(mean > 1e-6, mean * gust, 0.0)


def _derive_precip(t: Tile, windward: float, leeward: float, shadow: float) -> float:
    if t.precip_avg is not None:
        return max(0.0, min(100.0, t.precip_avg))

    moist = t.moisture if t.moisture is not None else 0.0
    temp_factor = max(0.2, min(1.2, (t.temperature + 10.0) / 50.0))
    wind_factor = max(0.6, min(1.4, 0.6 + t.wind_magnitude / 15.0))
    precip = moist * temp_factor * wind_factor
    precip *= 1.0 + 0.35 * windward
    precip *= 1.0 - 0.40 * leeward
    precip *= 1.0 - 0.55 * shadow
    return max(0.0, min(100.0, precip))


def _estimate_evap(t: Tile, planet: PlanetConfig) -> float:
    pressure = max(0.2, planet.atmosphere_density)

    temp_factor = max(0.0, min(2.0, (t.temperature + 10.0) / 45.0))
    wind_factor = max(0.6, min(2.0, 0.6 + t.wind_magnitude / 40.0))
    press_factor = max(0.5, min(1.3, 1.3 - (pressure - 1.0) * 0.4))

    water = t.surface_type in _EVAPORATING_SURFACES
    soil = t.moisture if t.moisture is not None else 40.0
    atm = t.atm_moist if t.atm_moist is not None else 35.0

    # Humid air slows evaporation without stopping it
    humidity_factor = max(0.2, min(1.0, 1.0 - atm / 120.0))
    soil_factor = 1.2 if water else max(0.4, min(1.0, 0.4 + 0.6 * soil / 100.0))

    evap = temp_factor * wind_factor * press_factor * humidity_factor * soil_factor * 25.0
    return max(0.0, min(100.0, evap))

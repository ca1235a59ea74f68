"""
Planet Generator - Climate Model
Surface temperature and pressure from latitude, elevation and volcanism.

Three regimes:
- Rotating planets: zonal gradient around the (seasonally shifted) thermal equator
- Tidally locked planets: day/night gradient around the substellar point
- Airless bodies: radiative extremes and zero pressure
"""

import logging
from typing import List

import numpy as np

from planetgen.config import (
    HEIGHT_LAPSE_RATE,
    KELVIN_OFFSET,
    METERS_PER_ELEVATION_UNIT,
    PRESSURE_PER_ATM,
    PlanetConfig,
)
from planetgen.models.tile import Tile
from planetgen.utils.spatial import angular_distance_deg

logger = logging.getLogger(__name__)

LATITUDE_TEMP_FACTOR = 0.6      # °C per degree of latitude
VOLCANIC_HEAT = 0.03            # °C per volcanism point
PRESSURE_DAMP_K = 0.25          # how strongly a dense atmosphere flattens gradients
TIDAL_DAY_AMPLITUDE = 60.0      # °C between terminator and substellar point
TIDAL_PRESSURE_SWING = 120      # pressure units, cold night side is denser
AIRLESS_TIDAL_AMPLITUDE = 120.0
AIRLESS_LATITUDE_FACTOR = 1.2


def pressure_damp_factor(planet: PlanetConfig) -> float:
    """1.0 at 1 atm, larger below (sharper gradients), smaller above."""
    p = max(0.01, planet.atmosphere_density)
    return 1.0 / (1.0 + PRESSURE_DAMP_K * (p - 1.0))


class ClimateGenerator:
    """Writes ``temperature`` and ``pressure`` on every tile."""

    def generate(self, tiles: List[Tile], planet: PlanetConfig) -> None:
        """Annual climate: thermal equator at latitude 0."""
        self.generate_season(tiles, planet, 0.0)

    def generate_season(self, tiles: List[Tile], planet: PlanetConfig, seasonal_shift_lat: float) -> None:
        """
        Climate with the thermal equator (or substellar point) moved to
        ``seasonal_shift_lat`` degrees.
        """
        if not tiles:
            return
        if not planet.has_atmosphere:
            self._apply_no_atmosphere(tiles, planet, seasonal_shift_lat)
        elif planet.tidal_locked:
            self._apply_tidal_locked(tiles, planet, seasonal_shift_lat)
        else:
            self._apply_rotating(tiles, planet, seasonal_shift_lat)

    # -------------------------------------------------------------------------
    # Regimes
    # -------------------------------------------------------------------------

    def _apply_rotating(self, tiles: List[Tile], planet: PlanetConfig, shift: float) -> None:
        base_c = planet.base_temperature_k(with_greenhouse=True) - KELVIN_OFFSET
        damp = pressure_damp_factor(planet)
        lat, meters, volcanism = _arrays(tiles)

        temp = base_c - np.abs(lat - shift) * LATITUDE_TEMP_FACTOR * damp
        temp -= meters * HEIGHT_LAPSE_RATE
        temp += volcanism * VOLCANIC_HEAT

        base_pressure = int(planet.atmosphere_density * PRESSURE_PER_ATM)
        pressure = np.maximum(0, base_pressure - (meters * 0.12).astype(int))

        _write(tiles, temp, pressure)
        logger.debug("Climate: rotating regime (shift %.1f°)", shift)

    def _apply_tidal_locked(self, tiles: List[Tile], planet: PlanetConfig, shift: float) -> None:
        base_c = planet.base_temperature_k(with_greenhouse=True) - KELVIN_OFFSET
        damp = pressure_damp_factor(planet)
        lat, meters, volcanism = _arrays(tiles)
        lon = np.array([t.lon for t in tiles], dtype=np.float64)

        # cos = 1 at the substellar point, -1 on the antistellar point
        sun_factor = np.cos(np.radians(angular_distance_deg(lat, lon, shift, 0.0)))

        temp = base_c + sun_factor * TIDAL_DAY_AMPLITUDE * damp
        temp -= meters * HEIGHT_LAPSE_RATE
        temp += volcanism * VOLCANIC_HEAT

        base_pressure = int(planet.atmosphere_density * PRESSURE_PER_ATM)
        thermal = (-sun_factor * TIDAL_PRESSURE_SWING).astype(int)
        pressure = np.maximum(0, base_pressure + thermal - (meters * 0.1).astype(int))

        _write(tiles, temp, pressure)
        logger.debug("Climate: tidally locked regime (shift %.1f°)", shift)

    def _apply_no_atmosphere(self, tiles: List[Tile], planet: PlanetConfig, center_lat: float) -> None:
        base_c = planet.base_temperature_k(with_greenhouse=False) - KELVIN_OFFSET
        lat, _, _ = _arrays(tiles)

        if planet.tidal_locked:
            lon = np.array([t.lon for t in tiles], dtype=np.float64)
            dist = angular_distance_deg(lat, lon, center_lat, 0.0)
            temp = base_c + np.cos(np.radians(dist)) * AIRLESS_TIDAL_AMPLITUDE
        else:
            temp = base_c - np.abs(lat - center_lat) * AIRLESS_LATITUDE_FACTOR

        _write(tiles, temp, np.zeros(len(tiles), dtype=int))
        logger.debug("Climate: airless regime")


def _arrays(tiles: List[Tile]):
    lat = np.array([t.lat for t in tiles], dtype=np.float64)
    meters = np.array([t.elevation for t in tiles], dtype=np.float64) * METERS_PER_ELEVATION_UNIT
    volcanism = np.array([t.volcanism for t in tiles], dtype=np.float64)
    return lat, meters, volcanism


def _write(tiles: List[Tile], temp: np.ndarray, pressure: np.ndarray) -> None:
    for t, value, p in zip(tiles, np.rint(temp), pressure):
        t.temperature = int(value)
        t.pressure = int(p)

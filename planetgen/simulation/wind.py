"""
Planet Generator - Wind and Moisture Transport
Surface wind field from the three-cell circulation model, then heat and
moisture transport over the tile mesh.

SCIENTIFIC BASIS:
The atmosphere is organized into three circulation cells per hemisphere:
1. Hadley Cell (0° to ~30°): trade winds blowing toward the thermal equator
2. Ferrel Cell (~30° to ~60°): prevailing westerlies
3. Polar Cell (~60° to 90°): polar easterlies

The cell edges widen with axial tilt and the whole pattern follows the
seasonal shift of the thermal equator (ITCZ). Tidally locked planets get a
night-to-day flow instead.

Outputs (per tile): wind_x/wind_y in m/s, temperature (advected diurnal
mean), temp_min/temp_max (diurnal range), moisture, atm_moist, precip_avg and
evap_avg as 0..100 indices, and precipitation, evaporation and surface runoff
in kg/m²/day.
"""

import logging
import math
from typing import List, Optional

import numpy as np

from planetgen.config import (
    ClimateModelMode,
    PlanetConfig,
    SurfaceType,
    WIND_SEED_OFFSET,
    WaterCoverage,
)
from planetgen.models.tile import Tile
from planetgen.simulation.mesh import MeshArrays, tile_arrays
from planetgen.simulation.sampler import orographic_factors
from planetgen.utils.noise import NoiseGenerator
from planetgen.utils.spatial import local_frames

logger = logging.getLogger(__name__)

WIND_RELAX_ITERS = 28
TEMP_ADVECT_ITERS = 6
WIND_UNIT_TO_MPS = 0.50
MAX_WIND = 55.0
TEMP_MIN = -220.0
TEMP_MAX = 900.0

STEP_HOURS = 6
SPINUP_DAYS = 6
GRAVITY = 9.81
SOIL_PER_MM = 1.8
PRECIP_INDEX_PER_KG = 8.0  # 12.5 kg/m²/day saturates the 0..100 index
EVAP_INDEX_PER_KG = 8.0

_OPEN_WATER = frozenset({
    SurfaceType.OCEAN,
    SurfaceType.OPEN_WATER_SHALLOW,
    SurfaceType.OPEN_WATER_DEEP,
    SurfaceType.STEAM_SEA,
    SurfaceType.SHALLOW_SEA,
})
_LAKES = frozenset({
    SurfaceType.LAKE_FRESH,
    SurfaceType.LAKE_SALT,
    SurfaceType.LAKE_BRINE,
    SurfaceType.LAKE_ACID,
})
_FROZEN_WATER = frozenset({
    SurfaceType.ICE_OCEAN,
    SurfaceType.SEA_ICE_SHALLOW,
    SurfaceType.SEA_ICE_DEEP,
})
_WETLANDS = frozenset({SurfaceType.SWAMP, SurfaceType.MUD_SWAMP, SurfaceType.BASIN_SWAMP})
_FORESTS = frozenset({
    SurfaceType.FOREST,
    SurfaceType.PLAINS_FOREST,
    SurfaceType.RAINFOREST,
    SurfaceType.HILLS_FOREST,
    SurfaceType.HILLS_RAINFOREST,
    SurfaceType.MOUNTAINS_FOREST,
    SurfaceType.MOUNTAINS_RAINFOREST,
    SurfaceType.BASIN_FOREST,
})

_SURFACE_DRAG = {
    SurfaceType.OCEAN: 0.07,
    SurfaceType.OPEN_WATER_SHALLOW: 0.07,
    SurfaceType.OPEN_WATER_DEEP: 0.07,
    SurfaceType.ICE_OCEAN: 0.10,
    SurfaceType.SEA_ICE_SHALLOW: 0.10,
    SurfaceType.SEA_ICE_DEEP: 0.10,
    SurfaceType.ICE: 0.10,
    SurfaceType.GLACIER: 0.10,
    SurfaceType.PLAINS: 0.12,
    SurfaceType.PLAINS_GRASS: 0.12,
    SurfaceType.GRASSLAND: 0.12,
    SurfaceType.SAVANNA: 0.12,
    SurfaceType.DRY_SAVANNA: 0.12,
    SurfaceType.HILLS: 0.16,
    SurfaceType.HILLS_GRASS: 0.16,
    SurfaceType.HILLS_SAVANNA: 0.16,
    SurfaceType.HILLS_DRY_SAVANNA: 0.16,
    SurfaceType.MOUNTAINS: 0.22,
    SurfaceType.HIGH_MOUNTAINS: 0.22,
    SurfaceType.MOUNTAINS_SNOW: 0.22,
    SurfaceType.RIDGE: 0.22,
    SurfaceType.RIDGE_ROCK: 0.22,
    SurfaceType.RIDGE_SNOW: 0.22,
}
_DEFAULT_DRAG = 0.14
_FOREST_DRAG = 0.18


def _gaussian(x, mu, sigma):
    d = (x - mu) / sigma
    return np.exp(-0.5 * d * d)


def _smooth_step(edge0, edge1, x):
    t = np.clip((x - edge0) / max(1e-9, edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def saturation_specific_humidity(temp_c: np.ndarray, pressure: np.ndarray) -> np.ndarray:
    """
    Saturation specific humidity in g/kg (Magnus formula).

    Args:
        temp_c: Air temperature in °C
        pressure: Surface pressure in model units (1000 = 1 atm)
    """
    t = np.clip(temp_c, -100.0, 100.0)
    es = 0.6112 * np.exp(17.67 * t / (t + 243.5))                 # kPa
    p_kpa = pressure / 1000.0 * 101.325
    safe = np.maximum(p_kpa - 0.378 * es, 1e-3)
    q = np.where(p_kpa > 0.0, 622.0 * es / safe, 0.0)
    return np.minimum(q, 999.0)


def moisture_layer_pressure_pa(pressure: np.ndarray) -> np.ndarray:
    """Pressure depth of the moist boundary layer in Pa."""
    return np.maximum(0.0, pressure / 1000.0 * 101_325.0 * 0.35)


class WindGenerator:
    """
    Wind, heat transport and moisture cycle over the tile mesh.

    ``alpha`` scales pressure-gradient forcing, ``beta`` thermal-gradient
    forcing and ``gamma`` how strongly wind advects temperature.
    """

    def __init__(self, alpha: float = 0.6, beta: float = 0.3, gamma: float = 0.25):
        self.alpha = alpha
        self.beta = beta
        self.gamma = gamma

    def generate(
        self,
        tiles: List[Tile],
        planet: PlanetConfig,
        seasonal_shift_lat: float = 0.0,
        seed: int = 0,
        mode: Optional[ClimateModelMode] = None
    ) -> None:
        """
        Run the full wind and moisture model.

        Args:
            tiles: Tiles with neighbors, temperature and pressure
            planet: Planet configuration
            seasonal_shift_lat: Latitude of the thermal equator (ITCZ)
            seed: Base seed; the perturbation field uses seed + WIND_SEED_OFFSET
            mode: ENHANCED adds orographic and coastal heuristics
        """
        if not tiles:
            return
        mode = mode or ClimateModelMode.ENHANCED
        mesh = MeshArrays.from_tiles(tiles)
        elevation, temperature, pressure, water = tile_arrays(tiles)

        if not planet.has_atmosphere:
            self._write_airless(tiles)
            logger.debug("Wind: no atmosphere, fields zeroed")
            return

        shift = float(np.clip(seasonal_shift_lat, -90.0, 90.0))
        tilt_abs = abs(planet.clamped_tilt())
        hadley_edge = 30.0 + min(10.0, tilt_abs * 0.2)
        ferrel_edge = 60.0 + min(8.0, tilt_abs * 0.15)

        atm = float(np.clip(planet.atmosphere_density, 0.05, 5.0))
        atm_base_scale = float(np.clip(0.78 + 0.28 * math.sqrt(atm), 0.60, 1.35))
        rot_hours = planet.rotation_period_hours if planet.rotation_period_hours > 0 else 24.0
        rot_factor = float(np.clip(24.0 / rot_hours, 0.25, 4.0))
        prograde = 1.0 if planet.rotation_prograde else -1.0
        rng = np.random.default_rng(seed + WIND_SEED_OFFSET)

        # STEP 1: initial field from circulation cells
        if planet.tidal_locked:
            vx, vy = self._tidal_base_wind(mesh, shift, rot_factor, atm_base_scale)
        else:
            jitter = NoiseGenerator(seed + WIND_SEED_OFFSET, octaves=3, scale=2.0).sample_points(mesh.points)
            vx, vy = self._belt_base_wind(
                mesh, shift, hadley_edge, ferrel_edge, rot_factor, prograde, atm_base_scale, jitter
            )

        # STEP 2: first-order forcing and orographic damping
        hop_km = self._hop_km(mesh, planet.radius_km)
        grad_p = self._pressure_push(mesh, pressure, hop_km)
        grad_t = -mesh.gradient(temperature)
        vx += grad_p[:, 0] * self.alpha * 3.0 + grad_t[:, 0] * self.beta * 1.2
        vy += grad_p[:, 1] * self.alpha * 3.0 + grad_t[:, 1] * self.beta * 1.2

        slope = mesh.slope(elevation)
        relief = 1.0 / (1.0 + 0.04 * slope + 0.006 * np.maximum(0.0, elevation))
        vx, vy = _limit(vx * relief, vy * relief, MAX_WIND)

        # STEP 3: relaxation with neighbor coupling and Coriolis deflection
        vx, vy = self._relax(
            mesh, tiles, planet, vx, vy, pressure, temperature, elevation, slope,
            hop_km, rot_factor, rot_hours, prograde, atm, rng
        )

        # STEP 4: heat and moisture transport
        self._initialize_moisture(tiles, planet, water, mesh)
        temperature = self._advect_temperature(mesh, temperature, vx, vy, hop_km)
        self._moisture_cycle(tiles, planet, mesh, mode, temperature, pressure, water, elevation, slope, vx, vy, hop_km, shift, ferrel_edge)

        for t, wx, wy in zip(tiles, vx * WIND_UNIT_TO_MPS, vy * WIND_UNIT_TO_MPS):
            t.wind_x = float(wx)
            t.wind_y = float(wy)

        logger.debug(
            "Wind: %s mode, shift %.1f°, mean speed %.2f m/s",
            mode.value, shift, float(np.mean(np.hypot(vx, vy)) * WIND_UNIT_TO_MPS)
        )

    # -------------------------------------------------------------------------
    # Initial field
    # -------------------------------------------------------------------------

    @staticmethod
    def _belt_components(lat, hadley_edge, ferrel_edge, prograde):
        lat_abs = np.abs(lat)
        sign = np.sign(lat)
        zonal = np.where(
            lat_abs < hadley_edge,
            -prograde * (0.60 + 0.40 * (lat_abs / hadley_edge)),
            np.where(lat_abs < ferrel_edge, prograde * 0.82, -prograde * 0.68),
        )
        merid = np.where(
            lat_abs < hadley_edge,
            -sign * 0.58,
            np.where(lat_abs < ferrel_edge, sign * 0.42, -sign * 0.46),
        )
        return zonal, merid

    def _belt_base_wind(self, mesh, shift, hadley_edge, ferrel_edge, rot_factor, prograde, atm_base_scale, jitter):
        lat_eff = mesh.lat - shift
        lat_abs = np.abs(lat_eff)
        lat_geo_abs = np.abs(mesh.lat)

        # Seasonal runs blend the shifted belts with the equinox structure
        blend = 0.6 if shift != 0.0 else 0.0
        season_zonal, season_merid = self._belt_components(lat_eff, hadley_edge, ferrel_edge, prograde)
        neutral_zonal, neutral_merid = self._belt_components(mesh.lat, hadley_edge, ferrel_edge, prograde)
        zonal = neutral_zonal * (1.0 - blend) + season_zonal * blend
        merid = neutral_merid * (1.0 - blend) + season_merid * blend

        jitter_scale = 1.0 - 0.45 * blend
        zonal = zonal + jitter * 0.12 * jitter_scale
        merid = merid + jitter * 0.10 * jitter_scale

        # Tropical and mid-latitude flow is mostly zonal
        merid = merid * (0.28 + 0.72 * _smooth_step(10.0, 20.0, lat_geo_abs))
        merid = merid * (1.0 - 0.80 * _smooth_step(35.0, 55.0, lat_abs))
        zonal = zonal * (1.0 + 0.50 * _gaussian(lat_abs, 48.0, 13.0) + 0.18 * _gaussian(lat_abs, 64.0, 10.0))

        base = 11.0 * rot_factor
        zonal_bias = float(np.clip(0.75 + 0.25 * rot_factor, 0.6, 1.7))
        merid_damp = float(np.clip(1.0 / (1.0 + 0.65 * rot_factor), 0.30, 1.0))
        jet = _gaussian(lat_abs, ferrel_edge, 6.0)
        doldrum = 1.0 - np.clip((7.0 - lat_abs) / 7.0, 0.0, 1.0)

        vx = zonal * base * zonal_bias * doldrum * (1.0 + 0.95 * jet) * atm_base_scale
        vy = merid * base * merid_damp * (1.0 - 0.22 * jet) * atm_base_scale
        return vx, vy

    @staticmethod
    def _tidal_base_wind(mesh, shift, rot_factor, atm_base_scale):
        # Net transport from the night side toward the substellar point
        sub = np.array([math.cos(math.radians(shift)), 0.0, math.sin(math.radians(shift))])
        east, north = local_frames(mesh.lat, mesh.lon)
        delta = sub[None, :] - mesh.points
        dx = np.einsum("nc,nc->n", delta, east)
        dy = np.einsum("nc,nc->n", delta, north)
        length = np.hypot(dx, dy)
        safe = np.where(length > 1e-9, length, 1.0)
        dx = np.where(length > 1e-9, dx / safe, 0.0)
        dy = np.where(length > 1e-9, dy / safe, 0.0)

        cos_ang = np.clip(mesh.points @ sub, -1.0, 1.0)
        terminator = np.sin(np.arccos(cos_ang))
        base = (4.0 + 9.0 * terminator) * rot_factor * atm_base_scale
        return dx * base, dy * base

    # -------------------------------------------------------------------------
    # Forcing and relaxation
    # -------------------------------------------------------------------------

    @staticmethod
    def _hop_km(mesh: MeshArrays, radius_km: float) -> np.ndarray:
        """Distance to each neighbor in km, (N, 6)."""
        chord = np.linalg.norm(mesh.points[mesh.indices] - mesh.points[:, None, :], axis=2)
        return np.where(mesh.mask, chord * radius_km, 0.0)

    @staticmethod
    def _pressure_push(mesh: MeshArrays, pressure: np.ndarray, hop_km: np.ndarray) -> np.ndarray:
        """Acceleration toward lower-pressure neighbors."""
        dp = np.where(mesh.mask, pressure[:, None] - pressure[mesh.indices], 0.0)
        weight = 1.0 / np.maximum(30.0, hop_km)
        count = np.maximum(mesh.neighbor_count, 1)
        gx = (mesh.dir_east * dp * weight).sum(axis=1) / count
        gy = (mesh.dir_north * dp * weight).sum(axis=1) / count
        return np.column_stack((gx, gy))

    def _relax(self, mesh, tiles, planet, vx, vy, pressure, temperature, elevation, slope,
               hop_km, rot_factor, rot_hours, prograde, atm, rng):
        atm_force = float(np.clip(0.74 + 0.36 * math.sqrt(atm), 0.55, 1.55))
        atm_thermal = float(np.clip(1.12 / math.sqrt(atm), 0.55, 2.25))
        atm_drag = float(np.clip(0.72 + 0.36 * atm, 0.55, 2.35))
        atm_turb = float(np.clip(1.18 / math.sqrt(atm), 0.55, 2.60))

        smooth = 0.36 if planet.tidal_locked else 0.33
        force_p = 0.026 * (0.55 + rot_factor * 0.40) * atm_force
        force_t = 0.022 * atm_thermal

        angular_speed = 0.0 if planet.tidal_locked else 2.0 * math.pi / (rot_hours * 3600.0)
        coriolis = 2.0 * angular_speed * np.sin(np.radians(mesh.lat)) * prograde * 220.0

        roughness = np.array([_drag(t.surface_type) for t in tiles])
        relief_drag = np.clip(
            (roughness + 0.008 * slope + 0.0008 * np.maximum(0.0, elevation)) * atm_drag, 0.05, 0.58
        )
        barrier = 1.0 / (1.0 + 0.010 * np.maximum(0.0, elevation))
        q_drag = 0.010 + 0.0008 * slope
        turb_scale = (0.22 + 0.015 * slope) * atm_turb

        grad_p = self._pressure_push(mesh, pressure, hop_km)
        grad_t = -mesh.gradient(temperature)
        has_neighbors = mesh.neighbor_count > 0

        for _ in range(WIND_RELAX_ITERS):
            avg_x = mesh.neighbor_mean(vx)
            avg_y = mesh.neighbor_mean(vy)
            turb = rng.uniform(-1.0, 1.0, size=(mesh.size, 2))

            tx = (vx * (1.0 - relief_drag) + avg_x * smooth + grad_p[:, 0] * force_p
                  + grad_t[:, 0] * force_t - coriolis * vy + turb[:, 0] * turb_scale)
            ty = (vy * (1.0 - relief_drag) + avg_y * smooth + grad_p[:, 1] * force_p
                  + grad_t[:, 1] * force_t + coriolis * vx + turb[:, 1] * turb_scale)

            tx *= barrier
            ty *= barrier
            magnitude = np.hypot(tx, ty)
            tx /= 1.0 + q_drag * magnitude
            ty /= 1.0 + q_drag * magnitude
            tx, ty = _limit(tx, ty, MAX_WIND)

            # Isolated tiles keep their initial wind
            vx = np.where(has_neighbors, tx, vx)
            vy = np.where(has_neighbors, ty, vy)
        return vx, vy

    # -------------------------------------------------------------------------
    # Heat and moisture
    # -------------------------------------------------------------------------

    @staticmethod
    def _initialize_moisture(tiles, planet, water, mesh) -> None:
        land_rh = {
            WaterCoverage.DRY: 0.06,
            WaterCoverage.LAKES: 0.10,
            WaterCoverage.SEAS: 0.16,
            WaterCoverage.OCEAN: 0.24,
        }.get(planet.water_coverage, 0.32)
        if not planet.has_life:
            land_rh *= 0.85

        water_neighbor = (np.where(mesh.mask, water[mesh.indices], False)).any(axis=1)
        temperature = np.array([t.temperature for t in tiles], dtype=np.float64)
        pressure = np.array([t.pressure for t in tiles], dtype=np.float64)
        qsat = saturation_specific_humidity(temperature, pressure)

        for i, t in enumerate(tiles):
            st = t.surface_type
            if t.moisture is None:
                if st in _OPEN_WATER:
                    t.moisture = 95.0
                elif st in _LAKES:
                    t.moisture = 82.0
                elif st in _WETLANDS:
                    t.moisture = 88.0
                elif st == SurfaceType.LAVA_OCEAN:
                    t.moisture = 0.0
                elif st in (SurfaceType.ICE, SurfaceType.GLACIER):
                    t.moisture = 20.0
                else:
                    t.moisture = 6.0
            if t.atm_moist is None:
                if water[i]:
                    rh = 0.86
                elif st in (SurfaceType.ICE, SurfaceType.GLACIER):
                    rh = 0.24
                else:
                    rh = land_rh * min(1.0, max(0.30, 0.30 + 0.70 * t.moisture / 100.0))
                    if planet.water_coverage == WaterCoverage.DRY and t.temperature > 70:
                        rh *= 0.45
                    if not water_neighbor[i]:
                        rh *= 0.80
                t.atm_moist = float(min(max(qsat[i] * rh, 0.0), qsat[i]))

    def _advect_temperature(self, mesh, temperature, vx, vy, hop_km) -> np.ndarray:
        temp = temperature.copy()
        speed = np.hypot(vx, vy)
        moving = speed > 1e-6
        safe = np.where(moving, speed, 1.0)
        wx = vx / safe
        wy = vy / safe

        mean_hop_m = np.where(mesh.mask, hop_km, 0.0).sum(axis=1) / np.maximum(mesh.neighbor_count, 1) * 1000.0
        adv = np.clip(speed * WIND_UNIT_TO_MPS * 1800.0 / np.maximum(mean_hop_m, 1.0), 0.0, 0.36)

        # Neighbors upwind of the tile: the wind blows from them toward it
        dot = -(wx[:, None] * mesh.dir_east + wy[:, None] * mesh.dir_north)
        weight = np.where(mesh.mask & (dot > 0.02), dot, 0.0)
        weight_sum = weight.sum(axis=1)
        active = moving & (weight_sum > 1e-9) & (adv > 1e-6)

        for _ in range(TEMP_ADVECT_ITERS):
            upwind = (weight * temp[mesh.indices]).sum(axis=1) / np.maximum(weight_sum, 1e-9)
            delta = np.clip((upwind - temp) * adv * self.gamma, -6.0, 6.0)
            temp = np.clip(np.where(active, temp + delta, temp), TEMP_MIN, TEMP_MAX)
            temp = temp + 0.018 * (mesh.neighbor_mean(temp) - temp)
        return temp

    def _moisture_cycle(self, tiles, planet, mesh, mode, temperature, pressure, water, elevation,
                        slope, vx, vy, hop_km, shift, ferrel_edge) -> None:
        n = mesh.size
        enhanced = mode == ClimateModelMode.ENHANCED
        arid_world = planet.water_coverage == WaterCoverage.DRY
        atm = float(np.clip(planet.atmosphere_density, 0.05, 8.0))
        atm_evap_scale = float(np.clip(0.80 + 0.25 * math.sqrt(atm), 0.55, 1.90))
        step = float(STEP_HOURS)
        dt = 3600.0 * STEP_HOURS

        surfaces = [t.surface_type for t in tiles]
        wetland = np.array([s in _WETLANDS for s in surfaces])
        forest = np.array([s in _FORESTS for s in surfaces])
        frozen = np.array([s in _FROZEN_WATER for s in surfaces])
        steam = np.array([s == SurfaceType.STEAM_SEA for s in surfaces])

        soil = np.array([t.moisture if t.moisture is not None else 40.0 for t in tiles], dtype=np.float64)
        dp_pa = moisture_layer_pressure_pa(pressure)
        has_layer = dp_pa > 1e-6
        safe_dp = np.where(has_layer, dp_pa, 1.0)
        atm_moist = np.array([t.atm_moist or 0.0 for t in tiles], dtype=np.float64)
        iwv = np.where(has_layer, atm_moist / 1000.0 * dp_pa / GRAVITY, 0.0)

        wind_mps = np.hypot(vx, vy) * WIND_UNIT_TO_MPS
        windward, leeward, shadow = orographic_factors(mesh, elevation, vx, vy)
        orog_lift = np.clip(windward * 0.75 + leeward * 0.25 - shadow * 0.20, 0.0, 1.2)
        onshore, land_cap = self._land_capture(mesh, water, vx, vy, shift, ferrel_edge, enhanced)
        infiltration_slope = 0.02 * slope

        # Upwind-to-downwind transfer weights for conservative advection
        speed = np.hypot(vx, vy)
        moving = speed > 1e-6
        safe_speed = np.where(moving, speed, 1.0)
        dot = (vx / safe_speed)[:, None] * mesh.dir_east + (vy / safe_speed)[:, None] * mesh.dir_north
        downwind = np.where(mesh.mask & (dot > 0.0) & moving[:, None], dot, 0.0)
        downwind_sum = downwind.sum(axis=1)
        share = np.where(downwind_sum[:, None] > 0, downwind / np.maximum(downwind_sum[:, None], 1e-9), 0.0)
        mean_hop_m = np.where(mesh.mask, hop_km, 0.0).sum(axis=1) / np.maximum(mesh.neighbor_count, 1) * 1000.0
        out_frac = np.where(downwind_sum > 0, np.clip(wind_mps * dt / np.maximum(mean_hop_m, 1.0), 0.0, 0.45), 0.0)
        if enhanced:
            out_frac = np.clip(out_frac * (1.0 + 0.25 * onshore), 0.0, 0.5)
        flat_targets = mesh.indices[mesh.mask]

        steps_per_day = max(1, 24 // STEP_HOURS)
        iterations = steps_per_day * (SPINUP_DAYS + 1)
        sample_start = iterations - steps_per_day

        precip_total = np.zeros(n)
        evap_total = np.zeros(n)
        runoff_total = np.zeros(n)
        temp_min = np.full(n, np.inf)
        temp_max = np.full(n, -np.inf)
        temp_sum = np.zeros(n)

        for it in range(iterations):
            sampling = it >= sample_start
            temp_phase = _diurnal_temperature(mesh, temperature, soil, water, it, atm)
            if sampling:
                temp_min = np.minimum(temp_min, temp_phase)
                temp_max = np.maximum(temp_max, temp_phase)
                temp_sum += temp_phase

            qsat = saturation_specific_humidity(temp_phase, pressure)
            iwv_sat = qsat / 1000.0 * dp_pa / GRAVITY

            # 1) Evaporation source
            q = iwv * GRAVITY / safe_dp * 1000.0
            deficit = np.clip(np.where(qsat > 1e-6, (qsat - q) / np.maximum(qsat, 1e-6), 0.0), 0.0, 1.0)
            temp_factor = np.clip((temp_phase + 25.0) / 70.0, 0.0, 2.2)
            wind_factor = np.clip(0.45 + wind_mps / 14.0, 0.35, 2.2)
            evap_pot = deficit * temp_factor * wind_factor * atm_evap_scale * 2.2
            evap_pot = np.where(water, evap_pot * np.where(frozen, 0.14, np.where(steam, 1.30, 1.45)), evap_pot)
            if enhanced:
                evap_pot = np.where(~water & wetland, evap_pot * 1.18, evap_pot)
                evap_pot = np.where(~water & ~wetland & forest, evap_pot * 1.12, evap_pot)
            soil_frac = np.clip(soil / 100.0, 0.0, 1.0)
            land_avail_factor = np.where(wetland, 0.60 + 0.40 * soil_frac, 0.20 + 0.80 * soil_frac)
            if arid_world:
                land_avail_factor = land_avail_factor * 0.22
            evap_pot = np.where(water, evap_pot, evap_pot * land_avail_factor)
            avail = np.where(
                water, 1.0,
                np.where(wetland, np.clip(0.60 + soil / 250.0, 0.60, 1.0), soil_frac)
            )
            reservoir = np.maximum(0.0, soil) / SOIL_PER_MM * np.where(wetland, 0.98, 0.92)
            e_cap = np.where(water, 4.2 * step, np.minimum(4.2 * step, reservoir))
            evap = np.where(has_layer, np.clip(evap_pot * avail * step, 0.0, e_cap), 0.0)
            iwv = iwv + evap
            soil = np.where(water, soil, np.clip(soil - evap * SOIL_PER_MM, 0.0, 100.0))
            if sampling:
                evap_total += evap

            # 2) Conservative transport along the wind
            before = iwv
            outflow = iwv * out_frac
            moved = share * outflow[:, None]
            iwv = iwv - outflow
            np.add.at(iwv, flat_targets, moved[mesh.mask])
            convergence = iwv - before
            if enhanced:
                for _ in range(3):
                    convergence = _smooth(mesh, convergence, 0.52)
            else:
                convergence = _smooth(mesh, convergence, 0.20)

            # 3) Condensation and precipitation
            q = iwv * GRAVITY / safe_dp * 1000.0
            rel = np.where(qsat > 1e-6, q / np.maximum(qsat, 1e-6), 0.0)
            excess = np.maximum(0.0, iwv - iwv_sat)
            supersaturation = np.maximum(0.0, rel - 1.0) * 0.55 + excess * 0.45
            if enhanced:
                conv_term = np.clip(np.maximum(0.0, convergence) / 7.0, 0.0, 1.1)
                instability = np.clip((temp_phase + 8.0) / 48.0, 0.0, 1.1)
                large_scale = np.clip((rel - 0.82) / 0.30, 0.0, 1.4)
                precip = 0.42 * large_scale * (0.65 + 0.35 * instability)
                precip += conv_term * (0.18 + 0.25 * large_scale)
                precip += orog_lift * (0.10 + 0.20 * large_scale)
                precip = (precip + supersaturation) * step
                gate = np.clip((rel - 0.45) / 0.45, 0.0, 1.0)
                precip *= np.where(water, (0.55 + 0.45 * gate) * 0.84, (0.50 + 0.50 * gate) * 1.16)
            else:
                precip = supersaturation * step
            precip = np.where(has_layer, np.maximum(0.0, precip), 0.0)

            cap = np.where(water, iwv * 0.48 + excess * 0.45, iwv * land_cap + excess * 0.50)
            smoothed = _smooth(mesh, precip, 0.28 if enhanced else 0.10)
            precip = (0.68 * precip + 0.32 * smoothed) if enhanced else (0.88 * precip + 0.12 * smoothed)
            precip = np.minimum(np.clip(precip, 0.0, cap), iwv)
            iwv = np.maximum(0.0, iwv - precip)

            infiltration = np.clip(0.45 + 0.004 * soil - infiltration_slope, 0.10, 0.80)
            runoff = precip * (1.0 - infiltration)
            soil = np.clip(soil + precip * SOIL_PER_MM * infiltration, 0.0, 100.0)
            if sampling:
                precip_total += precip
                runoff_total += runoff

            # Soil moisture diffusion between land tiles
            soil = _diffuse_land(mesh, soil, water, 0.035)

            # Open water keeps the boundary layer humid
            target = iwv_sat * (0.74 if enhanced else 0.82)
            relax = 0.30 if enhanced else 0.45
            iwv = np.where(water & (iwv < target), iwv + (target - iwv) * relax, iwv)

            # 4) Saturation cap with rain-out, then mild mixing
            iwv_max = np.minimum(999.0, qsat * 1.03) / 1000.0 * dp_pa / GRAVITY
            over = np.maximum(0.0, iwv - iwv_max)
            rainout = over * (1.0 - (1.0 - (0.70 if enhanced else 0.50)) ** STEP_HOURS)
            if sampling:
                precip_total += rainout
            iwv = np.clip(iwv - rainout, 0.0, iwv_max)
            iwv = _smooth(mesh, iwv, 0.14 if enhanced else 0.08)

        temp_mean = temp_sum / steps_per_day
        final_q = np.where(has_layer, iwv * GRAVITY / safe_dp * 1000.0, 0.0)
        for i, t in enumerate(tiles):
            t.precip_kg_m2_day = float(precip_total[i])
            t.evap_kg_m2_day = float(evap_total[i])
            t.surface_runoff_kg_m2_day = float(runoff_total[i])
            t.precip_avg = float(np.clip(precip_total[i] * PRECIP_INDEX_PER_KG, 0.0, 100.0))
            t.evap_avg = float(np.clip(evap_total[i] * EVAP_INDEX_PER_KG, 0.0, 100.0))
            t.atm_moist = float(final_q[i])
            t.moisture = float(np.clip(soil[i], 0.0, 100.0))
            t.temperature = int(np.rint(temp_mean[i]))
            t.temp_min = float(temp_min[i])
            t.temp_max = float(temp_max[i])

    @staticmethod
    def _land_capture(mesh, water, vx, vy, shift, ferrel_edge, enhanced):
        """
        Onshore exposure and per-step precipitation capture fraction for land.

        Returns:
            (onshore 0..1, capture fraction)
        """
        speed = np.hypot(vx, vy)
        safe = np.where(speed > 1e-6, speed, 1.0)
        dot = -((vx / safe)[:, None] * mesh.dir_east + (vy / safe)[:, None] * mesh.dir_north)
        upwind = mesh.mask & (dot > 0.2)
        upwind_water = (upwind & water[mesh.indices]).sum(axis=1)
        onshore = np.where(upwind.sum(axis=1) > 0, upwind_water / np.maximum(upwind.sum(axis=1), 1), 0.0)
        onshore = np.where(water, 0.0, onshore)

        cap_frac = np.full(mesh.size, 0.16)
        if enhanced:
            tropical = np.clip((20.0 - np.abs(mesh.lat)) / 20.0, 0.0, 1.0)
            storm_track = _gaussian(np.abs(mesh.lat - shift), ferrel_edge - 10.0, 9.0)
            cap_frac = cap_frac + 0.13 * onshore * tropical + 0.14 * onshore * storm_track
        return onshore, np.clip(cap_frac * STEP_HOURS, 0.0, 0.95)

    @staticmethod
    def _write_airless(tiles: List[Tile]) -> None:
        for t in tiles:
            t.wind_x = 0.0
            t.wind_y = 0.0
            t.atm_moist = 0.0
            t.moisture = 0.0 if t.moisture is None else t.moisture
            t.precip_avg = 0.0
            t.evap_avg = 0.0
            t.precip_kg_m2_day = 0.0
            t.evap_kg_m2_day = 0.0
            t.surface_runoff_kg_m2_day = 0.0


def _drag(surface_type: SurfaceType) -> float:
    if surface_type in _FORESTS:
        return _FOREST_DRAG
    return _SURFACE_DRAG.get(surface_type, _DEFAULT_DRAG)


def _limit(vx: np.ndarray, vy: np.ndarray, max_magnitude: float):
    magnitude = np.hypot(vx, vy)
    scale = np.where(magnitude > max_magnitude, max_magnitude / np.maximum(magnitude, 1e-12), 1.0)
    return vx * scale, vy * scale


def _smooth(mesh: MeshArrays, values: np.ndarray, kappa: float) -> np.ndarray:
    return (1.0 - kappa) * values + kappa * mesh.neighbor_mean(values)


def _diffuse_land(mesh: MeshArrays, soil: np.ndarray, water: np.ndarray, kappa: float) -> np.ndarray:
    land_pair = mesh.mask & ~water[mesh.indices] & ~water[:, None]
    diff = np.where(land_pair, soil[mesh.indices] - soil[:, None], 0.0)
    count = np.maximum(mesh.neighbor_count, 1)
    return np.clip(soil + kappa * diff.sum(axis=1) / count, 0.0, 100.0)


def _diurnal_temperature(mesh, temperature, soil, water, iteration, atm) -> np.ndarray:
    """Mean temperature over one integration step of the day/night cycle."""
    omega = 2.0 * math.pi / 24.0
    start = iteration * STEP_HOURS + mesh.lon / 15.0
    a = omega * (start - 14.0)
    b = omega * (start + STEP_HOURS - 14.0)
    phase = (np.sin(b) - np.sin(a)) / (omega * STEP_HOURS)

    lat_factor = np.clip(0.25 + 0.75 * np.cos(np.radians(np.abs(mesh.lat))), 0.20, 1.0)
    atm_damp = float(np.clip(1.0 / (1.0 + 0.55 * atm), 0.22, 0.95))
    amplitude = np.where(water, 2.2, 8.0) * lat_factor * atm_damp

    # Drier land cools much more at night
    dryness = 1.0 - np.clip(soil / 100.0, 0.0, 1.0)
    day_amp = amplitude * (0.84 + 0.18 * dryness)
    night_amp = amplitude * (1.06 + 3.10 * dryness)
    land_anomaly = np.where(phase >= 0.0, phase * day_amp, phase * night_amp)
    return temperature + np.where(water, phase * amplitude, land_anomaly)

"""
Planet Generator - Stage: Resources
Places resource deposits and computes solar and tidal potential.

RESOURCE MODEL:
Every tile draws from its own random stream (seed + id * 31), so a tile's
deposits do not depend on the order tiles are visited in. Each resource
family has a 0..1 score built from tile features:

- Energy: wind speed, insolation, volcanism and plate stress, river drop,
  tidal range
- Water and atmosphere: open sea, soil moisture, deltas, degassing
- Ores: magmatic and hydrothermal activity at plate boundaries, placers
  along rivers, evaporites in hot dry lowlands
- Hydrocarbons and coal: flat, moist sedimentary basins, more with life
- Biology: agricultural fertility and forest biomass
- Volatiles: surface ices, buried ice shells, impact glass

A score passes a random draw (scaled by rarity) before a deposit is
written. Quality, saturation and amount are 1..100 indices; tonnes is a
log-normal estimate per resource type. Solar and tidal deposits are
deterministic.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from planetgen.config import (
    EARTH_RADIUS_KM,
    RESOURCE_TILE_SEED_STRIDE,
    SOLAR_CONSTANT,
    PlanetConfig,
    ResourceLayer,
    ResourceType,
    RiverBaseType,
    Season,
    StageId,
    SurfaceType,
)
from planetgen.generation.base_stage import GenerationStage, StageConfig
from planetgen.generation.profiles import WorldType, classify_world
from planetgen.generation.stages.rivers import max_slope, tile_area_m2
from planetgen.io.fallback import Quantity, resolve
from planetgen.models.tile import ResourcePresence, Tile, has_liquid_water, is_liquid_water
from planetgen.models.world import WorldContext

logger = logging.getLogger(__name__)

# Earth-Moon reference system for tides
EARTH_MOON_MASS = 0.0123
EARTH_MOON_AXIS_AU = 0.00257
EARTH_MOON_PERIOD_DAYS = 27.32
EQUILIBRIUM_TIDE_M = 0.54

BIO_MATERIAL_BASE_TONNES = 2e8
SOLAR_FULL_SCORE_KWH = 6.0
TIDAL_MIN_RANGE_M = 0.02
FETCH_MAX_HOPS = 22
FETCH_MAX_TILES = 2600

_OPEN_WATER = frozenset({
    SurfaceType.OCEAN,
    SurfaceType.ICE_OCEAN,
    SurfaceType.LAVA_OCEAN,
    SurfaceType.OPEN_WATER_SHALLOW,
    SurfaceType.OPEN_WATER_DEEP,
    SurfaceType.SEA_ICE_SHALLOW,
    SurfaceType.SEA_ICE_DEEP,
})

_FORESTS = frozenset({
    SurfaceType.PLAINS_FOREST, SurfaceType.FOREST, SurfaceType.RAINFOREST,
    SurfaceType.HILLS_FOREST, SurfaceType.HILLS_RAINFOREST,
    SurfaceType.MOUNTAINS_FOREST, SurfaceType.MOUNTAINS_RAINFOREST,
    SurfaceType.RIDGE_FOREST, SurfaceType.CANYON_FOREST, SurfaceType.BASIN_FOREST,
})

_ICE_WORLDS = frozenset({WorldType.ICE_ROCKY, WorldType.ICE_VOLATILE})


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _clamp01(value: float) -> float:
    return _clamp(value, 0.0, 1.0)


def _clamp_int(value: float, low: int = 1, high: int = 100) -> int:
    return int(max(low, min(high, round(value))))


# =============================================================================
# RESOURCE TABLES
# =============================================================================

# (min, max) quality per type
_QUALITY: Dict[ResourceType, Tuple[int, int]] = {
    ResourceType.WIND_PWR: (40, 95),
    ResourceType.SOLAR_PWR: (40, 95),
    ResourceType.GEO_HEAT: (40, 95),
    ResourceType.HYDRO_PWR: (40, 95),
    ResourceType.H2O_FRESH: (80, 100),
    ResourceType.H2O_SALT: (80, 100),
    ResourceType.Na_BRINE: (20, 60),
    ResourceType.ATM_AIR: (40, 95),
    ResourceType.ATM_CO2: (40, 95),
    ResourceType.ATM_H2S: (40, 95),
    ResourceType.Fe_MAG: (35, 85),
    ResourceType.Cu_PORP: (55, 90),
    ResourceType.Au_QUAR: (55, 90),
    ResourceType.Au_PLAC: (60, 95),
    ResourceType.HC_OIL_L: (40, 90),
    ResourceType.HC_GAS: (40, 90),
}
_DEFAULT_QUALITY = (35, 85)

# Below 1 makes a type rarer than its score alone suggests
_RARITY: Dict[ResourceType, float] = {
    ResourceType.Au_QUAR: 0.35,
    ResourceType.Au_PLAC: 0.4,
    ResourceType.Cu_PORP: 0.6,
    ResourceType.Ni_SULF: 0.5,
    ResourceType.HC_OIL_L: 0.7,
    ResourceType.HC_GAS: 0.8,
    ResourceType.S_NATIVE: 0.7,
    ResourceType.IMPACT_GLASS: 0.8,
}

# log10(tonnes) range per type; types without an entry carry no tonnage
_LOG_TONNES: Dict[ResourceType, Tuple[float, float]] = {
    ResourceType.H2O_FRESH: (9.0, 12.0),
    ResourceType.H2O_SALT: (12.0, 15.0),
    ResourceType.H2O_ICE_RES: (9.0, 13.0),
    ResourceType.Na_BRINE: (5.0, 8.0),
    ResourceType.Fe_MAG: (7.0, 10.0),
    ResourceType.Fe_HEM: (7.0, 10.0),
    ResourceType.Cu_PORP: (5.0, 8.0),
    ResourceType.Au_QUAR: (1.0, 3.0),
    ResourceType.Au_PLAC: (0.5, 2.5),
    ResourceType.S_NATIVE: (4.0, 7.0),
    ResourceType.Ni_SULF: (5.0, 7.5),
    ResourceType.HC_OIL_L: (6.0, 9.0),
    ResourceType.HC_GAS: (6.0, 9.0),
    ResourceType.C_COAL: (7.0, 10.0),
    ResourceType.CH4_ICE_RES: (8.0, 11.0),
    ResourceType.CO2_ICE_RES: (8.0, 11.0),
    ResourceType.IMPACT_GLASS: (3.0, 6.0),
    ResourceType.CRYO_VOLATILES: (8.0, 11.0),
}

_LAYER_AMOUNT = {
    ResourceLayer.SURFACE: 1.0,
    ResourceLayer.MIDDLE: 1.2,
    ResourceLayer.DEEP: 1.5,
}


def merge_presence(t: Tile, incoming: ResourcePresence) -> None:
    """Add a deposit, merging with an existing one of the same type and layer."""
    for existing in t.resources:
        if existing.type == incoming.type and existing.layer == incoming.layer:
            existing.quality = max(existing.quality, incoming.quality)
            existing.saturation = max(existing.saturation, incoming.saturation)
            existing.amount = max(existing.amount, incoming.amount)
            existing.tonnes += incoming.tonnes
            return
    t.resources.append(incoming)


def estimate_tonnes(resource: ResourceType, amount: int, quality: int, saturation: int,
                    rng: np.random.Generator) -> float:
    """Log-normal reserve estimate inside the type's reference range."""
    bounds = _LOG_TONNES.get(resource)
    if bounds is None:
        return 0.0
    low, high = bounds
    span = high - low
    center = (low + high) * 0.5
    base = low + span * (0.2 + 0.6 * amount / 100.0)
    base += (quality / 100.0 - 0.5) * 0.15 * span
    base += (saturation / 100.0 - 0.5) * 0.10 * span
    log_t = base + rng.normal() * max(0.25, span / 5.0)
    if log_t < low:
        log_t = low + rng.random() * (center - low)
    elif log_t > high:
        log_t = high - rng.random() * (high - center)
    return 10.0 ** log_t


# =============================================================================
# SOLAR POTENTIAL
# =============================================================================

def daily_mean_toa(solar_constant: float, lat_rad: float, decl_rad: float) -> float:
    """Daily mean top-of-atmosphere insolation in W/m², polar day and night included."""
    cos_h0 = -math.tan(lat_rad) * math.tan(decl_rad)
    if cos_h0 >= 1.0:
        h0 = 0.0
    elif cos_h0 <= -1.0:
        h0 = math.pi
    else:
        h0 = math.acos(cos_h0)
    q = (solar_constant / math.pi) * (
        h0 * math.sin(lat_rad) * math.sin(decl_rad)
        + math.cos(lat_rad) * math.cos(decl_rad) * math.sin(h0)
    )
    return max(0.0, q)


def atmospheric_transmission(planet: PlanetConfig) -> float:
    if not planet.has_atmosphere:
        return 0.95
    return _clamp(0.82 - 0.12 * (planet.atmosphere_density - 1.0), 0.45, 0.92)


def cloudiness(precip: float, evap: float) -> float:
    """Cloud cover 0.05..0.95 from precipitation and evaporation fluxes (kg/m²/day)."""
    p = max(0.0, precip)
    e = max(0.0, evap)
    wet_share = p / (p + e + 1.0)
    intensity = p / (p + 5.0)
    return _clamp(0.10 + 0.55 * wet_share + 0.25 * intensity, 0.05, 0.95)


def surface_solar_kwh(solar_constant: float, lat_rad: float, decl_rad: float,
                      transmission: float, cloud: float) -> float:
    cloud_factor = _clamp(1.0 - 0.75 * cloud ** 3, 0.15, 1.0)
    return daily_mean_toa(solar_constant, lat_rad, decl_rad) * transmission * cloud_factor * 24.0 / 1000.0


def compute_solar(t: Tile, planet: PlanetConfig) -> None:
    """
    Solar potential in kWh/m²/day for the three seasons.

    Warm and cold use the tile's own hemisphere: the sun stands over the
    tile's side of the equator in its warm season.
    """
    solar_constant = SOLAR_CONSTANT * planet.star_luminosity / planet.orbit_au ** 2
    lat_rad = math.radians(_clamp(t.lat, -90.0, 90.0))
    tilt_rad = math.radians(min(89.5, abs(planet.clamped_tilt())))
    sign = 1.0 if t.lat >= 0.0 else -1.0
    transmission = atmospheric_transmission(planet)

    slots = (
        (Season.INTERSEASON, 0.0),
        (Season.WARM, sign * tilt_rad),
        (Season.COLD, -sign * tilt_rad),
    )
    values = []
    for season, declination in slots:
        if planet.has_atmosphere:
            cloud = cloudiness(resolve(t, Quantity.PRECIP_FLUX, season),
                               resolve(t, Quantity.EVAP_FLUX, season))
        else:
            cloud = 0.0
        values.append(max(0.0, surface_solar_kwh(solar_constant, lat_rad, declination, transmission, cloud)))
    t.solar_kwh_day_inter, t.solar_kwh_day_warm, t.solar_kwh_day_cold = values


def solar_score(t: Tile) -> float:
    inter = t.solar_kwh_day_inter or 0.0
    warm = inter if t.solar_kwh_day_warm is None else t.solar_kwh_day_warm
    cold = inter if t.solar_kwh_day_cold is None else t.solar_kwh_day_cold
    return _clamp01((warm + 2.0 * inter + cold) / 4.0 / SOLAR_FULL_SCORE_KWH)


# =============================================================================
# TIDES
# =============================================================================

@dataclass
class TidalForcing:
    open_ocean_range_m: float
    cycles_per_day: float

    @property
    def period_hours(self) -> float:
        return 24.0 / self.cycles_per_day if self.cycles_per_day > 0 else 0.0


def tidal_forcing(planet: PlanetConfig) -> Optional[TidalForcing]:
    """
    Open-ocean tide from the dominant moon, scaled against the Earth-Moon
    system. None when the planet has no moon to speak of.
    """
    if planet.moon_mass_earth <= 0.0:
        return None
    radius_ratio = planet.radius_km / EARTH_RADIUS_KM
    planet_mass = max(0.05, planet.gravity * radius_ratio ** 2)
    axis_ratio = EARTH_MOON_AXIS_AU / planet.moon_distance_au

    relative = (planet.moon_mass_earth / planet_mass) / EARTH_MOON_MASS * radius_ratio ** 4 * axis_ratio ** 3
    amplitude = EQUILIBRIUM_TIDE_M * max(0.0, relative)
    if amplitude <= 0.0:
        return None

    moon_period_days = EARTH_MOON_PERIOD_DAYS * (1.0 / axis_ratio) ** 1.5 / math.sqrt(planet_mass)
    moon_motion = 360.0 / moon_period_days
    rotation = 360.0 * 24.0 / planet.rotation_period_hours
    direction = 1.0 if planet.rotation_prograde else -1.0
    sky_rate = moon_motion if planet.tidal_locked else abs(rotation - direction * moon_motion)
    cycles = _clamp(sky_rate / 180.0, 0.02, 24.0)
    return TidalForcing(2.0 * amplitude, cycles)


def _east_west_share(source: Tile, other: Tile) -> float:
    d_lat = abs(other.lat - source.lat)
    d_lon = abs((other.lon - source.lon + 180.0) % 360.0 - 180.0)
    d_lon *= math.cos(math.radians(_clamp(source.lat, -89.0, 89.0)))
    if d_lon < 1e-6 and d_lat < 1e-6:
        return 0.5
    return d_lon / (d_lon + d_lat + 1e-6)


def directional_fetch_km(t: Tile, tiles: List[Tile], tile_span_km: float) -> float:
    """East-west reach of connected water around a tile, decayed by distance."""
    seen = set()
    frontier = []
    for n in t.neighbors:
        if is_liquid_water(tiles[n].surface_type) and n not in seen:
            seen.add(n)
            frontier.append((n, 1))
    if is_liquid_water(t.surface_type):
        seen.add(t.id)
        frontier.append((t.id, 0))

    queue = deque(frontier)
    effective = 0.0
    while queue and len(seen) <= FETCH_MAX_TILES:
        current, depth = queue.popleft()
        effective += tile_span_km * _east_west_share(t, tiles[current]) / (1.0 + depth * 0.18)
        if depth >= FETCH_MAX_HOPS:
            continue
        for n in tiles[current].neighbors:
            if n not in seen and is_liquid_water(tiles[n].surface_type):
                seen.add(n)
                queue.append((n, depth + 1))
    return max(tile_span_km, effective)


def compute_tides(tiles: List[Tile], planet: PlanetConfig) -> Dict[int, float]:
    """
    Tidal range and period on water tiles and the land bordering them.

    Returns:
        Fetch in km per tide-bearing tile id
    """
    for t in tiles:
        t.tidal_range_m = None
        t.tidal_period_hours = None
    forcing = tidal_forcing(planet)
    if forcing is None or not has_liquid_water(tiles):
        return {}

    span_km = max(20.0, math.sqrt(tile_area_m2(len(tiles), planet)) / 1000.0)
    gravity_factor = _clamp(math.sqrt(1.0 / max(0.05, planet.gravity)), 0.55, 3.2)
    fetch = {}
    for t in tiles:
        water = is_liquid_water(t.surface_type)
        water_neighbors = sum(1 for n in t.neighbors if is_liquid_water(tiles[n].surface_type))
        if not water and water_neighbors == 0:
            continue
        open_frac = water_neighbors / len(t.neighbors) if t.neighbors else 0.0
        land_frac = 1.0 - open_frac

        fetch_km = directional_fetch_km(t, tiles, span_km)
        fetch_norm = _clamp01(math.log1p(fetch_km) / math.log1p(4500.0))
        basin = (0.85 + 0.45 * land_frac) if water else (1.0 + 0.95 * land_frac)
        openness = (0.75 + 0.60 * open_frac) if water else (0.65 + 0.40 * open_frac)
        amplification = _clamp((0.35 + 1.45 * fetch_norm) * basin * openness, 0.18, 4.2)
        lat_factor = 0.35 + 0.65 * math.cos(math.radians(t.lat)) ** 2

        t.tidal_range_m = max(0.0, forcing.open_ocean_range_m * lat_factor * amplification * gravity_factor)
        t.tidal_period_hours = forcing.period_hours
        fetch[t.id] = fetch_km
    return fetch


# =============================================================================
# TILE FEATURES
# =============================================================================

@dataclass
class TileFeatures:
    """Season-weighted climate and geology of one tile."""
    ocean: bool
    near_water: bool
    boundary: float
    temp: float
    precip: float  # kg/m²/day
    evap: float  # kg/m²/day
    soil: float  # 0..100
    wind: float
    slope: int


def _weighted(t: Tile, quantity: Quantity, planet: PlanetConfig) -> float:
    """(warm + 2 * interseason + cold) / 4."""
    warm = resolve(t, quantity, Season.WARM, planet)
    inter = resolve(t, quantity, Season.INTERSEASON, planet)
    cold = resolve(t, quantity, Season.COLD, planet)
    return (warm + 2.0 * inter + cold) / 4.0


def plate_boundary_score(t: Tile, tiles: List[Tile]) -> float:
    """Share of neighbors on another plate."""
    if not t.neighbors:
        return 0.0
    return sum(1 for n in t.neighbors if tiles[n].plate_id != t.plate_id) / len(t.neighbors)


def tile_features(t: Tile, tiles: List[Tile], planet: PlanetConfig) -> TileFeatures:
    return TileFeatures(
        ocean=t.surface_type in _OPEN_WATER,
        near_water=any(is_liquid_water(tiles[n].surface_type) for n in t.neighbors),
        boundary=plate_boundary_score(t, tiles),
        temp=_weighted(t, Quantity.TEMPERATURE, planet),
        precip=_weighted(t, Quantity.PRECIP_FLUX, planet),
        evap=_weighted(t, Quantity.EVAP_FLUX, planet),
        soil=_weighted(t, Quantity.SOIL_MOISTURE, planet),
        wind=resolve(t, Quantity.WIND, Season.INTERSEASON, planet),
        slope=max_slope(t, tiles),
    )


def hydro_score(t: Tile, tiles: List[Tile]) -> float:
    if not t.is_river or not 0 <= t.river_to < len(tiles):
        return 0.0
    drop = max(0, t.elevation - tiles[t.river_to].elevation)
    return _clamp01(0.4 * _clamp01(t.river_flow) + 0.4 * _clamp01(drop / 8.0) + 0.2 * _clamp01(t.river_order / 5.0))


def agro_scores(t: Tile, f: TileFeatures) -> Tuple[float, float]:
    """(agricultural, natural) fertility, both 0..1."""
    t_min = f.temp - 8.0 if t.temp_min is None else t.temp_min
    t_max = f.temp + 8.0 if t.temp_max is None else t.temp_max

    temp_score = _clamp01(1.0 - abs(f.temp - 20.0) / 22.0)
    if t_min < -5:
        temp_score *= 0.6
    if t_max > 40:
        temp_score *= 0.7
    moist_score = _clamp01(1.0 - abs(f.soil - 55.0) / 35.0)
    if f.soil < 20:
        moist_score *= 0.6
    if f.soil > 85:
        moist_score *= 0.7
    sun_score = _clamp01((t.sunny_days - 120.0) / 160.0)
    if t.sunny_days > 310:
        sun_score *= 0.8
    elev_score = _clamp01(1.0 - t.elevation / 70.0)
    slope_score = _clamp01(1.0 - f.slope / 10.0)

    base = 0.3 * temp_score + 0.3 * moist_score + 0.15 * sun_score + 0.15 * elev_score + 0.1 * slope_score
    volc = t.volcanism / 100.0
    if 0.1 <= volc <= 0.4:
        base *= 1.1
    elif volc > 0.7:
        base *= 0.7
    if t.is_river or t.river_flow > 0.2:
        base *= 1.3
    agro = _clamp01(base)
    natural = _clamp01(0.6 * agro + 0.4 * _clamp01(1.0 - abs(f.soil - 70.0) / 40.0))
    return agro, natural


# =============================================================================
# GENERATOR
# =============================================================================

class ResourceGenerator:
    """
    Resource placement.

    Args:
        seed: Run seed; tile streams use seed + id * RESOURCE_TILE_SEED_STRIDE
    """

    def __init__(self, seed: int):
        self.seed = seed

    def generate(self, tiles: List[Tile], planet: PlanetConfig) -> int:
        """
        Place deposits on every tile, replacing earlier ones.

        Returns:
            Total number of deposits
        """
        world_type = classify_world(planet)
        fetch = compute_tides(tiles, planet)

        total = 0
        for t in tiles:
            t.resources = []
            rng = np.random.default_rng(self.seed + t.id * RESOURCE_TILE_SEED_STRIDE)
            f = tile_features(t, tiles, planet)
            compute_solar(t, planet)

            self._energy(t, tiles, f, planet, rng, fetch.get(t.id, 0.0))
            self._water_and_air(t, f, planet, rng)
            self._ores(t, f, rng)
            self._hydrocarbons(t, tiles, f, planet, world_type, rng)
            if not f.ocean:
                self._biology(t, f, rng)
            self._volatiles(t, planet, world_type, rng)
            total += len(t.resources)
        return total

    # -------------------------------------------------------------------------
    # Deposit helpers
    # -------------------------------------------------------------------------

    def _presence(self, t: Tile, rng: np.random.Generator, resource: ResourceType,
                  layer: ResourceLayer, score: float) -> None:
        q_min, q_max = _QUALITY.get(resource, _DEFAULT_QUALITY)
        quality = _clamp_int(q_min + (q_max - q_min) * (0.35 + 0.5 * score) + rng.normal() * 4.0)
        saturation = _clamp_int(5 + 95 * score + rng.normal() * 6.0)
        amount = _clamp_int(saturation * _LAYER_AMOUNT[layer])
        if amount > 1:
            swing = max(2, min(amount - 1, 100 - amount))
            amount = _clamp_int(amount + round(rng.normal() * 0.35 * swing))
        tonnes = estimate_tonnes(resource, amount, quality, saturation, rng)
        merge_presence(t, ResourcePresence(
            type=resource, layer=layer, quality=quality,
            saturation=saturation, amount=amount, tonnes=tonnes,
        ))

    def _add_if_score(self, t: Tile, rng: np.random.Generator, resource: ResourceType,
                      layer: ResourceLayer, score: float) -> None:
        s = _clamp01(score * _RARITY.get(resource, 1.0))
        if rng.random() > s:
            return
        self._presence(t, rng, resource, layer, s)

    def _add_pick(self, t: Tile, rng: np.random.Generator, layer: ResourceLayer,
                  score: float, *choices: ResourceType) -> None:
        resource = choices[int(rng.integers(len(choices)))]
        self._add_if_score(t, rng, resource, layer, score)

    @staticmethod
    def _add_fixed(t: Tile, resource: ResourceType, quality: int, saturation: int, amount: int,
                   tonnes: float = 0.0) -> None:
        merge_presence(t, ResourcePresence(
            type=resource, layer=ResourceLayer.SURFACE, quality=quality,
            saturation=saturation, amount=amount, tonnes=tonnes,
        ))

    # -------------------------------------------------------------------------
    # Families
    # -------------------------------------------------------------------------

    def _energy(self, t: Tile, tiles: List[Tile], f: TileFeatures, planet: PlanetConfig,
                rng: np.random.Generator, fetch_km: float) -> None:
        gust = f.wind if t.wind_max is None else t.wind_max
        wind_metric = 0.75 * f.wind + 0.25 * min(gust, f.wind * 2.2)
        self._add_if_score(t, rng, ResourceType.WIND_PWR, ResourceLayer.SURFACE, _clamp01(wind_metric / 12.0))

        solar = solar_score(t)
        if solar > 0.0:
            self._presence(t, rng, ResourceType.SOLAR_PWR, ResourceLayer.SURFACE, solar)

        geo = _clamp01((t.volcanism / 100.0) * 0.7 + (t.tectonic_stress / 100.0) * 0.3 + 0.2 * f.boundary)
        self._add_if_score(t, rng, ResourceType.GEO_HEAT, ResourceLayer.MIDDLE, geo)

        hydro = hydro_score(t, tiles)
        if hydro > 0.15:
            self._add_if_score(t, rng, ResourceType.HYDRO_PWR, ResourceLayer.SURFACE, hydro)
        elif f.near_water and not f.ocean and f.soil > 40 and t.elevation > 5:
            self._add_if_score(t, rng, ResourceType.HYDRO_PWR, ResourceLayer.SURFACE, _clamp01(f.soil / 100.0))

        if t.tidal_range_m is not None and t.tidal_range_m > TIDAL_MIN_RANGE_M and t.tidal_period_hours:
            cycles = 24.0 / t.tidal_period_hours
            self._add_fixed(
                t, ResourceType.TIDAL_PWR,
                quality=_clamp_int(t.tidal_range_m * 10.0),  # decimeters of range
                saturation=_clamp_int(cycles * 20.0),
                amount=_clamp_int(fetch_km / 20.0),
            )

    def _water_and_air(self, t: Tile, f: TileFeatures, planet: PlanetConfig, rng: np.random.Generator) -> None:
        if f.ocean:
            self._add_fixed(t, ResourceType.H2O_SALT, 80, 80, 90, tonnes=1e14)
        elif f.soil > 45 and f.precip > 0.8 and -10 < f.temp < 40:
            fresh = _clamp01(0.55 * _clamp01(f.soil / 100.0) + 0.45 * _clamp01(f.precip / 12.0))
            self._add_if_score(t, rng, ResourceType.H2O_FRESH, ResourceLayer.SURFACE, fresh)

        if t.river_base_type == RiverBaseType.DELTA and f.near_water:
            self._add_fixed(t, ResourceType.H2O_FRESH, 60, 60, 40)
            self._add_fixed(t, ResourceType.H2O_SALT, 50, 50, 30)
            self._add_if_score(t, rng, ResourceType.Na_BRINE, ResourceLayer.SURFACE, 0.3)

        if planet.has_atmosphere:
            self._add_if_score(t, rng, ResourceType.ATM_AIR, ResourceLayer.SURFACE,
                               _clamp01(planet.atmosphere_density / 2.0))
            if t.volcanism > 35:
                self._add_if_score(t, rng, ResourceType.ATM_H2S, ResourceLayer.SURFACE,
                                   _clamp01((t.volcanism - 35.0) / 65.0))

    def _ores(self, t: Tile, f: TileFeatures, rng: np.random.Generator) -> None:
        magmatic = _clamp01(t.volcanism / 100.0 * 0.6 + t.tectonic_stress / 100.0 * 0.4 + 0.2 * f.boundary)
        if magmatic > 0.4:
            self._add_pick(t, rng, ResourceLayer.DEEP, magmatic, ResourceType.Ni_SULF, ResourceType.Fe_MAG)

        hydrothermal = _clamp01(magmatic + (0.1 if f.near_water else 0.0))
        if hydrothermal > 0.35:
            self._add_pick(t, rng, ResourceLayer.MIDDLE, hydrothermal,
                           ResourceType.Cu_PORP, ResourceType.Au_QUAR, ResourceType.S_NATIVE)
        if not f.ocean and hydrothermal > 0.3 and f.temp > 12:
            supergene = _clamp01((hydrothermal - 0.25) * 1.2) * _clamp01((f.temp - 8.0) / 28.0)
            self._add_if_score(t, rng, ResourceType.Fe_HEM, ResourceLayer.SURFACE, supergene)

        if f.boundary > 0.3:
            belt = _clamp01(0.4 + 0.6 * f.boundary)
            self._add_pick(t, rng, ResourceLayer.MIDDLE, belt, ResourceType.Cu_PORP, ResourceType.Fe_MAG)

        # Banded iron in moist low-latitude sedimentary basins
        sed_moist = _clamp01(0.65 * _clamp01(f.soil / 100.0) + 0.35 * _clamp01(f.precip / 40.0))
        sedimentary = _clamp01(sed_moist * 0.6 + (1.0 - abs(t.lat) / 90.0) * 0.4)
        if sedimentary > 0.35:
            self._add_if_score(t, rng, ResourceType.Fe_HEM, ResourceLayer.MIDDLE, sedimentary * 0.6)

        if not f.ocean and (f.near_water or t.is_river) and t.elevation < 6:
            placer = _clamp01(0.30 + _clamp01(f.soil / 100.0) * 0.35 + (0.30 if t.river_flow > 0.0 else 0.0))
            self._add_if_score(t, rng, ResourceType.Au_PLAC, ResourceLayer.SURFACE, placer)

        if not f.ocean and f.soil < 40 and f.precip < 1.2 and f.temp > 15:
            evaporite = (
                _clamp01((1.2 - f.precip) / 1.2)
                * _clamp01((40.0 - f.soil) / 40.0)
                * _clamp01((f.evap + 0.1) / (f.precip + 0.2))
                * _clamp01((f.temp - 15.0) / 20.0)
            )
            self._add_if_score(t, rng, ResourceType.Na_BRINE, ResourceLayer.SURFACE, evaporite)

        if not f.ocean and t.volcanism > 55:
            self._add_if_score(t, rng, ResourceType.S_NATIVE, ResourceLayer.SURFACE,
                               _clamp01((t.volcanism - 45.0) / 55.0))

        metamorphic = _clamp01(t.tectonic_stress / 100.0 * 0.6 + t.elevation / 50.0 * 0.4)
        if metamorphic > 0.4:
            self._add_pick(t, rng, ResourceLayer.DEEP, metamorphic,
                           ResourceType.Fe_HEM, ResourceType.Au_QUAR)

    def _hydrocarbons(self, t: Tile, tiles: List[Tile], f: TileFeatures, planet: PlanetConfig,
                      world_type: WorldType, rng: np.random.Generator) -> None:
        if t.surface_type in (SurfaceType.SWAMP, SurfaceType.MUD_SWAMP, SurfaceType.BASIN_SWAMP):
            self._add_pick(t, rng, ResourceLayer.SURFACE, 0.5, ResourceType.C_COAL, ResourceType.HC_GAS)
        if world_type == WorldType.AIRLESS:
            return

        organics = _clamp01(_clamp01(f.soil / 100.0) * 0.2 + (0.15 if planet.has_life else 0.0))
        if f.ocean:
            shelf = _clamp01((10.0 - max(0.0, t.underwater_elevation or 0.0)) / 10.0)
            coastal = any(not is_liquid_water(tiles[n].surface_type) for n in t.neighbors)
            chance = (0.04 + (0.02 if planet.has_life else 0.0)) * shelf
            if coastal and chance > 0.0 and rng.random() < chance:
                self._add_pick(t, rng, ResourceLayer.MIDDLE, max(0.3, organics + 0.15),
                               ResourceType.HC_OIL_L, ResourceType.HC_GAS, ResourceType.HC_GAS)
            return

        basin_now = _clamp01(1.0 - abs(f.soil - 50.0) / 50.0)
        paleo_wet = _clamp01(
            0.45 * _clamp01((12.0 - t.elevation) / 12.0)
            + 0.35 * _clamp01((0.6 if t.is_river else 0.0) + t.river_flow + (0.35 if f.near_water else 0.0))
            + 0.20 * _clamp01(1.0 - t.volcanism / 100.0)
        )
        basin = (
            _clamp01((8.0 - t.elevation) / 8.0)
            * _clamp01(1.0 - f.slope / 8.0)
            * _clamp01(0.6 * basin_now + 0.4 * paleo_wet)
            * _clamp01(1.0 - t.volcanism / 80.0)
        )
        if basin < 0.23:
            return

        base_prob = 0.08 * (1.25 if planet.has_life else 0.5)
        if organics < 0.15:
            base_prob *= 0.7
        chance = _clamp01(base_prob * basin)
        if rng.random() < chance:
            self._add_pick(t, rng, ResourceLayer.MIDDLE, max(0.3, organics),
                           ResourceType.HC_OIL_L, ResourceType.HC_GAS)

        paleo_moist = 0.6 * f.soil + 0.4 * paleo_wet * 100.0
        coal_mask = (
            _clamp01((10.0 - t.elevation) / 10.0)
            * _clamp01(1.0 - f.slope / 6.0)
            * _clamp01((paleo_moist - 30.0) / 50.0)
            * _clamp01(1.0 - t.volcanism / 70.0)
        )
        if planet.has_life and coal_mask > 0.35 and rng.random() < chance * 0.9 * coal_mask:
            self._add_if_score(t, rng, ResourceType.C_COAL, ResourceLayer.SURFACE, max(0.25, organics))

    def _biology(self, t: Tile, f: TileFeatures, rng: np.random.Generator) -> None:
        if t.surface_type in (SurfaceType.MOUNTAINS, SurfaceType.VOLCANIC):
            return
        agro, natural = agro_scores(t, f)
        if agro > 0.2:
            self._presence(t, rng, ResourceType.FERTILITY, ResourceLayer.SURFACE, agro)
        if t.surface_type in _FORESTS:
            availability = _clamp_int(natural * 100.0)
            self._add_fixed(
                t, ResourceType.BIO_MAT,
                quality=_clamp_int(55 + availability * 0.35),
                saturation=availability,
                amount=availability,
                tonnes=BIO_MATERIAL_BASE_TONNES * availability / 100.0,
            )

    def _volatiles(self, t: Tile, planet: PlanetConfig, world_type: WorldType, rng: np.random.Generator) -> None:
        ice_world = world_type in _ICE_WORLDS
        cratered = t.surface_type in (SurfaceType.CRATERED_SURFACE, SurfaceType.REGOLITH)

        if planet.has_atmosphere and ice_world:
            self._add_if_score(t, rng, ResourceType.ATM_CO2, ResourceLayer.SURFACE,
                               _clamp01(planet.atmosphere_density / 3.0))
        if cratered:
            self._add_if_score(t, rng, ResourceType.IMPACT_GLASS, ResourceLayer.SURFACE, 0.4)

        if t.surface_type == SurfaceType.METHANE_ICE:
            self._add_if_score(t, rng, ResourceType.CH4_ICE_RES, ResourceLayer.SURFACE, 0.8)
        elif t.surface_type == SurfaceType.CO2_ICE:
            self._add_if_score(t, rng, ResourceType.CO2_ICE_RES, ResourceLayer.SURFACE, 0.8)

        if not ice_world:
            return
        if planet.subsurface_ice_thickness_m > 0:
            ice_km = planet.subsurface_ice_thickness_m / 1000.0
            ice_score = _clamp01(ice_km / 5.0)
            layer = ResourceLayer.DEEP if ice_km > 2.0 else ResourceLayer.MIDDLE
            self._add_if_score(t, rng, ResourceType.H2O_ICE_RES, layer, ice_score)
            volatile = _clamp01(planet.methane_ice_frac + planet.ammonia_ice_frac)
            if volatile > 0.05:
                self._add_if_score(t, rng, ResourceType.CRYO_VOLATILES, ResourceLayer.DEEP,
                                   _clamp01(ice_score * (0.5 + volatile)))
        if cratered:
            self._add_if_score(t, rng, ResourceType.H2O_ICE_RES, ResourceLayer.SURFACE, 0.35)
            if planet.methane_ice_frac > 0.02:
                self._add_if_score(t, rng, ResourceType.CH4_ICE_RES, ResourceLayer.SURFACE, 0.3)


class ResourceStage(GenerationStage):

    @property
    def config(self) -> StageConfig:
        return StageConfig(
            stage_id=StageId.RESOURCES,
            name="Resources",
            description="Resource deposits, solar and tidal potential",
            requires=[StageId.NEIGHBORS, StageId.WATER_CLASSIFY],
        )

    def apply(self, context: WorldContext) -> None:
        context.require_neighbors(self.stage_id)
        count = ResourceGenerator(context.settings.seed).generate(context.tiles, context.planet)
        logger.debug("Resources: %d deposits on %d tiles", count, len(context.tiles))

"""
Planet Generator - Value Fallback Resolution
Best available value of a physical quantity for a season.

Which fields are populated depends on which stages ran, so every reader goes
through one chain per quantity, most specific first:

    local seasonal -> global seasonal -> interseason -> annual -> estimate -> 0

Local values are the per-tile warm/cold view (``biome_*``), global values the
hemisphere-fixed view. A tier without a field for a quantity is skipped, and
the first tier holding a value wins; less specific tiers are not read.
Estimates are analytic (latitude, atmosphere density, mean temperature) and
only used when no simulation populated the field.
"""

import math
from enum import Enum, IntEnum
from typing import Dict, NamedTuple, Optional, Tuple

from planetgen.config import KELVIN_OFFSET, PlanetConfig, Season
from planetgen.errors import EncodingError
from planetgen.models.tile import Tile


class Tier(IntEnum):
    """Fallback tiers, most specific first."""
    LOCAL = 0
    GLOBAL = 1
    INTERSEASON = 2
    ANNUAL = 3
    ESTIMATE = 4
    DEFAULT = 5


class Quantity(str, Enum):
    TEMPERATURE = "temperature"
    TEMP_MIN = "temp_min"
    TEMP_MAX = "temp_max"
    PRECIP = "precip"                # index 0..100
    EVAP = "evap"                    # index 0..100
    PRECIP_FLUX = "precip_flux"      # kg/m²/day
    EVAP_FLUX = "evap_flux"          # kg/m²/day
    RUNOFF_FLUX = "runoff_flux"      # kg/m²/day
    SOIL_MOISTURE = "soil_moisture"
    WIND = "wind"                    # m/s
    SUNNY_DAYS = "sunny_days"


class Resolved(NamedTuple):
    value: float
    tier: Tier


# Field per (quantity, season, tier). Missing tiers are skipped.
_Chain = Dict[Tier, str]


def _seasonal(local: Optional[str], global_: Optional[str], inter: Optional[str], annual: str) -> Dict[Season, _Chain]:
    """Build the three season chains from ``{season}`` field patterns."""
    chains = {}
    for season, suffix in ((Season.WARM, "warm"), (Season.COLD, "cold")):
        chain = {}
        if local:
            chain[Tier.LOCAL] = local.format(season=suffix)
        if global_:
            chain[Tier.GLOBAL] = global_.format(season=suffix)
        if inter:
            chain[Tier.INTERSEASON] = inter
        chain[Tier.ANNUAL] = annual
        chains[season] = chain
    inter_chain = {Tier.INTERSEASON: inter} if inter else {}
    inter_chain[Tier.ANNUAL] = annual
    chains[Season.INTERSEASON] = inter_chain
    return chains


CHAINS: Dict[Quantity, Dict[Season, _Chain]] = {
    Quantity.TEMPERATURE: _seasonal(
        "biome_temp_{season}", "temp_{season}", "biome_temp_interseason", "temperature"),
    Quantity.TEMP_MIN: _seasonal(
        None, "temp_min_{season}", "temp_min_interseason", "temp_min"),
    Quantity.TEMP_MAX: _seasonal(
        None, "temp_max_{season}", "temp_max_interseason", "temp_max"),
    Quantity.PRECIP: _seasonal(
        "biome_precip_{season}", "precip_{season}", "biome_precip_interseason", "precip_avg"),
    Quantity.EVAP: _seasonal(
        "biome_evap_{season}", "evap_{season}", "biome_evap_interseason", "evap_avg"),
    Quantity.PRECIP_FLUX: _seasonal(
        None, "precip_kg_m2_day_{season}", "precip_kg_m2_day_interseason", "precip_kg_m2_day"),
    Quantity.EVAP_FLUX: _seasonal(
        None, "evap_kg_m2_day_{season}", "evap_kg_m2_day_interseason", "evap_kg_m2_day"),
    Quantity.RUNOFF_FLUX: _seasonal(
        None, "surface_runoff_kg_m2_day_{season}", "surface_runoff_kg_m2_day_interseason",
        "surface_runoff_kg_m2_day"),
    Quantity.SOIL_MOISTURE: _seasonal(
        "biome_moisture_{season}", "moisture_{season}", "biome_moisture_interseason", "moisture"),
    Quantity.WIND: _seasonal(None, "wind_{season}", None, "wind_avg"),
    Quantity.SUNNY_DAYS: _seasonal(None, "sunny_{season}", None, "sunny_days"),
}

# Sunny days are plain ints where 0 means "not sampled"
_ZERO_IS_ABSENT = frozenset({Quantity.SUNNY_DAYS})


def _populated(tile: Tile, quantity: Quantity, name: str, value) -> bool:
    if value is None:
        return False
    if name == "temperature":
        # Annual temperature is a plain int that reads 0 before climate ran
        return tile.has_climate
    return not (quantity in _ZERO_IS_ABSENT and value <= 0)


def resolve_with_tier(
    tile: Tile,
    quantity: Quantity,
    season: Season = Season.INTERSEASON,
    planet: Optional[PlanetConfig] = None,
) -> Resolved:
    """
    Resolve a quantity and report which tier supplied it.

    Args:
        tile: Tile to read
        quantity: Physical quantity
        season: Season slot
        planet: Needed for the estimate tier; without it that tier is skipped

    Returns:
        (value, tier)
    """
    for tier, name in sorted(CHAINS[quantity][season].items()):
        value = getattr(tile, name)
        if not _populated(tile, quantity, name, value):
            continue
        return Resolved(float(value), tier)

    if planet is not None:
        estimated = estimate(tile, quantity, season, planet)
        if estimated is not None:
            return Resolved(estimated, Tier.ESTIMATE)
    return Resolved(0.0, Tier.DEFAULT)


def resolve(
    tile: Tile,
    quantity: Quantity,
    season: Season = Season.INTERSEASON,
    planet: Optional[PlanetConfig] = None,
) -> float:
    return resolve_with_tier(tile, quantity, season, planet).value


def resolve_triple(tile: Tile, quantity: Quantity, planet: Optional[PlanetConfig] = None) -> Tuple[float, float, float]:
    """(warm, interseason, cold), the order used by serialized triples."""
    return (
        resolve(tile, quantity, Season.WARM, planet),
        resolve(tile, quantity, Season.INTERSEASON, planet),
        resolve(tile, quantity, Season.COLD, planet),
    )


def round_value(value: Optional[float], digits: int) -> float:
    """
    Round for output; absent values round as 0.

    Raises:
        EncodingError: The value is infinite
    """
    if value is None or math.isnan(value):
        return 0.0
    if math.isinf(value):
        raise EncodingError(f"Cannot encode non-finite value {value}")
    return round(value, digits)


# =============================================================================
# ESTIMATES
# =============================================================================

class SeasonRange(NamedTuple):
    min_c: float
    max_c: float


def estimate_season_range(tile: Tile, planet: PlanetConfig) -> SeasonRange:
    """Daily temperature range around the annual temperature."""
    lat_factor = 1.0 + (abs(tile.lat) / 90.0) * 0.6
    atm_factor = 1.0 / math.sqrt(max(0.1, planet.atmosphere_density))
    if not planet.has_atmosphere:
        atm_factor *= 1.6
    delta = 10.0 * lat_factor * atm_factor
    mean = tile.temperature if tile.has_climate else estimate_temperature(tile.lat, planet)
    return SeasonRange(mean - delta, mean + delta)


def estimate_temperature(lat: float, planet: PlanetConfig) -> float:
    base_c = planet.base_temperature_k() - KELVIN_OFFSET
    return base_c + 12.0 - 36.0 * math.sin(math.radians(lat)) ** 2


def estimate_precip_index(lat: float, planet: PlanetConfig) -> float:
    """Zonal precipitation: wet equator and mid-latitude storm tracks."""
    if not planet.has_atmosphere:
        return 0.0
    a = abs(lat)
    band = 75.0 * math.exp(-(a / 12.0) ** 2) + 45.0 * math.exp(-((a - 50.0) / 12.0) ** 2) + 10.0
    density = min(1.5, max(0.0, planet.atmosphere_density))
    cold = 0.3 if estimate_temperature(lat, planet) < -10.0 else 1.0
    return max(0.0, min(100.0, band * density * cold))


def estimate_evap_index(lat: float, planet: PlanetConfig) -> float:
    if not planet.has_atmosphere:
        return 0.0
    temp = estimate_temperature(lat, planet)
    return max(0.0, min(100.0, (temp + 10.0) * 1.6 * min(1.5, planet.atmosphere_density)))


def estimate_wind(lat: float, planet: PlanetConfig) -> float:
    if not planet.has_atmosphere:
        return 0.0
    return (5.0 + 5.0 * abs(math.sin(math.radians(2.0 * lat)))) * math.sqrt(max(0.0, planet.atmosphere_density))


def estimate_sunny_days(precip_index: float) -> int:
    moist = max(0.0, min(100.0, precip_index))
    return max(0, min(365, int(round(365.0 * (1.0 - moist / 100.0)))))


# Index units per kg/m²/day, shared with the wind model
_INDEX_PER_KG = 8.0


def estimate(tile: Tile, quantity: Quantity, season: Season, planet: PlanetConfig) -> Optional[float]:
    """Analytic value for a quantity no simulation populated."""
    lat = tile.lat
    if quantity == Quantity.TEMPERATURE:
        return estimate_temperature(lat, planet)
    if quantity == Quantity.TEMP_MIN:
        return estimate_season_range(tile, planet).min_c
    if quantity == Quantity.TEMP_MAX:
        return estimate_season_range(tile, planet).max_c
    if quantity == Quantity.PRECIP:
        return estimate_precip_index(lat, planet)
    if quantity == Quantity.EVAP:
        return estimate_evap_index(lat, planet)
    if quantity == Quantity.PRECIP_FLUX:
        return estimate_precip_index(lat, planet) / _INDEX_PER_KG
    if quantity == Quantity.EVAP_FLUX:
        return estimate_evap_index(lat, planet) / _INDEX_PER_KG
    if quantity == Quantity.RUNOFF_FLUX:
        return max(0.0, estimate_precip_index(lat, planet) - estimate_evap_index(lat, planet)) / _INDEX_PER_KG
    if quantity == Quantity.SOIL_MOISTURE:
        return estimate_precip_index(lat, planet) * 0.8
    if quantity == Quantity.WIND:
        return estimate_wind(lat, planet)
    if quantity == Quantity.SUNNY_DAYS:
        precip = resolve(tile, Quantity.PRECIP, season, planet)
        return float(estimate_sunny_days(precip))
    return None
